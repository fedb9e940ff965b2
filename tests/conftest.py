"""
Pytest fixtures for the showroom kernel test suite.

Provides:
- Structured logging setup and a captured_logs fixture
- A fresh file-backed SQLite database per test (threads share it through
  the engine's connection pool, so posting races are real)
- Seeded customer / product fixtures
- A coordinator factory wired with a DeterministicClock and zero-delay retries
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from showroom_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from showroom_kernel.domain.clock import DeterministicClock
from showroom_kernel.domain.dtos import CustomerDetails
from showroom_kernel.domain.pricing import PricingEngine
from showroom_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from showroom_kernel.services.customer_service import CustomerService
from showroom_kernel.services.invoice_coordinator import InvoiceCoordinator
from showroom_kernel.services.product_service import ProductService
from showroom_kernel.services.retry_policy import RetryPolicy
from showroom_kernel.services.unit_of_work import SqlUnitOfWork

EXAMPLE_PHONE = "01754031344"
EXAMPLE_CODE = "AFL-SOF-103"

EXAMPLE_UTTERANCE = (
    "ERP, find customer with phone 01754031344. The customer will buy "
    "AFL-SOF-103, a 2-seater made of Mahogany lacquer, light finish, "
    "with a 10% discount."
)

SOFA_VARIANTS = {
    "seat_count": ["1", "2", "3"],
    "material": ["mahogany", "oak"],
    "finish_type": ["lacquer", "matte"],
    "finish_shade": ["light", "dark"],
}


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture showroom_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.open_command(...)
            logs = captured_logs()
            assert any(r["message"] == "draft_presented" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("showroom_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'showroom_test.db'}"


@pytest.fixture
def engine(db_url):
    """Fresh schema per test; disposed afterwards."""
    eng = init_engine_from_url(db_url, busy_timeout=30.0)
    create_tables()
    yield eng
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A plain session for arranging and asserting; tests commit explicitly."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Catalog fixtures
# =============================================================================


@pytest.fixture
def add_customer(engine):
    def _add(phone: str = EXAMPLE_PHONE, name: str = "Rahim Chowdhury", email: str | None = None):
        with session_scope() as sess:
            return CustomerService(sess).register(CustomerDetails(phone=phone, name=name, email=email))

    return _add


@pytest.fixture
def add_product(engine):
    def _add(
        code: str = EXAMPLE_CODE,
        name: str = "Aurora Sofa",
        unit_price: Decimal = Decimal("50000.00"),
        stock: int = 5,
        variants: dict | None = None,
    ):
        with session_scope() as sess:
            return ProductService(sess).add_product(
                code=code,
                name=name,
                unit_price=unit_price,
                stock_quantity=stock,
                variant_options=SOFA_VARIANTS if variants is None else variants,
            )

    return _add


@pytest.fixture
def customer(add_customer):
    return add_customer()


@pytest.fixture
def sofa(add_product):
    return add_product()


@pytest.fixture
def stock_of(engine):
    def _stock(code: str = EXAMPLE_CODE) -> int | None:
        with session_scope() as sess:
            return ProductService(sess).get_stock(code)

    return _stock


# =============================================================================
# Coordinator fixtures
# =============================================================================


@pytest.fixture
def make_coordinator(session_factory, deterministic_clock):
    """Build a coordinator over the test database.

    Retries never sleep; keyword arguments override any constructor argument.
    """
    def _make(**overrides) -> InvoiceCoordinator:
        kwargs = dict(
            pricing=PricingEngine(currency="BDT"),
            clock=deterministic_clock,
            retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0, sleep=lambda _: None),
            confirmation_timeout_seconds=300,
        )
        kwargs.update(overrides)
        return InvoiceCoordinator(SqlUnitOfWork(session_factory, deterministic_clock), **kwargs)

    return _make


@pytest.fixture
def coordinator(make_coordinator):
    return make_coordinator()


@pytest.fixture
def example_utterance() -> str:
    return EXAMPLE_UTTERANCE
