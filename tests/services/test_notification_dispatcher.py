"""Tests for post-commit notification delivery."""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from showroom_kernel.domain.dtos import CustomerRef, PostedInvoice
from showroom_kernel.services.notification_service import LoggingNotifier, NotificationDispatcher
from showroom_kernel.services.retry_policy import RetryPolicy


def _invoice() -> PostedInvoice:
    return PostedInvoice(
        id=uuid4(),
        invoice_number="INV-000001",
        command_id="cmd-1",
        customer_id=uuid4(),
        product_id=uuid4(),
        quantity=1,
        total_amount=Decimal("50000.00"),
        discount=Decimal("5000.00"),
        final_amount=Decimal("45000.00"),
        currency="BDT",
        status="posted",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


def _customer() -> CustomerRef:
    return CustomerRef(id=uuid4(), phone="01754031344", name="Rahim Chowdhury")


class RecordingNotifier:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.delivered: list[str] = []
        self._lock = threading.Lock()

    def invoice_posted(self, invoice, customer):
        with self._lock:
            self.calls += 1
            if self.calls <= self.failures:
                raise ConnectionError("gateway unavailable")
            self.delivered.append(invoice.invoice_number)


@pytest.fixture
def no_sleep_policy():
    return RetryPolicy(max_attempts=3, backoff_seconds=0, sleep=lambda _: None)


class TestNotificationDispatcher:
    def test_delivers(self, no_sleep_policy):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, no_sleep_policy)
        try:
            assert dispatcher.dispatch(_invoice(), _customer()).result(timeout=5) is True
        finally:
            dispatcher.shutdown()
        assert notifier.delivered == ["INV-000001"]

    def test_any_exception_is_retried(self, no_sleep_policy):
        notifier = RecordingNotifier(failures=2)
        dispatcher = NotificationDispatcher(notifier, no_sleep_policy)
        try:
            assert dispatcher.dispatch(_invoice(), _customer()).result(timeout=5) is True
        finally:
            dispatcher.shutdown()
        assert notifier.calls == 3

    def test_failure_logged_not_raised(self, no_sleep_policy, captured_logs):
        notifier = RecordingNotifier(failures=10)
        dispatcher = NotificationDispatcher(notifier, no_sleep_policy)
        try:
            assert dispatcher.dispatch(_invoice(), _customer()).result(timeout=5) is False
        finally:
            dispatcher.shutdown()

        failed = [r for r in captured_logs() if r["message"] == "notification_failed"]
        assert len(failed) == 1
        assert failed[0]["attempts"] == 3
        assert failed[0]["command_id"] == "cmd-1"

    def test_flush_waits_for_pending(self, no_sleep_policy):
        release = threading.Event()

        class SlowNotifier(RecordingNotifier):
            def invoice_posted(self, invoice, customer):
                release.wait(timeout=5)
                super().invoice_posted(invoice, customer)

        notifier = SlowNotifier()
        dispatcher = NotificationDispatcher(notifier, no_sleep_policy)
        try:
            future = dispatcher.dispatch(_invoice(), _customer())
            assert not future.done()
            release.set()
            dispatcher.flush(timeout=5)
            assert future.done()
        finally:
            dispatcher.shutdown()

    def test_logging_notifier(self, captured_logs):
        LoggingNotifier().invoice_posted(_invoice(), _customer())
        record = next(r for r in captured_logs() if r["message"] == "customer_notified")
        assert record["customer_phone"] == "01754031344"
        assert record["final_amount"] == "45000.00"
