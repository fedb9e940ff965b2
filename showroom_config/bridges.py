"""
Config -> Kernel Bridges.

Functions that turn a ShowroomConfig into kernel objects.  These live in
showroom_config (the producer) because the kernel never imports
showroom_config.

Usage:
    from showroom_config.bridges import build_coordinator

    config = get_active_config()
    init_engine_from_url(config.database.url, echo=config.database.echo)
    coordinator = build_coordinator(config, get_session_factory())
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from showroom_config.schema import ShowroomConfig
from showroom_kernel.domain.clock import Clock, SystemClock
from showroom_kernel.domain.ports import Notifier
from showroom_kernel.domain.pricing import PricingEngine
from showroom_kernel.services.invoice_coordinator import InvoiceCoordinator
from showroom_kernel.services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
)
from showroom_kernel.services.retry_policy import RetryPolicy
from showroom_kernel.services.unit_of_work import SqlUnitOfWork


def build_pricing_engine(config: ShowroomConfig) -> PricingEngine:
    return PricingEngine(
        currency=config.ledger.currency,
        decimal_places=config.ledger.decimal_places,
    )


def build_posting_retry(config: ShowroomConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.posting.max_attempts,
        backoff_seconds=config.posting.backoff_seconds,
        backoff_multiplier=config.posting.backoff_multiplier,
    )


def build_notification_dispatcher(
    config: ShowroomConfig, notifier: Notifier | None = None
) -> NotificationDispatcher | None:
    """None when notifications are disabled."""
    settings = config.notification
    if not settings.enabled:
        return None
    return NotificationDispatcher(
        notifier or LoggingNotifier(),
        RetryPolicy(
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.backoff_seconds,
            retry_on=(Exception,),
        ),
        max_workers=settings.max_workers,
    )


def build_coordinator(
    config: ShowroomConfig,
    session_factory: sessionmaker[Session],
    notifier: Notifier | None = None,
    clock: Clock | None = None,
) -> InvoiceCoordinator:
    """Wire an InvoiceCoordinator from configuration."""
    clock = clock or SystemClock()
    return InvoiceCoordinator(
        SqlUnitOfWork(session_factory, clock),
        pricing=build_pricing_engine(config),
        clock=clock,
        retry_policy=build_posting_retry(config),
        notifications=build_notification_dispatcher(config, notifier),
        confirmation_timeout_seconds=config.confirmation.timeout_seconds,
        retention_seconds=config.confirmation.retention_seconds,
    )
