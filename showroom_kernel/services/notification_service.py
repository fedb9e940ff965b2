"""
Post-commit customer notifications.

Responsibility:
    Delivers the "invoice posted" notification to the customer through a
    Notifier collaborator, on a background executor, with bounded
    independent retries.

Architecture position:
    Kernel > Services.  Invoked by the coordinator only after the posting
    transaction has committed.

Invariants enforced:
    - Notifications never run inside the posting transaction and never
      block the confirm() call.
    - A failed notification is logged and dropped.  It never reverts or
      alters the POSTED invoice.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait

from showroom_kernel.domain.dtos import CustomerRef, PostedInvoice
from showroom_kernel.domain.ports import Notifier
from showroom_kernel.logging_config import LogContext, get_logger
from showroom_kernel.services.retry_policy import RetryExhaustedError, RetryPolicy

logger = get_logger("services.notification")


class LoggingNotifier:
    """Notifier that records the message it would send in the log."""

    def invoice_posted(self, invoice: PostedInvoice, customer: CustomerRef) -> None:
        logger.info(
            "customer_notified",
            extra={
                "invoice_number": invoice.invoice_number,
                "customer_phone": customer.phone,
                "customer_email": customer.email,
                "final_amount": str(invoice.final_amount),
                "currency": invoice.currency,
            },
        )


class NotificationDispatcher:
    """
    Fire-and-forget notifier calls on a small thread pool.

    Args:
        notifier: The Notifier collaborator.
        retry_policy: Attempts and backoff per notification.  Every
            exception the notifier raises counts as retryable.
        max_workers: Executor size.
    """

    def __init__(
        self,
        notifier: Notifier,
        retry_policy: RetryPolicy | None = None,
        max_workers: int = 2,
    ):
        self._notifier = notifier
        policy = retry_policy or RetryPolicy()
        self._policy = RetryPolicy(
            max_attempts=policy.max_attempts,
            backoff_seconds=policy.backoff_seconds,
            backoff_multiplier=policy.backoff_multiplier,
            retry_on=(Exception,),
            sleep=policy.sleep,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def dispatch(self, invoice: PostedInvoice, customer: CustomerRef) -> Future:
        """Schedule the notification and return immediately."""
        context = LogContext.get_all()
        future = self._executor.submit(self._deliver, invoice, customer, context)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, invoice: PostedInvoice, customer: CustomerRef, context: dict) -> bool:
        with LogContext.bind(
            correlation_id=context.get("correlation_id"),
            command_id=invoice.command_id,
            invoice_id=str(invoice.id),
        ):
            try:
                self._policy.run(
                    lambda: self._notifier.invoice_posted(invoice, customer),
                    label="notification",
                )
            except RetryExhaustedError as exc:
                logger.error(
                    "notification_failed",
                    extra={
                        "invoice_number": invoice.invoice_number,
                        "attempts": exc.attempts,
                        "error": str(exc.last_error),
                    },
                )
                return False
            logger.info(
                "notification_delivered",
                extra={"invoice_number": invoice.invoice_number},
            )
            return True

    def flush(self, timeout: float | None = None) -> None:
        """Wait for every scheduled notification to finish."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
