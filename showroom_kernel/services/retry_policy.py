"""
RetryPolicy -- bounded exponential backoff for transient store failures.

Responsibility:
    Runs an operation, retrying it when it raises one of the configured
    transient exception types, sleeping ``backoff * multiplier**n`` between
    attempts.  After ``max_attempts`` the last exception propagates.

Architecture position:
    Kernel > Services.  Used by the coordinator around the posting unit
    (``sqlalchemy.exc.OperationalError``: lock timeouts, dropped
    connections) and by the notification dispatcher around notifier calls.

Invariants enforced:
    - Only the listed exception types are retried.  Domain errors such as
      InsufficientStockError propagate on the first attempt.
    - Each attempt must be self-contained (its own transaction); a failed
      attempt leaves nothing behind.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

from showroom_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    ``sleep`` is injectable so tests run with zero real delay.
    """

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    backoff_multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (OperationalError,)
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0 or self.backoff_multiplier < 1:
            raise ValueError("backoff_seconds must be >= 0 and backoff_multiplier >= 1")

    def delay(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt."""
        return self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))

    def run(self, operation: Callable[[], T], *, label: str = "operation") -> T:
        """
        Run ``operation`` until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: After ``max_attempts`` retryable failures.
                Non-retryable exceptions propagate unchanged.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except self.retry_on as exc:
                if attempt == self.max_attempts:
                    logger.error(
                        "retry_exhausted",
                        extra={"label": label, "attempts": attempt, "error": str(exc)},
                    )
                    raise RetryExhaustedError(attempt, exc) from exc
                delay = self.delay(attempt)
                logger.warning(
                    "retrying_after_transient_error",
                    extra={
                        "label": label,
                        "attempt": attempt,
                        "max_attempts": self.max_attempts,
                        "delay_seconds": delay,
                        "error": str(exc),
                    },
                )
                self.sleep(delay)
        raise AssertionError("unreachable")
