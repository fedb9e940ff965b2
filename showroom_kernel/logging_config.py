"""
Structured JSON logging for the showroom kernel.

Every record becomes one JSON line: timestamp, level, logger and message,
then the command fields bound with ``LogContext.bind``, then the record's
``extra`` fields.  A logged kernel exception contributes its code and its
structured attributes (``exc_product_code``, ``exc_requested`` ...), so a
rejected or failed command can be diagnosed from the log alone.
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Iterator

ROOT_LOGGER = "showroom_kernel"

# Fields a command can bind; other names passed to bind() are dropped
CONTEXT_FIELDS = ("correlation_id", "command_id", "employee_id", "product_id", "invoice_id")

_bound: ContextVar[dict[str, str] | None] = ContextVar("showroom_log_context", default=None)


class LogContext:
    """Command-scoped log fields, local to the current thread or task."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get() or {})

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Add fields for the duration of the block.  None values are skipped."""
        merged = LogContext.get_all()
        merged.update(
            (name, value) for name, value in fields.items()
            if name in CONTEXT_FIELDS and value is not None
        )
        token = _bound.set(merged)
        try:
            yield
        finally:
            _bound.reset(token)

    @staticmethod
    def clear() -> None:
        _bound.set(None)


# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    # UUID, Decimal, enums and exception chains
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS and name not in payload:
                payload[name] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``showroom_kernel`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Route the kernel's records to a single JSON handler.

    Only the first call takes effect until ``reset_logging()``.  Records do
    not propagate to the root logger, so the host application's handlers
    never print them a second time.
    """
    global _configured
    if _configured:
        return
    _configured = True

    kernel = logging.getLogger(ROOT_LOGGER)
    kernel.setLevel(level)
    kernel.propagate = False
    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    kernel.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging().  Used by tests."""
    global _configured
    _configured = False
    kernel = logging.getLogger(ROOT_LOGGER)
    kernel.handlers.clear()
    kernel.setLevel(logging.WARNING)
