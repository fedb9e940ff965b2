"""
ShowroomConfig schema.

Frozen dataclasses for the runtime settings of the invoicing kernel.
YAML files are parsed into these types by ``showroom_config.loader``;
callers obtain them only through ``showroom_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LedgerSettings:
    """Currency and monetary precision written to invoices and cash flow."""

    currency: str = "BDT"
    decimal_places: int = 2


@dataclass(frozen=True)
class PostingSettings:
    """Bounded retry of transient store failures during posting."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class ConfirmationSettings:
    """How long a draft may wait, and how long a finished command is kept."""

    timeout_seconds: float | None = 300.0
    retention_seconds: float | None = 3600.0


@dataclass(frozen=True)
class NotificationSettings:
    """Post-commit customer notification retries."""

    enabled: bool = True
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    max_workers: int = 2


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///showroom.db"
    echo: bool = False


@dataclass(frozen=True)
class ShowroomConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    posting: PostingSettings = field(default_factory=PostingSettings)
    confirmation: ConfirmationSettings = field(default_factory=ConfirmationSettings)
    notification: NotificationSettings = field(default_factory=NotificationSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""
