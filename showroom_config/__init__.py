"""
showroom_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.

Architecture position:
    Configuration.  This package sits beside ``showroom_kernel``; the
    kernel takes plain values (currency, retry policy, timeouts) and never
    imports from here.  ``showroom_config.bridges`` and the CLI are the
    bridges.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SHOWROOM_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying posted invoices to the settings that priced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from showroom_config.loader import load_config
from showroom_config.schema import (
    ConfirmationSettings,
    DatabaseSettings,
    LedgerSettings,
    NotificationSettings,
    PostingSettings,
    ShowroomConfig,
)

_logger = logging.getLogger("showroom_kernel.config")

# Default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> ShowroomConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML file.  Defaults to
            showroom_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "SHOWROOM_CONFIG_TRACE",
        extra={
            "trace_type": "SHOWROOM_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.ledger.currency,
            "decimal_places": config.ledger.decimal_places,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "ConfirmationSettings",
    "DatabaseSettings",
    "LedgerSettings",
    "NotificationSettings",
    "PostingSettings",
    "ShowroomConfig",
    "get_active_config",
]
