"""
Configuration Loader (``showroom_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``showroom_config.schema`` dataclasses.  The single public entry point for
runtime config is ``showroom_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections or keys are rejected, so a misspelled setting can never
  silently fall back to its default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  source for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrong types or out-of-range values  -> ``ValueError``
  listing every problem found.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from showroom_config.schema import (
    ConfirmationSettings,
    DatabaseSettings,
    LedgerSettings,
    NotificationSettings,
    PostingSettings,
    ShowroomConfig,
)

_SECTIONS: dict[str, type] = {
    "ledger": LedgerSettings,
    "posting": PostingSettings,
    "confirmation": ConfirmationSettings,
    "notification": NotificationSettings,
    "database": DatabaseSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_section(name: str, cls: type, data: Any, errors: list[str]) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        errors.append(f"{name}: expected a mapping, got {type(data).__name__}")
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        errors.append(f"{name}: unknown key(s) {unknown}")
    return cls(**{k: v for k, v in data.items() if k in known})


def validate_config(config: ShowroomConfig) -> list[str]:
    """Return every validation problem; an empty list means valid."""
    errors: list[str] = []

    currency = config.ledger.currency
    if not (isinstance(currency, str) and len(currency) == 3 and currency.isalpha() and currency.isupper()):
        errors.append(f"ledger.currency: expected a 3-letter ISO code, got {currency!r}")
    places = config.ledger.decimal_places
    if not isinstance(places, int) or isinstance(places, bool) or not 0 <= places <= 9:
        errors.append(f"ledger.decimal_places: expected 0-9, got {places!r}")

    for section, settings in (("posting", config.posting), ("notification", config.notification)):
        if not isinstance(settings.max_attempts, int) or settings.max_attempts < 1:
            errors.append(f"{section}.max_attempts: expected an integer >= 1, got {settings.max_attempts!r}")
        if not isinstance(settings.backoff_seconds, (int, float)) or settings.backoff_seconds < 0:
            errors.append(f"{section}.backoff_seconds: expected >= 0, got {settings.backoff_seconds!r}")

    multiplier = config.posting.backoff_multiplier
    if not isinstance(multiplier, (int, float)) or multiplier < 1:
        errors.append(f"posting.backoff_multiplier: expected >= 1, got {multiplier!r}")

    if not isinstance(config.notification.max_workers, int) or config.notification.max_workers < 1:
        errors.append(f"notification.max_workers: expected >= 1, got {config.notification.max_workers!r}")

    timeout = config.confirmation.timeout_seconds
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        errors.append(f"confirmation.timeout_seconds: expected > 0 or null, got {timeout!r}")

    retention = config.confirmation.retention_seconds
    if retention is not None and (not isinstance(retention, (int, float)) or retention < 0):
        errors.append(f"confirmation.retention_seconds: expected >= 0 or null, got {retention!r}")

    if not isinstance(config.database.url, str) or "://" not in config.database.url:
        errors.append(f"database.url: expected a SQLAlchemy URL, got {config.database.url!r}")

    return errors


def parse_config(data: dict[str, Any]) -> ShowroomConfig:
    """
    Parse and validate a configuration dict.

    Raises:
        ValueError: listing every structural or range problem.
    """
    errors: list[str] = []

    unknown = sorted(set(data) - set(_SECTIONS) - {"config_id", "version"})
    if unknown:
        errors.append(f"unknown section(s) {unknown}")

    sections = {
        name: _parse_section(name, cls, data.get(name), errors)
        for name, cls in _SECTIONS.items()
    }
    config = ShowroomConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        **sections,
    )
    errors.extend(validate_config(config))
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
    return config


def load_config(path: Path) -> ShowroomConfig:
    """Load, parse and validate one YAML configuration file."""
    return parse_config(load_yaml_file(path))
