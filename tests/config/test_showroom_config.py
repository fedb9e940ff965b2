"""Tests for showroom_config loading, validation and kernel bridges."""

from decimal import Decimal

import pytest
import yaml

from showroom_config import DEFAULT_CONFIG_PATH, get_active_config
from showroom_config.bridges import (
    build_coordinator,
    build_notification_dispatcher,
    build_posting_retry,
    build_pricing_engine,
)
from showroom_config.loader import compute_checksum, load_yaml_file, parse_config
from showroom_kernel.services.invoice_coordinator import CommandStatus, InvoiceCoordinator


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict):
        path = tmp_path / "showroom.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaultConfig:
    def test_loads(self):
        config = get_active_config()
        assert config.config_id == "showroom-default"
        assert config.ledger.currency == "BDT"
        assert config.ledger.decimal_places == 2
        assert config.posting.max_attempts == 3
        assert config.confirmation.timeout_seconds == 300
        assert config.confirmation.retention_seconds == 3600
        assert config.notification.enabled is True

    def test_emits_trace(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "SHOWROOM_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["logger"] == "showroom_kernel.config"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["config_id"] == "showroom-default"

    def test_checksum_is_stable(self):
        data = load_yaml_file(DEFAULT_CONFIG_PATH)
        assert compute_checksum(data) == get_active_config().checksum


class TestValidation:
    def test_missing_sections_use_defaults(self):
        config = parse_config({"config_id": "minimal"})
        assert config.ledger.currency == "BDT"
        assert config.database.url == "sqlite:///showroom.db"

    def test_null_timeout_disables_expiry(self):
        config = parse_config({"confirmation": {"timeout_seconds": None}})
        assert config.confirmation.timeout_seconds is None

    def test_negative_retention_rejected(self):
        with pytest.raises(ValueError, match="confirmation.retention_seconds"):
            parse_config({"confirmation": {"retention_seconds": -1}})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="unknown key"):
            parse_config({"ledger": {"currency": "BDT", "curency": "USD"}})

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="unknown section"):
            parse_config({"pricing": {}})

    @pytest.mark.parametrize("currency", ["bdt", "TAKA", "", 5])
    def test_bad_currency(self, currency):
        with pytest.raises(ValueError, match="ledger.currency"):
            parse_config({"ledger": {"currency": currency}})

    def test_every_problem_reported(self):
        with pytest.raises(ValueError) as exc_info:
            parse_config({
                "posting": {"max_attempts": 0, "backoff_multiplier": 0.5},
                "confirmation": {"timeout_seconds": -1},
                "database": {"url": "showroom.db"},
            })
        message = str(exc_info.value)
        for field in ("posting.max_attempts", "posting.backoff_multiplier",
                      "confirmation.timeout_seconds", "database.url"):
            assert field in message

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="expected a mapping"):
            parse_config({"ledger": "BDT"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_override_path(self, write_config):
        path = write_config({"config_id": "dhaka-store", "version": 4, "ledger": {"currency": "USD"}})
        config = get_active_config(path)
        assert (config.config_id, config.version, config.ledger.currency) == ("dhaka-store", 4, "USD")


class TestBridges:
    def test_pricing_engine(self):
        config = parse_config({"ledger": {"currency": "USD", "decimal_places": 3}})
        engine = build_pricing_engine(config)
        assert engine.currency == "USD"

    def test_posting_retry(self):
        retry = build_posting_retry(parse_config({"posting": {"max_attempts": 5, "backoff_seconds": 0.5}}))
        assert retry.max_attempts == 5
        assert retry.delay(2) == pytest.approx(1.0)

    def test_notifications_disabled(self):
        config = parse_config({"notification": {"enabled": False}})
        assert build_notification_dispatcher(config) is None

    def test_coordinator_from_config(self, session_factory, customer, sofa, deterministic_clock, example_utterance):
        config = parse_config({
            "ledger": {"currency": "BDT"},
            "notification": {"enabled": False},
            "posting": {"backoff_seconds": 0},
        })
        coordinator = build_coordinator(config, session_factory, clock=deterministic_clock)
        assert isinstance(coordinator, InvoiceCoordinator)

        opened = coordinator.open_command(example_utterance)
        assert opened.preview.currency == "BDT"
        posted = coordinator.confirm(opened.command_id)
        coordinator.close()
        assert posted.status == CommandStatus.POSTED
        assert posted.invoice.final_amount == Decimal("45000.00")
