"""Tests for SequenceService counter allocation."""

import pytest

from showroom_kernel.services.sequence_service import SequenceService


class TestSequenceService:
    def test_seeded_at_schema_creation(self, session):
        sequences = SequenceService(session)
        assert sequences.current_value(SequenceService.INVOICE) == 0
        assert sequences.current_value(SequenceService.CASHFLOW) == 0

    def test_numbers_strictly_increase(self, session):
        sequences = SequenceService(session)
        numbers = [sequences.next_number(SequenceService.INVOICE) for _ in range(3)]
        assert numbers == ["INV-000001", "INV-000002", "INV-000003"]

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.INVOICE)
        sequences.next_value(SequenceService.INVOICE)
        assert sequences.next_number(SequenceService.CASHFLOW) == "CF-000001"

    def test_rollback_returns_the_number(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.INVOICE)
        session.rollback()
        assert sequences.current_value(SequenceService.INVOICE) == 0

    def test_committed_value_survives(self, session_factory):
        first = session_factory()
        SequenceService(first).next_value(SequenceService.INVOICE)
        first.commit()
        first.close()

        second = session_factory()
        try:
            assert SequenceService(second).next_value(SequenceService.INVOICE) == 2
        finally:
            second.rollback()
            second.close()

    def test_unseeded_sequence_rejected(self, session):
        with pytest.raises(ValueError, match="not seeded"):
            SequenceService(session).next_value("credit_note")

    def test_unknown_sequence_has_no_value(self, session):
        assert SequenceService(session).current_value("credit_note") is None

    def test_ensure_sequences_idempotent(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.INVOICE)
        sequences.ensure_sequences()
        assert sequences.current_value(SequenceService.INVOICE) == 1
