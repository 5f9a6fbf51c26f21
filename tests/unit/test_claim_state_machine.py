"""
Unit tests for the claim status state machine.
"""

from uuid import uuid4

import pytest

from claims_engine.core.enums import TERMINAL_STATUSES, ClaimStatus
from claims_engine.services.claim_state_machine import (
    VALID_TRANSITIONS,
    ClaimStateMachine,
    LedgerEffect,
    Transition,
    TransitionContext,
    TransitionEvent,
    _check_transition_table,
    get_claim_state_machine,
    get_status_display_name,
    is_fraud_status,
    is_terminal_status,
    ledger_effect,
)


@pytest.fixture
def machine():
    return ClaimStateMachine()


def _context(current, target, event, reason=None):
    return TransitionContext(
        claim_id=uuid4(),
        current_status=current,
        target_status=target,
        event=event,
        reason=reason,
    )


@pytest.mark.unit
class TestTransitionTable:
    """Shape of the transition table."""

    def test_terminal_statuses_have_no_exits(self, machine):
        for status in TERMINAL_STATUSES:
            assert machine.get_valid_transitions(status) == []

    def test_every_non_terminal_status_can_reject_and_flag(self, machine):
        for status in ClaimStatus:
            if status in TERMINAL_STATUSES:
                continue
            events = machine.get_valid_events(status)
            assert TransitionEvent.REJECT in events
            assert TransitionEvent.FLAG_FRAUD_REVIEW in events
            assert TransitionEvent.CONFIRM_FRAUD in events

    def test_only_approved_can_be_paid(self, machine):
        sources = {
            t.from_status for t in VALID_TRANSITIONS if t.to_status == ClaimStatus.PAID
        }
        assert sources == {ClaimStatus.APPROVED}

    def test_fraud_confirmed_is_irreversible(self, machine):
        assert is_terminal_status(ClaimStatus.FRAUD_CONFIRMED)
        assert machine.get_next_statuses(ClaimStatus.FRAUD_CONFIRMED) == []

    def test_cleared_fraud_review_can_be_approved(self, machine):
        assert machine.can_transition(ClaimStatus.FRAUD_REVIEW, ClaimStatus.APPROVED)

    def test_submitted_cannot_jump_to_paid(self, machine):
        assert not machine.can_transition(ClaimStatus.SUBMITTED, ClaimStatus.PAID)

    def test_duplicate_transition_detected(self):
        table = VALID_TRANSITIONS + [
            Transition(
                from_status=ClaimStatus.SUBMITTED,
                to_status=ClaimStatus.UNDER_REVIEW,
                event=TransitionEvent.START_REVIEW,
            )
        ]
        with pytest.raises(RuntimeError):
            _check_transition_table(table)

    def test_terminal_exit_detected(self):
        table = VALID_TRANSITIONS + [
            Transition(
                from_status=ClaimStatus.PAID,
                to_status=ClaimStatus.APPROVED,
                event=TransitionEvent.APPROVE,
            )
        ]
        with pytest.raises(RuntimeError):
            _check_transition_table(table)

    def test_unused_event_detected(self):
        table = [t for t in VALID_TRANSITIONS if t.event != TransitionEvent.AUTHORIZE_PAYMENT]
        with pytest.raises(RuntimeError):
            _check_transition_table(table)


@pytest.mark.unit
class TestLedgerEffect:
    """Ledger movement implied by each status change."""

    @pytest.mark.parametrize(
        "from_status",
        [ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW, ClaimStatus.FRAUD_REVIEW],
    )
    def test_entering_approved_reserves(self, from_status):
        assert ledger_effect(from_status, ClaimStatus.APPROVED) == LedgerEffect.RESERVE

    def test_paying_commits(self):
        assert ledger_effect(ClaimStatus.APPROVED, ClaimStatus.PAID) == LedgerEffect.COMMIT

    @pytest.mark.parametrize(
        "to_status",
        [ClaimStatus.REJECTED, ClaimStatus.FRAUD_REVIEW, ClaimStatus.FRAUD_CONFIRMED],
    )
    def test_leaving_approved_releases(self, to_status):
        assert ledger_effect(ClaimStatus.APPROVED, to_status) == LedgerEffect.RELEASE

    def test_admin_approval_of_approved_claim_is_neutral(self):
        assert ledger_effect(ClaimStatus.APPROVED, ClaimStatus.APPROVED) == LedgerEffect.NONE

    def test_rejecting_unapproved_claim_is_neutral(self):
        assert ledger_effect(ClaimStatus.SUBMITTED, ClaimStatus.REJECTED) == LedgerEffect.NONE

    def test_transition_exposes_effect(self, machine):
        transition = machine.get_transition(
            ClaimStatus.APPROVED, TransitionEvent.AUTHORIZE_PAYMENT
        )
        assert transition.ledger_effect == LedgerEffect.COMMIT


@pytest.mark.unit
class TestValidateTransition:
    """Transition validation results."""

    def test_valid_transition(self, machine):
        result = machine.validate_transition(
            _context(ClaimStatus.SUBMITTED, ClaimStatus.APPROVED, TransitionEvent.APPROVE)
        )
        assert result.success is True
        assert result.to_status == ClaimStatus.APPROVED

    def test_invalid_event_for_status(self, machine):
        result = machine.validate_transition(
            _context(ClaimStatus.SUBMITTED, ClaimStatus.PAID, TransitionEvent.AUTHORIZE_PAYMENT)
        )
        assert result.success is False
        assert result.error_guard == "status"

    def test_target_mismatch(self, machine):
        result = machine.validate_transition(
            _context(ClaimStatus.SUBMITTED, ClaimStatus.PAID, TransitionEvent.APPROVE)
        )
        assert result.success is False
        assert "mismatch" in result.error

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reject_requires_reason(self, machine, reason):
        result = machine.validate_transition(
            _context(
                ClaimStatus.UNDER_REVIEW,
                ClaimStatus.REJECTED,
                TransitionEvent.REJECT,
                reason=reason,
            )
        )
        assert result.success is False
        assert result.error_guard == "reason"

    def test_reject_with_reason(self, machine):
        result = machine.execute_transition(
            _context(
                ClaimStatus.UNDER_REVIEW,
                ClaimStatus.REJECTED,
                TransitionEvent.REJECT,
                reason="Not covered",
            )
        )
        assert result.success is True

    def test_terminal_status_rejects_everything(self, machine):
        for event in TransitionEvent:
            result = machine.execute_transition(
                _context(ClaimStatus.PAID, ClaimStatus.REJECTED, event, reason="x")
            )
            assert result.success is False


@pytest.mark.unit
class TestStatusHelpers:
    """Helper functions."""

    def test_fraud_statuses(self):
        assert is_fraud_status(ClaimStatus.FRAUD_REVIEW)
        assert is_fraud_status(ClaimStatus.FRAUD_CONFIRMED)
        assert not is_fraud_status(ClaimStatus.APPROVED)

    def test_display_names(self):
        assert get_status_display_name(ClaimStatus.UNDER_REVIEW) == "Under Review"
        assert get_status_display_name(ClaimStatus.FRAUD_CONFIRMED) == "Fraud Confirmed"

    def test_singleton(self):
        assert get_claim_state_machine() is get_claim_state_machine()
