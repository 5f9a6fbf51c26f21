"""
Claim Status State Machine.

Provides:
- Valid status transitions
- Transition validation
- Ledger side effect of each transition

State Diagram:
    SUBMITTED -> UNDER_REVIEW | APPROVED | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    UNDER_REVIEW -> APPROVED (reviewer or admin) | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    FRAUD_REVIEW -> APPROVED (reviewer or admin) | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    APPROVED -> PAID | APPROVED (admin) | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    PAID, REJECTED, FRAUD_CONFIRMED are terminal

The table is checked for completeness when this module is imported.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from claims_engine.core.enums import TERMINAL_STATUSES, ClaimStatus

logger = logging.getLogger(__name__)


class TransitionEvent(str, Enum):
    """Events that trigger state transitions."""

    START_REVIEW = "start_review"
    APPROVE = "approve"
    ADMIN_APPROVE = "admin_approve"
    REJECT = "reject"
    FLAG_FRAUD_REVIEW = "flag_fraud_review"
    CONFIRM_FRAUD = "confirm_fraud"
    AUTHORIZE_PAYMENT = "authorize_payment"


class LedgerEffect(str, Enum):
    """What a transition does to the member's benefit utilization."""

    NONE = "none"
    RESERVE = "reserve"
    RELEASE = "release"
    COMMIT = "commit"


@dataclass
class Transition:
    """Represents a valid state transition."""

    from_status: ClaimStatus
    to_status: ClaimStatus
    event: TransitionEvent
    requires_reason: bool = False

    @property
    def ledger_effect(self) -> LedgerEffect:
        return ledger_effect(self.from_status, self.to_status)


@dataclass
class TransitionContext:
    """Context for a transition attempt."""

    claim_id: UUID
    current_status: ClaimStatus
    target_status: ClaimStatus
    event: TransitionEvent
    triggered_by: Optional[str] = None
    reason: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class TransitionResult:
    """Result of a transition attempt."""

    success: bool
    from_status: ClaimStatus
    to_status: Optional[ClaimStatus] = None
    error: Optional[str] = None
    error_guard: Optional[str] = None
    transition: Optional[Transition] = None


# =============================================================================
# Valid Transitions Definition
# =============================================================================


def _exits(from_status: ClaimStatus) -> list[Transition]:
    """Rejection and fraud escalation are open to every non-terminal status."""
    return [
        Transition(
            from_status=from_status,
            to_status=ClaimStatus.REJECTED,
            event=TransitionEvent.REJECT,
            requires_reason=True,
        ),
        Transition(
            from_status=from_status,
            to_status=ClaimStatus.FRAUD_REVIEW,
            event=TransitionEvent.FLAG_FRAUD_REVIEW,
        ),
        Transition(
            from_status=from_status,
            to_status=ClaimStatus.FRAUD_CONFIRMED,
            event=TransitionEvent.CONFIRM_FRAUD,
        ),
    ]


VALID_TRANSITIONS: list[Transition] = [
    # From SUBMITTED
    Transition(
        from_status=ClaimStatus.SUBMITTED,
        to_status=ClaimStatus.UNDER_REVIEW,
        event=TransitionEvent.START_REVIEW,
    ),
    Transition(
        from_status=ClaimStatus.SUBMITTED,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.APPROVE,
    ),
    *_exits(ClaimStatus.SUBMITTED),

    # From UNDER_REVIEW
    Transition(
        from_status=ClaimStatus.UNDER_REVIEW,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.APPROVE,
    ),
    Transition(
        from_status=ClaimStatus.UNDER_REVIEW,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.ADMIN_APPROVE,
    ),
    *_exits(ClaimStatus.UNDER_REVIEW),

    # From FRAUD_REVIEW (cleared after investigation)
    Transition(
        from_status=ClaimStatus.FRAUD_REVIEW,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.APPROVE,
    ),
    Transition(
        from_status=ClaimStatus.FRAUD_REVIEW,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.ADMIN_APPROVE,
    ),
    *_exits(ClaimStatus.FRAUD_REVIEW),

    # From APPROVED
    Transition(
        from_status=ClaimStatus.APPROVED,
        to_status=ClaimStatus.APPROVED,
        event=TransitionEvent.ADMIN_APPROVE,
    ),
    Transition(
        from_status=ClaimStatus.APPROVED,
        to_status=ClaimStatus.PAID,
        event=TransitionEvent.AUTHORIZE_PAYMENT,
    ),
    *_exits(ClaimStatus.APPROVED),
]


def ledger_effect(from_status: ClaimStatus, to_status: ClaimStatus) -> LedgerEffect:
    """
    Ledger movement implied by a status change.

    Entering APPROVED reserves the claim amount, APPROVED -> PAID commits
    it, and leaving APPROVED any other way releases it.
    """
    if from_status == ClaimStatus.APPROVED:
        if to_status == ClaimStatus.PAID:
            return LedgerEffect.COMMIT
        if to_status != ClaimStatus.APPROVED:
            return LedgerEffect.RELEASE
        return LedgerEffect.NONE
    if to_status == ClaimStatus.APPROVED:
        return LedgerEffect.RESERVE
    return LedgerEffect.NONE


def _check_transition_table(transitions: list[Transition]) -> None:
    """Fail fast if the table is ambiguous or leaves a status stranded."""
    seen: set[tuple[ClaimStatus, TransitionEvent]] = set()
    for transition in transitions:
        key = (transition.from_status, transition.event)
        if key in seen:
            raise RuntimeError(f"Duplicate transition for {key}")
        seen.add(key)
        if transition.from_status in TERMINAL_STATUSES:
            raise RuntimeError(
                f"Terminal status {transition.from_status.value} has an outgoing transition"
            )

    sources = {t.from_status for t in transitions}
    reachable = {t.to_status for t in transitions} | {
        ClaimStatus.SUBMITTED,
        ClaimStatus.UNDER_REVIEW,
    }
    for status in ClaimStatus:
        if status not in TERMINAL_STATUSES and status not in sources:
            raise RuntimeError(f"Non-terminal status {status.value} has no transitions")
        if status not in reachable:
            raise RuntimeError(f"Status {status.value} is unreachable")

    unused = set(TransitionEvent) - {t.event for t in transitions}
    if unused:
        raise RuntimeError(f"Events without transitions: {sorted(e.value for e in unused)}")


_check_transition_table(VALID_TRANSITIONS)


# =============================================================================
# State Machine
# =============================================================================


class ClaimStateMachine:
    """
    State machine for claim status transitions.

    Manages valid status transitions and validates transition requests.
    """

    def __init__(self):
        """Initialize state machine with transition map."""
        self._transitions: dict[tuple[ClaimStatus, TransitionEvent], Transition] = {}
        self._from_status_map: dict[ClaimStatus, list[Transition]] = {}

        self._build_transition_maps()

    def _build_transition_maps(self) -> None:
        """Build lookup maps for transitions."""
        for transition in VALID_TRANSITIONS:
            key = (transition.from_status, transition.event)
            self._transitions[key] = transition

            if transition.from_status not in self._from_status_map:
                self._from_status_map[transition.from_status] = []
            self._from_status_map[transition.from_status].append(transition)

    def get_valid_transitions(self, status: ClaimStatus) -> list[Transition]:
        """Get all valid transitions from a given status."""
        return self._from_status_map.get(status, [])

    def get_valid_events(self, status: ClaimStatus) -> list[TransitionEvent]:
        """Get all valid events for a given status."""
        return [t.event for t in self.get_valid_transitions(status)]

    def get_next_statuses(self, status: ClaimStatus) -> list[ClaimStatus]:
        """Get all possible next statuses from current status."""
        return [t.to_status for t in self.get_valid_transitions(status)]

    def can_transition(
        self,
        from_status: ClaimStatus,
        to_status: ClaimStatus,
    ) -> bool:
        """Check if transition from one status to another is valid."""
        for transition in self.get_valid_transitions(from_status):
            if transition.to_status == to_status:
                return True
        return False

    def get_transition(
        self,
        from_status: ClaimStatus,
        event: TransitionEvent,
    ) -> Optional[Transition]:
        """Get transition for a status and event combination."""
        return self._transitions.get((from_status, event))

    def validate_transition(self, context: TransitionContext) -> TransitionResult:
        """
        Validate a transition attempt.

        Args:
            context: Transition context with all details

        Returns:
            TransitionResult indicating success/failure
        """
        transition = self.get_transition(context.current_status, context.event)

        if not transition:
            return TransitionResult(
                success=False,
                from_status=context.current_status,
                error=(
                    f"Invalid transition: {context.current_status.value} + "
                    f"{context.event.value}"
                ),
                error_guard="status",
            )

        # Verify target status matches
        if context.target_status != transition.to_status:
            return TransitionResult(
                success=False,
                from_status=context.current_status,
                error=(
                    f"Target status mismatch. Expected {transition.to_status.value}, "
                    f"got {context.target_status.value}"
                ),
                error_guard="status",
            )

        # Check reason requirement
        if transition.requires_reason and not (context.reason or "").strip():
            return TransitionResult(
                success=False,
                from_status=context.current_status,
                error="Reason is required for this transition",
                error_guard="reason",
            )

        return TransitionResult(
            success=True,
            from_status=context.current_status,
            to_status=transition.to_status,
            transition=transition,
        )

    def execute_transition(self, context: TransitionContext) -> TransitionResult:
        """
        Validate a transition and log its outcome.

        The caller applies the resulting status to the claim.
        """
        result = self.validate_transition(context)
        if not result.success:
            logger.warning(
                f"Transition failed for claim {context.claim_id}: {result.error}"
            )
            return result

        logger.info(
            f"Claim {context.claim_id} transitioned: "
            f"{context.current_status.value} -> {result.to_status.value} "
            f"(event: {context.event.value})"
        )

        return result


# =============================================================================
# Status Helpers
# =============================================================================


def is_terminal_status(status: ClaimStatus) -> bool:
    """Check if status is terminal (no further transitions)."""
    return status in TERMINAL_STATUSES


def is_fraud_status(status: ClaimStatus) -> bool:
    """Check if claim is held by the fraud process."""
    return status in (ClaimStatus.FRAUD_REVIEW, ClaimStatus.FRAUD_CONFIRMED)


def get_status_display_name(status: ClaimStatus) -> str:
    """Get human-readable status name."""
    display_names = {
        ClaimStatus.SUBMITTED: "Submitted",
        ClaimStatus.UNDER_REVIEW: "Under Review",
        ClaimStatus.APPROVED: "Approved",
        ClaimStatus.REJECTED: "Rejected",
        ClaimStatus.FRAUD_REVIEW: "Fraud Review",
        ClaimStatus.FRAUD_CONFIRMED: "Fraud Confirmed",
        ClaimStatus.PAID: "Paid",
    }
    return display_names.get(status, status.value)


# =============================================================================
# Singleton Instance
# =============================================================================


_state_machine: Optional[ClaimStateMachine] = None


def get_claim_state_machine() -> ClaimStateMachine:
    """Get singleton state machine instance."""
    global _state_machine
    if _state_machine is None:
        _state_machine = ClaimStateMachine()
    return _state_machine
