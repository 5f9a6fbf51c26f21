"""
Claims Adjudication Engine.

Provides:
- Claim intake with synchronous provider verification
- Reviewer, admin and fraud transitions
- Benefit ledger reservation at adjudication time
- Payment authorization and settlement through the payment gateway
- Audit trail for every state change

Every state-changing operation runs in one store transaction: the claim
row is locked first, then (if the transition moves money) the member's
utilization row; the claim update, ledger movement and audit entries
commit together or not at all. Terminal-status notifications are sent
after commit and never undo a transition.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID, uuid4

from claims_engine.core.config import AdjudicationSettings, get_adjudication_settings
from claims_engine.core.enums import AuditEventType, ClaimStatus, FraudRiskLevel
from claims_engine.core.exceptions import (
    LimitExceededError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from claims_engine.gateways import (
    BenefitsDirectory,
    ClaimNotifier,
    DemoPaymentGateway,
    GatewayConfig,
    LoggingNotifier,
    PaymentGateway,
    ProviderDirectory,
    ProviderUnavailableError,
    with_retry,
)
from claims_engine.schemas import (
    AuditTrailEntry,
    BenefitUtilizationRecord,
    ClaimFilter,
    ClaimRecord,
    ClaimSubmission,
)
from claims_engine.services.audit_trail import AuditTrailRecorder
from claims_engine.services.benefit_ledger import BenefitUtilizationLedger
from claims_engine.services.claim_intake import ClaimIntakeValidator
from claims_engine.services.claim_state_machine import (
    LedgerEffect,
    TransitionContext,
    TransitionEvent,
    get_claim_state_machine,
)
from claims_engine.services.fraud_assessor import FraudRiskAssessor
from claims_engine.services.payment_gate import PaymentAuthorizationGate
from claims_engine.services.provider_verification import ProviderVerificationGate
from claims_engine.services.storage import ClaimStore, StoreTransaction, create_claim_store

logger = logging.getLogger(__name__)

# Statuses reachable through update_claim_status
_REVIEW_EVENTS = {
    ClaimStatus.UNDER_REVIEW: TransitionEvent.START_REVIEW,
    ClaimStatus.APPROVED: TransitionEvent.APPROVE,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_tracking_number(claim_id: UUID, claim_date: datetime) -> str:
    """Human-readable tracking number, e.g. CLM-2025-1A2B3C4D."""
    return f"CLM-{claim_date.year}-{claim_id.hex[:8].upper()}"


class ClaimsAdjudicationEngine:
    """Authoritative owner of claim status and benefit utilization."""

    def __init__(
        self,
        store: ClaimStore,
        provider_directory: ProviderDirectory,
        benefits_directory: BenefitsDirectory,
        payment_gateway: Optional[PaymentGateway] = None,
        notifier: Optional[ClaimNotifier] = None,
        settings: Optional[AdjudicationSettings] = None,
    ):
        self.settings = settings or get_adjudication_settings()
        self.store = store
        self.intake = ClaimIntakeValidator(provider_directory, self.settings)
        self.verification = ProviderVerificationGate(provider_directory)
        self.fraud_assessor = FraudRiskAssessor()
        self.ledger = BenefitUtilizationLedger(store, benefits_directory)
        self.state_machine = get_claim_state_machine()
        self.payment_gate = PaymentAuthorizationGate(self.verification, self.settings)
        self.audit = AuditTrailRecorder(store)
        self.payment_gateway = payment_gateway or DemoPaymentGateway(self.settings.CURRENCY)
        self.notifier = notifier or LoggingNotifier()
        self.payment_retry = GatewayConfig(
            retry_attempts=self.settings.PAYMENT_RETRY_ATTEMPTS,
            retry_delay_seconds=self.settings.PAYMENT_RETRY_DELAY_SECONDS,
            retry_backoff=self.settings.PAYMENT_RETRY_BACKOFF,
        )

    # =========================================================================
    # Intake
    # =========================================================================

    async def submit_claim(
        self,
        submission: ClaimSubmission,
        actor_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Validate and create a claim.

        The provider trust snapshot decides the initial status: verified
        claims start ``submitted``, others ``under_review`` and require
        admin approval before payment.

        Raises:
            ValidationError: malformed diagnosis coding or procedure items
            NotFoundError: unknown institution or personnel
        """
        validated = await self.intake.validate(submission)
        verification = await self.verification.verify_provider(
            submission.institution_id, submission.personnel_id
        )

        now = _utcnow()
        claim_id = uuid4()
        initial_status = (
            ClaimStatus.SUBMITTED if verification.verified else ClaimStatus.UNDER_REVIEW
        )
        claim = ClaimRecord(
            id=claim_id,
            tracking_number=generate_tracking_number(claim_id, now),
            member_id=submission.member_id,
            benefit_id=submission.benefit_id,
            institution_id=submission.institution_id,
            personnel_id=submission.personnel_id,
            diagnosis_code=validated.diagnosis_code,
            diagnosis_code_system=validated.diagnosis_code_system,
            diagnosis=submission.diagnosis,
            description=submission.description,
            treatment_details=submission.treatment_details,
            service_date=validated.service_date,
            procedure_items=validated.procedure_items,
            amount=validated.amount,
            status=initial_status,
            claim_date=now,
            provider_verified=verification.verified,
            requires_higher_approval=not verification.verified,
        )

        async with self.store.transaction() as txn:
            saved = await txn.add_claim(claim)
            await self.audit.record(
                txn,
                claim_id,
                AuditEventType.CLAIM_SUBMITTED,
                actor_id=actor_id,
                new_status=initial_status,
                details={
                    "tracking_number": saved.tracking_number,
                    "amount": str(saved.amount),
                    "procedure_items": len(saved.procedure_items),
                },
                timestamp=now,
            )
            await self.audit.record(
                txn,
                claim_id,
                AuditEventType.PROVIDER_VERIFICATION,
                actor_id=actor_id,
                notes="; ".join(verification.reasons) or None,
                details=verification.as_details(),
                timestamp=now,
            )

        logger.info(
            f"Claim {saved.tracking_number} submitted: status={initial_status.value}, "
            f"amount={saved.amount}, provider_verified={saved.provider_verified}"
        )
        return saved

    # =========================================================================
    # Reviewer / Admin Transitions
    # =========================================================================

    async def update_claim_status(
        self,
        claim_id: UUID,
        new_status: Union[ClaimStatus, str],
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Reviewer decision: start review, approve or reject.

        Approval reserves the claim amount against the member's benefit
        limit as of now.

        Raises:
            ValidationError: unknown status, or rejection without a reason
            PreconditionError: illegal transition, waiting period
            LimitExceededError: amount exceeds the available benefit
        """
        target = self._parse_status(new_status)
        if target == ClaimStatus.REJECTED:
            return await self.reject_claim(claim_id, notes, actor_id)
        if target not in _REVIEW_EVENTS:
            raise PreconditionError(
                f"Status '{target.value}' cannot be set directly; use the "
                "fraud or payment operations",
                guard="status",
                claim_id=claim_id,
            )

        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            now = _utcnow()
            updated = claim.model_copy(
                update={
                    "status": target,
                    "review_date": now,
                    "reviewer_notes": notes if notes is not None else claim.reviewer_notes,
                }
            )
            saved = await self._apply_transition(
                txn,
                claim,
                updated,
                _REVIEW_EVENTS[target],
                actor_id=actor_id,
                notes=notes,
                timestamp=now,
            )
        return saved

    async def admin_approve_claim(
        self,
        claim_id: UUID,
        admin_id: Optional[str],
        admin_notes: Optional[str],
    ) -> ClaimRecord:
        """
        Dual-control approval for claims from unverified providers.

        Raises:
            ValidationError: missing admin notes
            PreconditionError: claim does not require higher approval, is
                already admin-approved, or is not in an approvable status
            LimitExceededError: amount exceeds the available benefit
        """
        if not (admin_notes or "").strip():
            raise ValidationError(
                "Admin review notes are required", guard="admin_notes", claim_id=claim_id
            )

        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            if not claim.requires_higher_approval:
                logger.warning(f"Admin approval refused for verified claim {claim_id}")
                raise PreconditionError(
                    "Claim from a verified provider does not require admin approval",
                    guard="requires_higher_approval",
                    claim_id=claim_id,
                )
            if claim.approved_by_admin:
                raise PreconditionError(
                    "Claim is already admin-approved",
                    guard="already_admin_approved",
                    claim_id=claim_id,
                )

            now = _utcnow()
            updated = claim.model_copy(
                update={
                    "status": ClaimStatus.APPROVED,
                    "approved_by_admin": True,
                    "admin_approval_date": now,
                    "admin_review_notes": admin_notes,
                    "review_date": now,
                }
            )
            saved = await self._apply_transition(
                txn,
                claim,
                updated,
                TransitionEvent.ADMIN_APPROVE,
                actor_id=admin_id,
                audit_event=AuditEventType.ADMIN_APPROVED,
                notes=admin_notes,
                timestamp=now,
            )
        return saved

    async def reject_claim(
        self,
        claim_id: UUID,
        reason: Optional[str],
        actor_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Reject a non-terminal claim, releasing any reservation it holds.

        Raises:
            ValidationError: missing reason
            PreconditionError: claim is terminal
        """
        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            now = _utcnow()
            updated = claim.model_copy(
                update={
                    "status": ClaimStatus.REJECTED,
                    "review_date": now,
                    "reviewer_notes": reason,
                }
            )
            saved = await self._apply_transition(
                txn,
                claim,
                updated,
                TransitionEvent.REJECT,
                actor_id=actor_id,
                reason=reason,
                audit_event=AuditEventType.CLAIM_REJECTED,
                notes=reason,
                timestamp=now,
            )

        await self._notify_terminal(saved)
        return saved

    # =========================================================================
    # Fraud
    # =========================================================================

    async def flag_fraud(
        self,
        claim_id: UUID,
        risk_level: Union[FraudRiskLevel, str],
        risk_factors: Optional[str] = None,
        reviewer_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Record a fraud assessment.

        ``confirmed`` is final: the claim moves to ``fraud_confirmed`` and
        no operation moves it out again.

        Raises:
            ValidationError: invalid risk level
            PreconditionError: claim is terminal
        """
        level = self.fraud_assessor.parse_risk_level(risk_level)

        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            now = _utcnow()
            updated = self.fraud_assessor.assess(claim, level, risk_factors, reviewer_id, now)
            event = (
                TransitionEvent.CONFIRM_FRAUD
                if level == FraudRiskLevel.CONFIRMED
                else TransitionEvent.FLAG_FRAUD_REVIEW
            )
            saved = await self._apply_transition(
                txn,
                claim,
                updated,
                event,
                actor_id=reviewer_id,
                audit_event=AuditEventType.FRAUD_FLAGGED,
                notes=risk_factors,
                details={
                    "previous_risk_level": claim.fraud_risk_level.value,
                    "risk_level": level.value,
                },
                timestamp=now,
            )

        await self._notify_terminal(saved)
        return saved

    # =========================================================================
    # Payment
    # =========================================================================

    async def authorize_payment(
        self,
        claim_id: UUID,
        payment_reference: str,
        actor_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Move an approved claim to ``paid`` and commit its ledger usage.

        Calling again with the same reference returns the paid claim
        unchanged.

        Raises:
            ValidationError: missing payment reference
            PreconditionError: status, admin approval, re-verification, or
                already paid under another reference
            FraudBlockError: fraud status or high / confirmed risk
        """
        if not (payment_reference or "").strip():
            raise ValidationError(
                "Payment reference is required", guard="payment_reference", claim_id=claim_id
            )

        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            if self.payment_gate.is_settled(claim, payment_reference):
                logger.info(f"Claim {claim_id} already paid under {payment_reference}")
                return claim

            await self.payment_gate.check(claim)

            now = _utcnow()
            updated = claim.model_copy(
                update={
                    "status": ClaimStatus.PAID,
                    "payment_date": now,
                    "payment_reference": payment_reference,
                }
            )
            saved = await self._apply_transition(
                txn,
                claim,
                updated,
                TransitionEvent.AUTHORIZE_PAYMENT,
                actor_id=actor_id,
                audit_event=AuditEventType.PAYMENT_AUTHORIZED,
                details={
                    "payment_reference": payment_reference,
                    "amount": str(claim.amount),
                    "currency": self.settings.CURRENCY,
                },
                timestamp=now,
            )

        await self._notify_terminal(saved)
        return saved

    async def settle_claim(self, claim_id: UUID, actor_id: Optional[str] = None) -> ClaimRecord:
        """
        Disburse through the payment gateway, then authorize payment.

        The gate is checked before any money moves. Transient gateway
        failures are retried with exponential backoff; anything else
        propagates as a GatewayError.
        """
        claim = await self.get_claim(claim_id)
        if claim.status == ClaimStatus.PAID:
            return claim

        await self.payment_gate.check(claim)

        disburse = with_retry(
            max_attempts=self.payment_retry.retry_attempts,
            delay=self.payment_retry.retry_delay_seconds,
            backoff_factor=self.payment_retry.retry_backoff,
            exceptions=(ProviderUnavailableError,),
        )(self.payment_gateway.disburse)
        reference = await disburse(claim.id, claim.amount, claim.institution_id)
        logger.info(f"Claim {claim_id} disbursed via {self.payment_gateway.gateway_name}: {reference}")

        try:
            return await self.authorize_payment(claim_id, reference, actor_id)
        except Exception:
            logger.error(
                f"Claim {claim_id} was disbursed ({reference}) but could not be marked paid"
            )
            raise

    async def reverse_usage(
        self,
        claim_id: UUID,
        reason: Optional[str],
        actor_id: Optional[str] = None,
    ) -> ClaimRecord:
        """
        Administrative reversal of a paid claim's benefit usage, e.g. after
        the payment was voided. The claim stays ``paid``; its amount is
        returned to the member's remaining limit once.

        Raises:
            ValidationError: missing reason
            PreconditionError: claim not paid, or already reversed
        """
        if not (reason or "").strip():
            raise ValidationError("Reversal reason is required", guard="reason", claim_id=claim_id)

        async with self.store.transaction() as txn:
            claim = await self._lock_claim(txn, claim_id)
            if claim.status != ClaimStatus.PAID:
                raise PreconditionError(
                    f"Only paid claims can be reversed (status '{claim.status.value}')",
                    guard="status",
                    claim_id=claim_id,
                )
            trail = await self.audit.get_audit_trail(claim_id)
            if any(e.event_type == AuditEventType.LEDGER_REVERSED for e in trail):
                raise PreconditionError(
                    "Claim usage was already reversed", guard="reversal", claim_id=claim_id
                )

            record = await self.ledger.reverse_usage(
                claim.member_id, claim.benefit_id, claim.amount, txn=txn, claim_id=claim.id
            )
            # Version bump serializes reversal against other writers
            saved = await txn.update_claim(claim)
            await self.audit.record(
                txn,
                claim_id,
                AuditEventType.LEDGER_REVERSED,
                actor_id=actor_id,
                notes=reason,
                details={
                    "benefit_id": str(claim.benefit_id),
                    "amount": str(claim.amount),
                    "used": str(record.used_amount),
                },
            )

        logger.warning(f"Usage of paid claim {claim_id} reversed: {reason}")
        return saved

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_claim(self, claim_id: UUID) -> ClaimRecord:
        claim = await self.store.get_claim(claim_id)
        if claim is None:
            raise NotFoundError(f"Claim {claim_id} not found", claim_id=claim_id)
        return claim

    async def list_claims(self, claim_filter: Optional[ClaimFilter] = None) -> list[ClaimRecord]:
        return await self.store.list_claims(claim_filter)

    async def get_audit_trail(self, claim_id: UUID) -> list[AuditTrailEntry]:
        await self.get_claim(claim_id)
        return await self.audit.get_audit_trail(claim_id)

    async def get_benefit_utilization(self, member_id: UUID) -> list[BenefitUtilizationRecord]:
        return await self.ledger.get_benefit_utilization(member_id)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _parse_status(raw: Union[ClaimStatus, str]) -> ClaimStatus:
        try:
            return ClaimStatus(raw)
        except ValueError:
            raise ValidationError(f"Unknown claim status '{raw}'", guard="status") from None

    async def _lock_claim(self, txn: StoreTransaction, claim_id: UUID) -> ClaimRecord:
        claim = await txn.get_claim(claim_id, for_update=True)
        if claim is None:
            raise NotFoundError(f"Claim {claim_id} not found", claim_id=claim_id)
        return claim

    async def _apply_transition(
        self,
        txn: StoreTransaction,
        claim: ClaimRecord,
        updated: ClaimRecord,
        event: TransitionEvent,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        audit_event: AuditEventType = AuditEventType.STATUS_CHANGED,
        notes: Optional[str] = None,
        details: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> ClaimRecord:
        """Validate, move the ledger, persist the claim and audit it."""
        context = TransitionContext(
            claim_id=claim.id,
            current_status=claim.status,
            target_status=updated.status,
            event=event,
            triggered_by=actor_id,
            reason=reason,
        )
        result = self.state_machine.execute_transition(context)
        if not result.success:
            if result.error_guard == "reason":
                raise ValidationError(result.error, guard="reason", claim_id=claim.id)
            raise PreconditionError(result.error, guard="status", claim_id=claim.id)

        await self._apply_ledger_effect(
            txn, claim, result.transition.ledger_effect, actor_id, timestamp
        )
        saved = await txn.update_claim(updated)
        await self.audit.record(
            txn,
            claim.id,
            audit_event,
            actor_id=actor_id,
            previous_status=claim.status,
            new_status=saved.status,
            notes=notes,
            details=details,
            timestamp=timestamp,
        )
        return saved

    async def _apply_ledger_effect(
        self,
        txn: StoreTransaction,
        claim: ClaimRecord,
        effect: LedgerEffect,
        actor_id: Optional[str],
        timestamp: Optional[datetime],
    ) -> None:
        if effect == LedgerEffect.NONE:
            return

        details: dict = {"benefit_id": str(claim.benefit_id), "amount": str(claim.amount)}
        if effect == LedgerEffect.RESERVE:
            reservation = await self.ledger.check_and_reserve(
                claim.member_id, claim.benefit_id, claim.amount, txn=txn, claim_id=claim.id
            )
            if not reservation.approved:
                raise LimitExceededError(
                    f"Claim amount {claim.amount} exceeds the remaining benefit "
                    f"limit {reservation.remaining}",
                    remaining=reservation.remaining,
                    claim_id=claim.id,
                )
            details["remaining"] = (
                str(reservation.remaining) if reservation.remaining is not None else None
            )
            event_type = AuditEventType.LEDGER_RESERVED
        elif effect == LedgerEffect.COMMIT:
            record = await self.ledger.commit_usage(
                claim.member_id, claim.benefit_id, claim.amount, txn=txn, claim_id=claim.id
            )
            details["used"] = str(record.used_amount)
            event_type = AuditEventType.LEDGER_COMMITTED
        else:
            await self.ledger.release_reservation(
                claim.member_id, claim.benefit_id, claim.amount, txn=txn, claim_id=claim.id
            )
            event_type = AuditEventType.LEDGER_RELEASED

        await self.audit.record(
            txn, claim.id, event_type, actor_id=actor_id, details=details, timestamp=timestamp
        )

    async def _notify_terminal(self, claim: ClaimRecord) -> None:
        if not claim.is_terminal:
            return
        try:
            await self.notifier.notify_terminal(claim)
        except Exception as e:
            logger.error(f"Terminal notification failed for claim {claim.id}: {e}")


# =============================================================================
# Factory
# =============================================================================


def create_adjudication_engine(
    provider_directory: ProviderDirectory,
    benefits_directory: BenefitsDirectory,
    store: Optional[ClaimStore] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    notifier: Optional[ClaimNotifier] = None,
    settings: Optional[AdjudicationSettings] = None,
) -> ClaimsAdjudicationEngine:
    """
    Build an engine with the configured claim store.

    Args:
        provider_directory: Provider approval facts
        benefits_directory: Benefit limits
        store: Claim store; built from CLAIMS_STORAGE_BACKEND when omitted
        payment_gateway: Disbursement gateway (demo gateway by default)
        notifier: Terminal-status notifier (logging notifier by default)
        settings: Adjudication settings

    Returns:
        ClaimsAdjudicationEngine
    """
    settings = settings or get_adjudication_settings()
    return ClaimsAdjudicationEngine(
        store=store or create_claim_store(settings),
        provider_directory=provider_directory,
        benefits_directory=benefits_directory,
        payment_gateway=payment_gateway,
        notifier=notifier,
        settings=settings,
    )
