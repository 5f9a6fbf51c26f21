"""
Payment Authorization Gate.

Final check before a claim may move to ``paid``. Conditions are evaluated
in a fixed order and the first failure is reported with its guard:

1. status is approved                      (guard: status)
2. unverified provider => admin approved   (guard: admin_approval)
3. fraud risk is not high / confirmed      (guard: fraud_risk)
4. provider still verified, when re-verification at payment is enabled
   and the claim has no admin approval     (guard: provider_reverification)
"""

import logging
from typing import Optional

from claims_engine.core.config import AdjudicationSettings, get_adjudication_settings
from claims_engine.core.enums import PAYMENT_BLOCKING_RISK_LEVELS, ClaimStatus
from claims_engine.core.exceptions import FraudBlockError, PreconditionError
from claims_engine.schemas import ClaimRecord
from claims_engine.services.claim_state_machine import is_fraud_status
from claims_engine.services.provider_verification import ProviderVerificationGate

logger = logging.getLogger(__name__)


class PaymentAuthorizationGate:
    """Multi-condition disbursement check."""

    def __init__(
        self,
        verification_gate: ProviderVerificationGate,
        settings: Optional[AdjudicationSettings] = None,
    ):
        self._verification = verification_gate
        self._settings = settings or get_adjudication_settings()

    def is_settled(self, claim: ClaimRecord, payment_reference: str) -> bool:
        """
        Detect a repeated authorization.

        Returns True when the claim is already paid under the same
        reference.

        Raises:
            PreconditionError: if it was paid under a different reference
        """
        if claim.status != ClaimStatus.PAID:
            return False
        if claim.payment_reference == payment_reference:
            return True
        raise PreconditionError(
            f"Claim already paid under reference {claim.payment_reference}",
            guard="already_paid",
            claim_id=claim.id,
        )

    async def check(self, claim: ClaimRecord) -> None:
        """
        Raise on the first failing payment condition.

        Raises:
            PreconditionError: status, admin approval or re-verification failed
            FraudBlockError: fraud status or blocking risk tier
        """
        if claim.status != ClaimStatus.APPROVED:
            message = f"Claim status is '{claim.status.value}'; payment requires 'approved'"
            self._log_refusal(claim, "status")
            if is_fraud_status(claim.status):
                raise FraudBlockError(message, guard="status", claim_id=claim.id)
            raise PreconditionError(message, guard="status", claim_id=claim.id)

        if claim.requires_higher_approval and not claim.approved_by_admin:
            self._log_refusal(claim, "admin_approval")
            raise PreconditionError(
                "Claim from an unverified provider requires admin approval before payment",
                guard="admin_approval",
                claim_id=claim.id,
            )

        if claim.fraud_risk_level in PAYMENT_BLOCKING_RISK_LEVELS:
            self._log_refusal(claim, "fraud_risk")
            raise FraudBlockError(
                f"Payment blocked: fraud risk level is '{claim.fraud_risk_level.value}'",
                guard="fraud_risk",
                claim_id=claim.id,
            )

        if self._settings.reverify_at_payment and not claim.approved_by_admin:
            result = await self._verification.verify_provider(
                claim.institution_id, claim.personnel_id
            )
            if not result.verified:
                self._log_refusal(claim, "provider_reverification")
                raise PreconditionError(
                    "Provider is no longer verified: " + "; ".join(result.reasons),
                    guard="provider_reverification",
                    claim_id=claim.id,
                )

    @staticmethod
    def _log_refusal(claim: ClaimRecord, guard: str) -> None:
        logger.warning(f"Payment refused for claim {claim.id}: guard={guard}")
