"""
Fraud Risk Assessor.

Applies a reviewer's risk assessment to a claim. A ``confirmed`` risk
moves the claim to ``fraud_confirmed``, which is terminal; every other
tier parks it in ``fraud_review``. Re-assessment of a claim still under
fraud review is allowed in either direction.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from claims_engine.core.enums import ClaimStatus, FraudRiskLevel
from claims_engine.core.exceptions import PreconditionError, ValidationError
from claims_engine.schemas import ClaimRecord

logger = logging.getLogger(__name__)

# Tiers a reviewer may assign; NONE is only the initial value
ASSESSABLE_RISK_LEVELS = (
    FraudRiskLevel.LOW,
    FraudRiskLevel.MEDIUM,
    FraudRiskLevel.HIGH,
    FraudRiskLevel.CONFIRMED,
)


class FraudRiskAssessor:
    """Validates and applies fraud risk assessments."""

    def parse_risk_level(self, raw: Union[str, FraudRiskLevel, None]) -> FraudRiskLevel:
        """
        Coerce a reviewer-supplied risk tier.

        Raises:
            ValidationError: for ``none``, unknown values, or a missing tier
        """
        try:
            level = FraudRiskLevel(raw.lower() if isinstance(raw, str) else raw)
        except ValueError:
            level = None

        if level not in ASSESSABLE_RISK_LEVELS:
            allowed = ", ".join(lvl.value for lvl in ASSESSABLE_RISK_LEVELS)
            raise ValidationError(
                f"Invalid fraud risk level '{raw}'; expected one of: {allowed}",
                guard="risk_level",
            )
        return level

    @staticmethod
    def target_status(risk_level: FraudRiskLevel) -> ClaimStatus:
        """Status a claim moves to for the given tier."""
        if risk_level == FraudRiskLevel.CONFIRMED:
            return ClaimStatus.FRAUD_CONFIRMED
        return ClaimStatus.FRAUD_REVIEW

    def assess(
        self,
        claim: ClaimRecord,
        risk_level: FraudRiskLevel,
        risk_factors: Optional[str],
        reviewer_id: Optional[str],
        reviewed_at: datetime,
    ) -> ClaimRecord:
        """
        Return a copy of the claim carrying the assessment.

        Raises:
            PreconditionError: if the claim is already terminal
        """
        if claim.is_terminal:
            logger.warning(
                f"Fraud flag refused for claim {claim.id}: status {claim.status.value}"
            )
            raise PreconditionError(
                f"Claim in status '{claim.status.value}' cannot be flagged",
                guard="status",
                claim_id=claim.id,
            )

        logger.info(
            f"Claim {claim.id} fraud risk {claim.fraud_risk_level.value} -> {risk_level.value}"
        )
        return claim.model_copy(
            update={
                "status": self.target_status(risk_level),
                "fraud_risk_level": risk_level,
                "fraud_risk_factors": risk_factors,
                "fraud_review_date": reviewed_at,
                "fraud_reviewer_id": reviewer_id,
            }
        )
