"""
Provider Verification Gate.

A claim's provider is verified when the submitting institution is
approved and, if an attending person is named, that person is approved
too. The result is a point-in-time snapshot stored on the claim.
"""

import logging
from typing import Optional
from uuid import UUID

from claims_engine.core.enums import ApprovalStatus
from claims_engine.gateways.provider_directory import ProviderDirectory
from claims_engine.schemas import ProviderVerificationResult

logger = logging.getLogger(__name__)


class ProviderVerificationGate:
    """Evaluates provider trust from the provider directory."""

    def __init__(self, provider_directory: ProviderDirectory):
        self._providers = provider_directory

    async def verify_provider(
        self,
        institution_id: UUID,
        personnel_id: Optional[UUID] = None,
    ) -> ProviderVerificationResult:
        """
        Check institution and personnel approval.

        Unknown providers are treated as unverified; intake rejects them
        before this gate is reached.
        """
        reasons: list[str] = []

        institution_status = await self._providers.get_institution_approval_status(
            institution_id
        )
        if institution_status != ApprovalStatus.APPROVED:
            reasons.append(f"institution status is {_describe(institution_status)}")

        personnel_status = None
        if personnel_id is not None:
            personnel_status = await self._providers.get_personnel_approval_status(
                personnel_id
            )
            if personnel_status != ApprovalStatus.APPROVED:
                reasons.append(f"personnel status is {_describe(personnel_status)}")

        result = ProviderVerificationResult(
            institution_id=institution_id,
            institution_status=institution_status,
            personnel_id=personnel_id,
            personnel_status=personnel_status,
            verified=not reasons,
            reasons=reasons,
        )

        if result.verified:
            logger.debug(f"Provider verified: institution={institution_id}")
        else:
            logger.info(
                f"Provider not verified: institution={institution_id}, "
                f"personnel={personnel_id}: {'; '.join(reasons)}"
            )
        return result


def _describe(status: Optional[ApprovalStatus]) -> str:
    return status.value if status is not None else "unknown"
