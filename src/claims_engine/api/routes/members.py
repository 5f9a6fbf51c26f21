"""
Member Benefit Utilization Endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from claims_engine.api.deps import get_adjudication_engine
from claims_engine.schemas import BenefitUtilizationRecord
from claims_engine.services.adjudication_engine import ClaimsAdjudicationEngine

router = APIRouter(
    prefix="/api/v1/members",
    tags=["members"],
)


@router.get(
    "/{member_id}/benefit-utilization",
    response_model=list[BenefitUtilizationRecord],
)
async def get_benefit_utilization(
    member_id: UUID,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
) -> list[BenefitUtilizationRecord]:
    """Per-benefit usage, reservations and remaining limit for a member."""
    return await engine.get_benefit_utilization(member_id)
