"""
Claims Adjudication API Endpoints.

Provides:
- Claim intake
- Reviewer, admin and fraud transitions
- Payment authorization and settlement
- Claim queries and audit trail
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from claims_engine.api.deps import get_actor_id, get_adjudication_engine
from claims_engine.core.enums import ClaimStatus, FraudRiskLevel
from claims_engine.core.exceptions import AdjudicationError
from claims_engine.gateways.base import GatewayError
from claims_engine.schemas import AuditTrailEntry, ClaimFilter, ClaimRecord, ClaimSubmission
from claims_engine.services.adjudication_engine import ClaimsAdjudicationEngine
from claims_engine.services.claim_state_machine import get_status_display_name
from claims_engine.utils.errors import PaymentGatewayError, to_http_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/claims",
    tags=["claims"],
)


# =============================================================================
# Request/Response Schemas
# =============================================================================


class StatusUpdateRequest(BaseModel):
    """Reviewer decision."""

    status: str = Field(..., description="under_review, approved or rejected")
    notes: Optional[str] = Field(None, max_length=2000)


class AdminApprovalRequest(BaseModel):
    """Dual-control approval of an unverified-provider claim."""

    admin_notes: str = Field(..., description="Required justification")


class RejectRequest(BaseModel):
    """Claim rejection."""

    reason: str


class ReversalRequest(BaseModel):
    """Administrative usage reversal."""

    reason: str = Field(..., description="Why the payment was voided")


class FraudFlagRequest(BaseModel):
    """Fraud risk assessment."""

    risk_level: str = Field(..., description="low, medium, high or confirmed")
    risk_factors: Optional[str] = None


class PaymentRequest(BaseModel):
    """Payment authorization with a reference from the payment network."""

    payment_reference: str = Field(..., max_length=100)


class ClaimResponse(ClaimRecord):
    """Claim with presentation fields."""

    status_display: str = ""

    @classmethod
    def from_record(cls, claim: ClaimRecord) -> "ClaimResponse":
        return cls(
            **claim.model_dump(),
            status_display=get_status_display_name(claim.status),
        )


class ClaimListResponse(BaseModel):
    """Filtered claim list."""

    items: list[ClaimResponse]
    total: int


# =============================================================================
# Intake
# =============================================================================


@router.post(
    "/",
    response_model=ClaimResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_claim(
    submission: ClaimSubmission,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """
    Submit a new claim.

    The provider is verified synchronously; claims from unverified
    providers start in ``under_review`` and need admin approval.
    """
    try:
        claim = await engine.submit_claim(submission, actor_id=actor_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


# =============================================================================
# Queries
# =============================================================================


@router.get("/", response_model=ClaimListResponse)
async def list_claims(
    claim_status: Optional[ClaimStatus] = Query(None, alias="status"),
    member_id: Optional[UUID] = None,
    institution_id: Optional[UUID] = None,
    personnel_id: Optional[UUID] = None,
    fraud_risk_level: Optional[FraudRiskLevel] = None,
    requires_higher_approval: Optional[bool] = None,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
) -> ClaimListResponse:
    """List claims with optional filters."""
    claim_filter = ClaimFilter(
        status=claim_status,
        member_id=member_id,
        institution_id=institution_id,
        personnel_id=personnel_id,
        fraud_risk_level=fraud_risk_level,
        requires_higher_approval=requires_higher_approval,
    )
    claims = await engine.list_claims(claim_filter)
    return ClaimListResponse(
        items=[ClaimResponse.from_record(c) for c in claims],
        total=len(claims),
    )


@router.get("/{claim_id}", response_model=ClaimResponse)
async def get_claim(
    claim_id: UUID,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
) -> ClaimResponse:
    """Get a claim by ID."""
    try:
        claim = await engine.get_claim(claim_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


@router.get("/{claim_id}/audit-trail", response_model=list[AuditTrailEntry])
async def get_audit_trail(
    claim_id: UUID,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
) -> list[AuditTrailEntry]:
    """Audit entries for a claim, oldest first."""
    try:
        return await engine.get_audit_trail(claim_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e


# =============================================================================
# Transitions
# =============================================================================


@router.patch("/{claim_id}/status", response_model=ClaimResponse)
async def update_claim_status(
    claim_id: UUID,
    request: StatusUpdateRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """
    Reviewer status change.

    Approval reserves the claim amount against the member's benefit.
    """
    try:
        claim = await engine.update_claim_status(
            claim_id, request.status, actor_id=actor_id, notes=request.notes
        )
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


@router.patch("/{claim_id}/admin-approve", response_model=ClaimResponse)
async def admin_approve_claim(
    claim_id: UUID,
    request: AdminApprovalRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Admin approval for claims that require higher approval."""
    try:
        claim = await engine.admin_approve_claim(claim_id, actor_id, request.admin_notes)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


@router.patch("/{claim_id}/reject", response_model=ClaimResponse)
async def reject_claim(
    claim_id: UUID,
    request: RejectRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Reject a claim."""
    try:
        claim = await engine.reject_claim(claim_id, request.reason, actor_id=actor_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


@router.patch("/{claim_id}/fraud", response_model=ClaimResponse)
async def flag_fraud(
    claim_id: UUID,
    request: FraudFlagRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Record a fraud risk assessment."""
    try:
        claim = await engine.flag_fraud(
            claim_id, request.risk_level, request.risk_factors, reviewer_id=actor_id
        )
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


# =============================================================================
# Payment
# =============================================================================


@router.patch("/{claim_id}/payment", response_model=ClaimResponse)
async def authorize_payment(
    claim_id: UUID,
    request: PaymentRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Mark an approved claim as paid under an existing payment reference."""
    try:
        claim = await engine.authorize_payment(
            claim_id, request.payment_reference, actor_id=actor_id
        )
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)


@router.post("/{claim_id}/settle", response_model=ClaimResponse)
async def settle_claim(
    claim_id: UUID,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Disburse through the payment gateway and mark the claim paid."""
    try:
        claim = await engine.settle_claim(claim_id, actor_id=actor_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    except GatewayError as e:
        logger.error(f"Settlement of claim {claim_id} failed: {e}")
        raise PaymentGatewayError(detail={"error": str(e), "guard": "payment_gateway"}) from e
    return ClaimResponse.from_record(claim)


@router.post("/{claim_id}/reverse-usage", response_model=ClaimResponse)
async def reverse_usage(
    claim_id: UUID,
    request: ReversalRequest,
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ClaimResponse:
    """Return a paid claim's amount to the member's benefit after a voided payment."""
    try:
        claim = await engine.reverse_usage(claim_id, request.reason, actor_id=actor_id)
    except AdjudicationError as e:
        raise to_http_error(e) from e
    return ClaimResponse.from_record(claim)
