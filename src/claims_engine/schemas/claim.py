"""
Pydantic Schemas for Claims.

ClaimRecord is the storage-independent view of a claim row: both the
in-memory store and the SQLAlchemy store hand these to the engine, and the
engine never sees an ORM object.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from claims_engine.core.enums import (
    TERMINAL_STATUSES,
    ClaimStatus,
    DiagnosisCodeSystem,
    FraudRiskLevel,
)


# =============================================================================
# Intake Schemas
# =============================================================================


class ProcedureItemInput(BaseModel):
    """Procedure line item as submitted by a provider."""

    procedure_code: Optional[str] = None
    quantity: int = 1
    unit_amount: Optional[Decimal] = None
    notes: Optional[str] = None


class ClaimSubmission(BaseModel):
    """
    Raw claim submission.

    Fields are deliberately loose here; the intake validator owns the
    structural rules and reports them as adjudication ValidationErrors.
    """

    member_id: UUID
    benefit_id: UUID
    institution_id: UUID
    personnel_id: Optional[UUID] = None
    diagnosis_code: Optional[str] = None
    diagnosis_code_system: Optional[str] = None
    diagnosis: Optional[str] = None
    description: Optional[str] = None
    treatment_details: Optional[str] = None
    service_date: Optional[date] = None
    procedure_items: list[ProcedureItemInput] = Field(default_factory=list)


# =============================================================================
# Claim Record Schemas
# =============================================================================


class ProcedureItem(BaseModel):
    """Validated procedure line item."""

    model_config = ConfigDict(from_attributes=True)

    line_number: int
    procedure_code: str
    quantity: int = Field(..., ge=1)
    unit_amount: Decimal = Field(..., gt=0)
    total_amount: Decimal
    notes: Optional[str] = None


class ClaimRecord(BaseModel):
    """Authoritative claim state."""

    model_config = ConfigDict(from_attributes=True)

    # Identity
    id: UUID
    tracking_number: str
    member_id: UUID
    benefit_id: UUID
    institution_id: UUID
    personnel_id: Optional[UUID] = None

    # Clinical
    diagnosis_code: str
    diagnosis_code_system: DiagnosisCodeSystem
    diagnosis: Optional[str] = None
    description: Optional[str] = None
    treatment_details: Optional[str] = None
    service_date: date
    procedure_items: list[ProcedureItem] = Field(default_factory=list)
    amount: Decimal

    # Lifecycle
    status: ClaimStatus
    claim_date: datetime
    review_date: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_reference: Optional[str] = None

    # Trust
    provider_verified: bool
    requires_higher_approval: bool
    approved_by_admin: bool = False
    admin_approval_date: Optional[datetime] = None
    admin_review_notes: Optional[str] = None

    # Risk
    fraud_risk_level: FraudRiskLevel = FraudRiskLevel.NONE
    fraud_risk_factors: Optional[str] = None
    fraud_review_date: Optional[datetime] = None
    fraud_reviewer_id: Optional[str] = None

    # Concurrency
    version: int = Field(0, description="0 until first persisted")

    @model_validator(mode="after")
    def check_trust_coupling(self) -> "ClaimRecord":
        """Unverified providers, and only they, need higher approval."""
        if self.requires_higher_approval == self.provider_verified:
            raise ValueError(
                "requires_higher_approval must be the negation of provider_verified"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is defined."""
        return self.status in TERMINAL_STATUSES


class ClaimFilter(BaseModel):
    """Filters for listing claims."""

    status: Optional[ClaimStatus] = None
    member_id: Optional[UUID] = None
    institution_id: Optional[UUID] = None
    personnel_id: Optional[UUID] = None
    fraud_risk_level: Optional[FraudRiskLevel] = None
    requires_higher_approval: Optional[bool] = None

    def matches(self, claim: ClaimRecord) -> bool:
        """Check a claim against every set filter."""
        for field_name, expected in self.model_dump(exclude_none=True).items():
            if getattr(claim, field_name) != expected:
                return False
        return True
