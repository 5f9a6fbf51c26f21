"""
Claim Model for Claims Adjudication.

Claims are a permanent financial record: rows are never deleted, and every
write bumps ``version`` so concurrent writers cannot both win.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claims_engine.core.enums import ClaimStatus, DiagnosisCodeSystem, FraudRiskLevel
from claims_engine.models.base import Base, TimeStampedModel, UUIDModel


class Claim(Base, UUIDModel, TimeStampedModel):
    """
    Insurance claim model.

    Represents a medical claim submitted by an institution for a member's
    benefit, together with its trust, risk and payment state.
    """

    __tablename__ = "claims"

    # Claim Identification
    tracking_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable tracking number (e.g., CLM-2025-1A2B3C4D)",
    )

    # References owned by other subsystems
    member_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True, comment="Member ID"
    )
    benefit_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True, comment="Benefit ID"
    )
    institution_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Submitting medical institution ID",
    )
    personnel_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="Attending medical personnel ID",
    )

    # Clinical Information
    diagnosis_code: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Diagnosis code"
    )
    diagnosis_code_system: Mapped[DiagnosisCodeSystem] = mapped_column(
        Enum(DiagnosisCodeSystem),
        nullable=False,
        comment="Diagnosis coding system (ICD-10 or ICD-11)",
    )
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    service_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, comment="Sum of procedure line totals"
    )

    # Lifecycle
    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus),
        default=ClaimStatus.SUBMITTED,
        nullable=False,
        index=True,
        comment="Current claim status",
    )
    claim_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    review_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True
    )

    # Provider verification
    provider_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Provider trust snapshot taken at intake",
    )
    requires_higher_approval: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Set at intake when the provider is not verified",
    )
    approved_by_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    admin_approval_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    admin_review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Fraud review
    fraud_risk_level: Mapped[FraudRiskLevel] = mapped_column(
        Enum(FraudRiskLevel),
        default=FraudRiskLevel.NONE,
        nullable=False,
        index=True,
    )
    fraud_risk_factors: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fraud_review_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    fraud_reviewer_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Optimistic lock
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    procedure_items: Mapped[list["ClaimProcedureItem"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimProcedureItem.line_number",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_claims_member_benefit", "member_id", "benefit_id"),
        Index("ix_claims_status_fraud", "status", "fraud_risk_level"),
    )

    def __repr__(self) -> str:
        return f"<Claim(id={self.id}, tracking='{self.tracking_number}', status='{self.status}')>"


class ClaimProcedureItem(Base, UUIDModel, TimeStampedModel):
    """Individual procedure line within a claim."""

    __tablename__ = "claim_procedure_items"

    claim_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("claims.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    procedure_code: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    claim: Mapped["Claim"] = relationship(back_populates="procedure_items")
