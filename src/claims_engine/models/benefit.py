"""
Benefit Utilization Model.

One row per (member, benefit) pair, created lazily by the ledger on the
first claim adjudicated against the benefit.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Integer, Numeric, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from claims_engine.models.base import Base, TimeStampedModel, UUIDModel


class BenefitUtilization(Base, UUIDModel, TimeStampedModel):
    """Cumulative consumption of a member's benefit limit."""

    __tablename__ = "benefit_utilization"

    member_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    benefit_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    limit_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Limit at last adjudication; NULL means unlimited",
    )
    used_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    reserved_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Held by approved claims awaiting payment",
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("member_id", "benefit_id", name="uq_benefit_utilization_member_benefit"),
    )

    def __repr__(self) -> str:
        return (
            f"<BenefitUtilization(member={self.member_id}, benefit={self.benefit_id}, "
            f"used={self.used_amount}, limit={self.limit_amount})>"
        )
