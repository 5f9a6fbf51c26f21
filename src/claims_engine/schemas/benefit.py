"""
Pydantic Schemas for Benefit Utilization.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field


class BenefitLimit(BaseModel):
    """Limit fact owned by the benefits/schemes collaborator."""

    limit_amount: Optional[Decimal] = Field(
        None, description="Annual/category limit; None means unlimited"
    )
    waiting_period_active: bool = False


class BenefitUtilizationRecord(BaseModel):
    """
    Per-(member, benefit) utilization row.

    used_amount only grows, except through an explicit reversal.
    reserved_amount is held by approved claims awaiting payment.
    """

    model_config = ConfigDict(from_attributes=True)

    member_id: UUID
    benefit_id: UUID
    limit_amount: Optional[Decimal] = None
    used_amount: Decimal = Decimal("0")
    reserved_amount: Decimal = Decimal("0")
    last_updated: Optional[datetime] = None
    version: int = Field(0, description="0 until first persisted")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining_amount(self) -> Optional[Decimal]:
        """max(0, limit - used); None when unlimited."""
        if self.limit_amount is None:
            return None
        return max(Decimal("0"), self.limit_amount - self.used_amount)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def available_amount(self) -> Optional[Decimal]:
        """Remaining amount not already reserved by approved claims."""
        if self.limit_amount is None:
            return None
        return max(
            Decimal("0"),
            self.limit_amount - self.used_amount - self.reserved_amount,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def utilization_percentage(self) -> Optional[Decimal]:
        """Share of the limit already used, 0-100."""
        if not self.limit_amount:
            return None
        pct = (self.used_amount / self.limit_amount) * Decimal("100")
        return pct.quantize(Decimal("0.01"))


class ReservationResult(BaseModel):
    """Answer of the ledger's check-and-reserve."""

    approved: bool
    remaining: Optional[Decimal] = Field(
        None, description="Available amount after the decision; None if unlimited"
    )
