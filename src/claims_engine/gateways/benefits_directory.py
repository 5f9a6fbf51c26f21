"""
Benefits Directory Gateway.

Per-member benefit limits and waiting periods, owned by the schemes
subsystem. The ledger reads the limit every time it adjudicates.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from claims_engine.schemas import BenefitLimit


class BenefitsDirectory(ABC):
    """Source of benefit limit facts."""

    @abstractmethod
    async def get_benefit_limit(self, member_id: UUID, benefit_id: UUID) -> BenefitLimit:
        """Limit for a member's benefit; unknown pairs are unlimited."""


class InMemoryBenefitsDirectory(BenefitsDirectory):
    """Dictionary-backed benefits directory for tests and demos."""

    def __init__(self, default_limit: Optional[Decimal] = None):
        self._default = BenefitLimit(limit_amount=default_limit)
        self._limits: dict[tuple[UUID, UUID], BenefitLimit] = {}

    def set_limit(
        self,
        member_id: UUID,
        benefit_id: UUID,
        limit_amount: Optional[Decimal],
        waiting_period_active: bool = False,
    ) -> None:
        self._limits[(member_id, benefit_id)] = BenefitLimit(
            limit_amount=limit_amount,
            waiting_period_active=waiting_period_active,
        )

    async def get_benefit_limit(self, member_id: UUID, benefit_id: UUID) -> BenefitLimit:
        return self._limits.get((member_id, benefit_id), self._default)
