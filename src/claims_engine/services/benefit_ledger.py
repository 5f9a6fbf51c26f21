"""
Benefit Utilization Ledger.

Tracks per-(member, benefit) consumption against the limit published by
the benefits directory.

Amounts move through two buckets:
- reserved: held by approved claims awaiting payment
- used: paid claims

``used + reserved <= limit`` holds after every operation. Each operation
is a single read-modify-write on the locked utilization row, either inside
the caller's transaction or in one of its own.
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional
from uuid import UUID

from claims_engine.core.exceptions import PreconditionError, ValidationError
from claims_engine.gateways.benefits_directory import BenefitsDirectory
from claims_engine.schemas import BenefitUtilizationRecord, ReservationResult
from claims_engine.services.storage.base import ClaimStore, StoreTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _require_positive(amount: Decimal, claim_id: Optional[UUID]) -> None:
    if amount is None or amount <= ZERO:
        raise ValidationError(
            f"Ledger amount must be positive, got {amount}", guard="amount", claim_id=claim_id
        )


class BenefitUtilizationLedger:
    """Check-and-reserve, commit, release and reversal of benefit usage."""

    def __init__(self, store: ClaimStore, benefits_directory: BenefitsDirectory):
        self._store = store
        self._benefits = benefits_directory

    @asynccontextmanager
    async def _unit_of_work(
        self, txn: Optional[StoreTransaction]
    ) -> AsyncIterator[StoreTransaction]:
        if txn is not None:
            yield txn
            return
        async with self._store.transaction() as own:
            yield own

    async def check_and_reserve(
        self,
        member_id: UUID,
        benefit_id: UUID,
        amount: Decimal,
        txn: Optional[StoreTransaction] = None,
        claim_id: Optional[UUID] = None,
    ) -> ReservationResult:
        """
        Reserve ``amount`` if it fits in the available limit.

        The limit is re-read from the benefits directory on every call.
        A refused reservation leaves the row unchanged.

        Raises:
            PreconditionError: if the member is still in a waiting period
        """
        _require_positive(amount, claim_id)
        limit = await self._benefits.get_benefit_limit(member_id, benefit_id)
        if limit.waiting_period_active:
            logger.warning(f"Waiting period active for member {member_id}, benefit {benefit_id}")
            raise PreconditionError(
                "Benefit waiting period has not elapsed",
                guard="waiting_period",
                claim_id=claim_id,
            )

        async with self._unit_of_work(txn) as t:
            record = await t.get_or_create_utilization(member_id, benefit_id)
            record = record.model_copy(update={"limit_amount": limit.limit_amount})

            if record.limit_amount is not None:
                available = record.limit_amount - record.used_amount - record.reserved_amount
                if amount > available:
                    logger.warning(
                        f"Reservation of {amount} refused for member {member_id}, "
                        f"benefit {benefit_id}: available {max(ZERO, available)}"
                    )
                    return ReservationResult(approved=False, remaining=max(ZERO, available))

            record.reserved_amount += amount
            saved = await t.save_utilization(record)

        logger.info(
            f"Reserved {amount} for member {member_id}, benefit {benefit_id} "
            f"(available {saved.available_amount})"
        )
        return ReservationResult(approved=True, remaining=saved.available_amount)

    async def commit_usage(
        self,
        member_id: UUID,
        benefit_id: UUID,
        amount: Decimal,
        txn: Optional[StoreTransaction] = None,
        claim_id: Optional[UUID] = None,
    ) -> BenefitUtilizationRecord:
        """Move a previously reserved amount into used."""
        _require_positive(amount, claim_id)
        async with self._unit_of_work(txn) as t:
            record = await t.get_or_create_utilization(member_id, benefit_id)
            if record.reserved_amount < amount:
                raise PreconditionError(
                    f"No reservation of {amount} to commit (reserved {record.reserved_amount})",
                    guard="reservation",
                    claim_id=claim_id,
                )
            record.reserved_amount -= amount
            record.used_amount += amount
            saved = await t.save_utilization(record)

        logger.info(f"Committed {amount} for member {member_id}, benefit {benefit_id}")
        return saved

    async def release_reservation(
        self,
        member_id: UUID,
        benefit_id: UUID,
        amount: Decimal,
        txn: Optional[StoreTransaction] = None,
        claim_id: Optional[UUID] = None,
    ) -> BenefitUtilizationRecord:
        """Return a reservation to the available limit."""
        _require_positive(amount, claim_id)
        async with self._unit_of_work(txn) as t:
            record = await t.get_or_create_utilization(member_id, benefit_id)
            if record.reserved_amount < amount:
                raise PreconditionError(
                    f"No reservation of {amount} to release (reserved {record.reserved_amount})",
                    guard="reservation",
                    claim_id=claim_id,
                )
            record.reserved_amount -= amount
            saved = await t.save_utilization(record)

        logger.info(f"Released {amount} for member {member_id}, benefit {benefit_id}")
        return saved

    async def reverse_usage(
        self,
        member_id: UUID,
        benefit_id: UUID,
        amount: Decimal,
        txn: Optional[StoreTransaction] = None,
        claim_id: Optional[UUID] = None,
    ) -> BenefitUtilizationRecord:
        """Administrative reversal of committed usage (e.g. a voided payment)."""
        _require_positive(amount, claim_id)
        async with self._unit_of_work(txn) as t:
            record = await t.get_or_create_utilization(member_id, benefit_id)
            if record.used_amount < amount:
                raise PreconditionError(
                    f"Cannot reverse {amount}; only {record.used_amount} used",
                    guard="reversal",
                    claim_id=claim_id,
                )
            record.used_amount -= amount
            saved = await t.save_utilization(record)

        logger.info(f"Reversed {amount} for member {member_id}, benefit {benefit_id}")
        return saved

    async def get_benefit_utilization(self, member_id: UUID) -> list[BenefitUtilizationRecord]:
        """All utilization rows for a member."""
        return await self._store.list_utilization(member_id)
