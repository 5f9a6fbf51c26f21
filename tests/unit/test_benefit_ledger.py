"""
Unit tests for the benefit utilization ledger.

Includes a randomized interleaving test: many concurrent reservations
against one (member, benefit) pair, with random yields around every lock
boundary, must never overspend the limit.
"""

import asyncio
import random
from decimal import Decimal
from uuid import uuid4

import pytest

from claims_engine.core.exceptions import PreconditionError, ValidationError
from claims_engine.gateways import InMemoryBenefitsDirectory
from claims_engine.services.benefit_ledger import BenefitUtilizationLedger
from claims_engine.services.storage.memory import MemoryClaimStore, MemoryStoreTransaction


@pytest.fixture
def ledger(store, benefits_directory):
    return BenefitUtilizationLedger(store, benefits_directory)


@pytest.mark.unit
class TestCheckAndReserve:
    """Reservation against the available limit."""

    @pytest.mark.asyncio
    async def test_reserve_within_limit(self, ledger, ids):
        result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("500"))
        assert result.approved is True
        assert result.remaining == Decimal("500.00")

        [row] = await ledger.get_benefit_utilization(ids["member_id"])
        assert row.reserved_amount == Decimal("500")
        assert row.used_amount == Decimal("0")
        assert row.remaining_amount == Decimal("1000.00")
        assert row.available_amount == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_reserve_exactly_the_limit(self, ledger, ids):
        result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("1000"))
        assert result.approved is True
        assert result.remaining == Decimal("0")

    @pytest.mark.asyncio
    async def test_reserve_over_limit_refused_without_change(self, ledger, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("700"))
        result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("400"))
        assert result.approved is False
        assert result.remaining == Decimal("300.00")

        [row] = await ledger.get_benefit_utilization(ids["member_id"])
        assert row.reserved_amount == Decimal("700")

    @pytest.mark.asyncio
    async def test_unlimited_benefit(self, store, ids):
        ledger = BenefitUtilizationLedger(store, InMemoryBenefitsDirectory())
        result = await ledger.check_and_reserve(ids["member_id"], uuid4(), Decimal("1000000"))
        assert result.approved is True
        assert result.remaining is None

    @pytest.mark.asyncio
    async def test_waiting_period(self, ledger, benefits_directory, ids):
        benefits_directory.set_limit(
            ids["member_id"], ids["benefit_id"], Decimal("1000"), waiting_period_active=True
        )
        with pytest.raises(PreconditionError) as exc_info:
            await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("10"))
        assert exc_info.value.guard == "waiting_period"
        assert await ledger.get_benefit_utilization(ids["member_id"]) == []

    @pytest.mark.asyncio
    async def test_limit_reread_on_every_reservation(self, ledger, benefits_directory, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("400"))
        benefits_directory.set_limit(ids["member_id"], ids["benefit_id"], Decimal("500"))

        result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("200"))
        assert result.approved is False
        assert result.remaining == Decimal("100")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    async def test_non_positive_amount(self, ledger, ids, amount):
        with pytest.raises(ValidationError):
            await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], amount)


@pytest.mark.unit
class TestCommitReleaseReverse:
    """Moving amounts between reserved and used."""

    @pytest.mark.asyncio
    async def test_commit_moves_reservation_to_used(self, ledger, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("500"))
        row = await ledger.commit_usage(ids["member_id"], ids["benefit_id"], Decimal("500"))
        assert row.reserved_amount == Decimal("0")
        assert row.used_amount == Decimal("500")
        assert row.remaining_amount == Decimal("500.00")
        assert row.utilization_percentage == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_commit_without_reservation(self, ledger, ids):
        with pytest.raises(PreconditionError) as exc_info:
            await ledger.commit_usage(ids["member_id"], ids["benefit_id"], Decimal("100"))
        assert exc_info.value.guard == "reservation"

    @pytest.mark.asyncio
    async def test_errors_name_the_claim(self, ledger, ids):
        claim_id = uuid4()
        with pytest.raises(PreconditionError) as exc_info:
            await ledger.commit_usage(
                ids["member_id"], ids["benefit_id"], Decimal("100"), claim_id=claim_id
            )
        assert exc_info.value.to_dict()["claim_id"] == str(claim_id)

        with pytest.raises(ValidationError) as exc_info:
            await ledger.release_reservation(
                ids["member_id"], ids["benefit_id"], Decimal("0"), claim_id=claim_id
            )
        assert exc_info.value.claim_id == claim_id

    @pytest.mark.asyncio
    async def test_release_returns_availability(self, ledger, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("800"))
        row = await ledger.release_reservation(ids["member_id"], ids["benefit_id"], Decimal("800"))
        assert row.reserved_amount == Decimal("0")

        result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("900"))
        assert result.approved is True

    @pytest.mark.asyncio
    async def test_release_more_than_reserved(self, ledger, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("100"))
        with pytest.raises(PreconditionError):
            await ledger.release_reservation(ids["member_id"], ids["benefit_id"], Decimal("200"))

    @pytest.mark.asyncio
    async def test_reverse_usage(self, ledger, ids):
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("600"))
        await ledger.commit_usage(ids["member_id"], ids["benefit_id"], Decimal("600"))
        row = await ledger.reverse_usage(ids["member_id"], ids["benefit_id"], Decimal("200"))
        assert row.used_amount == Decimal("400")
        assert row.remaining_amount == Decimal("600.00")

    @pytest.mark.asyncio
    async def test_reverse_more_than_used(self, ledger, ids):
        with pytest.raises(PreconditionError) as exc_info:
            await ledger.reverse_usage(ids["member_id"], ids["benefit_id"], Decimal("1"))
        assert exc_info.value.guard == "reversal"

    @pytest.mark.asyncio
    async def test_rows_are_per_benefit(self, ledger, benefits_directory, ids):
        other_benefit = uuid4()
        benefits_directory.set_limit(ids["member_id"], other_benefit, Decimal("50"))
        await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("500"))
        await ledger.check_and_reserve(ids["member_id"], other_benefit, Decimal("50"))

        rows = await ledger.get_benefit_utilization(ids["member_id"])
        assert {row.benefit_id for row in rows} == {ids["benefit_id"], other_benefit}
        assert await ledger.get_benefit_utilization(uuid4()) == []


# =============================================================================
# Randomized interleavings
# =============================================================================


class JitterTransaction(MemoryStoreTransaction):
    """Yields to the event loop at random points around every lock."""

    async def _jitter(self) -> None:
        await asyncio.sleep(self._store.rng.random() / 1000)

    async def get_or_create_utilization(self, member_id, benefit_id):
        await self._jitter()
        record = await super().get_or_create_utilization(member_id, benefit_id)
        await self._jitter()
        return record

    async def save_utilization(self, record):
        await self._jitter()
        return await super().save_utilization(record)


class JitterStore(MemoryClaimStore):
    transaction_class = JitterTransaction

    def __init__(self, seed: int):
        super().__init__()
        self.rng = random.Random(seed)


@pytest.mark.unit
@pytest.mark.slow
class TestConcurrentReservations:
    """Concurrent claims against one benefit never overspend it."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", range(12))
    async def test_committed_usage_never_exceeds_limit(self, ids, seed):
        rng = random.Random(seed)
        limit = Decimal(rng.randint(200, 2000))
        directory = InMemoryBenefitsDirectory()
        directory.set_limit(ids["member_id"], ids["benefit_id"], limit)
        store = JitterStore(seed)
        ledger = BenefitUtilizationLedger(store, directory)

        amounts = [Decimal(rng.randint(1, 400)) for _ in range(25)]

        async def adjudicate(amount: Decimal) -> bool:
            await asyncio.sleep(rng.random() / 1000)
            result = await ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], amount)
            if not result.approved:
                return False
            # Pay or release in random order relative to other claims
            await asyncio.sleep(rng.random() / 1000)
            if rng.random() < 0.8:
                await ledger.commit_usage(ids["member_id"], ids["benefit_id"], amount)
                return True
            await ledger.release_reservation(ids["member_id"], ids["benefit_id"], amount)
            return False

        outcomes = await asyncio.gather(*(adjudicate(a) for a in amounts))

        committed = sum((a for a, paid in zip(amounts, outcomes) if paid), Decimal("0"))
        [row] = await ledger.get_benefit_utilization(ids["member_id"])
        assert row.used_amount == committed
        assert row.reserved_amount == Decimal("0")
        assert row.used_amount <= limit

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seed", range(6))
    async def test_reservations_fill_but_never_exceed_limit(self, ids, seed):
        directory = InMemoryBenefitsDirectory()
        directory.set_limit(ids["member_id"], ids["benefit_id"], Decimal("1000"))
        ledger = BenefitUtilizationLedger(JitterStore(seed), directory)

        # Ten claims of 300: exactly three fit
        results = await asyncio.gather(
            *(
                ledger.check_and_reserve(ids["member_id"], ids["benefit_id"], Decimal("300"))
                for _ in range(10)
            )
        )

        assert sum(r.approved for r in results) == 3
        [row] = await ledger.get_benefit_utilization(ids["member_id"])
        assert row.reserved_amount == Decimal("900")
        assert row.version == 3
