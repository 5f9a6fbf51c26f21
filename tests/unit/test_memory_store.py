"""
Unit tests for the in-memory claim store.
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from claims_engine.core.enums import AuditEventType, ClaimStatus, DiagnosisCodeSystem
from claims_engine.core.exceptions import ConcurrencyConflictError, PreconditionError
from claims_engine.schemas import AuditTrailEntry, ClaimRecord


def _claim() -> ClaimRecord:
    return ClaimRecord(
        id=uuid4(),
        tracking_number="CLM-2025-00000001",
        member_id=uuid4(),
        benefit_id=uuid4(),
        institution_id=uuid4(),
        diagnosis_code="J45.909",
        diagnosis_code_system=DiagnosisCodeSystem.ICD10,
        service_date=date(2025, 3, 14),
        amount=Decimal("100.00"),
        status=ClaimStatus.SUBMITTED,
        claim_date=datetime.now(timezone.utc),
        provider_verified=True,
        requires_higher_approval=False,
    )


@pytest.mark.unit
class TestMemoryTransactions:
    """Commit, rollback and versioning."""

    @pytest.mark.asyncio
    async def test_add_and_read(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            saved = await txn.add_claim(claim)
        assert saved.version == 1
        assert (await store.get_claim(claim.id)) == saved
        assert store.backend_name == "memory"

    @pytest.mark.asyncio
    async def test_duplicate_claim(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)
        with pytest.raises(PreconditionError):
            async with store.transaction() as txn:
                await txn.add_claim(claim)

    @pytest.mark.asyncio
    async def test_rollback_discards_writes(self, store):
        claim = _claim()
        with pytest.raises(RuntimeError):
            async with store.transaction() as txn:
                await txn.add_claim(claim)
                await txn.append_audit(
                    AuditTrailEntry(
                        claim_id=claim.id,
                        event_type=AuditEventType.CLAIM_SUBMITTED,
                        timestamp=datetime.now(timezone.utc),
                    )
                )
                raise RuntimeError("boom")

        assert await store.get_claim(claim.id) is None
        assert await store.list_audit(claim.id) == []

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            saved = await txn.add_claim(claim)
        async with store.transaction() as txn:
            current = await txn.get_claim(claim.id, for_update=True)
            updated = await txn.update_claim(
                current.model_copy(update={"status": ClaimStatus.UNDER_REVIEW})
            )
        assert updated.version == saved.version + 1

    @pytest.mark.asyncio
    async def test_stale_update_rejected(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            saved = await txn.add_claim(claim)
        async with store.transaction() as txn:
            await txn.update_claim(saved)

        with pytest.raises(ConcurrencyConflictError):
            async with store.transaction() as txn:
                await txn.update_claim(saved)

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)
        read = await store.get_claim(claim.id)
        read.status = ClaimStatus.PAID
        assert (await store.get_claim(claim.id)).status == ClaimStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_stale_utilization_rejected(self, store):
        member_id, benefit_id = uuid4(), uuid4()
        async with store.transaction() as txn:
            record = await txn.get_or_create_utilization(member_id, benefit_id)
            await txn.save_utilization(record)
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            async with store.transaction() as txn:
                await txn.save_utilization(record)
        assert exc_info.value.guard == "utilization_version"


@pytest.mark.unit
class TestMemoryLocking:
    """Row locks held for the life of a transaction."""

    @pytest.mark.asyncio
    async def test_second_locker_waits_for_commit(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)

        order = []
        first_locked = asyncio.Event()

        async def first():
            async with store.transaction() as txn:
                current = await txn.get_claim(claim.id, for_update=True)
                first_locked.set()
                await asyncio.sleep(0.01)
                await txn.update_claim(
                    current.model_copy(update={"status": ClaimStatus.UNDER_REVIEW})
                )
                order.append("first")

        async def second():
            await first_locked.wait()
            async with store.transaction() as txn:
                current = await txn.get_claim(claim.id, for_update=True)
                order.append(("second", current.status, current.version))

        await asyncio.gather(first(), second())
        assert order == ["first", ("second", ClaimStatus.UNDER_REVIEW, 2)]

    @pytest.mark.asyncio
    async def test_locks_released_after_rollback(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)

        with pytest.raises(RuntimeError):
            async with store.transaction() as txn:
                await txn.get_claim(claim.id, for_update=True)
                raise RuntimeError("boom")

        async with store.transaction() as txn:
            assert await asyncio.wait_for(txn.get_claim(claim.id, for_update=True), 1)

    @pytest.mark.asyncio
    async def test_lock_table_empties_after_transactions(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)
            record = await txn.get_or_create_utilization(claim.member_id, claim.benefit_id)
            await txn.save_utilization(record)

        with pytest.raises(RuntimeError):
            async with store.transaction() as txn:
                await txn.get_claim(claim.id, for_update=True)
                raise RuntimeError("boom")

        assert store._locks == {}
        assert store._lock_users == {}

    @pytest.mark.asyncio
    async def test_contended_lock_kept_until_last_waiter(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)

        first_locked = asyncio.Event()
        release_first = asyncio.Event()

        async def first():
            async with store.transaction() as txn:
                await txn.get_claim(claim.id, for_update=True)
                first_locked.set()
                await release_first.wait()

        async def second():
            await first_locked.wait()
            async with store.transaction() as txn:
                await txn.get_claim(claim.id, for_update=True)

        tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
        await first_locked.wait()
        await asyncio.sleep(0)
        assert store._lock_users[("claim", claim.id)] == 2
        release_first.set()
        await asyncio.gather(*tasks)
        assert store._locks == {}


@pytest.mark.unit
class TestMemoryQueries:
    """Read-side queries."""

    @pytest.mark.asyncio
    async def test_audit_ids_are_sequential(self, store):
        claim = _claim()
        async with store.transaction() as txn:
            await txn.add_claim(claim)
            for event in (AuditEventType.CLAIM_SUBMITTED, AuditEventType.PROVIDER_VERIFICATION):
                await txn.append_audit(
                    AuditTrailEntry(
                        claim_id=claim.id,
                        event_type=event,
                        timestamp=datetime.now(timezone.utc),
                    )
                )
        entries = await store.list_audit(claim.id)
        assert [e.id for e in entries] == [1, 2]

    @pytest.mark.asyncio
    async def test_list_utilization_by_member(self, store):
        member_id = uuid4()
        async with store.transaction() as txn:
            for benefit_id in (uuid4(), uuid4()):
                record = await txn.get_or_create_utilization(member_id, benefit_id)
                await txn.save_utilization(record)
            other = await txn.get_or_create_utilization(uuid4(), uuid4())
            await txn.save_utilization(other)

        rows = await store.list_utilization(member_id)
        assert len(rows) == 2
        assert all(row.version == 1 for row in rows)
