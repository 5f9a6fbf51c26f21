"""
In-Memory Claim Store.

Claims and utilization rows live in dictionaries keyed by id. Each claim id
and each (member, benefit) pair has its own asyncio.Lock; a transaction
acquires locks as rows are read ``for_update`` and holds them until it ends.
A lock is dropped once no transaction holds or waits on it.

Writes are staged on the transaction and applied in one synchronous step on
commit, so no other task can observe a half-applied unit of work.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional
from uuid import UUID

from claims_engine.core.exceptions import ConcurrencyConflictError, PreconditionError
from claims_engine.schemas import (
    AuditTrailEntry,
    BenefitUtilizationRecord,
    ClaimFilter,
    ClaimRecord,
)
from claims_engine.services.storage.base import ClaimStore, StoreTransaction

logger = logging.getLogger(__name__)

UtilizationKey = tuple[UUID, UUID]


class MemoryStoreTransaction(StoreTransaction):
    """Unit of work over a MemoryClaimStore."""

    def __init__(self, store: "MemoryClaimStore"):
        self._store = store
        self._held: list = []
        self._claims: dict[UUID, ClaimRecord] = {}
        self._utilization: dict[UtilizationKey, BenefitUtilizationRecord] = {}
        self._audit: list[AuditTrailEntry] = []

    async def _lock(self, key) -> None:
        if key in self._held:
            return
        lock = self._store._checkout_lock(key)
        try:
            await lock.acquire()
        except BaseException:
            self._store._return_lock(key)
            raise
        self._held.append(key)

    def _release_all(self) -> None:
        while self._held:
            key = self._held.pop()
            self._store._locks[key].release()
            self._store._return_lock(key)

    # =========================================================================
    # Claims
    # =========================================================================

    async def get_claim(
        self, claim_id: UUID, for_update: bool = False
    ) -> Optional[ClaimRecord]:
        if for_update:
            await self._lock(("claim", claim_id))
        if claim_id in self._claims:
            return self._claims[claim_id].model_copy(deep=True)
        stored = self._store._claims.get(claim_id)
        return stored.model_copy(deep=True) if stored else None

    async def add_claim(self, claim: ClaimRecord) -> ClaimRecord:
        if claim.id in self._store._claims or claim.id in self._claims:
            raise PreconditionError(
                f"Claim {claim.id} already exists", guard="duplicate", claim_id=claim.id
            )
        await self._lock(("claim", claim.id))
        staged = claim.model_copy(update={"version": 1}, deep=True)
        self._claims[claim.id] = staged
        return staged.model_copy(deep=True)

    async def update_claim(self, claim: ClaimRecord) -> ClaimRecord:
        current = self._claims.get(claim.id) or self._store._claims.get(claim.id)
        if current is None or current.version != claim.version:
            raise ConcurrencyConflictError(
                f"Claim {claim.id} was modified concurrently", claim_id=claim.id
            )
        staged = claim.model_copy(update={"version": claim.version + 1}, deep=True)
        self._claims[claim.id] = staged
        return staged.model_copy(deep=True)

    # =========================================================================
    # Utilization
    # =========================================================================

    async def get_utilization(
        self, member_id: UUID, benefit_id: UUID, for_update: bool = False
    ) -> Optional[BenefitUtilizationRecord]:
        key = (member_id, benefit_id)
        if for_update:
            await self._lock(("utilization", key))
        record = self._utilization.get(key) or self._store._utilization.get(key)
        return record.model_copy(deep=True) if record else None

    async def get_or_create_utilization(
        self, member_id: UUID, benefit_id: UUID
    ) -> BenefitUtilizationRecord:
        record = await self.get_utilization(member_id, benefit_id, for_update=True)
        if record is None:
            record = BenefitUtilizationRecord(member_id=member_id, benefit_id=benefit_id)
        return record

    async def save_utilization(
        self, record: BenefitUtilizationRecord
    ) -> BenefitUtilizationRecord:
        key = (record.member_id, record.benefit_id)
        current = self._utilization.get(key) or self._store._utilization.get(key)
        current_version = current.version if current else 0
        if current_version != record.version:
            raise ConcurrencyConflictError(
                f"Utilization row {record.member_id}/{record.benefit_id} "
                "was modified concurrently",
                guard="utilization_version",
            )
        staged = record.model_copy(
            update={
                "version": record.version + 1,
                "last_updated": datetime.now(timezone.utc),
            },
            deep=True,
        )
        self._utilization[key] = staged
        return staged.model_copy(deep=True)

    # =========================================================================
    # Audit
    # =========================================================================

    async def append_audit(self, entry: AuditTrailEntry) -> None:
        self._audit.append(entry)

    def _commit(self) -> None:
        """Apply staged writes; runs without awaiting."""
        self._store._claims.update(self._claims)
        self._store._utilization.update(self._utilization)
        for entry in self._audit:
            self._store._audit_seq += 1
            stored = entry.model_copy(update={"id": self._store._audit_seq})
            self._store._audit[entry.claim_id].append(stored)


class MemoryClaimStore(ClaimStore):
    """
    Dictionary-backed claim store.

    Suitable for tests and single-process deployments.
    """

    transaction_class = MemoryStoreTransaction

    def __init__(self):
        self._claims: dict[UUID, ClaimRecord] = {}
        self._utilization: dict[UtilizationKey, BenefitUtilizationRecord] = {}
        self._audit: dict[UUID, list[AuditTrailEntry]] = defaultdict(list)
        self._audit_seq = 0
        self._locks: dict = {}
        self._lock_users: dict = defaultdict(int)

    def _checkout_lock(self, key) -> asyncio.Lock:
        """Row lock for ``key``, counted until returned."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] += 1
        return lock

    def _return_lock(self, key) -> None:
        # Drop the lock once nobody holds or waits on it
        self._lock_users[key] -= 1
        if self._lock_users[key] == 0:
            del self._lock_users[key]
            del self._locks[key]

    @property
    def backend_name(self) -> str:
        return "memory"

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        txn = self.transaction_class(self)
        try:
            yield txn
        except BaseException:
            logger.debug("Memory transaction rolled back")
            raise
        else:
            txn._commit()
        finally:
            txn._release_all()

    async def get_claim(self, claim_id: UUID) -> Optional[ClaimRecord]:
        stored = self._claims.get(claim_id)
        return stored.model_copy(deep=True) if stored else None

    async def list_claims(
        self, claim_filter: Optional[ClaimFilter] = None
    ) -> list[ClaimRecord]:
        claim_filter = claim_filter or ClaimFilter()
        claims = [c for c in self._claims.values() if claim_filter.matches(c)]
        claims.sort(key=lambda c: c.claim_date)
        return [c.model_copy(deep=True) for c in claims]

    async def list_utilization(self, member_id: UUID) -> list[BenefitUtilizationRecord]:
        return [
            record.model_copy(deep=True)
            for (member, _), record in self._utilization.items()
            if member == member_id
        ]

    async def list_audit(self, claim_id: UUID) -> list[AuditTrailEntry]:
        return list(self._audit.get(claim_id, []))
