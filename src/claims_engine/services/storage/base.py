"""
Claim Store Interface.

One explicit storage contract with two implementations:
- MemoryClaimStore: per-key asyncio locks, copy-on-read
- DatabaseClaimStore: SQLAlchemy async session, row locks + version column

Every state-changing engine call runs inside a single ``transaction()``.
Writes made through the transaction become visible atomically when the
context exits cleanly and are discarded if it raises.

Lock order inside a transaction is always claim row first, utilization row
second.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Optional
from uuid import UUID

from claims_engine.schemas import (
    AuditTrailEntry,
    BenefitUtilizationRecord,
    ClaimFilter,
    ClaimRecord,
)


class StoreTransaction(ABC):
    """Unit of work over claims, utilization rows and the audit trail."""

    @abstractmethod
    async def get_claim(
        self, claim_id: UUID, for_update: bool = False
    ) -> Optional[ClaimRecord]:
        """
        Read a claim.

        With ``for_update`` the claim stays locked until the transaction ends.
        """

    @abstractmethod
    async def add_claim(self, claim: ClaimRecord) -> ClaimRecord:
        """Insert a new claim; returns it with version 1."""

    @abstractmethod
    async def update_claim(self, claim: ClaimRecord) -> ClaimRecord:
        """
        Persist a modified claim.

        ``claim.version`` must equal the stored version; the returned record
        carries the incremented version. A mismatch raises
        ConcurrencyConflictError.
        """

    @abstractmethod
    async def get_utilization(
        self, member_id: UUID, benefit_id: UUID, for_update: bool = False
    ) -> Optional[BenefitUtilizationRecord]:
        """Read one utilization row, optionally locking it."""

    @abstractmethod
    async def get_or_create_utilization(
        self, member_id: UUID, benefit_id: UUID
    ) -> BenefitUtilizationRecord:
        """Read and lock the utilization row, creating it at zero if absent."""

    @abstractmethod
    async def save_utilization(
        self, record: BenefitUtilizationRecord
    ) -> BenefitUtilizationRecord:
        """Persist a utilization row read through this transaction."""

    @abstractmethod
    async def append_audit(self, entry: AuditTrailEntry) -> None:
        """Append one audit entry."""


class ClaimStore(ABC):
    """Storage backend for the adjudication engine."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Name of this backend for logging."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a unit of work."""

    @abstractmethod
    async def get_claim(self, claim_id: UUID) -> Optional[ClaimRecord]:
        """Read a claim outside any transaction."""

    @abstractmethod
    async def list_claims(
        self, claim_filter: Optional[ClaimFilter] = None
    ) -> list[ClaimRecord]:
        """List claims matching the filter, oldest first."""

    @abstractmethod
    async def list_utilization(self, member_id: UUID) -> list[BenefitUtilizationRecord]:
        """All utilization rows of a member."""

    @abstractmethod
    async def list_audit(self, claim_id: UUID) -> list[AuditTrailEntry]:
        """Audit entries for a claim in append order."""

    async def close(self) -> None:
        """Release backend resources."""
        return None
