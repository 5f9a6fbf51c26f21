"""
Audit Trail Recorder.

Builds immutable audit entries and appends them through the caller's
store transaction, so an entry exists if and only if its state change
was committed.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from claims_engine.core.enums import ActorType, AuditEventType, ClaimStatus
from claims_engine.schemas import AuditTrailEntry
from claims_engine.services.storage.base import ClaimStore, StoreTransaction


class AuditTrailRecorder:
    """Append-only claim history."""

    def __init__(self, store: ClaimStore):
        self._store = store

    async def record(
        self,
        txn: StoreTransaction,
        claim_id: UUID,
        event_type: AuditEventType,
        actor_id: Optional[str] = None,
        previous_status: Optional[ClaimStatus] = None,
        new_status: Optional[ClaimStatus] = None,
        notes: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditTrailEntry:
        entry = AuditTrailEntry(
            claim_id=claim_id,
            event_type=event_type,
            actor_id=actor_id,
            actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
            timestamp=timestamp or datetime.now(timezone.utc),
            previous_status=previous_status,
            new_status=new_status,
            notes=notes,
            details=details or {},
        )
        await txn.append_audit(entry)
        return entry

    async def get_audit_trail(self, claim_id: UUID) -> list[AuditTrailEntry]:
        """Entries for a claim, oldest first."""
        return await self._store.list_audit(claim_id)
