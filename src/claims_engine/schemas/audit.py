"""
Pydantic Schemas for the Claim Audit Trail.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from claims_engine.core.enums import ActorType, AuditEventType, ClaimStatus


class AuditTrailEntry(BaseModel):
    """Append-only record of one state-changing call."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = None
    claim_id: UUID
    event_type: AuditEventType
    actor_id: Optional[str] = None
    actor_type: ActorType = ActorType.SYSTEM
    timestamp: datetime
    previous_status: Optional[ClaimStatus] = None
    new_status: Optional[ClaimStatus] = None
    notes: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
