"""
Claim Audit Trail Model.

Append-only: the application only ever inserts rows into this table.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from claims_engine.core.enums import ActorType, AuditEventType, ClaimStatus
from claims_engine.models.base import Base


class ClaimAuditTrail(Base):
    """Audit trail entry for a claim state change."""

    __tablename__ = "claim_audit_trails"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing ID; preserves append order",
    )
    claim_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("claims.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    event_type: Mapped[AuditEventType] = mapped_column(
        Enum(AuditEventType), nullable=False, index=True
    )
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    actor_type: Mapped[ActorType] = mapped_column(
        Enum(ActorType), nullable=False, default=ActorType.SYSTEM
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    previous_status: Mapped[Optional[ClaimStatus]] = mapped_column(
        Enum(ClaimStatus), nullable=True
    )
    new_status: Mapped[Optional[ClaimStatus]] = mapped_column(
        Enum(ClaimStatus), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("ix_claim_audit_claim_time", "claim_id", "timestamp"),)

    def __repr__(self) -> str:
        return f"<ClaimAuditTrail(claim={self.claim_id}, event='{self.event_type}')>"
