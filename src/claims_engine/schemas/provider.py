"""
Pydantic Schemas for Provider Verification.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from claims_engine.core.enums import ApprovalStatus


class ProviderVerificationResult(BaseModel):
    """Point-in-time trust snapshot for a claim's providers."""

    institution_id: UUID
    institution_status: Optional[ApprovalStatus] = None
    personnel_id: Optional[UUID] = None
    personnel_status: Optional[ApprovalStatus] = None
    verified: bool
    reasons: list[str] = Field(default_factory=list)

    def as_details(self) -> dict:
        """Audit-friendly representation."""
        return self.model_dump(mode="json")
