"""
Pydantic schemas shared by the engine, the storage layer and the API.
"""

from claims_engine.schemas.audit import AuditTrailEntry
from claims_engine.schemas.benefit import (
    BenefitLimit,
    BenefitUtilizationRecord,
    ReservationResult,
)
from claims_engine.schemas.claim import (
    ClaimFilter,
    ClaimRecord,
    ClaimSubmission,
    ProcedureItem,
    ProcedureItemInput,
)
from claims_engine.schemas.provider import ProviderVerificationResult

__all__ = [
    "AuditTrailEntry",
    "BenefitLimit",
    "BenefitUtilizationRecord",
    "ReservationResult",
    "ClaimFilter",
    "ClaimRecord",
    "ClaimSubmission",
    "ProcedureItem",
    "ProcedureItemInput",
    "ProviderVerificationResult",
]
