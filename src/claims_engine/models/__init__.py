"""
SQLAlchemy ORM models for the database-backed claim store.
"""

from claims_engine.models.audit import ClaimAuditTrail
from claims_engine.models.base import Base, TimeStampedModel, UUIDModel
from claims_engine.models.benefit import BenefitUtilization
from claims_engine.models.claim import Claim, ClaimProcedureItem

__all__ = [
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    "Claim",
    "ClaimProcedureItem",
    "BenefitUtilization",
    "ClaimAuditTrail",
]
