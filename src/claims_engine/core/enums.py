"""
Core Enumerations for the Claims Adjudication Engine.

Every status-like field on a claim is a closed enumeration so that
illegal values are rejected at the boundary instead of being validated
ad hoc inside each operation.
"""

from enum import Enum


# =============================================================================
# Claim Lifecycle Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle status.

    State Machine Transitions:
    SUBMITTED -> UNDER_REVIEW | APPROVED | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    UNDER_REVIEW -> APPROVED | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    FRAUD_REVIEW -> APPROVED | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    APPROVED -> PAID | APPROVED (admin) | REJECTED | FRAUD_REVIEW | FRAUD_CONFIRMED
    PAID, REJECTED, FRAUD_CONFIRMED are terminal
    """

    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    FRAUD_REVIEW = "fraud_review"
    FRAUD_CONFIRMED = "fraud_confirmed"
    PAID = "paid"


TERMINAL_STATUSES = frozenset(
    {ClaimStatus.PAID, ClaimStatus.REJECTED, ClaimStatus.FRAUD_CONFIRMED}
)


class DiagnosisCodeSystem(str, Enum):
    """Supported diagnosis coding systems."""

    ICD10 = "ICD-10"
    ICD11 = "ICD-11"


class FraudRiskLevel(str, Enum):
    """Fraud risk tier, escalating from NONE to CONFIRMED."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CONFIRMED = "confirmed"


# Risk tiers that block disbursement outright
PAYMENT_BLOCKING_RISK_LEVELS = frozenset({FraudRiskLevel.HIGH, FraudRiskLevel.CONFIRMED})


# =============================================================================
# Provider Enums
# =============================================================================


class ApprovalStatus(str, Enum):
    """Approval status of a medical institution or personnel."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class ProviderReverificationPolicy(str, Enum):
    """When provider trust is evaluated."""

    SNAPSHOT = "snapshot"  # Evaluated once at intake only
    AT_PAYMENT = "at_payment"  # Re-checked by the payment gate


# =============================================================================
# Audit Enums
# =============================================================================


class AuditEventType(str, Enum):
    """Claim audit trail event types."""

    CLAIM_SUBMITTED = "claim_submitted"
    PROVIDER_VERIFICATION = "provider_verification"
    STATUS_CHANGED = "status_changed"
    ADMIN_APPROVED = "admin_approved"
    CLAIM_REJECTED = "claim_rejected"
    FRAUD_FLAGGED = "fraud_flagged"
    PAYMENT_AUTHORIZED = "payment_authorized"
    LEDGER_RESERVED = "ledger_reserved"
    LEDGER_COMMITTED = "ledger_committed"
    LEDGER_RELEASED = "ledger_released"
    LEDGER_REVERSED = "ledger_reversed"


class ActorType(str, Enum):
    """Who performed an audited action."""

    USER = "user"
    SYSTEM = "system"


# =============================================================================
# Infrastructure Enums
# =============================================================================


class StorageBackend(str, Enum):
    """Claim storage implementation selected at process start."""

    MEMORY = "memory"
    DATABASE = "database"
