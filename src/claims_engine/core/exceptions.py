"""
Domain Exceptions for the Claims Adjudication Engine.

All of these are business-rule violations detected locally and returned
synchronously; none are retried. Each carries the guard that failed so
callers can present an actionable message.
"""

from typing import Optional
from uuid import UUID


class AdjudicationError(Exception):
    """Base exception for adjudication engine errors."""

    default_guard = "unspecified"

    def __init__(
        self,
        message: str,
        guard: Optional[str] = None,
        claim_id: Optional[UUID] = None,
    ):
        super().__init__(message)
        self.message = message
        self.guard = guard or self.default_guard
        self.claim_id = claim_id

    def to_dict(self) -> dict:
        """Serialize for API error payloads."""
        return {
            "error": self.message,
            "guard": self.guard,
            "claim_id": str(self.claim_id) if self.claim_id else None,
        }


class ValidationError(AdjudicationError):
    """Raised when claim input is missing or malformed."""

    default_guard = "validation"

    def __init__(
        self,
        message: str,
        guard: Optional[str] = None,
        claim_id: Optional[UUID] = None,
        errors: Optional[list[str]] = None,
    ):
        super().__init__(message, guard=guard, claim_id=claim_id)
        self.errors = errors or []

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class NotFoundError(AdjudicationError):
    """Raised when a claim, member, benefit or provider id is unknown."""

    default_guard = "not_found"


class PreconditionError(AdjudicationError):
    """Raised when an operation is illegal for the claim's current state."""

    default_guard = "precondition"


class LimitExceededError(AdjudicationError):
    """Raised when a claim would exceed the remaining benefit limit."""

    default_guard = "benefit_limit"

    def __init__(
        self,
        message: str,
        remaining: Optional[object] = None,
        guard: Optional[str] = None,
        claim_id: Optional[UUID] = None,
    ):
        super().__init__(message, guard=guard, claim_id=claim_id)
        self.remaining = remaining


class FraudBlockError(AdjudicationError):
    """Raised when payment is attempted on a high or confirmed risk claim."""

    default_guard = "fraud_risk"


class ConcurrencyConflictError(AdjudicationError):
    """Raised when a claim row changed between read and write."""

    default_guard = "version"
