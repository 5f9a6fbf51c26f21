"""
Unit tests for domain exceptions and their HTTP mapping.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from claims_engine.core import exceptions as domain
from claims_engine.utils.errors import to_http_error


@pytest.mark.unit
class TestDomainExceptions:
    """Tests for the exception payloads."""

    def test_default_guard(self):
        assert domain.FraudBlockError("blocked").guard == "fraud_risk"
        assert domain.ConcurrencyConflictError("stale").guard == "version"
        assert domain.LimitExceededError("over").guard == "benefit_limit"

    def test_to_dict(self):
        claim_id = uuid4()
        error = domain.PreconditionError("no", guard="status", claim_id=claim_id)
        assert error.to_dict() == {
            "error": "no",
            "guard": "status",
            "claim_id": str(claim_id),
        }

    def test_validation_errors_listed(self):
        error = domain.ValidationError("bad items", guard="procedure_items", errors=["Line 1: x"])
        assert error.to_dict()["errors"] == ["Line 1: x"]
        assert "errors" not in domain.ValidationError("bad").to_dict()

    def test_limit_exceeded_remaining(self):
        assert domain.LimitExceededError("over", remaining=Decimal("5")).remaining == Decimal("5")


@pytest.mark.unit
class TestHttpMapping:
    """Tests for to_http_error."""

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (domain.ValidationError("bad"), 422),
            (domain.NotFoundError("missing"), 404),
            (domain.LimitExceededError("over"), 422),
            (domain.FraudBlockError("blocked"), 403),
            (domain.ConcurrencyConflictError("stale"), 409),
            (domain.PreconditionError("no"), 409),
            (domain.AdjudicationError("other"), 409),
        ],
    )
    def test_status_codes(self, error, status_code):
        assert to_http_error(error).status_code == status_code

    def test_detail_keeps_guard(self):
        http_error = to_http_error(domain.PreconditionError("no", guard="admin_approval"))
        assert http_error.detail["guard"] == "admin_approval"
