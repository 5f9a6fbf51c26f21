"""
Unit tests for core enumerations.
"""

import pytest

from claims_engine.core.enums import (
    PAYMENT_BLOCKING_RISK_LEVELS,
    TERMINAL_STATUSES,
    ApprovalStatus,
    AuditEventType,
    ClaimStatus,
    DiagnosisCodeSystem,
    FraudRiskLevel,
)


@pytest.mark.unit
class TestClaimStatus:
    """Tests for ClaimStatus enum."""

    def test_values(self):
        assert {s.value for s in ClaimStatus} == {
            "submitted",
            "under_review",
            "approved",
            "rejected",
            "fraud_review",
            "fraud_confirmed",
            "paid",
        }

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {
            ClaimStatus.PAID,
            ClaimStatus.REJECTED,
            ClaimStatus.FRAUD_CONFIRMED,
        }

    def test_string_comparison(self):
        assert ClaimStatus.APPROVED == "approved"


@pytest.mark.unit
class TestFraudRiskLevel:
    """Tests for FraudRiskLevel enum."""

    def test_blocking_levels(self):
        assert PAYMENT_BLOCKING_RISK_LEVELS == {FraudRiskLevel.HIGH, FraudRiskLevel.CONFIRMED}
        assert FraudRiskLevel.MEDIUM not in PAYMENT_BLOCKING_RISK_LEVELS

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            FraudRiskLevel("severe")


@pytest.mark.unit
class TestOtherEnums:
    """Tests for provider, coding and audit enums."""

    def test_code_systems(self):
        assert DiagnosisCodeSystem.ICD10.value == "ICD-10"
        assert DiagnosisCodeSystem.ICD11.value == "ICD-11"
        assert len(DiagnosisCodeSystem) == 2

    def test_approval_statuses(self):
        assert ApprovalStatus("suspended") == ApprovalStatus.SUSPENDED
        assert ApprovalStatus.APPROVED.value == "approved"

    def test_audit_event_types(self):
        assert AuditEventType.LEDGER_COMMITTED.value == "ledger_committed"
        assert len(AuditEventType) == 11
