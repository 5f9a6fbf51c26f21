"""
Unit tests for the payment authorization gate.

Each negative case isolates one failing condition.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from claims_engine.core.config import AdjudicationSettings
from claims_engine.core.enums import (
    ApprovalStatus,
    ClaimStatus,
    DiagnosisCodeSystem,
    FraudRiskLevel,
)
from claims_engine.core.exceptions import FraudBlockError, PreconditionError
from claims_engine.schemas import ClaimRecord
from claims_engine.services.payment_gate import PaymentAuthorizationGate
from claims_engine.services.provider_verification import ProviderVerificationGate


@pytest.fixture
def make_claim(ids):
    def _make(**overrides) -> ClaimRecord:
        data = {
            "id": uuid4(),
            "tracking_number": "CLM-2025-0A1B2C3D",
            "member_id": ids["member_id"],
            "benefit_id": ids["benefit_id"],
            "institution_id": ids["institution_id"],
            "personnel_id": ids["personnel_id"],
            "diagnosis_code": "J45.909",
            "diagnosis_code_system": DiagnosisCodeSystem.ICD10,
            "service_date": date(2025, 3, 14),
            "amount": Decimal("500.00"),
            "status": ClaimStatus.APPROVED,
            "claim_date": datetime.now(timezone.utc),
            "provider_verified": True,
            "requires_higher_approval": False,
            "version": 2,
        }
        data.update(overrides)
        return ClaimRecord(**data)

    return _make


@pytest.fixture
def gate(provider_directory):
    return PaymentAuthorizationGate(
        ProviderVerificationGate(provider_directory), AdjudicationSettings()
    )


@pytest.fixture
def reverifying_gate(provider_directory):
    return PaymentAuthorizationGate(
        ProviderVerificationGate(provider_directory),
        AdjudicationSettings(PROVIDER_REVERIFICATION="at_payment"),
    )


@pytest.mark.unit
class TestPaymentConditions:
    """One failing condition at a time."""

    @pytest.mark.asyncio
    async def test_all_conditions_met(self, gate, make_claim):
        await gate.check(make_claim())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW, ClaimStatus.REJECTED],
    )
    async def test_status_not_approved(self, gate, make_claim, status):
        with pytest.raises(PreconditionError) as exc_info:
            await gate.check(make_claim(status=status))
        assert exc_info.value.guard == "status"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [ClaimStatus.FRAUD_REVIEW, ClaimStatus.FRAUD_CONFIRMED]
    )
    async def test_fraud_status_is_a_fraud_block(self, gate, make_claim, status):
        with pytest.raises(FraudBlockError) as exc_info:
            await gate.check(make_claim(status=status))
        assert exc_info.value.guard == "status"

    @pytest.mark.asyncio
    async def test_unverified_without_admin_approval(self, gate, make_claim):
        claim = make_claim(provider_verified=False, requires_higher_approval=True)
        with pytest.raises(PreconditionError) as exc_info:
            await gate.check(claim)
        assert exc_info.value.guard == "admin_approval"

    @pytest.mark.asyncio
    async def test_unverified_with_admin_approval(self, gate, make_claim):
        await gate.check(
            make_claim(
                provider_verified=False,
                requires_higher_approval=True,
                approved_by_admin=True,
            )
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", [FraudRiskLevel.HIGH, FraudRiskLevel.CONFIRMED])
    async def test_blocking_risk_level(self, gate, make_claim, level):
        with pytest.raises(FraudBlockError) as exc_info:
            await gate.check(make_claim(fraud_risk_level=level))
        assert exc_info.value.guard == "fraud_risk"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "level", [FraudRiskLevel.NONE, FraudRiskLevel.LOW, FraudRiskLevel.MEDIUM]
    )
    async def test_non_blocking_risk_level(self, gate, make_claim, level):
        await gate.check(make_claim(fraud_risk_level=level))

    @pytest.mark.asyncio
    async def test_admin_approval_checked_before_fraud_risk(self, gate, make_claim):
        claim = make_claim(
            provider_verified=False,
            requires_higher_approval=True,
            fraud_risk_level=FraudRiskLevel.HIGH,
        )
        with pytest.raises(PreconditionError) as exc_info:
            await gate.check(claim)
        assert exc_info.value.guard == "admin_approval"


@pytest.mark.unit
class TestReverification:
    """Provider trust re-checked at payment time."""

    @pytest.mark.asyncio
    async def test_snapshot_policy_ignores_later_suspension(
        self, gate, make_claim, provider_directory, ids
    ):
        provider_directory.set_institution_status(
            ids["institution_id"], ApprovalStatus.SUSPENDED
        )
        await gate.check(make_claim())

    @pytest.mark.asyncio
    async def test_at_payment_policy_refuses_suspended_provider(
        self, reverifying_gate, make_claim, provider_directory, ids
    ):
        provider_directory.set_institution_status(
            ids["institution_id"], ApprovalStatus.SUSPENDED
        )
        with pytest.raises(PreconditionError) as exc_info:
            await reverifying_gate.check(make_claim())
        assert exc_info.value.guard == "provider_reverification"

    @pytest.mark.asyncio
    async def test_admin_approval_overrides_reverification(
        self, reverifying_gate, make_claim, provider_directory, ids
    ):
        provider_directory.set_institution_status(
            ids["institution_id"], ApprovalStatus.SUSPENDED
        )
        await reverifying_gate.check(
            make_claim(
                provider_verified=False,
                requires_higher_approval=True,
                approved_by_admin=True,
            )
        )


@pytest.mark.unit
class TestIsSettled:
    """Repeated payment authorization."""

    def test_unpaid_claim(self, gate, make_claim):
        assert gate.is_settled(make_claim(), "PAY-1") is False

    def test_same_reference(self, gate, make_claim):
        claim = make_claim(status=ClaimStatus.PAID, payment_reference="PAY-1")
        assert gate.is_settled(claim, "PAY-1") is True

    def test_different_reference(self, gate, make_claim):
        claim = make_claim(status=ClaimStatus.PAID, payment_reference="PAY-1")
        with pytest.raises(PreconditionError) as exc_info:
            gate.is_settled(claim, "PAY-2")
        assert exc_info.value.guard == "already_paid"
