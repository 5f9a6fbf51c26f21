"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from claims_engine.core.config import AdjudicationSettings
from claims_engine.core.enums import ApprovalStatus
from claims_engine.gateways import (
    DemoPaymentGateway,
    InMemoryBenefitsDirectory,
    InMemoryProviderDirectory,
    RecordingNotifier,
)
from claims_engine.schemas import ClaimSubmission, ProcedureItemInput
from claims_engine.services.adjudication_engine import ClaimsAdjudicationEngine
from claims_engine.services.storage import MemoryClaimStore


@pytest.fixture
def adjudication_settings():
    """Settings with no payment retry delay."""
    return AdjudicationSettings(PAYMENT_RETRY_DELAY_SECONDS=0.0)


@pytest.fixture
def ids():
    """Identifiers of the members, benefits and providers used by the fixtures."""
    return {
        "member_id": uuid4(),
        "benefit_id": uuid4(),
        "institution_id": uuid4(),
        "personnel_id": uuid4(),
        "suspended_institution_id": uuid4(),
        "pending_personnel_id": uuid4(),
    }


@pytest.fixture
def provider_directory(ids):
    """One approved institution with approved and pending staff, one suspended institution."""
    directory = InMemoryProviderDirectory()
    directory.register_institution(ids["institution_id"], ApprovalStatus.APPROVED)
    directory.register_institution(ids["suspended_institution_id"], ApprovalStatus.SUSPENDED)
    directory.register_personnel(
        ids["personnel_id"], ids["institution_id"], ApprovalStatus.APPROVED
    )
    directory.register_personnel(
        ids["pending_personnel_id"], ids["institution_id"], ApprovalStatus.PENDING
    )
    return directory


@pytest.fixture
def benefits_directory(ids):
    """$1,000 limit for the fixture member's benefit."""
    directory = InMemoryBenefitsDirectory()
    directory.set_limit(ids["member_id"], ids["benefit_id"], Decimal("1000.00"))
    return directory


@pytest.fixture
def store():
    return MemoryClaimStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def payment_gateway():
    return DemoPaymentGateway()


@pytest.fixture
def engine(
    store,
    provider_directory,
    benefits_directory,
    payment_gateway,
    notifier,
    adjudication_settings,
):
    """Engine over the in-memory store."""
    return ClaimsAdjudicationEngine(
        store=store,
        provider_directory=provider_directory,
        benefits_directory=benefits_directory,
        payment_gateway=payment_gateway,
        notifier=notifier,
        settings=adjudication_settings,
    )


@pytest.fixture
def make_submission(ids):
    """Factory for claim submissions; defaults to a verified $500 claim."""

    def _make(**overrides) -> ClaimSubmission:
        data = {
            "member_id": ids["member_id"],
            "benefit_id": ids["benefit_id"],
            "institution_id": ids["institution_id"],
            "personnel_id": ids["personnel_id"],
            "diagnosis_code": "J45.909",
            "diagnosis_code_system": "ICD-10",
            "diagnosis": "Asthma, uncomplicated",
            "service_date": date(2025, 3, 14),
            "procedure_items": [
                ProcedureItemInput(
                    procedure_code="99213", quantity=1, unit_amount=Decimal("500.00")
                )
            ],
        }
        data.update(overrides)
        return ClaimSubmission(**data)

    return _make


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
