"""
Claims adjudication services.

Provides:
- ClaimsAdjudicationEngine: the exposed claim operations
- Component services: intake, provider verification, fraud assessment,
  benefit ledger, state machine, payment gate, audit trail
"""

from claims_engine.services.adjudication_engine import (
    ClaimsAdjudicationEngine,
    create_adjudication_engine,
    generate_tracking_number,
)
from claims_engine.services.audit_trail import AuditTrailRecorder
from claims_engine.services.benefit_ledger import BenefitUtilizationLedger
from claims_engine.services.claim_intake import ClaimIntakeValidator, normalize_code_system
from claims_engine.services.claim_state_machine import (
    ClaimStateMachine,
    LedgerEffect,
    TransitionEvent,
    get_claim_state_machine,
)
from claims_engine.services.fraud_assessor import FraudRiskAssessor
from claims_engine.services.payment_gate import PaymentAuthorizationGate
from claims_engine.services.provider_verification import ProviderVerificationGate

__all__ = [
    "ClaimsAdjudicationEngine",
    "create_adjudication_engine",
    "generate_tracking_number",
    "AuditTrailRecorder",
    "BenefitUtilizationLedger",
    "ClaimIntakeValidator",
    "normalize_code_system",
    "ClaimStateMachine",
    "LedgerEffect",
    "TransitionEvent",
    "get_claim_state_machine",
    "FraudRiskAssessor",
    "PaymentAuthorizationGate",
    "ProviderVerificationGate",
]
