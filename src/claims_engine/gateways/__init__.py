"""
External collaborator gateways.

Provides:
- ProviderDirectory: institution/personnel approval facts
- BenefitsDirectory: benefit limits and waiting periods
- PaymentGateway: disbursement
- ClaimNotifier: terminal-status notifications
"""

from claims_engine.gateways.base import (
    GatewayConfig,
    GatewayError,
    PaymentDeclinedError,
    ProviderUnavailableError,
    with_retry,
)
from claims_engine.gateways.benefits_directory import (
    BenefitsDirectory,
    InMemoryBenefitsDirectory,
)
from claims_engine.gateways.notification_gateway import (
    ClaimNotifier,
    LoggingNotifier,
    RecordingNotifier,
)
from claims_engine.gateways.payment_gateway import DemoPaymentGateway, PaymentGateway
from claims_engine.gateways.provider_directory import (
    InMemoryProviderDirectory,
    ProviderDirectory,
)

__all__ = [
    "GatewayConfig",
    "GatewayError",
    "PaymentDeclinedError",
    "ProviderUnavailableError",
    "with_retry",
    "BenefitsDirectory",
    "InMemoryBenefitsDirectory",
    "ClaimNotifier",
    "LoggingNotifier",
    "RecordingNotifier",
    "DemoPaymentGateway",
    "PaymentGateway",
    "InMemoryProviderDirectory",
    "ProviderDirectory",
]
