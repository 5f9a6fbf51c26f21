"""
Payment Gateway.

Moves money once the payment gate has cleared a claim. The network
integration lives outside this engine; only the interface and a demo
implementation are provided here.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from uuid import UUID, uuid4

from claims_engine.gateways.base import PaymentDeclinedError, ProviderUnavailableError

logger = logging.getLogger(__name__)


class PaymentGateway(ABC):
    """Disbursement collaborator."""

    @property
    @abstractmethod
    def gateway_name(self) -> str:
        """Name of this gateway for logging."""

    @abstractmethod
    async def disburse(self, claim_id: UUID, amount: Decimal, payee: UUID) -> str:
        """
        Pay ``amount`` to ``payee`` for a claim.

        Returns:
            Payment reference issued by the network

        Raises:
            GatewayError: if the disbursement failed
        """


class DemoPaymentGateway(PaymentGateway):
    """
    In-process payment gateway.

    Issues ``PAY-<hex>`` references and remembers every disbursement. The
    same claim always gets the same reference, as a real network's
    idempotency key would. ``fail_next`` queues transient failures.
    """

    def __init__(self, currency: str = "USD"):
        self.currency = currency
        self.disbursements: dict[UUID, tuple[str, Decimal, UUID]] = {}
        self.fail_next = 0
        self.calls = 0

    @property
    def gateway_name(self) -> str:
        return "demo"

    async def disburse(self, claim_id: UUID, amount: Decimal, payee: UUID) -> str:
        self.calls += 1
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ProviderUnavailableError(
                "Payment network unavailable", provider=self.gateway_name
            )
        if amount <= 0:
            raise PaymentDeclinedError(
                f"Invalid disbursement amount {amount}", provider=self.gateway_name
            )

        if claim_id in self.disbursements:
            return self.disbursements[claim_id][0]

        reference = f"PAY-{uuid4().hex[:12].upper()}"
        self.disbursements[claim_id] = (reference, amount, payee)
        logger.info(
            f"Disbursed {amount} {self.currency} to {payee} for claim {claim_id}: {reference}"
        )
        return reference
