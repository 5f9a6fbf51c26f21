"""
Claim Notification Gateway.

Told about claims that reached a terminal status (paid, rejected,
fraud_confirmed). Template rendering and delivery belong to the
notification subsystem.
"""

import logging
from abc import ABC, abstractmethod

from claims_engine.schemas import ClaimRecord

logger = logging.getLogger(__name__)


class ClaimNotifier(ABC):
    """Terminal-status notification collaborator."""

    @abstractmethod
    async def notify_terminal(self, claim: ClaimRecord) -> None:
        """Announce that a claim reached a terminal status."""


class LoggingNotifier(ClaimNotifier):
    """Writes terminal notifications to the application log."""

    async def notify_terminal(self, claim: ClaimRecord) -> None:
        logger.info(
            f"Claim {claim.tracking_number} reached terminal status "
            f"{claim.status.value} (amount {claim.amount})"
        )


class RecordingNotifier(ClaimNotifier):
    """Keeps notified claims in memory."""

    def __init__(self):
        self.notified: list[ClaimRecord] = []

    async def notify_terminal(self, claim: ClaimRecord) -> None:
        self.notified.append(claim)
