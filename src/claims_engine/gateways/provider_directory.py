"""
Provider Directory Gateway.

Read-only view of medical institution and personnel approval status. The
records themselves are owned by the provider management subsystem.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from claims_engine.core.enums import ApprovalStatus

logger = logging.getLogger(__name__)


class ProviderDirectory(ABC):
    """Approval facts for institutions and personnel."""

    @abstractmethod
    async def get_institution_approval_status(
        self, institution_id: UUID
    ) -> Optional[ApprovalStatus]:
        """Current approval status, or None if the institution is unknown."""

    @abstractmethod
    async def get_personnel_approval_status(
        self, personnel_id: UUID
    ) -> Optional[ApprovalStatus]:
        """Current approval status, or None if the person is unknown."""

    @abstractmethod
    async def get_personnel_institution(self, personnel_id: UUID) -> Optional[UUID]:
        """Institution the person is affiliated with."""


class InMemoryProviderDirectory(ProviderDirectory):
    """Dictionary-backed provider directory for tests and demos."""

    def __init__(self):
        self._institutions: dict[UUID, ApprovalStatus] = {}
        self._personnel: dict[UUID, tuple[UUID, ApprovalStatus]] = {}

    def register_institution(
        self,
        institution_id: UUID,
        status: ApprovalStatus = ApprovalStatus.APPROVED,
    ) -> None:
        self._institutions[institution_id] = status

    def register_personnel(
        self,
        personnel_id: UUID,
        institution_id: UUID,
        status: ApprovalStatus = ApprovalStatus.APPROVED,
    ) -> None:
        self._personnel[personnel_id] = (institution_id, status)

    def set_institution_status(self, institution_id: UUID, status: ApprovalStatus) -> None:
        """Change an institution's approval, e.g. a suspension after intake."""
        if institution_id not in self._institutions:
            raise KeyError(f"Unknown institution {institution_id}")
        logger.info(f"Institution {institution_id} status -> {status.value}")
        self._institutions[institution_id] = status

    def set_personnel_status(self, personnel_id: UUID, status: ApprovalStatus) -> None:
        institution_id, _ = self._personnel[personnel_id]
        logger.info(f"Personnel {personnel_id} status -> {status.value}")
        self._personnel[personnel_id] = (institution_id, status)

    async def get_institution_approval_status(
        self, institution_id: UUID
    ) -> Optional[ApprovalStatus]:
        return self._institutions.get(institution_id)

    async def get_personnel_approval_status(
        self, personnel_id: UUID
    ) -> Optional[ApprovalStatus]:
        entry = self._personnel.get(personnel_id)
        return entry[1] if entry else None

    async def get_personnel_institution(self, personnel_id: UUID) -> Optional[UUID]:
        entry = self._personnel.get(personnel_id)
        return entry[0] if entry else None
