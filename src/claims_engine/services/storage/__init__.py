"""
Claim storage backends.

The backend is chosen once at process start from CLAIMS_STORAGE_BACKEND.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from claims_engine.core.config import AdjudicationSettings, get_adjudication_settings
from claims_engine.services.storage.base import ClaimStore, StoreTransaction
from claims_engine.services.storage.database import DatabaseClaimStore
from claims_engine.services.storage.memory import MemoryClaimStore

logger = logging.getLogger(__name__)


def create_claim_store(
    settings: Optional[AdjudicationSettings] = None,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> ClaimStore:
    """
    Build the configured claim store.

    Args:
        settings: Adjudication settings (defaults to the cached instance)
        session_maker: Session maker for the database backend; the global
            one is used when omitted

    Returns:
        ClaimStore implementation
    """
    settings = settings or get_adjudication_settings()

    if settings.uses_database:
        if session_maker is None:
            from claims_engine.db.connection import get_session_maker

            session_maker = get_session_maker()
        store: ClaimStore = DatabaseClaimStore(session_maker)
    else:
        store = MemoryClaimStore()

    logger.info(f"Claim store initialized: {store.backend_name}")
    return store


__all__ = [
    "ClaimStore",
    "StoreTransaction",
    "MemoryClaimStore",
    "DatabaseClaimStore",
    "create_claim_store",
]
