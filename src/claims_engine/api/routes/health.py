"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter, Depends

from claims_engine.api.deps import get_adjudication_engine
from claims_engine.db.connection import check_db_connection
from claims_engine.services.adjudication_engine import ClaimsAdjudicationEngine
from claims_engine.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "claims-adjudication-engine",
    }


@router.get("/health/detailed")
async def detailed_health_check(
    engine: ClaimsAdjudicationEngine = Depends(get_adjudication_engine),
) -> dict[str, Any]:
    """
    Detailed health check with storage status.

    The database is only probed when it backs the claim store.
    """
    checks: dict[str, str] = {"storage_backend": engine.store.backend_name}

    if engine.settings.uses_database:
        db_healthy = await check_db_connection()
        checks["database"] = "healthy" if db_healthy else "unhealthy"
    else:
        db_healthy = True

    overall_status = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        logger.warning("Detailed health check failed: database unreachable")

    return {
        "status": overall_status,
        "service": "claims-adjudication-engine",
        "checks": checks,
    }
