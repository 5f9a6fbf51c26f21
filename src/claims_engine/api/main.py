"""
FastAPI Main Application
Entry point for the claims adjudication API server
Source: https://fastapi.tiangolo.com/
"""

from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claims_engine import __version__
from claims_engine.api.config import settings
from claims_engine.api.routes import claims, health, members
from claims_engine.core.config import get_adjudication_settings
from claims_engine.db.connection import close_db_connection, create_tables
from claims_engine.gateways import InMemoryBenefitsDirectory, InMemoryProviderDirectory
from claims_engine.services.adjudication_engine import create_adjudication_engine
from claims_engine.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(
    level=settings.LOG_LEVEL,
    log_file=settings.LOG_FILE,
    json_logs=settings.is_production,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    """
    Application lifespan manager.

    Builds the adjudication engine once; an engine already placed on
    ``app.state`` is kept as is.
    Source: https://fastapi.tiangolo.com/advanced/events/
    """
    # Startup
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")
    logger.info(f"Debug mode: {settings.DEBUG}")

    adjudication_settings = get_adjudication_settings()
    if adjudication_settings.uses_database and settings.DB_CREATE_TABLES:
        await create_tables()

    if getattr(app.state, "engine", None) is None:
        app.state.engine = create_adjudication_engine(
            provider_directory=InMemoryProviderDirectory(),
            benefits_directory=InMemoryBenefitsDirectory(),
            settings=adjudication_settings,
        )
    logger.info(
        f"Adjudication engine ready (storage={app.state.engine.store.backend_name}, "
        f"reverification={adjudication_settings.PROVIDER_REVERIFICATION.value})"
    )

    yield

    # Shutdown
    logger.info("Shutting down application")
    await app.state.engine.store.close()
    if adjudication_settings.uses_database:
        await close_db_connection()
        logger.info("Database connections closed")


app = FastAPI(
    title="Claims Adjudication Engine API",
    description="Claim adjudication and disbursement authorization",
    version=__version__,
    docs_url="/docs" if not settings.is_production else None,  # Disable docs in production
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json" if not settings.is_production else None,
    lifespan=lifespan,
)

# CORS middleware
# Source: https://fastapi.tiangolo.com/tutorial/cors/
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_CREDENTIALS,
    allow_methods=settings.CORS_METHODS,
    allow_headers=settings.CORS_HEADERS,
)

# Include routers
app.include_router(health.router)
app.include_router(claims.router)
app.include_router(members.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Claims Adjudication Engine API",
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "docs": "/docs" if not settings.is_production else "disabled",
    }


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(
        "claims_engine.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


# === Run with uvicorn ===
if __name__ == "__main__":
    run()
