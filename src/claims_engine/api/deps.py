"""
FastAPI Dependencies
Dependency injection for the adjudication engine
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from fastapi import Header, Request

from claims_engine.services.adjudication_engine import ClaimsAdjudicationEngine


def get_adjudication_engine(request: Request) -> ClaimsAdjudicationEngine:
    """
    Engine built once by the application lifespan.

    Args:
        request: Current request

    Returns:
        ClaimsAdjudicationEngine instance
    """
    return request.app.state.engine


async def get_actor_id(x_actor_id: str | None = Header(None)) -> str | None:
    """
    Identity of the caller, recorded on audit entries.

    Authentication happens upstream; the gateway forwards the user id in
    the X-Actor-Id header.
    """
    return x_actor_id
