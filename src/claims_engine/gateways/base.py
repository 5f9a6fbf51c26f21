"""
Base definitions for external collaborator gateways.

The engine only depends on the abstract interfaces in this package; the
in-memory implementations back tests and the demo deployment.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error


class ProviderUnavailableError(GatewayError):
    """Raised when a collaborator is not reachable."""

    pass


class PaymentDeclinedError(GatewayError):
    """Raised when the payment network refuses a disbursement."""

    pass


@dataclass
class GatewayConfig:
    """Retry configuration for a gateway call."""

    retry_attempts: int = 3
    retry_delay_seconds: float = 1.0
    retry_backoff: float = 2.0


def with_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """Decorator for retry logic with exponential backoff."""

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_attempts} failed: {e}. "
                            f"Retrying in {current_delay:.1f}s..."
                        )
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff_factor
                    else:
                        logger.error(
                            f"All {max_attempts} attempts failed. Last error: {e}"
                        )

            raise last_exception

        return wrapper

    return decorator
