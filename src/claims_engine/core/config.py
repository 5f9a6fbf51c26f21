"""
Adjudication Engine Configuration
Engine-specific settings for claims adjudication and disbursement.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from claims_engine.core.enums import ProviderReverificationPolicy, StorageBackend


class AdjudicationSettings(BaseSettings):
    """
    Claims adjudication configuration settings.

    All settings are read from the environment with the CLAIMS_ prefix,
    e.g. CLAIMS_STORAGE_BACKEND=database.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="CLAIMS_",
    )

    # =========================================================================
    # Storage
    # =========================================================================
    STORAGE_BACKEND: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Claim storage implementation: memory or database",
    )

    # =========================================================================
    # Trust Policy
    # =========================================================================
    PROVIDER_REVERIFICATION: ProviderReverificationPolicy = Field(
        default=ProviderReverificationPolicy.SNAPSHOT,
        description=(
            "snapshot: provider trust is evaluated at intake only; "
            "at_payment: the payment gate re-checks current provider approval"
        ),
    )

    # =========================================================================
    # Intake Validation
    # =========================================================================
    DIAGNOSIS_CODE_MIN_LENGTH: int = Field(default=3, ge=1)
    DIAGNOSIS_CODE_MAX_LENGTH: int = Field(default=50, ge=1)
    MAX_PROCEDURE_ITEMS: int = Field(default=100, ge=1)

    # =========================================================================
    # Disbursement
    # =========================================================================
    CURRENCY: str = Field(default="USD", min_length=3, max_length=3)
    PAYMENT_RETRY_ATTEMPTS: int = Field(default=3, ge=1)
    PAYMENT_RETRY_DELAY_SECONDS: float = Field(default=1.0, ge=0.0)
    PAYMENT_RETRY_BACKOFF: float = Field(default=2.0, ge=1.0)

    @field_validator("CURRENCY")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case (ISO 4217)."""
        return v.upper()

    @property
    def reverify_at_payment(self) -> bool:
        """Check if the payment gate re-evaluates provider trust."""
        return self.PROVIDER_REVERIFICATION == ProviderReverificationPolicy.AT_PAYMENT

    @property
    def uses_database(self) -> bool:
        """Check if claims are persisted through SQLAlchemy."""
        return self.STORAGE_BACKEND == StorageBackend.DATABASE


# Singleton instance
_adjudication_settings: Optional[AdjudicationSettings] = None


def get_adjudication_settings() -> AdjudicationSettings:
    """
    Get cached adjudication settings instance.

    Returns:
        AdjudicationSettings instance
    """
    global _adjudication_settings
    if _adjudication_settings is None:
        _adjudication_settings = AdjudicationSettings()
    return _adjudication_settings
