"""
Configuration Management for Ledger Core

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The core itself has very few knobs - metadata bounds and audit behaviour -
but they are validated at startup like everything else.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Limits applied to transactions."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    max_metadata_entries: int = Field(
        default=32,
        ge=0,
        le=1024,
        description="Maximum number of metadata pairs on one transaction"
    )
    max_metadata_key_length: int = Field(
        default=64,
        ge=1,
        description="Maximum length of a metadata key"
    )
    max_metadata_value_length: int = Field(
        default=512,
        ge=0,
        description="Maximum length of a metadata value"
    )


class AuditSettings(BaseSettings):
    """Audit trail configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Emit audit events for ledger operations"
    )
    persist_events: bool = Field(
        default=True,
        description="Append audit events to audit storage (not only the local log)"
    )

    @model_validator(mode='after')
    def validate_persistence(self) -> 'AuditSettings':
        """Persisting makes no sense while auditing is switched off."""
        if self.persist_events and not self.enabled:
            self.persist_events = False
        return self


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def audit(self) -> AuditSettings:
        return AuditSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" key carrying the message for each failing section.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "audit"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
