"""
Configuration Management for the Mitsitsy ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Caps, defaults and the behaviour switches of the ledger services are read once
and validated at startup; services take a LedgerSettings instance so tests can
pass their own.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_CURRENCIES = ("MGA", "EUR", "USD")


class DatabaseSettings(BaseSettings):
    """Local SQLite store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MITSITSY_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="money-tracker.db",
        description="Path to the SQLite database file"
    )
    busy_timeout_ms: int = Field(
        default=30000,
        ge=0,
        description="How long SQLite waits on a locked database"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Connection attempts before giving up"
    )


class LedgerSettings(BaseSettings):
    """
    Ledger behaviour settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="MITSITSY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_custom_accounts: int = Field(
        default=5,
        ge=0,
        description="Maximum number of user-created (non-default) accounts"
    )
    max_custom_categories: int = Field(
        default=10,
        ge=0,
        description="Maximum number of user-created categories"
    )
    default_currency: str = Field(
        default="MGA",
        description="Working currency used until the user picks one"
    )
    transfer_note: str = Field(
        default="Transfer",
        max_length=200,
        description="Note written on both transfer legs when none is given"
    )

    # Behaviour switches for the two documented open questions
    settle_income_items_as_income: bool = Field(
        default=True,
        description=(
            "Materialize income planification items as income transactions. "
            "False reproduces the legacy all-expense settlement."
        )
    )
    require_transfer_funds: bool = Field(
        default=False,
        description="Refuse transfers that would drive the source account negative"
    )

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Only currencies the app can format are accepted."""
        code = v.strip().upper()
        if code not in SUPPORTED_CURRENCIES:
            raise ValueError(
                f"Unsupported currency: {v}. Supported: {', '.join(SUPPORTED_CURRENCIES)}"
            )
        return code


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
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus an
    `<name>_error` entry describing each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("database", "ledger"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
