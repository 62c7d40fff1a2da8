"""
Configuration Management for Kwik Kash

Every setting comes from the environment (or a local .env file) through
pydantic-settings.

DESIGN DECISION: One settings class per collaborator, each with its own
env prefix, loaded only when first asked for. A session that never
talks to Google Sheets never needs Sheets credentials, and a missing
Gemini key only turns the advisory flows into their fallbacks.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini model used by the advisory agent."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="API key for Google AI Studio"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model that answers the advisory prompts"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Upper bound on tokens per advisory answer"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for advice and forecasts"
    )


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet used by the Google Sheets storage backend."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file (JSON)"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding budget state and audit log"
    )

    state_sheet_name: str = Field(
        default="BudgetState",
        description="Worksheet with one row per (user, record)"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet the audit events are appended to"
    )

    @field_validator('credentials_path')
    @classmethod
    def warn_if_credentials_missing(cls, v: str) -> str:
        """The key file may be mounted after start-up, so only warn."""
        if not Path(v).exists():
            warnings.warn(
                f"Service account key not found at {v}; "
                "Google Sheets storage will fail to connect until it exists."
            )
        return v


class StorageSettings(BaseSettings):
    """Which backend holds the per-user budget records."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Storage backend for budget state"
    )
    data_dir: str = Field(
        default=".kwik_kash_data",
        description="Root directory for the JSON file backend"
    )
    key_prefix: str = Field(
        default="kwik-kash-",
        description="Namespace prefix for persisted record keys"
    )


class AppSettings(BaseSettings):
    """
    Display, validation and reporting knobs.

    Read from plain environment variables and .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Emit DEBUG-level structured logs"
    )

    currency_symbol: str = Field(
        default="₹",
        description="Symbol used in user-facing amounts and prompts"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=500000.0,
        gt=0,
        description="Transactions above this are flagged for a second look"
    )

    # AI snapshot sizing
    recent_transactions_for_ai: int = Field(
        default=30,
        ge=1,
        le=500,
        description="How many recent transactions go into an AI snapshot"
    )

    # Fixed expense timelines
    deadline_window_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Window for the 'upcoming deadlines' alert on EMIs"
    )

    def format_amount(self, amount) -> str:
        """Format an amount with the configured currency symbol."""
        return f"{self.currency_symbol}{float(amount):,.2f}"


class Settings(BaseSettings):
    """
    Entry point to every settings group.

    Each property builds its group on access, so a group that is never
    used is never validated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide Settings instance.

    get_settings.cache_clear() forces a reload (tests change the
    environment between cases).
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load each settings group.

    Returns {group: loaded_ok}, plus "{group}_error" with the message
    for each group that failed. Meant for a start-up health check.
    """
    results = {}
    settings = get_settings()

    for name in ("gemini", "google_sheets", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
