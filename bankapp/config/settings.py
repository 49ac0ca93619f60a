"""
Configuration Management for bankapp

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which storage backend and ledger policies are
in effect, and ensures configuration is validated at startup.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(str, Enum):
    """Supported key-value storage backends."""
    MEMORY = "memory"
    FILE = "file"
    GOOGLE_SHEETS = "google_sheets"


class InitialBalancePolicy(str, Enum):
    """
    Rule applied to the opening balance of a new account.

    Observed variants of the app disagree on whether an account may be
    opened empty, so this is a setting rather than a hard rule.
    """
    NON_NEGATIVE = "non_negative"  # 0 allowed
    POSITIVE = "positive"          # must be > 0


class StorageSettings(BaseSettings):
    """Key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BANKAPP_STORAGE_",
        extra="ignore"
    )

    backend: StorageBackend = Field(
        default=StorageBackend.MEMORY,
        description="Which key-value backend holds the account collection"
    )
    accounts_key: str = Field(
        default="bankapp.accounts",
        min_length=1,
        description="Key under which the serialized account collection is stored"
    )
    file_path: Path = Field(
        default=Path("bankapp_storage.json"),
        description="Backing file for the 'file' backend"
    )


class LedgerSettings(BaseSettings):
    """Ledger policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BANKAPP_LEDGER_",
        extra="ignore"
    )

    initial_balance_policy: InitialBalancePolicy = Field(
        default=InitialBalancePolicy.NON_NEGATIVE,
        description="Validation rule for the opening balance"
    )
    interest_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How often the interest scheduler credits savings accounts"
    )
    default_currency: str = Field(
        default="SEK",
        description="Currency preselected for new accounts"
    )

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        """Currency codes are upper-case and must be supported."""
        from bankapp.models.account import Currency

        return Currency(v.strip().upper()).value


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    kv_sheet_name: str = Field(
        default="KeyValue",
        description="Name of the sheet holding key/value rows"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Note: These are loaded lazily so Google Sheets credentials are only
    # required when that backend is selected

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


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

    Returns a dict of {setting_name: is_valid}.
    Google Sheets is only checked when it is the selected backend.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "ledger", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    if results["storage"] and settings.storage.backend == StorageBackend.GOOGLE_SHEETS:
        try:
            _ = settings.google_sheets
            results["google_sheets"] = True
        except Exception as e:
            results["google_sheets"] = False
            results["google_sheets_error"] = str(e)

    return results
