"""Configuration package."""

from bankapp.config.settings import (
    AppSettings,
    GoogleSheetsSettings,
    InitialBalancePolicy,
    LedgerSettings,
    Settings,
    StorageBackend,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GoogleSheetsSettings",
    "InitialBalancePolicy",
    "LedgerSettings",
    "Settings",
    "StorageBackend",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
