"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Accounts live in memory by default; a JSON file and Google Sheets are the
persistent backends. All of them are swappable behind the same interface.
"""

from bankapp.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    KeyValueStorageInterface,
    StorageError,
)
from bankapp.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
)
from bankapp.services.storage.json_file import JsonFileKeyValueStorage
from bankapp.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Local implementations
    "InMemoryAuditStorage",
    "InMemoryKeyValueStorage",
    "JsonFileKeyValueStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueStorage",
]
