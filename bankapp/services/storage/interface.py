"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep accounts in memory for tests
2. Persist to a local JSON file (the browser local-storage analogue)
3. Persist to Google Sheets
4. Keep the account directory decoupled from where bytes end up

The key-value interface is intentionally tiny. The directory writes the
whole account collection as one serialized blob under a single key, so
get/set of opaque strings is all it needs.
"""

from abc import ABC, abstractmethod
from typing import Optional

from bankapp.models.audit import AuditEvent


class KeyValueStorageInterface(ABC):
    """
    Abstract asynchronous key-value store.

    Values are opaque strings. Any storage implementation
    (memory, file, Google Sheets, ...) must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored value, or None if the key is absent.
            A missing key is never an error.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a value, overwriting any previous value.

        Args:
            key: Storage key
            value: Serialized value

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if the key existed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
