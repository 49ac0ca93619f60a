"""Shared fixtures: an in-memory directory with audit capture."""

import pytest

from bankapp.audit import AuditLogger
from bankapp.directory import AccountDirectory
from bankapp.services.storage import InMemoryAuditStorage, InMemoryKeyValueStorage


@pytest.fixture
def kv_storage() -> InMemoryKeyValueStorage:
    """Empty in-memory key-value store."""
    return InMemoryKeyValueStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    """In-memory audit trail, newest event first."""
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def directory(kv_storage, audit_logger) -> AccountDirectory:
    """Directory over the in-memory store, not yet loaded."""
    return AccountDirectory(kv_storage, audit_logger=audit_logger)
