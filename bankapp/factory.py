"""
Application wiring.

Builds storage, audit logging, the account directory and the interest
scheduler from settings. Callers that need a different setup (tests,
embedding in another app) construct the pieces directly instead.
"""

from typing import Optional

from bankapp.audit import AuditLogger, configure_logging
from bankapp.config import Settings, StorageBackend, get_settings
from bankapp.directory import AccountDirectory
from bankapp.scheduler import InterestScheduler
from bankapp.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    JsonFileKeyValueStorage,
    KeyValueStorageInterface,
)


def create_storage(
    settings: Optional[Settings] = None,
) -> tuple[KeyValueStorageInterface, Optional[AuditStorageInterface]]:
    """
    Create the key-value storage and matching audit storage.

    - memory: both in memory
    - file: accounts in the JSON file, audit to the local log only
    - google_sheets: both in the configured spreadsheet

    Returns:
        (key_value_storage, audit_storage or None)
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    if storage_settings.backend == StorageBackend.GOOGLE_SHEETS:
        client = GoogleSheetsClient(settings.google_sheets)
        return GoogleSheetsKeyValueStorage(client), GoogleSheetsAuditStorage(client)

    if storage_settings.backend == StorageBackend.FILE:
        return JsonFileKeyValueStorage(storage_settings.file_path), None

    return InMemoryKeyValueStorage(), InMemoryAuditStorage()


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorageInterface] = None,
) -> tuple[AccountDirectory, InterestScheduler]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use. Defaults to get_settings().
        storage: Overrides the configured key-value backend.

    Returns:
        (account_directory, interest_scheduler) - the scheduler is not started
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging("DEBUG" if app_settings.debug_mode else app_settings.log_level)

    if storage is None:
        storage, audit_storage = create_storage(settings)
    else:
        audit_storage = None

    ledger_settings = settings.ledger
    directory = AccountDirectory(
        storage,
        audit_logger=AuditLogger(audit_storage),
        accounts_key=settings.storage.accounts_key,
        initial_balance_policy=ledger_settings.initial_balance_policy,
        default_currency=ledger_settings.default_currency,
    )
    scheduler = InterestScheduler(
        directory,
        interval_seconds=ledger_settings.interest_interval_seconds,
    )
    return directory, scheduler
