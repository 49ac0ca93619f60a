"""
Audit Logger

DESIGN DECISION: Every directory operation is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when operations are rejected
3. A trail that survives imports that replace the account collection

The audit logger:
- Is async so it can write to remote storage
- Gracefully handles failures (a failed audit write never fails a deposit)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from bankapp.models.audit import AuditEvent, AuditEventBuilder
from bankapp.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route structlog output to stderr at the given level.

    structlog renders the JSON; the stdlib handler only prints it.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent persisted events, newest first. Empty without storage."""
        if not self._storage:
            return []
        return await self._storage.get_recent_events(limit=limit)

    async def log_storage_loaded(self, account_count: int, key: str) -> None:
        await self.log(AuditEventBuilder.storage_loaded(account_count, key))

    async def log_account_created(
        self,
        account_id: UUID,
        name: str,
        account_type: str,
        currency: str,
        initial_balance: str,
    ) -> None:
        """Log account creation."""
        await self.log(AuditEventBuilder.account_created(
            account_id=account_id,
            name=name,
            account_type=account_type,
            currency=currency,
            initial_balance=initial_balance,
        ))

    async def log_account_removed(self, account_id: UUID, name: str) -> None:
        await self.log(AuditEventBuilder.account_removed(account_id, name))

    async def log_accounts_cleared(self, account_count: int) -> None:
        await self.log(AuditEventBuilder.accounts_cleared(account_count))

    async def log_deposit(self, account_id: UUID, amount: str, balance: str) -> None:
        await self.log(AuditEventBuilder.deposit_completed(account_id, amount, balance))

    async def log_withdrawal(self, account_id: UUID, amount: str, balance: str) -> None:
        await self.log(AuditEventBuilder.withdrawal_completed(account_id, amount, balance))

    async def log_transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: str,
        from_balance: str,
        to_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed transfer (one event covers both sides)."""
        await self.log(AuditEventBuilder.transfer_completed(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
            from_balance=from_balance,
            to_balance=to_balance,
            correlation_id=correlation_id,
        ))

    async def log_interest(
        self,
        account_id: UUID,
        amount: str,
        balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.interest_applied(
            account_id, amount, balance, correlation_id=correlation_id,
        ))

    async def log_snapshot_exported(self, account_count: int) -> None:
        await self.log(AuditEventBuilder.snapshot_exported(account_count))

    async def log_snapshot_imported(
        self,
        imported_count: int,
        replace: bool,
        warnings: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.snapshot_imported(imported_count, replace, warnings))

    async def log_rejected(
        self,
        operation: str,
        error: Exception,
        account_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Log an operation that raised a domain error."""
        await self.log(AuditEventBuilder.operation_rejected(
            operation=operation,
            error=error,
            account_id=account_id,
            details=details,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-account action (e.g. an interest
    round) and pass it to every event it produces.
    """
    return uuid4()
