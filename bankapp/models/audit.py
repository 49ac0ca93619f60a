"""
Audit Models for bankapp

Every operation on the account directory is logged for audit purposes.
This provides:
1. Traceability of every balance change
2. Debugging information when an operation is rejected
3. A history that survives even if the account collection is replaced

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Lifecycle
    STORAGE_LOADED = "storage_loaded"
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_REMOVED = "account_removed"
    ACCOUNTS_CLEARED = "accounts_cleared"

    # Balance changes
    DEPOSIT_COMPLETED = "deposit_completed"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    TRANSFER_COMPLETED = "transfer_completed"
    INTEREST_APPLIED = "interest_applied"

    # Import / export
    SNAPSHOT_EXPORTED = "snapshot_exported"
    SNAPSHOT_IMPORTED = "snapshot_imported"

    # Failures
    OPERATION_REJECTED = "operation_rejected"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every directory operation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # The account this is about, if any
    account_id: Optional[UUID] = Field(
        default=None,
        description="Primary account the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "account_id": str(self.account_id) if self.account_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, account_id,
         correlation_id, description, details_json, error_code, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.account_id) if self.account_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.account_created(account_id, name, "savings", "100")
        event = AuditEventBuilder.operation_rejected("withdraw", error, account_id)

    Amounts are passed as strings so decimals survive JSON logging.
    """

    @staticmethod
    def storage_loaded(account_count: int, key: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_LOADED,
            description=f"Loaded {account_count} accounts from storage",
            details={
                "account_count": account_count,
                "key": key,
            },
        )

    @staticmethod
    def account_created(
        account_id: UUID,
        name: str,
        account_type: str,
        currency: str,
        initial_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            account_id=account_id,
            description=f"Account created: {name} ({account_type})",
            details={
                "name": name,
                "account_type": account_type,
                "currency": currency,
                "initial_balance": initial_balance,
            },
        )

    @staticmethod
    def account_removed(account_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_REMOVED,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            description=f"Account removed: {name}",
            details={"name": name},
        )

    @staticmethod
    def accounts_cleared(account_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNTS_CLEARED,
            severity=AuditSeverity.WARNING,
            description=f"All {account_count} accounts cleared",
            details={"account_count": account_count},
        )

    @staticmethod
    def deposit_completed(account_id: UUID, amount: str, balance: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEPOSIT_COMPLETED,
            account_id=account_id,
            description=f"Deposit of {amount}",
            details={
                "amount": amount,
                "balance_after": balance,
            },
        )

    @staticmethod
    def withdrawal_completed(account_id: UUID, amount: str, balance: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WITHDRAWAL_COMPLETED,
            account_id=account_id,
            description=f"Withdrawal of {amount}",
            details={
                "amount": amount,
                "balance_after": balance,
            },
        )

    @staticmethod
    def transfer_completed(
        from_account_id: UUID,
        to_account_id: UUID,
        amount: str,
        from_balance: str,
        to_balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            account_id=from_account_id,
            correlation_id=correlation_id,
            description=f"Transfer of {amount} to {to_account_id}",
            details={
                "to_account_id": str(to_account_id),
                "amount": amount,
                "from_balance_after": from_balance,
                "to_balance_after": to_balance,
            },
        )

    @staticmethod
    def interest_applied(
        account_id: UUID,
        amount: str,
        balance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEREST_APPLIED,
            account_id=account_id,
            correlation_id=correlation_id,
            description=f"Interest of {amount} credited",
            details={
                "amount": amount,
                "balance_after": balance,
            },
        )

    @staticmethod
    def snapshot_exported(account_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            description=f"Exported snapshot with {account_count} accounts",
            details={"account_count": account_count},
        )

    @staticmethod
    def snapshot_imported(
        imported_count: int,
        replace: bool,
        warnings: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            severity=AuditSeverity.WARNING if warnings else AuditSeverity.INFO,
            description=(
                f"Imported {imported_count} accounts "
                f"({'replace' if replace else 'merge'}, {len(warnings)} warnings)"
            ),
            details={
                "imported_count": imported_count,
                "replace": replace,
                "warnings": warnings,
            },
        )

    @staticmethod
    def operation_rejected(
        operation: str,
        error: Exception,
        account_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            account_id=account_id,
            description=f"{operation.capitalize()} rejected: {type(error).__name__}",
            error_code=type(error).__name__,
            error_message=str(error),
            details={"operation": operation, **(details or {})},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
