"""Tests for audit events and the audit logger."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from bankapp.audit import AuditLogger, create_correlation_id
from bankapp.models.account import InsufficientFundsError
from bankapp.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from bankapp.services.storage import InMemoryAuditStorage, StorageError


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.DEPOSIT_COMPLETED,
            description="Deposit of 10",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row format."""
        account_id = uuid4()
        event = AuditEventBuilder.deposit_completed(account_id, "10", "110")
        row = event.to_sheets_row()

        assert len(row) == 10
        assert row[2] == "deposit_completed"
        assert row[4] == str(account_id)
        assert row[5] == ""

    def test_transfer_event_details(self):
        """Test that one transfer event carries both balances."""
        source, target = uuid4(), uuid4()
        event = AuditEventBuilder.transfer_completed(source, target, "5", "95", "5")

        assert event.account_id == source
        assert event.details["to_account_id"] == str(target)
        assert event.details["to_balance_after"] == "5"

    def test_operation_rejected(self):
        """Test that rejections record the error type and message."""
        account_id = uuid4()
        error = InsufficientFundsError(account_id, 100, 50)
        event = AuditEventBuilder.operation_rejected("withdraw", error, account_id=account_id)

        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "InsufficientFundsError"
        assert event.description == "Withdraw rejected: InsufficientFundsError"
        assert event.details["operation"] == "withdraw"

    def test_snapshot_imported_severity(self):
        """Test that an import with warnings is logged as a warning."""
        clean = AuditEventBuilder.snapshot_imported(2, False, [])
        noisy = AuditEventBuilder.snapshot_imported(1, True, ["skipped one"])

        assert clean.severity == AuditSeverity.INFO
        assert noisy.severity == AuditSeverity.WARNING
        assert noisy.description == "Imported 1 accounts (replace, 1 warnings)"


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_without_storage(self):
        """Test that logging without storage succeeds locally."""
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.accounts_cleared(0)) is True
        assert await logger.recent_events() == []

    @pytest.mark.asyncio
    async def test_persists_events(self):
        """Test that events reach the configured storage."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        await logger.log_interest(uuid4(), "1.00", "101.00", correlation_id=correlation_id)
        await logger.log_snapshot_exported(3)

        events = await logger.recent_events()
        assert [e.event_type for e in events] == [
            AuditEventType.SNAPSHOT_EXPORTED,
            AuditEventType.INTEREST_APPLIED,
        ]
        assert events[1].correlation_id == correlation_id

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_raised(self):
        """Test that a failed audit write never fails the caller."""
        storage = AsyncMock()
        storage.append_event.side_effect = StorageError("sheet unavailable")
        logger = AuditLogger(storage)

        assert await logger.log(AuditEventBuilder.accounts_cleared(1)) is False
        await logger.log_error("unexpected", "boom")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
