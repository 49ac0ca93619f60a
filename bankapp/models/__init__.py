"""
Data Models Package

This package contains all Pydantic models used in bankapp.
All data flowing through the system must conform to these schemas.
"""

from bankapp.models.account import (
    Account,
    AccountType,
    BankAppError,
    Currency,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidTargetError,
    LedgerError,
    Transaction,
    TransactionType,
)
from bankapp.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from bankapp.models.snapshot import (
    ValidationIssue,
    ValidationResult,
    dump_accounts,
    load_accounts,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "Currency",
    "Transaction",
    "TransactionType",
    # Ledger errors
    "BankAppError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidTargetError",
    "LedgerError",
    # Snapshot models
    "ValidationIssue",
    "ValidationResult",
    "dump_accounts",
    "load_accounts",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
