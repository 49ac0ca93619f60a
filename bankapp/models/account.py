"""
Account Ledger Models

An Account is the ledger for one bank account: identity, balance,
metadata and an append-only transaction log. All balance changes go
through the methods on Account, which:
1. Validate input before touching any state
2. Mutate the balance
3. Append exactly one Transaction per affected account

DESIGN DECISION: A single concrete Account model. There is only one
account behaviour in this domain (savings differ only by the interest
rate), so no account interface/ABC is introduced.

Amounts are Decimal throughout. Floats are accepted at the boundary but
converted through str() so 0.1 stays 0.1.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


AmountLike = Union[Decimal, int, float, str]

INTEREST_QUANTUM = Decimal("0.01")
ZERO = Decimal("0")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ERRORS
# =============================================================================

class BankAppError(Exception):
    """Base exception for all bankapp domain errors."""
    pass


class LedgerError(BankAppError):
    """A ledger operation was rejected. State is unchanged."""
    pass


class InvalidAmountError(LedgerError):
    """Amount is zero, negative or not a number."""

    def __init__(self, amount: object, message: Optional[str] = None):
        self.amount = amount
        super().__init__(message or f"Amount must be positive, got {amount!r}")


class InsufficientFundsError(LedgerError):
    """Debit would take the balance below zero."""

    def __init__(self, account_id: UUID, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"requested {requested}, available {available}"
        )


class InvalidTargetError(LedgerError):
    """Transfer target is missing or is the source account itself."""
    pass


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """
    Supported account types.

    DEPOSIT is the everyday (checking) account. Only SAVINGS accounts
    carry an interest rate.
    """
    SAVINGS = "savings"
    DEPOSIT = "deposit"


class Currency(str, Enum):
    """Supported currencies. No conversion is ever performed."""
    SEK = "SEK"
    EUR = "EUR"
    USD = "USD"


class TransactionType(str, Enum):
    """Kind of balance-affecting event."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    INTEREST = "interest"


# =============================================================================
# AMOUNT PARSING
# =============================================================================

def to_amount(value: AmountLike) -> Decimal:
    """
    Convert caller input to a finite Decimal.

    Raises InvalidAmountError for anything that is not a number.
    Sign is NOT checked here - see require_positive().
    """
    if isinstance(value, bool):
        raise InvalidAmountError(value, "Amount must be a number, got a boolean")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            amount = Decimal(str(value))
        elif isinstance(value, int):
            amount = Decimal(value)
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise InvalidAmountError(value, f"Amount must be a number, got {type(value).__name__}")
    except InvalidOperation:
        raise InvalidAmountError(value, f"Amount is not a valid number: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(value, f"Amount must be finite, got {value!r}")
    return amount


def require_positive(value: AmountLike) -> Decimal:
    """Parse an amount and reject zero or negative values."""
    amount = to_amount(value)
    if amount <= 0:
        raise InvalidAmountError(value)
    return amount


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    Immutable record of one balance-affecting event.

    Account id conventions:
    - DEPOSIT / WITHDRAW: from_account_id is the owning account
    - TRANSFER_OUT / TRANSFER_IN: from = source, to = target (both sides)
    - INTEREST: to_account_id is the owning account
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    from_account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive magnitude of the movement"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the transaction was recorded (UTC)"
    )
    type: TransactionType
    balance_after: Decimal = Field(
        ...,
        description="Owning account's balance right after this entry"
    )


# =============================================================================
# ACCOUNT (the ledger)
# =============================================================================

class Account(BaseModel):
    """
    A bank account and its transaction history.

    Invariants maintained by the mutating methods:
    - balance never goes negative
    - each successful call appends one transaction per affected account
    - transaction.balance_after == balance at the moment of append

    Failed calls raise before anything is changed.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID, assigned at creation"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    account_type: AccountType
    currency: Currency

    # State
    balance: Decimal = Field(
        default=ZERO,
        description="Current balance"
    )
    last_updated: datetime = Field(
        default_factory=utcnow,
        description="Timestamp of the most recent mutation"
    )
    interest_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Interest rate as a fraction (0.01 = 1%), savings only"
    )
    transactions: list[Transaction] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def drop_interest_rate_unless_savings(cls, data: Any) -> Any:
        """
        Only savings accounts carry an interest rate, also when loaded from storage.

        Runs before field validation so a rate that is dropped is never validated.
        """
        if isinstance(data, dict) and data.get("account_type") != AccountType.SAVINGS:
            data = {key: value for key, value in data.items() if key != "interest_rate"}
        return data

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _record(self, txn_type: TransactionType, amount: Decimal, **ids: Optional[UUID]) -> Transaction:
        now = utcnow()
        self.last_updated = now
        txn = Transaction(
            type=txn_type,
            amount=amount,
            balance_after=self.balance,
            timestamp=now,
            **ids,
        )
        self.transactions.append(txn)
        return txn

    def deposit(self, amount: AmountLike) -> Transaction:
        """
        Credit the account.

        Raises:
            InvalidAmountError: amount <= 0
        """
        value = require_positive(amount)
        self.balance += value
        return self._record(TransactionType.DEPOSIT, value, from_account_id=self.id)

    def withdraw(self, amount: AmountLike) -> Transaction:
        """
        Debit the account.

        Raises:
            InvalidAmountError: amount <= 0
            InsufficientFundsError: amount > balance
        """
        value = require_positive(amount)
        if value > self.balance:
            raise InsufficientFundsError(self.id, value, self.balance)
        self.balance -= value
        return self._record(TransactionType.WITHDRAW, value, from_account_id=self.id)

    def transfer_to(
        self,
        target: Optional['Account'],
        amount: AmountLike,
    ) -> tuple[Transaction, Transaction]:
        """
        Move money to another account.

        Both sides are updated before this returns.

        Returns:
            (transfer_out on this account, transfer_in on target)

        Raises:
            InvalidTargetError: target is None or this same account
            InvalidAmountError: amount <= 0
            InsufficientFundsError: amount > balance
        """
        if target is None:
            raise InvalidTargetError("Transfer target account is required")
        if target.id == self.id:
            raise InvalidTargetError(f"Cannot transfer from account {self.id} to itself")
        value = require_positive(amount)
        if value > self.balance:
            raise InsufficientFundsError(self.id, value, self.balance)

        ids = {"from_account_id": self.id, "to_account_id": target.id}

        self.balance -= value
        out_txn = self._record(TransactionType.TRANSFER_OUT, value, **ids)

        target.balance += value
        in_txn = target._record(TransactionType.TRANSFER_IN, value, **ids)

        return out_txn, in_txn

    def apply_interest(self) -> Decimal:
        """
        Credit one period of interest on a savings account.

        interest = balance * interest_rate, rounded to 2 decimals
        half away from zero.

        Returns:
            The credited amount, Decimal("0") when nothing was credited.
        """
        if (
            self.account_type != AccountType.SAVINGS
            or not self.interest_rate
            or self.interest_rate <= 0
            or self.balance <= 0
        ):
            return ZERO

        interest = (self.balance * self.interest_rate).quantize(
            INTEREST_QUANTUM, rounding=ROUND_HALF_UP
        )
        if interest == 0:
            return ZERO

        self.balance += interest
        self._record(TransactionType.INTEREST, interest, to_account_id=self.id)
        return interest

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_savings(self) -> bool:
        return self.account_type == AccountType.SAVINGS

    def history(self, txn_type: Optional[TransactionType] = None) -> list[Transaction]:
        """Read-only view of the transaction log, oldest first."""
        if txn_type is None:
            return list(self.transactions)
        return [t for t in self.transactions if t.type == txn_type]
