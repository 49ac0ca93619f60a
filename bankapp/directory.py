"""
Account Directory

The application service that owns every account. It:
1. Loads the account collection from key-value storage before first use
2. Looks accounts up by id and delegates to the Account ledger methods
3. Re-persists the WHOLE collection after every successful mutation
4. Notifies subscribers once the new state is durable

Flow of a mutation:
    caller -> directory -> Account method -> persist -> audit -> notify

DESIGN DECISION: All mutations go through one asyncio.Lock. The interest
scheduler runs on its own timeline, and without the lock an interest
round could interleave with a transfer between its ledger update and its
persist. With the lock, every mutation is "update then persist" as one
step from any other caller's point of view.

DESIGN DECISION: Account existence is checked before the amount.
deposit(unknown_id, -5) raises AccountNotFoundError, not InvalidAmountError.

Ledger and storage errors are never swallowed. Ledger errors are audited
as rejected operations and re-raised unchanged; storage errors propagate
untouched.
"""

import asyncio
import inspect
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bankapp.audit import AuditLogger, create_correlation_id
from bankapp.config import InitialBalancePolicy
from bankapp.models.account import (
    Account,
    AccountType,
    AmountLike,
    BankAppError,
    Currency,
    InvalidAmountError,
    LedgerError,
    Transaction,
    TransactionType,
    to_amount,
)
from bankapp.models.snapshot import ValidationIssue, dump_accounts, load_accounts
from bankapp.services.storage import KeyValueStorageInterface
from bankapp.validation import SnapshotValidator


DEFAULT_ACCOUNTS_KEY = "bankapp.accounts"

AccountId = Union[UUID, str]


# =============================================================================
# ERRORS
# =============================================================================

class AccountNotFoundError(BankAppError):
    """Referenced account id does not exist in the directory."""

    def __init__(self, account_id: object):
        self.account_id = account_id
        super().__init__(f"Account with ID {account_id} not found")


class InvalidSnapshotError(BankAppError):
    """Snapshot data is empty, malformed or unparsable."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)


# =============================================================================
# STATE & NOTIFICATIONS
# =============================================================================

class InitializationState(str, Enum):
    """Load state of the directory."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class ChangeKind(str, Enum):
    """What kind of mutation a DirectoryChange describes."""
    CREATED = "created"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    INTEREST = "interest"
    IMPORTED = "imported"
    REMOVED = "removed"
    CLEARED = "cleared"


class DirectoryChange(BaseModel):
    """Published to subscribers after a mutation has been persisted."""
    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    account_ids: tuple[UUID, ...] = ()
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[DirectoryChange], Union[None, Awaitable[None]]]


# =============================================================================
# DIRECTORY
# =============================================================================

class AccountDirectory:
    """
    Owns the account collection and its persistence.

    Every public operation loads the collection first (see ensure_loaded),
    so callers never need to remember to initialize.

    Returned accounts are copies. Holding on to one and mutating the
    directory afterwards does not change the copy.

    Mutations are applied in memory first and then persisted. If the
    storage write fails the StorageError propagates, but the in-memory
    change is kept: the next successful mutation persists it along with
    its own change. Callers that need to know what is durable should
    treat a StorageError as "applied, not yet saved".
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        accounts_key: str = DEFAULT_ACCOUNTS_KEY,
        initial_balance_policy: InitialBalancePolicy = InitialBalancePolicy.NON_NEGATIVE,
        validator: Optional[SnapshotValidator] = None,
        default_currency: Union[Currency, str] = Currency.SEK,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._key = accounts_key
        self._initial_balance_policy = InitialBalancePolicy(initial_balance_policy)
        self._validator = validator or SnapshotValidator()
        self._default_currency = Currency(default_currency)
        self._logger = structlog.get_logger(__name__)

        self._accounts: dict[UUID, Account] = {}
        self._state = InitializationState.UNINITIALIZED
        self._load_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._subscribers: list[Subscriber] = []

    # -------------------------------------------------------------------------
    # Loading & persistence
    # -------------------------------------------------------------------------

    @property
    def state(self) -> InitializationState:
        return self._state

    @property
    def accounts_key(self) -> str:
        return self._key

    async def ensure_loaded(self) -> InitializationState:
        """
        Load the account collection from storage, once.

        Concurrent callers wait for the same load. A missing key means an
        empty collection. If loading fails the state goes back to
        UNINITIALIZED so the next call retries.

        Raises:
            InvalidSnapshotError: stored data cannot be parsed
            StorageError: the backend could not be read
        """
        if self._state == InitializationState.READY:
            return self._state

        async with self._load_lock:
            if self._state == InitializationState.READY:
                return self._state

            self._state = InitializationState.LOADING
            try:
                raw = await self._storage.get(self._key)
                accounts = load_accounts(raw) if raw and raw.strip() else []
            except ValidationError as e:
                self._state = InitializationState.UNINITIALIZED
                await self._audit.log_error(
                    error_type="corrupt_storage",
                    error_message=str(e),
                    details={"key": self._key},
                )
                raise InvalidSnapshotError(
                    f"Stored account data under {self._key!r} could not be parsed: "
                    f"{e.error_count()} validation errors"
                ) from e
            except BaseException:
                self._state = InitializationState.UNINITIALIZED
                raise

            self._accounts = {}
            for account in accounts:
                if account.id in self._accounts:
                    self._logger.warning(
                        "duplicate_account_in_storage",
                        account_id=str(account.id),
                    )
                    continue
                self._accounts[account.id] = account

            self._state = InitializationState.READY

        await self._audit.log_storage_loaded(len(self._accounts), self._key)
        return self._state

    async def _persist(self) -> None:
        """Write the whole collection under the accounts key."""
        payload = dump_accounts(self._accounts.values())
        await self._storage.set(self._key, payload)
        self._logger.debug(
            "accounts_persisted",
            key=self._key,
            account_count=len(self._accounts),
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register an observer of persisted changes.

        The callback may be a plain function or a coroutine function.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _publish(self, kind: ChangeKind, account_ids: tuple[UUID, ...] = ()) -> None:
        """Deliver a change to every subscriber. A failing subscriber is logged and skipped."""
        change = DirectoryChange(kind=kind, account_ids=account_ids)
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._logger.exception(
                    "subscriber_failed",
                    kind=kind.value,
                    subscriber=getattr(callback, "__qualname__", repr(callback)),
                )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _find(self, account_id: AccountId) -> Optional[Account]:
        if isinstance(account_id, UUID):
            return self._accounts.get(account_id)
        try:
            return self._accounts.get(UUID(str(account_id)))
        except ValueError:
            return None

    async def _lookup(self, account_id: AccountId, operation: str) -> Account:
        account = self._find(account_id)
        if account is None:
            error = AccountNotFoundError(account_id)
            await self._audit.log_rejected(operation, error, details={"account_id": str(account_id)})
            raise error
        return account

    async def get_accounts(self) -> list[Account]:
        """All accounts in creation order, as copies."""
        await self.ensure_loaded()
        return [account.model_copy(deep=True) for account in self._accounts.values()]

    async def get_account(self, account_id: AccountId) -> Account:
        """
        One account, as a copy.

        Raises:
            AccountNotFoundError: unknown id
        """
        await self.ensure_loaded()
        account = self._find(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account.model_copy(deep=True)

    async def get_transactions(
        self,
        account_id: AccountId,
        txn_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """Transaction history of one account, oldest first."""
        await self.ensure_loaded()
        account = self._find(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account.history(txn_type)

    # -------------------------------------------------------------------------
    # Account lifecycle
    # -------------------------------------------------------------------------

    def _check_initial_balance(self, initial_balance: AmountLike) -> Decimal:
        balance = to_amount(initial_balance)
        if self._initial_balance_policy == InitialBalancePolicy.POSITIVE and balance <= 0:
            raise InvalidAmountError(initial_balance, f"Initial balance must be positive, got {initial_balance!r}")
        if balance < 0:
            raise InvalidAmountError(initial_balance, f"Initial balance cannot be negative, got {initial_balance!r}")
        return balance

    async def create_account(
        self,
        name: str,
        account_type: Union[AccountType, str],
        currency: Union[Currency, str, None] = None,
        initial_balance: AmountLike = 0,
        interest_rate: Optional[AmountLike] = None,
    ) -> Account:
        """
        Open a new account and persist it.

        currency defaults to the directory's default currency.
        The interest rate is dropped unless the account is a savings account.
        The opening balance is not recorded as a transaction.

        Raises:
            InvalidAmountError: initial balance violates the configured policy
            ValueError: invalid name, type, currency or interest rate
            StorageError: persisting failed; the account stays registered in memory
        """
        await self.ensure_loaded()

        account_type = AccountType(account_type)
        if account_type != AccountType.SAVINGS:
            interest_rate = None

        try:
            balance = self._check_initial_balance(initial_balance)
            rate = to_amount(interest_rate) if interest_rate is not None else None
        except LedgerError as e:
            await self._audit.log_rejected("create_account", e, details={"name": name})
            raise

        account = Account(
            name=name,
            account_type=account_type,
            currency=currency if currency is not None else self._default_currency,
            balance=balance,
            interest_rate=rate,
        )

        async with self._write_lock:
            self._accounts[account.id] = account
            await self._persist()
            created = account.model_copy(deep=True)

        await self._audit.log_account_created(
            account_id=account.id,
            name=account.name,
            account_type=account.account_type.value,
            currency=account.currency.value,
            initial_balance=str(account.balance),
        )
        await self._publish(ChangeKind.CREATED, (account.id,))
        return created

    async def remove_account(self, account_id: AccountId) -> Account:
        """
        Delete one account and persist.

        Returns:
            The removed account

        Raises:
            AccountNotFoundError: unknown id
            StorageError: persisting failed; the account is already removed in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            account = await self._lookup(account_id, "remove_account")
            del self._accounts[account.id]
            await self._persist()

        await self._audit.log_account_removed(account.id, account.name)
        await self._publish(ChangeKind.REMOVED, (account.id,))
        return account

    async def clear(self) -> int:
        """
        Delete every account and persist the empty collection.

        Returns:
            Number of accounts removed

        Raises:
            StorageError: persisting failed; the accounts are already cleared in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            removed = tuple(self._accounts)
            self._accounts = {}
            await self._persist()

        await self._audit.log_accounts_cleared(len(removed))
        await self._publish(ChangeKind.CLEARED, removed)
        return len(removed)

    # -------------------------------------------------------------------------
    # Balance operations
    # -------------------------------------------------------------------------

    async def deposit(self, account_id: AccountId, amount: AmountLike) -> Account:
        """
        Credit an account and persist.

        Raises:
            AccountNotFoundError: unknown id
            InvalidAmountError: amount <= 0
            StorageError: persisting failed; the deposit is kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            account = await self._lookup(account_id, "deposit")
            try:
                txn = account.deposit(amount)
            except LedgerError as e:
                await self._audit.log_rejected("deposit", e, account_id=account.id)
                raise
            await self._persist()
            updated = account.model_copy(deep=True)

        await self._audit.log_deposit(account.id, str(txn.amount), str(txn.balance_after))
        await self._publish(ChangeKind.DEPOSIT, (account.id,))
        return updated

    async def withdraw(self, account_id: AccountId, amount: AmountLike) -> Account:
        """
        Debit an account and persist.

        Raises:
            AccountNotFoundError: unknown id
            InvalidAmountError: amount <= 0
            InsufficientFundsError: amount > balance
            StorageError: persisting failed; the withdrawal is kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            account = await self._lookup(account_id, "withdraw")
            try:
                txn = account.withdraw(amount)
            except LedgerError as e:
                await self._audit.log_rejected("withdraw", e, account_id=account.id)
                raise
            await self._persist()
            updated = account.model_copy(deep=True)

        await self._audit.log_withdrawal(account.id, str(txn.amount), str(txn.balance_after))
        await self._publish(ChangeKind.WITHDRAW, (account.id,))
        return updated

    async def transfer(
        self,
        from_account_id: AccountId,
        to_account_id: AccountId,
        amount: AmountLike,
    ) -> tuple[Account, Account]:
        """
        Move money between two accounts and persist both sides at once.

        Returns:
            (source account, target account) after the transfer

        Raises:
            AccountNotFoundError: either id is unknown (source checked first)
            InvalidTargetError: source and target are the same account
            InvalidAmountError: amount <= 0
            InsufficientFundsError: amount > source balance
            StorageError: persisting failed; both sides are kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            source = await self._lookup(from_account_id, "transfer")
            target = await self._lookup(to_account_id, "transfer")
            try:
                out_txn, in_txn = source.transfer_to(target, amount)
            except LedgerError as e:
                await self._audit.log_rejected(
                    "transfer", e, account_id=source.id,
                    details={"to_account_id": str(target.id)},
                )
                raise
            await self._persist()
            result = source.model_copy(deep=True), target.model_copy(deep=True)

        await self._audit.log_transfer(
            from_account_id=source.id,
            to_account_id=target.id,
            amount=str(out_txn.amount),
            from_balance=str(out_txn.balance_after),
            to_balance=str(in_txn.balance_after),
        )
        await self._publish(ChangeKind.TRANSFER, (source.id, target.id))
        return result

    async def apply_interest(self, account_id: AccountId) -> Decimal:
        """
        Credit one period of interest on one account.

        Nothing is persisted or published when no interest is due.

        Returns:
            The credited amount (Decimal("0") for non-savings accounts)

        Raises:
            AccountNotFoundError: unknown id
            StorageError: persisting failed; the interest is kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            account = await self._lookup(account_id, "apply_interest")
            credited = account.apply_interest()
            balance = account.balance
            if credited > 0:
                await self._persist()

        if credited > 0:
            await self._audit.log_interest(account.id, str(credited), str(balance))
            await self._publish(ChangeKind.INTEREST, (account.id,))
        return credited

    async def apply_interest_to_all(self) -> dict[UUID, Decimal]:
        """
        Credit interest on every savings account, persisting once.

        Returns:
            {account_id: credited} for the accounts that received interest

        Raises:
            StorageError: persisting failed; the credits are kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            credited: dict[UUID, Decimal] = {}
            balances: dict[UUID, Decimal] = {}
            for account in self._accounts.values():
                if not account.is_savings:
                    continue
                amount = account.apply_interest()
                if amount > 0:
                    credited[account.id] = amount
                    balances[account.id] = account.balance
            if credited:
                await self._persist()

        if credited:
            correlation_id = create_correlation_id()
            for account_id, amount in credited.items():
                await self._audit.log_interest(
                    account_id,
                    str(amount),
                    str(balances[account_id]),
                    correlation_id=correlation_id,
                )
            await self._publish(ChangeKind.INTEREST, tuple(credited))
        return credited

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    async def export_snapshot(self, indent: Optional[int] = 2) -> str:
        """Serialize every account, with full transaction history, to JSON text."""
        await self.ensure_loaded()
        snapshot = dump_accounts(self._accounts.values(), indent=indent)
        await self._audit.log_snapshot_exported(len(self._accounts))
        return snapshot

    async def import_snapshot(self, data: Optional[str], replace: bool = False) -> list[str]:
        """
        Adopt accounts from snapshot JSON text and persist.

        Args:
            data: Snapshot text as produced by export_snapshot()
            replace: True discards all current accounts first. False merges,
                    skipping imported accounts whose id already exists.

        Returns:
            Human-readable warnings (skipped duplicates, invalid entries,
            inconsistent histories). Never raised as errors.

        Raises:
            InvalidSnapshotError: data is empty or not a JSON list
            StorageError: persisting failed; the imported accounts are kept in memory
        """
        await self.ensure_loaded()
        async with self._write_lock:
            existing = () if replace else tuple(self._accounts)
            result = self._validator.validate(data, existing_ids=existing)

            if result.has_errors:
                error = InvalidSnapshotError("; ".join(result.errors), issues=result.issues)
                await self._audit.log_rejected("import_snapshot", error, details={"replace": replace})
                raise error

            if replace:
                self._accounts = {account.id: account for account in result.accounts}
            else:
                for account in result.accounts:
                    self._accounts[account.id] = account
            await self._persist()

        warnings = result.warnings
        await self._audit.log_snapshot_imported(len(result.accounts), replace, warnings)
        await self._publish(ChangeKind.IMPORTED, tuple(a.id for a in result.accounts))
        return warnings
