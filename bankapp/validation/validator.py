"""
Two-Stage Snapshot Validation

Import payloads come from outside (a file the user picked, a backup,
another device), so they are checked before anything is adopted.

STAGE 1 - PAYLOAD VALIDATION:
- Payload is not empty
- Payload is well-formed JSON
- Payload is a JSON array
Any failure here is an error: nothing can be imported.

STAGE 2 - ACCOUNT VALIDATION (per entry):
- Entry matches the Account schema
- Id is not repeated within the payload
- Id does not collide with an existing account (merge only)
- Balance is not negative
- Last transaction's balance_after matches the balance
- Transactions are in chronological order
Failures here are warnings: the entry is skipped (or kept, for the
consistency checks) and the rest of the import goes ahead.

IMPORTANT: Validation NEVER silently fixes data.
It reports what it found and lets the directory decide.
"""

import json
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import ValidationError

from bankapp.models.account import Account
from bankapp.models.snapshot import ValidationIssue, ValidationResult


class SnapshotValidator:
    """Validates snapshot text through a two-stage pipeline."""

    def _validate_payload(self, data: Optional[str]) -> tuple[Optional[list], list[ValidationIssue]]:
        """
        Stage 1: payload validation.

        Returns: (entries or None, list_of_issues)
        """
        if data is None or not data.strip():
            return None, [ValidationIssue(
                field="payload",
                issue_type="empty",
                message="Import data is empty",
                severity="error",
            )]

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as e:
            return None, [ValidationIssue(
                field="payload",
                issue_type="malformed",
                message=f"Import data is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
                severity="error",
            )]
        except RecursionError:
            return None, [ValidationIssue(
                field="payload",
                issue_type="malformed",
                message="Import data is nested too deeply to parse",
                severity="error",
            )]

        if not isinstance(parsed, list):
            return None, [ValidationIssue(
                field="payload",
                issue_type="invalid_structure",
                message=f"Import data must be a list of accounts, got {type(parsed).__name__}",
                severity="error",
            )]

        return parsed, []

    def _parse_account(self, index: int, entry: Any) -> tuple[Optional[Account], list[ValidationIssue]]:
        field = f"accounts[{index}]"
        if not isinstance(entry, dict):
            return None, [ValidationIssue(
                field=field,
                issue_type="invalid_account",
                message=f"Entry {index} is not an account object and was skipped",
                severity="warning",
            )]
        try:
            return Account.model_validate(entry), []
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            return None, [ValidationIssue(
                field=f"{field}.{location}" if location else field,
                issue_type="invalid_account",
                message=(
                    f"Entry {index} ({entry.get('name', 'unnamed')}) was skipped: "
                    f"{location or 'account'} - {first['msg']}"
                ),
                severity="warning",
            )]

    def _check_consistency(self, index: int, account: Account) -> list[ValidationIssue]:
        """Flag accounts whose state does not add up. They are still imported."""
        issues = []
        field = f"accounts[{index}]"

        if account.balance < 0:
            issues.append(ValidationIssue(
                field=f"{field}.balance",
                issue_type="negative_balance",
                message=f"Account {account.name} ({account.id}) has a negative balance of {account.balance}",
                severity="warning",
            ))

        if account.transactions and account.transactions[-1].balance_after != account.balance:
            issues.append(ValidationIssue(
                field=f"{field}.transactions",
                issue_type="history_mismatch",
                message=(
                    f"Account {account.name} ({account.id}) has balance {account.balance} but its "
                    f"last transaction recorded {account.transactions[-1].balance_after}"
                ),
                severity="warning",
            ))

        timestamps = [t.timestamp for t in account.transactions]
        if any(later < earlier for earlier, later in zip(timestamps, timestamps[1:])):
            issues.append(ValidationIssue(
                field=f"{field}.transactions",
                issue_type="unordered_history",
                message=f"Account {account.name} ({account.id}) has transactions out of chronological order",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        data: Optional[str],
        existing_ids: Iterable[UUID] = (),
    ) -> ValidationResult:
        """
        Run both stages over an import payload.

        Args:
            data: Snapshot JSON text
            existing_ids: Ids already in the directory. Imported accounts
                         with these ids are skipped. Pass nothing when the
                         import replaces the collection.

        Returns:
            ValidationResult with the importable accounts and all issues.
        """
        entries, issues = self._validate_payload(data)
        if entries is None:
            return ValidationResult(issues=issues)

        existing = set(existing_ids)
        seen: set[UUID] = set()
        accounts: list[Account] = []

        for index, entry in enumerate(entries):
            account, entry_issues = self._parse_account(index, entry)
            issues.extend(entry_issues)
            if account is None:
                continue

            if account.id in seen:
                issues.append(ValidationIssue(
                    field=f"accounts[{index}].id",
                    issue_type="duplicate_id",
                    message=f"Account {account.name} ({account.id}) appears more than once in the import; kept the first",
                    severity="warning",
                ))
                continue
            seen.add(account.id)

            if account.id in existing:
                issues.append(ValidationIssue(
                    field=f"accounts[{index}].id",
                    issue_type="already_exists",
                    message=f"Account {account.name} ({account.id}) already exists and was skipped",
                    severity="warning",
                ))
                continue

            issues.extend(self._check_consistency(index, account))
            accounts.append(account)

        return ValidationResult(accounts=accounts, issues=issues)
