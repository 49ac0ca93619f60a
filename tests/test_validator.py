"""Tests for two-stage snapshot validation."""

import json
from decimal import Decimal

import pytest

from bankapp.models.account import Account, AccountType, Currency
from bankapp.models.snapshot import ValidationIssue, ValidationResult, dump_accounts
from bankapp.validation import SnapshotValidator


@pytest.fixture
def validator() -> SnapshotValidator:
    return SnapshotValidator()


def account_dict(**overrides) -> dict:
    account = Account(name="Alice", account_type=AccountType.SAVINGS, currency=Currency.SEK)
    data = json.loads(account.model_dump_json())
    data.update(overrides)
    return data


class TestPayloadValidation:
    """Tests for stage 1: the payload as a whole."""

    @pytest.mark.parametrize("data", [None, "", "  \n "])
    def test_empty_payload(self, validator, data):
        """Test that an empty payload is an error."""
        result = validator.validate(data)
        assert result.has_errors
        assert result.issues[0].issue_type == "empty"

    def test_malformed_json(self, validator):
        """Test that broken JSON is an error with a position."""
        result = validator.validate("[{")
        assert result.has_errors
        assert result.issues[0].issue_type == "malformed"
        assert "line 1" in result.errors[0]

    def test_too_deeply_nested(self, validator):
        """Test that nesting beyond the parser limit is a malformed payload."""
        result = validator.validate("[" * 100000 + "]" * 100000)
        assert result.has_errors
        assert result.issues[0].issue_type == "malformed"

    def test_non_list(self, validator):
        """Test that a JSON object instead of a list is an error."""
        result = validator.validate('{"accounts": []}')
        assert result.issues[0].issue_type == "invalid_structure"
        assert "dict" in result.errors[0]

    def test_empty_list_is_valid(self, validator):
        """Test that [] validates with no issues."""
        result = validator.validate("[]")
        assert not result.has_errors
        assert result.accounts == []
        assert result.issues == []


class TestAccountValidation:
    """Tests for stage 2: each entry."""

    def test_valid_accounts_pass(self, validator):
        """Test that exported accounts validate cleanly."""
        accounts = [
            Account(name="Alice", account_type=AccountType.SAVINGS, currency=Currency.SEK),
            Account(name="Bob", account_type=AccountType.DEPOSIT, currency=Currency.USD),
        ]
        result = validator.validate(dump_accounts(accounts))
        assert [a.id for a in result.accounts] == [a.id for a in accounts]
        assert result.issues == []

    def test_non_object_entry_skipped(self, validator):
        """Test that a non-object entry is skipped with a warning."""
        result = validator.validate(json.dumps([42, account_dict()]))
        assert len(result.accounts) == 1
        assert result.issues[0].issue_type == "invalid_account"
        assert result.issues[0].severity == "warning"

    def test_schema_violation_skipped(self, validator):
        """Test that an entry failing the schema is reported by field."""
        result = validator.validate(json.dumps([account_dict(currency="GBP")]))
        assert result.accounts == []
        assert not result.has_errors
        assert result.issues[0].field == "accounts[0].currency"
        assert "Alice" in result.warnings[0]

    def test_duplicate_in_payload_keeps_first(self, validator):
        """Test that a repeated id keeps the first occurrence."""
        first = account_dict(name="First")
        second = dict(first, name="Second")
        result = validator.validate(json.dumps([first, second]))
        assert [a.name for a in result.accounts] == ["First"]
        assert result.issues[0].issue_type == "duplicate_id"

    def test_existing_ids_skipped(self, validator):
        """Test that ids already in the directory are skipped."""
        entry = account_dict()
        account_id = Account.model_validate(entry).id
        result = validator.validate(json.dumps([entry]), existing_ids=[account_id])
        assert result.accounts == []
        assert result.issues[0].issue_type == "already_exists"


class TestConsistencyChecks:
    """Tests for suspicious but importable accounts."""

    def test_negative_balance_warned_but_kept(self, validator):
        """Test that a negative balance is flagged and still imported."""
        result = validator.validate(json.dumps([account_dict(balance="-5")]))
        assert len(result.accounts) == 1
        assert result.accounts[0].balance == Decimal("-5")
        assert [i.issue_type for i in result.issues] == ["negative_balance"]

    def test_history_mismatch_warned(self, validator):
        """Test that a balance disagreeing with the last transaction is flagged."""
        account = Account(name="Alice", account_type=AccountType.DEPOSIT, currency=Currency.SEK)
        account.deposit(10)
        data = json.loads(account.model_dump_json())
        data["balance"] = "11"

        result = validator.validate(json.dumps([data]))

        assert len(result.accounts) == 1
        assert [i.issue_type for i in result.issues] == ["history_mismatch"]

    def test_unordered_history_warned(self, validator):
        """Test that out-of-order transactions are flagged."""
        account = Account(name="Alice", account_type=AccountType.DEPOSIT, currency=Currency.SEK)
        account.deposit(10)
        account.deposit(5)
        data = json.loads(account.model_dump_json())
        data["transactions"][0]["timestamp"] = "2099-01-01T00:00:00+00:00"

        result = validator.validate(json.dumps([data]))

        assert "unordered_history" in [i.issue_type for i in result.issues]


class TestValidationResult:
    """Tests for the result helpers."""

    def test_counts(self):
        """Test error counting and message lists."""
        result = ValidationResult(issues=[
            ValidationIssue(field="payload", issue_type="empty", message="e", severity="error"),
            ValidationIssue(field="accounts[0]", issue_type="x", message="w", severity="warning"),
        ])
        assert result.has_errors
        assert result.error_count == 1
        assert result.errors == ["e"]
        assert result.warnings == ["w"]

    def test_severity_must_be_known(self):
        """Test that unknown severities are rejected."""
        with pytest.raises(ValueError):
            ValidationIssue(field="f", issue_type="t", message="m", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
