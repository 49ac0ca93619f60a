"""
Snapshot Models

A snapshot is the serialized form of the entire account collection.
The same format is used for:
1. The blob persisted under the accounts key
2. Export / import by the user

Format: a JSON array of accounts. UUIDs and decimals are strings,
datetimes are ISO 8601, enums are their values. Nested transaction
lists are included, so a snapshot round-trips without loss.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, Field, TypeAdapter

from bankapp.models.account import Account


AccountList = TypeAdapter(list[Account])


def dump_accounts(accounts: Iterable[Account], indent: Optional[int] = None) -> str:
    """Serialize accounts to snapshot JSON text."""
    return AccountList.dump_json(list(accounts), indent=indent).decode("utf-8")


def load_accounts(data: str) -> list[Account]:
    """
    Strictly parse snapshot JSON text.

    Raises pydantic.ValidationError on any malformed entry.
    Use SnapshotValidator for lenient, issue-reporting parsing.
    """
    return AccountList.validate_json(data)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single issue found while validating an import payload."""

    field: str = Field(
        ...,
        description="Where the issue is (e.g. 'payload', 'accounts[2].balance')"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g. 'empty', 'malformed', 'duplicate_id')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Result of validating an import payload.

    Errors mean the payload cannot be imported at all.
    Warnings describe accounts that were skipped or look suspicious;
    the remaining accounts can still be imported.
    """

    accounts: list[Account] = Field(
        default_factory=list,
        description="Accounts that passed validation, in payload order"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        """Messages of all warning-level issues."""
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
