"""Errors raised by the Ledger Mutator."""

from typing import Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from finance_tracker.models.validation import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LedgerValidationError(LedgerError):
    """
    A precondition failed; nothing was written.

    field names the first failing field, e.g. "amount", "wallet_id" or
    "allocation.amount".
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        errors = [issue for issue in issues if issue.severity == "error"] or issues
        first = errors[0] if errors else None
        self.field: Optional[str] = first.field if first else None
        super().__init__(first.message if first else "Validation failed")

    @classmethod
    def from_pydantic(cls, error: ValidationError) -> "LedgerValidationError":
        """Report malformed input the same way as failed preconditions."""
        issues = []
        for detail in error.errors():
            field = ".".join(
                to_snake(part) if isinstance(part, str) else str(part)
                for part in detail["loc"]
            ) or "input"
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message=detail["msg"],
                severity="error",
            ))
        return cls(issues)


class ReferentialIntegrityError(LedgerError):
    """A delete was refused because other records still point at the target."""

    def __init__(self, message: str, collection: str, record_id: str):
        super().__init__(message)
        self.collection = collection
        self.record_id = record_id
