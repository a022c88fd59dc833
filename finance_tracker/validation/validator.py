"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Numeric ranges (amount > 0, allocation within the amount, ...)
- No I/O; this catches malformed form input

STAGE 2 - STORE-BACKED VALIDATION:
- The wallet exists and belongs to the user
- The goal exists, belongs to the user and is still open
- This catches stale or foreign references

WHY TWO STAGES:
1. Stage 2 costs reads; there is no point paying for them on bad input
2. Better error messages (know exactly what kind of issue)
3. Stage 1 runs without a store (useful for form-level checks)

Alongside errors, the validator reports non-blocking warnings for input
that is allowed but probably a typo (huge amounts, far-future dates,
categories outside the catalogue).

IMPORTANT: Validation NEVER silently fixes issues.
It reports them against the field they concern.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models import (
    TRANSACTION_CATEGORIES,
    DebtIntent,
    GoalIntent,
    TransactionIntent,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    WalletIntent,
)
from finance_tracker.services.storage import Collections, EntityStoreInterface


def _error(field: str, issue_type: str, message: str, suggested_fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=suggested_fix,
    )


def _warning(field: str, issue_type: str, message: str, suggested_fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=suggested_fix,
    )


def _decimal(value: object) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class LedgerValidator:
    """
    Validates ledger intents through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Reference validation (needs the entity store)
    """

    def __init__(
        self,
        store: Optional[EntityStoreInterface] = None,
        settings: Optional[AppSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            store: Entity store for reference checks.
                   If None, stage 2 is skipped and references_valid is False.
            settings: Thresholds for warnings (defaults to app settings)
        """
        self._store = store
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _validate_transaction_schema(
        self,
        intent: TransactionIntent,
    ) -> list[ValidationIssue]:
        """
        Stage 1 for transactions.

        Checks:
        - amount > 0
        - category, wallet and date present
        - allocation only on income, 0 < allocation <= amount
        - warnings for huge amounts, far-future dates, unknown categories
        """
        issues = []

        if intent.amount <= 0:
            issues.append(_error(
                "amount", "invalid_value",
                "Amount must be greater than zero",
                "Enter a positive amount",
            ))
        elif intent.amount > _decimal(self._settings.large_amount_warning):
            issues.append(_warning(
                "amount", "suspicious_value",
                f"Amount ({intent.amount:,.2f}) seems unusually high",
                "Please verify this amount is correct",
            ))

        if not intent.category:
            issues.append(_error(
                "category", "missing",
                "Category is required",
                "Pick a category",
            ))
        elif intent.category not in TRANSACTION_CATEGORIES[intent.type]:
            issues.append(_warning(
                "category", "uncommon_value",
                f"'{intent.category}' is not a standard {intent.type.value} category",
            ))

        if not intent.wallet_id:
            issues.append(_error(
                "wallet_id", "missing",
                "A wallet is required",
                "Create a wallet first, then pick it here",
            ))

        if intent.date is None:
            issues.append(_error("date", "missing", "Date is required"))
        else:
            now = datetime.now().astimezone()
            when = intent.date if intent.date.tzinfo else intent.date.astimezone()
            if when > now + timedelta(days=self._settings.future_date_tolerance_days):
                issues.append(_warning(
                    "date", "future_date",
                    f"Date ({when.date()}) is far in the future",
                    "Please verify the date is correct",
                ))

        allocation = intent.allocation
        if allocation is not None:
            if intent.type != TransactionType.INCOME:
                issues.append(_error(
                    "allocation", "not_allowed",
                    "Only income can be allocated to a goal",
                ))
            if not allocation.goal_id:
                issues.append(_error(
                    "allocation.goal_id", "missing",
                    "Pick the goal to allocate to",
                ))
            if allocation.amount <= 0:
                issues.append(_error(
                    "allocation.amount", "invalid_value",
                    "Allocated amount must be greater than zero",
                ))
            elif allocation.amount > intent.amount:
                issues.append(_error(
                    "allocation.amount", "exceeds_amount",
                    "Allocated amount cannot exceed the transaction amount",
                    f"Allocate at most {intent.amount:,.2f}",
                ))

        return issues

    async def _validate_transaction_references(
        self,
        intent: TransactionIntent,
    ) -> list[ValidationIssue]:
        """
        Stage 2 for transactions.

        StorageError propagates: a failed lookup is not a validation verdict.
        """
        issues = []

        wallet = await self._store.get(Collections.WALLETS, intent.wallet_id)
        if wallet is None or wallet.get(Collections.OWNER_FIELD) != intent.user_id:
            issues.append(_error(
                "wallet_id", "not_found",
                "Wallet not found",
                "Pick one of your wallets",
            ))

        if intent.allocation is not None:
            goal = await self._store.get(Collections.GOALS, intent.allocation.goal_id)
            if goal is None or goal.get(Collections.OWNER_FIELD) != intent.user_id:
                issues.append(_error(
                    "allocation.goal_id", "not_found",
                    "Goal not found",
                    "Pick one of your goals",
                ))
            elif _decimal(goal.get("savedAmount", 0)) >= _decimal(goal["targetAmount"]):
                issues.append(_error(
                    "allocation.goal_id", "goal_reached",
                    f"Goal '{goal.get('title', '')}' has already reached its target",
                    "Pick a goal that is still open",
                ))

        return issues

    async def validate_transaction(self, intent: TransactionIntent) -> ValidationResult:
        """
        Run full two-stage validation for a transaction.

        Returns:
            ValidationResult with all issues found
        """
        return await self._run(
            self._validate_transaction_schema(intent),
            lambda: self._validate_transaction_references(intent),
        )

    # -------------------------------------------------------------------------
    # Wallets, goals, debts (schema only)
    # -------------------------------------------------------------------------

    def validate_wallet(self, intent: WalletIntent) -> ValidationResult:
        issues = []
        if not intent.name:
            issues.append(_error("name", "missing", "Wallet name is required"))
        if intent.balance is None:
            issues.append(_error(
                "balance", "missing",
                "Balance is required",
                "Enter 0 for an empty wallet",
            ))
        return self._result(issues, references_valid=True)

    def validate_goal(self, intent: GoalIntent) -> ValidationResult:
        issues = []
        if not intent.title:
            issues.append(_error("title", "missing", "Goal title is required"))
        if intent.target_amount is None:
            issues.append(_error("target_amount", "missing", "Target amount is required"))
        elif intent.target_amount <= 0:
            issues.append(_error(
                "target_amount", "invalid_value",
                "Target amount must be greater than zero",
            ))
        return self._result(issues, references_valid=True)

    def validate_debt(self, intent: DebtIntent) -> ValidationResult:
        issues = []
        if not intent.person_name:
            issues.append(_error("person_name", "missing", "Person's name is required"))
        if intent.amount is None:
            issues.append(_error("amount", "missing", "Amount is required"))
        elif intent.amount < 0:
            issues.append(_error(
                "amount", "invalid_value",
                "Amount cannot be negative",
            ))
        return self._result(issues, references_valid=True)

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _run(self, schema_issues, reference_check) -> ValidationResult:
        all_issues = list(schema_issues)
        schema_valid = not any(issue.severity == "error" for issue in all_issues)

        # Only run stage 2 if stage 1 passes
        references_valid = False
        if schema_valid and self._store is not None:
            reference_issues = await reference_check()
            all_issues.extend(reference_issues)
            references_valid = not any(issue.severity == "error" for issue in reference_issues)

        return ValidationResult(
            schema_valid=schema_valid,
            references_valid=references_valid,
            is_valid=schema_valid and references_valid,
            issues=all_issues,
            warnings=[issue.message for issue in all_issues if issue.severity == "warning"],
        )

    def _result(self, issues: list[ValidationIssue], references_valid: bool) -> ValidationResult:
        schema_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            schema_valid=schema_valid,
            references_valid=references_valid,
            is_valid=schema_valid and references_valid,
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summary of validation results for the form.

        This is what we show next to the submit button.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []
        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.errors:
                lines.append(f"  • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"    → {issue.suggested_fix}")

        if result.warnings:
            lines.append("⚠️ Please double-check:")
            for warning in result.warnings:
                lines.append(f"  • {warning}")

        return "\n".join(lines)
