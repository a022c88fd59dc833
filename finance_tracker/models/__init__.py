"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    TRANSACTION_CATEGORIES,
    Debt,
    DebtIntent,
    DebtType,
    Goal,
    GoalAllocation,
    GoalIntent,
    Theme,
    Transaction,
    TransactionIntent,
    TransactionType,
    UserProfile,
    Wallet,
    WalletIntent,
    WalletType,
)
from finance_tracker.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from finance_tracker.models.dashboard import (
    ActivityBucket,
    DashboardSummary,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "TRANSACTION_CATEGORIES",
    "Debt",
    "DebtIntent",
    "DebtType",
    "Goal",
    "GoalAllocation",
    "GoalIntent",
    "Theme",
    "Transaction",
    "TransactionIntent",
    "TransactionType",
    "UserProfile",
    "Wallet",
    "WalletIntent",
    "WalletType",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Dashboard models
    "ActivityBucket",
    "DashboardSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
