"""Ledger write path: mutator, profile service and their errors."""

from finance_tracker.ledger.errors import (
    LedgerError,
    LedgerValidationError,
    ReferentialIntegrityError,
)
from finance_tracker.ledger.mutator import LedgerMutator
from finance_tracker.ledger.profile import ProfileService

__all__ = [
    "LedgerError",
    "LedgerMutator",
    "LedgerValidationError",
    "ProfileService",
    "ReferentialIntegrityError",
]
