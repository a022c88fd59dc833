"""Validation package."""

from finance_tracker.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
