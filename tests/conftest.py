"""Shared fixtures: an in-memory store, a mutator wired to it, and a pinned local zone."""

import time

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.ledger import LedgerMutator
from finance_tracker.services.storage import EntityStoreAuditStorage, InMemoryEntityStore
from finance_tracker.validation import LedgerValidator


@pytest.fixture
def settings():
    return AppSettings(
        storage_backend="memory",
        default_currency="USD",
        default_theme="dark",
        large_amount_warning=1_000_000,
        future_date_tolerance_days=30,
    )


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def audit_logger(store):
    return AuditLogger(EntityStoreAuditStorage(store))


@pytest.fixture
def mutator(store, settings, audit_logger):
    return LedgerMutator(
        store,
        validator=LedgerValidator(store, settings=settings),
        audit_logger=audit_logger,
    )


@pytest.fixture
def new_york_local_time(monkeypatch):
    """System local zone set to America/New_York (DST ends 2026-11-01)."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
