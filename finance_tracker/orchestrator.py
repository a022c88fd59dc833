"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
per-user session:

    sign-in → load profile → subscribe to wallets, transactions, goals
    and debts → keep the latest snapshot → aggregate on demand

DESIGN DECISION: The orchestrator enforces the boundaries:
- All writes go through the Ledger Mutator
- Every read and subscription is scoped to the session's user
- Dashboard figures are recomputed from the snapshot, never stored

Snapshot deliveries may arrive on a backend thread (Firestore's watch)
and are always full result sets, so the session simply replaces the
collection's list under a lock and notifies listeners.
"""

import threading
from datetime import date, datetime
from typing import Any, Callable, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, ValidationError

from finance_tracker.aggregation import summarize
from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.ledger import LedgerMutator, ProfileService
from finance_tracker.models import (
    DashboardSummary,
    Debt,
    DebtType,
    Goal,
    GoalAllocation,
    Theme,
    Transaction,
    TransactionType,
    UserProfile,
    Wallet,
    WalletType,
)
from finance_tracker.services.storage import (
    Collections,
    EntityStoreAuditStorage,
    EntityStoreInterface,
    FirestoreEntityStore,
    InMemoryEntityStore,
    StorageError,
    Subscription,
)
from finance_tracker.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class LedgerSnapshot(BaseModel):
    """Latest known state of one user's records, newest first."""

    wallets: list[Wallet] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    goals: list[Goal] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)


# collection -> (snapshot attribute, model, order field)
SUBSCRIBED_COLLECTIONS = {
    Collections.WALLETS: ("wallets", Wallet, "createdAt"),
    Collections.TRANSACTIONS: ("transactions", Transaction, "date"),
    Collections.GOALS: ("goals", Goal, "createdAt"),
    Collections.DEBTS: ("debts", Debt, "createdAt"),
}


class LedgerSession:
    """
    One signed-in user's view of the ledger.

    Flow:
    1. start() → profile loaded (created on first sign-in), live
       subscriptions opened
    2. snapshot / summary() → read the latest state
    3. record_transaction(...) etc. → writes for this user; the
       subscriptions bring the result back into the snapshot
    4. stop() → subscriptions cancelled
    """

    def __init__(
        self,
        user_id: str,
        store: EntityStoreInterface,
        mutator: Optional[LedgerMutator] = None,
        profile_service: Optional[ProfileService] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self.user_id = user_id
        self._store = store
        self._settings = settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()
        self._mutator = mutator or LedgerMutator(
            store,
            validator=LedgerValidator(store, settings=self._settings),
            audit_logger=self._audit_logger,
        )
        self._profiles = profile_service or ProfileService(
            store, audit_logger=self._audit_logger, settings=self._settings,
        )

        self._lock = threading.RLock()
        self._snapshot = LedgerSnapshot()
        self._subscriptions: list[Subscription] = []
        self._listeners: list[Callable[[LedgerSnapshot], None]] = []
        self._profile: Optional[UserProfile] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return bool(self._subscriptions)

    async def start(self) -> UserProfile:
        """
        Load the profile and open the live subscriptions.

        Raises:
            StorageError: The profile or a subscription could not be
                          loaded (audited, session left stopped)
        """
        try:
            self._profile = await self._profiles.load_profile(self.user_id)
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                user_id=self.user_id,
                operation="load_profile",
                error_message=str(e),
            )
            raise

        if not self._subscriptions:
            for collection, (_, _, order_by) in SUBSCRIBED_COLLECTIONS.items():
                try:
                    subscription = self._store.subscribe(
                        collection,
                        self.user_id,
                        self._make_handler(collection),
                        order_by=order_by,
                        descending=True,
                    )
                except StorageError as e:
                    await self._audit_logger.log_subscription_error(
                        user_id=self.user_id,
                        collection=collection,
                        error_message=str(e),
                    )
                    self.stop()
                    raise
                self._subscriptions.append(subscription)

        logger.info("session_started", user_id=self.user_id)
        return self._profile

    def stop(self) -> None:
        """Cancel every subscription. Safe to call twice."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def _make_handler(self, collection: str) -> Callable[[list[dict[str, Any]]], None]:
        attribute, model, _ = SUBSCRIBED_COLLECTIONS[collection]

        def handle(records: list[dict[str, Any]]) -> None:
            parsed = []
            for record in records:
                try:
                    parsed.append(model.model_validate(record))
                except ValidationError as e:
                    logger.warning(
                        "malformed_record_skipped",
                        collection=collection,
                        record_id=record.get("id"),
                        error=str(e),
                    )
            with self._lock:
                self._snapshot = self._snapshot.model_copy(update={attribute: parsed})
                snapshot = self._snapshot
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(snapshot)
                except Exception as e:
                    logger.error("snapshot_listener_failed", error=str(e))

        return handle

    @property
    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._snapshot

    def on_change(self, callback: Callable[[LedgerSnapshot], None]) -> Callable[[], None]:
        """Be told about every new snapshot. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def summary(self, now: Optional[datetime] = None) -> DashboardSummary:
        """Dashboard figures for the current snapshot."""
        snapshot = self.snapshot
        return summarize(
            snapshot.wallets,
            snapshot.transactions,
            window_days=self._settings.activity_window_days,
            recent_limit=self._settings.recent_transactions_limit,
            now=now,
        )

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    @property
    def profile(self) -> UserProfile:
        if self._profile is None:
            return UserProfile(
                theme=self._settings.default_theme,
                currency=self._settings.default_currency,
            )
        return self._profile

    async def update_profile(
        self,
        theme: Union[Theme, str, None] = None,
        currency: Optional[str] = None,
    ) -> UserProfile:
        self._profile = await self._profiles.update_profile(
            self.user_id, theme=theme, currency=currency,
        )
        return self._profile

    # -------------------------------------------------------------------------
    # Writes (bound to this session's user)
    # -------------------------------------------------------------------------

    async def record_transaction(
        self,
        amount,
        type: Union[TransactionType, str],
        category: str,
        wallet_id: str,
        date: Union[datetime, date, None],
        note: Optional[str] = None,
        allocation: Union[GoalAllocation, dict, None] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        return await self._mutator.record_transaction(
            self.user_id, amount, type, category, wallet_id, date,
            note=note, allocation=allocation, correlation_id=correlation_id,
        )

    async def create_wallet(self, name: str, balance, type: Union[WalletType, str] = WalletType.CASH) -> Wallet:
        return await self._mutator.create_wallet(self.user_id, name, balance, type)

    async def update_wallet(
        self,
        wallet_id: str,
        name: str,
        balance,
        type: Union[WalletType, str] = WalletType.CASH,
    ) -> Wallet:
        return await self._mutator.update_wallet(self.user_id, wallet_id, name, balance, type)

    async def delete_wallet(self, wallet_id: str) -> None:
        await self._mutator.delete_wallet(self.user_id, wallet_id)

    async def create_goal(self, title: str, target_amount, deadline=None) -> Goal:
        return await self._mutator.create_goal(self.user_id, title, target_amount, deadline)

    async def create_debt(
        self,
        person_name: str,
        amount,
        type: Union[DebtType, str],
        due_date=None,
        description: Optional[str] = None,
    ) -> Debt:
        return await self._mutator.create_debt(
            self.user_id, person_name, amount, type, due_date, description,
        )

    async def toggle_debt_paid(self, debt_id: str) -> Debt:
        return await self._mutator.toggle_debt_paid(self.user_id, debt_id)


class AppComponents:
    """Everything a front end needs, wired together."""

    def __init__(
        self,
        store: EntityStoreInterface,
        audit_logger: AuditLogger,
        settings: AppSettings,
    ):
        self.store = store
        self.audit_logger = audit_logger
        self.settings = settings

    def open_session(self, user_id: str) -> LedgerSession:
        return LedgerSession(
            user_id,
            self.store,
            audit_logger=self.audit_logger,
            settings=self.settings,
        )


def create_app_components(
    store: Optional[EntityStoreInterface] = None,
    settings: Optional[AppSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        store: Entity store to use. If None, one is built for
               settings.storage_backend ("firestore" or "memory").
        settings: App settings (defaults to the environment)

    Returns:
        AppComponents sharing one store and one audit logger
    """
    settings = settings or get_settings().app

    if store is None:
        if settings.storage_backend == "memory":
            store = InMemoryEntityStore()
        else:
            store = FirestoreEntityStore()

    audit_storage = EntityStoreAuditStorage(store) if settings.persist_audit_events else None
    audit_logger = AuditLogger(audit_storage)

    logger.info(
        "app_components_created",
        storage_backend=type(store).__name__,
        persist_audit_events=settings.persist_audit_events,
    )
    return AppComponents(store=store, audit_logger=audit_logger, settings=settings)
