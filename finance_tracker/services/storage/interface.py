"""
Abstract Entity Store Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Run against Cloud Firestore in production
2. Use in-memory storage for testing and local development
3. Keep the Ledger Mutator decoupled from any storage SDK

The interface is intentionally small - we're not building an ORM.
Records travel as plain dicts with camelCase keys plus an "id" key;
the models package converts them.

Two guarantees every implementation must provide:
- atomic_batch applies all operations or none of them
- INCREMENT operations are applied by the store, not as read-modify-write,
  so concurrent increments from different sessions never lose updates
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from finance_tracker.models.audit import AuditEvent


class Collections:
    """Collection names shared by every backend."""
    WALLETS = "wallets"
    TRANSACTIONS = "transactions"
    GOALS = "goals"
    DEBTS = "debts"
    USERS = "users"
    AUDIT_EVENTS = "audit_events"

    OWNER_FIELD = "userId"


SnapshotCallback = Callable[[list[dict[str, Any]]], None]


class BatchOperationKind(str, Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"
    INCREMENT = "increment"


class BatchOperation(BaseModel):
    """One write inside an atomic batch."""

    kind: BatchOperationKind
    collection: str
    record_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def set(cls, collection: str, record_id: str, fields: dict[str, Any]) -> "BatchOperation":
        """Create or overwrite a whole record."""
        return cls(kind=BatchOperationKind.SET, collection=collection,
                   record_id=record_id, payload=fields)

    @classmethod
    def update(cls, collection: str, record_id: str, fields: dict[str, Any]) -> "BatchOperation":
        """Replace some fields of an existing record."""
        return cls(kind=BatchOperationKind.UPDATE, collection=collection,
                   record_id=record_id, payload=fields)

    @classmethod
    def delete(cls, collection: str, record_id: str) -> "BatchOperation":
        return cls(kind=BatchOperationKind.DELETE, collection=collection,
                   record_id=record_id)

    @classmethod
    def increment(
        cls,
        collection: str,
        record_id: str,
        field: str,
        delta: Decimal,
    ) -> "BatchOperation":
        """Add delta to a numeric field of an existing record, atomically."""
        return cls(kind=BatchOperationKind.INCREMENT, collection=collection,
                   record_id=record_id, payload={field: delta})


class Subscription:
    """
    Handle for a live query.

    unsubscribe() stops further snapshot deliveries; calling it twice is
    harmless.
    """

    def __init__(self, cancel: Callable[[], None], collection: str, owner_id: str):
        self._cancel = cancel
        self.collection = collection
        self.owner_id = owner_id
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class EntityStoreInterface(ABC):
    """
    Abstract interface for the document store.

    Any storage implementation (Firestore, in-memory, ...) must
    implement these methods.
    """

    @abstractmethod
    def new_id(self, collection: str) -> str:
        """Reserve a fresh document ID in a collection (no write)."""
        pass

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        """
        Point read.

        Returns:
            The record (with its "id") if found, None otherwise
        """
        pass

    @abstractmethod
    async def find(
        self,
        collection: str,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        **equals: Any,
    ) -> list[dict[str, Any]]:
        """
        One-shot owner-scoped query.

        Args:
            collection: Collection to read
            owner_id: Only records whose userId equals this are returned
            order_by: Field to sort on
            descending: Sort direction
            limit: Maximum number of results
            equals: Additional field == value filters

        Returns:
            List of matching records
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        order_by: str = "createdAt",
        descending: bool = True,
    ) -> Subscription:
        """
        Live owner-scoped query.

        The callback receives the full ordered result set once right away
        and again after every change. Deliveries are snapshots, not diffs.
        """
        pass

    @abstractmethod
    async def add(self, collection: str, fields: dict[str, Any]) -> str:
        """
        Create a record with a store-assigned ID.

        Returns:
            The new record's ID
        """
        pass

    @abstractmethod
    async def set(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """Create or overwrite a record under a known ID."""
        pass

    @abstractmethod
    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        """
        Replace some fields of a record.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record. Deleting a missing record is not an error."""
        pass

    @abstractmethod
    async def atomic_batch(self, operations: list[BatchOperation]) -> None:
        """
        Apply all operations or none.

        Raises:
            NotFoundError: If an UPDATE/INCREMENT targets a missing record
            StorageError: If the backend rejects the batch
        """
        pass

    async def increment_field(
        self,
        collection: str,
        record_id: str,
        field: str,
        delta: Decimal,
    ) -> None:
        """Atomic numeric increment, safe under concurrent writers."""
        await self.atomic_batch([
            BatchOperation.increment(collection, record_id, field, delta)
        ])


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        user_id: str,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All of a user's events for one correlation ID, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """A user's most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PermissionDeniedError(StorageError):
    """The backend refused the operation."""
    pass
