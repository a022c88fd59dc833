"""
In-Memory Entity Store

A process-local implementation of the Entity Store interface. Used by
the test suite and by the "memory" storage backend for local runs
without a Firestore project.

It keeps the two guarantees the Ledger Mutator relies on:
- A batch is applied to a working copy of the data and only swapped in
  once every operation succeeded, so a failing operation leaves nothing
  behind.
- Increments are applied inside the store lock against the current
  value, so concurrent increments all land.

Query semantics follow Firestore where it matters to callers: ordered
queries skip records that lack the ordering field, and subscribers get
the full ordered result set on subscribe and after every change.
"""

import asyncio
import copy
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

import structlog

from finance_tracker.services.storage.interface import (
    BatchOperation,
    BatchOperationKind,
    Collections,
    EntityStoreInterface,
    NotFoundError,
    SnapshotCallback,
    StorageError,
    Subscription,
)


logger = structlog.get_logger(__name__)


def _sort_key(value: Any) -> Any:
    # Naive datetimes are local wall-clock time; compare them as aware.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.astimezone()
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _as_number(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    raise StorageError(f"Cannot increment non-numeric value {value!r}")


class _Listener:
    def __init__(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        order_by: str,
        descending: bool,
    ):
        self.collection = collection
        self.owner_id = owner_id
        self.callback = callback
        self.order_by = order_by
        self.descending = descending


class InMemoryEntityStore(EntityStoreInterface):
    """Dict-backed Entity Store with all-or-nothing batches."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._listeners: dict[int, _Listener] = {}
        self._listener_seq = 0

    def new_id(self, collection: str) -> str:
        return uuid4().hex[:20]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            record = self._collections.get(collection, {}).get(record_id)
            if record is None:
                return None
            return {**copy.deepcopy(record), "id": record_id}

    async def find(
        self,
        collection: str,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        **equals: Any,
    ) -> list[dict[str, Any]]:
        with self._lock:
            records = self._select(collection, owner_id, order_by, descending, equals)
        return records[:limit] if limit is not None else records

    def _select(
        self,
        collection: str,
        owner_id: str,
        order_by: Optional[str],
        descending: bool,
        equals: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Owner-scoped, filtered, ordered copy of a collection. Caller holds the lock."""
        filters = {Collections.OWNER_FIELD: owner_id, **equals}
        selected = []
        for record_id, record in self._collections.get(collection, {}).items():
            if any(record.get(field) != value for field, value in filters.items()):
                continue
            if order_by and record.get(order_by) is None:
                continue
            selected.append({**copy.deepcopy(record), "id": record_id})

        if order_by:
            selected.sort(key=lambda r: _sort_key(r[order_by]), reverse=descending)
        return selected

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        order_by: str = "createdAt",
        descending: bool = True,
    ) -> Subscription:
        listener = _Listener(collection, owner_id, callback, order_by, descending)
        with self._lock:
            self._listener_seq += 1
            key = self._listener_seq
            self._listeners[key] = listener
            snapshot = self._select(collection, owner_id, order_by, descending, {})

        def cancel() -> None:
            with self._lock:
                self._listeners.pop(key, None)

        self._deliver(listener, snapshot)
        return Subscription(cancel, collection, owner_id)

    def _notify(self, collections: set[str]) -> None:
        with self._lock:
            pending = [
                (listener, self._select(
                    listener.collection,
                    listener.owner_id,
                    listener.order_by,
                    listener.descending,
                    {},
                ))
                for listener in self._listeners.values()
                if listener.collection in collections
            ]
        for listener, snapshot in pending:
            self._deliver(listener, snapshot)

    def _deliver(self, listener: _Listener, snapshot: list[dict[str, Any]]) -> None:
        try:
            listener.callback(snapshot)
        except Exception as e:
            # A broken consumer must not break the writer
            logger.error(
                "snapshot_callback_failed",
                collection=listener.collection,
                error=str(e),
            )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add(self, collection: str, fields: dict[str, Any]) -> str:
        record_id = self.new_id(collection)
        await self.atomic_batch([BatchOperation.set(collection, record_id, fields)])
        return record_id

    async def set(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        await self.atomic_batch([BatchOperation.set(collection, record_id, fields)])

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        await self.atomic_batch([BatchOperation.update(collection, record_id, fields)])

    async def delete(self, collection: str, record_id: str) -> None:
        await self.atomic_batch([BatchOperation.delete(collection, record_id)])

    async def atomic_batch(self, operations: list[BatchOperation]) -> None:
        if not operations:
            return

        # Behave like a network round trip: let other tasks run first.
        await asyncio.sleep(0)

        with self._lock:
            # Records are replaced, never mutated, so a shallow copy per
            # collection is enough to keep the live data untouched.
            working = {
                name: dict(records) for name, records in self._collections.items()
            }
            for operation in operations:
                self._apply_operation(working, operation)
            self._collections = working

        self._notify({operation.collection for operation in operations})

    def _apply_operation(
        self,
        data: dict[str, dict[str, dict[str, Any]]],
        operation: BatchOperation,
    ) -> None:
        """Apply one operation to the working copy."""
        records = data.setdefault(operation.collection, {})
        current = records.get(operation.record_id)

        if operation.kind == BatchOperationKind.SET:
            records[operation.record_id] = copy.deepcopy(operation.payload)
            return

        if operation.kind == BatchOperationKind.DELETE:
            records.pop(operation.record_id, None)
            return

        if current is None:
            raise NotFoundError(
                f"{operation.collection}/{operation.record_id} does not exist"
            )

        if operation.kind == BatchOperationKind.UPDATE:
            records[operation.record_id] = {**current, **copy.deepcopy(operation.payload)}
        elif operation.kind == BatchOperationKind.INCREMENT:
            updated = dict(current)
            for field, delta in operation.payload.items():
                updated[field] = _as_number(updated.get(field)) + _as_number(delta)
            records[operation.record_id] = updated
