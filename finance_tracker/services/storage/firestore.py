"""
Cloud Firestore Storage Implementation

DESIGN DECISION: Firestore is the production backend because it gives
us the two primitives the ledger cannot do without:
1. WriteBatch - several document writes committed all-or-nothing
2. Increment - a server-side numeric add, safe under concurrent writers
It also pushes live query snapshots, which drive the dashboard.

TRADEOFFS:
- Numbers are IEEE doubles on the wire. Decimals are encoded as int when
  integral and float otherwise, and decoded back to Decimal on read.
- Ordered queries need composite indexes (userId + order field).
- The SDK is synchronous; calls block the event loop for one round trip,
  which is acceptable for a single-user session.

Writes are NOT retried here: re-sending an increment batch after an
ambiguous failure could apply it twice. Only connecting is retried.
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import FirestoreSettings, get_settings
from finance_tracker.services.storage.interface import (
    BatchOperation,
    BatchOperationKind,
    Collections,
    ConnectionError,
    EntityStoreInterface,
    NotFoundError,
    PermissionDeniedError,
    SnapshotCallback,
    StorageError,
    Subscription,
)


logger = structlog.get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/datastore",
    "https://www.googleapis.com/auth/cloud-platform",
]


def encode_value(value: Any) -> Any:
    """Convert Python values to types the Firestore SDK can store."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is None:
        # Naive means local wall-clock time; the SDK would read it as UTC
        return value.astimezone()
    if isinstance(value, dict):
        return {key: encode_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    return value


def decode_value(value: Any) -> Any:
    """Convert stored doubles back to Decimal; everything else passes through."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: decode_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    return value


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map Google API errors onto the storage exception hierarchy."""
    try:
        yield
    except google_exceptions.NotFound as e:
        raise NotFoundError(f"{operation}: {e.message}") from e
    except google_exceptions.PermissionDenied as e:
        raise PermissionDeniedError(f"{operation}: {e.message}") from e
    except google_exceptions.GoogleAPICallError as e:
        raise StorageError(f"{operation} failed: {e}") from e


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and retries establishing the connection.
    """

    def __init__(self, settings: Optional[FirestoreSettings] = None):
        self._client: Optional[firestore.Client] = None
        self._settings = settings or get_settings().firestore

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore.Client:
        """
        Establish connection to Firestore.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = firestore.Client(
                    project=self._settings.project_id,
                    credentials=credentials,
                    database=self._settings.database,
                )
                logger.info(
                    "firestore_connected",
                    project=self._settings.project_id,
                    database=self._settings.database,
                )
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Firestore: {e}")

        return self._client

    def collection(self, name: str) -> firestore.CollectionReference:
        return self.connect().collection(name)

    def batch(self) -> firestore.WriteBatch:
        return self.connect().batch()


class FirestoreEntityStore(EntityStoreInterface):
    """
    Firestore implementation of the Entity Store.

    One Firestore collection per record kind; owner scoping is a
    userId == <uid> filter on every query.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    def _to_record(self, snapshot: firestore.DocumentSnapshot) -> dict[str, Any]:
        return {**decode_value(snapshot.to_dict() or {}), "id": snapshot.id}

    def _owner_query(
        self,
        collection: str,
        owner_id: str,
        equals: dict[str, Any],
    ) -> firestore.Query:
        query = self._client.collection(collection).where(
            filter=FieldFilter(Collections.OWNER_FIELD, "==", owner_id)
        )
        for field, value in equals.items():
            query = query.where(filter=FieldFilter(field, "==", encode_value(value)))
        return query

    def new_id(self, collection: str) -> str:
        return self._client.collection(collection).document().id

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        with translate_errors(f"get {collection}/{record_id}"):
            snapshot = self._client.collection(collection).document(record_id).get()
        if not snapshot.exists:
            return None
        return self._to_record(snapshot)

    async def find(
        self,
        collection: str,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
        **equals: Any,
    ) -> list[dict[str, Any]]:
        query = self._owner_query(collection, owner_id, equals)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)

        with translate_errors(f"query {collection}"):
            return [self._to_record(snapshot) for snapshot in query.stream()]

    def subscribe(
        self,
        collection: str,
        owner_id: str,
        callback: SnapshotCallback,
        order_by: str = "createdAt",
        descending: bool = True,
    ) -> Subscription:
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = self._owner_query(collection, owner_id, {}).order_by(
            order_by, direction=direction
        )

        def on_snapshot(snapshots, changes, read_time) -> None:
            # Runs on the SDK's watch thread
            try:
                callback([self._to_record(snapshot) for snapshot in snapshots])
            except Exception as e:
                logger.error(
                    "snapshot_callback_failed",
                    collection=collection,
                    error=str(e),
                )

        with translate_errors(f"subscribe {collection}"):
            watch = query.on_snapshot(on_snapshot)
        return Subscription(watch.unsubscribe, collection, owner_id)

    async def add(self, collection: str, fields: dict[str, Any]) -> str:
        with translate_errors(f"add {collection}"):
            _, reference = self._client.collection(collection).add(encode_value(fields))
        return reference.id

    async def set(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        with translate_errors(f"set {collection}/{record_id}"):
            self._client.collection(collection).document(record_id).set(encode_value(fields))

    async def update(self, collection: str, record_id: str, fields: dict[str, Any]) -> None:
        with translate_errors(f"update {collection}/{record_id}"):
            self._client.collection(collection).document(record_id).update(encode_value(fields))

    async def delete(self, collection: str, record_id: str) -> None:
        with translate_errors(f"delete {collection}/{record_id}"):
            self._client.collection(collection).document(record_id).delete()

    async def atomic_batch(self, operations: list[BatchOperation]) -> None:
        if not operations:
            return

        batch = self._client.batch()
        for operation in operations:
            reference = self._client.collection(operation.collection).document(
                operation.record_id
            )
            if operation.kind == BatchOperationKind.SET:
                batch.set(reference, encode_value(operation.payload))
            elif operation.kind == BatchOperationKind.UPDATE:
                batch.update(reference, encode_value(operation.payload))
            elif operation.kind == BatchOperationKind.DELETE:
                batch.delete(reference)
            elif operation.kind == BatchOperationKind.INCREMENT:
                batch.update(reference, {
                    field: firestore.Increment(encode_value(delta))
                    for field, delta in operation.payload.items()
                })

        with translate_errors(f"batch of {len(operations)} writes"):
            batch.commit()
