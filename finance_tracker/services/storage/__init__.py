"""
Storage Services Package

Provides the abstract Entity Store interface and its implementations.
Cloud Firestore is the production backend; the in-memory store backs
tests and local runs. Business logic only ever sees the interface.
"""

from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    BatchOperation,
    BatchOperationKind,
    Collections,
    ConnectionError,
    EntityStoreInterface,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    Subscription,
)
from finance_tracker.services.storage.memory import InMemoryEntityStore
from finance_tracker.services.storage.audit import EntityStoreAuditStorage
from finance_tracker.services.storage.firestore import (
    FirestoreClient,
    FirestoreEntityStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntityStoreInterface",
    # Batch and subscription primitives
    "BatchOperation",
    "BatchOperationKind",
    "Collections",
    "Subscription",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    # Implementations
    "EntityStoreAuditStorage",
    "FirestoreClient",
    "FirestoreEntityStore",
    "InMemoryEntityStore",
]
