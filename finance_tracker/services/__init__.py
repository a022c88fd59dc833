"""Services package."""

from finance_tracker.services.auth import (
    AuthenticationError,
    AuthProviderInterface,
    AuthSession,
    AuthUser,
    FirebaseAuthService,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    BatchOperation,
    Collections,
    ConnectionError,
    EntityStoreAuditStorage,
    EntityStoreInterface,
    FirestoreClient,
    FirestoreEntityStore,
    InMemoryEntityStore,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    Subscription,
)

__all__ = [
    # Auth services
    "AuthenticationError",
    "AuthProviderInterface",
    "AuthSession",
    "AuthUser",
    "FirebaseAuthService",
    # Storage services
    "AuditStorageInterface",
    "BatchOperation",
    "Collections",
    "ConnectionError",
    "EntityStoreAuditStorage",
    "EntityStoreInterface",
    "FirestoreClient",
    "FirestoreEntityStore",
    "InMemoryEntityStore",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    "Subscription",
]
