"""
Audit event storage on top of the Entity Store.

Audit events live in their own collection and carry the owner's userId,
so reading them back goes through the same owner-scoped queries as any
other record.
"""

from uuid import UUID

import structlog

from finance_tracker.models.audit import AuditEvent
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    Collections,
    EntityStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class EntityStoreAuditStorage(AuditStorageInterface):
    """
    Entity Store implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, store: EntityStoreInterface):
        self._store = store

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        if not event.user_id:
            # Events without an owner could never be read back
            return False
        try:
            await self._store.add(Collections.AUDIT_EVENTS, event.to_record())
            return True
        except StorageError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_event_not_persisted", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        user_id: str,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get a user's events by correlation ID."""
        records = await self._store.find(
            Collections.AUDIT_EVENTS,
            user_id,
            order_by="timestamp",
            descending=False,
            correlationId=str(correlation_id),
        )
        return self._parse(records)

    async def get_recent_events(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get a user's recent events."""
        records = await self._store.find(
            Collections.AUDIT_EVENTS,
            user_id,
            order_by="timestamp",
            descending=True,
            limit=limit,
        )
        return self._parse(records)

    def _parse(self, records: list[dict]) -> list[AuditEvent]:
        events = []
        for record in records:
            try:
                events.append(AuditEvent.from_record(record))
            except (KeyError, ValueError) as e:
                logger.warning("malformed_audit_record", record_id=record.get("id"), error=str(e))
        return events
