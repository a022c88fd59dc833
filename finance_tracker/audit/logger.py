"""
Audit Logger

DESIGN DECISION: Every significant ledger action is logged.
This provides:
1. Complete traceability of balance movements
2. Debugging capability when a write is rejected
3. User can see history of their changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit_events collection (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_recorded(
        self,
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        wallet_id: str,
        goal_id: Optional[str],
        allocated: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_recorded(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            wallet_id=wallet_id,
            goal_id=goal_id,
            allocated=allocated,
            correlation_id=correlation_id,
        ))

    async def log_wallet_changed(
        self,
        event_type: AuditEventType,
        user_id: str,
        wallet_id: str,
        name: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log wallet create/update/delete."""
        await self.log(AuditEventBuilder.wallet_changed(
            event_type=event_type,
            user_id=user_id,
            wallet_id=wallet_id,
            name=name,
            correlation_id=correlation_id,
            details=details,
        ))

    async def log_wallet_delete_blocked(
        self,
        user_id: str,
        wallet_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.wallet_delete_blocked(
            user_id=user_id,
            wallet_id=wallet_id,
            correlation_id=correlation_id,
        ))

    async def log_goal_created(
        self,
        user_id: str,
        goal_id: str,
        title: str,
        target_amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.goal_created(
            user_id=user_id,
            goal_id=goal_id,
            title=title,
            target_amount=target_amount,
            correlation_id=correlation_id,
        ))

    async def log_debt_created(
        self,
        user_id: str,
        debt_id: str,
        person_name: str,
        debt_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.debt_created(
            user_id=user_id,
            debt_id=debt_id,
            person_name=person_name,
            debt_type=debt_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_debt_paid_toggled(
        self,
        user_id: str,
        debt_id: str,
        is_paid: bool,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.debt_paid_toggled(
            user_id=user_id,
            debt_id=debt_id,
            is_paid=is_paid,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        user_id: str,
        operation: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            user_id=user_id,
            operation=operation,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_profile_changed(
        self,
        event_type: AuditEventType,
        user_id: str,
        changes: dict,
    ) -> None:
        await self.log(AuditEventBuilder.profile_changed(
            event_type=event_type,
            user_id=user_id,
            changes=changes,
        ))

    async def log_auth_event(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        method: str,
        error_message: Optional[str] = None,
    ) -> None:
        """Log sign-in, sign-out and failed authentication."""
        await self.log(AuditEventBuilder.auth_event(
            event_type=event_type,
            user_id=user_id,
            method=method,
            error_message=error_message,
        ))

    async def log_storage_error(
        self,
        user_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_subscription_error(
        self,
        user_id: str,
        collection: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.subscription_error(
            user_id=user_id,
            collection=collection,
            error_message=error_message,
        ))

    async def recent_events(self, user_id: str, limit: int = 50) -> list[AuditEvent]:
        """A user's latest persisted events (empty without storage)."""
        if self._storage is None:
            return []
        return await self._storage.get_recent_events(user_id, limit=limit)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submit).
    Pass it through all subsequent operations.
    """
    return uuid4()
