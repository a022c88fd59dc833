"""
Audit Models for Finance Tracker

Every significant ledger action is logged for audit purposes.
This provides:
1. Traceability of every balance movement
2. Debugging information when a write is rejected
3. A per-user history of what was changed and when

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger writes
    TRANSACTION_RECORDED = "transaction_recorded"
    WALLET_CREATED = "wallet_created"
    WALLET_UPDATED = "wallet_updated"
    WALLET_DELETED = "wallet_deleted"
    WALLET_DELETE_BLOCKED = "wallet_delete_blocked"
    GOAL_CREATED = "goal_created"
    DEBT_CREATED = "debt_created"
    DEBT_PAID_TOGGLED = "debt_paid_toggled"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Profile
    PROFILE_CREATED = "profile_created"
    PROFILE_UPDATED = "profile_updated"

    # Authentication
    USER_SIGNED_IN = "user_signed_in"
    USER_SIGNED_OUT = "user_signed_out"
    AUTH_FAILED = "auth_failed"

    # System events
    STORAGE_ERROR = "storage_error"
    SUBSCRIPTION_ERROR = "subscription_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'transaction', 'debt')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one form submit)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_record(self) -> dict:
        """
        Convert to a document for the audit_events collection.

        Field names follow the store's camelCase convention and the
        owner is stored as userId so the usual owner scoping applies.
        """
        return {
            "eventId": str(self.event_id),
            "timestamp": self.timestamp,
            "eventType": self.event_type.value,
            "severity": self.severity.value,
            "userId": self.user_id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "correlationId": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "errorMessage": self.error_message,
            "isUserAction": self.is_user_action,
        }

    @classmethod
    def from_record(cls, record: dict) -> "AuditEvent":
        return cls(
            event_id=UUID(record["eventId"]),
            timestamp=record["timestamp"],
            event_type=AuditEventType(record["eventType"]),
            severity=AuditSeverity(record["severity"]),
            user_id=record.get("userId"),
            entity_type=record.get("entityType"),
            entity_id=record.get("entityId"),
            correlation_id=UUID(record["correlationId"]) if record.get("correlationId") else None,
            description=record["description"],
            details=record.get("details") or {},
            error_message=record.get("errorMessage"),
            is_user_action=bool(record.get("isUserAction")),
        )


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_recorded(user_id, txn, correlation_id)
        event = AuditEventBuilder.debt_paid_toggled(user_id, debt_id, True, correlation_id)
    """

    @staticmethod
    def transaction_recorded(
        user_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        wallet_id: str,
        goal_id: Optional[str],
        allocated: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        details = {
            "type": transaction_type,
            "amount": amount,
            "wallet_id": wallet_id,
        }
        if goal_id:
            details["goal_id"] = goal_id
            details["allocated"] = allocated
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Recorded {transaction_type} of {amount}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def wallet_changed(
        event_type: AuditEventType,
        user_id: str,
        wallet_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.WALLET_CREATED: "created",
            AuditEventType.WALLET_UPDATED: "updated",
            AuditEventType.WALLET_DELETED: "deleted",
        }.get(event_type, event_type.value)
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description=f"Wallet {verb}: {name}",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def wallet_delete_blocked(
        user_id: str,
        wallet_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_DELETE_BLOCKED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description="Wallet delete refused: transactions still reference it",
            is_user_action=True,
        )

    @staticmethod
    def goal_created(
        user_id: str,
        goal_id: str,
        title: str,
        target_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal created: {title}",
            details={"target_amount": target_amount},
            is_user_action=True,
        )

    @staticmethod
    def debt_created(
        user_id: str,
        debt_id: str,
        person_name: str,
        debt_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt recorded: {person_name}",
            details={"type": debt_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def debt_paid_toggled(
        user_id: str,
        debt_id: str,
        is_paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_PAID_TOGGLED,
            user_id=user_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt marked {'paid' if is_paid else 'unpaid'}",
            details={"is_paid": is_paid},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        operation: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def profile_changed(
        event_type: AuditEventType,
        user_id: str,
        changes: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="profile",
            entity_id=user_id,
            description=f"Profile {'created' if event_type == AuditEventType.PROFILE_CREATED else 'updated'}",
            details=changes,
            is_user_action=event_type == AuditEventType.PROFILE_UPDATED,
        )

    @staticmethod
    def auth_event(
        event_type: AuditEventType,
        user_id: Optional[str],
        method: str,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        failed = event_type == AuditEventType.AUTH_FAILED
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="session",
            description=f"Authentication {event_type.value.replace('_', ' ')} ({method})",
            details={"method": method},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        user_id: Optional[str],
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def subscription_error(
        user_id: str,
        collection: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Live update failed for {collection}",
            error_message=error_message,
            details={"collection": collection},
        )

