"""
Audit Models for Finance Tracker

Every mutation of the user's records is logged for audit purposes.
This provides:
1. Complete traceability of every balance change
2. Debugging information when a store call fails
3. Ability to reconstruct how a balance came to be

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every write path of the controller has its own event type.
    """
    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    DEFAULT_ACCOUNT_CREATED = "default_account_created"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_REMOVED = "transaction_removed"
    TRANSACTION_STATUS_TOGGLED = "transaction_status_toggled"

    # Accounts
    ACCOUNT_ADDED = "account_added"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_BALANCE_ADJUSTED = "account_balance_adjusted"

    # Income sources
    INCOME_SOURCE_ADDED = "income_source_added"
    INCOME_SOURCE_REMOVED = "income_source_removed"
    INCOME_SOURCE_TOGGLED = "income_source_toggled"

    # Goals
    GOAL_ADDED = "goal_added"
    GOAL_REMOVED = "goal_removed"
    GOAL_AMOUNT_UPDATED = "goal_amount_updated"
    GOAL_COMPLETED = "goal_completed"
    GOAL_NOTIFICATION_EMITTED = "goal_notification_emitted"

    # Snapshots
    PATRIMONY_SNAPSHOT_RECORDED = "patrimony_snapshot_recorded"

    # Failures
    VALIDATION_REJECTED = "validation_rejected"
    ROLLBACK_APPLIED = "rollback_applied"
    ROLLBACK_FAILED = "rollback_failed"
    MUTATION_DISCARDED = "mutation_discarded"
    STALE_RECORD_DROPPED = "stale_record_dropped"
    STORE_ERROR = "store_error"
    SYSTEM_ERROR = "system_error"


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
        default_factory=datetime.utcnow,
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Record kind (e.g., 'transactions', 'accounts')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the record this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., status write and balance write)"
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

    # User action tracking
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
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(transaction, correlation_id)
        event = AuditEventBuilder.status_toggled(...)
    """

    @staticmethod
    def session_started(
        user_id: str,
        record_counts: dict[str, int],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            correlation_id=correlation_id,
            description=f"Session started for user {user_id}",
            details={"user_id": user_id, "record_counts": record_counts},
            is_user_action=True,
        )

    @staticmethod
    def session_ended(user_id: str, notified_goals: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            description=f"Session ended for user {user_id}",
            details={"user_id": user_id, "notified_goals": notified_goals},
            is_user_action=True,
        )

    @staticmethod
    def default_account_created(
        account_id: UUID,
        name: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEFAULT_ACCOUNT_CREATED,
            entity_type="accounts",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"No account found; created default account '{name}'",
        )

    @staticmethod
    def record_added(
        kind: str,
        record_id: UUID,
        label: str,
        amount: Optional[Decimal],
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = {
            "transactions": AuditEventType.TRANSACTION_ADDED,
            "accounts": AuditEventType.ACCOUNT_ADDED,
            "income_sources": AuditEventType.INCOME_SOURCE_ADDED,
            "goals": AuditEventType.GOAL_ADDED,
        }[kind]
        details = {"label": label}
        if amount is not None:
            details["amount"] = _money(amount)
        return AuditEvent(
            event_type=event_type,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Added {kind[:-1].replace('_', ' ')}: {label}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def record_removed(
        kind: str,
        record_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        event_type = {
            "transactions": AuditEventType.TRANSACTION_REMOVED,
            "accounts": AuditEventType.ACCOUNT_DEACTIVATED,
            "income_sources": AuditEventType.INCOME_SOURCE_REMOVED,
            "goals": AuditEventType.GOAL_REMOVED,
        }[kind]
        return AuditEvent(
            event_type=event_type,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Removed record from {kind}",
            is_user_action=True,
        )

    @staticmethod
    def status_toggled(
        transaction_id: UUID,
        new_status: str,
        account_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_STATUS_TOGGLED,
            entity_type="transactions",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction marked {new_status}; account moved by {_money(delta)}",
            details={
                "new_status": new_status,
                "account_id": str(account_id),
                "delta": _money(delta),
                "new_balance": _money(new_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def balance_adjusted(
        account_id: UUID,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_BALANCE_ADJUSTED,
            entity_type="accounts",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Account balance adjusted by {_money(delta)}",
            details={"delta": _money(delta), "new_balance": _money(new_balance)},
            is_user_action=True,
        )

    @staticmethod
    def income_source_toggled(
        source_id: UUID,
        is_active: bool,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_SOURCE_TOGGLED,
            entity_type="income_sources",
            entity_id=source_id,
            correlation_id=correlation_id,
            description=f"Income source {'activated' if is_active else 'paused'}",
            details={"is_active": is_active},
            is_user_action=True,
        )

    @staticmethod
    def goal_amount_updated(
        goal_id: UUID,
        requested_delta: Decimal,
        applied_delta: Decimal,
        new_amount: Decimal,
        account_id: Optional[UUID],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_AMOUNT_UPDATED,
            entity_type="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal amount changed by {_money(applied_delta)}",
            details={
                "requested_delta": _money(requested_delta),
                "applied_delta": _money(applied_delta),
                "new_amount": _money(new_amount),
                "account_id": str(account_id) if account_id else None,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_completed(goal_id: UUID, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_COMPLETED,
            entity_type="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description="Goal marked as completed",
            is_user_action=True,
        )

    @staticmethod
    def goal_notification(
        goal_id: UUID,
        urgency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_NOTIFICATION_EMITTED,
            entity_type="goals",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Goal notification emitted: {urgency}",
            details={"urgency": urgency},
        )

    @staticmethod
    def snapshot_recorded(
        snapshot_id: UUID,
        snapshot_date: str,
        total_balance: Decimal,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PATRIMONY_SNAPSHOT_RECORDED,
            entity_type="patrimony_snapshots",
            entity_id=snapshot_id,
            correlation_id=correlation_id,
            description=f"Patrimony snapshot for {snapshot_date}: {_money(total_balance)}",
            details={"snapshot_date": snapshot_date, "total_balance": _money(total_balance)},
        )

    @staticmethod
    def validation_rejected(
        kind: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        # Bad input is the user's to fix, so this stays at info level
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_REJECTED,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def rollback_applied(
        kind: str,
        record_id: UUID,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLLBACK_APPLIED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Partial write compensated",
            error_message=reason,
        )

    @staticmethod
    def rollback_failed(
        kind: str,
        record_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLLBACK_FAILED,
            severity=AuditSeverity.CRITICAL,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Compensating write failed; stored records may disagree",
            error_message=error_message,
        )

    @staticmethod
    def mutation_discarded(operation: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_DISCARDED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Session ended before '{operation}' was confirmed; result discarded",
            details={"operation": operation},
        )

    @staticmethod
    def stale_record_dropped(
        kind: str,
        record_id: UUID,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STALE_RECORD_DROPPED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Record no longer exists in the store; dropped from local state",
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Store call failed during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
