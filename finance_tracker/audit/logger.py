"""
Audit Logger

Every change to a user's money goes through here: status toggles,
balance adjustments, goal deposits, and the rollbacks that undo a
half-applied write. Events are written twice:

1. To the structured local log (JSON lines, for diagnostics)
2. To audit storage when one is configured (the AuditLog worksheet)

A failing audit store never fails the mutation that produced the event.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.services.storage import AuditStorageInterface


# JSON lines on the standard logging backend
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

_LEVELS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """Writes finance audit events locally and, optionally, to storage."""

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when audit storage is configured and the write
        to it failed; the local log line is always emitted.
        """
        emit = getattr(self._logger, _LEVELS[event.severity])
        emit(event.event_type.value, **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
                event_type=event.event_type.value,
            )
            return False

    async def log_validation_rejected(
        self,
        kind: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Rejected user input; info level since the user fixes it, not us."""
        await self.log(AuditEventBuilder.validation_rejected(kind, issues, correlation_id))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(operation, error_message, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Unexpected failure outside the store (e.g. a bug in the UI layer)."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id tying together the events of one user action.

    A status toggle, its balance write and any rollback all share one.
    """
    return uuid4()
