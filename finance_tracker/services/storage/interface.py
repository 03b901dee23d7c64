"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the controller decoupled from storage implementation

The interface is intentionally generic over record kinds - every
collection supports the same small set of operations. Each store
instance is scoped to a single user.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.finance import PatrimonySnapshot, RecordKind


# Accounts are deactivated instead of purged
SOFT_DELETE_KINDS = frozenset({RecordKind.ACCOUNTS})


class RecordStoreInterface(ABC):
    """
    Abstract interface for record storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def fetch_all(self, kind: RecordKind) -> list[BaseModel]:
        """
        Fetch every record of a kind.

        Ordering is stable: creation time ascending, except transactions
        which are ordered by due date ascending.

        Raises:
            StoreError: If the fetch fails
        """
        pass

    @abstractmethod
    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> BaseModel:
        """
        Insert a new record.

        The store generates the identifier and creation timestamp.

        Args:
            kind: Collection to insert into
            fields: Validated user fields (no id, no created_at)

        Returns:
            The stored record

        Raises:
            StoreError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        kind: RecordKind,
        record_id: UUID,
        fields: dict[str, Any],
    ) -> BaseModel:
        """
        Update fields of an existing record.

        The update is all-or-nothing: either every field is written or
        the stored record is left untouched and an error is raised.

        Returns:
            The record as stored after the update

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: RecordKind, record_id: UUID) -> None:
        """
        Hard-delete a record (transactions, income sources, goals).

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the delete fails
        """
        pass

    @abstractmethod
    async def soft_delete(self, kind: RecordKind, record_id: UUID) -> BaseModel:
        """
        Deactivate a record by setting is_active=False (accounts).

        Returns:
            The deactivated record

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the update fails
        """
        pass

    @abstractmethod
    async def upsert_snapshot(
        self,
        total_balance: Decimal,
        snapshot_date: date,
    ) -> PatrimonySnapshot:
        """
        Insert or replace the patrimony snapshot for (user, snapshot_date).

        Returns:
            The stored snapshot
        """
        pass


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
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one status toggle).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def sort_records(kind: RecordKind, records: list[BaseModel]) -> list[BaseModel]:
    """Apply the ordering every store guarantees for fetch_all."""
    if kind == RecordKind.TRANSACTIONS:
        return sorted(records, key=lambda r: (r.due_date, r.created_at))
    if kind == RecordKind.PATRIMONY_SNAPSHOTS:
        return sorted(records, key=lambda r: r.snapshot_date)
    return sorted(records, key=lambda r: r.created_at)


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Record not found in storage."""

    def __init__(self, kind: RecordKind, record_id: UUID):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.value} record not found: {record_id}")


class StoreConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass
