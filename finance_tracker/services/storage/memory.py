"""
In-Memory Storage Implementation

Used for tests and for running the app without a Google Sheets
spreadsheet configured. Records live only as long as the process.

Updates are validated against the full record model before they are
written, so a bad update leaves the stored record untouched.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ValidationError

from finance_tracker.models.audit import AuditEvent
from finance_tracker.models.finance import (
    RECORD_MODELS,
    PatrimonySnapshot,
    RecordKind,
)
from finance_tracker.services.storage.interface import (
    SOFT_DELETE_KINDS,
    AuditStorageInterface,
    NotFoundError,
    RecordStoreInterface,
    StoreError,
    sort_records,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Dict-backed record store scoped to one user."""

    def __init__(self, user_id: str = "local"):
        self.user_id = user_id
        self._records: dict[RecordKind, dict[UUID, BaseModel]] = {
            kind: {} for kind in RecordKind
        }

    def _get(self, kind: RecordKind, record_id: UUID) -> BaseModel:
        try:
            return self._records[kind][record_id]
        except KeyError:
            raise NotFoundError(kind, record_id)

    async def fetch_all(self, kind: RecordKind) -> list[BaseModel]:
        return sort_records(kind, list(self._records[kind].values()))

    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> BaseModel:
        if kind == RecordKind.PATRIMONY_SNAPSHOTS:
            raise StoreError("Patrimony snapshots are written with upsert_snapshot")
        model = RECORD_MODELS[kind]
        try:
            record = model.model_validate(
                {**fields, "id": uuid4(), "created_at": datetime.utcnow()}
            )
        except ValidationError as e:
            raise StoreError(f"Failed to insert into {kind.value}: {e}")
        self._records[kind][record.id] = record
        return record

    async def update(
        self,
        kind: RecordKind,
        record_id: UUID,
        fields: dict[str, Any],
    ) -> BaseModel:
        existing = self._get(kind, record_id)
        if "id" in fields and fields["id"] != record_id:
            raise StoreError("Record identifiers cannot be changed")
        try:
            updated = type(existing).model_validate(
                {**existing.model_dump(), **fields}
            )
        except ValidationError as e:
            raise StoreError(f"Failed to update {kind.value} {record_id}: {e}")
        self._records[kind][record_id] = updated
        return updated

    async def delete(self, kind: RecordKind, record_id: UUID) -> None:
        if kind in SOFT_DELETE_KINDS:
            raise StoreError(f"{kind.value} records are deactivated, not deleted")
        self._get(kind, record_id)
        del self._records[kind][record_id]

    async def soft_delete(self, kind: RecordKind, record_id: UUID) -> BaseModel:
        if kind not in SOFT_DELETE_KINDS:
            raise StoreError(f"{kind.value} records do not support soft delete")
        return await self.update(kind, record_id, {"is_active": False})

    async def upsert_snapshot(
        self,
        total_balance: Decimal,
        snapshot_date: date,
    ) -> PatrimonySnapshot:
        snapshots = self._records[RecordKind.PATRIMONY_SNAPSHOTS]
        existing = next(
            (s for s in snapshots.values() if s.snapshot_date == snapshot_date),
            None,
        )
        try:
            snapshot = PatrimonySnapshot(
                id=existing.id if existing else uuid4(),
                total_balance=total_balance,
                snapshot_date=snapshot_date,
                created_at=datetime.utcnow(),
            )
        except ValidationError as e:
            raise StoreError(f"Failed to upsert snapshot: {e}")
        snapshots[snapshot.id] = snapshot
        return snapshot


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
