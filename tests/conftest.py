"""
Shared fixtures for Finance Tracker tests.

No real spreadsheet is ever touched: controllers run on the in-memory
store, and the Google Sheets store is exercised against fake worksheets.
"""

import asyncio
from datetime import date
from typing import Any, Optional
from uuid import UUID

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.models.finance import RecordKind
from finance_tracker.orchestrator import FinanceController
from finance_tracker.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    StoreError,
)
from finance_tracker.services.storage.google_sheets import AUDIT_COLUMNS, record_columns


TODAY = date(2025, 6, 15)


class FlakyRecordStore(InMemoryRecordStore):
    """
    In-memory store whose updates can be told to fail.

    Each update pops the next entry of `update_failures`; True means that
    call raises StoreError. An empty queue means every update succeeds.
    """

    def __init__(self):
        super().__init__()
        self.update_failures: list[bool] = []
        self.update_calls: list[tuple[RecordKind, UUID, dict[str, Any]]] = []

    async def update(self, kind, record_id, fields):
        self.update_calls.append((kind, record_id, fields))
        if self.update_failures and self.update_failures.pop(0):
            raise StoreError(f"{kind.value} write rejected")
        return await super().update(kind, record_id, fields)


class GatedRecordStore(InMemoryRecordStore):
    """
    In-memory store whose updates wait until `gate` is set.

    With `gated_kind` set only updates of that kind wait. `blocked` is
    set once an update is parked on the gate.
    """

    def __init__(self):
        super().__init__()
        self.gate: Optional[asyncio.Event] = None
        self.gated_kind: Optional[RecordKind] = None
        self.blocked = asyncio.Event()

    async def update(self, kind, record_id, fields):
        if self.gate is not None and self.gated_kind in (None, kind):
            self.blocked.set()
            await self.gate.wait()
        return await super().update(kind, record_id, fields)


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the Sheets store."""

    def __init__(self, headers: list[str]):
        self.rows: list[list[str]] = [list(headers)]

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update(self, range_name, values, value_input_option=None):
        idx = int(range_name[1:]) - 1
        self.rows[idx] = [str(v) for v in values[0]]

    def delete_rows(self, idx):
        del self.rows[idx - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient; one FakeWorksheet per record kind."""

    def __init__(self):
        self.sheets = {kind: FakeWorksheet(record_columns(kind)) for kind in RecordKind}
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS)

    def get_record_sheet(self, kind: RecordKind) -> FakeWorksheet:
        return self.sheets[kind]

    def get_audit_sheet(self) -> FakeWorksheet:
        return self.audit_sheet


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings()


@pytest.fixture
def store() -> FlakyRecordStore:
    return FlakyRecordStore()


@pytest.fixture
def gated_store() -> GatedRecordStore:
    return GatedRecordStore()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def controller(store, audit_storage, settings, today) -> FinanceController:
    return FinanceController(
        store=store,
        audit_logger=AuditLogger(audit_storage),
        settings=settings,
        today=lambda: today,
    )


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()
