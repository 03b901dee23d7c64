"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view their records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (the controller compensates multi-record writes)
- Limited query capabilities (we filter in Python)

Each record kind lives in its own worksheet. The first column holds the
owning user's id so one spreadsheet can serve several users; the remaining
columns follow the record model's field order.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
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
    StoreConnectionError,
    StoreError,
    sort_records,
)


logger = structlog.get_logger(__name__)

USER_COLUMN = "user_id"

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def record_columns(kind: RecordKind) -> list[str]:
    """Header row for a record worksheet."""
    return [USER_COLUMN, *RECORD_MODELS[kind].model_fields]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StoreConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StoreConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StoreConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _sheet_name(self, kind: RecordKind) -> str:
        return {
            RecordKind.TRANSACTIONS: self._settings.transactions_sheet_name,
            RecordKind.ACCOUNTS: self._settings.accounts_sheet_name,
            RecordKind.INCOME_SOURCES: self._settings.income_sources_sheet_name,
            RecordKind.GOALS: self._settings.goals_sheet_name,
            RecordKind.PATRIMONY_SNAPSHOTS: self._settings.patrimony_sheet_name,
        }[kind]

    def _get_or_create(self, title: str, headers: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(headers),
            )
            sheet.append_row(headers)
        return sheet

    def get_record_sheet(self, kind: RecordKind) -> gspread.Worksheet:
        """Get or create the worksheet for a record kind."""
        return self._get_or_create(self._sheet_name(kind), record_columns(kind), rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Records are stored one per row. Every write replaces a whole row in a
    single API call so a failed update never leaves half a record behind.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        user_id: Optional[str] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self.user_id = user_id or get_settings().app.user_id

    def _record_to_row(self, record: BaseModel) -> list[str]:
        """Convert a record to a spreadsheet row."""
        values = record.model_dump(mode="json").values()
        return [self.user_id, *("" if v is None else str(v) for v in values)]

    def _row_to_record(self, kind: RecordKind, row: list[str]) -> BaseModel:
        """Convert a spreadsheet row to a record."""
        fields = list(RECORD_MODELS[kind].model_fields)
        values = row[1:len(fields) + 1]
        # Blank cells fall back to the model's defaults
        data = {name: value for name, value in zip(fields, values) if value != ""}
        return RECORD_MODELS[kind].model_validate(data)

    def _owned_rows(self, sheet: gspread.Worksheet) -> list[tuple[int, list[str]]]:
        """(sheet row number, row) pairs belonging to this user, header skipped."""
        return [
            (idx, row)
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2)
            if row and row[0] == self.user_id
        ]

    def _find_row(
        self,
        sheet: gspread.Worksheet,
        kind: RecordKind,
        record_id: UUID,
    ) -> tuple[int, list[str]]:
        for idx, row in self._owned_rows(sheet):
            if len(row) > 1 and row[1] == str(record_id):
                return idx, row
        raise NotFoundError(kind, record_id)

    @retry(
        retry=retry_if_exception_type(StoreError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_all(self, kind: RecordKind) -> list[BaseModel]:
        """Fetch all of this user's records of a kind."""
        try:
            sheet = self._client.get_record_sheet(kind)
            owned = self._owned_rows(sheet)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to fetch {kind.value}: {e}")

        records = []
        for idx, row in owned:
            try:
                records.append(self._row_to_record(kind, row))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "malformed_row_skipped",
                    kind=kind.value,
                    row_number=idx,
                    error=str(e),
                )
        return sort_records(kind, records)

    async def insert(self, kind: RecordKind, fields: dict[str, Any]) -> BaseModel:
        """Append a new record row."""
        if kind == RecordKind.PATRIMONY_SNAPSHOTS:
            raise StoreError("Patrimony snapshots are written with upsert_snapshot")
        try:
            record = RECORD_MODELS[kind].model_validate(
                {**fields, "id": uuid4(), "created_at": datetime.utcnow()}
            )
            sheet = self._client.get_record_sheet(kind)
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return record
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to insert into {kind.value}: {e}")

    async def update(
        self,
        kind: RecordKind,
        record_id: UUID,
        fields: dict[str, Any],
    ) -> BaseModel:
        """Rewrite a record row with updated fields."""
        try:
            sheet = self._client.get_record_sheet(kind)
            idx, row = self._find_row(sheet, kind, record_id)
            existing = self._row_to_record(kind, row)
            updated = type(existing).model_validate(
                {**existing.model_dump(), **fields, "id": record_id}
            )
            sheet.update(
                range_name=f"A{idx}",
                values=[self._record_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update {kind.value} {record_id}: {e}")

    async def delete(self, kind: RecordKind, record_id: UUID) -> None:
        """Delete a record row."""
        if kind in SOFT_DELETE_KINDS:
            raise StoreError(f"{kind.value} records are deactivated, not deleted")
        try:
            sheet = self._client.get_record_sheet(kind)
            idx, _ = self._find_row(sheet, kind, record_id)
            sheet.delete_rows(idx)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete {kind.value} {record_id}: {e}")

    async def soft_delete(self, kind: RecordKind, record_id: UUID) -> BaseModel:
        """Mark a record inactive."""
        if kind not in SOFT_DELETE_KINDS:
            raise StoreError(f"{kind.value} records do not support soft delete")
        return await self.update(kind, record_id, {"is_active": False})

    async def upsert_snapshot(
        self,
        total_balance: Decimal,
        snapshot_date: date,
    ) -> PatrimonySnapshot:
        """Write the day's snapshot, replacing an earlier one for the same date."""
        kind = RecordKind.PATRIMONY_SNAPSHOTS
        date_column = record_columns(kind).index("snapshot_date")
        try:
            sheet = self._client.get_record_sheet(kind)
            existing = next(
                (
                    (idx, row)
                    for idx, row in self._owned_rows(sheet)
                    if len(row) > date_column and row[date_column] == snapshot_date.isoformat()
                ),
                None,
            )
            snapshot = PatrimonySnapshot(
                id=UUID(existing[1][1]) if existing else uuid4(),
                total_balance=total_balance,
                snapshot_date=snapshot_date,
                created_at=datetime.utcnow(),
            )
            row = self._record_to_row(snapshot)
            if existing:
                sheet.update(range_name=f"A{existing[0]}", values=[row], value_input_option="RAW")
            else:
                sheet.append_row(row, value_input_option="RAW")
            return snapshot
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to upsert snapshot for {snapshot_date}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("malformed_audit_row_skipped", error=str(e))
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_append_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
