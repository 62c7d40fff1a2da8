"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the "see my data" backend. A user can
open the spreadsheet and read their budget records and audit trail
without any tooling, and Google keeps the backups.

Budget records live in one worksheet, one row per (user, record):

    [user_id, record_key, payload_json, updated_at]

Audit events go to a second worksheet, one row per event, in the column
order of AuditEvent.to_sheets_row().

TRADEOFFS:
- Every read pulls the whole worksheet and filters in Python
- A record is rewritten with one range update per save
- Fine for one household, not for many users

Raw sheet calls are retried with exponential backoff (tenacity); the
storage methods turn whatever still fails into StorageError.
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from kwik_kash.config import GoogleSheetsSettings, get_settings
from kwik_kash.models.audit import AuditEvent, AuditEventType, AuditSeverity
from kwik_kash.models.budget import utc_now
from kwik_kash.services.storage.interface import (
    DEFAULT_KEY_PREFIX,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    RecordKey,
    StorageError,
)


logger = structlog.get_logger("kwik_kash.storage")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

STATE_COLUMNS = ["user_id", "record_key", "payload_json", "updated_at"]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Authenticated handle on the configured spreadsheet.

    Connects lazily with the service account key and creates missing
    worksheets (with a header row) on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @sheets_retry
    def connect(self) -> gspread.Client:
        if self._client is not None:
            return self._client
        try:
            credentials = Credentials.from_service_account_file(
                self._settings.credentials_path,
                scopes=SCOPES,
            )
            self._client = gspread.authorize(credentials)
        except FileNotFoundError:
            raise ConnectionError(
                f"Service account key not found: {self._settings.credentials_path}"
            )
        except Exception as e:
            raise ConnectionError(f"Could not authorize with Google Sheets: {e}")
        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self.connect().open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"No spreadsheet with key {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, header: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(header))
            sheet.append_row(header)
            return sheet

    def get_state_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.state_sheet_name, STATE_COLUMNS, rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Budget records as rows of the state worksheet.

    save_record() upserts: an existing (user_id, record_key) row is
    overwritten in place, otherwise a row is appended.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ):
        super().__init__(key_prefix)
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_index(rows: list[list[str]], user_id: str, name: str) -> Optional[int]:
        """1-based sheet row of a record; row 1 is the header."""
        for index, row in enumerate(rows[1:], start=2):
            if len(row) >= 2 and row[0] == user_id and row[1] == name:
                return index
        return None

    @sheets_retry
    def _upsert(self, user_id: str, name: str, payload_json: str) -> None:
        sheet = self._client.get_state_sheet()
        row = [user_id, name, payload_json, utc_now().isoformat()]
        index = self._row_index(sheet.get_all_values(), user_id, name)
        if index is None:
            sheet.append_row(row, value_input_option="RAW")
            return
        sheet.update(
            range_name=f"A{index}:D{index}",
            values=[row],
            value_input_option="RAW",
        )

    async def load_record(self, user_id: str, key: RecordKey) -> Optional[Any]:
        try:
            rows = self._client.get_state_sheet().get_all_values()
            index = self._row_index(rows, user_id, self.record_name(key))
            if index is None:
                return None
            row = rows[index - 1]
            return json.loads(row[2]) if len(row) > 2 and row[2] else None
        except Exception as e:
            raise StorageError(f"Could not read {self.record_name(key)}: {e}")

    async def save_record(self, user_id: str, key: RecordKey, payload: Any) -> bool:
        name = self.record_name(key)
        try:
            self._upsert(user_id, name, json.dumps(payload))
        except Exception as e:
            raise StorageError(f"Could not write {name}: {e}")
        return True

    async def delete_records(self, user_id: str) -> int:
        """Remove the user's rows from the bottom up so indexes stay valid."""
        try:
            sheet = self._client.get_state_sheet()
            indexes = [
                index
                for index, row in enumerate(sheet.get_all_values()[1:], start=2)
                if row and row[0] == user_id
            ]
            for index in reversed(indexes):
                sheet.delete_rows(index)
            return len(indexes)
        except Exception as e:
            raise StorageError(f"Could not delete records of {user_id}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Append-only audit log in the audit worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _parse_row(row: list[str]) -> AuditEvent:
        cells = list(row) + [""] * (len(AUDIT_COLUMNS) - len(row))
        (event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action) = cells[:len(AUDIT_COLUMNS)]

        return AuditEvent(
            event_id=UUID(event_id),
            timestamp=datetime.fromisoformat(timestamp),
            event_type=AuditEventType(event_type),
            severity=AuditSeverity(severity),
            user_id=user_id or None,
            entity_type=entity_type or None,
            entity_id=entity_id or None,
            correlation_id=UUID(correlation_id) if correlation_id else None,
            description=description,
            details=json.loads(details_json) if details_json else {},
            error_message=error_message or None,
            is_user_action=is_user_action.lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._parse_row(row))
            except (ValueError, TypeError) as e:
                logger.warning("audit_row_unreadable", event_id=row[0], error=str(e))
        return events

    @sheets_retry
    def _append_row(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            logger.warning(
                "audit_sheet_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Could not read the audit log: {e}")
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if user_id is None or e.user_id == user_id
            ]
        except Exception as e:
            raise StorageError(f"Could not read the audit log: {e}")
        return sorted(events, key=lambda e: e.timestamp, reverse=True)[:limit]
