"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the initial storage backend because:
1. Owners can view their books directly in Sheets
2. No database setup required
3. Easy to export to an accountant's spreadsheet

TRADEOFFS:
- Not suitable for high-volume data (fine for a small business)
- Rows are rewritten one at a time, with no multi-row atomicity
- Date windows and owner filters are applied in Python

One worksheet holds every owner's transactions; every read filters on
the owner_id column before anything else.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smallbooks.config import get_settings
from smallbooks.models.audit import AuditEvent, AuditEventType, AuditSeverity
from smallbooks.models.transaction import (
    ExtractionResult,
    ReceiptRef,
    TransactionCategory,
    TransactionKind,
    TransactionRecord,
    TransactionStatus,
)
from smallbooks.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "kind",
    "amount",
    "description",
    "category",
    "occurred_at",
    "status",
    "notes",
    "receipt_storage_key",
    "receipt_url",
    "extraction_json",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _cell(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
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
            except FileNotFoundError as e:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound as e:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One record per row. The extraction is JSON-serialized so the raw
    OCR text stays attached to the record for audit.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: TransactionRecord) -> list:
        """Convert a TransactionRecord to a spreadsheet row."""
        return [
            str(record.id),
            record.owner_id,
            record.kind.value,
            str(record.amount),
            record.description,
            record.category.value,
            record.occurred_at.isoformat(),
            record.status.value,
            record.notes or "",
            record.receipt_ref.storage_key if record.receipt_ref else "",
            record.receipt_ref.retrieval_url if record.receipt_ref else "",
            record.extraction.model_dump_json() if record.extraction else "",
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> TransactionRecord:
        """Convert a spreadsheet row to a TransactionRecord."""
        receipt_ref = None
        if _cell(row, 9):
            receipt_ref = ReceiptRef(storage_key=_cell(row, 9), retrieval_url=_cell(row, 10))

        extraction = None
        if _cell(row, 11):
            extraction = ExtractionResult.model_validate(json.loads(_cell(row, 11)))

        return TransactionRecord(
            id=UUID(_cell(row, 0)),
            owner_id=_cell(row, 1),
            kind=TransactionKind(_cell(row, 2)),
            amount=Decimal(_cell(row, 3)),
            description=_cell(row, 4),
            category=TransactionCategory(_cell(row, 5)),
            occurred_at=datetime.fromisoformat(_cell(row, 6)),
            status=TransactionStatus(_cell(row, 7)),
            notes=_cell(row, 8) or None,
            receipt_ref=receipt_ref,
            extraction=extraction,
            created_at=datetime.fromisoformat(_cell(row, 12)),
            updated_at=datetime.fromisoformat(_cell(row, 13)),
        )

    def _owner_records(self, owner_id: str) -> list[TransactionRecord]:
        sheet = self._client.get_transactions_sheet()
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or _cell(row, 1) != owner_id:
                continue
            try:
                records.append(self._row_to_record(row))
            except (ValueError, KeyError, InvalidOperation) as e:
                logger.warning("skipping_malformed_row", row_id=row[0], error=str(e))
        return records

    def _find_row_index(self, sheet: gspread.Worksheet, owner_id: str, transaction_id: UUID) -> Optional[int]:
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):  # row 1 is header
            if row and row[0] == str(transaction_id) and _cell(row, 1) == owner_id:
                return idx
        return None

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create(self, record: TransactionRecord) -> TransactionRecord:
        """Append a new transaction row."""
        try:
            sheet = self._client.get_transactions_sheet()
            ids = sheet.col_values(1)[1:]
            if str(record.id) in ids:
                raise DuplicateError(f"Transaction already exists: {record.id}")
            sheet.append_row(self._record_to_row(record), value_input_option="RAW")
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}") from e

    async def find(self, owner_id: str, transaction_id: UUID) -> Optional[TransactionRecord]:
        try:
            for record in self._owner_records(owner_id):
                if record.id == transaction_id:
                    return record
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}") from e

    @retry(
        retry=retry_if_not_exception_type(NotFoundError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def update(self, record: TransactionRecord) -> TransactionRecord:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = self._find_row_index(sheet, record.owner_id, record.id)
            if idx is None:
                raise NotFoundError(f"Transaction not found: {record.id}")
            sheet.update(
                range_name=f"A{idx}",
                values=[self._record_to_row(record)],
                value_input_option="RAW",
            )
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}") from e

    async def delete(self, owner_id: str, transaction_id: UUID) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx = self._find_row_index(sheet, owner_id, transaction_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}") from e

    async def list_for_owner(
        self,
        owner_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[TransactionRecord]:
        try:
            records = self._owner_records(owner_id)
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}") from e

        records.sort(key=lambda r: r.occurred_at, reverse=True)
        end = offset + limit if limit is not None else None
        return records[offset:end]

    async def find_by_date_range(
        self,
        owner_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[TransactionRecord]:
        try:
            records = self._owner_records(owner_id)
        except Exception as e:
            raise StorageError(f"Failed to query transactions: {e}") from e

        matched = [
            r for r in records
            if (start_date is None or r.occurred_on >= start_date)
            and (end_date is None or r.occurred_on <= end_date)
        ]
        matched.sort(key=lambda r: r.occurred_at)
        return matched


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            owner_id=_cell(row, 4) or None,
            entity_type=_cell(row, 5) or None,
            entity_id=UUID(_cell(row, 6)) if _cell(row, 6) else None,
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=json.loads(_cell(row, 9)) if _cell(row, 9) else {},
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError) as e:
                logger.warning("skipping_malformed_audit_row", row_id=row[0], error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
