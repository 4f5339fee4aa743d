"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted storage backend because:
1. Users can view and export their transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: concurrent edits are last-write-wins
- Limited query capabilities (we filter and sort in Python)

Only establishing the connection is retried. Failed reads and writes
are surfaced to the caller as StorageError and never retried here.
"""

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from fintrack.config import get_settings
from fintrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintrack.models.transaction import (
    Transaction,
    TransactionDraft,
    TransactionRecord,
)
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateIdError,
    NotFoundError,
    StorageError,
    TransactionStoreInterface,
)
from fintrack.validation import ensure_complete, ensure_update_keeps_required


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "date",
    "type",
    "category",
    "amount",
    "description",
    "merchant_name",
    "imported_from",
    "created_at",
]

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


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and retries the initial connection.
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
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


def record_to_row(record: TransactionRecord) -> list:
    """Convert a TransactionRecord to a spreadsheet row. None becomes an empty cell."""
    return [
        record.id,
        record.user_id or "",
        record.date,
        record.type.value,
        record.category,
        repr(record.amount),
        record.description or "",
        record.merchant_name or "",
        record.imported_from.value if record.imported_from else "",
        record.created_at.isoformat() if record.created_at else "",
    ]


def row_to_record(row: list) -> TransactionRecord:
    """Convert a spreadsheet row to a TransactionRecord. Empty cells become None."""
    # Handle missing trailing columns gracefully
    padded = list(row) + [""] * (len(TRANSACTION_COLUMNS) - len(row))
    values = dict(zip(TRANSACTION_COLUMNS, padded))
    values["amount"] = float(values["amount"])
    return TransactionRecord(**values)


class GoogleSheetsTransactionStore(TransactionStoreInterface):
    """
    Google Sheets implementation of the transaction store.

    One row per transaction; rows belonging to other owners are ignored.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        owner_id: Optional[str] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._owner_id = owner_id or get_settings().app.owner_id

    def _to_row(self, transaction: Transaction, created_at: Optional[datetime] = None) -> list:
        record = transaction.to_record(user_id=self._owner_id)
        record.created_at = created_at or datetime.now(timezone.utc)
        return record_to_row(record)

    def _find_row(self, all_rows: list[list], transaction_id: UUID) -> tuple[int, Optional[list]]:
        """Sheet row number (1-based, header is row 1) and values for an id."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == str(transaction_id) and len(row) > 1 and row[1] == self._owner_id:
                return idx, row
        return -1, None

    @staticmethod
    def _parse_row(idx: int, row: list) -> TransactionRecord:
        try:
            return row_to_record(row)
        except (ValueError, TypeError) as e:
            raise StorageError(f"Malformed row {idx}: {e}")

    @staticmethod
    def _check_new_ids(all_rows: list[list], transactions: list[Transaction]) -> None:
        # IDs are unique across the whole sheet, not only this owner's rows
        taken = {row[0] for row in all_rows[1:] if row and row[0]}
        for transaction in transactions:
            key = str(transaction.id)
            if key in taken:
                raise DuplicateIdError(f"Transaction already exists: {transaction.id}")
            taken.add(key)

    async def list_transactions(self) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for idx, row in enumerate(all_rows[1:], start=2):  # Skip header
            if not row or not row[0]:  # Skip empty rows
                continue
            if len(row) < 2 or row[1] != self._owner_id:
                continue
            transactions.append(Transaction.from_record(self._parse_row(idx, row)))

        # Sort by date descending (newest first)
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

        idx, row = self._find_row(all_rows, transaction_id)
        if row is None:
            return None
        return Transaction.from_record(self._parse_row(idx, row))

    async def insert(self, draft: TransactionDraft) -> Transaction:
        ensure_complete(draft)
        transaction = draft.to_transaction()
        try:
            sheet = self._client.get_transactions_sheet()
            self._check_new_ids(sheet.get_all_values(), [transaction])
            sheet.append_row(self._to_row(transaction), value_input_option="RAW")
        except DuplicateIdError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert transaction: {e}")
        return transaction

    async def insert_many(self, drafts: list[TransactionDraft]) -> list[Transaction]:
        for index, draft in enumerate(drafts):
            ensure_complete(draft, index=index)
        transactions = [draft.to_transaction() for draft in drafts]
        if not transactions:
            return []

        try:
            sheet = self._client.get_transactions_sheet()
            self._check_new_ids(sheet.get_all_values(), transactions)
            # One append call, so the batch lands together or not at all
            sheet.append_rows(
                [self._to_row(t) for t in transactions],
                value_input_option="RAW",
            )
        except DuplicateIdError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to import transactions: {e}")
        return transactions

    async def update(self, transaction_id: UUID, draft: TransactionDraft) -> Transaction:
        ensure_update_keeps_required(draft)
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
            idx, row = self._find_row(all_rows, transaction_id)
            if row is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            existing = self._parse_row(idx, row)
            updated = draft.apply_to(Transaction.from_record(existing))
            new_row = self._to_row(updated, created_at=existing.created_at)

            # Update each cell in the row
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")
        return updated

    async def delete(self, transaction_id: UUID) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
            idx, row = self._find_row(all_rows, transaction_id)
            if row is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            sheet.delete_rows(idx)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")


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

        timestamp = datetime.fromisoformat(safe_get(1))
        if timestamp.tzinfo is None:
            # Older rows were written without an offset
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=timestamp,
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
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        return [self._row_to_event(row) for row in all_rows if row and row[0]]

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Raises StorageError; the AuditLogger decides what to do with it."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
