"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a remote backend because:
1. Users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Layout: one worksheet per collection, one document per row:

    id | updated_at | data_json

TRADEOFFS:
- Sheets has no multi-row transactions. Atomic units are serialised by
  an in-process lock, existence checks run inside it, and all buffered
  writes are resolved before the first API call so a failing update
  never reaches the sheet. The write phase itself is a single batch per
  operation type.
- Limited query capabilities (we filter in Python)
"""

import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from moneytrack.config import get_settings
from moneytrack.config.settings import GoogleSheetsSettings
from moneytrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from moneytrack.models.finance import new_id, utc_now
from moneytrack.services.storage.interface import (
    AuditStorageInterface,
    CollectionName,
    Document,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionalWriter,
    collection_name,
)
from moneytrack.services.storage.memory import BufferedWriter, PendingWrite, stage_writes


logger = structlog.get_logger("moneytrack.storage")


DOCUMENT_COLUMNS = [
    "id",
    "updated_at",
    "data_json",
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

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(StorageConnectionError),
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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StorageConnectionError(
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

    def get_collection_sheet(self, name: str) -> gspread.Worksheet:
        """Get or create the worksheet of a document collection."""
        return self._get_or_create_sheet(name, DOCUMENT_COLUMNS, rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


class GoogleSheetsDocumentStore(DocumentStoreInterface):
    """
    Google Sheets implementation of the document store.

    Documents are JSON-serialized into a single cell.

    LIMITATIONS of `transaction()` on this backend:
    - Units are serialised by an in-process asyncio.Lock only. Another
      process or device writing the same spreadsheet is not excluded, so
      an account verified inside a unit can still be deleted elsewhere
      before the unit's writes land.
    - A unit resolves every buffered write before the first API call, then
      issues per collection one `batch_update`, one `append_rows` and a
      `delete_rows` per removed row. If the network fails between those
      calls the unit is partially applied.
    Use `InMemoryDocumentStore` (or a transactional database behind the
    same interface) where all-or-nothing units across clients are needed.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()

    def _document_to_row(self, document_id: str, document: Document) -> list:
        return [
            document_id,
            utc_now().isoformat(),
            json.dumps({**document, "id": document_id}, default=str),
        ]

    def _load_rows(self, name: str) -> tuple[gspread.Worksheet, dict[str, tuple[int, Document]]]:
        """Worksheet plus {id: (sheet row number, document)}."""
        try:
            sheet = self._client.get_collection_sheet(name)
            all_rows = sheet.get_all_values()
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Failed to read {name}: {e}")

        documents = {}
        # Row 1 is the header
        for idx, row in enumerate(all_rows[1:], start=2):
            if len(row) < 3 or not row[0]:
                continue
            try:
                documents[row[0]] = (idx, json.loads(row[2]))
            except json.JSONDecodeError:
                logger.warning("malformed_document_row", collection=name, row=idx)
        return sheet, documents

    def _current(self, name: str, document_id: str) -> Optional[Document]:
        _, documents = self._load_rows(name)
        found = documents.get(document_id)
        return found[1] if found else None

    async def _read(self, name: str, document_id: str) -> Optional[Document]:
        return self._current(name, document_id)

    def _apply(self, pending: list[PendingWrite]) -> None:
        staged = stage_writes(pending, self._current)

        by_collection: dict[str, dict[str, Optional[Document]]] = {}
        for (name, document_id), document in staged.items():
            by_collection.setdefault(name, {})[document_id] = document

        try:
            for name, changes in by_collection.items():
                sheet, existing = self._load_rows(name)

                updates = []
                appends = []
                deletes = []
                for document_id, document in changes.items():
                    if document is None:
                        if document_id in existing:
                            deletes.append(existing[document_id][0])
                    elif document_id in existing:
                        idx = existing[document_id][0]
                        updates.append({
                            "range": f"A{idx}:C{idx}",
                            "values": [self._document_to_row(document_id, document)],
                        })
                    else:
                        appends.append(self._document_to_row(document_id, document))

                if updates:
                    sheet.batch_update(updates, value_input_option="RAW")
                if appends:
                    sheet.append_rows(appends, value_input_option="RAW")
                # Bottom-up so earlier row numbers stay valid
                for idx in sorted(deletes, reverse=True):
                    sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Failed to write documents: {e}")

    async def get(self, collection: CollectionName, document_id: str) -> Optional[Document]:
        async with self._lock:
            return self._current(collection_name(collection), document_id)

    async def add(self, collection: CollectionName, data: Document) -> str:
        name = collection_name(collection)
        document_id = str(data.get("id") or new_id())
        async with self._lock:
            if self._current(name, document_id) is not None:
                raise DuplicateError(f"Document already exists: {name}/{document_id}")
            self._apply([("set", name, document_id, {**data, "id": document_id})])
        return document_id

    async def set(self, collection: CollectionName, document_id: str, data: Document) -> None:
        name = collection_name(collection)
        async with self._lock:
            self._apply([("set", name, document_id, {**data, "id": document_id})])

    async def update(self, collection: CollectionName, document_id: str, partial: Document) -> None:
        name = collection_name(collection)
        async with self._lock:
            self._apply([("update", name, document_id, partial)])

    async def delete(self, collection: CollectionName, document_id: str) -> bool:
        name = collection_name(collection)
        async with self._lock:
            if self._current(name, document_id) is None:
                return False
            self._apply([("delete", name, document_id, None)])
            return True

    async def list(self, collection: CollectionName) -> list[Document]:
        async with self._lock:
            _, documents = self._load_rows(collection_name(collection))
        return [document for _, document in documents.values()]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionalWriter]:
        async with self._lock:
            writer = BufferedWriter(self._read)
            yield writer
            self._apply(writer.pending)


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
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        all_rows = sheet.get_all_values()[1:]

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except (ValueError, json.JSONDecodeError):
                    logger.warning("malformed_audit_row", event_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._all_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
