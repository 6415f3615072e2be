"""
In-Memory Storage Implementation

Single-node stores used for tests and purely local sessions.

Atomic units are serialised by an asyncio.Lock: one unit at a time reads
and buffers writes, and the buffered writes are applied together when the
unit exits cleanly. Single-document calls take the same lock, so they
never observe half of a unit.
"""

import asyncio
import copy
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional
from uuid import UUID

from moneytrack.models.audit import AuditEvent
from moneytrack.models.finance import new_id
from moneytrack.models.queue import QueuedOperation
from moneytrack.services.storage.interface import (
    AuditStorageInterface,
    CollectionName,
    Document,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    QueueStorageInterface,
    TransactionalWriter,
    collection_name,
)


# (operation, collection, document id, data)
PendingWrite = tuple[str, str, str, Optional[Document]]


class BufferedWriter(TransactionalWriter):
    """
    Writer that records writes instead of applying them.

    Reads go through `read` and see this unit's own buffered writes.
    """

    def __init__(self, read: Callable[[str, str], Awaitable[Optional[Document]]]):
        self._read = read
        self.pending: list[PendingWrite] = []

    async def get(self, collection: CollectionName, document_id: str) -> Optional[Document]:
        name = collection_name(collection)
        document = await self._read(name, document_id)

        for op, pending_name, pending_id, data in self.pending:
            if (pending_name, pending_id) != (name, document_id):
                continue
            if op == "set":
                document = data
            elif op == "delete":
                document = None
            elif document is not None:
                document = {**document, **data}

        return copy.deepcopy(document)

    def set(self, collection: CollectionName, document_id: str, data: Document) -> None:
        self.pending.append(
            ("set", collection_name(collection), document_id, {**copy.deepcopy(data), "id": document_id})
        )

    def update(self, collection: CollectionName, document_id: str, partial: Document) -> None:
        self.pending.append(
            ("update", collection_name(collection), document_id, copy.deepcopy(partial))
        )

    def delete(self, collection: CollectionName, document_id: str) -> None:
        self.pending.append(("delete", collection_name(collection), document_id, None))


def stage_writes(
    pending: list[PendingWrite],
    current: Callable[[str, str], Optional[Document]],
) -> dict[tuple[str, str], Optional[Document]]:
    """
    Resolve buffered writes into final documents without applying them.

    Raises:
        NotFoundError: an update targets a document that does not exist
    """
    staged: dict[tuple[str, str], Optional[Document]] = {}

    for op, name, document_id, data in pending:
        key = (name, document_id)
        existing = staged[key] if key in staged else current(name, document_id)

        if op == "set":
            staged[key] = data
        elif op == "delete":
            staged[key] = None
        else:
            if existing is None:
                raise NotFoundError(f"Document not found: {name}/{document_id}")
            staged[key] = {**existing, **data}

    return staged


class InMemoryDocumentStore(DocumentStoreInterface):
    """Document store held in process memory."""

    def __init__(self):
        self._collections: dict[str, dict[str, Document]] = defaultdict(dict)
        self._lock = asyncio.Lock()

    def _current(self, name: str, document_id: str) -> Optional[Document]:
        return self._collections[name].get(document_id)

    async def _read(self, name: str, document_id: str) -> Optional[Document]:
        return copy.deepcopy(self._current(name, document_id))

    def _apply(self, pending: list[PendingWrite]) -> None:
        # Resolve everything first so a failing update leaves no trace
        staged = stage_writes(pending, self._current)
        for (name, document_id), document in staged.items():
            if document is None:
                self._collections[name].pop(document_id, None)
            else:
                self._collections[name][document_id] = document

    async def get(self, collection: CollectionName, document_id: str) -> Optional[Document]:
        async with self._lock:
            return await self._read(collection_name(collection), document_id)

    async def add(self, collection: CollectionName, data: Document) -> str:
        name = collection_name(collection)
        document_id = str(data.get("id") or new_id())
        async with self._lock:
            if document_id in self._collections[name]:
                raise DuplicateError(f"Document already exists: {name}/{document_id}")
            self._collections[name][document_id] = {**copy.deepcopy(data), "id": document_id}
        return document_id

    async def set(self, collection: CollectionName, document_id: str, data: Document) -> None:
        name = collection_name(collection)
        async with self._lock:
            self._collections[name][document_id] = {**copy.deepcopy(data), "id": document_id}

    async def update(self, collection: CollectionName, document_id: str, partial: Document) -> None:
        name = collection_name(collection)
        async with self._lock:
            self._apply([("update", name, document_id, copy.deepcopy(partial))])

    async def delete(self, collection: CollectionName, document_id: str) -> bool:
        name = collection_name(collection)
        async with self._lock:
            return self._collections[name].pop(document_id, None) is not None

    async def list(self, collection: CollectionName) -> list[Document]:
        name = collection_name(collection)
        async with self._lock:
            return [copy.deepcopy(doc) for doc in self._collections[name].values()]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionalWriter]:
        async with self._lock:
            writer = BufferedWriter(self._read)
            yield writer
            # Only reached when the body exits without raising
            self._apply(writer.pending)


class InMemoryQueueStorage(QueueStorageInterface):
    """Offline queue kept in memory (lost on restart)."""

    def __init__(self):
        self._operations: dict[str, QueuedOperation] = {}

    async def load(self) -> list[QueuedOperation]:
        return [op.model_copy(deep=True) for op in self._operations.values()]

    async def put(self, operation: QueuedOperation) -> None:
        # Replacing keeps the original enqueue position
        self._operations[operation.id] = operation.model_copy(deep=True)

    async def remove(self, operation_id: str) -> bool:
        return self._operations.pop(operation_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in memory."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
