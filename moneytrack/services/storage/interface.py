"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Use in-memory storage for testing and single-node use
2. Persist to Google Sheets without touching the ledger core
3. Swap in any backend with multi-document read-then-write atomicity

Documents are plain JSON-compatible dicts keyed by id inside a
collection. The core serializes its models before writing and parses
them after reading.

IDEMPOTENCY: `set` is create-or-replace keyed on the document id. Every
replayed write goes through it, so replaying the same write twice leaves
the same end state.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Optional, Union
from uuid import UUID

from moneytrack.models.audit import AuditEvent
from moneytrack.models.finance import Collection
from moneytrack.models.queue import QueuedOperation


CollectionName = Union[Collection, str]
Document = dict[str, Any]


class TransactionalWriter(ABC):
    """
    Handle passed to the body of an atomic unit.

    Reads hit storage immediately. Writes are buffered and applied
    together when the unit exits cleanly; any exception discards them all.
    """

    @abstractmethod
    async def get(self, collection: CollectionName, document_id: str) -> Optional[Document]:
        """Read a document as seen by this unit, or None."""
        pass

    @abstractmethod
    def set(self, collection: CollectionName, document_id: str, data: Document) -> None:
        """Buffer a create-or-replace."""
        pass

    @abstractmethod
    def update(self, collection: CollectionName, document_id: str, partial: Document) -> None:
        """Buffer a partial update; the document must exist at commit."""
        pass

    @abstractmethod
    def delete(self, collection: CollectionName, document_id: str) -> None:
        """Buffer a delete."""
        pass


class DocumentStoreInterface(ABC):
    """
    Abstract interface for the per-user document store.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def get(self, collection: CollectionName, document_id: str) -> Optional[Document]:
        """
        Retrieve a document by id.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def add(self, collection: CollectionName, data: Document) -> str:
        """
        Insert a new document.

        Uses `data["id"]` when present, otherwise assigns a fresh id.

        Returns:
            The document id

        Raises:
            DuplicateError: A document with that id already exists
        """
        pass

    @abstractmethod
    async def set(self, collection: CollectionName, document_id: str, data: Document) -> None:
        """Create or replace a document keyed on its id."""
        pass

    @abstractmethod
    async def update(self, collection: CollectionName, document_id: str, partial: Document) -> None:
        """
        Merge fields into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, collection: CollectionName, document_id: str) -> bool:
        """
        Delete a document by id.

        Returns:
            True if a document was deleted
        """
        pass

    @abstractmethod
    async def list(self, collection: CollectionName) -> list[Document]:
        """All documents of a collection."""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[TransactionalWriter]:
        """
        Open an atomic unit.

        Usage:
            async with store.transaction() as tx:
                source = await tx.get("accounts", source_id)
                tx.set("transactions", txn_id, data)

        Either every buffered write lands or none does.
        """
        pass


class QueueStorageInterface(ABC):
    """
    Durable storage for the offline queue.

    Operations are keyed by their id; load order is enqueue order.
    """

    @abstractmethod
    async def load(self) -> list[QueuedOperation]:
        """All stored operations in enqueue order."""
        pass

    @abstractmethod
    async def put(self, operation: QueuedOperation) -> None:
        """Insert or replace an operation keyed by its id."""
        pass

    @abstractmethod
    async def remove(self, operation_id: str) -> bool:
        """
        Remove an operation.

        Returns:
            True if it was stored
        """
        pass

    async def get(self, operation_id: str) -> Optional[QueuedOperation]:
        """Look up one operation."""
        for operation in await self.load():
            if operation.id == operation_id:
                return operation
        return None


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
        """Events of one user action in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


def collection_name(collection: CollectionName) -> str:
    """Normalize a collection to its storage name."""
    return Collection(collection).value


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
