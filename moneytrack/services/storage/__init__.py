"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage:
in-memory and Google Sheets document stores, in-memory and JSON file
offline queue storage, and audit log storage.
"""

from moneytrack.services.storage.interface import (
    AuditStorageInterface,
    DocumentStoreInterface,
    DuplicateError,
    NotFoundError,
    QueueStorageInterface,
    StorageConnectionError,
    StorageError,
    TransactionalWriter,
)
from moneytrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    InMemoryQueueStorage,
)
from moneytrack.services.storage.local_file import JsonFileQueueStorage
from moneytrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "DocumentStoreInterface",
    "QueueStorageInterface",
    "TransactionalWriter",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # In-memory / local implementations
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "InMemoryQueueStorage",
    "JsonFileQueueStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
