"""Services package."""

from moneytrack.services.network import NetworkStatus
from moneytrack.services.notifications import (
    CollectingNotificationSink,
    NotificationKind,
    NotificationSink,
    StructlogNotificationSink,
)
from moneytrack.services.storage import (
    AuditStorageInterface,
    DocumentStoreInterface,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    InMemoryQueueStorage,
    JsonFileQueueStorage,
    NotFoundError,
    QueueStorageInterface,
    StorageConnectionError,
    StorageError,
    TransactionalWriter,
)

__all__ = [
    # Network status
    "NetworkStatus",
    # Notifications
    "CollectingNotificationSink",
    "NotificationKind",
    "NotificationSink",
    "StructlogNotificationSink",
    # Storage services
    "AuditStorageInterface",
    "DocumentStoreInterface",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryAuditStorage",
    "InMemoryDocumentStore",
    "InMemoryQueueStorage",
    "JsonFileQueueStorage",
    "NotFoundError",
    "QueueStorageInterface",
    "StorageConnectionError",
    "StorageError",
    "TransactionalWriter",
]
