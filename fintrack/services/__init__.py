"""Services package."""

from fintrack.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateIdError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    InMemoryAuditStorage,
    InMemoryTransactionStore,
    NotFoundError,
    StorageError,
    TransactionStoreInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateIdError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
    "InMemoryAuditStorage",
    "InMemoryTransactionStore",
    "NotFoundError",
    "StorageError",
    "TransactionStoreInterface",
]
