"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory store backs tests and
local runs. Both sit behind the same interface.
"""

from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateIdError,
    NotFoundError,
    StorageError,
    TransactionStoreInterface,
)
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryTransactionStore,
)
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    record_to_row,
    row_to_record,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "TransactionStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateIdError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryTransactionStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
    "record_to_row",
    "row_to_record",
]
