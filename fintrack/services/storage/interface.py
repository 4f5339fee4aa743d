"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Pass the store explicitly to whoever needs it, instead of a global client

The interface is intentionally simple - we're not building a full ORM.
Just the operations the dashboard and import flows need.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from fintrack.models.audit import AuditEvent
from fintrack.models.transaction import Transaction, TransactionDraft


class TransactionStoreInterface(ABC):
    """
    Abstract interface for transaction storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """
        List every transaction owned by the current user.

        Returns:
            Transactions ordered by date, most recent first. Callers may
            take a prefix of this list as the "recent transactions".

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Returns:
            The transaction if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, draft: TransactionDraft) -> Transaction:
        """
        Insert one transaction.

        An id is generated if the draft has none.

        Returns:
            The stored transaction, with its id assigned

        Raises:
            TransactionValidationError: If type, category or amount is missing
            DuplicateIdError: If the draft's id is already stored
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def insert_many(self, drafts: list[TransactionDraft]) -> list[Transaction]:
        """
        Insert several transactions at once (batch imports).

        Every draft is validated before anything is written, so a
        validation failure leaves the store untouched.

        Returns:
            The stored transactions, in input order

        Raises:
            TransactionValidationError: If any draft is missing a required field
            DuplicateIdError: If an id is already stored or repeats in the batch
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, transaction_id: UUID, draft: TransactionDraft) -> Transaction:
        """
        Replace the fields set on the draft; everything else is kept.

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If no transaction has this ID
            TransactionValidationError: If a required field would be cleared
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, transaction_id: UUID) -> None:
        """
        Delete a transaction by ID.

        Raises:
            NotFoundError: If no transaction has this ID
            StorageError: If the delete fails
        """
        pass


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
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class DuplicateIdError(StorageError):
    """A transaction with this ID is already stored."""
    pass
