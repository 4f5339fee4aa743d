"""
In-Memory Storage Implementation

Keeps transaction rows in a dict keyed by id. Used by the test suite
and for running the app without any backend configured.

Rows are stored in their record form, the same shape the Google Sheets
store writes, so the boundary mapping is exercised here too.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

from fintrack.models.audit import AuditEvent
from fintrack.models.transaction import (
    Transaction,
    TransactionDraft,
    TransactionRecord,
)
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateIdError,
    NotFoundError,
    StorageError,
    TransactionStoreInterface,
)
from fintrack.validation import ensure_complete, ensure_update_keeps_required


class InMemoryTransactionStore(TransactionStoreInterface):
    """
    Dict-backed transaction store.

    `failing_ids` makes delete/update of those ids raise StorageError,
    which lets callers rehearse partial failures.
    """

    def __init__(
        self,
        owner_id: str = "local-user",
        failing_ids: Optional[Iterable[UUID]] = None,
    ):
        self._owner_id = owner_id
        self._rows: dict[str, TransactionRecord] = {}
        self.failing_ids: set[UUID] = set(failing_ids or ())

    def _check_failure(self, transaction_id: UUID, operation: str) -> None:
        if transaction_id in self.failing_ids:
            raise StorageError(f"Simulated {operation} failure for {transaction_id}")

    def _check_new_ids(self, transactions: list[Transaction]) -> None:
        seen = set()
        for transaction in transactions:
            key = str(transaction.id)
            if key in self._rows or key in seen:
                raise DuplicateIdError(f"Transaction already exists: {transaction.id}")
            seen.add(key)

    def _write(self, transaction: Transaction) -> Transaction:
        record = transaction.to_record(user_id=self._owner_id)
        existing = self._rows.get(record.id)
        record.created_at = existing.created_at if existing else datetime.now(timezone.utc)
        self._rows[record.id] = record
        return Transaction.from_record(record)

    async def list_transactions(self) -> list[Transaction]:
        transactions = [
            Transaction.from_record(row)
            for row in self._rows.values()
            if row.user_id == self._owner_id
        ]
        transactions.sort(key=lambda t: t.date, reverse=True)
        return transactions

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        row = self._rows.get(str(transaction_id))
        if row is None or row.user_id != self._owner_id:
            return None
        return Transaction.from_record(row)

    async def insert(self, draft: TransactionDraft) -> Transaction:
        ensure_complete(draft)
        transaction = draft.to_transaction()
        self._check_new_ids([transaction])
        return self._write(transaction)

    async def insert_many(self, drafts: list[TransactionDraft]) -> list[Transaction]:
        # Validate everything first so a bad draft means no write at all
        for index, draft in enumerate(drafts):
            ensure_complete(draft, index=index)
        transactions = [draft.to_transaction() for draft in drafts]
        self._check_new_ids(transactions)
        return [self._write(transaction) for transaction in transactions]

    async def update(self, transaction_id: UUID, draft: TransactionDraft) -> Transaction:
        ensure_update_keeps_required(draft)
        await asyncio.sleep(0)
        self._check_failure(transaction_id, "update")

        current = await self.get_transaction(transaction_id)
        if current is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return self._write(draft.apply_to(current))

    async def delete(self, transaction_id: UUID) -> None:
        await asyncio.sleep(0)
        self._check_failure(transaction_id, "delete")

        key = str(transaction_id)
        row = self._rows.get(key)
        if row is None or row.user_id != self._owner_id:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        del self._rows[key]

    def records(self) -> list[TransactionRecord]:
        """Raw stored rows, for inspection."""
        return list(self._rows.values())


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
