"""
Main Orchestrator for fintrack

This module ties together all the components and defines the
end-to-end flows for:
1. Transaction management (add, import, edit, delete, clear all)
2. Dashboard and reports (store → aggregation → snapshot)
3. Receipt import (photo → scan → review → save)
4. Assistant chat (question + every transaction → answer)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No draft reaches the store without passing validation
- A receipt scan never saves by itself; the user saves the reviewed draft
- Every write is audited, and so is every failure

Store failures are audited and then re-raised. Nothing here retries
a store operation.
"""

import asyncio
from datetime import date, datetime
from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from fintrack.agents import FinanceAssistantAgent, ReceiptScanAgent
from fintrack.analytics import (
    category_breakdown,
    filter_by_period,
    financial_trends,
    monthly_time_series,
    period_start,
    recent_transactions,
    sort_newest_first,
    summarize,
)
from fintrack.audit import AuditLogger, configure_logging, create_correlation_id, get_logger
from fintrack.config import AppSettings, get_settings
from fintrack.models import (
    BulkDeleteFailure,
    BulkDeleteResult,
    CategoryTotal,
    FinancialSummary,
    FinancialTrends,
    ImportSource,
    MonthlyBucket,
    ReceiptData,
    ReportPeriod,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    InMemoryTransactionStore,
    StorageError,
    TransactionStoreInterface,
)
from fintrack.validation import TransactionValidationError, TransactionValidator


logger = get_logger(__name__)


class DashboardSnapshot(BaseModel):
    """Everything the dashboard shows, computed from one store read."""
    summary: FinancialSummary
    trends: FinancialTrends
    category_breakdown: list[CategoryTotal]
    monthly_series: list[MonthlyBucket]
    recent_transactions: list[Transaction] = Field(default_factory=list)


class ReportSnapshot(BaseModel):
    """Aggregates over the transactions inside one report period."""
    period: ReportPeriod
    start_date: Optional[date] = None
    summary: FinancialSummary
    category_breakdown: list[CategoryTotal]
    monthly_series: list[MonthlyBucket]
    transactions: list[Transaction] = Field(default_factory=list)


class TransactionService:
    """
    Validated, audited access to the transaction store.

    Flow for every write:
    1. Validate → reject with TransactionValidationError (audited)
    2. Store → StorageError is audited and re-raised
    3. Audit the change
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit_logger = audit_logger

    @property
    def store(self) -> TransactionStoreInterface:
        return self._store

    async def _storage_failed(
        self,
        operation: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        logger.error("storage_operation_failed", operation=operation, error=str(error))
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )

    async def _ensure_valid(
        self,
        draft: TransactionDraft,
        index: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        result = self._validator.validate(draft)
        for issue in result.warnings:
            logger.warning("transaction_warning", field=issue.field, message=issue.message)
        if result.is_valid:
            return

        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.errors
                ],
                correlation_id=correlation_id,
            )
        raise TransactionValidationError(result.errors, index=index)

    async def list_transactions(self) -> list[Transaction]:
        """All transactions, newest first."""
        try:
            return await self._store.list_transactions()
        except StorageError as e:
            await self._storage_failed("list", e)
            raise

    async def recent(self, limit: int = 5) -> list[Transaction]:
        return recent_transactions(await self.list_transactions(), limit)

    async def add(self, draft: TransactionDraft) -> Transaction:
        """
        Validate and insert one transaction.

        Raises:
            TransactionValidationError: If a required field is missing
            StorageError: If the store rejects the write
        """
        await self._ensure_valid(draft)
        try:
            transaction = await self._store.insert(draft)
        except StorageError as e:
            await self._storage_failed("insert", e)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                category=transaction.category,
                amount=transaction.amount,
                source=transaction.imported_from.value if transaction.imported_from else None,
            )
        return transaction

    async def import_many(
        self,
        drafts: list[TransactionDraft],
        source: Optional[ImportSource] = None,
    ) -> list[Transaction]:
        """
        Insert a batch, all or nothing.

        Every draft is validated before the store is touched. Drafts that
        do not name their own origin are stamped with `source`.

        Raises:
            TransactionValidationError: Naming the first bad draft's index
            StorageError: If the store rejects the batch
        """
        correlation_id = create_correlation_id()
        if source is not None:
            drafts = [
                draft if draft.imported_from else draft.model_copy(update={"imported_from": source})
                for draft in drafts
            ]

        for index, draft in enumerate(drafts):
            await self._ensure_valid(draft, index=index, correlation_id=correlation_id)

        try:
            transactions = await self._store.insert_many(drafts)
        except StorageError as e:
            await self._storage_failed("insert_many", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transactions_imported(
                count=len(transactions),
                source=source.value if source else None,
                correlation_id=correlation_id,
            )
        return transactions

    async def update(self, transaction_id: UUID, draft: TransactionDraft) -> Transaction:
        """
        Change the fields set on `draft`; everything else is kept.

        Raises:
            TransactionValidationError: If a required field would be cleared
            NotFoundError: If the id does not exist
            StorageError: If the store rejects the write
        """
        try:
            transaction = await self._store.update(transaction_id, draft)
        except StorageError as e:
            await self._storage_failed("update", e)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                changed_fields=sorted(draft.model_fields_set - {"id"}),
            )
        return transaction

    async def delete(self, transaction_id: UUID) -> None:
        """
        Raises:
            NotFoundError: If the id does not exist
            StorageError: If the store rejects the delete
        """
        try:
            await self._store.delete(transaction_id)
        except StorageError as e:
            await self._storage_failed("delete", e)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(transaction_id=transaction_id)

    async def clear_all(self) -> BulkDeleteResult:
        """
        Delete every transaction, one concurrent delete per row.

        CRITICAL: This is best-effort, NOT atomic. A failed delete leaves
        that transaction stored and does not stop the others. The result
        lists both outcomes.
        """
        correlation_id = create_correlation_id()
        transactions = await self.list_transactions()

        outcomes = await asyncio.gather(
            *(self._store.delete(txn.id) for txn in transactions),
            return_exceptions=True,
        )

        result = BulkDeleteResult()
        for txn, outcome in zip(transactions, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("bulk_delete_failed", transaction_id=str(txn.id), error=str(outcome))
                result.failures.append(BulkDeleteFailure(transaction_id=txn.id, error=str(outcome)))
            else:
                result.deleted_ids.append(txn.id)

        if self._audit_logger:
            await self._audit_logger.log_bulk_clear(
                deleted=len(result.deleted_ids),
                failed=len(result.failures),
                correlation_id=correlation_id,
            )
        return result


class DashboardFlow:
    """
    Read-only views over the store.

    Reads the full transaction list once per call and runs the pure
    aggregation functions over it.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().app

    async def build(self, now: Optional[Union[date, datetime]] = None) -> DashboardSnapshot:
        now = now or date.today()
        transactions = await self._store.list_transactions()

        return DashboardSnapshot(
            summary=summarize(transactions),
            trends=financial_trends(transactions, now),
            category_breakdown=category_breakdown(transactions),
            monthly_series=monthly_time_series(transactions),
            recent_transactions=recent_transactions(
                transactions, self._settings.recent_transactions_limit
            ),
        )

    async def report(
        self,
        period: Union[ReportPeriod, str] = ReportPeriod.MONTH,
        now: Optional[Union[date, datetime]] = None,
    ) -> ReportSnapshot:
        """
        Aggregates for one report period.

        Raises:
            ValueError: If the period name is unknown
        """
        period = ReportPeriod(period)
        now = now or date.today()
        transactions = filter_by_period(await self._store.list_transactions(), period, now)

        return ReportSnapshot(
            period=period,
            start_date=period_start(period, now),
            summary=summarize(transactions),
            category_breakdown=category_breakdown(transactions),
            monthly_series=monthly_time_series(transactions),
            transactions=sort_newest_first(transactions),
        )


class ReceiptImportFlow:
    """
    Orchestrates the receipt import flow.

    Flow:
    1. Scan → the model proposes merchant, amount, date, items, category
    2. Review → to_draft() turns the proposal into an editable draft
    3. Save → the (possibly edited) draft goes through TransactionService

    The scan result is NEVER saved automatically.
    """

    def __init__(
        self,
        service: TransactionService,
        agent: Optional[ReceiptScanAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._service = service
        self._agent = agent
        self._audit_logger = audit_logger

    def _get_agent(self) -> ReceiptScanAgent:
        if self._agent is None:
            self._agent = ReceiptScanAgent()
        return self._agent

    async def scan(self, image_base64: str) -> ReceiptData:
        """
        Raises:
            InvalidImageError: If the image is not valid base64
            ReceiptParseError: If the model's reply is not JSON
            AIServiceError: If the model call fails
        """
        receipt = await self._get_agent().scan(image_base64)
        if self._audit_logger:
            await self._audit_logger.log_receipt_scanned(
                merchant=receipt.merchant,
                amount=receipt.amount,
            )
        return receipt

    @staticmethod
    def to_draft(receipt: ReceiptData) -> TransactionDraft:
        """
        Pre-fill an expense draft from a scan.

        A date the model did not return as YYYY-MM-DD is dropped, so the
        store falls back to today.
        """
        receipt_date = None
        if receipt.date:
            try:
                receipt_date = date.fromisoformat(receipt.date)
            except ValueError:
                logger.info("receipt_date_ignored", date=receipt.date)

        return TransactionDraft(
            date=receipt_date,
            type=TransactionType.EXPENSE,
            category=receipt.category,
            amount=abs(receipt.amount) if receipt.amount is not None else None,
            description=", ".join(receipt.items) or None,
            merchant=receipt.merchant,
            imported_from=ImportSource.RECEIPT,
        )

    async def save(self, draft: TransactionDraft) -> Transaction:
        """Save the reviewed draft. Called ONLY after the user confirms."""
        if draft.imported_from is None:
            draft = draft.model_copy(update={"imported_from": ImportSource.RECEIPT})
        return await self._service.add(draft)


class AssistantFlow:
    """
    Answers questions with the user's full transaction history attached.

    The assistant sees every stored transaction, nothing else.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        agent: Optional[FinanceAssistantAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._agent = agent
        self._audit_logger = audit_logger

    def _get_agent(self) -> FinanceAssistantAgent:
        if self._agent is None:
            self._agent = FinanceAssistantAgent()
        return self._agent

    async def ask(self, message: str) -> str:
        """
        Raises:
            ValueError: If the message is blank
            AIServiceError: If the model call fails
        """
        if not message or not message.strip():
            raise ValueError("A non-empty message is required")

        transactions = [txn.to_wire() for txn in await self._store.list_transactions()]
        answer = await self._get_agent().answer(message, transactions)

        if self._audit_logger:
            await self._audit_logger.log_assistant_answered(
                message_length=len(message),
                transaction_count=len(transactions),
            )
        return answer


def create_app_components(
    use_storage: bool = True,
) -> tuple[TransactionService, DashboardFlow, ReceiptImportFlow, AssistantFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False to keep everything in memory.

    Returns:
        (transaction_service, dashboard_flow, receipt_flow, assistant_flow, sheets_client)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    sheets_client = None
    store: TransactionStoreInterface
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsTransactionStore(sheets_client, owner_id=settings.app.owner_id)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            store = InMemoryTransactionStore(owner_id=settings.app.owner_id)
            audit_logger = AuditLogger()
    else:
        store = InMemoryTransactionStore(owner_id=settings.app.owner_id)
        audit_logger = AuditLogger()  # Local-only logging

    service = TransactionService(
        store,
        validator=TransactionValidator(settings.app),
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(store, settings.app)
    receipt_flow = ReceiptImportFlow(service, audit_logger=audit_logger)
    assistant_flow = AssistantFlow(store, audit_logger=audit_logger)

    return service, dashboard_flow, receipt_flow, assistant_flow, sheets_client
