"""
Integration tests for the orchestrated flows.

Everything runs against the in-memory store with an in-memory audit
sink; the agents get a fake Gemini model.
"""

import asyncio
from datetime import date
from uuid import uuid4

import pytest

from fintrack.agents import FinanceAssistantAgent, ReceiptScanAgent
from fintrack.audit import AuditLogger
from fintrack.config import AppSettings, GeminiSettings
from fintrack.models import (
    AuditEventType,
    ImportSource,
    ReceiptData,
    ReportPeriod,
    TransactionDraft,
    TransactionType,
)
from fintrack.orchestrator import (
    AssistantFlow,
    DashboardFlow,
    ReceiptImportFlow,
    TransactionService,
    create_app_components,
)
from fintrack.services.storage import (
    InMemoryAuditStorage,
    InMemoryTransactionStore,
    NotFoundError,
    StorageError,
)
from fintrack.validation import TransactionValidationError, TransactionValidator


@pytest.fixture
def app_settings():
    return AppSettings(recent_transactions_limit=2)


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def service(store, audit_storage, app_settings):
    return TransactionService(
        store,
        validator=TransactionValidator(app_settings),
        audit_logger=AuditLogger(audit_storage),
    )


def _draft(**overrides) -> TransactionDraft:
    fields = {"type": "expense", "category": "Food", "amount": 10.0, "date": date(2024, 3, 1)}
    fields.update(overrides)
    return TransactionDraft(**fields)


def _event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestTransactionService:
    """Tests for validated, audited store access."""

    def test_add_audits_creation(self, service, audit_storage):
        txn = asyncio.run(service.add(_draft()))
        assert txn.imported_from == ImportSource.MANUAL
        assert _event_types(audit_storage) == [AuditEventType.TRANSACTION_CREATED]
        assert audit_storage.events[0].entity_id == txn.id

    def test_add_rejects_incomplete_draft(self, service, store, audit_storage):
        with pytest.raises(TransactionValidationError):
            asyncio.run(service.add(_draft(amount=None)))
        assert store.records() == []
        assert _event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_import_many_stamps_source(self, service, audit_storage):
        transactions = asyncio.run(service.import_many(
            [_draft(), _draft(imported_from=ImportSource.RECEIPT)],
            source=ImportSource.FILE,
        ))
        assert [t.imported_from for t in transactions] == [ImportSource.FILE, ImportSource.RECEIPT]
        assert audit_storage.events[-1].event_type == AuditEventType.TRANSACTIONS_IMPORTED
        assert audit_storage.events[-1].details["count"] == 2

    def test_import_many_writes_nothing_on_bad_draft(self, service, store):
        with pytest.raises(TransactionValidationError) as exc_info:
            asyncio.run(service.import_many([_draft(), _draft(type=None)]))
        assert exc_info.value.index == 1
        assert store.records() == []

    def test_update_audits_changed_fields(self, service, audit_storage):
        txn = asyncio.run(service.add(_draft()))
        updated = asyncio.run(service.update(txn.id, TransactionDraft(amount=15, category="Dining")))

        assert updated.amount == 15
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.TRANSACTION_UPDATED
        assert event.details["changed_fields"] == ["amount", "category"]

    def test_storage_failure_is_audited_and_reraised(self, service, store, audit_storage):
        txn = asyncio.run(service.add(_draft()))
        store.failing_ids.add(txn.id)

        with pytest.raises(StorageError):
            asyncio.run(service.delete(txn.id))
        assert audit_storage.events[-1].event_type == AuditEventType.STORAGE_ERROR

    def test_delete_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            asyncio.run(service.delete(uuid4()))

    def test_recent(self, service):
        asyncio.run(service.import_many([
            _draft(date=date(2024, 1, d)) for d in range(1, 6)
        ]))
        recent = asyncio.run(service.recent(limit=2))
        assert [t.date.day for t in recent] == [5, 4]


class TestClearAll:
    """Tests for best-effort bulk clear."""

    def test_clears_everything(self, service, store, audit_storage):
        asyncio.run(service.import_many([_draft() for _ in range(4)]))

        result = asyncio.run(service.clear_all())

        assert result.complete
        assert len(result.deleted_ids) == 4
        assert store.records() == []
        assert audit_storage.events[-1].event_type == AuditEventType.BULK_CLEAR_COMPLETED

    def test_one_failure_leaves_one_behind(self, service, store, audit_storage):
        """Test that N deletes with one failure remove N-1 and keep 1."""
        transactions = asyncio.run(service.import_many([_draft(amount=i) for i in range(5)]))
        stuck = transactions[2]
        store.failing_ids.add(stuck.id)

        result = asyncio.run(service.clear_all())

        assert len(result.deleted_ids) == 4
        assert [f.transaction_id for f in result.failures] == [stuck.id]
        remaining = asyncio.run(store.list_transactions())
        assert [t.id for t in remaining] == [stuck.id]

        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.BULK_CLEAR_PARTIAL
        assert event.details == {"deleted": 4, "failed": 1}

    def test_empty_store(self, service):
        result = asyncio.run(service.clear_all())
        assert result.complete
        assert result.deleted_ids == []


class TestDashboardFlow:
    """Tests for dashboard and report snapshots."""

    def _seed(self, service):
        asyncio.run(service.import_many([
            _draft(type="income", category="Salary", amount=3000, date=date(2024, 2, 1)),
            _draft(category="Rent", amount=1000, date=date(2024, 2, 3)),
            _draft(type="income", category="Salary", amount=3000, date=date(2024, 3, 1)),
            _draft(category="Rent", amount=1000, date=date(2024, 3, 3)),
            _draft(category="Food", amount=500, date=date(2024, 3, 10)),
        ]))

    def test_build(self, service, store, app_settings):
        self._seed(service)
        snapshot = asyncio.run(DashboardFlow(store, app_settings).build(date(2024, 3, 15)))

        assert snapshot.summary.income == 6000
        assert snapshot.summary.expenses == 2500
        assert snapshot.trends.income.trend == 0
        assert snapshot.trends.expenses.trend == -50
        assert snapshot.trends.balance.value == 1500
        assert [c.name for c in snapshot.category_breakdown] == ["Rent", "Food"]
        assert len(snapshot.monthly_series) == 12
        assert snapshot.monthly_series[2].expenses == 1500
        assert [t.date for t in snapshot.recent_transactions] == [date(2024, 3, 10), date(2024, 3, 3)]

    def test_report_month(self, service, store, app_settings):
        self._seed(service)
        report = asyncio.run(DashboardFlow(store, app_settings).report("month", date(2024, 3, 15)))

        assert report.period == ReportPeriod.MONTH
        assert report.start_date == date(2024, 3, 1)
        assert report.summary.expenses == 1500
        assert len(report.transactions) == 3

    def test_report_all(self, service, store, app_settings):
        self._seed(service)
        report = asyncio.run(DashboardFlow(store, app_settings).report(ReportPeriod.ALL, date(2024, 3, 15)))
        assert report.start_date is None
        assert len(report.transactions) == 5


class TestReceiptImportFlow:
    """Tests for scan → review → save."""

    def test_to_draft(self):
        draft = ReceiptImportFlow.to_draft(ReceiptData(
            merchant="Corner Market",
            amount=23.4,
            date="2024-03-02",
            items=["Milk", "Bread"],
            category="Food & Dining",
        ))
        assert draft.type == TransactionType.EXPENSE
        assert draft.date == date(2024, 3, 2)
        assert draft.description == "Milk, Bread"
        assert draft.imported_from == ImportSource.RECEIPT

    def test_to_draft_drops_unreadable_date(self):
        draft = ReceiptImportFlow.to_draft(ReceiptData(date="02/03/2024"))
        assert draft.date is None
        assert draft.description is None

    def test_scan_does_not_save(self, service, store, audit_storage, fake_model):
        agent = ReceiptScanAgent(
            settings=GeminiSettings(api_key="test-key", max_retries=1),
            model=fake_model('{"merchant": "Shop", "amount": 5, "date": "2024-03-02", "items": [], "category": "Other"}'),
        )
        flow = ReceiptImportFlow(service, agent=agent, audit_logger=AuditLogger(audit_storage))

        receipt = asyncio.run(flow.scan("aGVsbG8="))
        assert store.records() == []

        saved = asyncio.run(flow.save(flow.to_draft(receipt)))
        assert saved.merchant == "Shop"
        assert saved.imported_from == ImportSource.RECEIPT
        assert AuditEventType.RECEIPT_SCANNED in _event_types(audit_storage)

    def test_save_requires_category(self, service):
        flow = ReceiptImportFlow(service)
        with pytest.raises(TransactionValidationError):
            asyncio.run(flow.save(ReceiptImportFlow.to_draft(ReceiptData(amount=5))))


class TestAssistantFlow:

    def test_ask_sends_every_transaction(self, service, store, fake_model):
        asyncio.run(service.import_many([_draft(merchant="Cafe") for _ in range(3)]))
        model = fake_model("You eat out a lot.")
        agent = FinanceAssistantAgent(
            settings=GeminiSettings(api_key="test-key", max_retries=1),
            model=model,
        )

        answer = asyncio.run(AssistantFlow(store, agent=agent).ask("Where does my money go?"))

        assert answer == "You eat out a lot."
        assert model.calls[0].count('"merchant": "Cafe"') == 3

    def test_blank_message(self, store):
        with pytest.raises(ValueError):
            asyncio.run(AssistantFlow(store).ask("  "))


class TestCreateAppComponents:

    def test_in_memory_components(self):
        service, dashboard, receipts, assistant, sheets_client = create_app_components(use_storage=False)
        assert sheets_client is None
        assert isinstance(service.store, InMemoryTransactionStore)

        asyncio.run(service.add(_draft()))
        snapshot = asyncio.run(dashboard.build(date(2024, 3, 15)))
        assert snapshot.summary.expenses == 10

    def test_unconfigured_sheets_falls_back_to_memory(self):
        service, _, _, _, sheets_client = create_app_components(use_storage=True)
        assert sheets_client is None
        assert isinstance(service.store, InMemoryTransactionStore)
