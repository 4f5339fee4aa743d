"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.transaction import (
    RECEIPT_CATEGORIES,
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
    TransactionRecord,
    TransactionType,
    TrendValue,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "RECEIPT_CATEGORIES",
    "BulkDeleteFailure",
    "BulkDeleteResult",
    "CategoryTotal",
    "FinancialSummary",
    "FinancialTrends",
    "ImportSource",
    "MonthlyBucket",
    "ReceiptData",
    "ReportPeriod",
    "Transaction",
    "TransactionDraft",
    "TransactionRecord",
    "TransactionType",
    "TrendValue",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
