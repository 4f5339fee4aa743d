"""
Core Data Models for fintrack

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Map cleanly onto the store's row format
4. Support the audit trail

DESIGN DECISION: Amounts are plain floats. The aggregation contract is
IEEE double arithmetic, and direction lives in `type`, never in the sign.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

# Alias so that a field called `date` does not shadow the type in class bodies
CalendarDate = date


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement. Mutually exclusive."""
    INCOME = "income"
    EXPENSE = "expense"


class ImportSource(str, Enum):
    """Where a transaction entered the system."""
    MANUAL = "manual"
    WECHAT = "wechat"
    RECEIPT = "receipt"
    FILE = "file"


class ReportPeriod(str, Enum):
    """Report windows offered on the reports screen."""
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    ALL = "all"


# Category list the receipt scanner is asked to choose from
RECEIPT_CATEGORIES = [
    "Food & Dining",
    "Shopping",
    "Transportation",
    "Entertainment",
    "Utilities",
    "Housing",
    "Health",
    "Education",
    "Travel",
    "Other",
]


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# CORE TRANSACTION MODELS
# =============================================================================

class TransactionRecord(BaseModel):
    """
    A transaction as it is stored: one row per transaction.

    Dates travel as ISO strings and the owner is stamped on every row.
    `created_at` is assigned by the store, not by callers.
    """
    id: str
    user_id: Optional[str] = None
    date: str
    type: TransactionType
    category: str
    amount: float
    description: Optional[str] = None
    merchant_name: Optional[str] = None
    imported_from: Optional[ImportSource] = None
    created_at: Optional[datetime] = None

    @field_validator(
        'user_id', 'description', 'merchant_name', 'imported_from', 'created_at',
        mode='before',
    )
    @classmethod
    def canonicalize_blank(cls, v):
        """Absent and empty both mean None at the store boundary."""
        return _blank_to_none(v)


class Transaction(BaseModel):
    """
    A single recorded income or expense event.

    The store is the sole owner of a transaction's lifecycle; an id is
    immutable once assigned.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    date: CalendarDate = Field(
        ...,
        description="Calendar date of the transaction"
    )
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Free-text category label"
    )
    amount: float = Field(
        ...,
        ge=0,
        description="Non-negative amount; direction comes from type"
    )

    # Optional metadata, no effect on aggregation
    description: Optional[str] = Field(default=None, max_length=500)
    merchant: Optional[str] = Field(default=None, max_length=200)
    imported_from: Optional[ImportSource] = None

    @field_validator('description', 'merchant', mode='before')
    @classmethod
    def blank_metadata_is_none(cls, v):
        return _blank_to_none(v)

    def to_record(self, user_id: Optional[str] = None) -> TransactionRecord:
        """Convert to the store's row representation."""
        return TransactionRecord(
            id=str(self.id),
            user_id=user_id,
            date=self.date.isoformat(),
            type=self.type,
            category=self.category,
            amount=self.amount,
            description=self.description,
            merchant_name=self.merchant,
            imported_from=self.imported_from,
        )

    @classmethod
    def from_record(cls, record: TransactionRecord) -> "Transaction":
        """Convert a stored row back to a Transaction."""
        return cls(
            id=UUID(record.id),
            date=CalendarDate.fromisoformat(record.date[:10]),
            type=record.type,
            category=record.category,
            amount=record.amount,
            description=record.description,
            merchant=record.merchant_name,
            imported_from=record.imported_from,
        )

    def to_wire(self) -> dict:
        """JSON-safe dict, the shape the AI services receive."""
        return {
            "id": str(self.id),
            "date": self.date.isoformat(),
            "type": self.type.value,
            "category": self.category,
            "amount": self.amount,
            "description": self.description,
            "merchant": self.merchant,
            "importedFrom": self.imported_from.value if self.imported_from else None,
        }


class TransactionDraft(BaseModel):
    """
    A partial transaction, as accepted by insert and update.

    Every field is optional here. Whether the required ones are present
    is decided by the validator, not by this schema, so that a missing
    field surfaces as a validation issue rather than a parse error.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[UUID] = None
    date: Optional[CalendarDate] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, max_length=100)
    amount: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    merchant: Optional[str] = Field(default=None, max_length=200)
    imported_from: Optional[ImportSource] = None

    @field_validator('category', 'description', 'merchant', mode='before')
    @classmethod
    def blank_text_is_none(cls, v):
        return _blank_to_none(v)

    def to_transaction(self) -> Transaction:
        """
        Build a full Transaction, filling in the adapter defaults.

        Defaults: a fresh id, today's date, manual import source.
        """
        return Transaction(
            id=self.id or uuid4(),
            date=self.date or CalendarDate.today(),
            type=self.type,
            category=self.category,
            amount=self.amount,
            description=self.description,
            merchant=self.merchant,
            imported_from=self.imported_from or ImportSource.MANUAL,
        )

    def apply_to(self, transaction: Transaction) -> Transaction:
        """Replace only the fields explicitly set on this draft. The id never changes."""
        changes = self.model_dump(exclude_unset=True, exclude={"id"})
        merged = transaction.model_dump()
        merged.update(changes)
        return Transaction(**merged)


# =============================================================================
# AGGREGATION OUTPUTS
# =============================================================================

class FinancialSummary(BaseModel):
    """Income, expenses and balance over a set of transactions."""
    income: float = 0.0
    expenses: float = 0.0
    balance: float = 0.0


class CategoryTotal(BaseModel):
    """Expense total for one category."""
    name: str
    amount: float


class MonthlyBucket(BaseModel):
    """One calendar-month bucket of the year-agnostic time series."""
    name: str = Field(..., description="Month abbreviation, Jan..Dec")
    income: float = 0.0
    expenses: float = 0.0


class TrendValue(BaseModel):
    """A metric's current-period value and its signed percentage trend."""
    value: float
    trend: int


class FinancialTrends(BaseModel):
    """
    Month-over-month trends.

    A positive trend is always good news: expenses are sign-flipped so
    that more spending reads as a negative trend.
    """
    income: TrendValue
    expenses: TrendValue
    balance: TrendValue


# =============================================================================
# RECEIPT / BULK OPERATION MODELS
# =============================================================================

class ReceiptData(BaseModel):
    """
    Fields the receipt scanner extracted from a photo.

    CRITICAL: This is PROPOSED data. The model was asked for null where
    it could not read a value, so every field is optional.
    """
    merchant: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[str] = Field(
        default=None,
        description="Expected as YYYY-MM-DD"
    )
    items: list[str] = Field(default_factory=list)
    category: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v):
        """Accept bare numeric strings, tolerating a currency symbol or separators."""
        if v is None or isinstance(v, (int, float)):
            return v
        cleaned = str(v).strip().lstrip("¥$€£").replace(",", "").strip()
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None

    @field_validator('items', mode='before')
    @classmethod
    def items_default(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if not isinstance(v, (list, tuple)):
            raise ValueError(f"items must be a list, got {type(v).__name__}")
        return [str(item) for item in v]


class BulkDeleteFailure(BaseModel):
    """One delete that did not go through during a bulk clear."""
    transaction_id: UUID
    error: str


class BulkDeleteResult(BaseModel):
    """
    Outcome of a best-effort bulk clear.

    There is no atomicity: whatever is listed in `deleted_ids` is gone,
    whatever is listed in `failures` is still stored.
    """
    deleted_ids: list[UUID] = Field(default_factory=list)
    failures: list[BulkDeleteFailure] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one draft."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]
