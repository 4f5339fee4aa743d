"""
Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - REQUIRED FIELDS:
- type, category and amount must be present
- A draft failing this stage is never written

STAGE 2 - SANITY CHECKS:
- Future date detection
- Absurd amount detection
- These only WARN; an odd but complete transaction is still accepted

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and stage 1 errors abort the operation.
"""

from datetime import date, timedelta
from typing import Optional

from fintrack.config import AppSettings, get_settings
from fintrack.models.transaction import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)


REQUIRED_FIELDS = ("type", "category", "amount")


class TransactionValidationError(ValueError):
    """A transaction draft is missing required data."""

    def __init__(self, issues: list[ValidationIssue], index: Optional[int] = None):
        self.issues = issues
        self.index = index
        details = "; ".join(issue.message for issue in issues)
        prefix = f"Transaction #{index} is invalid" if index is not None else "Transaction is invalid"
        super().__init__(f"{prefix}: {details}")


def check_required_fields(draft: TransactionDraft) -> list[ValidationIssue]:
    """Stage 1: one error per missing required field."""
    issues = []
    for field_name in REQUIRED_FIELDS:
        if getattr(draft, field_name) is None:
            issues.append(ValidationIssue(
                field=field_name,
                issue_type="missing",
                message=f"{field_name} is required",
                severity="error",
            ))
    return issues


def ensure_complete(draft: TransactionDraft, index: Optional[int] = None) -> None:
    """
    Raise unless the draft carries every required field.

    Stores call this before any write.

    Raises:
        TransactionValidationError: If type, category or amount is missing
    """
    issues = check_required_fields(draft)
    if issues:
        raise TransactionValidationError(issues, index=index)


def ensure_update_keeps_required(draft: TransactionDraft) -> None:
    """
    Raise if an update would blank out a required field.

    Fields left unset on the draft are untouched by the update, so only
    fields explicitly set to None are a problem.

    Raises:
        TransactionValidationError: If a required field is explicitly cleared
    """
    issues = []
    for field_name in REQUIRED_FIELDS:
        if field_name in draft.model_fields_set and getattr(draft, field_name) is None:
            issues.append(ValidationIssue(
                field=field_name,
                issue_type="missing",
                message=f"{field_name} cannot be cleared",
                severity="error",
            ))
    if issues:
        raise TransactionValidationError(issues)


class TransactionValidator:
    """
    Validates transaction drafts through the two-stage pipeline.

    Stage 2 only runs when stage 1 passes.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _validate_sanity(self, draft: TransactionDraft) -> list[ValidationIssue]:
        """Stage 2: warnings about values that are possible but unlikely."""
        issues = []
        today = date.today()

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if draft.date and draft.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({draft.date}) is in the future",
                severity="warning",
            ))

        if draft.amount is not None and draft.amount > self._settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,.2f}) seems unusually high",
                severity="warning",
            ))

        if draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        return issues

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        """Run the full pipeline and report every issue found."""
        issues = check_required_fields(draft)
        if not issues:
            issues.extend(self._validate_sanity(draft))

        return ValidationResult(
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
        )

    def validate_many(self, drafts: list[TransactionDraft]) -> list[ValidationResult]:
        return [self.validate(draft) for draft in drafts]

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Short text suitable for a failure notice."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.errors:
            lines.append("Some required information is missing:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")

        if result.warnings:
            lines.append("Please verify the following:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
