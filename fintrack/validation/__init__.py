"""Transaction validation package."""

from fintrack.validation.validator import (
    REQUIRED_FIELDS,
    TransactionValidationError,
    TransactionValidator,
    check_required_fields,
    ensure_complete,
    ensure_update_keeps_required,
)

__all__ = [
    "REQUIRED_FIELDS",
    "TransactionValidationError",
    "TransactionValidator",
    "check_required_fields",
    "ensure_complete",
    "ensure_update_keeps_required",
]
