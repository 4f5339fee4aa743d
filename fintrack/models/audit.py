"""
Audit Models for fintrack

Every write to the transaction store, and every call out to the AI
services, is recorded as an audit event. This provides:
1. Traceability of what changed and where it came from
2. Debugging information when a store or upstream call fails
3. A record of partial bulk operations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transaction lifecycle
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTIONS_IMPORTED = "transactions_imported"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    BULK_CLEAR_COMPLETED = "bulk_clear_completed"
    BULK_CLEAR_PARTIAL = "bulk_clear_partial"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # AI services
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_PARSE_FAILED = "receipt_parse_failed"
    ASSISTANT_ANSWERED = "assistant_answered"

    # System events
    STORAGE_ERROR = "storage_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'receipt')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all deletes of one bulk clear)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(transaction_id, category, amount)
        event = AuditEventBuilder.bulk_clear(deleted, failed, correlation_id)
    """

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        transaction_type: str,
        category: str,
        amount: float,
        source: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"{transaction_type.capitalize()} recorded: {category} {amount:.2f}",
            details={
                "type": transaction_type,
                "category": category,
                "amount": amount,
                "imported_from": source,
            },
            is_user_action=True,
        )

    @staticmethod
    def transactions_imported(
        count: int,
        source: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTIONS_IMPORTED,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Imported {count} transactions",
            details={
                "count": count,
                "imported_from": source,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: UUID,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {', '.join(changed_fields) or 'no fields'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def bulk_clear(
        deleted: int,
        failed: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        if failed:
            return AuditEvent(
                event_type=AuditEventType.BULK_CLEAR_PARTIAL,
                severity=AuditSeverity.WARNING,
                entity_type="transaction",
                correlation_id=correlation_id,
                description=f"Clear all removed {deleted} transactions, {failed} remain",
                details={"deleted": deleted, "failed": failed},
                is_user_action=True,
            )
        return AuditEvent(
            event_type=AuditEventType.BULK_CLEAR_COMPLETED,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Clear all removed {deleted} transactions",
            details={"deleted": deleted, "failed": 0},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def receipt_scanned(
        merchant: Optional[str],
        amount: Optional[float],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCANNED,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Receipt scanned: {merchant or 'unknown merchant'}",
            details={"merchant": merchant, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def receipt_parse_failed(
        raw_text: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt scanner returned text that is not JSON",
            details={"raw_text": raw_text[:500]},
        )

    @staticmethod
    def assistant_answered(
        message_length: int,
        transaction_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_ANSWERED,
            entity_type="assistant",
            correlation_id=correlation_id,
            description=f"Assistant answered using {transaction_count} transactions",
            details={
                "message_length": message_length,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
