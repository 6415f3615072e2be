"""
Audit Models for MoneyTrack

Every mutation the core performs, or refuses to perform, is logged for
audit purposes. This provides:
1. Traceability of multi-account writes (transfers, credit payments)
2. A record of every queued, replayed and parked offline operation
3. Debugging information when an atomic unit aborts

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from moneytrack.models.finance import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Atomic mutations
    TRANSFER_COMMITTED = "transfer_committed"
    CREDIT_PAYMENT_COMMITTED = "credit_payment_committed"
    ATOMIC_UNIT_ABORTED = "atomic_unit_aborted"

    # Validation
    TRANSACTION_REJECTED = "transaction_rejected"
    DUPLICATE_SUSPECTED = "duplicate_suspected"

    # Debts
    DEBT_MODIFIED = "debt_modified"
    DEBT_SETTLED = "debt_settled"

    # Offline queue
    OPERATION_QUEUED = "operation_queued"
    OPERATION_REPLAYED = "operation_replayed"
    OPERATION_FAILED = "operation_failed"
    OPERATION_PARKED = "operation_parked"
    QUEUE_DRAINED = "queue_drained"

    # System events
    SYSTEM_ERROR = "system_error"


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
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'debt', 'queued_operation')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both legs of a credit payment)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_category: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_category": self.error_category,
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
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transfer_committed(txn_id, src, dst, amount)
        event = AuditEventBuilder.operation_queued(op_id, "create", "debts")
    """

    @staticmethod
    def transfer_committed(
        transaction_id: str,
        source_account_id: str,
        destination_account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMMITTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transfer of {amount} committed",
            details={
                "source_account_id": source_account_id,
                "destination_account_id": destination_account_id,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def credit_payment_committed(
        credit_transaction_id: str,
        source_transaction_id: str,
        credit_account_id: str,
        source_account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CREDIT_PAYMENT_COMMITTED,
            entity_type="transaction",
            entity_id=credit_transaction_id,
            correlation_id=correlation_id,
            description=f"Credit payment of {amount} committed",
            details={
                "source_transaction_id": source_transaction_id,
                "credit_account_id": credit_account_id,
                "source_account_id": source_account_id,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def atomic_unit_aborted(
        transaction_ids: list[str],
        error_category: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ATOMIC_UNIT_ABORTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_ids[0] if transaction_ids else None,
            correlation_id=correlation_id,
            description=f"Atomic unit aborted ({len(transaction_ids)} documents discarded)",
            details={"transaction_ids": transaction_ids},
            error_category=error_category,
            error_message=error_message,
        )

    @staticmethod
    def transaction_rejected(
        account_id: str,
        reason: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="account",
            entity_id=account_id,
            correlation_id=correlation_id,
            description=f"Transaction rejected: {reason}"[:500],
            details={"issues": issues},
            error_category="validation",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def duplicate_suspected(
        candidate_description: str,
        matches: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SUSPECTED,
            severity=AuditSeverity.INFO,
            entity_type="transaction_draft",
            correlation_id=correlation_id,
            description=f"{len(matches)} possible duplicates of '{candidate_description}'"[:500],
            details={"matches": matches},
        )

    @staticmethod
    def debt_modified(
        debt_id: str,
        operation: str,
        amount: Decimal,
        remaining_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_MODIFIED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt {operation} {amount}, remaining {remaining_amount}",
            details={
                "operation": operation,
                "amount": str(amount),
                "remaining_amount": str(remaining_amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def debt_settled(
        debt_id: str,
        person_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_SETTLED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt with {person_name} settled",
            details={"person_name": person_name},
        )

    @staticmethod
    def operation_queued(
        operation_id: str,
        kind: str,
        collection: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_QUEUED,
            entity_type="queued_operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Queued {kind} on {collection}: {reason}"[:500],
            details={"kind": kind, "collection": collection, "reason": reason},
        )

    @staticmethod
    def operation_replayed(
        operation_id: str,
        kind: str,
        collection: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REPLAYED,
            entity_type="queued_operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Replayed {kind} on {collection}",
            details={"kind": kind, "collection": collection},
        )

    @staticmethod
    def operation_failed(
        operation_id: str,
        retry_count: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="queued_operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Replay failed (attempt {retry_count})",
            details={"retry_count": retry_count},
            error_message=error_message,
        )

    @staticmethod
    def operation_parked(
        operation_id: str,
        retry_count: int,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_PARKED,
            severity=AuditSeverity.ERROR,
            entity_type="queued_operation",
            entity_id=operation_id,
            correlation_id=correlation_id,
            description=f"Operation waiting for manual retry after {retry_count} failures",
            details={"retry_count": retry_count},
            error_message=error_message,
        )

    @staticmethod
    def queue_drained(
        succeeded: int,
        failed: int,
        remaining: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUEUE_DRAINED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            entity_type="offline_queue",
            correlation_id=correlation_id,
            description=f"Queue drained: {succeeded} synced, {failed} failed",
            details={"succeeded": succeeded, "failed": failed, "remaining": remaining},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_category="fatal",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
