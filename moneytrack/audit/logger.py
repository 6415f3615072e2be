"""
Audit Logger

DESIGN DECISION: Every mutation the core performs or refuses is logged.
This provides:
1. Traceability of multi-account writes
2. A record of every offline operation until it is synced
3. Debugging capability when an atomic unit aborts

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from moneytrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from moneytrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(log_level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=log_level.upper())
    logging.getLogger("moneytrack").setLevel(log_level.upper())


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("moneytrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transfer_committed(
        self,
        transaction_id: str,
        source_account_id: str,
        destination_account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transfer."""
        await self.log(AuditEventBuilder.transfer_committed(
            transaction_id=transaction_id,
            source_account_id=source_account_id,
            destination_account_id=destination_account_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_credit_payment_committed(
        self,
        credit_transaction_id: str,
        source_transaction_id: str,
        credit_account_id: str,
        source_account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log both legs of a committed credit card payment."""
        await self.log(AuditEventBuilder.credit_payment_committed(
            credit_transaction_id=credit_transaction_id,
            source_transaction_id=source_transaction_id,
            credit_account_id=credit_account_id,
            source_account_id=source_account_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_atomic_unit_aborted(
        self,
        transaction_ids: list[str],
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an atomic unit that wrote nothing."""
        await self.log(AuditEventBuilder.atomic_unit_aborted(
            transaction_ids=transaction_ids,
            error_category=getattr(error, "category", type(error).__name__),
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    async def log_transaction_rejected(
        self,
        account_id: str,
        reason: str,
        issues: Optional[list[dict]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction refused by validation."""
        await self.log(AuditEventBuilder.transaction_rejected(
            account_id=account_id,
            reason=reason,
            issues=issues or [],
            correlation_id=correlation_id,
        ))

    async def log_duplicate_suspected(
        self,
        candidate_description: str,
        matches: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a duplicate advisory."""
        await self.log(AuditEventBuilder.duplicate_suspected(
            candidate_description=candidate_description,
            matches=matches,
            correlation_id=correlation_id,
        ))

    async def log_debt_modified(
        self,
        debt_id: str,
        operation: str,
        amount: Decimal,
        remaining_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a debt add/subtract."""
        await self.log(AuditEventBuilder.debt_modified(
            debt_id=debt_id,
            operation=operation,
            amount=amount,
            remaining_amount=remaining_amount,
            correlation_id=correlation_id,
        ))

    async def log_debt_settled(
        self,
        debt_id: str,
        person_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a debt reaching settlement."""
        await self.log(AuditEventBuilder.debt_settled(
            debt_id=debt_id,
            person_name=person_name,
            correlation_id=correlation_id,
        ))

    async def log_operation_queued(
        self,
        operation_id: str,
        kind: str,
        collection: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an operation stored for later replay."""
        await self.log(AuditEventBuilder.operation_queued(
            operation_id=operation_id,
            kind=kind,
            collection=collection,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_operation_replayed(
        self,
        operation_id: str,
        kind: str,
        collection: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful replay."""
        await self.log(AuditEventBuilder.operation_replayed(
            operation_id=operation_id,
            kind=kind,
            collection=collection,
            correlation_id=correlation_id,
        ))

    async def log_operation_failed(
        self,
        operation_id: str,
        retry_count: int,
        error_message: str,
        parked: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed replay; parked operations wait for a manual retry."""
        builder = (
            AuditEventBuilder.operation_parked if parked
            else AuditEventBuilder.operation_failed
        )
        await self.log(builder(
            operation_id=operation_id,
            retry_count=retry_count,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_queue_drained(
        self,
        succeeded: int,
        failed: int,
        remaining: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the outcome of a drain."""
        await self.log(AuditEventBuilder.queue_drained(
            succeeded=succeeded,
            failed=failed,
            remaining=remaining,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a transfer).
    Pass it through all subsequent operations.
    """
    return uuid4()
