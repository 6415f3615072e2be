"""
Data Models Package

This package contains all Pydantic models used by the MoneyTrack ledger core.
All data flowing through the system must conform to these schemas.
"""

from moneytrack.models.finance import (
    CREDIT_PAYMENT_CATEGORY,
    TRANSFER_CATEGORY,
    Account,
    AccountKind,
    Collection,
    Debt,
    DebtDirection,
    DebtOperation,
    InstallmentPlan,
    Transaction,
    TransactionDraft,
    TransactionKind,
    new_id,
    utc_now,
)
from moneytrack.models.results import (
    CardInterestSummary,
    CreditCardStatement,
    DebtSummary,
    DuplicateMatch,
    InterestCalculation,
    InterestSummary,
    InterestTotals,
    MatchReason,
    StrategyCheck,
    ValidationIssue,
    ValidationResult,
)
from moneytrack.models.queue import (
    DrainReport,
    OperationKind,
    QueuedOperation,
)
from moneytrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance records
    "CREDIT_PAYMENT_CATEGORY",
    "TRANSFER_CATEGORY",
    "Account",
    "AccountKind",
    "Collection",
    "Debt",
    "DebtDirection",
    "DebtOperation",
    "InstallmentPlan",
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    "new_id",
    "utc_now",
    # Derived results
    "CardInterestSummary",
    "CreditCardStatement",
    "DebtSummary",
    "DuplicateMatch",
    "InterestCalculation",
    "InterestSummary",
    "InterestTotals",
    "MatchReason",
    "StrategyCheck",
    "ValidationIssue",
    "ValidationResult",
    # Offline queue
    "DrainReport",
    "OperationKind",
    "QueuedOperation",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
