"""
Ledger Exception Hierarchy

Every rejection raised by the core carries a human-readable `reason`
and a `category` so callers can tell the taxonomy apart:

- validation:  bad user input (insufficient balance, self transfer, ...)
               Never retried, never queued.
- referential: a referenced account or debt does not exist.
               Aborts the operation, not retried.
- recoverable: transient connectivity failure.
               The only class that is retried and queued offline.
- fatal:       contract violation upstream (unknown account kind,
               unknown operation). Propagated as-is.
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger core errors."""

    category = "fatal"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class LedgerValidationError(LedgerError):
    """User input violates a business rule."""

    category = "validation"


class InvalidAmountError(LedgerValidationError):
    """Amount is zero, negative or unparsable."""

    def __init__(self, amount, reason: Optional[str] = None):
        self.amount = amount
        super().__init__(reason or f"Amount must be greater than zero (got {amount})")


class InsufficientBalanceError(LedgerValidationError):
    """Expense or outgoing transfer exceeds the account balance."""

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance. Available: {available}, requested: {requested}"
        )


class InsufficientCreditError(LedgerValidationError):
    """Credit purchase exceeds the available credit."""

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient credit. Available: {available}, requested: {requested}"
        )


class NoOutstandingCreditError(LedgerValidationError):
    """Payment to a credit account that owes nothing."""

    def __init__(self):
        super().__init__("There is no outstanding debt on this credit account")


class CreditOverpaymentError(LedgerValidationError):
    """Payment exceeds the used credit."""

    def __init__(self, used_credit: Decimal, requested: Decimal):
        self.used_credit = used_credit
        self.requested = requested
        super().__init__(
            f"Cannot pay more than is owed. Current debt: {used_credit}, "
            f"requested: {requested}"
        )


class CreditTransferError(LedgerValidationError):
    """Transfers out of a credit account are not allowed."""

    def __init__(self):
        super().__init__("Transfers from a credit account are not allowed")


class SelfTransferError(LedgerValidationError):
    """Source and destination account are the same."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Cannot transfer to the same account ({account_id})")


class DebtSettledError(LedgerValidationError):
    """Settled debts are terminal."""

    def __init__(self, debt_id: str):
        self.debt_id = debt_id
        super().__init__(f"Debt already settled ({debt_id})")


class AmountExceedsRemainingError(LedgerValidationError):
    """Subtracting more than the remaining debt balance."""

    def __init__(self, remaining: Decimal, requested: Decimal):
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            f"Amount exceeds remaining balance. Remaining: {remaining}, "
            f"requested: {requested}"
        )


# =============================================================================
# REFERENTIAL ERRORS
# =============================================================================

class ReferentialError(LedgerError):
    """A referenced entity does not exist."""

    category = "referential"


class MissingAccountError(ReferentialError):
    """Account referenced by a mutation was not found inside the atomic unit."""

    def __init__(self, account_id: str, role: str = "account"):
        self.account_id = account_id
        self.role = role
        super().__init__(f"The {role} account does not exist ({account_id})")


class DebtNotFoundError(ReferentialError):
    """Debt record was not found."""

    def __init__(self, debt_id: str):
        self.debt_id = debt_id
        super().__init__(f"Debt not found ({debt_id})")


# =============================================================================
# RECOVERABLE ERRORS
# =============================================================================

class RecoverableError(LedgerError):
    """Transient failure (connectivity, timeout, service unavailable)."""

    category = "recoverable"


# =============================================================================
# FATAL ERRORS
# =============================================================================

class FatalLedgerError(LedgerError):
    """Programming or configuration error upstream."""

    category = "fatal"


class UnknownAccountKindError(FatalLedgerError):
    """No balance strategy exists for this account kind."""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"No balance strategy for account kind: {kind}")


class ContractViolationError(FatalLedgerError):
    """A value reached an internal function that validation should have stopped."""
