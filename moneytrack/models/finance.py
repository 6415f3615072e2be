"""
Core Data Models for MoneyTrack

These models define the strict schemas for every record the ledger core
reads or writes. They are designed to:
1. Enforce the structural invariants of each record at construction time
2. Provide clear validation error messages
3. Be serializable for storage, the offline queue and logging

DESIGN DECISION: Records hold only facts. Balances, used credit and
pending installments are never stored; they are derived from the
transaction log by `moneytrack.ledger`.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Document identifier used for every record."""
    return uuid4().hex


# Categories assigned by the system rather than chosen by the user
TRANSFER_CATEGORY = "Transferencia"
CREDIT_PAYMENT_CATEGORY = "Pago Crédito"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Kind of financial event."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class AccountKind(str, Enum):
    """
    Kind of money container.

    The set is closed: every kind has exactly one balance strategy.
    """
    SAVINGS = "savings"
    CASH = "cash"
    CREDIT = "credit"


class DebtDirection(str, Enum):
    """Who owes whom on a person-to-person loan."""
    LENT = "lent"          # The user lent money, someone owes the user
    BORROWED = "borrowed"  # The user borrowed money


class DebtOperation(str, Enum):
    """Balance operations accepted by a debt record."""
    ADD = "add"
    SUBTRACT = "subtract"


class Collection(str, Enum):
    """Document collections in the user's data partition."""
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    DEBTS = "debts"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class InstallmentPlan(BaseModel):
    """
    Division of a credit purchase into equal monthly charges.

    Plans are stored as entered. A plan with a non-positive count or
    without interest is tolerated here and simply contributes nothing to
    interest aggregates.
    """
    model_config = ConfigDict(frozen=True)

    installment_count: int = Field(
        ...,
        description="Number of monthly installments"
    )
    total_interest_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Total interest amortized across the installments"
    )
    per_installment_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Fixed amount charged each month"
    )
    annual_interest_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Snapshot of the card's effective annual rate (percent)"
    )


class Transaction(BaseModel):
    """
    A committed financial event.

    CRITICAL: Transactions are immutable once committed. Changes happen
    through explicit update/delete mutations, never by editing derived
    state in place.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction ID"
    )
    kind: TransactionKind
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount in minor-unit precision"
    )
    category: str = Field(
        default="",
        max_length=100,
        description="Category (required unless transfer or credit payment)"
    )
    description: str = Field(
        default="",
        max_length=500
    )
    occurred_at: date = Field(
        ...,
        description="Date the event happened"
    )
    settled: bool = Field(
        default=True,
        description="Whether the transaction is paid"
    )
    source_account_id: str = Field(
        ...,
        min_length=1,
        description="Account the transaction belongs to (origin for transfers)"
    )
    destination_account_id: Optional[str] = Field(
        default=None,
        description="Receiving account; present iff kind is transfer"
    )
    is_credit_payment: bool = Field(
        default=False,
        description="Leg of a credit-card payment"
    )
    installment_plan: Optional[InstallmentPlan] = None
    recurring_payment_id: Optional[str] = None
    debt_id: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the transaction was recorded"
    )

    @model_validator(mode='after')
    def validate_references(self) -> 'Transaction':
        """Transfers need two distinct accounts; other kinds need a category."""
        if self.kind == TransactionKind.TRANSFER:
            if not self.destination_account_id:
                raise ValueError("Transfer requires a destination account")
            if self.destination_account_id == self.source_account_id:
                raise ValueError("Transfer source and destination must differ")
        else:
            if self.destination_account_id:
                raise ValueError("Only transfers have a destination account")
            if not self.category and not self.is_credit_payment:
                raise ValueError("Category is required")
        return self

    def touches(self, account_id: str) -> bool:
        """Whether this transaction references the account on either side."""
        return account_id in (self.source_account_id, self.destination_account_id)


class TransactionDraft(BaseModel):
    """
    A transaction as typed by the user, before it is saved.

    Typed amounts are kept as text (e.g. "50.000" in es-CO) and parsed
    with the configured locale by the consumer. Numeric amounts are
    kept as Decimal and never go through locale separators.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    kind: TransactionKind
    amount: Union[Decimal, str] = Field(
        ...,
        description="Amount as entered by the user, or an exact number"
    )
    category: str = ""
    description: str = ""
    occurred_on: Optional[date] = None
    settled: bool = True
    source_account_id: str = ""
    destination_account_id: str = ""
    is_credit_payment: bool = False

    @field_validator('amount', mode='before')
    @classmethod
    def coerce_amount(cls, v: Union[str, int, float, Decimal]) -> Union[Decimal, str]:
        """Numbers become exact Decimals; text is left for locale parsing."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return Decimal(str(v))
        return v


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(BaseModel):
    """
    A named money container.

    Credit accounts never carry an initial balance: their derived state
    is available credit, not a balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    kind: AccountKind
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Opening balance (savings/cash only, may be negative)"
    )
    credit_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Credit limit (credit only)"
    )
    statement_cutoff_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31
    )
    payment_due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31
    )
    annual_interest_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Effective annual rate in percent (credit only)"
    )
    display_order: int = 0
    is_default: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'Account':
        """Keep balance semantics and credit semantics apart."""
        if self.kind == AccountKind.CREDIT:
            if self.initial_balance != 0:
                raise ValueError("Credit accounts do not carry an initial balance")
        else:
            if self.credit_limit is not None or self.annual_interest_rate is not None:
                raise ValueError("Only credit accounts have a credit limit or interest rate")
        return self


# =============================================================================
# DEBTS
# =============================================================================

class Debt(BaseModel):
    """
    A person-to-person loan, independent of accounts and transactions.

    Lifecycle: active -> settled. Settled is terminal.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1
    )
    person_name: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    direction: DebtDirection
    original_amount: Decimal = Field(
        ...,
        ge=0
    )
    remaining_amount: Decimal = Field(
        ...,
        ge=0
    )
    is_settled: bool = False
    settled_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    notes: Optional[str] = Field(
        default=None,
        max_length=500
    )

    @model_validator(mode='after')
    def validate_amounts(self) -> 'Debt':
        """0 <= remaining <= original, settled iff nothing remains."""
        if self.remaining_amount > self.original_amount:
            raise ValueError("Remaining amount cannot exceed original amount")
        if self.is_settled != (self.remaining_amount == 0):
            raise ValueError("A debt is settled exactly when nothing remains")
        if self.is_settled and self.settled_at is None:
            raise ValueError("Settled debts must record when they were settled")
        return self
