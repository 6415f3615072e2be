"""
Derived Result Models

Everything in this module is computed on read from the transaction log
or from a single record. None of it is ever persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from moneytrack.models.finance import Transaction, utc_now


# =============================================================================
# STRATEGY CHECKS
# =============================================================================

class StrategyCheck(BaseModel):
    """Outcome of a balance strategy validation: ok, or a reason why not."""

    ok: bool
    reason: Optional[str] = None
    error_type: Optional[str] = Field(
        default=None,
        description="Name of the validation error this rejection maps to"
    )

    @classmethod
    def accept(cls) -> 'StrategyCheck':
        return cls(ok=True)

    @classmethod
    def reject(cls, error: Exception) -> 'StrategyCheck':
        return cls(
            ok=False,
            reason=getattr(error, "reason", str(error)),
            error_type=type(error).__name__,
        )


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
        description="Type of issue (e.g., 'missing', 'insufficient_balance', 'potential_duplicate')"
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
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage transaction validation.

    Stage 1: Schema validation (required fields, amount format and bounds)
    Stage 2: Business validation (balance strategy rules)
    Duplicate advisories are warnings and never make a result invalid.
    """

    validated_at: datetime = Field(
        default_factory=utc_now
    )

    schema_valid: bool = Field(
        ...,
        description="Did schema validation pass?"
    )
    business_valid: bool = Field(
        ...,
        description="Did balance strategy validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )
    duplicates: list['DuplicateMatch'] = Field(
        default_factory=list,
        description="Possible duplicates of the validated transaction"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None


# =============================================================================
# DUPLICATE DETECTION
# =============================================================================

class MatchReason(str, Enum):
    """Why a stored transaction looks like the candidate."""
    SAME_AMOUNT = "same_amount"
    SAME_CATEGORY = "same_category"
    SAME_DESCRIPTION = "same_description"
    SIMILAR_DESCRIPTION = "similar_description"
    NEAR_DATE = "near_date"


class DuplicateMatch(BaseModel):
    """A stored transaction that may duplicate the candidate."""

    transaction: Transaction
    score: int = Field(
        ...,
        ge=0,
        le=100
    )
    reasons: list[MatchReason] = Field(default_factory=list)


ValidationResult.model_rebuild()


# =============================================================================
# CREDIT INTEREST
# =============================================================================

class CardInterestSummary(BaseModel):
    """Interest and pending installments of one credit card."""

    account_id: str
    name: str
    interest_rate: Decimal
    monthly_interest: Decimal
    yearly_interest: Decimal
    total_interest: Decimal
    pending_principal: Decimal
    pending_interest: Decimal
    transaction_count: int = Field(ge=0)


class InterestTotals(BaseModel):
    """Portfolio totals across all interest-bearing cards."""

    monthly: Decimal = Decimal("0")
    yearly: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    pending_principal: Decimal = Decimal("0")
    pending_interest: Decimal = Decimal("0")


class InterestSummary(BaseModel):
    """Per-card and portfolio interest figures as of a date."""

    as_of: date
    cards: list[CardInterestSummary] = Field(default_factory=list)
    totals: InterestTotals = Field(default_factory=InterestTotals)

    @property
    def has_data(self) -> bool:
        return len(self.cards) > 0


class InterestCalculation(BaseModel):
    """Installment figures for a purchase under French amortization."""

    monthly_installment_amount: Decimal
    total_amount: Decimal
    total_interest_amount: Decimal
    monthly_interest_rate: Decimal
    effective_annual_rate: Decimal


# =============================================================================
# CREDIT CARD STATEMENTS
# =============================================================================

class CreditCardStatement(BaseModel):
    """
    Billing cycle of a credit card.

    The cycle runs from the day after the previous cutoff through the
    next cutoff (inclusive); payment is due on the card's payment day of
    the following month.
    """

    account_id: str
    name: str
    cycle_start: date
    cycle_end: date
    payment_due_date: date
    total_charges: Decimal = Field(
        default=Decimal("0"),
        description="Purchases made during the cycle"
    )
    total_payments: Decimal = Field(
        default=Decimal("0"),
        description="Payments and transfers received during the cycle"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Charges minus payments"
    )
    installment_charges: Decimal = Field(
        default=Decimal("0"),
        description="Monthly installment amounts of purchases split in installments"
    )
    regular_charges: Decimal = Field(
        default=Decimal("0"),
        description="Purchases paid in a single installment"
    )
    transactions: list[Transaction] = Field(default_factory=list)


# =============================================================================
# DEBTS
# =============================================================================

class DebtSummary(BaseModel):
    """Outstanding person-to-person loans."""

    total_lent: Decimal = Decimal("0")
    total_borrowed: Decimal = Decimal("0")
    active_lent_count: int = 0
    active_borrowed_count: int = 0
    settled_count: int = 0
    total_count: int = 0
