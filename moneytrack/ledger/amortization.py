"""
Credit Card Interest and Installment Amortization

Two groups of functions live here:

1. PLAN ANALYSIS - given a purchase already split into installments,
   how much interest falls in a month or a year, and how much principal
   and interest is still pending. Interest is spread evenly in cents:
   each installment carries total / count truncated to the cent and the
   last one absorbs the remainder, so the aggregates of a plan add up
   to its total interest exactly.

   A calendar month holds an installment of the purchase iff
       0 <= (month index - purchase month index) < installment count
   where month index = year * 12 + month. The purchase month itself
   holds the first installment.

   Months here are calendar months; billing cycles built from the
   card's cutoff day are in `moneytrack.ledger.statements`.

2. PLAN CONSTRUCTION - French amortization (fixed installment) from an
   effective annual rate, used when a purchase is recorded:

       monthly rate  i = (1 + EA/100)^(1/12) - 1
       installment   C = P * i(1+i)^n / ((1+i)^n - 1)

IMPORTANT: A plan with a non-positive installment count or no interest
contributes nothing to any aggregate. Analysis functions never raise on
such plans.
"""

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from moneytrack.exceptions import ContractViolationError, InvalidAmountError
from moneytrack.models.finance import (
    Account,
    AccountKind,
    InstallmentPlan,
    Transaction,
    TransactionKind,
)
from moneytrack.models.results import (
    CardInterestSummary,
    InterestCalculation,
    InterestSummary,
    InterestTotals,
    ValidationIssue,
)


ZERO = Decimal("0")
CENT = Decimal("0.01")

# Installment counts commonly offered by card issuers
STANDARD_INSTALLMENTS = (1, 2, 3, 6, 9, 12, 18, 24, 36, 48, 60)


# =============================================================================
# PLAN ANALYSIS
# =============================================================================

def _active_plan(txn: Transaction) -> Optional[InstallmentPlan]:
    plan = txn.installment_plan
    if plan is None or plan.installment_count <= 0:
        return None
    return plan


def month_index(day: date) -> int:
    """Months since year zero; differences give whole calendar months."""
    return day.year * 12 + day.month


def months_elapsed(txn: Transaction, as_of: Optional[date] = None) -> int:
    """Calendar months between the purchase and `as_of` (negative if in the future)."""
    as_of = as_of or date.today()
    return month_index(as_of) - month_index(txn.occurred_at)


def per_installment_interest(txn: Transaction) -> Decimal:
    """Unrounded even share of the interest; aggregates use the cent schedule instead."""
    plan = _active_plan(txn)
    if plan is None or plan.total_interest_amount is None:
        return ZERO
    return plan.total_interest_amount / plan.installment_count


def is_month_active(txn: Transaction, year: int, month: int) -> bool:
    """Whether the given calendar month holds one of the purchase's installments."""
    plan = _active_plan(txn)
    if plan is None:
        return False
    relative = (year * 12 + month) - month_index(txn.occurred_at)
    return 0 <= relative < plan.installment_count


def _schedule(txn: Transaction) -> list[Decimal]:
    plan = _active_plan(txn)
    if plan is None:
        return []
    return installment_interest_schedule(plan)


def interest_for_month(txn: Transaction, year: int, month: int) -> Decimal:
    """Interest of the installment falling in the given calendar month, in cents."""
    schedule = _schedule(txn)
    offset = (year * 12 + month) - month_index(txn.occurred_at)
    if 0 <= offset < len(schedule):
        return schedule[offset]
    return ZERO


def monthly_interest(txn: Transaction, as_of: Optional[date] = None) -> Decimal:
    """Interest charged in the month containing `as_of`."""
    as_of = as_of or date.today()
    return interest_for_month(txn, as_of.year, as_of.month)


def yearly_interest(txn: Transaction, year: int) -> Decimal:
    """
    Interest charged during a calendar year.

    Each month is looked up on its own, so plans crossing a year boundary
    are split correctly between the two years.
    """
    return sum((interest_for_month(txn, year, month) for month in range(1, 13)), ZERO)


def remaining_installments(txn: Transaction, as_of: Optional[date] = None) -> int:
    """Installments not yet charged as of `as_of`."""
    plan = _active_plan(txn)
    if plan is None:
        return 0
    remaining = max(0, plan.installment_count - months_elapsed(txn, as_of))
    # A purchase dated in the future still has only n installments
    return min(plan.installment_count, remaining)


def pending_principal(txn: Transaction, as_of: Optional[date] = None) -> Decimal:
    """Installment amounts still to be charged."""
    plan = _active_plan(txn)
    if plan is None or plan.per_installment_amount is None:
        return ZERO
    return remaining_installments(txn, as_of) * plan.per_installment_amount


def pending_interest(txn: Transaction, as_of: Optional[date] = None) -> Decimal:
    """Interest still to be charged: the tail of the cent schedule."""
    schedule = _schedule(txn)
    remaining = remaining_installments(txn, as_of)
    if not schedule or remaining == 0:
        return ZERO
    return sum(schedule[-remaining:], ZERO)


def is_interest_bearing(txn: Transaction) -> bool:
    """Expense with a valid plan carrying a positive total interest."""
    plan = _active_plan(txn)
    return (
        txn.kind == TransactionKind.EXPENSE
        and plan is not None
        and plan.total_interest_amount is not None
        and plan.total_interest_amount > 0
    )


def installment_interest_schedule(plan: InstallmentPlan) -> list[Decimal]:
    """
    Interest per installment in minor units.

    The even split is truncated to cents and the last installment absorbs
    the remainder, so the schedule always sums to the total interest.
    """
    if plan.installment_count <= 0 or plan.total_interest_amount is None:
        return []

    count = plan.installment_count
    total = plan.total_interest_amount
    base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
    remainder = total - base * count

    schedule = [base] * count
    schedule[-1] = base + remainder
    return schedule


# =============================================================================
# AGGREGATION
# =============================================================================

def card_interest_summary(
    account: Account,
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> Optional[CardInterestSummary]:
    """
    Interest figures of one credit card.

    Returns None for cards that should not appear in aggregates: not a
    credit account, no configured rate, or no interest-bearing purchase.
    """
    if account.kind != AccountKind.CREDIT:
        return None
    if not account.annual_interest_rate or account.annual_interest_rate <= 0:
        return None

    as_of = as_of or date.today()
    card_transactions = [
        txn for txn in transactions
        if txn.source_account_id == account.id and is_interest_bearing(txn)
    ]
    if not card_transactions:
        return None

    return CardInterestSummary(
        account_id=account.id,
        name=account.name,
        interest_rate=account.annual_interest_rate,
        monthly_interest=sum((monthly_interest(t, as_of) for t in card_transactions), ZERO),
        yearly_interest=sum((yearly_interest(t, as_of.year) for t in card_transactions), ZERO),
        total_interest=sum(
            (t.installment_plan.total_interest_amount for t in card_transactions), ZERO
        ),
        pending_principal=sum((pending_principal(t, as_of) for t in card_transactions), ZERO),
        pending_interest=sum((pending_interest(t, as_of) for t in card_transactions), ZERO),
        transaction_count=len(card_transactions),
    )


def compute_interest_summary(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> InterestSummary:
    """Per-card interest figures and their portfolio totals."""
    as_of = as_of or date.today()
    transactions = list(transactions)

    cards = []
    for account in accounts:
        summary = card_interest_summary(account, transactions, as_of)
        if summary is not None:
            cards.append(summary)

    totals = InterestTotals(
        monthly=sum((c.monthly_interest for c in cards), ZERO),
        yearly=sum((c.yearly_interest for c in cards), ZERO),
        total=sum((c.total_interest for c in cards), ZERO),
        pending_principal=sum((c.pending_principal for c in cards), ZERO),
        pending_interest=sum((c.pending_interest for c in cards), ZERO),
    )

    return InterestSummary(as_of=as_of, cards=cards, totals=totals)


# =============================================================================
# PLAN CONSTRUCTION
# =============================================================================

def convert_annual_to_monthly_rate(
    annual_rate: Decimal,
    max_rate: Decimal = Decimal("200"),
) -> Decimal:
    """
    Convert an effective annual rate (percent) to a monthly effective rate.

    Example:
        convert_annual_to_monthly_rate(Decimal("23.99"))  # ~0.01809
    """
    annual_rate = Decimal(annual_rate)
    if annual_rate < 0 or annual_rate > max_rate:
        raise InvalidAmountError(
            annual_rate,
            f"Annual rate must be between 0% and {max_rate}% (got {annual_rate}%)",
        )
    return (1 + annual_rate / 100) ** (Decimal(1) / Decimal(12)) - 1


def calculate_monthly_installment(
    principal: Decimal,
    monthly_rate: Decimal,
    installments: int,
) -> Decimal:
    """
    Fixed monthly installment under French amortization.

    A single installment, or a zero rate, is just the principal split evenly.
    """
    if principal <= 0:
        raise InvalidAmountError(principal)
    if installments < 1:
        raise ContractViolationError(f"Installment count must be at least 1 (got {installments})")
    if monthly_rate < 0:
        raise ContractViolationError(f"Monthly rate cannot be negative (got {monthly_rate})")

    if installments == 1:
        return principal
    if monthly_rate == 0:
        return principal / installments

    growth = (1 + monthly_rate) ** installments
    return principal * (monthly_rate * growth) / (growth - 1)


def calculate_interest(
    principal: Decimal,
    annual_rate: Decimal,
    installments: int,
    has_interest: bool,
) -> InterestCalculation:
    """
    Installment amount, total and interest of a purchase.

    A purchase in a single installment never carries interest. Money
    figures are rounded to minor units; the rate snapshot is kept as given.
    """
    principal = Decimal(principal)
    annual_rate = Decimal(annual_rate)
    if installments < 1:
        raise ContractViolationError(f"Installment count must be at least 1 (got {installments})")

    if installments == 1 or not has_interest:
        return InterestCalculation(
            monthly_installment_amount=(principal / installments).quantize(CENT, ROUND_HALF_UP),
            total_amount=principal,
            total_interest_amount=ZERO,
            monthly_interest_rate=ZERO,
            effective_annual_rate=annual_rate,
        )

    monthly_rate = convert_annual_to_monthly_rate(annual_rate)
    installment = calculate_monthly_installment(principal, monthly_rate, installments)
    total_amount = installment * installments

    return InterestCalculation(
        monthly_installment_amount=installment.quantize(CENT, ROUND_HALF_UP),
        total_amount=total_amount.quantize(CENT, ROUND_HALF_UP),
        total_interest_amount=(total_amount - principal).quantize(CENT, ROUND_HALF_UP),
        monthly_interest_rate=monthly_rate,
        effective_annual_rate=annual_rate,
    )


def build_installment_plan(
    principal: Decimal,
    annual_rate: Decimal,
    installments: int,
    has_interest: bool = True,
) -> InstallmentPlan:
    """Installment plan to attach to a credit purchase."""
    result = calculate_interest(principal, annual_rate, installments, has_interest)
    return InstallmentPlan(
        installment_count=installments,
        total_interest_amount=result.total_interest_amount,
        per_installment_amount=result.monthly_installment_amount,
        annual_interest_rate=result.effective_annual_rate,
    )


def validate_interest_config(
    principal: Decimal,
    annual_rate: Decimal,
    installments: int,
    max_rate: Decimal = Decimal("200"),
    max_installments: int = 60,
) -> list[ValidationIssue]:
    """
    Check a proposed installment purchase.

    Non-standard installment counts are reported as warnings only.
    """
    issues = []

    if principal <= 0:
        issues.append(ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount must be greater than zero",
            severity="error",
        ))

    if annual_rate < 0 or annual_rate > max_rate:
        issues.append(ValidationIssue(
            field="annual_interest_rate",
            issue_type="out_of_range",
            message=f"Interest rate must be between 0% and {max_rate}%",
            severity="error",
        ))

    if installments < 1 or installments > max_installments:
        issues.append(ValidationIssue(
            field="installment_count",
            issue_type="out_of_range",
            message=f"Installment count must be between 1 and {max_installments}",
            severity="error",
        ))
    elif installments not in STANDARD_INSTALLMENTS:
        issues.append(ValidationIssue(
            field="installment_count",
            issue_type="non_standard",
            message=(
                "Non-standard installment count. Common values: "
                + ", ".join(str(n) for n in STANDARD_INSTALLMENTS)
            ),
            severity="warning",
        ))

    return issues
