"""
Debt Ledger

State machine for person-to-person loans:

    active --(remaining reaches 0)--> settled

Settled is terminal. Both operations move the original and the remaining
amount together:

    add:      original += amount, remaining += amount
    subtract: original -= amount, remaining -= amount   (amount <= remaining)

Amounts are Decimal, so "remaining reaches 0" is an exact comparison.
Records are immutable; every operation returns a new Debt.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from moneytrack.exceptions import (
    AmountExceedsRemainingError,
    ContractViolationError,
    DebtSettledError,
    InvalidAmountError,
)
from moneytrack.models.finance import Debt, DebtDirection, DebtOperation, utc_now
from moneytrack.models.results import DebtSummary


def create_debt(
    person_name: str,
    direction: Union[DebtDirection, str],
    amount: Decimal,
    notes: Optional[str] = None,
) -> Debt:
    """Open a new debt with the whole amount still remaining."""
    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmountError(amount)

    return Debt(
        person_name=person_name,
        direction=DebtDirection(direction),
        original_amount=amount,
        remaining_amount=amount,
        notes=notes,
    )


def modify_debt(
    debt: Debt,
    amount: Decimal,
    operation: Union[DebtOperation, str],
    now: Optional[datetime] = None,
) -> Debt:
    """
    Apply an add or subtract operation to a debt.

    Args:
        debt: Current record (left untouched)
        amount: Positive amount to add or subtract
        operation: "add" or "subtract"
        now: Settlement timestamp, defaults to the current UTC time

    Returns:
        The updated record

    Raises:
        DebtSettledError: the debt is already settled
        InvalidAmountError: amount is zero or negative
        AmountExceedsRemainingError: subtract larger than what remains
        ContractViolationError: unknown operation
    """
    if debt.is_settled:
        raise DebtSettledError(debt.id)

    try:
        operation = DebtOperation(operation)
    except ValueError:
        raise ContractViolationError(f"Unknown debt operation: {operation}") from None

    amount = Decimal(amount)
    if amount <= 0:
        raise InvalidAmountError(amount)

    if operation == DebtOperation.ADD:
        original = debt.original_amount + amount
        remaining = debt.remaining_amount + amount
    else:
        if amount > debt.remaining_amount:
            raise AmountExceedsRemainingError(
                remaining=debt.remaining_amount, requested=amount
            )
        original = debt.original_amount - amount
        remaining = debt.remaining_amount - amount

    updates = {"original_amount": original, "remaining_amount": remaining}
    if remaining == 0:
        updates["is_settled"] = True
        updates["settled_at"] = now or utc_now()

    # Re-validate so the record invariants hold on the new value
    return Debt.model_validate({**debt.model_dump(), **updates})


def summarize_debts(debts: Iterable[Debt]) -> DebtSummary:
    """Outstanding totals per direction plus record counts."""
    summary = DebtSummary()

    for debt in debts:
        summary.total_count += 1
        if debt.is_settled:
            summary.settled_count += 1
            continue

        if debt.direction == DebtDirection.LENT:
            summary.total_lent += debt.remaining_amount
            summary.active_lent_count += 1
        else:
            summary.total_borrowed += debt.remaining_amount
            summary.active_borrowed_count += 1

    return summary
