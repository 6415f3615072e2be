"""
Credit Card Statement Cycles

A card's billing cycle is set by its statement cutoff day:

    cycle end    = cutoff day of this month if today is on or before it,
                   otherwise cutoff day of next month
    cycle start  = day after the cutoff of the month before the cycle end
    payment due  = payment day of the month after the cycle end

Days past the end of a short month are clamped to its last day, so a
cutoff on the 31st falls on Feb 28 (or 29) in February.

Charges are expenses of the card dated inside the cycle; payments are
its incomes plus transfers received from other accounts.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from moneytrack.exceptions import ContractViolationError
from moneytrack.models.finance import Account, AccountKind, Transaction, TransactionKind
from moneytrack.models.results import CreditCardStatement


ZERO = Decimal("0")


def clamped_date(year: int, month: int, day: int) -> date:
    """`day` of the month, or the month's last day if it is shorter."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def statement_cycle_dates(
    cutoff_day: int,
    payment_day: int,
    as_of: Optional[date] = None,
) -> tuple[date, date, date]:
    """
    Dates of the billing cycle containing `as_of`.

    Returns:
        (cycle_start, cycle_end, payment_due_date)
    """
    as_of = as_of or date.today()

    end_year, end_month = as_of.year, as_of.month
    if as_of.day > cutoff_day:
        end_year, end_month = _shift_month(end_year, end_month, 1)
    cycle_end = clamped_date(end_year, end_month, cutoff_day)

    start_year, start_month = _shift_month(end_year, end_month, -1)
    cycle_start = clamped_date(start_year, start_month, cutoff_day) + timedelta(days=1)

    due_year, due_month = _shift_month(end_year, end_month, 1)
    payment_due_date = clamped_date(due_year, due_month, payment_day)

    return cycle_start, cycle_end, payment_due_date


def _is_payment(txn: Transaction, account_id: str) -> bool:
    if txn.kind == TransactionKind.INCOME:
        return txn.source_account_id == account_id
    return txn.kind == TransactionKind.TRANSFER and txn.destination_account_id == account_id


def _in_installments(txn: Transaction) -> bool:
    plan = txn.installment_plan
    return plan is not None and plan.installment_count > 1


def statement_cycle(
    account: Account,
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> Optional[CreditCardStatement]:
    """
    Current statement of a credit card.

    Returns None when the card has no cutoff or payment day configured.

    Raises:
        ContractViolationError: account is not a credit account
    """
    if account.kind != AccountKind.CREDIT:
        raise ContractViolationError(
            f"Statements only exist for credit accounts (got {account.kind.value})"
        )
    if not account.statement_cutoff_day or not account.payment_due_day:
        return None

    cycle_start, cycle_end, payment_due_date = statement_cycle_dates(
        account.statement_cutoff_day, account.payment_due_day, as_of
    )

    cycle_transactions = [
        txn for txn in transactions
        if cycle_start <= txn.occurred_at <= cycle_end
        and (txn.source_account_id == account.id or _is_payment(txn, account.id))
    ]

    charges = [
        txn for txn in cycle_transactions
        if txn.kind == TransactionKind.EXPENSE and txn.source_account_id == account.id
    ]
    total_charges = sum((txn.amount for txn in charges), ZERO)
    total_payments = sum(
        (txn.amount for txn in cycle_transactions if _is_payment(txn, account.id)), ZERO
    )

    split = [txn for txn in charges if _in_installments(txn)]
    installment_charges = sum(
        (txn.installment_plan.per_installment_amount or txn.amount for txn in split), ZERO
    )
    regular_charges = total_charges - sum((txn.amount for txn in split), ZERO)

    return CreditCardStatement(
        account_id=account.id,
        name=account.name,
        cycle_start=cycle_start,
        cycle_end=cycle_end,
        payment_due_date=payment_due_date,
        total_charges=total_charges,
        total_payments=total_payments,
        balance=total_charges - total_payments,
        installment_charges=installment_charges,
        regular_charges=regular_charges,
        transactions=cycle_transactions,
    )


def statement_cycles(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    as_of: Optional[date] = None,
) -> list[CreditCardStatement]:
    """Statements of every credit card with a configured billing cycle."""
    transactions = list(transactions)
    statements = []
    for account in accounts:
        if account.kind != AccountKind.CREDIT:
            continue
        statement = statement_cycle(account, transactions, as_of)
        if statement is not None:
            statements.append(statement)
    return statements
