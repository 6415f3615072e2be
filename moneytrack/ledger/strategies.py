"""
Balance Strategies per Account Kind

DESIGN DECISION: Each account kind derives its figure from the transaction
log in its own way:

SAVINGS / CASH:
    balance = initial balance
              + settled income - settled expense
              - settled outgoing transfers + settled incoming transfers
    Unsettled transactions are ignored entirely.

CREDIT:
    used credit = max(0, all expenses - income - incoming transfers)
    available   = max(0, credit limit - used credit)
    Unsettled expenses count: a purchase consumes credit capacity
    immediately, regardless of statement settlement.

The set of kinds is closed, so strategies live in a constant table keyed
by AccountKind. An unknown kind is a configuration error, not user input.

IMPORTANT: Validation never clamps. A violation is reported with a reason.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from moneytrack.exceptions import (
    ContractViolationError,
    CreditOverpaymentError,
    CreditTransferError,
    InsufficientBalanceError,
    InsufficientCreditError,
    InvalidAmountError,
    LedgerValidationError,
    NoOutstandingCreditError,
    UnknownAccountKindError,
)
from moneytrack.models.finance import (
    Account,
    AccountKind,
    Transaction,
    TransactionKind,
)
from moneytrack.models.results import StrategyCheck


ZERO = Decimal("0")


class BalanceStrategy(ABC):
    """
    Contract every account kind implements.

    Strategies are stateless; a single instance per kind is shared.
    """

    kind: AccountKind

    @abstractmethod
    def calculate_balance(
        self,
        account: Account,
        transactions: Iterable[Transaction],
    ) -> Decimal:
        """Derived figure shown for the account (balance or available credit)."""

    @abstractmethod
    def find_violation(
        self,
        account: Account,
        amount: Decimal,
        transactions: Iterable[Transaction],
        operation_kind: TransactionKind,
    ) -> Optional[LedgerValidationError]:
        """Return the rule the operation would break, or None."""

    @abstractmethod
    def include_in_net_worth(self) -> bool:
        """Whether balances of this kind count towards net worth."""

    def validate(
        self,
        account: Account,
        amount: Decimal,
        transactions: Iterable[Transaction],
        operation_kind: TransactionKind,
    ) -> StrategyCheck:
        """Check an operation against the account without mutating anything."""
        violation = self.find_violation(
            account, amount, list(transactions), TransactionKind(operation_kind)
        )
        if violation is None:
            return StrategyCheck.accept()
        return StrategyCheck.reject(violation)

    def ensure_valid(
        self,
        account: Account,
        amount: Decimal,
        transactions: Iterable[Transaction],
        operation_kind: TransactionKind,
    ) -> None:
        """Raise the typed validation error if the operation is not allowed."""
        violation = self.find_violation(
            account, amount, list(transactions), TransactionKind(operation_kind)
        )
        if violation is not None:
            raise violation


class SavingsStrategy(BalanceStrategy):
    """Asset account: the balance is money the user holds."""

    kind = AccountKind.SAVINGS

    def calculate_balance(
        self,
        account: Account,
        transactions: Iterable[Transaction],
    ) -> Decimal:
        balance = account.initial_balance

        for txn in transactions:
            if not txn.settled:
                continue

            if txn.source_account_id == account.id:
                if txn.kind == TransactionKind.INCOME:
                    balance += txn.amount
                else:
                    # expenses and outgoing transfers
                    balance -= txn.amount

            if (
                txn.kind == TransactionKind.TRANSFER
                and txn.destination_account_id == account.id
            ):
                balance += txn.amount

        return balance

    def find_violation(
        self,
        account: Account,
        amount: Decimal,
        transactions: Iterable[Transaction],
        operation_kind: TransactionKind,
    ) -> Optional[LedgerValidationError]:
        if amount <= 0:
            return InvalidAmountError(amount)

        if operation_kind in (TransactionKind.EXPENSE, TransactionKind.TRANSFER):
            balance = self.calculate_balance(account, transactions)
            if amount > balance:
                return InsufficientBalanceError(available=balance, requested=amount)

        return None

    def include_in_net_worth(self) -> bool:
        return True


class CashStrategy(SavingsStrategy):
    """
    Cash on hand.

    Behaves exactly like savings today; kept as its own strategy so the
    two can diverge without touching savings.
    """

    kind = AccountKind.CASH


class CreditStrategy(BalanceStrategy):
    """Liability account: the figure shown is available credit."""

    kind = AccountKind.CREDIT

    def used_credit(
        self,
        account: Account,
        transactions: Iterable[Transaction],
    ) -> Decimal:
        """Credit consumed by purchases, net of payments. Never negative."""
        expenses = ZERO
        payments = ZERO

        for txn in transactions:
            if txn.source_account_id == account.id:
                if txn.kind == TransactionKind.EXPENSE:
                    expenses += txn.amount
                elif txn.kind == TransactionKind.INCOME:
                    payments += txn.amount

            if (
                txn.kind == TransactionKind.TRANSFER
                and txn.destination_account_id == account.id
            ):
                payments += txn.amount

        return max(ZERO, expenses - payments)

    def calculate_balance(
        self,
        account: Account,
        transactions: Iterable[Transaction],
    ) -> Decimal:
        credit_limit = account.credit_limit or ZERO
        used = self.used_credit(account, transactions)
        return max(ZERO, credit_limit - used)

    def find_violation(
        self,
        account: Account,
        amount: Decimal,
        transactions: Iterable[Transaction],
        operation_kind: TransactionKind,
    ) -> Optional[LedgerValidationError]:
        if amount <= 0:
            return InvalidAmountError(amount)

        if operation_kind == TransactionKind.TRANSFER:
            return CreditTransferError()

        if operation_kind == TransactionKind.EXPENSE:
            available = self.calculate_balance(account, transactions)
            if amount > available:
                return InsufficientCreditError(available=available, requested=amount)

        if operation_kind == TransactionKind.INCOME:
            used = self.used_credit(account, transactions)
            if used == 0:
                return NoOutstandingCreditError()
            if amount > used:
                return CreditOverpaymentError(used_credit=used, requested=amount)

        return None

    def include_in_net_worth(self) -> bool:
        # Credit represents debt, not an asset
        return False


_CREDIT = CreditStrategy()

STRATEGIES: Mapping[AccountKind, BalanceStrategy] = MappingProxyType({
    AccountKind.SAVINGS: SavingsStrategy(),
    AccountKind.CASH: CashStrategy(),
    AccountKind.CREDIT: _CREDIT,
})


def strategy_for(kind: Union[AccountKind, str]) -> BalanceStrategy:
    """
    Select the strategy for an account kind.

    Raises:
        UnknownAccountKindError: kind is outside the closed set
    """
    try:
        return STRATEGIES[AccountKind(kind)]
    except (ValueError, KeyError):
        raise UnknownAccountKindError(kind) from None


def credit_strategy() -> CreditStrategy:
    """The credit strategy, typed for its credit-only methods."""
    return _CREDIT


# =============================================================================
# ENTRY POINTS
# =============================================================================

def calculate_balance(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Balance for savings/cash, available credit for credit accounts."""
    return strategy_for(account.kind).calculate_balance(account, transactions)


def calculate_used_credit(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Used credit of a credit account."""
    if account.kind != AccountKind.CREDIT:
        raise ContractViolationError(
            f"Used credit only exists on credit accounts (got {account.kind.value})"
        )
    return credit_strategy().used_credit(account, transactions)


def calculate_available_credit(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Available credit of a credit account."""
    if account.kind != AccountKind.CREDIT:
        raise ContractViolationError(
            f"Available credit only exists on credit accounts (got {account.kind.value})"
        )
    return credit_strategy().calculate_balance(account, transactions)


def validate_transaction_amount(
    account: Account,
    amount: Decimal,
    transactions: Iterable[Transaction],
    operation_kind: TransactionKind,
) -> StrategyCheck:
    """Run the account's strategy validation for one operation."""
    return strategy_for(account.kind).validate(account, amount, transactions, operation_kind)


def calculate_net_worth(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> Decimal:
    """Sum of balances of every account kind that counts as an asset."""
    transactions = list(transactions)
    total = ZERO
    for account in accounts:
        strategy = strategy_for(account.kind)
        if strategy.include_in_net_worth():
            total += strategy.calculate_balance(account, transactions)
    return total
