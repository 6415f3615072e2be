"""
Ledger Computation Package

Pure functions deriving financial state from the transaction log:
- strategies: balance / available credit per account kind
- amortization: installment interest and pending amounts
- debts: person-to-person loan state machine
- duplicates: advisory duplicate detection
- statements: credit card billing cycles
"""

from moneytrack.ledger.amortization import (
    build_installment_plan,
    calculate_interest,
    compute_interest_summary,
    installment_interest_schedule,
)
from moneytrack.ledger.debts import create_debt, modify_debt, summarize_debts
from moneytrack.ledger.duplicates import detect_duplicates, parse_amount
from moneytrack.ledger.statements import statement_cycle, statement_cycle_dates, statement_cycles
from moneytrack.ledger.strategies import (
    BalanceStrategy,
    CashStrategy,
    CreditStrategy,
    SavingsStrategy,
    calculate_available_credit,
    calculate_balance,
    calculate_net_worth,
    calculate_used_credit,
    strategy_for,
    validate_transaction_amount,
)

__all__ = [
    "BalanceStrategy",
    "CashStrategy",
    "CreditStrategy",
    "SavingsStrategy",
    "build_installment_plan",
    "calculate_available_credit",
    "calculate_balance",
    "calculate_interest",
    "calculate_net_worth",
    "calculate_used_credit",
    "compute_interest_summary",
    "create_debt",
    "detect_duplicates",
    "installment_interest_schedule",
    "modify_debt",
    "parse_amount",
    "statement_cycle",
    "statement_cycle_dates",
    "statement_cycles",
    "strategy_for",
    "summarize_debts",
    "validate_transaction_amount",
]
