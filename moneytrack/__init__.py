"""
MoneyTrack - Ledger Core

The balance, credit and consistency engine behind a personal finance
tracker. Every figure the user sees (available balance, used credit,
pending installments, loan balances) is derived on read from the
transaction log.

DESIGN PRINCIPLES:
1. Derived state is recomputed, never stored
2. Fail early, fail visibly
3. No silent clamping or defaulting
4. Multi-account writes are all-or-nothing
5. Offline writes are queued, never dropped
"""

__version__ = "1.0.0"
__author__ = "MoneyTrack Team"
