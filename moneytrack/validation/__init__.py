"""Validation pipeline for transactions and accounts."""

from moneytrack.validation.validator import AccountValidator, TransactionValidator

__all__ = ["AccountValidator", "TransactionValidator"]
