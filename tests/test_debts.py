"""
Tests for the person-to-person debt state machine.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from moneytrack.exceptions import (
    AmountExceedsRemainingError,
    ContractViolationError,
    DebtSettledError,
    InvalidAmountError,
)
from moneytrack.ledger.debts import create_debt, modify_debt, summarize_debts
from moneytrack.models.finance import Debt, DebtDirection, DebtOperation


def open_debt(original="1000000", remaining="500000", direction=DebtDirection.LENT) -> Debt:
    return Debt(
        person_name="Carlos",
        direction=direction,
        original_amount=Decimal(original),
        remaining_amount=Decimal(remaining),
    )


class TestCreateDebt:
    """Tests for opening a debt."""

    def test_whole_amount_remains(self):
        """Test that a new debt starts with nothing paid."""
        debt = create_debt("Ana", "borrowed", Decimal("250000"), notes="Almuerzo")
        assert debt.direction == DebtDirection.BORROWED
        assert debt.original_amount == debt.remaining_amount == Decimal("250000")
        assert debt.is_settled is False
        assert debt.notes == "Almuerzo"

    def test_non_positive_amount(self):
        """Test that a debt needs a positive amount."""
        with pytest.raises(InvalidAmountError):
            create_debt("Ana", DebtDirection.LENT, Decimal("0"))


class TestModifyDebt:
    """Tests for add/subtract and settlement."""

    def test_paying_off_settles_the_debt(self):
        """Test that subtracting the remaining amount settles, and settled is terminal."""
        settled_at = datetime(2024, 5, 1, tzinfo=timezone.utc)
        debt = modify_debt(open_debt(), Decimal("500000"), "subtract", now=settled_at)

        assert debt.remaining_amount == Decimal("0")
        assert debt.is_settled is True
        assert debt.settled_at == settled_at

        with pytest.raises(DebtSettledError, match="already settled"):
            modify_debt(debt, Decimal("100"), "add")

    def test_partial_payment(self):
        """Test that a partial subtract keeps the debt active."""
        debt = modify_debt(open_debt(), Decimal("200000"), DebtOperation.SUBTRACT)
        assert debt.remaining_amount == Decimal("300000")
        assert debt.original_amount == Decimal("800000")
        assert debt.is_settled is False
        assert debt.settled_at is None

    def test_add_increases_both_amounts(self):
        """Test that adding grows the original and the remaining amount."""
        debt = modify_debt(open_debt(), Decimal("100000"), "add")
        assert debt.original_amount == Decimal("1100000")
        assert debt.remaining_amount == Decimal("600000")

    def test_original_record_is_untouched(self):
        """Test that modify returns a new record."""
        original = open_debt()
        modify_debt(original, Decimal("100"), "subtract")
        assert original.remaining_amount == Decimal("500000")

    def test_subtract_more_than_remaining(self):
        """Test that overpaying a debt is rejected."""
        with pytest.raises(AmountExceedsRemainingError):
            modify_debt(open_debt(), Decimal("500001"), "subtract")

    def test_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-5")):
            with pytest.raises(InvalidAmountError):
                modify_debt(open_debt(), amount, "add")

    def test_unknown_operation(self):
        """Test that an unknown operation is a contract violation."""
        with pytest.raises(ContractViolationError):
            modify_debt(open_debt(), Decimal("1"), "multiply")

    def test_settled_check_comes_first(self):
        """Test that a settled debt refuses even malformed requests."""
        debt = modify_debt(open_debt(), Decimal("500000"), "subtract")
        with pytest.raises(DebtSettledError):
            modify_debt(debt, Decimal("-1"), "multiply")

    def test_add_then_subtract_restores_remaining(self):
        """Test that add followed by subtract of the same amount round-trips."""
        debt = open_debt()
        restored = modify_debt(modify_debt(debt, Decimal("7000"), "add"), Decimal("7000"), "subtract")
        assert restored.remaining_amount == debt.remaining_amount
        assert restored.is_settled is False


class TestSummarizeDebts:
    """Tests for the outstanding totals."""

    def test_totals_per_direction(self):
        """Test that settled debts are counted but not summed."""
        debts = [
            open_debt(remaining="500000"),
            open_debt(remaining="100000", direction=DebtDirection.BORROWED),
            modify_debt(open_debt(remaining="300000"), Decimal("300000"), "subtract"),
        ]
        summary = summarize_debts(debts)
        assert summary.total_lent == Decimal("500000")
        assert summary.total_borrowed == Decimal("100000")
        assert summary.active_lent_count == 1
        assert summary.active_borrowed_count == 1
        assert summary.settled_count == 1
        assert summary.total_count == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
