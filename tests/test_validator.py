"""
Tests for the two-stage validation pipeline.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from moneytrack.config.settings import LedgerSettings
from moneytrack.models.finance import Account, AccountKind, TransactionDraft, TransactionKind
from moneytrack.validation import AccountValidator, TransactionValidator

from tests.factories import make_account, make_transaction


@pytest.fixture
def validator(ledger_settings):
    return TransactionValidator(ledger_settings)


@pytest.fixture
def savings():
    return make_account(initial_balance=Decimal("100000"))


@pytest.fixture
def card():
    return make_account(AccountKind.CREDIT, credit_limit=Decimal("1000000"))


def expense(account, amount="20.000", **fields) -> TransactionDraft:
    defaults = {
        "kind": TransactionKind.EXPENSE,
        "amount": amount,
        "category": "Alimentación",
        "description": "Mercado",
        "occurred_on": date.today(),
        "source_account_id": account.id,
    }
    defaults.update(fields)
    return TransactionDraft(**defaults)


class TestSchemaValidation:
    """Stage 1 checks."""

    def test_valid_expense(self, validator, savings):
        """Test that a well-formed expense within balance passes."""
        result = validator.validate(expense(savings), savings, [])
        assert result.is_valid is True
        assert result.schema_valid is True
        assert result.business_valid is True
        assert result.issues == []

    def test_missing_account(self, validator, savings):
        """Test that an unknown source account fails stage 1."""
        result = validator.validate(expense(savings), None, [])
        assert result.is_valid is False
        assert result.schema_valid is False
        assert result.issues[0].field == "source_account_id"

    def test_missing_category(self, validator, savings):
        """Test that income and expenses need a category."""
        result = validator.validate(expense(savings, category=""), savings, [])
        assert result.is_valid is False
        assert any(issue.field == "category" for issue in result.issues)

    def test_credit_payment_needs_no_category(self, validator, card, savings):
        """Test that credit payment legs are exempt from the category rule."""
        result = validator.validate(
            expense(savings, category="", is_credit_payment=True), savings, []
        )
        assert result.is_valid is True

    def test_invalid_amount(self, validator, savings):
        """Test that unparsable and non-positive amounts are rejected."""
        for amount in ("abc", "0", "-10"):
            result = validator.validate(expense(savings, amount=amount), savings, [])
            assert result.is_valid is False
            assert result.issues[0].field == "amount"

    def test_amount_above_maximum(self, savings):
        """Test the configurable amount ceiling."""
        validator = TransactionValidator(LedgerSettings(max_transaction_amount=Decimal("1000")))
        result = validator.validate(expense(savings, amount="1.001"), savings, [])
        assert result.is_valid is False
        assert result.issues[0].issue_type == "out_of_range"

    def test_description_too_long(self, validator, savings):
        """Test the description length limit."""
        result = validator.validate(expense(savings, description="x" * 501), savings, [])
        assert result.is_valid is False
        assert result.issues[0].issue_type == "too_long"

    def test_future_date_is_a_warning(self, validator, savings):
        """Test that a future date warns without blocking."""
        draft = expense(savings, occurred_on=date.today() + timedelta(days=5))
        result = validator.validate(draft, savings, [])
        assert result.is_valid is True
        assert any("future" in warning for warning in result.warnings)

    def test_self_transfer(self, validator, savings):
        """Test that a transfer to the same account is refused."""
        draft = expense(
            savings,
            kind=TransactionKind.TRANSFER,
            category="",
            destination_account_id=savings.id,
        )
        result = validator.validate(draft, savings, [], destination_account=savings)
        assert result.is_valid is False
        assert result.issues[0].issue_type == "self_transfer"

    def test_transfer_without_destination(self, validator, savings):
        """Test that a transfer needs a destination."""
        draft = expense(savings, kind=TransactionKind.TRANSFER, category="")
        result = validator.validate(draft, savings, [])
        assert result.issues[0].field == "destination_account_id"

    def test_business_stage_skipped_on_schema_errors(self, validator, savings):
        """Test that stage 2 only runs after stage 1 passes."""
        result = validator.validate(expense(savings, amount="999.999", category=""), savings, [])
        assert result.business_valid is False
        assert all(issue.issue_type != "insufficient_balance" for issue in result.issues)


class TestBusinessValidation:
    """Stage 2 checks."""

    def test_insufficient_balance(self, validator, savings):
        """Test that the savings strategy rejects overspending."""
        result = validator.validate(expense(savings, amount="150.000"), savings, [])
        assert result.is_valid is False
        assert result.schema_valid is True
        assert result.issues[0].issue_type == "insufficient_balance"

    def test_insufficient_credit(self, validator, card):
        """Test that the credit strategy bounds purchases."""
        log = [make_transaction(card, TransactionKind.EXPENSE, "900000")]
        result = validator.validate(expense(card, amount="200.000"), card, log)
        assert result.issues[0].issue_type == "insufficient_credit"

    def test_transfer_from_credit(self, validator, card, savings):
        """Test that a credit account cannot send a transfer."""
        draft = expense(
            card,
            kind=TransactionKind.TRANSFER,
            category="",
            destination_account_id=savings.id,
        )
        result = validator.validate(draft, card, [], destination_account=savings)
        assert result.issues[0].issue_type == "credit_transfer"

    def test_transfer_into_card_is_a_payment(self, validator, card, savings):
        """Test that money moved into a card cannot exceed its used credit."""
        log = [make_transaction(card, TransactionKind.EXPENSE, "10000")]
        draft = expense(
            savings,
            amount="20.000",
            kind=TransactionKind.TRANSFER,
            category="",
            destination_account_id=card.id,
        )
        result = validator.validate(draft, savings, log, destination_account=card)
        assert result.is_valid is False
        assert result.issues[0].issue_type == "credit_overpayment"

    def test_transfer_to_missing_account(self, validator, savings):
        """Test that the destination must exist."""
        draft = expense(
            savings,
            kind=TransactionKind.TRANSFER,
            category="",
            destination_account_id="ghost",
        )
        result = validator.validate(draft, savings, [])
        assert result.is_valid is False
        assert result.issues[0].issue_type == "missing_account"


class TestDuplicateWarnings:
    """Duplicate advisories inside validation."""

    def test_duplicates_warn_but_do_not_block(self, validator, savings):
        """Test that a likely duplicate is a warning only."""
        log = [
            make_transaction(
                savings,
                TransactionKind.EXPENSE,
                "20000",
                description="Mercado",
                occurred_at=date.today(),
            )
        ]
        result = validator.validate(expense(savings), savings, log)
        assert result.is_valid is True
        assert len(result.duplicates) == 1
        assert result.warnings

    def test_duplicate_check_can_be_disabled(self, validator, savings):
        """Test the check_duplicates switch."""
        log = [make_transaction(savings, TransactionKind.EXPENSE, "20000", occurred_at=date.today())]
        result = validator.validate(expense(savings), savings, log, check_duplicates=False)
        assert result.duplicates == []


class TestUserFriendlySummary:
    """Tests for the notification text."""

    def test_clean_result(self, validator, savings):
        """Test the all-clear message."""
        result = validator.validate(expense(savings), savings, [])
        assert "All checks passed" in validator.get_user_friendly_summary(result)

    def test_errors_listed(self, validator, savings):
        """Test that every error message appears in the summary."""
        result = validator.validate(expense(savings, amount="150.000"), savings, [])
        summary = validator.get_user_friendly_summary(result)
        assert "cannot be saved" in summary
        assert result.first_error in summary


class TestAccountValidator:
    """Tests for account checks."""

    def test_valid_credit_account(self, ledger_settings):
        """Test a complete credit account."""
        card = make_account(AccountKind.CREDIT, annual_interest_rate=Decimal("25"))
        result = AccountValidator(ledger_settings).validate(card)
        assert result.is_valid is True

    def test_credit_account_needs_limit_and_days(self, ledger_settings):
        """Test the required credit fields."""
        card = Account(name="Visa", kind=AccountKind.CREDIT)
        result = AccountValidator(ledger_settings).validate(card)
        fields = {issue.field for issue in result.issues if issue.severity == "error"}
        assert fields == {"credit_limit", "statement_cutoff_day", "payment_due_day"}

    def test_due_day_before_cutoff_warns(self, ledger_settings):
        """Test that a due day on or before the cutoff is only a warning."""
        card = make_account(AccountKind.CREDIT, statement_cutoff_day=20, payment_due_day=5)
        result = AccountValidator(ledger_settings).validate(card)
        assert result.is_valid is True
        assert result.warnings

    def test_rate_above_maximum(self, ledger_settings):
        """Test the interest rate ceiling."""
        card = make_account(AccountKind.CREDIT, annual_interest_rate=Decimal("250"))
        result = AccountValidator(ledger_settings).validate(card)
        assert result.is_valid is False

    def test_initial_balance_bounds(self, ledger_settings):
        """Test savings opening balance bounds; editing skips them."""
        rich = make_account(initial_balance=Decimal("2000000000"))
        assert AccountValidator(ledger_settings).validate(rich).is_valid is False
        assert AccountValidator(ledger_settings).validate(rich, is_editing=True).is_valid is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
