"""
Tests for MoneyTrack

Test strategy:
1. Unit tests for individual components (models, ledger functions, validators)
2. Integration tests for flows (in-memory storage, fake sleep)
3. No real API calls in tests
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from moneytrack.ledger.duplicates import parse_amount
from moneytrack.models.finance import (
    Account,
    AccountKind,
    Debt,
    DebtDirection,
    InstallmentPlan,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from moneytrack.models.queue import OperationKind, QueuedOperation
from moneytrack.models.results import ValidationIssue, ValidationResult
from moneytrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModels:
    """Tests for transaction-related Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        txn = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=Decimal("50000"),
            category="Alimentación",
            description="Supermercado",
            occurred_at=date(2024, 3, 10),
            source_account_id="acc-1",
        )
        assert txn.amount == Decimal("50000")
        assert txn.settled is True
        assert txn.id

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from text fields."""
        txn = Transaction(
            kind=TransactionKind.INCOME,
            amount=Decimal("1"),
            category="  Salario  ",
            occurred_at=date(2024, 3, 10),
            source_account_id="acc-1",
        )
        assert txn.category == "Salario"

    def test_transaction_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-100")):
            with pytest.raises(ValueError):
                Transaction(
                    kind=TransactionKind.EXPENSE,
                    amount=amount,
                    category="Otros",
                    occurred_at=date(2024, 3, 10),
                    source_account_id="acc-1",
                )

    def test_transfer_requires_destination(self):
        """Test that a transfer without destination is rejected."""
        with pytest.raises(ValueError, match="destination"):
            Transaction(
                kind=TransactionKind.TRANSFER,
                amount=Decimal("10"),
                occurred_at=date(2024, 3, 10),
                source_account_id="acc-1",
            )

    def test_transfer_rejects_same_account(self):
        """Test that source and destination must differ."""
        with pytest.raises(ValueError, match="must differ"):
            Transaction(
                kind=TransactionKind.TRANSFER,
                amount=Decimal("10"),
                occurred_at=date(2024, 3, 10),
                source_account_id="acc-1",
                destination_account_id="acc-1",
            )

    def test_expense_requires_category(self):
        """Test that a non-transfer needs a category unless it is a credit payment."""
        with pytest.raises(ValueError, match="Category is required"):
            Transaction(
                kind=TransactionKind.EXPENSE,
                amount=Decimal("10"),
                occurred_at=date(2024, 3, 10),
                source_account_id="acc-1",
            )

        payment = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=Decimal("10"),
            occurred_at=date(2024, 3, 10),
            source_account_id="acc-1",
            is_credit_payment=True,
        )
        assert payment.is_credit_payment is True

    def test_transaction_json_round_trip(self):
        """Test that a stored document reads back as the same transaction."""
        txn = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=Decimal("1200000"),
            category="Tecnología",
            occurred_at=date(2024, 11, 5),
            source_account_id="card",
            installment_plan=InstallmentPlan(
                installment_count=12,
                total_interest_amount=Decimal("120000"),
            ),
        )
        restored = Transaction.model_validate(txn.model_dump(mode="json"))
        assert restored == txn

    def test_draft_keeps_amount_text(self):
        """Test that the draft keeps the amount as entered."""
        draft = TransactionDraft(kind=TransactionKind.EXPENSE, amount="50.000")
        assert draft.amount == "50.000"

    def test_draft_keeps_numbers_exact(self):
        """Test that numeric amounts stay numbers instead of locale text."""
        assert TransactionDraft(kind=TransactionKind.EXPENSE, amount=Decimal("1500.5")).amount == Decimal("1500.5")
        assert TransactionDraft(kind=TransactionKind.EXPENSE, amount=1234.5).amount == Decimal("1234.5")
        assert TransactionDraft(kind=TransactionKind.EXPENSE, amount=20).amount == Decimal("20")

    def test_numeric_draft_amount_ignores_locale(self):
        """Test that a float amount parses the same under every locale."""
        draft = TransactionDraft(kind=TransactionKind.EXPENSE, amount=1234.5, category="Hogar")
        assert parse_amount(draft.amount, "en-US") == Decimal("1234.5")
        assert parse_amount(draft.amount, "es-CO") == Decimal("1234.5")


class TestAccountModels:
    """Tests for account models."""

    def test_credit_account_rejects_initial_balance(self):
        """Test that credit accounts never carry an initial balance."""
        with pytest.raises(ValueError, match="initial balance"):
            Account(
                name="Visa",
                kind=AccountKind.CREDIT,
                initial_balance=Decimal("100"),
                credit_limit=Decimal("1000"),
            )

    def test_savings_account_rejects_credit_fields(self):
        """Test that only credit accounts have a limit or a rate."""
        with pytest.raises(ValueError, match="Only credit accounts"):
            Account(
                name="Ahorros",
                kind=AccountKind.SAVINGS,
                credit_limit=Decimal("1000"),
            )

    def test_account_day_bounds(self):
        """Test statement days must be between 1 and 31."""
        with pytest.raises(ValueError):
            Account(
                name="Visa",
                kind=AccountKind.CREDIT,
                credit_limit=Decimal("1000"),
                statement_cutoff_day=32,
            )


class TestDebtModels:
    """Tests for debt records."""

    def test_remaining_cannot_exceed_original(self):
        """Test that remaining is bounded by the original amount."""
        with pytest.raises(ValueError, match="cannot exceed"):
            Debt(
                person_name="Ana",
                direction=DebtDirection.LENT,
                original_amount=Decimal("100"),
                remaining_amount=Decimal("200"),
            )

    def test_settled_iff_nothing_remains(self):
        """Test that settlement tracks the remaining amount."""
        with pytest.raises(ValueError, match="settled exactly"):
            Debt(
                person_name="Ana",
                direction=DebtDirection.LENT,
                original_amount=Decimal("100"),
                remaining_amount=Decimal("0"),
            )

        settled = Debt(
            person_name="Ana",
            direction=DebtDirection.LENT,
            original_amount=Decimal("100"),
            remaining_amount=Decimal("0"),
            is_settled=True,
            settled_at=datetime.now(timezone.utc),
        )
        assert settled.is_settled is True


class TestQueueModels:
    """Tests for queued operations."""

    def test_create_targets_payload_id(self):
        """Test that a create writes to the payload's id."""
        op = QueuedOperation(
            kind=OperationKind.CREATE,
            collection="debts",
            payload={"id": "debt-1"},
        )
        assert op.document_id == "debt-1"

    def test_create_without_id_targets_operation_id(self):
        """Test that a create without ids writes to the operation id."""
        op = QueuedOperation(kind=OperationKind.CREATE, collection="debts")
        assert op.document_id == op.id

    def test_update_requires_document_id(self):
        """Test that updates and deletes must name their document."""
        with pytest.raises(ValueError, match="requires a document id"):
            QueuedOperation(kind=OperationKind.UPDATE, collection="debts", payload={"x": 1})

    def test_parked_after_max_failures(self):
        """Test the parked threshold."""
        op = QueuedOperation(kind=OperationKind.DELETE, collection="debts", document_id="d", retry_count=3)
        assert op.is_parked(3) is True
        assert op.is_parked(4) is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSFER_COMMITTED,
            description="Transfer committed",
        )
        assert event.event_type == AuditEventType.TRANSFER_COMMITTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.DEBT_MODIFIED,
            description="Debt modified",
            details={"operation": "add", "amount": "1000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "debt_modified"
        assert log_dict["details"]["operation"] == "add"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.OPERATION_QUEUED,
            description="Queued",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "operation_queued"  # event_type
        assert row[10] == "True"  # is_user_action

    def test_audit_event_builder_transfer_committed(self):
        """Test AuditEventBuilder.transfer_committed."""
        correlation_id = uuid4()

        event = AuditEventBuilder.transfer_committed(
            transaction_id="txn-1",
            source_account_id="a",
            destination_account_id="b",
            amount=Decimal("10"),
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.TRANSFER_COMMITTED
        assert event.entity_id == "txn-1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_operation_parked(self):
        """Test AuditEventBuilder.operation_parked."""
        event = AuditEventBuilder.operation_parked(
            operation_id="op-1",
            retry_count=3,
            error_message="network down",
        )

        assert event.event_type == AuditEventType.OPERATION_PARKED
        assert event.severity == AuditSeverity.ERROR
        assert event.details["retry_count"] == 3


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            business_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.first_error == "Amount required"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            business_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="occurred_on",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.first_error is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
