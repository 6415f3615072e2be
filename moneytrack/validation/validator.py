"""
Two-Stage Validation Pipeline

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (category, destination account)
- Amount format and bounds
- Description length
- Self transfers
- This catches malformed user input

STAGE 2 - BUSINESS VALIDATION:
- The source account's balance strategy rules
- Transfers into a credit account are checked as credit payments
- This catches operations the ledger must refuse

Duplicate detection runs alongside stage 2 and only ever adds warnings.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

import re
from datetime import date, timedelta
from typing import Iterable, Optional

from moneytrack.config import get_settings
from moneytrack.config.settings import LedgerSettings
from moneytrack.ledger.duplicates import detect_duplicates, parse_amount
from moneytrack.ledger.strategies import credit_strategy, strategy_for
from moneytrack.models.finance import (
    Account,
    AccountKind,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from moneytrack.models.results import DuplicateMatch, ValidationIssue, ValidationResult


def _issue_type(error_type: Optional[str]) -> str:
    """InsufficientBalanceError -> insufficient_balance"""
    if not error_type:
        return "business_rule"
    name = error_type[:-len("Error")] if error_type.endswith("Error") else error_type
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class TransactionValidator:
    """
    Validates a transaction draft through a two-stage pipeline.

    Stage 1: Schema validation (needs nothing but the draft)
    Stage 2: Business validation (needs the accounts and the transaction log)
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_schema(
        self,
        draft: TransactionDraft,
        source_account: Optional[Account],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        settings = self._settings

        if source_account is None:
            issues.append(ValidationIssue(
                field="source_account_id",
                issue_type="missing",
                message="An account is required",
                severity="error",
                suggested_fix="Select the account this transaction belongs to",
            ))

        if len(draft.description) > settings.max_description_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=(
                    f"Description cannot be longer than "
                    f"{settings.max_description_length} characters"
                ),
                severity="error",
            ))

        if (
            draft.kind != TransactionKind.TRANSFER
            and not draft.is_credit_payment
            and not draft.category
        ):
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="A category is required",
                severity="error",
                suggested_fix="Pick a category for this transaction",
            ))

        if draft.kind == TransactionKind.TRANSFER:
            if not draft.destination_account_id:
                issues.append(ValidationIssue(
                    field="destination_account_id",
                    issue_type="missing",
                    message="A destination account is required for transfers",
                    severity="error",
                ))
            elif draft.destination_account_id == draft.source_account_id:
                issues.append(ValidationIssue(
                    field="destination_account_id",
                    issue_type="self_transfer",
                    message="Cannot transfer to the same account",
                    severity="error",
                    suggested_fix="Choose a different destination account",
                ))

        amount = parse_amount(draft.amount, settings.number_locale)
        if amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a number greater than zero",
                severity="error",
            ))
        elif amount < settings.min_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Amount must be at least {settings.min_transaction_amount}",
                severity="error",
            ))
        elif amount > settings.max_transaction_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Amount cannot be greater than {settings.max_transaction_amount}",
                severity="error",
            ))

        if draft.occurred_on and draft.occurred_on > date.today() + timedelta(days=1):
            issues.append(ValidationIssue(
                field="occurred_on",
                issue_type="future_date",
                message=f"Transaction date ({draft.occurred_on}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_business(
        self,
        draft: TransactionDraft,
        source_account: Account,
        transactions: list[Transaction],
        destination_account: Optional[Account] = None,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Business validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        amount = parse_amount(draft.amount, self._settings.number_locale)

        check = strategy_for(source_account.kind).validate(
            source_account, amount, transactions, draft.kind
        )
        if not check.ok:
            issues.append(ValidationIssue(
                field="amount",
                issue_type=_issue_type(check.error_type),
                message=check.reason,
                severity="error",
            ))

        if draft.kind == TransactionKind.TRANSFER:
            if destination_account is None:
                issues.append(ValidationIssue(
                    field="destination_account_id",
                    issue_type="missing_account",
                    message="The destination account does not exist",
                    severity="error",
                ))
            elif destination_account.kind == AccountKind.CREDIT:
                # Money moved into a card pays down its used credit
                payment = credit_strategy().validate(
                    destination_account, amount, transactions, TransactionKind.INCOME
                )
                if not payment.ok:
                    issues.append(ValidationIssue(
                        field="amount",
                        issue_type=_issue_type(payment.error_type),
                        message=payment.reason,
                        severity="error",
                    ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _check_duplicates(
        self,
        draft: TransactionDraft,
        transactions: list[Transaction],
    ) -> tuple[list[DuplicateMatch], list[ValidationIssue]]:
        """Duplicate advisories, reported as warnings."""
        settings = self._settings
        matches = detect_duplicates(
            draft,
            transactions,
            threshold=settings.duplicate_threshold,
            window=timedelta(hours=settings.duplicate_window_hours),
            limit=settings.max_duplicate_matches,
            locale=settings.number_locale,
        )

        issues = [
            ValidationIssue(
                field="duplicate",
                issue_type="potential_duplicate",
                message=(
                    f"Similar {match.transaction.kind.value} of {match.transaction.amount} "
                    f"on {match.transaction.occurred_at} (score {match.score})"
                ),
                severity="warning",
                suggested_fix="Please verify this isn't a duplicate entry",
            )
            for match in matches
        ]
        return matches, issues

    def validate(
        self,
        draft: TransactionDraft,
        source_account: Optional[Account],
        transactions: Iterable[Transaction],
        destination_account: Optional[Account] = None,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The transaction as entered by the user
            source_account: Account the transaction belongs to
            transactions: Current transaction log
            destination_account: Receiving account for transfers
            check_duplicates: Whether to look for possible duplicates

        Returns:
            ValidationResult with all issues found
        """
        transactions = list(transactions)
        all_issues = []
        warnings = []
        duplicates = []

        # Stage 1: Schema validation
        schema_valid, schema_issues = self._validate_schema(draft, source_account)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        business_valid = False
        if schema_valid:
            business_valid, business_issues = self._validate_business(
                draft, source_account, transactions, destination_account
            )
            all_issues.extend(business_issues)

            if check_duplicates:
                duplicates, duplicate_issues = self._check_duplicates(draft, transactions)
                all_issues.extend(duplicate_issues)

        for issue in all_issues:
            if issue.severity == "warning":
                warnings.append(issue.message)

        return ValidationResult(
            schema_valid=schema_valid,
            business_valid=business_valid,
            is_valid=schema_valid and business_valid,
            issues=all_issues,
            warnings=warnings,
            duplicates=duplicates,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show in the notification toast.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed!"

        lines = []

        if result.has_errors:
            lines.append("❌ This transaction cannot be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.is_valid:
            lines.append("")
            lines.append("You can still save it, but please review carefully.")
        else:
            lines.append("")
            lines.append("Please fix the issues above before continuing.")

        return "\n".join(lines)


class AccountValidator:
    """Checks a new or edited account against the configured bounds."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def validate(self, account: Account, is_editing: bool = False) -> ValidationResult:
        """
        Validate an account.

        The name is enforced by the Account model itself. Limits and
        opening balances are only checked for new accounts; editing may
        only rename or reorder.
        """
        issues = []
        settings = self._settings

        if not is_editing:
            if account.kind == AccountKind.CREDIT:
                limit = account.credit_limit
                if limit is None or limit < settings.min_credit_limit:
                    issues.append(ValidationIssue(
                        field="credit_limit",
                        issue_type="invalid_value",
                        message=f"Credit limit must be at least {settings.min_credit_limit}",
                        severity="error",
                    ))
                elif limit > settings.max_credit_limit:
                    issues.append(ValidationIssue(
                        field="credit_limit",
                        issue_type="out_of_range",
                        message=f"Credit limit cannot be greater than {settings.max_credit_limit}",
                        severity="error",
                    ))

                if account.statement_cutoff_day is None:
                    issues.append(ValidationIssue(
                        field="statement_cutoff_day",
                        issue_type="missing",
                        message="Statement cutoff day must be between 1 and 31",
                        severity="error",
                    ))
                if account.payment_due_day is None:
                    issues.append(ValidationIssue(
                        field="payment_due_day",
                        issue_type="missing",
                        message="Payment due day must be between 1 and 31",
                        severity="error",
                    ))
                if (
                    account.statement_cutoff_day is not None
                    and account.payment_due_day is not None
                    and account.payment_due_day <= account.statement_cutoff_day
                ):
                    # Valid when the due date falls in the following month
                    issues.append(ValidationIssue(
                        field="payment_due_day",
                        issue_type="inconsistent",
                        message="Payment due day is not after the statement cutoff day",
                        severity="warning",
                        suggested_fix="Check the due date on your card statement",
                    ))

                rate = account.annual_interest_rate
                if rate is not None and rate > settings.max_annual_interest_rate:
                    issues.append(ValidationIssue(
                        field="annual_interest_rate",
                        issue_type="out_of_range",
                        message=(
                            f"Interest rate cannot be greater than "
                            f"{settings.max_annual_interest_rate}%"
                        ),
                        severity="error",
                    ))
            else:
                if not (
                    settings.min_initial_balance
                    <= account.initial_balance
                    <= settings.max_initial_balance
                ):
                    issues.append(ValidationIssue(
                        field="initial_balance",
                        issue_type="out_of_range",
                        message=(
                            f"Initial balance must be between {settings.min_initial_balance} "
                            f"and {settings.max_initial_balance}"
                        ),
                        severity="error",
                    ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return ValidationResult(
            schema_valid=is_valid,
            business_valid=is_valid,
            is_valid=is_valid,
            issues=issues,
            warnings=[i.message for i in issues if i.severity == "warning"],
        )
