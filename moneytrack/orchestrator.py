"""
Main Orchestrator for MoneyTrack

This module ties the ledger core to storage, the offline queue, audit
logging and user notifications, and exposes the operations consumers
call:

    calculate_balance           calculate_available_credit
    validate_transaction        compute_interest_summary
    credit_card_statements      modify_debt
    detect_duplicates
    execute_transfer            execute_credit_payment
    enqueue_offline             drain_queue

DESIGN DECISION: The orchestrator enforces the boundaries:
- Balance strategy validation always runs before the coordinator
- Derived state is recomputed from the stored log on every read
- Every rejection reaches the user through the notification sink
- Every mutation is audited
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from moneytrack.audit import AuditLogger, configure_logging, create_correlation_id
from moneytrack.config import get_settings
from moneytrack.config.settings import LedgerSettings, Settings
from moneytrack.coordinator import AtomicMutationCoordinator
from moneytrack.exceptions import (
    DebtNotFoundError,
    LedgerError,
    LedgerValidationError,
    MissingAccountError,
)
from moneytrack.ledger import amortization, debts, duplicates, statements, strategies
from moneytrack.models.finance import (
    Account,
    AccountKind,
    Collection,
    Debt,
    DebtDirection,
    DebtOperation,
    Transaction,
    TransactionDraft,
    TransactionKind,
)
from moneytrack.models.queue import DrainReport, OperationKind, QueuedOperation
from moneytrack.models.results import (
    CreditCardStatement,
    DuplicateMatch,
    InterestSummary,
    ValidationResult,
)
from moneytrack.offline import OfflineQueue, RetryExecutor
from moneytrack.services.network import NetworkStatus
from moneytrack.services.notifications import (
    NotificationKind,
    NotificationSink,
    StructlogNotificationSink,
)
from moneytrack.services.storage import (
    DocumentStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    JsonFileQueueStorage,
)
from moneytrack.validation import TransactionValidator


logger = structlog.get_logger("moneytrack.orchestrator")


class FinanceService:
    """
    Consumer-facing surface of the ledger core.

    Reads go straight to the document store; writes go through the
    offline queue, which runs them immediately while online.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        queue: OfflineQueue,
        coordinator: AtomicMutationCoordinator,
        notifier: Optional[NotificationSink] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._queue = queue
        self._coordinator = coordinator
        self._notifier = notifier or StructlogNotificationSink()
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._validator = TransactionValidator(self._settings)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _notify(self, kind: NotificationKind, message: str) -> None:
        """Fire-and-forget; a broken sink never fails the operation."""
        try:
            self._notifier.notify(kind, message)
        except Exception as e:
            logger.warning("notification_failed", error=str(e), kind=kind.value)

    async def _reject(
        self,
        error: LedgerValidationError,
        account_id: str,
        correlation_id=None,
    ) -> None:
        self._notify(NotificationKind.ERROR, error.reason)
        await self._audit.log_transaction_rejected(
            account_id=account_id,
            reason=error.reason,
            correlation_id=correlation_id,
        )

    async def load_accounts(self) -> list[Account]:
        return [Account.model_validate(doc) for doc in await self._store.list(Collection.ACCOUNTS)]

    async def load_transactions(self) -> list[Transaction]:
        return [
            Transaction.model_validate(doc)
            for doc in await self._store.list(Collection.TRANSACTIONS)
        ]

    async def load_debts(self) -> list[Debt]:
        return [Debt.model_validate(doc) for doc in await self._store.list(Collection.DEBTS)]

    async def get_account(self, account_id: str) -> Account:
        """
        Raises:
            MissingAccountError: no such account
        """
        doc = await self._store.get(Collection.ACCOUNTS, account_id)
        if doc is None:
            raise MissingAccountError(account_id)
        return Account.model_validate(doc)

    async def get_debt(self, debt_id: str) -> Debt:
        """
        Raises:
            DebtNotFoundError: no such debt
        """
        doc = await self._store.get(Collection.DEBTS, debt_id)
        if doc is None:
            raise DebtNotFoundError(debt_id)
        return Debt.model_validate(doc)

    async def _write_document(
        self,
        kind: OperationKind,
        collection: Collection,
        document_id: str,
        payload: dict[str, Any],
    ) -> bool:
        operation = QueuedOperation(
            kind=kind,
            collection=collection,
            document_id=document_id,
            payload=payload,
        )
        applied = await self._queue.submit(operation)
        if not applied:
            self._notify(NotificationKind.INFO, "Saved offline. It will sync when you reconnect.")
        return applied

    # =========================================================================
    # READ SIDE
    # =========================================================================

    async def calculate_balance(self, account_id: str) -> Decimal:
        """Balance for savings/cash, available credit for credit accounts."""
        account = await self.get_account(account_id)
        return strategies.calculate_balance(account, await self.load_transactions())

    async def calculate_available_credit(self, account_id: str) -> Decimal:
        """Available credit of a credit account."""
        account = await self.get_account(account_id)
        return strategies.calculate_available_credit(account, await self.load_transactions())

    async def calculate_net_worth(self) -> Decimal:
        """Sum of savings and cash balances."""
        return strategies.calculate_net_worth(
            await self.load_accounts(), await self.load_transactions()
        )

    async def compute_interest_summary(self, as_of: Optional[date] = None) -> InterestSummary:
        """Interest figures per credit card and for the whole portfolio."""
        return amortization.compute_interest_summary(
            await self.load_accounts(), await self.load_transactions(), as_of
        )

    async def credit_card_statements(self, as_of: Optional[date] = None) -> list[CreditCardStatement]:
        """Current billing cycle of every card with a cutoff and payment day."""
        return statements.statement_cycles(
            await self.load_accounts(), await self.load_transactions(), as_of
        )

    async def detect_duplicates(self, draft: TransactionDraft) -> list[DuplicateMatch]:
        """Advisory duplicate check; never blocks a write."""
        matches = duplicates.detect_duplicates(
            draft,
            await self.load_transactions(),
            threshold=self._settings.duplicate_threshold,
            window=timedelta(hours=self._settings.duplicate_window_hours),
            limit=self._settings.max_duplicate_matches,
            locale=self._settings.number_locale,
        )
        if matches:
            await self._warn_duplicates(draft, matches)
        return matches

    async def _warn_duplicates(
        self,
        draft: TransactionDraft,
        matches: list[DuplicateMatch],
    ) -> None:
        self._notify(
            NotificationKind.WARNING,
            f"This looks like {len(matches)} existing transaction(s). Please verify it isn't a duplicate.",
        )
        await self._audit.log_duplicate_suspected(
            candidate_description=draft.description,
            matches=[
                {"transaction_id": m.transaction.id, "score": m.score,
                 "reasons": [r.value for r in m.reasons]}
                for m in matches
            ],
        )

    async def validate_transaction(self, draft: TransactionDraft) -> ValidationResult:
        """
        Run the two-stage validation on a draft.

        Errors and duplicate warnings are sent to the notification sink.
        """
        accounts = {account.id: account for account in await self.load_accounts()}
        result = self._validator.validate(
            draft,
            accounts.get(draft.source_account_id),
            await self.load_transactions(),
            destination_account=accounts.get(draft.destination_account_id),
        )

        if not result.is_valid:
            self._notify(NotificationKind.ERROR, self._validator.get_user_friendly_summary(result))
            await self._audit.log_transaction_rejected(
                account_id=draft.source_account_id,
                reason=result.first_error or "invalid",
                issues=[issue.model_dump() for issue in result.issues],
            )
        elif result.duplicates:
            await self._warn_duplicates(draft, result.duplicates)

        return result

    # =========================================================================
    # WRITE SIDE
    # =========================================================================

    async def record_transaction(self, draft: TransactionDraft) -> Transaction:
        """
        Validate and save an income or expense.

        Raises:
            LedgerValidationError: the draft failed validation
        """
        if draft.kind == TransactionKind.TRANSFER:
            return await self.execute_transfer(
                draft.source_account_id,
                draft.destination_account_id,
                duplicates.parse_amount(draft.amount, self._settings.number_locale) or Decimal("0"),
                meta={"description": draft.description, "occurred_at": draft.occurred_on},
            )

        result = await self.validate_transaction(draft)
        if not result.is_valid:
            raise LedgerValidationError(result.first_error or "Invalid transaction")

        transaction = Transaction(
            kind=draft.kind,
            amount=duplicates.parse_amount(draft.amount, self._settings.number_locale),
            category=draft.category,
            description=draft.description,
            occurred_at=draft.occurred_on or date.today(),
            settled=draft.settled,
            source_account_id=draft.source_account_id,
            is_credit_payment=draft.is_credit_payment,
        )
        await self._write_document(
            OperationKind.CREATE,
            Collection.TRANSACTIONS,
            transaction.id,
            transaction.model_dump(mode="json"),
        )
        return transaction

    async def execute_transfer(
        self,
        source_id: str,
        destination_id: str,
        amount: Decimal,
        meta: Optional[dict[str, Any]] = None,
    ) -> Transaction:
        """
        Validate and commit a transfer.

        A transfer into a credit account is validated as a payment of
        that card's used credit.

        Raises:
            SelfTransferError / InvalidAmountError: before any storage call
            LedgerValidationError: balance strategy rejected the transfer
            MissingAccountError: an account does not exist
        """
        correlation_id = create_correlation_id()
        try:
            transfer = self._coordinator.build_transfer(source_id, destination_id, amount, meta)
        except LedgerValidationError as e:
            self._notify(NotificationKind.ERROR, e.reason)
            raise

        source = await self.get_account(source_id)
        destination = await self.get_account(destination_id)
        transactions = await self.load_transactions()

        try:
            strategies.strategy_for(source.kind).ensure_valid(
                source, transfer.amount, transactions, TransactionKind.TRANSFER
            )
            if destination.kind == AccountKind.CREDIT:
                strategies.credit_strategy().ensure_valid(
                    destination, transfer.amount, transactions, TransactionKind.INCOME
                )
        except LedgerValidationError as e:
            await self._reject(e, source_id, correlation_id)
            raise

        operation = QueuedOperation(
            kind=OperationKind.CREATE,
            collection=Collection.TRANSACTIONS,
            document_id=transfer.id,
            payload={"id": transfer.id, "documents": [transfer.model_dump(mode="json")]},
        )
        applied = await self._queue.submit(
            operation,
            runner=lambda: self._coordinator.commit_transfer(transfer, correlation_id),
            correlation_id=correlation_id,
        )
        self._notify(
            NotificationKind.SUCCESS if applied else NotificationKind.INFO,
            "Transfer saved" if applied else "Transfer saved offline. It will sync when you reconnect.",
        )
        return transfer

    async def execute_credit_payment(
        self,
        credit_account_id: str,
        source_account_id: str,
        amount: Decimal,
        meta: Optional[dict[str, Any]] = None,
    ) -> tuple[Transaction, Transaction]:
        """
        Validate and commit a credit card payment from another account.

        Returns:
            (credit_leg, source_leg)
        """
        correlation_id = create_correlation_id()
        try:
            credit_leg, source_leg = self._coordinator.build_credit_payment(
                credit_account_id, source_account_id, amount, meta
            )
        except LedgerValidationError as e:
            self._notify(NotificationKind.ERROR, e.reason)
            raise

        card = await self.get_account(credit_account_id)
        source = await self.get_account(source_account_id)
        transactions = await self.load_transactions()

        try:
            strategies.strategy_for(card.kind).ensure_valid(
                card, credit_leg.amount, transactions, TransactionKind.INCOME
            )
            strategies.strategy_for(source.kind).ensure_valid(
                source, source_leg.amount, transactions, TransactionKind.EXPENSE
            )
        except LedgerValidationError as e:
            await self._reject(e, source_account_id, correlation_id)
            raise

        operation = QueuedOperation(
            kind=OperationKind.CREATE,
            collection=Collection.TRANSACTIONS,
            document_id=credit_leg.id,
            payload={
                "id": credit_leg.id,
                "documents": [
                    credit_leg.model_dump(mode="json"),
                    source_leg.model_dump(mode="json"),
                ],
            },
        )
        applied = await self._queue.submit(
            operation,
            runner=lambda: self._coordinator.execute_credit_payment(
                credit_leg, source_leg, correlation_id
            ),
            correlation_id=correlation_id,
        )
        self._notify(
            NotificationKind.SUCCESS if applied else NotificationKind.INFO,
            "Payment saved" if applied else "Payment saved offline. It will sync when you reconnect.",
        )
        return credit_leg, source_leg

    async def create_debt(
        self,
        person_name: str,
        direction: Union[DebtDirection, str],
        amount: Decimal,
        notes: Optional[str] = None,
    ) -> Debt:
        """Open and save a new debt."""
        debt = debts.create_debt(person_name, direction, amount, notes)
        await self._write_document(
            OperationKind.CREATE, Collection.DEBTS, debt.id, debt.model_dump(mode="json")
        )
        return debt

    async def modify_debt(
        self,
        debt_id: str,
        amount: Decimal,
        operation: Union[DebtOperation, str],
    ) -> Debt:
        """
        Add to or pay down a debt.

        Raises:
            DebtNotFoundError: no such debt
            LedgerValidationError: settled debt, bad amount, or overpayment
        """
        debt = await self.get_debt(debt_id)
        try:
            updated = debts.modify_debt(debt, amount, operation)
        except LedgerError as e:
            self._notify(NotificationKind.ERROR, e.reason)
            raise

        await self._write_document(
            OperationKind.UPDATE, Collection.DEBTS, updated.id, updated.model_dump(mode="json")
        )
        await self._audit.log_debt_modified(
            debt_id=updated.id,
            operation=DebtOperation(operation).value,
            amount=Decimal(amount),
            remaining_amount=updated.remaining_amount,
        )
        if updated.is_settled:
            await self._audit.log_debt_settled(updated.id, updated.person_name)
            self._notify(NotificationKind.SUCCESS, f"Debt with {updated.person_name} settled")
        return updated

    async def enqueue_offline(
        self,
        kind: Union[OperationKind, str],
        collection: Union[Collection, str],
        payload: dict[str, Any],
        document_id: Optional[str] = None,
        operation_id: Optional[str] = None,
    ) -> QueuedOperation:
        """Queue a mutation for replay without attempting it now."""
        return await self._queue.enqueue(
            kind, collection, payload, document_id=document_id, operation_id=operation_id
        )

    async def drain_queue(self, include_parked: bool = False) -> DrainReport:
        """Replay queued mutations now."""
        report = await self._queue.drain(include_parked=include_parked)
        if report.failed:
            self._notify(
                NotificationKind.WARNING,
                f"{len(report.failed)} pending change(s) could not be synced",
            )
        elif report.succeeded:
            self._notify(
                NotificationKind.SUCCESS,
                f"{len(report.succeeded)} pending change(s) synced",
            )
        return report


def create_app_components(
    settings: Optional[Settings] = None,
    notifier: Optional[NotificationSink] = None,
    network: Optional[NetworkStatus] = None,
) -> tuple[FinanceService, OfflineQueue, NetworkStatus]:
    """
    Factory function to create all application components.

    Uses Google Sheets when `USE_GOOGLE_SHEETS` is set and configured,
    otherwise an in-memory store.

    Returns:
        (finance_service, offline_queue, network_status)
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.log_level)

    store: DocumentStoreInterface = InMemoryDocumentStore()
    audit_logger = AuditLogger()  # Local-only logging

    if app_settings.use_google_sheets:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            store = GoogleSheetsDocumentStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))

    network = network or NetworkStatus()
    coordinator = AtomicMutationCoordinator(store, audit_logger)
    queue = OfflineQueue(
        storage=JsonFileQueueStorage(settings.offline_queue.storage_path),
        coordinator=coordinator,
        network=network,
        executor=RetryExecutor.from_settings(settings.retry),
        audit_logger=audit_logger,
        max_failures=settings.offline_queue.max_failures,
    )

    service = FinanceService(
        store=store,
        queue=queue,
        coordinator=coordinator,
        notifier=notifier,
        audit_logger=audit_logger,
        settings=settings.ledger,
    )
    return service, queue, network
