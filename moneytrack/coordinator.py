"""
Atomic Mutation Coordinator

Multi-document writes that must land together or not at all:
1. Transfer between two accounts (one transfer transaction)
2. Credit card payment (income leg on the card, expense leg on the
   paying account)

DESIGN DECISION: Account existence is read-verified INSIDE the same
atomic unit that writes the transactions. Checking first and writing
later would let another client delete an account in between.

The coordinator enforces referential integrity and atomicity only.
Balance sufficiency belongs to the balance strategies and must be
checked by the caller before getting here.

Every transaction is written with `set` keyed on its own id, so
committing the same transactions again (offline replay) is a no-op.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

import structlog

from moneytrack.audit import AuditLogger
from moneytrack.exceptions import (
    ContractViolationError,
    InvalidAmountError,
    MissingAccountError,
    SelfTransferError,
)
from moneytrack.models.finance import (
    CREDIT_PAYMENT_CATEGORY,
    TRANSFER_CATEGORY,
    AccountKind,
    Collection,
    Transaction,
    TransactionKind,
)
from moneytrack.services.storage import DocumentStoreInterface


logger = structlog.get_logger("moneytrack.coordinator")

DEFAULT_TRANSFER_DESCRIPTION = "Transfer between accounts"
DEFAULT_CREDIT_PAYMENT_DESCRIPTION = "Credit card payment"


def _meta_value(meta: Optional[Mapping[str, Any]], key: str, default=None):
    if not meta:
        return default
    value = meta.get(key)
    return default if value in (None, "") else value


class AtomicMutationCoordinator:
    """
    Executes multi-document mutations through the store's atomic unit.
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    @property
    def store(self) -> DocumentStoreInterface:
        return self._store

    # =========================================================================
    # BUILDERS (no I/O)
    # =========================================================================

    @staticmethod
    def build_transfer(
        source_id: str,
        destination_id: str,
        amount: Decimal,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> Transaction:
        """
        Build the transfer transaction.

        meta may carry: id, description, occurred_at, settled.

        Raises:
            SelfTransferError: source and destination are the same
            InvalidAmountError: amount is zero or negative
        """
        if source_id == destination_id:
            raise SelfTransferError(source_id)
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)

        fields = {
            "kind": TransactionKind.TRANSFER,
            "amount": amount,
            "category": TRANSFER_CATEGORY,
            "description": _meta_value(meta, "description", DEFAULT_TRANSFER_DESCRIPTION),
            "occurred_at": _meta_value(meta, "occurred_at", date.today()),
            "settled": _meta_value(meta, "settled", True),
            "source_account_id": source_id,
            "destination_account_id": destination_id,
        }
        transaction_id = _meta_value(meta, "id")
        if transaction_id:
            fields["id"] = transaction_id
        return Transaction(**fields)

    @staticmethod
    def build_credit_payment(
        credit_account_id: str,
        source_account_id: str,
        amount: Decimal,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> tuple[Transaction, Transaction]:
        """
        Build both legs of a credit card payment.

        Returns:
            (credit_leg, source_leg)

        Raises:
            SelfTransferError: the card would pay itself
            InvalidAmountError: amount is zero or negative
        """
        if credit_account_id == source_account_id:
            raise SelfTransferError(credit_account_id)
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)

        description = _meta_value(meta, "description", DEFAULT_CREDIT_PAYMENT_DESCRIPTION)
        occurred_at = _meta_value(meta, "occurred_at", date.today())

        credit_leg = Transaction(
            kind=TransactionKind.INCOME,
            amount=amount,
            category=CREDIT_PAYMENT_CATEGORY,
            description=description,
            occurred_at=occurred_at,
            source_account_id=credit_account_id,
            is_credit_payment=True,
        )
        source_leg = Transaction(
            kind=TransactionKind.EXPENSE,
            amount=amount,
            category=CREDIT_PAYMENT_CATEGORY,
            description=description,
            occurred_at=occurred_at,
            source_account_id=source_account_id,
            is_credit_payment=True,
        )
        return credit_leg, source_leg

    @staticmethod
    def check_credit_payment_legs(credit_leg: Transaction, source_leg: Transaction) -> None:
        """
        Structural checks on a credit payment, run before any I/O.

        Raises:
            SelfTransferError: both legs sit on the same account
            ContractViolationError: legs are not an income/expense pair
                of the same amount
        """
        if credit_leg.source_account_id == source_leg.source_account_id:
            raise SelfTransferError(credit_leg.source_account_id)
        if credit_leg.kind != TransactionKind.INCOME or source_leg.kind != TransactionKind.EXPENSE:
            raise ContractViolationError(
                "Credit payment needs an income leg on the card and an expense leg on the source"
            )
        if credit_leg.amount != source_leg.amount:
            raise ContractViolationError(
                f"Credit payment legs differ: {credit_leg.amount} vs {source_leg.amount}"
            )

    # =========================================================================
    # ATOMIC UNIT
    # =========================================================================

    async def commit_transactions(
        self,
        transactions: Sequence[Transaction],
        credit_account_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Transaction]:
        """
        Verify every referenced account and write all transactions in one unit.

        Args:
            transactions: Documents to write, keyed by their ids
            credit_account_id: Account that must be a credit account
            correlation_id: Ties the audit events of one user action

        Raises:
            MissingAccountError: a referenced account does not exist
            ContractViolationError: credit_account_id is not a credit account
            StorageError: the unit could not be committed
        """
        transactions = list(transactions)
        if not transactions:
            return []

        # Ordered, unique (account id, role) pairs
        references: dict[str, str] = {}
        for txn in transactions:
            references.setdefault(txn.source_account_id, "source")
            if txn.destination_account_id:
                references.setdefault(txn.destination_account_id, "destination")

        try:
            async with self._store.transaction() as tx:
                for account_id, role in references.items():
                    account = await tx.get(Collection.ACCOUNTS, account_id)
                    if account is None:
                        raise MissingAccountError(account_id, role)
                    if account_id == credit_account_id and account.get("kind") != AccountKind.CREDIT.value:
                        raise ContractViolationError(
                            f"Account {account_id} is not a credit account"
                        )

                for txn in transactions:
                    tx.set(Collection.TRANSACTIONS, txn.id, txn.model_dump(mode="json"))
        except Exception as e:
            await self._audit.log_atomic_unit_aborted(
                transaction_ids=[txn.id for txn in transactions],
                error=e,
                correlation_id=correlation_id,
            )
            raise

        logger.debug("atomic_unit_committed", transaction_ids=[t.id for t in transactions])
        return transactions

    async def commit_transfer(
        self,
        transfer: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Commit a transfer built by `build_transfer`."""
        await self.commit_transactions([transfer], correlation_id=correlation_id)
        await self._audit.log_transfer_committed(
            transaction_id=transfer.id,
            source_account_id=transfer.source_account_id,
            destination_account_id=transfer.destination_account_id,
            amount=transfer.amount,
            correlation_id=correlation_id,
        )
        return transfer

    async def execute_transfer(
        self,
        source_id: str,
        destination_id: str,
        amount: Decimal,
        meta: Optional[Mapping[str, Any]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Move money between two accounts atomically.

        A self transfer or non-positive amount is rejected before any
        storage call.
        """
        transfer = self.build_transfer(source_id, destination_id, amount, meta)
        return await self.commit_transfer(transfer, correlation_id=correlation_id)

    async def execute_credit_payment(
        self,
        credit_leg: Transaction,
        source_leg: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, Transaction]:
        """
        Commit both legs of a credit card payment atomically.

        Raises:
            SelfTransferError / ContractViolationError: malformed legs (no I/O)
            MissingAccountError: either account does not exist
        """
        self.check_credit_payment_legs(credit_leg, source_leg)

        await self.commit_transactions(
            [credit_leg, source_leg],
            credit_account_id=credit_leg.source_account_id,
            correlation_id=correlation_id,
        )
        await self._audit.log_credit_payment_committed(
            credit_transaction_id=credit_leg.id,
            source_transaction_id=source_leg.id,
            credit_account_id=credit_leg.source_account_id,
            source_account_id=source_leg.source_account_id,
            amount=credit_leg.amount,
            correlation_id=correlation_id,
        )
        return credit_leg, source_leg
