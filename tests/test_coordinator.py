"""
Tests for the atomic mutation coordinator.
"""

import pytest
from decimal import Decimal

from moneytrack.coordinator import AtomicMutationCoordinator
from moneytrack.exceptions import (
    ContractViolationError,
    InvalidAmountError,
    MissingAccountError,
    SelfTransferError,
)
from moneytrack.models.audit import AuditEventType
from moneytrack.models.finance import (
    CREDIT_PAYMENT_CATEGORY,
    TRANSFER_CATEGORY,
    AccountKind,
    Collection,
    Transaction,
    TransactionKind,
)
from moneytrack.services.storage import InMemoryDocumentStore

from tests.factories import make_account, seed


class SpyStore(InMemoryDocumentStore):
    """In-memory store that counts every call reaching it."""

    def __init__(self):
        super().__init__()
        self.calls = []

    async def get(self, collection, document_id):
        self.calls.append("get")
        return await super().get(collection, document_id)

    async def set(self, collection, document_id, data):
        self.calls.append("set")
        await super().set(collection, document_id, data)

    async def list(self, collection):
        self.calls.append("list")
        return await super().list(collection)

    def transaction(self):
        self.calls.append("transaction")
        return super().transaction()


async def stored_transactions(store):
    return [Transaction.model_validate(doc) for doc in await store.list(Collection.TRANSACTIONS)]


class TestBuilders:
    """Tests for the I/O-free builders."""

    def test_build_transfer(self):
        """Test the transfer document."""
        transfer = AtomicMutationCoordinator.build_transfer(
            "a", "b", Decimal("100"), meta={"description": "Ahorro"}
        )
        assert transfer.kind == TransactionKind.TRANSFER
        assert transfer.category == TRANSFER_CATEGORY
        assert transfer.description == "Ahorro"
        assert transfer.destination_account_id == "b"

    def test_build_transfer_keeps_given_id(self):
        """Test that a caller-provided id is used for idempotent replay."""
        transfer = AtomicMutationCoordinator.build_transfer("a", "b", Decimal("1"), meta={"id": "t-1"})
        assert transfer.id == "t-1"

    def test_build_transfer_rejects_bad_input(self):
        """Test self transfers and non-positive amounts."""
        with pytest.raises(SelfTransferError):
            AtomicMutationCoordinator.build_transfer("a", "a", Decimal("1"))
        with pytest.raises(InvalidAmountError):
            AtomicMutationCoordinator.build_transfer("a", "b", Decimal("0"))

    def test_build_credit_payment(self):
        """Test both legs of a card payment."""
        credit_leg, source_leg = AtomicMutationCoordinator.build_credit_payment(
            "card", "savings", Decimal("300")
        )
        assert credit_leg.kind == TransactionKind.INCOME
        assert credit_leg.source_account_id == "card"
        assert source_leg.kind == TransactionKind.EXPENSE
        assert source_leg.source_account_id == "savings"
        assert credit_leg.is_credit_payment and source_leg.is_credit_payment
        assert credit_leg.category == source_leg.category == CREDIT_PAYMENT_CATEGORY
        assert credit_leg.id != source_leg.id

    def test_check_credit_payment_legs(self):
        """Test the structural checks on hand-built legs."""
        credit_leg, source_leg = AtomicMutationCoordinator.build_credit_payment(
            "card", "savings", Decimal("300")
        )
        with pytest.raises(ContractViolationError):
            AtomicMutationCoordinator.check_credit_payment_legs(source_leg, credit_leg)

        uneven = source_leg.model_copy(update={"amount": Decimal("299")})
        with pytest.raises(ContractViolationError):
            AtomicMutationCoordinator.check_credit_payment_legs(credit_leg, uneven)

        same_account = source_leg.model_copy(update={"source_account_id": "card"})
        with pytest.raises(SelfTransferError):
            AtomicMutationCoordinator.check_credit_payment_legs(credit_leg, same_account)


class TestTransfers:
    """Tests for atomic transfers."""

    @pytest.mark.asyncio
    async def test_self_transfer_touches_no_storage(self, audit_logger):
        """Test that a self transfer is rejected before any read or write."""
        store = SpyStore()
        coordinator = AtomicMutationCoordinator(store, audit_logger)

        with pytest.raises(SelfTransferError):
            await coordinator.execute_transfer("acc-1", "acc-1", Decimal("100"))

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_transfer_commits_one_document(self, store, coordinator, audit_storage):
        """Test a successful transfer and its audit event."""
        savings = make_account()
        cash = make_account(AccountKind.CASH)
        await seed(store, [savings, cash])

        transfer = await coordinator.execute_transfer(savings.id, cash.id, Decimal("250"))

        transactions = await stored_transactions(store)
        assert transactions == [transfer]
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.TRANSFER_COMMITTED

    @pytest.mark.asyncio
    async def test_missing_account_aborts_without_writes(self, store, coordinator, audit_storage):
        """Test that a missing destination aborts the unit."""
        savings = make_account()
        await seed(store, [savings])

        with pytest.raises(MissingAccountError) as exc_info:
            await coordinator.execute_transfer(savings.id, "ghost", Decimal("10"))

        assert exc_info.value.role == "destination"
        assert exc_info.value.category == "referential"
        assert await store.list(Collection.TRANSACTIONS) == []
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.ATOMIC_UNIT_ABORTED

    @pytest.mark.asyncio
    async def test_commit_is_idempotent(self, store, coordinator):
        """Test that committing the same transfer twice stores it once."""
        savings = make_account()
        cash = make_account(AccountKind.CASH)
        await seed(store, [savings, cash])
        transfer = coordinator.build_transfer(savings.id, cash.id, Decimal("5"))

        await coordinator.commit_transfer(transfer)
        await coordinator.commit_transfer(transfer)

        assert len(await store.list(Collection.TRANSACTIONS)) == 1


class TestCreditPayments:
    """Tests for atomic credit card payments."""

    @pytest.mark.asyncio
    async def test_both_legs_written(self, store, coordinator, audit_storage):
        """Test that a payment writes an income on the card and an expense on the source."""
        card = make_account(AccountKind.CREDIT)
        savings = make_account()
        await seed(store, [card, savings])
        credit_leg, source_leg = coordinator.build_credit_payment(card.id, savings.id, Decimal("300"))

        await coordinator.execute_credit_payment(credit_leg, source_leg)

        stored = {txn.id: txn for txn in await stored_transactions(store)}
        assert stored == {credit_leg.id: credit_leg, source_leg.id: source_leg}
        events = await audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.CREDIT_PAYMENT_COMMITTED

    @pytest.mark.asyncio
    async def test_missing_source_writes_neither_leg(self, store, coordinator):
        """Test that one missing account aborts both legs."""
        card = make_account(AccountKind.CREDIT)
        await seed(store, [card])
        credit_leg, source_leg = coordinator.build_credit_payment(card.id, "ghost", Decimal("300"))

        with pytest.raises(MissingAccountError):
            await coordinator.execute_credit_payment(credit_leg, source_leg)

        assert await store.list(Collection.TRANSACTIONS) == []

    @pytest.mark.asyncio
    async def test_paying_a_non_credit_account(self, store, coordinator):
        """Test that the receiving account must be a credit account."""
        cash = make_account(AccountKind.CASH)
        savings = make_account()
        await seed(store, [cash, savings])
        credit_leg, source_leg = coordinator.build_credit_payment(cash.id, savings.id, Decimal("10"))

        with pytest.raises(ContractViolationError):
            await coordinator.execute_credit_payment(credit_leg, source_leg)

        assert await store.list(Collection.TRANSACTIONS) == []

    @pytest.mark.asyncio
    async def test_malformed_legs_touch_no_storage(self, audit_logger):
        """Test that leg checks run before any storage call."""
        store = SpyStore()
        coordinator = AtomicMutationCoordinator(store, audit_logger)
        credit_leg, source_leg = coordinator.build_credit_payment("card", "savings", Decimal("10"))

        with pytest.raises(ContractViolationError):
            await coordinator.execute_credit_payment(source_leg, credit_leg)

        assert store.calls == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
