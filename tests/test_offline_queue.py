"""
Tests for the offline mutation queue.
"""

import pytest
from decimal import Decimal

from moneytrack.coordinator import AtomicMutationCoordinator
from moneytrack.exceptions import InsufficientBalanceError
from moneytrack.models.audit import AuditEventType
from moneytrack.models.finance import AccountKind, Collection
from moneytrack.models.queue import OperationKind, QueuedOperation
from moneytrack.offline import OfflineQueue
from moneytrack.services.storage import InMemoryDocumentStore, StorageConnectionError

from tests.factories import make_account, make_transaction, seed


class FailingStore(InMemoryDocumentStore):
    """Store whose writes fail for selected document ids."""

    def __init__(self, failing_ids=()):
        super().__init__()
        self.failing_ids = set(failing_ids)

    async def set(self, collection, document_id, data):
        if document_id in self.failing_ids:
            raise StorageConnectionError("network unreachable")
        await super().set(collection, document_id, data)


def debt_create(debt_id="debt-1", **payload):
    return QueuedOperation(
        kind=OperationKind.CREATE,
        collection=Collection.DEBTS,
        payload={"id": debt_id, "person_name": "Ana", **payload},
    )


async def event_types(audit_storage):
    return [event.event_type for event in await audit_storage.get_recent_events()]


class TestEnqueue:
    """Tests for storing operations."""

    @pytest.mark.asyncio
    async def test_offline_submit_is_queued(self, offline_queue, network, store):
        """Test that a mutation while offline is queued and not applied."""
        await network.set_online(False)

        applied = await offline_queue.submit(debt_create())

        assert applied is False
        assert len(await offline_queue.pending()) == 1
        assert await store.get(Collection.DEBTS, "debt-1") is None

    @pytest.mark.asyncio
    async def test_same_operation_id_is_stored_once(self, offline_queue):
        """Test that re-enqueueing an operation id keeps one copy."""
        op = debt_create()
        await offline_queue.enqueue_operation(op)
        await offline_queue.enqueue_operation(op)
        assert [queued.id for queued in await offline_queue.pending()] == [op.id]

    @pytest.mark.asyncio
    async def test_enqueue_builds_operation(self, offline_queue, audit_storage):
        """Test enqueue from loose arguments."""
        op = await offline_queue.enqueue("update", "debts", {"remaining_amount": "5"}, document_id="d-1")
        assert op.kind == OperationKind.UPDATE
        assert op.document_id == "d-1"
        assert AuditEventType.OPERATION_QUEUED in await event_types(audit_storage)


class TestSubmitOnline:
    """Tests for immediate execution."""

    @pytest.mark.asyncio
    async def test_online_submit_applies(self, offline_queue, store):
        """Test that an online mutation is applied and not queued."""
        assert await offline_queue.submit(debt_create()) is True
        assert (await store.get(Collection.DEBTS, "debt-1"))["person_name"] == "Ana"
        assert await offline_queue.pending() == []

    @pytest.mark.asyncio
    async def test_recoverable_failure_is_queued(self, offline_queue, fake_sleep):
        """Test that a connectivity failure is retried, then queued with its error."""
        async def unreachable():
            raise StorageConnectionError("network unreachable")

        applied = await offline_queue.submit(debt_create(), runner=unreachable)

        assert applied is False
        assert fake_sleep.delays == [1.0, 2.0]
        queued = await offline_queue.pending()
        assert queued[0].last_error == "network unreachable"

    @pytest.mark.asyncio
    async def test_validation_failure_propagates(self, offline_queue):
        """Test that a business rejection is raised, never queued."""
        async def rejected():
            raise InsufficientBalanceError(Decimal("1"), Decimal("2"))

        with pytest.raises(InsufficientBalanceError):
            await offline_queue.submit(debt_create(), runner=rejected)
        assert await offline_queue.pending() == []


class TestDrain:
    """Tests for replaying the queue."""

    @pytest.mark.asyncio
    async def test_reconnect_drains(self, offline_queue, network, store, audit_storage):
        """Test that going back online replays and empties the queue."""
        await network.set_online(False)
        await offline_queue.submit(debt_create())

        await network.set_online(True)

        assert await offline_queue.pending() == []
        assert await store.get(Collection.DEBTS, "debt-1") is not None
        types = await event_types(audit_storage)
        assert AuditEventType.OPERATION_REPLAYED in types
        assert AuditEventType.QUEUE_DRAINED in types

    @pytest.mark.asyncio
    async def test_drain_while_offline_does_nothing(self, offline_queue, network):
        """Test that an offline drain leaves the queue alone."""
        await network.set_online(False)
        await offline_queue.submit(debt_create())

        report = await offline_queue.drain()

        assert report.attempted == 0
        assert len(await offline_queue.pending()) == 1

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, offline_queue, store):
        """Test that replaying an operation twice gives the same state as once."""
        op = debt_create(remaining_amount="10")
        await offline_queue.replay(op)
        once = await store.list(Collection.DEBTS)
        await offline_queue.replay(op)
        assert await store.list(Collection.DEBTS) == once

    @pytest.mark.asyncio
    async def test_transaction_replay_verifies_accounts(self, offline_queue, store):
        """Test that queued transaction creates go through the coordinator."""
        savings = make_account()
        cash = make_account(AccountKind.CASH)
        await seed(store, [savings])
        txn = make_transaction(savings, "transfer", "10", destination_account_id=cash.id)
        op = QueuedOperation(
            kind=OperationKind.CREATE,
            collection=Collection.TRANSACTIONS,
            payload={"id": txn.id, "documents": [txn.model_dump(mode="json")]},
        )
        await offline_queue.enqueue_operation(op)

        report = await offline_queue.drain()
        assert report.failed == [op.id]
        assert await store.list(Collection.TRANSACTIONS) == []

        await seed(store, [cash])
        report = await offline_queue.drain()
        assert report.succeeded == [op.id]
        assert len(await store.list(Collection.TRANSACTIONS)) == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(
        self, queue_storage, network, audit_logger, executor
    ):
        """Test that operations replay independently."""
        store = FailingStore(failing_ids={"debt-2"})
        queue = OfflineQueue(
            queue_storage,
            AtomicMutationCoordinator(store, audit_logger),
            network,
            executor=executor,
            audit_logger=audit_logger,
        )
        for debt_id in ("debt-1", "debt-2", "debt-3"):
            await queue.enqueue_operation(debt_create(debt_id))

        report = await queue.drain()
        queue.close()

        assert len(report.succeeded) == 2
        assert len(report.failed) == 1
        remaining = await queue_storage.load()
        assert [op.document_id for op in remaining] == ["debt-2"]
        assert remaining[0].retry_count == 1
        assert remaining[0].last_error == "network unreachable"
        assert await store.get(Collection.DEBTS, "debt-3") is not None

    @pytest.mark.asyncio
    async def test_parked_after_three_failures(
        self, queue_storage, network, audit_logger, audit_storage, executor
    ):
        """Test that an operation is parked, skipped, kept, and retried manually."""
        store = FailingStore(failing_ids={"debt-1"})
        queue = OfflineQueue(
            queue_storage,
            AtomicMutationCoordinator(store, audit_logger),
            network,
            executor=executor,
            audit_logger=audit_logger,
        )
        op = await queue.enqueue_operation(debt_create())

        for _ in range(3):
            await queue.drain()

        assert [parked.id for parked in await queue.parked()] == [op.id]
        assert AuditEventType.OPERATION_PARKED in await event_types(audit_storage)

        report = await queue.drain()
        assert report.skipped == [op.id]
        assert report.attempted == 0

        store.failing_ids.clear()
        report = await queue.retry_parked()
        queue.close()

        assert report.succeeded == [op.id]
        assert await queue_storage.load() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
