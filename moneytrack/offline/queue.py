"""
Offline Mutation Queue

Lifecycle of a queued operation:

    pending -> in flight -> done (removed from the queue)
                         -> pending, retry_count + 1, last_error set
    after `max_failures` consecutive failures the operation stays queued
    but is skipped by automatic drains until `retry_parked()` is called.
    Nothing is ever dropped.

Operations are enqueued when a mutation is attempted while offline, or
when an online attempt fails with a recoverable error after retries.

DRAIN: operations run concurrently (asyncio.gather with
return_exceptions), so one failure never blocks the others. A drain is
triggered by the network going back online or by an explicit call.

IDEMPOTENCY: every replay writes to the operation's fixed document id
(create-or-replace), so replaying an operation twice, e.g. after a crash
between the write and the queue removal, yields the same end state.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from moneytrack.audit import AuditLogger
from moneytrack.coordinator import AtomicMutationCoordinator
from moneytrack.models.finance import Collection, Transaction
from moneytrack.models.queue import DrainReport, OperationKind, QueuedOperation
from moneytrack.offline.retry import RetryExecutor, is_recoverable_error
from moneytrack.services.network import NetworkStatus
from moneytrack.services.storage import QueueStorageInterface


logger = structlog.get_logger("moneytrack.offline")


class OfflineQueue:
    """
    Durable queue of pending mutations with drain-on-reconnect.
    """

    def __init__(
        self,
        storage: QueueStorageInterface,
        coordinator: AtomicMutationCoordinator,
        network: NetworkStatus,
        executor: Optional[RetryExecutor] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_failures: int = 3,
        drain_on_reconnect: bool = True,
    ):
        self._storage = storage
        self._coordinator = coordinator
        self._store = coordinator.store
        self._network = network
        self._executor = executor or RetryExecutor()
        self._audit = audit_logger or AuditLogger()
        self._max_failures = max_failures
        self._drain_lock = asyncio.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

        if drain_on_reconnect:
            self._unsubscribe = network.subscribe(self._on_network_change)

    async def _on_network_change(self, online: bool) -> None:
        if online:
            await self.drain()

    def close(self) -> None:
        """Stop listening to network transitions."""
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    # =========================================================================
    # QUEUE CONTENTS
    # =========================================================================

    async def pending(self) -> list[QueuedOperation]:
        """Every queued operation in enqueue order."""
        return await self._storage.load()

    async def parked(self) -> list[QueuedOperation]:
        """Operations waiting for a manual retry."""
        return [op for op in await self._storage.load() if op.is_parked(self._max_failures)]

    async def enqueue(
        self,
        kind: Union[OperationKind, str],
        collection: Union[Collection, str],
        payload: dict[str, Any],
        document_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        reason: str = "offline",
        correlation_id: Optional[UUID] = None,
    ) -> QueuedOperation:
        """Build and store a queued operation."""
        fields = {
            "kind": OperationKind(kind),
            "collection": Collection(collection),
            "payload": payload,
            "document_id": document_id or "",
        }
        if operation_id:
            fields["id"] = operation_id
        operation = QueuedOperation(**fields)
        return await self.enqueue_operation(operation, reason=reason, correlation_id=correlation_id)

    async def enqueue_operation(
        self,
        operation: QueuedOperation,
        reason: str = "offline",
        correlation_id: Optional[UUID] = None,
    ) -> QueuedOperation:
        """
        Store an operation for later replay.

        Enqueueing an id that is already queued keeps the stored copy.
        """
        existing = await self._storage.get(operation.id)
        if existing is not None:
            return existing

        await self._storage.put(operation)
        await self._audit.log_operation_queued(
            operation_id=operation.id,
            kind=operation.kind.value,
            collection=operation.collection.value,
            reason=reason,
            correlation_id=correlation_id,
        )
        return operation

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def replay(self, operation: QueuedOperation) -> None:
        """
        Apply one operation against storage.

        Transaction creates go through the coordinator so the referenced
        accounts are verified again; a payload may carry a "documents"
        list for a group that must be committed together.
        """
        collection = operation.collection

        if operation.kind == OperationKind.CREATE:
            if collection == Collection.TRANSACTIONS:
                documents = operation.payload.get("documents") or [operation.payload]
                transactions = [Transaction.model_validate(doc) for doc in documents]
                await self._coordinator.commit_transactions(transactions)
            else:
                await self._store.set(collection, operation.document_id, operation.payload)

        elif operation.kind == OperationKind.UPDATE:
            partial = {k: v for k, v in operation.payload.items() if k != "id"}
            await self._store.update(collection, operation.document_id, partial)

        else:
            # Deleting a missing document is the same end state
            await self._store.delete(collection, operation.document_id)

    async def submit(
        self,
        operation: QueuedOperation,
        runner: Optional[Callable[[], Awaitable[Any]]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Run a mutation now, or queue it.

        Args:
            operation: The mutation, also what gets queued on failure
            runner: What to run while online; defaults to replaying
                the operation
            correlation_id: Ties the audit events of one user action

        Returns:
            True if applied now, False if queued

        Raises:
            Any non-recoverable error from the runner
        """
        if not self._network.is_online:
            await self.enqueue_operation(operation, reason="offline", correlation_id=correlation_id)
            return False

        run = runner or (lambda: self.replay(operation))
        try:
            await self._executor.run(run, name=f"{operation.kind.value}_{operation.collection.value}")
        except Exception as e:
            if not is_recoverable_error(e):
                raise
            logger.warning("operation_deferred", operation_id=operation.id, error=str(e))
            await self.enqueue_operation(
                operation.model_copy(update={"last_error": str(e)}),
                reason=f"recoverable error: {e}",
                correlation_id=correlation_id,
            )
            return False
        return True

    async def _record_failure(
        self,
        operation: QueuedOperation,
        error: BaseException,
        report: DrainReport,
    ) -> None:
        failed = operation.model_copy(update={
            "retry_count": operation.retry_count + 1,
            "last_error": str(error) or type(error).__name__,
        })
        await self._storage.put(failed)
        report.failed.append(failed.id)

        parked = failed.is_parked(self._max_failures)
        if parked:
            report.parked.append(failed.id)
        await self._audit.log_operation_failed(
            operation_id=failed.id,
            retry_count=failed.retry_count,
            error_message=failed.last_error,
            parked=parked,
        )

    async def drain(self, include_parked: bool = False) -> DrainReport:
        """
        Replay queued operations.

        Args:
            include_parked: Also retry operations that reached the failure limit

        Returns:
            DrainReport of this drain
        """
        report = DrainReport()

        if not self._network.is_online:
            logger.info("queue_drain_skipped", reason="offline")
            return report

        async with self._drain_lock:
            operations = await self._storage.load()

            to_run = []
            for operation in operations:
                if operation.is_parked(self._max_failures) and not include_parked:
                    report.skipped.append(operation.id)
                else:
                    to_run.append(operation)

            if not to_run:
                return report

            results = await asyncio.gather(
                *(self.replay(operation) for operation in to_run),
                return_exceptions=True,
            )

            for operation, result in zip(to_run, results):
                if isinstance(result, BaseException):
                    await self._record_failure(operation, result, report)
                else:
                    await self._storage.remove(operation.id)
                    report.succeeded.append(operation.id)
                    await self._audit.log_operation_replayed(
                        operation_id=operation.id,
                        kind=operation.kind.value,
                        collection=operation.collection.value,
                    )

            remaining = len(await self._storage.load())

        await self._audit.log_queue_drained(
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            remaining=remaining,
        )
        return report

    async def retry_parked(self) -> DrainReport:
        """Manual retry: drain including operations past the failure limit."""
        return await self.drain(include_parked=True)
