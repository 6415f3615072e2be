"""
Shared fixtures for MoneyTrack tests.

No test touches the network: storage is in memory (or a tmp_path file)
and retry delays go through a recording fake sleep.
"""

import pytest

from moneytrack.audit import AuditLogger
from moneytrack.config.settings import LedgerSettings
from moneytrack.coordinator import AtomicMutationCoordinator
from moneytrack.offline import OfflineQueue, RetryExecutor
from moneytrack.orchestrator import FinanceService
from moneytrack.services.network import NetworkStatus
from moneytrack.services.notifications import CollectingNotificationSink
from moneytrack.services.storage import (
    InMemoryAuditStorage,
    InMemoryDocumentStore,
    InMemoryQueueStorage,
)

from tests.factories import RecordingSleep


@pytest.fixture
def ledger_settings():
    return LedgerSettings()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def network():
    return NetworkStatus(online=True)


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def executor(fake_sleep):
    return RetryExecutor(max_attempts=3, base_delay=1.0, sleep=fake_sleep)


@pytest.fixture
def coordinator(store, audit_logger):
    return AtomicMutationCoordinator(store, audit_logger)


@pytest.fixture
def queue_storage():
    return InMemoryQueueStorage()


@pytest.fixture
def offline_queue(queue_storage, coordinator, network, executor, audit_logger):
    queue = OfflineQueue(
        storage=queue_storage,
        coordinator=coordinator,
        network=network,
        executor=executor,
        audit_logger=audit_logger,
    )
    yield queue
    queue.close()


@pytest.fixture
def notifier():
    return CollectingNotificationSink()


@pytest.fixture
def service(store, offline_queue, coordinator, notifier, audit_logger, ledger_settings):
    return FinanceService(
        store=store,
        queue=offline_queue,
        coordinator=coordinator,
        notifier=notifier,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )
