"""Offline queue and retry executor."""

from moneytrack.offline.queue import OfflineQueue
from moneytrack.offline.retry import RetryExecutor, is_recoverable_error

__all__ = ["OfflineQueue", "RetryExecutor", "is_recoverable_error"]
