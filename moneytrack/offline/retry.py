"""
Retry Executor

Bounded retry with backoff for transient in-flight failures, built on
tenacity. Only failures classified as recoverable are retried; anything
else propagates on the first attempt without consuming retry budget.

Delay before retry k (k = 0, 1, ...):
    exponential: base_delay * 2^k
    fixed:       base_delay
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from moneytrack.config.settings import RetrySettings
from moneytrack.exceptions import LedgerError, RecoverableError
from moneytrack.services.storage import (
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
)


logger = structlog.get_logger("moneytrack.offline")

T = TypeVar("T")

# Lower-cased fragments of transient failure messages
RECOVERABLE_SIGNATURES = (
    "network",
    "offline",
    "timeout",
    "timed out",
    "failed to fetch",
    "unavailable",
)


def is_recoverable_error(error: BaseException) -> bool:
    """
    Whether a failure is transient and worth retrying or queueing.

    Ledger errors carry their own classification; storage lookups that
    failed because a record is missing or already present never recover.
    """
    if isinstance(error, RecoverableError):
        return True
    if isinstance(error, (LedgerError, NotFoundError, DuplicateError)):
        return False
    if isinstance(error, (StorageConnectionError, TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True

    message = str(error).lower()
    return any(signature in message for signature in RECOVERABLE_SIGNATURES)


class RetryExecutor:
    """
    Runs an async operation with bounded, classified retries.

    Usage:
        executor = RetryExecutor(max_attempts=3, base_delay=1.0)
        result = await executor.run(lambda: store.set(...), name="save_debt")
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        exponential: bool = True,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Args:
            max_attempts: Total attempts, including the first one
            base_delay: Seconds before the first retry
            exponential: Double the delay after every failed attempt
            sleep: Replacement for asyncio.sleep (tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential = exponential
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(
        cls,
        settings: RetrySettings,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> "RetryExecutor":
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            exponential=settings.exponential_backoff,
            sleep=sleep,
        )

    def _wait(self):
        if self.exponential:
            # tenacity waits multiplier * 2^(attempt - 1) after attempt n
            return wait_exponential(multiplier=self.base_delay, exp_base=2, min=0)
        return wait_fixed(self.base_delay)

    @staticmethod
    def _log_retry(name: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "operation_retry",
                operation=name,
                attempt=retry_state.attempt_number,
                delay=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(error),
            )
        return before_sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        name: str = "operation",
    ) -> T:
        """
        Run the operation, retrying recoverable failures.

        Raises:
            The last error once attempts are exhausted, or the first
            non-recoverable error immediately
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait(),
            retry=retry_if_exception(is_recoverable_error),
            before_sleep=self._log_retry(name),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(operation)
