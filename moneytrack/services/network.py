"""
Network Status Signal

Observable "is online" flag. The offline queue subscribes to it and
drains when the flag transitions to online.
"""

from typing import Awaitable, Callable

import structlog


logger = structlog.get_logger("moneytrack.network")

Subscriber = Callable[[bool], Awaitable[None]]


class NetworkStatus:
    """
    Connectivity flag with async subscribers.

    Subscribers run only on an actual transition, in subscription order,
    and are awaited so a drain triggered by reconnecting has finished
    when `set_online` returns.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._subscribers: list[Subscriber] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for transitions.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def set_online(self, online: bool) -> None:
        """Report connectivity; notifies subscribers when it changes."""
        if online == self._online:
            return

        self._online = online
        logger.info("network_status_changed", online=online)

        for callback in list(self._subscribers):
            try:
                await callback(online)
            except Exception:
                # One failing subscriber must not starve the others
                logger.exception("network_subscriber_failed", online=online)
