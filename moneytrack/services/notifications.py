"""
Notification Sinks

Fire-and-forget channel used to surface validation failures and
duplicate advisories to the user. `notify` is synchronous and returns
immediately; the core never waits on the user seeing a message.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Union

import structlog


class NotificationKind(str, Enum):
    """Toast styles understood by the UI."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NotificationSink(ABC):
    """Anything that can show a short message to the user."""

    @abstractmethod
    def notify(self, kind: Union[NotificationKind, str], message: str) -> None:
        pass


class StructlogNotificationSink(NotificationSink):
    """Writes notifications to the structured log (headless use)."""

    def __init__(self):
        self._logger = structlog.get_logger("moneytrack.notifications")

    def notify(self, kind: Union[NotificationKind, str], message: str) -> None:
        kind = NotificationKind(kind)
        if kind == NotificationKind.ERROR:
            self._logger.error("notification", kind=kind.value, message=message)
        elif kind == NotificationKind.WARNING:
            self._logger.warning("notification", kind=kind.value, message=message)
        else:
            self._logger.info("notification", kind=kind.value, message=message)


class CollectingNotificationSink(NotificationSink):
    """Keeps every notification in memory, newest last."""

    def __init__(self):
        self.notifications: list[tuple[NotificationKind, str]] = []

    def notify(self, kind: Union[NotificationKind, str], message: str) -> None:
        self.notifications.append((NotificationKind(kind), message))

    def messages(self, kind: Union[NotificationKind, str, None] = None) -> list[str]:
        """Messages, optionally only those of one kind."""
        if kind is None:
            return [message for _, message in self.notifications]
        kind = NotificationKind(kind)
        return [message for k, message in self.notifications if k == kind]
