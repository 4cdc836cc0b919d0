"""
User-facing notifications (toasts).

Every user action resolves to exactly one success or error notification.
The UI subscribes with `add_listener`; the history is kept for inspection.
"""

from dataclasses import dataclass
from typing import Callable, List

from shared.logging import get_logger


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


class Notifier:
    """Fan-out of success/error notifications to UI listeners."""

    def __init__(self):
        self.history: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []
        self.logger = get_logger("client.notifications")

    def add_listener(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def success(self, message: str) -> None:
        self._emit(Notification("success", message))

    def error(self, message: str) -> None:
        self._emit(Notification("error", message))

    def _emit(self, notification: Notification) -> None:
        self.history.append(notification)
        self.logger.info("Notification", level=notification.level, message=notification.message)
        for listener in self._listeners:
            listener(notification)
