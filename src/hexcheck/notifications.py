"""
User-facing notifications.

The notifier is the only channel the pipeline uses to talk to the user.
``notify_once`` suppresses repeats of the same text for the lifetime of the
notifier, so a session with many failing lookups shows each message once.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set

from rich.console import Console

logger = logging.getLogger("hexcheck.notifications")


class NotificationLevel(Enum):
    """Severity of a user-facing message."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


_STYLES = {
    NotificationLevel.INFO: ("ℹ️ ", "blue"),
    NotificationLevel.WARN: ("⚠️ ", "yellow"),
    NotificationLevel.ERROR: ("❌", "red"),
}

_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARN: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    """A message that was shown to the user."""

    message: str
    level: NotificationLevel


class Notifier:
    """Writes notifications to a rich console and remembers what it showed."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        self.console = console or Console(stderr=True)
        self.quiet = quiet
        self.history: List[Notification] = []
        self._shown_once: Set[str] = set()

    def notify(
        self, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> None:
        """Show ``message`` unconditionally."""
        self._emit(Notification(message, level))

    def notify_once(
        self, message: str, level: NotificationLevel = NotificationLevel.INFO
    ) -> bool:
        """
        Show ``message`` unless the same text was already shown this way.

        Returns:
            bool: True if the message was shown
        """
        if message in self._shown_once:
            return False
        self._shown_once.add(message)
        self._emit(Notification(message, level))
        return True

    def messages(self, level: Optional[NotificationLevel] = None) -> List[str]:
        """Texts shown so far, optionally filtered by level."""
        return [
            entry.message
            for entry in self.history
            if level is None or entry.level == level
        ]

    def _emit(self, notification: Notification) -> None:
        self.history.append(notification)
        logger.log(_LOG_LEVELS[notification.level], notification.message)

        # Quiet mode still shows errors.
        if self.quiet and notification.level != NotificationLevel.ERROR:
            return

        icon, style = _STYLES[notification.level]
        self.console.print(f"{icon} {notification.message}", style=style, markup=False)
