"""Transient user-facing notifications (toasts) for consumer surfaces."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional

from rich.console import Console
from rich.text import Text

from .logger import console as default_console


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    level: str
    title: str
    description: str


class Notifier:
    """Sink for one-shot notifications. Subclasses override ``emit``."""

    def emit(self, notification: Notification) -> None:
        raise NotImplementedError

    def success(self, title: str, description: str) -> None:
        self.emit(Notification(level="success", title=title, description=description))

    def error(self, title: str, description: str) -> None:
        self.emit(Notification(level="error", title=title, description=description))


class ConsoleNotifier(Notifier):
    """Prints notifications through the shared rich console."""

    _STYLES = {"success": "bold green", "error": "bold red"}

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or default_console

    def emit(self, notification: Notification) -> None:
        style = self._STYLES.get(notification.level, "bold")
        line = Text(notification.title, style=style)
        line.append(" ")
        line.append(notification.description)
        self._console.print(line)


class LoggingNotifier(Notifier):
    def emit(self, notification: Notification) -> None:
        level = logging.ERROR if notification.level == "error" else logging.INFO
        logger.log(level, "%s: %s", notification.title, notification.description)


class RecordingNotifier(Notifier):
    """Keeps every notification in memory; used by tests and headless runs."""

    def __init__(self) -> None:
        self.items: List[Notification] = []

    def emit(self, notification: Notification) -> None:
        self.items.append(notification)

    def errors(self) -> List[Notification]:
        return [item for item in self.items if item.level == "error"]

    def successes(self) -> List[Notification]:
        return [item for item in self.items if item.level == "success"]
