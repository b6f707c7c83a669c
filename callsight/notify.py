"""User-facing notifications.

The engine reports load outcomes through a plain notification port so it
never depends on a presentation runtime. Notifications are fire-and-forget.
"""

from __future__ import annotations

import logging
from typing import Protocol

from rich.console import Console
from rich.markup import escape

from callsight.types import NotificationKind

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Port for user-facing notifications."""

    def notify(self, kind: NotificationKind, title: str, description: str) -> None: ...


class LoggingNotifier:
    """Routes notifications to the log."""

    def notify(self, kind: NotificationKind, title: str, description: str) -> None:
        level = logging.ERROR if kind is NotificationKind.ERROR else logging.INFO
        logger.log(level, "%s: %s", title, description)


class ConsoleNotifier:
    """Prints notifications as toast-like lines on a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def notify(self, kind: NotificationKind, title: str, description: str) -> None:
        if kind is NotificationKind.ERROR:
            self.console.print(f"[red]✗ {escape(title)}[/red] [dim]{escape(description)}[/dim]")
        else:
            self.console.print(f"[green]✓ {escape(title)}[/green] [dim]{escape(description)}[/dim]")


def safe_notify(
    notifier: Notifier | None,
    kind: NotificationKind,
    title: str,
    description: str,
) -> None:
    """Deliver a notification without letting a notifier failure escape."""
    if notifier is None:
        return
    try:
        notifier.notify(kind, title, description)
    except Exception:
        logger.exception("Notifier %r failed to deliver '%s'", notifier, title)
