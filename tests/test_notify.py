"""Tests for notification delivery."""

import io
import logging

from rich.console import Console

from callsight.notify import ConsoleNotifier, LoggingNotifier, safe_notify
from callsight.types import NotificationKind


class TestNotifiers:
    """Test the bundled notifiers."""

    def test_logging_notifier_levels(self, caplog) -> None:
        notifier = LoggingNotifier()
        with caplog.at_level(logging.INFO, logger="callsight.notify"):
            notifier.notify(NotificationKind.INFO, "Queue data loaded successfully", "Showing 3 queues")
            notifier.notify(NotificationKind.ERROR, "Failed to load DID data", "timeout")

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels == [
            (logging.INFO, "Queue data loaded successfully: Showing 3 queues"),
            (logging.ERROR, "Failed to load DID data: timeout"),
        ]

    def test_console_notifier(self) -> None:
        buffer = io.StringIO()
        notifier = ConsoleNotifier(Console(file=buffer, width=120))
        notifier.notify(NotificationKind.ERROR, "Failed to load contact details", "boom")
        assert "Failed to load contact details" in buffer.getvalue()
        assert "boom" in buffer.getvalue()


class TestSafeNotify:
    """Notification failures never escape."""

    def test_none_notifier(self) -> None:
        safe_notify(None, NotificationKind.INFO, "title", "description")

    def test_failure_is_logged(self, caplog) -> None:
        class Broken:
            def notify(self, kind, title, description):
                raise RuntimeError("down")

        with caplog.at_level(logging.ERROR, logger="callsight.notify"):
            safe_notify(Broken(), NotificationKind.INFO, "Agent data loaded successfully", "")
        assert "Agent data loaded successfully" in caplog.text
        assert "RuntimeError" in caplog.text

    def test_console_notifier_prints_markup_literally(self) -> None:
        buffer = io.StringIO()
        notifier = ConsoleNotifier(Console(file=buffer, width=120))
        safe_notify(
            notifier,
            NotificationKind.ERROR,
            "Failed to load [queue] data",
            "unexpected [/select]",
        )
        output = buffer.getvalue()
        assert "Failed to load [queue] data" in output
        assert "unexpected [/select]" in output
