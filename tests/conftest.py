"""Shared fixtures for callsight tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date

import pytest

from callsight.pages import QUEUE_MATRIX
from callsight.session import ReportSession
from callsight.types import DateRange, NotificationKind, QueryResult


@dataclass
class Call:
    """One outstanding call to the controlled query service."""

    query_name: str
    boundaries: tuple[str, str]
    filters: dict[str, list[str]]
    future: asyncio.Future = field(repr=False)

    def succeed(self, rows: list[dict[str, str]]) -> None:
        self.future.set_result(QueryResult.succeeded(rows))

    def fail(self, error: str) -> None:
        self.future.set_result(QueryResult.failed(error))

    def raise_error(self, error: BaseException) -> None:
        self.future.set_exception(error)


class ControlledQueryService:
    """Query service whose calls resolve only when a test resolves them."""

    def __init__(self) -> None:
        self.calls: list[Call] = []

    async def run(
        self,
        query_name: str,
        boundaries: tuple[str, str],
        filters: dict[str, list[str]],
    ) -> QueryResult:
        call = Call(query_name, boundaries, filters, asyncio.get_running_loop().create_future())
        self.calls.append(call)
        return await call.future


class RecordingNotifier:
    """Notifier that keeps every notification."""

    def __init__(self) -> None:
        self.events: list[tuple[NotificationKind, str, str]] = []

    def notify(self, kind: NotificationKind, title: str, description: str) -> None:
        self.events.append((kind, title, description))

    @property
    def errors(self) -> list[tuple[NotificationKind, str, str]]:
        return [e for e in self.events if e[0] is NotificationKind.ERROR]

    @property
    def infos(self) -> list[tuple[NotificationKind, str, str]]:
        return [e for e in self.events if e[0] is NotificationKind.INFO]


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks and done-callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def queue_rows(count: int, prefix: str = "Q") -> list[dict[str, str]]:
    return [
        {"queue_id": f"{prefix}{i}", "queue_name": f"Queue {i}", "received": str(i * 10)}
        for i in range(count)
    ]


JANUARY = DateRange(start=date(2024, 1, 1), end=date(2024, 1, 31))


@pytest.fixture
def service() -> ControlledQueryService:
    return ControlledQueryService()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def session(service: ControlledQueryService, notifier: RecordingNotifier) -> ReportSession:
    return ReportSession(
        QUEUE_MATRIX,
        service,
        notifier=notifier,
        date_range=JANUARY,
        today=date(2024, 1, 31),
    )
