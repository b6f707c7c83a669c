"""Tests for aggregate-to-detail drilldown."""

from __future__ import annotations

import pytest
from conftest import JANUARY, settle

from callsight.pages import AGENT_PERFORMANCE, MISSED_CALLS, QUEUE_MATRIX, PageConfig, ViewConfig
from callsight.query import FixtureQueryService
from callsight.reporters.csv_export import serialize
from callsight.session import DrilldownController, ReportSession
from callsight.types import FilterSet, NotificationKind, ViewStatus

QUEUE_DID_PAGE = PageConfig(
    page_id="queue-did",
    title="Queue by DID",
    views=(
        ViewConfig(
            view_id="queue_did",
            label="Queue/DID",
            query="distribution-by-queue-did",
            key_columns=(("queue", "queue_id"), ("did", "did")),
            drilldown_query="distribution-drilldown",
        ),
    ),
)


class TestDeriveFilters:
    """Narrowing derived from the clicked row."""

    def test_queue_row_constrains_queue_only(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        row = {"queue_id": "SALES", "queue_name": "Sales", "did": "+3312345", "received": "42"}
        derived = controller.derive_filters(row, "queue")
        assert derived == FilterSet.of({"queue": "SALES"})
        assert derived.to_wire() == {"queueId": ["SALES"]}

    def test_did_row_constrains_did_only(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        derived = controller.derive_filters({"did": "+3312345", "queue_id": "SALES"}, "did")
        assert derived.keys == ["did"]
        assert derived.get("did") == frozenset({"+3312345"})

    def test_secondary_dimension_scopes_both(self, service) -> None:
        controller = DrilldownController(service, QUEUE_DID_PAGE)
        derived = controller.derive_filters({"queue_id": "SALES", "did": "+331"}, "queue_did")
        assert derived.to_wire() == {"did": ["+331"], "queueId": ["SALES"]}

    def test_view_without_drilldown_raises(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        with pytest.raises(ValueError, match="has no drilldown"):
            controller.derive_filters({"hour": "09"}, "hour")

    def test_missing_key_column_raises(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        with pytest.raises(ValueError, match="queue_id"):
            controller.derive_filters({"queue_name": "Sales"}, "queue")


class TestOpenClose:
    """Lifecycle of the single live drilldown."""

    @pytest.mark.asyncio
    async def test_open_issues_scoped_request(self, service, notifier) -> None:
        controller = DrilldownController(service, MISSED_CALLS, notifier)
        controller.open({"queue_id": "SALES", "queue_name": "Sales"}, "queue", JANUARY)
        state = controller.state
        assert state.status is ViewStatus.LOADING
        assert state.title == "Missed Calls - Sales"
        assert state.scope.parent_view == "queue"
        await settle()

        call = service.calls[0]
        assert call.query_name == "unanswered-drilldown"
        assert call.filters == {"queueId": ["SALES"]}
        call.succeed([{"contact_id": "c-1"}, {"contact_id": "c-2"}])
        await settle()

        assert controller.state.status is ViewStatus.LOADED
        assert len(controller.state.rows) == 2

    @pytest.mark.asyncio
    async def test_title_falls_back_to_key(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        controller.open({"queue_id": "Q-77"}, "queue", JANUARY)
        assert controller.state.title == "Contact Details - Q-77"

    @pytest.mark.asyncio
    async def test_new_drilldown_replaces_previous(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        controller.open({"queue_id": "A", "queue_name": "Alpha"}, "queue", JANUARY)
        controller.open({"did": "+331"}, "did", JANUARY)
        assert controller.state.title == "Contact Details - +331"
        assert controller.state.scope.parent_view == "did"
        await settle()

        first, second = service.calls
        first.succeed([{"contact_id": "stale"}])
        await settle()
        assert controller.state.status is ViewStatus.LOADING
        assert controller.state.scope.derived_filters == FilterSet.of({"did": "+331"})

        second.succeed([{"contact_id": "fresh"}])
        await settle()
        assert [r["contact_id"] for r in controller.state.rows] == ["fresh"]

    @pytest.mark.asyncio
    async def test_close_discards_late_response(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX)
        controller.open({"queue_id": "A"}, "queue", JANUARY)
        await settle()
        controller.close()
        assert not controller.state.is_open

        service.calls[0].succeed([{"contact_id": "c-1"}])
        await settle()
        assert not controller.state.is_open
        assert controller.state.rows == ()

    @pytest.mark.asyncio
    async def test_failure_notifies(self, service, notifier) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX, notifier)
        controller.open({"queue_id": "A"}, "queue", JANUARY)
        await settle()
        service.calls[0].fail("Query exhausted resources")
        await controller.wait_idle()

        assert controller.state.status is ViewStatus.FAILED
        assert notifier.events == [
            (NotificationKind.ERROR, "Failed to load contact details", "Query exhausted resources")
        ]

    @pytest.mark.asyncio
    async def test_agent_failure_title(self, service, notifier) -> None:
        controller = DrilldownController(service, AGENT_PERFORMANCE, notifier)
        controller.open({"agent_id": "a-7", "agent_name": "Dana"}, "agent", JANUARY)
        await settle()
        service.calls[0].fail("timeout")
        await controller.wait_idle()

        assert notifier.errors == [
            (NotificationKind.ERROR, "Failed to load agent details", "timeout")
        ]

    @pytest.mark.asyncio
    async def test_replacement_cancels_inflight_call(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX, cancel_superseded=True)
        controller.open({"queue_id": "A"}, "queue", JANUARY)
        await settle()
        controller.open({"queue_id": "B"}, "queue", JANUARY)
        await settle()

        first, second = service.calls
        assert first.future.cancelled()
        assert second.filters == {"queueId": ["B"]}
        second.succeed([{"contact_id": "b-1"}])
        await controller.wait_idle()
        assert [r["contact_id"] for r in controller.state.rows] == ["b-1"]

    @pytest.mark.asyncio
    async def test_close_cancels_inflight_call(self, service) -> None:
        controller = DrilldownController(service, QUEUE_MATRIX, cancel_superseded=True)
        controller.open({"queue_id": "A"}, "queue", JANUARY)
        await settle()
        controller.close()
        await settle()
        assert service.calls[0].future.cancelled()
        assert not controller.state.is_open

    @pytest.mark.asyncio
    async def test_close_does_not_touch_views(self, session, service) -> None:
        session.start()
        await settle()
        service.calls[0].succeed([{"queue_id": "A"}])
        await settle()

        session.open_drilldown({"queue_id": "A"})
        session.close_drilldown()
        assert session.views.state("queue").status is ViewStatus.LOADED


def _write_fixtures(directory) -> None:
    queues = [
        {"queue_id": "SALES", "queue_name": "Sales", "received": "42"},
        {"queue_id": "SUPPORT", "queue_name": "Support", "received": "10"},
    ]
    contacts = [
        {"contact_id": f"s-{i}", "queue_id": "SALES", "queue_name": "Sales"} for i in range(42)
    ] + [
        {"contact_id": f"t-{i}", "queue_id": "SUPPORT", "queue_name": "Support"} for i in range(10)
    ]
    (directory / "distribution-by-queue.csv").write_bytes(serialize(queues))
    (directory / "distribution-drilldown.csv").write_bytes(serialize(contacts))


class TestDrilldownConsistency:
    """Detail rows refine the aggregate row they came from."""

    @pytest.mark.asyncio
    async def test_drilldown_count_matches_received(self, tmp_path, notifier) -> None:
        _write_fixtures(tmp_path)
        session = ReportSession(
            QUEUE_MATRIX, FixtureQueryService(tmp_path), notifier=notifier, date_range=JANUARY
        )
        session.start()
        await session.wait_idle()

        sales = next(r for r in session.snapshot().active.rows if r["queue_id"] == "SALES")
        assert sales["received"] == "42"

        session.open_drilldown(sales)
        await session.wait_idle()

        drilldown = session.snapshot().drilldown
        assert len(drilldown.rows) == 42
        assert {r["queue_id"] for r in drilldown.rows} == {"SALES"}
        assert drilldown.scope.date_range == JANUARY
