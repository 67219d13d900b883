"""
Tests for the page analytics tracker — page_view once, bounce vs exit,
listener lifecycle, swallowed failures.
"""

import pytest

from vastu_api.exceptions import InsertError
from vastu_api.schemas import EventType
from vastu_api.services.analytics import (
    PageAnalytics,
    PageContext,
    PageLifecycle,
    classify_exit,
)
from vastu_api.services.session import SessionContext

SESSION = SessionContext("1700000000000-abc123")
PAGE = PageContext(
    page_url="http://test/",
    referrer="https://www.google.com/",
    user_agent="Mozilla/5.0 (test)",
)


class _RefusingBeacon:
    def send(self, payload):
        return False


@pytest.fixture
def lifecycle():
    return PageLifecycle()


@pytest.fixture
def tracker(backend, beacon, lifecycle, clock):
    return PageAnalytics(SESSION, PAGE, backend, beacon, lifecycle, clock=clock)


class TestClassifyExit:
    @pytest.mark.parametrize(
        "elapsed, expected",
        [
            (0, EventType.BOUNCE),
            (29, EventType.BOUNCE),
            (29.999, EventType.BOUNCE),
            (30, EventType.EXIT),
            (600, EventType.EXIT),
        ],
    )
    def test_threshold(self, elapsed, expected):
        assert classify_exit(elapsed) == expected

    def test_custom_threshold(self):
        assert classify_exit(9, threshold=10) == EventType.BOUNCE
        assert classify_exit(10, threshold=10) == EventType.EXIT


class TestPageView:
    async def test_activate_records_page_view(self, tracker, backend):
        await tracker.activate()

        row, = backend.rows["page_analytics"]
        assert row == {
            "session_id": "1700000000000-abc123",
            "page_url": "http://test/",
            "referrer": "https://www.google.com/",
            "user_agent": "Mozilla/5.0 (test)",
            "event_type": "page_view",
            "time_on_page": None,
        }
        assert tracker.viewed is True

    async def test_reactivation_emits_no_second_page_view(self, tracker, backend, lifecycle):
        await tracker.activate()
        await tracker.activate()

        assert backend.events() == ["page_view"]
        assert lifecycle.listener_count == 1

    async def test_empty_referrer_is_null(self, backend, beacon, lifecycle, clock):
        tracker = PageAnalytics(
            SESSION, PageContext("http://test/", referrer=""), backend, beacon, lifecycle, clock=clock
        )
        await tracker.activate()
        assert backend.rows["page_analytics"][0]["referrer"] is None

    async def test_insert_failure_is_swallowed(self, tracker, backend):
        backend.insert_errors["page_analytics"] = InsertError("permission denied")

        await tracker.activate()

        assert tracker.viewed is True
        assert "page_analytics" not in backend.rows

    async def test_custom_table(self, backend, beacon, lifecycle, clock):
        tracker = PageAnalytics(
            SESSION, PAGE, backend, beacon, lifecycle, table="events", clock=clock
        )
        await tracker.activate()
        assert backend.calls == [("insert", "events")]


class TestUnload:
    async def test_short_visit_is_bounce(self, tracker, beacon, lifecycle, clock):
        await tracker.activate()
        clock.advance(29)

        lifecycle.unload()

        event, = beacon.sent
        assert event["event_type"] == "bounce"
        assert event["time_on_page"] == 29
        assert event["session_id"] == SESSION.id
        assert tracker.exit_event == EventType.BOUNCE

    async def test_long_visit_is_exit(self, tracker, beacon, lifecycle, clock):
        await tracker.activate()
        clock.advance(30)

        lifecycle.unload()

        assert beacon.sent[0]["event_type"] == "exit"
        assert beacon.sent[0]["time_on_page"] == 30

    async def test_time_on_page_is_rounded(self, tracker, beacon, lifecycle, clock):
        await tracker.activate()
        clock.advance(44.6)
        lifecycle.unload()
        assert beacon.sent[0]["time_on_page"] == 45

    async def test_unload_does_not_use_record_store(self, tracker, backend, lifecycle, clock):
        await tracker.activate()
        clock.advance(5)
        lifecycle.unload()
        assert backend.events() == ["page_view"]

    async def test_timer_starts_at_first_activation(self, tracker, beacon, lifecycle, clock):
        await tracker.activate()
        clock.advance(20)
        await tracker.activate()
        clock.advance(15)

        lifecycle.unload()

        assert beacon.sent[0]["event_type"] == "exit"
        assert beacon.sent[0]["time_on_page"] == 35

    async def test_deactivate_removes_listener(self, tracker, beacon, lifecycle):
        await tracker.activate()
        tracker.deactivate()

        lifecycle.unload()

        assert lifecycle.listener_count == 0
        assert beacon.sent == []

    async def test_dropped_beacon_is_not_raised(self, backend, lifecycle, clock):
        tracker = PageAnalytics(SESSION, PAGE, backend, _RefusingBeacon(), lifecycle, clock=clock)
        await tracker.activate()
        assert tracker.handle_unload() is False


class TestFormSubmit:
    async def test_form_submit_event(self, tracker, backend, clock):
        await tracker.activate()
        clock.advance(75)

        assert await tracker.track_form_submit() is True

        row = backend.rows["page_analytics"][-1]
        assert row["event_type"] == "form_submit"
        assert row["time_on_page"] == 75

    async def test_form_submit_failure_returns_false(self, tracker, backend):
        await tracker.activate()
        backend.insert_errors["page_analytics"] = RuntimeError("network down")
        assert await tracker.track_form_submit() is False


class TestPageLifecycle:
    def test_failing_listener_does_not_stop_others(self):
        lifecycle = PageLifecycle()
        calls = []

        def _broken():
            raise ValueError("boom")

        lifecycle.add_unload_listener(_broken)
        lifecycle.add_unload_listener(lambda: calls.append("ok"))

        lifecycle.unload()

        assert calls == ["ok"]

    def test_listener_added_once(self):
        lifecycle = PageLifecycle()
        listener = lambda: None  # noqa: E731
        lifecycle.add_unload_listener(listener)
        lifecycle.add_unload_listener(listener)
        assert lifecycle.listener_count == 1
