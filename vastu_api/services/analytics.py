"""
Page analytics tracker — page_view / bounce / exit / form_submit.

One tracker per page view. ``activate`` is the mount: it records the
page_view (at most once per tracker), starts the timer and listens for the
page's unload. The unload event is classified against the bounce threshold
and handed to the beacon transport, never awaited. Every failure here is
logged and swallowed; analytics must not reach the visitor.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from vastu_api.exceptions import AnalyticsError, InsertError
from vastu_api.schemas import AnalyticsEvent, EventType
from vastu_api.services.backend import RecordStore
from vastu_api.services.beacon import BeaconTransport
from vastu_api.services.session import SessionContext

logger = logging.getLogger(__name__)

BOUNCE_THRESHOLD_SECS = 30.0


@dataclass(frozen=True)
class PageContext:
    page_url: str
    referrer: Optional[str] = None
    user_agent: str = ""


class PageLifecycle:
    """Unload listeners for a single page view."""

    def __init__(self) -> None:
        self._unload_listeners: list[Callable[[], None]] = []

    def add_unload_listener(self, listener: Callable[[], None]) -> None:
        if listener not in self._unload_listeners:
            self._unload_listeners.append(listener)

    def remove_unload_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._unload_listeners:
            self._unload_listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._unload_listeners)

    def unload(self) -> None:
        for listener in list(self._unload_listeners):
            try:
                listener()
            except Exception as e:
                logger.error("Unload listener failed: %s", e)


def classify_exit(elapsed_secs: float, threshold: float = BOUNCE_THRESHOLD_SECS) -> EventType:
    return EventType.BOUNCE if elapsed_secs < threshold else EventType.EXIT


class PageAnalytics:
    def __init__(
        self,
        session: SessionContext,
        page: PageContext,
        records: RecordStore,
        beacon: BeaconTransport,
        lifecycle: PageLifecycle,
        *,
        table: str = "page_analytics",
        bounce_threshold: float = BOUNCE_THRESHOLD_SECS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.page = page
        self._records = records
        self._beacon = beacon
        self._lifecycle = lifecycle
        self._table = table
        self._bounce_threshold = bounce_threshold
        self._clock = clock
        self._started_at: Optional[float] = None
        self._viewed = False
        self.exit_event: Optional[EventType] = None

    @property
    def viewed(self) -> bool:
        return self._viewed

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def _event(self, event_type: EventType, time_on_page: Optional[int] = None) -> AnalyticsEvent:
        return AnalyticsEvent(
            session_id=self.session.id,
            page_url=self.page.page_url,
            referrer=self.page.referrer or None,
            user_agent=self.page.user_agent,
            event_type=event_type,
            time_on_page=time_on_page,
        )

    async def _record(self, event: AnalyticsEvent) -> bool:
        try:
            await self._records.insert(self._table, event.model_dump())
            return True
        except InsertError as e:
            err = AnalyticsError(f"Failed to track {event.event_type}: {e.message}")
        except Exception as e:
            err = AnalyticsError(f"Failed to track {event.event_type}: {e}")
        logger.error("%s (session=%s)", err.message, self.session.id)
        return False

    # ── lifecycle ───────────────────────────────────────

    async def activate(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()
        self._lifecycle.add_unload_listener(self.handle_unload)

        if self._viewed:
            return
        self._viewed = True
        await self._record(self._event(EventType.PAGE_VIEW))

    def deactivate(self) -> None:
        self._lifecycle.remove_unload_listener(self.handle_unload)

    def handle_unload(self) -> bool:
        """Classify the visit and dispatch it fire-and-forget."""
        elapsed = self.elapsed()
        event_type = classify_exit(elapsed, self._bounce_threshold)
        self.exit_event = event_type
        event = self._event(event_type, time_on_page=round(elapsed))

        queued = self._beacon.send(event.model_dump())
        if not queued:
            logger.warning("Exit event dropped for session %s", self.session.id)
        return queued

    async def track_form_submit(self) -> bool:
        elapsed = round(self.elapsed())
        return await self._record(self._event(EventType.FORM_SUBMIT, time_on_page=elapsed))
