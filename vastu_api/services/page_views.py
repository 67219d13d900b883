"""
Live page views — one tracker + form controller per rendered landing page.

The landing page carries its ``view_id`` in the form and the unload beacon,
so the POST and unload requests find the same instances the GET created.
Bounded: the oldest view is deactivated (no exit event) when full.
"""

import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional

from vastu_api.services.analytics import PageAnalytics, PageContext, PageLifecycle
from vastu_api.services.backend import BlobStorage, RecordStore
from vastu_api.services.beacon import BeaconTransport
from vastu_api.services.form import FormController, ToastQueue
from vastu_api.services.session import SessionContext

logger = logging.getLogger(__name__)


@dataclass
class PageView:
    view_id: str
    session: SessionContext
    lifecycle: PageLifecycle
    tracker: PageAnalytics
    form: FormController
    toasts: ToastQueue
    opened_at: float = field(default_factory=time.time)


class PageViewRegistry:
    def __init__(
        self,
        storage: BlobStorage,
        records: RecordStore,
        beacon: BeaconTransport,
        *,
        bucket: str,
        registrations_table: str = "registrations",
        analytics_table: str = "page_analytics",
        bounce_threshold: float = 30.0,
        max_upload_bytes: int = 10 * 1024 * 1024,
        capacity: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._storage = storage
        self._records = records
        self.beacon = beacon
        self._bucket = bucket
        self._registrations_table = registrations_table
        self._analytics_table = analytics_table
        self._bounce_threshold = bounce_threshold
        self._max_upload_bytes = max_upload_bytes
        self._capacity = capacity
        self._clock = clock
        self._views: OrderedDict[str, PageView] = OrderedDict()

    def __len__(self) -> int:
        return len(self._views)

    async def open(self, session: SessionContext, page: PageContext) -> PageView:
        """Mount a new page view and record its page_view."""
        lifecycle = PageLifecycle()
        tracker = PageAnalytics(
            session,
            page,
            self._records,
            self.beacon,
            lifecycle,
            table=self._analytics_table,
            bounce_threshold=self._bounce_threshold,
            clock=self._clock,
        )
        toasts = ToastQueue()
        form = FormController(
            self._storage,
            self._records,
            toasts,
            bucket=self._bucket,
            table=self._registrations_table,
            on_submitted=tracker.track_form_submit,
            max_upload_bytes=self._max_upload_bytes,
        )
        view = PageView(
            view_id=uuid.uuid4().hex,
            session=session,
            lifecycle=lifecycle,
            tracker=tracker,
            form=form,
            toasts=toasts,
        )
        self._views[view.view_id] = view
        self._evict()

        await tracker.activate()
        return view

    def _evict(self) -> None:
        while len(self._views) > self._capacity:
            view_id, view = self._views.popitem(last=False)
            view.tracker.deactivate()
            logger.info("Evicted stale page view %s (session=%s)", view_id, view.session.id)

    def get(self, view_id: str) -> Optional[PageView]:
        return self._views.get(view_id)

    def unload(self, view_id: str) -> bool:
        """Fire the page's unload listeners, then unmount it."""
        view = self._views.pop(view_id, None)
        if view is None:
            return False
        view.lifecycle.unload()
        view.tracker.deactivate()
        return True

    def close(self, view_id: str) -> bool:
        """Unmount without an exit event."""
        view = self._views.pop(view_id, None)
        if view is None:
            return False
        view.tracker.deactivate()
        return True
