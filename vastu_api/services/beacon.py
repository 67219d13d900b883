"""
Beacon transport — best-effort, non-blocking JSON POST.

Used only for page-teardown analytics. ``send`` schedules the POST on the
running loop and returns immediately; the caller never awaits delivery and
the request that triggered it can finish first. Events may be dropped.
The registration insert must never go through here.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

logger = logging.getLogger("analytics.beacon")


class BeaconTransport:
    def __init__(self, endpoint: str, timeout: float = 10.0):
        self.endpoint = endpoint
        self._timeout = timeout
        self._pending: set[asyncio.Task] = set()

    def send(self, payload: dict) -> bool:
        """Queue ``payload`` for delivery. Returns False if it could not be queued."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Beacon dropped — no running event loop")
            return False

        task = loop.create_task(self._post(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _post(self, payload: dict) -> bool:
        try:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json=payload) as resp:
                    if resp.status < 300:
                        logger.debug("Beacon delivered (%s)", payload.get("event_type"))
                        return True
                    body = await resp.text()
                    logger.error("Beacon rejected %s: %s", resp.status, body[:200])
                    return False
        except Exception as e:
            logger.error("Beacon failed: %s", e)
            return False

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight beacons. Used on shutdown and in tests."""
        if not self._pending:
            return
        done, not_done = await asyncio.wait(list(self._pending), timeout=timeout)
        if not_done:
            logger.warning("%d beacon(s) still in flight at shutdown", len(not_done))
