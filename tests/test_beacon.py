"""
Tests for the beacon transport — non-blocking dispatch, delivery,
failures logged not raised.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from vastu_api.services.beacon import BeaconTransport

ENDPOINT = "https://test.firebaseio.com/page_analytics.json"
PAYLOAD = {"session_id": "s-1", "event_type": "exit", "time_on_page": 42}


def _mock_client_session(status: int = 200, body: str = "", error: Exception | None = None):
    """Return (ClientSession replacement, inner session mock)."""
    resp = MagicMock()
    resp.status = status
    resp.text = AsyncMock(return_value=body)

    post_ctx = MagicMock()
    post_ctx.__aenter__ = AsyncMock(return_value=resp)
    post_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if error is not None:
        session.post = MagicMock(side_effect=error)
    else:
        session.post = MagicMock(return_value=post_ctx)

    session_ctx = MagicMock()
    session_ctx.__aenter__ = AsyncMock(return_value=session)
    session_ctx.__aexit__ = AsyncMock(return_value=False)

    return MagicMock(return_value=session_ctx), session


class TestBeaconTransport:
    def test_send_without_loop_is_dropped(self):
        assert BeaconTransport(ENDPOINT).send(PAYLOAD) is False

    async def test_send_returns_before_delivery(self):
        factory, session = _mock_client_session()
        beacon = BeaconTransport(ENDPOINT)

        with patch("vastu_api.services.beacon.aiohttp.ClientSession", factory):
            assert beacon.send(PAYLOAD) is True
            assert beacon.pending == 1
            assert not session.post.called

            await beacon.drain()

        session.post.assert_called_once_with(ENDPOINT, json=PAYLOAD)
        assert beacon.pending == 0

    async def test_post_success(self):
        factory, _ = _mock_client_session(status=200)
        with patch("vastu_api.services.beacon.aiohttp.ClientSession", factory):
            assert await BeaconTransport(ENDPOINT)._post(PAYLOAD) is True

    async def test_post_rejected(self):
        factory, _ = _mock_client_session(status=401, body="Permission denied")
        with patch("vastu_api.services.beacon.aiohttp.ClientSession", factory):
            assert await BeaconTransport(ENDPOINT)._post(PAYLOAD) is False

    async def test_post_network_error(self):
        factory, _ = _mock_client_session(error=aiohttp.ClientConnectionError("refused"))
        with patch("vastu_api.services.beacon.aiohttp.ClientSession", factory):
            assert await BeaconTransport(ENDPOINT)._post(PAYLOAD) is False

    async def test_timeout_is_applied(self):
        factory, _ = _mock_client_session()
        with patch("vastu_api.services.beacon.aiohttp.ClientSession", factory):
            await BeaconTransport(ENDPOINT, timeout=3.0)._post(PAYLOAD)

        timeout = factory.call_args.kwargs["timeout"]
        assert timeout.total == 3.0

    async def test_drain_with_nothing_pending(self):
        await BeaconTransport(ENDPOINT).drain(timeout=0.1)


class TestBeaconEndpoint:
    def test_default_endpoint(self, mock_settings):
        assert mock_settings.beacon_endpoint == "https://test.firebaseio.com/page_analytics.json"

    def test_endpoint_with_secret(self, mock_settings):
        mock_settings.firebase_db_secret = "s3cret"
        assert mock_settings.beacon_endpoint.endswith("/page_analytics.json?auth=s3cret")
