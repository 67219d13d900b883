"""
Session identity — one id per browser session, created lazily.

The id lives in session-scoped storage (a cookie with no expiry in the web
layer) and is handed to the analytics tracker as an explicit
``SessionContext`` rather than read from ambient state.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

SESSION_KEY = "analytics_session_id"
_BASE36 = string.digits + string.ascii_lowercase


def random_suffix(length: int = 6) -> str:
    """Random lowercase base36 string."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def timestamped_id(now: Optional[float] = None, suffix_length: int = 6) -> str:
    """``<epoch-millis>-<base36>`` — shared by session ids and upload keys."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{millis}-{random_suffix(suffix_length)}"


class SessionStorageError(RuntimeError):
    """Session storage cannot be read or written."""


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemorySessionStorage:
    """Dict-backed storage. ``clear()`` simulates a fresh browser session."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def clear(self) -> None:
        self._items.clear()


class CookieSessionStorage:
    """
    Storage backed by the request's cookies.

    Writes are buffered and copied onto the outgoing response by
    ``write_to``. Cookies are set without Max-Age so the browser drops them
    when the session ends.
    """

    def __init__(self, cookies: dict[str, str], *, secure: bool = False) -> None:
        self._cookies = dict(cookies)
        self._pending: dict[str, str] = {}
        self._secure = secure

    def get_item(self, key: str) -> Optional[str]:
        return self._pending.get(key) or self._cookies.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._pending[key] = value

    def write_to(self, response) -> None:
        for key, value in self._pending.items():
            response.set_cookie(
                key,
                value,
                httponly=True,
                samesite="lax",
                secure=self._secure,
            )


@dataclass(frozen=True)
class SessionContext:
    id: str


class SessionIdentityProvider:
    """Create-if-absent, persist, never mutate."""

    def __init__(self, storage: SessionStorage, key: str = SESSION_KEY) -> None:
        self._storage = storage
        self._key = key

    def get_session_id(self) -> str:
        try:
            existing = self._storage.get_item(self._key)
        except SessionStorageError as exc:
            logger.warning("Session storage unavailable (%s) — using a transient id", exc)
            return timestamped_id()

        if existing:
            return existing

        session_id = timestamped_id()
        try:
            self._storage.set_item(self._key, session_id)
        except SessionStorageError as exc:
            logger.warning("Could not persist session id (%s) — id is transient", exc)
        else:
            logger.info("New analytics session %s", session_id)
        return session_id

    def context(self) -> SessionContext:
        return SessionContext(id=self.get_session_id())
