from __future__ import annotations

import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from foxhole.errors import Unauthorized


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class Session:
    token: str
    username: str
    is_admin: bool
    created_at: datetime


class SessionRegistry:
    """Maps opaque session tokens to identities.

    One player may hold any number of concurrent sessions. Sessions never expire
    unless a `ttl` is configured.
    """

    def __init__(self, *, ttl: timedelta | None = None, clock: Callable[[], datetime] = _now) -> None:
        self._sessions: dict[str, Session] = {}
        self._ttl = ttl
        self._clock = clock
        # Login runs in the HTTP threadpool as well as on the event loop.
        self._lock = threading.Lock()

    def create_session(self, username: str, is_admin: bool = False) -> str:
        token = secrets.token_urlsafe(32)
        session = Session(token=token, username=username, is_admin=is_admin, created_at=self._clock())
        with self._lock:
            self._sessions[token] = session
        return token

    def resolve(self, token: str | None) -> Session:
        if not token:
            raise Unauthorized("Missing session token")
        with self._lock:
            session = self._sessions.get(token)
            if session is not None and self._is_expired(session):
                del self._sessions[token]
                session = None
        if session is None:
            raise Unauthorized()
        return session

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_expired(self, session: Session) -> bool:
        return self._ttl is not None and self._clock() - session.created_at >= self._ttl
