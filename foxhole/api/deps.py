from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status

from foxhole.errors import Unauthorized
from foxhole.runtime import GameRuntime, get_runtime
from foxhole.sessions import Session


def get_game_runtime() -> GameRuntime:
    return get_runtime()


def require_admin_session(
    x_session_id: str | None = Header(default=None, alias="X-Session-Id"),
    runtime: GameRuntime = Depends(get_game_runtime),
) -> Session:
    try:
        session = runtime.sessions.resolve(x_session_id)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.reason) from e
    if not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return session
