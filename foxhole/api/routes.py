from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from foxhole.api.deps import get_game_runtime, require_admin_session
from foxhole.api.models import (
    AdminStatsResponse,
    AvatarRequest,
    ChatEntry,
    EmailRequest,
    LogEntry,
    LoginRequest,
    LoginResponse,
    PlayerResponse,
    PublicPlayer,
    RaceResponse,
    RegisterRequest,
    RegisterResponse,
    SessionRequest,
    Settlement,
    StatAllocationRequest,
    XpRequest,
    XpResponse,
)
from foxhole.errors import (
    DuplicateUsername,
    EmailTaken,
    FoxholeError,
    InsufficientPoints,
    InvalidAllocation,
    InvalidRace,
    NotFound,
    Unauthorized,
)
from foxhole.identity import hash_password, verify_credentials
from foxhole.races import RACE_SPECS, get_race
from foxhole.runtime import GameRuntime
from foxhole.sessions import Session

logger = logging.getLogger(__name__)

router = APIRouter()

_BAD_REQUEST_ERRORS = (DuplicateUsername, EmailTaken, InsufficientPoints, InvalidAllocation, InvalidRace)


def _http_error(e: FoxholeError) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.reason)
    if isinstance(e, Unauthorized):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    if isinstance(e, _BAD_REQUEST_ERRORS):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.reason)


def _authorize_for_player(runtime: GameRuntime, session_id: str, username: str) -> Session:
    """The session must belong to `username`, or to an admin."""

    try:
        session = runtime.sessions.resolve(session_id)
    except Unauthorized as e:
        raise _http_error(e) from e
    if session.username != username and not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return session


@router.websocket("/ws")
async def game_ws(websocket: WebSocket, runtime: GameRuntime = Depends(get_game_runtime)) -> None:
    handle = await runtime.hub.accept(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # Clients may send JSON as text or binary frames.
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                logger.warning("Dropping empty frame on %s", handle.connection_id)
                continue
            await runtime.router.handle_text(handle, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await runtime.router.close(handle)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/api/register", response_model=RegisterResponse)
async def register_route(payload: RegisterRequest, runtime: GameRuntime = Depends(get_game_runtime)) -> RegisterResponse:
    try:
        get_race(payload.race)
        if runtime.players.exists(payload.username):
            raise DuplicateUsername()
        password_hash = await asyncio.to_thread(
            hash_password, payload.password, rounds=runtime.settings.bcrypt_rounds
        )
        await runtime.players.register(payload.username, password_hash, payload.race, email=payload.email)
    except FoxholeError as e:
        logger.info("Registration rejected for %s: %s", payload.username, e.reason)
        raise _http_error(e) from e

    return RegisterResponse(message="Character created successfully!")


@router.post("/api/login", response_model=LoginResponse)
async def login_route(payload: LoginRequest, runtime: GameRuntime = Depends(get_game_runtime)) -> LoginResponse:
    valid = await asyncio.to_thread(verify_credentials, runtime.players, payload.username, payload.password)
    if not valid:
        logger.warning("Login failed for %s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    max_players = runtime.settings.max_players
    if runtime.hub.online_count() >= max_players:
        logger.warning("Login refused for %s: server full", payload.username)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Server is full (max {max_players} players)",
        )

    player = runtime.players.get(payload.username)
    session_id = runtime.sessions.create_session(player.username, is_admin=player.is_admin)
    logger.info("Login succeeded for %s", player.username)
    return LoginResponse(session_id=session_id, player=player.public())


@router.post("/api/logout")
async def logout_route(payload: SessionRequest, runtime: GameRuntime = Depends(get_game_runtime)) -> dict[str, bool]:
    return {"success": runtime.sessions.revoke(payload.session_id)}


@router.get("/api/player/{username}", response_model=PublicPlayer)
async def get_player_route(username: str, runtime: GameRuntime = Depends(get_game_runtime)) -> PublicPlayer:
    try:
        return runtime.players.get(username).public()
    except NotFound as e:
        raise _http_error(e) from e


@router.post("/api/player/{username}/avatar", response_model=PlayerResponse)
async def avatar_route(
    username: str,
    payload: AvatarRequest,
    runtime: GameRuntime = Depends(get_game_runtime),
) -> PlayerResponse:
    _authorize_for_player(runtime, payload.session_id, username)
    try:
        player = await runtime.players.set_avatar_ref(username, payload.avatar)
    except FoxholeError as e:
        raise _http_error(e) from e
    return PlayerResponse(player=player.public())


@router.post("/api/player/{username}/email", response_model=PlayerResponse)
async def email_route(
    username: str,
    payload: EmailRequest,
    runtime: GameRuntime = Depends(get_game_runtime),
) -> PlayerResponse:
    _authorize_for_player(runtime, payload.session_id, username)
    try:
        player = await runtime.players.set_email(username, payload.email)
    except FoxholeError as e:
        raise _http_error(e) from e
    return PlayerResponse(player=player.public())


@router.post("/api/player/{username}/xp", response_model=XpResponse)
async def xp_route(username: str, payload: XpRequest, runtime: GameRuntime = Depends(get_game_runtime)) -> XpResponse:
    _authorize_for_player(runtime, payload.session_id, username)
    try:
        grant = await runtime.players.grant_xp(username, payload.amount)
    except FoxholeError as e:
        raise _http_error(e) from e

    return XpResponse(player=grant.player.public(), bonus_xp=grant.bonus_xp, level_ups=grant.level_ups)


@router.post("/api/player/{username}/stats", response_model=PlayerResponse)
async def allocate_stats_route(
    username: str,
    payload: StatAllocationRequest,
    runtime: GameRuntime = Depends(get_game_runtime),
) -> PlayerResponse:
    _authorize_for_player(runtime, payload.session_id, username)
    deltas = payload.model_dump(include={"strength", "intelligence", "speed", "luck"})
    try:
        player = await runtime.players.allocate_stats(username, deltas)
    except FoxholeError as e:
        raise _http_error(e) from e
    return PlayerResponse(player=player.public())


@router.get("/api/races", response_model=dict[str, RaceResponse])
async def races_route() -> dict[str, RaceResponse]:
    return {
        name.value: RaceResponse(name=spec.display_name, description=spec.description, bonuses=spec.bonuses())
        for name, spec in RACE_SPECS.items()
    }


@router.get("/api/settlements", response_model=list[Settlement])
async def settlements_route(runtime: GameRuntime = Depends(get_game_runtime)) -> list[Settlement]:
    return runtime.world.settlements()


@router.get("/api/chat", response_model=list[ChatEntry])
async def chat_history_route(limit: int = 50, runtime: GameRuntime = Depends(get_game_runtime)) -> list[ChatEntry]:
    if limit < 0 or limit > 100:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="limit must be 0..100")
    return runtime.chat.recent(limit)


@router.get("/api/admin/stats", response_model=AdminStatsResponse)
async def admin_stats_route(
    _: Session = Depends(require_admin_session),
    runtime: GameRuntime = Depends(get_game_runtime),
) -> AdminStatsResponse:
    return AdminStatsResponse(
        total_players=runtime.players.count(),
        online_players=runtime.hub.online_count(),
        settlements=runtime.world.settlements(),
        max_players=runtime.settings.max_players,
    )


@router.get("/api/admin/players", response_model=list[PublicPlayer])
async def admin_players_route(
    _: Session = Depends(require_admin_session),
    runtime: GameRuntime = Depends(get_game_runtime),
) -> list[PublicPlayer]:
    return [p.public() for p in runtime.players.list_players()]


@router.get("/api/admin/logs", response_model=list[LogEntry])
async def admin_logs_route(
    limit: int = 200,
    _: Session = Depends(require_admin_session),
    runtime: GameRuntime = Depends(get_game_runtime),
) -> list[LogEntry]:
    if limit < 1 or limit > 1000:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="limit must be 1..1000")
    return runtime.server_log.entries(limit)
