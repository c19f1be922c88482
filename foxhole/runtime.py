from __future__ import annotations

import logging
import random
from dataclasses import dataclass

import redis

from foxhole.chat import ChatHistory
from foxhole.config import Settings, settings_from_env
from foxhole.game_store import LoadedState, PlayerWriter, load_world_and_players, save_all, save_world
from foxhole.identity import hash_password
from foxhole.infra.redis_client import create_redis
from foxhole.players import PlayerRegistry
from foxhole.router import MessageRouter
from foxhole.server_log import ServerLogBuffer, install_server_log, uninstall_server_log
from foxhole.sessions import SessionRegistry
from foxhole.websocket_hub import ConnectionManager
from foxhole.world.generator import generate_world
from foxhole.world.store import WorldStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class GameRuntime:
    """Everything that lives from process start to process stop."""

    settings: Settings
    r: redis.Redis
    world: WorldStore
    players: PlayerRegistry
    sessions: SessionRegistry
    hub: ConnectionManager
    chat: ChatHistory
    router: MessageRouter
    server_log: ServerLogBuffer


_RUNTIME: GameRuntime | None = None


def boot_world(*, r: redis.Redis, state: LoadedState, seed: int | None = None) -> WorldStore:
    """Use the persisted world, generating and saving one on first boot."""

    if state.world is not None:
        world = WorldStore.from_snapshot(state.world)
        logger.info("Loaded %dx%d world with %d settlements", world.size, world.size, len(world.settlements()))
        return world

    if seed is None:
        seed = random.SystemRandom().randint(1, 2**31 - 1)
    world = WorldStore.from_generated(generate_world(rng=random.Random(seed)))
    save_world(r=r, world=world.to_snapshot())
    logger.info(
        "Generated new %dx%d world (seed=%d) with %d settlements",
        world.size,
        world.size,
        seed,
        len(world.settlements()),
    )
    return world


def build_runtime(*, r: redis.Redis, settings: Settings, rng: random.Random | None = None) -> GameRuntime:
    server_log = ServerLogBuffer()
    install_server_log(server_log)

    state = load_world_and_players(r=r)
    world = boot_world(r=r, state=state, seed=settings.world_seed)
    players = PlayerRegistry(world=world, writer=PlayerWriter(r=r), players=state.players, rng=rng)

    if settings.admin_username and settings.admin_password:
        players.ensure_admin(
            settings.admin_username,
            hash_password(settings.admin_password, rounds=settings.bcrypt_rounds),
        )

    sessions = SessionRegistry(ttl=settings.session_ttl)
    hub = ConnectionManager()
    chat = ChatHistory()
    router = MessageRouter(
        world=world,
        players=players,
        sessions=sessions,
        hub=hub,
        chat=chat,
        reject_bad_auth=settings.reject_bad_auth,
    )

    logger.info(
        "Foxhole server booted: %d players, max %d online, %dx%d map",
        players.count(),
        settings.max_players,
        world.size,
        world.size,
    )
    return GameRuntime(
        settings=settings,
        r=r,
        world=world,
        players=players,
        sessions=sessions,
        hub=hub,
        chat=chat,
        router=router,
        server_log=server_log,
    )


def init_runtime(
    *,
    r: redis.Redis | None = None,
    settings: Settings | None = None,
    rng: random.Random | None = None,
) -> GameRuntime:
    """Build the runtime once and cache it.

    Safe to call multiple times; subsequent calls return the already built instance.
    """

    global _RUNTIME
    if _RUNTIME is None:
        settings = settings or settings_from_env()
        _RUNTIME = build_runtime(r=r if r is not None else create_redis(settings.redis_url), settings=settings, rng=rng)
    return _RUNTIME


def flush_runtime(runtime: GameRuntime) -> None:
    """Write the world and every player in one pipeline; used on shutdown."""

    try:
        save_all(r=runtime.r, world=runtime.world.to_snapshot(), players=runtime.players.list_players())
    except redis.RedisError:
        logger.exception("Final save failed")
        return
    logger.info("Saved world and %d players", runtime.players.count())


def reset_runtime_for_tests() -> None:
    """Drop the cached runtime so tests can boot against a fresh store."""

    global _RUNTIME
    if _RUNTIME is not None:
        uninstall_server_log(_RUNTIME.server_log)
    _RUNTIME = None


def get_runtime() -> GameRuntime:
    if _RUNTIME is None:
        raise RuntimeError("Runtime not initialized. Call init_runtime() at startup.")
    return _RUNTIME
