from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_MAX_PLAYERS = 100


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str = DEFAULT_REDIS_URL
    # Seed for first-boot world generation; None draws one from the OS.
    world_seed: int | None = None
    max_players: int = DEFAULT_MAX_PLAYERS
    session_ttl: timedelta | None = None
    # Answer a bad WebSocket auth with `auth_failed` instead of ignoring it.
    reject_bad_auth: bool = False
    admin_username: str | None = None
    admin_password: str | None = None
    bcrypt_rounds: int = 12
    log_level: str = "INFO"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().casefold() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def load_dotenv_if_present(project_root: Path | None = None) -> None:
    root = project_root or Path(__file__).resolve().parents[1]
    env_path = root / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


def settings_from_env() -> Settings:
    ttl_seconds = _env_int("FOXHOLE_SESSION_TTL_SECONDS")
    max_players = _env_int("FOXHOLE_MAX_PLAYERS")
    rounds = _env_int("FOXHOLE_BCRYPT_ROUNDS")
    return Settings(
        redis_url=os.environ.get("REDIS_URL", DEFAULT_REDIS_URL),
        world_seed=_env_int("FOXHOLE_WORLD_SEED"),
        max_players=max_players if max_players is not None else DEFAULT_MAX_PLAYERS,
        session_ttl=timedelta(seconds=ttl_seconds) if ttl_seconds else None,
        reject_bad_auth=_env_bool("FOXHOLE_REJECT_BAD_AUTH"),
        admin_username=os.environ.get("FOXHOLE_ADMIN_USERNAME") or None,
        admin_password=os.environ.get("FOXHOLE_ADMIN_PASSWORD") or None,
        bcrypt_rounds=rounds if rounds is not None else 12,
        log_level=os.environ.get("FOXHOLE_LOG_LEVEL", "INFO").upper(),
    )
