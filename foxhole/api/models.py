from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire (the browser client speaks camelCase)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TileType(StrEnum):
    water = "water"
    grass = "grass"
    forest = "forest"
    mountain = "mountain"
    beach = "beach"


class Tile(WireModel):
    model_config = ConfigDict(frozen=True)

    type: TileType = TileType.water
    island_id: int | None = None

    # Written once, when a settlement is placed on this tile.
    settlement: str | None = None


class Settlement(WireModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    x: int
    y: int
    island_id: int | None = None


class RegionTile(WireModel):
    x: int
    y: int
    tile: Tile


class Stats(WireModel):
    strength: int = 10
    intelligence: int = 10
    speed: int = 10
    luck: int = 10


class PublicPlayer(WireModel):
    username: str
    email: str | None = None
    race: str
    level: int = Field(1, ge=1)
    xp: int = Field(0, ge=0)
    stat_points: int = Field(0, ge=0)
    stats: Stats = Field(default_factory=Stats)
    x: int
    y: int
    avatar: str = "/images/default-avatar.png"
    is_admin: bool = False
    created_at: datetime


class Player(PublicPlayer):
    """Authoritative player record. Never sent to clients as-is."""

    password_hash: str

    def public(self) -> PublicPlayer:
        return PublicPlayer.model_validate(self.model_dump(exclude={"password_hash"}))


class ChatEntry(WireModel):
    sender: str
    message: str
    # Milliseconds since the epoch, like the browser's Date.now().
    timestamp: int


class WorldSnapshot(WireModel):
    size: int
    tiles: list[list[Tile]]
    settlements: list[Settlement] = Field(default_factory=list)


# --- inbound WebSocket messages ---


class AuthMessage(WireModel):
    type: Literal["auth"]
    token: str = Field(validation_alias=AliasChoices("token", "sessionId", "session_id"))


class MoveMessage(WireModel):
    type: Literal["move"]
    x: int
    y: int


class ChatMessage(WireModel):
    type: Literal["chat"]
    message: str = Field(..., min_length=1, max_length=500)


class GetMapMessage(WireModel):
    type: Literal["get_map"]
    # Defaults to the player's own position.
    x: int | None = None
    y: int | None = None
    radius: int = Field(10, ge=0)


InboundMessage = Annotated[
    AuthMessage | MoveMessage | ChatMessage | GetMapMessage,
    Field(discriminator="type"),
]

inbound_message_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


# --- outbound WebSocket events ---


class AuthSuccessEvent(WireModel):
    type: Literal["auth_success"] = "auth_success"
    player: PublicPlayer


class AuthFailedEvent(WireModel):
    type: Literal["auth_failed"] = "auth_failed"
    reason: str


class MoveSuccessEvent(WireModel):
    type: Literal["move_success"] = "move_success"
    x: int
    y: int
    tile: Tile


class MoveFailedEvent(WireModel):
    type: Literal["move_failed"] = "move_failed"
    reason: str


class ChatEvent(WireModel):
    type: Literal["chat"] = "chat"
    sender: str
    message: str
    timestamp: int


class MapDataEvent(WireModel):
    type: Literal["map_data"] = "map_data"
    data: list[RegionTile]


OutboundEvent = AuthSuccessEvent | AuthFailedEvent | MoveSuccessEvent | MoveFailedEvent | ChatEvent | MapDataEvent


# --- HTTP requests / responses ---


class RegisterRequest(WireModel):
    username: str = Field(..., min_length=1, max_length=32, pattern=r"^[A-Za-z0-9_\-]+$")
    password: str = Field(..., min_length=1, max_length=128)
    race: str
    email: str | None = Field(None, max_length=254)


class RegisterResponse(WireModel):
    success: bool = True
    message: str


class LoginRequest(WireModel):
    username: str
    password: str


class LoginResponse(WireModel):
    success: bool = True
    session_id: str
    player: PublicPlayer


class SessionRequest(WireModel):
    session_id: str


class AvatarRequest(SessionRequest):
    # Opaque reference produced by the upload handler.
    avatar: str = Field(..., min_length=1, max_length=512)


class EmailRequest(SessionRequest):
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")


class XpRequest(SessionRequest):
    amount: int = Field(..., ge=0)


class StatAllocationRequest(SessionRequest):
    strength: int = 0
    intelligence: int = 0
    speed: int = 0
    luck: int = 0


class PlayerResponse(WireModel):
    success: bool = True
    player: PublicPlayer


class XpResponse(PlayerResponse):
    bonus_xp: int = 0
    level_ups: int = 0


class RaceResponse(WireModel):
    name: str
    description: str
    bonuses: Stats


class AdminStatsResponse(WireModel):
    total_players: int
    online_players: int
    settlements: list[Settlement]
    max_players: int


class LogEntry(WireModel):
    timestamp: int
    level: str
    message: str
