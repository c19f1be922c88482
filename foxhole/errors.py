from __future__ import annotations


class FoxholeError(Exception):
    """Base class for game-state failures that are reported back to a single caller."""

    reason: str = "Request rejected"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        self.reason = reason or self.reason


class Unauthorized(FoxholeError):
    reason = "Invalid or unknown session"


class OutOfBounds(FoxholeError):
    reason = "Coordinates are outside the world"


class MoveRejected(FoxholeError):
    reason = "Cannot move there"


class DuplicateUsername(FoxholeError):
    reason = "Username already exists"


class EmailTaken(FoxholeError):
    reason = "Email already in use"


class InsufficientPoints(FoxholeError):
    reason = "Not enough stat points"


class InvalidAllocation(FoxholeError):
    reason = "Stat allocations must be non-negative"


class InvalidRace(FoxholeError):
    reason = "Invalid race"


class NotFound(FoxholeError):
    reason = "Player not found"
