from __future__ import annotations

import time
from collections import deque

from foxhole.api.models import ChatEntry

CHAT_HISTORY_LIMIT = 100
SYSTEM_SENDER = "System"


def now_ms() -> int:
    return int(time.time() * 1000)


class ChatHistory:
    """Recent chat, oldest dropped first. Transient; never persisted."""

    def __init__(self, *, limit: int = CHAT_HISTORY_LIMIT) -> None:
        self._entries: deque[ChatEntry] = deque(maxlen=limit)

    def append(self, *, sender: str, message: str, timestamp: int | None = None) -> ChatEntry:
        entry = ChatEntry(sender=sender, message=message, timestamp=timestamp if timestamp is not None else now_ms())
        self._entries.append(entry)
        return entry

    def recent(self, limit: int | None = None) -> list[ChatEntry]:
        entries = list(self._entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def __len__(self) -> int:
        return len(self._entries)
