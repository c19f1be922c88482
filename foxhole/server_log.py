from __future__ import annotations

import logging
from collections import deque

from foxhole.api.models import LogEntry

SERVER_LOG_LIMIT = 1000
SERVER_LOGGER_NAME = "foxhole"


class ServerLogBuffer(logging.Handler):
    """Keeps the most recent log records in memory for the admin log view."""

    def __init__(self, *, limit: int = SERVER_LOG_LIMIT, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._entries: deque[LogEntry] = deque(maxlen=limit)
        self.setFormatter(logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self._entries.append(
            LogEntry(timestamp=int(record.created * 1000), level=record.levelname.lower(), message=message)
        )

    def entries(self, limit: int | None = None) -> list[LogEntry]:
        self.acquire()
        try:
            entries = list(self._entries)
        finally:
            self.release()
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries


def install_server_log(buffer: ServerLogBuffer) -> None:
    logger = logging.getLogger(SERVER_LOGGER_NAME)
    if buffer not in logger.handlers:
        logger.addHandler(buffer)
    if logger.level == logging.NOTSET or logger.level > buffer.level:
        logger.setLevel(buffer.level)


def uninstall_server_log(buffer: ServerLogBuffer) -> None:
    logging.getLogger(SERVER_LOGGER_NAME).removeHandler(buffer)
