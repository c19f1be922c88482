from __future__ import annotations

import logging
from collections.abc import Generator

import pytest

from foxhole.server_log import SERVER_LOG_LIMIT, ServerLogBuffer


@pytest.fixture()
def buffer() -> Generator[ServerLogBuffer, None, None]:
    buf = ServerLogBuffer()
    log = logging.getLogger("foxhole.test_server_log")
    log.addHandler(buf)
    log.setLevel(logging.DEBUG)
    yield buf
    log.removeHandler(buf)


def test_keeps_only_latest_records(buffer: ServerLogBuffer) -> None:
    log = logging.getLogger("foxhole.test_server_log")
    for i in range(SERVER_LOG_LIMIT + 5):
        log.info("event %d", i)

    entries = buffer.entries()
    assert SERVER_LOG_LIMIT == 1000
    assert len(entries) == 1000
    assert entries[0].message == "event 5"
    assert entries[-1].message == "event 1004"


def test_entry_shape_and_level_filter(buffer: ServerLogBuffer) -> None:
    log = logging.getLogger("foxhole.test_server_log")
    log.debug("too chatty")
    log.warning("Login failed for %s", "ann")

    entries = buffer.entries()
    assert [(e.level, e.message) for e in entries] == [("warning", "Login failed for ann")]
    assert entries[0].timestamp > 1_000_000_000_000


def test_entries_limit(buffer: ServerLogBuffer) -> None:
    log = logging.getLogger("foxhole.test_server_log")
    for i in range(3):
        log.info("event %d", i)

    assert [e.message for e in buffer.entries(2)] == ["event 1", "event 2"]
    assert buffer.entries(0) == []
