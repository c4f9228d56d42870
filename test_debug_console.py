"""
Test Debug Console
==================

Bounded log buffer fed by StructuredLogger sinks.

Usage:
    pytest test_debug_console.py
"""

import json

import pytest

from platestream_ws import DebugConsole, LogEvent


def test_records_entries_from_logger(logger):
    console = DebugConsole()
    console.attach(logger)

    logger.info(event=LogEvent.WS_CONNECTED, message="Connection open", metadata={'session_id': "s1"})
    logger.error(event=LogEvent.TRANSPORT_ERROR, message="WebSocket connection error")

    entries = console.entries()
    assert [e['event'] for e in entries] == [LogEvent.WS_CONNECTED.value, LogEvent.TRANSPORT_ERROR.value]
    assert entries[0]['metadata'] == {'session_id': "s1"}
    assert entries[0]['category'] == "websocket"


def test_capacity_drops_oldest(logger):
    console = DebugConsole(capacity=3)
    console.attach(logger)

    for i in range(5):
        logger.info(event=LogEvent.MESSAGE_SENT, message=f"msg {i}")

    assert len(console) == 3
    assert [e['message'] for e in console.entries()] == ["msg 2", "msg 3", "msg 4"]


def test_pause_and_resume(logger):
    console = DebugConsole()
    console.attach(logger)

    console.pause()
    logger.info(event=LogEvent.MESSAGE_SENT, message="dropped")
    assert console.is_paused
    console.resume()
    logger.info(event=LogEvent.MESSAGE_SENT, message="kept")

    assert [e['message'] for e in console.entries()] == ["kept"]


def test_filters_by_level_and_category(logger):
    console = DebugConsole()
    console.attach(logger)

    logger.info(event=LogEvent.WS_CONNECTED, message="open")
    logger.warning(event=LogEvent.WS_CLOSED, message="closed")
    logger.info(event=LogEvent.UPLOAD_STARTED, message="upload")

    assert [e['message'] for e in console.entries(level="warning")] == ["closed"]
    assert [e['message'] for e in console.entries(category="websocket")] == ["open", "closed"]


def test_detach_and_clear(logger):
    console = DebugConsole()
    detach = console.attach(logger)

    logger.info(event=LogEvent.MESSAGE_SENT, message="one")
    detach()
    logger.info(event=LogEvent.MESSAGE_SENT, message="two")
    assert len(console) == 1

    console.clear()
    assert console.entries() == []


def test_export_json(logger, tmp_path):
    console = DebugConsole()
    console.attach(logger)
    logger.info(event=LogEvent.WS_CONNECTED, message="open")

    path = console.export_json(tmp_path / "debug" / "log.json")

    exported = json.loads(path.read_text(encoding='utf-8'))
    assert exported[0]['message'] == "open"


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        DebugConsole(capacity=0)
