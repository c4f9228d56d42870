"""
Test Subscription Registry
==========================

Ordering, handler isolation and unsubscribe precision.

Usage:
    pytest test_subscriptions.py
"""

import pytest

from platestream_ws import LogEvent, MessageType, SubscriptionRegistry


@pytest.fixture
def registry(logger):
    return SubscriptionRegistry(logger)


def test_handlers_run_in_registration_order(registry):
    calls = []
    registry.subscribe(MessageType.STREAMING_UPDATE, lambda d: calls.append("first"))
    registry.subscribe("streaming_update", lambda d: calls.append("second"))

    assert registry.dispatch(MessageType.STREAMING_UPDATE, {}) == 2
    assert calls == ["first", "second"]


def test_dispatch_passes_data_and_ignores_other_tags(registry):
    received = []
    registry.subscribe("upload_progress", received.append)

    registry.dispatch("upload_progress", {"percent": 40})
    registry.dispatch("system_message", {"message": "hi"})

    assert received == [{"percent": 40}]


def test_failing_handler_does_not_block_the_rest(registry, log_entries):
    calls = []

    def broken(data):
        raise RuntimeError("boom")

    registry.subscribe("streaming_update", lambda d: calls.append("before"))
    registry.subscribe("streaming_update", broken)
    registry.subscribe("streaming_update", lambda d: calls.append("after"))

    assert registry.dispatch("streaming_update", {}) == 3
    assert calls == ["before", "after"]

    errors = [e for e in log_entries if e['event'] == LogEvent.HANDLER_ERROR.value]
    assert len(errors) == 1
    assert errors[0]['exception']['message'] == "boom"


def test_unsubscribe_removes_only_that_instance(registry):
    calls = []

    def h1(data):
        calls.append("h1")

    def h2(data):
        calls.append("h2")

    registry.subscribe("streaming_update", h1)
    unsubscribe_h2 = registry.subscribe("streaming_update", h2)

    unsubscribe_h2()
    registry.dispatch("streaming_update", {})

    assert calls == ["h1"]


def test_unsubscribe_uses_identity_for_duplicate_registrations(registry):
    calls = []

    def handler(data):
        calls.append(data["n"])

    first = registry.subscribe("streaming_update", handler)
    registry.subscribe("streaming_update", handler)

    first()
    registry.dispatch("streaming_update", {"n": 1})

    assert calls == [1]
    assert registry.handler_count("streaming_update") == 1


def test_unsubscribe_is_idempotent(registry):
    unsubscribe = registry.subscribe("streaming_update", lambda d: None)

    unsubscribe()
    unsubscribe()

    assert registry.handler_count("streaming_update") == 0


def test_unsubscribe_from_inside_dispatch(registry):
    calls = []
    holder = {}

    def once(data):
        calls.append("once")
        holder['unsubscribe']()

    holder['unsubscribe'] = registry.subscribe("streaming_update", once)
    registry.subscribe("streaming_update", lambda d: calls.append("always"))

    registry.dispatch("streaming_update", {})
    registry.dispatch("streaming_update", {})

    assert calls == ["once", "always", "always"]


def test_subscribe_rejects_non_callable(registry):
    with pytest.raises(TypeError):
        registry.subscribe("streaming_update", "not callable")


def test_clear_drops_everything(registry):
    registry.subscribe("a", lambda d: None)
    registry.subscribe("b", lambda d: None)

    registry.clear()

    assert registry.dispatch("a", {}) == 0
    assert registry.handler_count("b") == 0
