"""
Unit tests for the transport boundary: event emitter and disconnect
classification.
"""

import pytest

from nexusbot.transport.disconnect import (
    DisconnectCategory,
    DisconnectReason,
    classify_disconnect,
    describe_reason,
)
from nexusbot.transport.events import CONNECTION_UPDATE, EventEmitter


class TestClassifyDisconnect:
    def test_logout_is_terminal(self):
        assert classify_disconnect(DisconnectReason.LOGGED_OUT) is DisconnectCategory.TERMINAL
        assert classify_disconnect(401) is DisconnectCategory.TERMINAL

    @pytest.mark.parametrize("status_code", [428, 408, 440, 500, 515, 411, 403, 503, 999, 0, None])
    def test_everything_else_is_retryable(self, status_code):
        assert classify_disconnect(status_code) is DisconnectCategory.RETRYABLE

    def test_configured_codes_become_terminal(self):
        assert classify_disconnect(403, frozenset({403})) is DisconnectCategory.TERMINAL
        assert classify_disconnect(428, frozenset({403})) is DisconnectCategory.RETRYABLE

    def test_configured_codes_never_make_logout_retryable(self):
        assert classify_disconnect(401, frozenset({403})) is DisconnectCategory.TERMINAL

    def test_describe_reason(self):
        assert describe_reason(401) == "LOGGED_OUT"
        assert describe_reason(515) == "RESTART_REQUIRED"
        assert describe_reason(999) == "UNKNOWN(999)"
        assert describe_reason(None) == "UNKNOWN"


class TestEventEmitter:
    async def test_listeners_called_in_registration_order(self):
        ev = EventEmitter()
        calls = []

        async def first(payload):
            calls.append(("first", payload))

        def second(payload):
            calls.append(("second", payload))

        ev.on(CONNECTION_UPDATE, first)
        ev.on(CONNECTION_UPDATE, second)

        delivered = await ev.emit(CONNECTION_UPDATE, "p")

        assert delivered == 2
        assert calls == [("first", "p"), ("second", "p")]

    async def test_failing_listener_does_not_stop_others(self):
        ev = EventEmitter()
        calls = []

        def broken(payload):
            raise RuntimeError("boom")

        ev.on(CONNECTION_UPDATE, broken)
        ev.on(CONNECTION_UPDATE, calls.append)

        delivered = await ev.emit(CONNECTION_UPDATE, "p")

        assert delivered == 1
        assert calls == ["p"]

    async def test_off_removes_listener(self):
        ev = EventEmitter()
        calls = []
        ev.on(CONNECTION_UPDATE, calls.append)

        assert ev.off(CONNECTION_UPDATE, calls.append) is True
        assert ev.off(CONNECTION_UPDATE, calls.append) is False
        await ev.emit(CONNECTION_UPDATE, "p")

        assert calls == []
        assert ev.listener_count(CONNECTION_UPDATE) == 0

    async def test_emit_without_listeners(self):
        assert await EventEmitter().emit("unknown.event", None) == 0

    def test_remove_all_listeners(self):
        ev = EventEmitter()
        ev.on("a", print)
        ev.on("b", print)

        ev.remove_all_listeners("a")
        assert ev.listener_count("a") == 0
        assert ev.listener_count("b") == 1

        ev.remove_all_listeners()
        assert ev.listener_count("b") == 0
