"""
Tests for the per-connection outbox and close sequencing.
"""

import asyncio

import pytest

from relay_gateway.components.connection.relay_connection import (
    ConnectionState,
    RelayConnection,
)
from relay_gateway.components.core.context import sanitize_log_data
from tests.conftest import VALID_UUID, FakeWebSocket, frames_of


class TestOutbox:

    @pytest.mark.asyncio
    async def test_frames_are_written_in_order(self, connect):
        connection = connect(VALID_UUID)

        for n in range(5):
            assert connection.send_json({"n": n})

        assert [f["n"] for f in await frames_of(connection)] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_full_outbox_drops_frame(self, caplog):
        connection = RelayConnection(FakeWebSocket(), VALID_UUID, outbox_size=1)

        assert connection.send_json({"n": 1}) is True
        assert connection.send_json({"n": 2}) is False
        assert "Outbox full" in caplog.text
        await connection.finish()

    @pytest.mark.asyncio
    async def test_send_after_close_requested_is_refused(self, connect):
        connection = connect(VALID_UUID)
        connection.request_close()

        assert connection.send_json({"late": True}) is False

    @pytest.mark.asyncio
    async def test_failed_send_does_not_raise(self, connect):
        connection = connect(VALID_UUID, fail_sends=True)

        assert connection.send_json({"n": 1})
        assert await frames_of(connection) == []

    @pytest.mark.asyncio
    async def test_dead_writer_stops_accepting_frames(self, connect):
        connection = connect(VALID_UUID, fail_sends=True)
        connection.send_json({"n": 1})
        await connection.flush()

        assert connection.state is ConnectionState.CLOSING
        assert connection.send_json({"n": 2}) is False

    @pytest.mark.asyncio
    async def test_flush_after_writer_death_returns(self, connect):
        connection = connect(VALID_UUID, fail_sends=True)
        connection.send_json({"n": 1})
        await asyncio.sleep(0.01)
        connection.send_json({"n": 2})

        connection.request_close(1011)
        await asyncio.wait_for(connection.flush(), timeout=1)


class TestClose:

    @pytest.mark.asyncio
    async def test_close_follows_pending_frames(self, connect):
        connection = connect(VALID_UUID)
        connection.send_json({"n": 1})

        connection.request_close(1001, "Server shutting down")
        await connection.flush()

        assert connection.websocket.frames() == [{"n": 1}]
        assert connection.websocket.close_code == 1001
        assert connection.state is ConnectionState.CLOSING

    @pytest.mark.asyncio
    async def test_close_without_writer(self):
        connection = RelayConnection(FakeWebSocket(), VALID_UUID)

        connection.request_close(1011)
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert connection.websocket.close_code == 1011
        await connection.finish()

    @pytest.mark.asyncio
    async def test_close_without_writer_drops_pending_frames(self):
        connection = RelayConnection(FakeWebSocket(), VALID_UUID)
        connection.send_json({"n": 1})

        connection.request_close(1001)
        await asyncio.wait_for(connection.flush(), timeout=1)

        assert connection.websocket.sent == []
        await connection.finish()

    @pytest.mark.asyncio
    async def test_second_close_request_is_ignored(self, connect):
        connection = connect(VALID_UUID)

        connection.request_close(1001)
        connection.request_close(1011)
        await connection.flush()

        assert connection.websocket.close_code == 1001

    @pytest.mark.asyncio
    async def test_finish_signals_closed(self, connect):
        connection = connect(VALID_UUID)

        await connection.finish()
        await asyncio.wait_for(connection.wait_closed(), timeout=1)

        assert connection.is_closed
        assert connection.state is ConnectionState.CLOSED
        await connection.finish()

    @pytest.mark.asyncio
    async def test_observer_flag_is_one_way(self, connect):
        connection = connect(VALID_UUID)

        assert connection.mark_observer() is True
        assert connection.mark_observer() is False
        assert connection.is_observer


class TestSanitizeLogData:

    def test_short_text_is_kept(self):
        assert sanitize_log_data("hello") == "hello"

    def test_long_text_is_truncated(self):
        assert sanitize_log_data("x" * 150) == "x" * 100 + "..."

    def test_control_characters_are_stripped(self):
        assert sanitize_log_data("a\nb\x00c‮d") == "abcd"

    def test_quotes_are_escaped(self):
        assert sanitize_log_data('say "hi"\\') == 'say \\"hi\\"\\\\'

    def test_bytes_are_decoded(self):
        assert sanitize_log_data(b"\xffok") == "�ok"
