"""
Tests for LogSession and QueuedSocket
"""
import json
from unittest.mock import AsyncMock

import pytest

from xviz.services.io.formats import XVIZFormat
from xviz.services.websocket.sender import XVIZWebsocketSender
from xviz.services.websocket.session import LogSession, QueuedSocket


def make_session(provider, format=XVIZFormat.JSON_STRING):
    websocket = AsyncMock()
    socket = QueuedSocket(websocket)
    sender = XVIZWebsocketSender(socket, format=format)
    return LogSession(websocket, provider, sender, socket), websocket


class TestQueuedSocket:
    """Test suite for QueuedSocket"""

    @pytest.mark.asyncio
    async def test_flush_sends_text_and_bytes(self):
        websocket = AsyncMock()
        socket = QueuedSocket(websocket)

        socket.send("text")
        socket.send(b"bytes")
        await socket.flush()

        websocket.send_text.assert_awaited_once_with("text")
        websocket.send_bytes.assert_awaited_once_with(b"bytes")
        assert socket.pending == []


class TestLogSession:
    """Test suite for LogSession"""

    @pytest.mark.asyncio
    async def test_run_sends_all_frames(self, memory_provider):
        session, websocket = make_session(memory_provider)

        sent = await session.run(request_id="req-1")

        assert sent == 3
        texts = [json.loads(call.args[0]) for call in websocket.send_text.await_args_list]
        assert texts[0]["type"] == "xviz/metadata"
        assert [t["type"] for t in texts[1:4]] == ["xviz/state_update"] * 3
        assert texts[4] == {"type": "xviz/transform_log_done", "data": {"id": "req-1"}}

    @pytest.mark.asyncio
    async def test_run_binary(self, memory_provider):
        session, websocket = make_session(memory_provider, format=XVIZFormat.BINARY)

        await session.run()

        assert websocket.send_bytes.await_count == 4
        websocket.send_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_without_provider(self):
        session, websocket = make_session(None)

        sent = await session.run()

        assert sent == 0
        message = json.loads(websocket.send_text.await_args.args[0])
        assert message["type"] == "xviz/error"

    @pytest.mark.asyncio
    async def test_run_outside_log_range(self, memory_provider):
        session, websocket = make_session(memory_provider)

        sent = await session.run(start_time=5000.0, end_time=6000.0)

        assert sent == 0
        message = json.loads(websocket.send_text.await_args.args[0])
        assert "No frames found" in message["data"]["message"]
