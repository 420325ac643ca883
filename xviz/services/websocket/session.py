import asyncio
import logging
from typing import Any, List, Optional

from fastapi import WebSocket

from xviz.services.io.data import XVIZData
from xviz.services.io.provider import XVIZBaseProvider
from .sender import XVIZWebsocketSender

logger = logging.getLogger(__name__)


class QueuedSocket:
    """
    Synchronous socket facade for an async websocket.

    The sender writes synchronously; queued payloads are delivered with
    :meth:`flush` from the event loop.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.pending: List[Any] = []

    def send(self, data: Any) -> None:
        self.pending.append(data)

    async def flush(self) -> None:
        pending, self.pending = self.pending, []
        for item in pending:
            if isinstance(item, str):
                await self.websocket.send_text(item)
            else:
                await self.websocket.send_bytes(bytes(item))


def _envelope(msg_type: str, data: dict) -> XVIZData:
    return XVIZData({"type": f"xviz/{msg_type}", "data": data})


class LogSession:
    """Streams one log from a provider to one websocket client."""

    def __init__(
        self,
        websocket: WebSocket,
        provider: Optional[XVIZBaseProvider],
        sender: XVIZWebsocketSender,
        socket: QueuedSocket,
        frame_delay: float = 0.0,
    ):
        self.websocket = websocket
        self.provider = provider
        self.sender = sender
        self.socket = socket
        self.frame_delay = frame_delay

    async def send_error(self, message: str) -> None:
        logger.warning(f"Log session error: {message}")
        self.sender.on_error(_envelope("error", {"message": message}))
        await self.socket.flush()

    async def run(self, start_time: Optional[float] = None, end_time: Optional[float] = None, request_id: Any = None) -> int:
        """
        Sends metadata, every frame in the requested range and a
        ``transform_log_done`` notice.

        Returns:
            Number of frames sent
        """
        if self.provider is None or not self.provider.valid():
            await self.send_error("No valid XVIZ data provider is configured")
            return 0

        iterator = self.provider.get_frame_iterator(start_time, end_time)
        if iterator is None:
            await self.send_error(f"No frames found between {start_time} and {end_time}")
            return 0

        self.sender.on_metadata(self.provider.xviz_metadata())
        await self.socket.flush()

        sent = 0
        while iterator.valid():
            frame = self.provider.xviz_frame(iterator)
            if frame is None:
                continue

            self.sender.on_state_update(frame)
            await self.socket.flush()
            sent += 1

            if self.frame_delay > 0:
                await asyncio.sleep(self.frame_delay)

        self.sender.on_transform_log_done(_envelope("transform_log_done", {"id": request_id}))
        await self.socket.flush()

        logger.info(f"Sent {sent} XVIZ frames")
        return sent

