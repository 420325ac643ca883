from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from xviz.core.config import settings
from xviz.core.errors import TransportError
from xviz.core.logging_config import get_logger
from xviz.services.io.formats import XVIZFormat
from xviz.services.websocket.sender import XVIZWebsocketSender
from xviz.services.websocket.session import LogSession, QueuedSocket

router = APIRouter()
logger = get_logger(__name__)


def _parse_format(value: Optional[str]) -> Optional[XVIZFormat]:
    if not value:
        return None
    return XVIZFormat(value.upper())


@router.websocket("/ws/log")
async def stream_log(
    websocket: WebSocket,
    format: Optional[str] = None,
    start_time: Optional[float] = None,
    end_time: Optional[float] = None,
):
    """Streams metadata, frames and a completion notice for the configured log."""
    await websocket.accept()
    socket = QueuedSocket(websocket)

    try:
        sender = XVIZWebsocketSender(
            socket,
            format=_parse_format(format),
            socket_format_preference=XVIZFormat(settings.XVIZ_SOCKET_FORMAT.upper()),
        )
    except ValueError as exc:
        # Unknown or unsendable format
        sender = XVIZWebsocketSender(socket)
        session = LogSession(websocket, None, sender, socket)
        await session.send_error(str(exc))
        await websocket.close()
        return

    provider = getattr(websocket.app.state, "provider", None)
    session = LogSession(websocket, provider, sender, socket, frame_delay=settings.XVIZ_FRAME_DELAY)

    try:
        await session.run(start_time, end_time)
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("Client disconnected during log stream")
    except TransportError as exc:
        logger.error(f"Failed to stream log: {exc}")
        await websocket.close(code=1011)
