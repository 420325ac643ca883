"""
Adaptive sender that writes XVIZ data to a websocket-like transport.

Only strings and byte buffers can cross the socket. Data that already is
in an acceptable format is forwarded untouched; anything else is
re-encoded through an :class:`XVIZFormatWriter`.
"""
import logging
from typing import Any, Optional, Protocol

from xviz.core.errors import TransportError
from xviz.services.io.data import XVIZData
from xviz.services.io.formats import WIRE_FORMATS, XVIZFormat
from xviz.services.io.protocol.binary import unpack_binary
from xviz.services.io.writer import XVIZFormatWriter, to_json

logger = logging.getLogger(__name__)


class Socket(Protocol):
    def send(self, data: Any) -> None:
        ...


class WebsocketSink:
    """Sink that forwards every write to ``socket.send``."""

    def __init__(self, socket: Socket):
        self.socket = socket

    def write_sync(self, name: str, data: Any) -> None:
        try:
            self.socket.send(data)
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(f"Failed to send '{name}': {exc}") from exc


class XVIZWebsocketSender:
    """
    Sends metadata, frames, errors and completion notices over a socket.

    Args:
        socket: Object with a synchronous ``send(data)`` method
        format: Forced wire format; None forwards data in its own format
        socket_format_preference: Format used when the data must be encoded
            and no format is forced
    """

    def __init__(
        self,
        socket: Socket,
        format: Optional[XVIZFormat] = None,
        socket_format_preference: XVIZFormat = XVIZFormat.BINARY,
    ):
        if format is not None:
            format = XVIZFormat(format)

        if format == XVIZFormat.OBJECT:
            raise ValueError(
                f"Cannot send XVIZ format {format.value} through a websocket. "
                "The data must be a string or a byte buffer."
            )

        self.socket = socket
        self.sink = WebsocketSink(socket)
        self.format = format
        self.default_format = XVIZFormat(socket_format_preference)

        self.writer: Optional[XVIZFormatWriter] = None
        self.writer_format: Optional[XVIZFormat] = None

    def _sync_format_with_writer(self, format: XVIZFormat) -> XVIZFormatWriter:
        if self.writer is None or self.writer_format != format:
            logger.debug(f"Creating XVIZ writer for format {format.value}")
            self.writer = XVIZFormatWriter(self.sink, format=format)
            self.writer_format = format
        return self.writer

    def _send_data_direct(self, data: XVIZData) -> bool:
        """True if the raw buffer can be written to the sink unchanged."""
        source_format = data.data_format()

        if self.format is not None and source_format != self.format:
            return False

        if source_format not in WIRE_FORMATS:
            return False

        # A materialized message may have been changed by the caller
        return not data.has_message()

    def _get_format(self, data: XVIZData) -> XVIZFormat:
        if self.format is not None:
            return self.format

        source_format = data.data_format()
        if source_format not in WIRE_FORMATS:
            return self.default_format

        return source_format

    def _send(self, name: str, data: XVIZData, write) -> None:
        if self._send_data_direct(data):
            self.sink.write_sync(name, data.buffer)
        else:
            write(self._sync_format_with_writer(self._get_format(data)))

    def on_metadata(self, data: XVIZData) -> None:
        self._send("1-frame", data, lambda writer: writer.write_metadata(data))

    def on_state_update(self, data: XVIZData) -> None:
        self._send("2-frame", data, lambda writer: writer.write_frame(0, data))

    def on_error(self, data: XVIZData) -> None:
        self.sink.write_sync("error", self._plain_json(data))

    def on_transform_log_done(self, data: XVIZData) -> None:
        self.sink.write_sync("done", self._plain_json(data))

    @staticmethod
    def _plain_json(data: XVIZData) -> str:
        source_format = data.data_format()
        if source_format == XVIZFormat.JSON_STRING:
            return data.buffer
        if source_format == XVIZFormat.JSON_BUFFER:
            return bytes(data.buffer).decode("utf-8")
        if source_format == XVIZFormat.BINARY:
            return to_json(unpack_binary(data.buffer))
        return to_json(data.buffer)
