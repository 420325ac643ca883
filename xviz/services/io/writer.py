"""
Writers that serialize XVIZ messages to a sink in a chosen wire format.
"""
import base64
import json
import logging
from typing import Any, Protocol

import numpy as np

from xviz.services.io.data import XVIZ_NAMESPACE, XVIZData
from xviz.services.io.formats import XVIZFormat
from xviz.services.io.protocol.binary import pack_binary

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def write_sync(self, name: str, data: Any) -> None:
        ...


def _json_default(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(message: Any) -> str:
    """Serializes a message tree to compact JSON text."""
    return json.dumps(message, separators=(",", ":"), default=_json_default)


def encode_message(message: Any, format: XVIZFormat) -> Any:
    """
    Encodes a message tree into the requested wire format.

    Returns:
        str for JSON_STRING, bytes for JSON_BUFFER and BINARY
    """
    if format == XVIZFormat.JSON_STRING:
        return to_json(message)
    if format == XVIZFormat.JSON_BUFFER:
        return to_json(message).encode("utf-8")
    if format == XVIZFormat.BINARY:
        return pack_binary(message)
    raise ValueError(f"Cannot encode XVIZ message as {format}")


class XVIZFormatWriter:
    """
    Writes metadata and frames to a sink in a fixed format.

    Metadata is written as ``1-frame`` and frame *i* as ``{i+2}-frame``.

    Usage:
        writer = XVIZFormatWriter(sink, format=XVIZFormat.BINARY)
        writer.write_metadata(XVIZData(metadata))
        writer.write_frame(0, XVIZData(frame))
    """

    def __init__(self, sink: Sink, format: XVIZFormat = XVIZFormat.BINARY, envelope: bool = True):
        if format == XVIZFormat.OBJECT:
            raise ValueError("XVIZFormatWriter cannot write XVIZ format OBJECT")

        self.sink = sink
        self.format = XVIZFormat(format)
        self.envelope = envelope

    def _encode(self, data: XVIZData, default_type: str) -> Any:
        msg = data.message()
        payload = msg.data

        if self.envelope:
            payload = {
                "type": f"{msg.namespace or XVIZ_NAMESPACE}/{msg.type or default_type}",
                "data": msg.data,
            }

        return encode_message(payload, self.format)

    def write_metadata(self, data: XVIZData) -> None:
        self.sink.write_sync("1-frame", self._encode(data, "metadata"))

    def write_frame(self, index: int, data: XVIZData) -> None:
        self.sink.write_sync(f"{index + 2}-frame", self._encode(data, "state_update"))

    def write_message(self, name: str, data: XVIZData) -> None:
        msg = data.message()
        self.sink.write_sync(name, self._encode(data, msg.type or "state_update"))


class MemorySink:
    """Sink that keeps every write in memory, keyed by name."""

    def __init__(self):
        self.data: dict[str, Any] = {}
        self.names: list[str] = []

    def write_sync(self, name: str, data: Any) -> None:
        self.data[name] = data
        self.names.append(name)

    def read_sync(self, name: str) -> Any:
        return self.data.get(name)

    def has(self, name: str) -> bool:
        return name in self.data
