"""
Representation detection for XVIZ payloads.

An :class:`XVIZData` wraps exactly one authoritative input (an in-memory
object, JSON text, JSON bytes or a binary container) and produces the
message object on demand.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from xviz.core.errors import XVIZDataError
from xviz.services.io.formats import XVIZFormat
from xviz.services.io.protocol.binary import is_binary_container, unpack_binary

logger = logging.getLogger(__name__)

XVIZ_NAMESPACE = "xviz"


@dataclass
class Envelope:
    namespace: str
    type: str
    data: Any


def is_envelope(message: Any) -> bool:
    """True if ``message`` is a ``{"type": ..., "data": ...}`` wrapper."""
    return isinstance(message, dict) and "type" in message and "data" in message


def unpack_envelope(message: dict) -> Envelope:
    """
    Splits the envelope ``type`` on the first '/' into namespace and type.

    Examples:
        "foo"      -> ("foo", "")
        ""         -> ("", "")
        "foo/bar"  -> ("foo", "bar")
        "/foo/bar" -> ("", "foo/bar")
    """
    full_type = message.get("type") or ""
    namespace, _, sub_type = full_type.partition("/")
    return Envelope(namespace=namespace, type=sub_type, data=message.get("data"))


def sniff_message_type(data: Any) -> Optional[str]:
    """Infers the XVIZ sub-type of a bare (non-enveloped) payload."""
    if not isinstance(data, dict):
        return None
    if "log_info" in data or "streams" in data or data.get("type") == "metadata":
        return "metadata"
    if "updates" in data or "state_updates" in data or "update_type" in data:
        return "state_update"
    if "version" in data:
        return "metadata"
    return None


@dataclass
class XVIZMessage:
    """A materialized XVIZ message."""
    type: Optional[str]
    data: Any
    namespace: str = ""

    @property
    def enveloped(self) -> bool:
        return bool(self.namespace)


class XVIZData:
    """
    Classifies an XVIZ payload and lazily materializes its message object.

    Detection order:
        1. dict/list            -> OBJECT
        2. str                  -> JSON_STRING (whitespace trimmed, parsed lazily)
        3. bytes with XVIZ magic -> BINARY
        4. other bytes          -> JSON_BUFFER (UTF-8 JSON text)

    The input object is never mutated. Once :meth:`message` has been called
    the object may be changed by the caller, so :meth:`has_message` tells
    senders that the raw buffer can no longer be trusted.
    """

    def __init__(self, data: Any):
        self._data = data
        self._message: Optional[XVIZMessage] = None
        self._format = self._determine_format(data)

    @staticmethod
    def _determine_format(data: Any) -> XVIZFormat:
        if isinstance(data, (dict, list)):
            return XVIZFormat.OBJECT

        if isinstance(data, str):
            return XVIZFormat.JSON_STRING

        if isinstance(data, (bytes, bytearray, memoryview)):
            if is_binary_container(data):
                return XVIZFormat.BINARY
            return XVIZFormat.JSON_BUFFER

        raise TypeError(f"Unknown XVIZ data type: {type(data).__name__}")

    @property
    def format(self) -> XVIZFormat:
        """Format detected for the original input."""
        return self._format

    @property
    def buffer(self) -> Any:
        """The authoritative raw input."""
        return self._data

    def data_format(self) -> XVIZFormat:
        """Format of the authoritative data currently held."""
        return self._determine_format(self._data)

    def has_message(self) -> bool:
        return self._message is not None

    def _load(self) -> Any:
        data_format = self.data_format()

        if data_format == XVIZFormat.OBJECT:
            return self._data

        if data_format == XVIZFormat.BINARY:
            return unpack_binary(self._data)

        if data_format == XVIZFormat.JSON_BUFFER:
            try:
                text = bytes(self._data).decode("utf-8")
            except UnicodeDecodeError as exc:
                raise XVIZDataError(f"XVIZ buffer is not UTF-8 JSON: {exc}") from exc
        else:
            text = self._data

        try:
            return json.loads(text.strip())
        except json.JSONDecodeError as exc:
            raise XVIZDataError(f"Failed to parse XVIZ JSON: {exc}") from exc

    def message(self) -> XVIZMessage:
        """Returns the materialized message, decoding the input on first use."""
        if self._message is not None:
            return self._message

        obj = self._load()

        if is_envelope(obj):
            envelope = unpack_envelope(obj)
            message = XVIZMessage(type=envelope.type, data=envelope.data, namespace=envelope.namespace)
        else:
            message = XVIZMessage(type=sniff_message_type(obj), data=obj)

        logger.debug(f"Materialized {self._format.value} XVIZ data as '{message.type}'")
        self._message = message
        return message

    @property
    def type(self) -> Optional[str]:
        return self.message().type
