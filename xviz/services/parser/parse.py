"""
XVIZ message parsing: envelope handling, version gate and dispatch.

    plain object -> envelope check -> version detection -> support check
                 -> dispatch by sub-type -> v1/v2 normalizer -> message
"""
import logging
import re
from typing import Any, Callable, Optional

from xviz.core.errors import UndetectableVersionError, UnsupportedVersionError
from xviz.services.io.data import XVIZ_NAMESPACE, is_envelope, sniff_message_type, unpack_envelope
from .context import ParseContext
from .messages import Done, ErrorMessage
from .metadata import parse_metadata
from .v1 import parse_timeslice_v1
from .v2 import parse_timeslice_v2

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^\s*v?(\d+)")

DEFAULT_MESSAGE_TYPE = "state_update"

# (schema_name, value) -> None; raises on violation
Validator = Callable[[str, Any], None]


def detect_major_version(data: Any, context: ParseContext) -> int:
    """
    Returns the major version declared by ``data["version"]``.

    Falls back to ``context.current_major_version`` when no version is
    present. Raises UndetectableVersionError if a version is present but has
    no leading integer.
    """
    version = data.get("version") if isinstance(data, dict) else None
    if version is None:
        return context.current_major_version

    match = VERSION_PATTERN.match(str(version))
    if not match:
        raise UndetectableVersionError(version)

    return int(match.group(1))


def check_version(major_version: int, context: ParseContext) -> None:
    if major_version not in context.supported_versions:
        raise UnsupportedVersionError(major_version, context.supported_versions)


def _parse_metadata(data, major_version: int, context: ParseContext):
    version = data.get("version")
    return parse_metadata(data, major_version, str(version) if version is not None else None)


def _parse_state_update(data, major_version: int, context: ParseContext):
    if major_version == 1:
        return parse_timeslice_v1(data, context)
    return parse_timeslice_v2(data, context)


def _parse_error(data, major_version: int, context: ParseContext):
    if isinstance(data, dict):
        return ErrorMessage(message=data.get("message"))
    return ErrorMessage(message=str(data) if data is not None else None)


def _parse_done(data, major_version: int, context: ParseContext):
    return Done(id=data.get("id") if isinstance(data, dict) else None)


# XVIZ sub-type -> handler(data, major_version, context)
MESSAGE_HANDLERS = {
    "metadata": _parse_metadata,
    "state_update": _parse_state_update,
    "error": _parse_error,
    "transform_log_done": _parse_done,
}


def parse_xviz_data(
    data: Any,
    context: ParseContext,
    msg_type: Optional[str],
    validator: Optional[Validator] = None,
):
    """
    Parses the payload of one XVIZ message of a known sub-type.

    Returns:
        Canonical message, or None for sub-types without a handler
    """
    major_version = detect_major_version(data, context)
    check_version(major_version, context)

    handler = MESSAGE_HANDLERS.get(msg_type)
    if handler is None:
        logger.warning(f"Unknown XVIZ message type '{msg_type}', ignoring")
        return None

    if validator is not None:
        validator(f"session/{msg_type}", data)

    if msg_type in ("metadata", "state_update") and not isinstance(data, dict):
        raise ValueError(f"XVIZ {msg_type} must be an object, got {type(data).__name__}")

    return handler(data, major_version, context)


def parse_stream_log_data(
    data: Any,
    context: Optional[ParseContext] = None,
    v2_type: Optional[str] = None,
    validator: Optional[Validator] = None,
):
    """
    Parses one plain XVIZ message object, enveloped or bare.

    Args:
        data: ``{"type": "xviz/<sub_type>", "data": {...}}`` or a bare payload
        context: Protocol configuration (defaults to ``ParseContext.from_settings()``)
        v2_type: Sub-type of a bare payload when known by the caller
        validator: Optional schema check called with (schema_name, payload)

    Returns:
        Canonical message, or None for non-XVIZ envelopes and unknown sub-types
    """
    context = context if context is not None else ParseContext.from_settings()

    if is_envelope(data):
        envelope = unpack_envelope(data)
        if envelope.namespace != XVIZ_NAMESPACE:
            logger.debug(f"Ignoring non-XVIZ message of namespace '{envelope.namespace}'")
            return None
        return parse_xviz_data(envelope.data, context, envelope.type, validator)

    msg_type = v2_type or sniff_message_type(data) or DEFAULT_MESSAGE_TYPE
    return parse_xviz_data(data, context, msg_type, validator)
