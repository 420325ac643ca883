"""
Parsing of raw stream frames in any representation.

A frame may arrive as an in-memory object, JSON text, JSON bytes or a binary
container, enveloped or bare. Results are reported through callbacks, or as
:class:`ParseResult` values when iterating a whole stream.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

from xviz.services.io.data import XVIZ_NAMESPACE, XVIZData
from .context import ParseContext
from .messages import Metadata
from .parse import DEFAULT_MESSAGE_TYPE, Validator, parse_xviz_data

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """Outcome of parsing one frame; exactly one of the fields is set."""
    message: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _to_xviz_data(message: Any) -> XVIZData:
    if isinstance(message, XVIZData):
        return message
    return XVIZData(message)


def parse_frame(
    message: Any,
    context: ParseContext,
    v2_type: Optional[str] = None,
    validator: Optional[Validator] = None,
):
    """
    Detects the representation of ``message`` and parses it.

    Returns:
        Canonical message, or None for non-XVIZ envelopes and unknown sub-types
    """
    xviz_data = _to_xviz_data(message)
    msg = xviz_data.message()

    if msg.enveloped:
        if msg.namespace != XVIZ_NAMESPACE:
            logger.debug(f"Ignoring non-XVIZ message of namespace '{msg.namespace}'")
            return None
        msg_type = msg.type or DEFAULT_MESSAGE_TYPE
    else:
        msg_type = v2_type or msg.type or DEFAULT_MESSAGE_TYPE

    return parse_xviz_data(msg.data, context, msg_type, validator)


def parse_stream_data_message(
    message: Any,
    on_result: Callable[[Any], None],
    on_error: Optional[Callable[[Exception], None]] = None,
    context: Optional[ParseContext] = None,
    v2_type: Optional[str] = None,
    validator: Optional[Validator] = None,
) -> None:
    """
    Parses one frame of any representation and reports the outcome.

    ``on_result`` receives the canonical message (not called for ignored
    messages). Any failure goes to ``on_error``; without one it is raised.
    """
    context = context if context is not None else ParseContext.from_settings()

    try:
        result = parse_frame(message, context, v2_type, validator)
    except Exception as exc:
        if on_error is None:
            raise
        logger.debug(f"Failed to parse XVIZ stream message: {exc}")
        on_error(exc)
        return

    if result is not None:
        on_result(result)


class XVIZStreamParser:
    """
    Parses the frames of one stream, promoting the protocol version when a
    metadata message declares one.

    Usage:
        parser = XVIZStreamParser(ParseContext(supported_versions={1, 2}))
        for raw in frames:
            result = parser.parse(raw)
    """

    def __init__(self, context: Optional[ParseContext] = None, validator: Optional[Validator] = None):
        self.context = context if context is not None else ParseContext.from_settings()
        self.validator = validator

    def parse(self, message: Any, v2_type: Optional[str] = None) -> ParseResult:
        try:
            result = parse_frame(message, self.context, v2_type, self.validator)
        except Exception as exc:
            logger.debug(f"Failed to parse XVIZ stream message: {exc}")
            return ParseResult(error=exc)

        if isinstance(result, Metadata):
            self.context = self.context.promote(result)

        return ParseResult(message=result)


def iter_stream_data_messages(
    messages: Iterable[Any],
    context: Optional[ParseContext] = None,
    validator: Optional[Validator] = None,
) -> Iterator[ParseResult]:
    """Yields one ParseResult per frame; ignored frames yield ParseResult(None)."""
    parser = XVIZStreamParser(context, validator)
    for message in messages:
        yield parser.parse(message)
