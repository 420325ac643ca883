"""
XVIZ protocol parser: version gate, dispatch and v1/v2 normalization.
"""
from .context import ParseContext
from .envelope import is_xviz_message, is_envelope, unpack_envelope
from .messages import (
    LogStreamMessage,
    PointCloud,
    Feature,
    ImagePrimitive,
    Variable,
    TimeSeries,
    Pose,
    PrimitiveSet,
    StreamEntry,
    Metadata,
    Timeslice,
    Incomplete,
    ErrorMessage,
    Done,
)
from .parse import parse_stream_log_data, parse_xviz_data, detect_major_version
from .stream import ParseResult, XVIZStreamParser, parse_stream_data_message, iter_stream_data_messages

__all__ = [
    "ParseContext",
    "is_xviz_message",
    "is_envelope",
    "unpack_envelope",
    "LogStreamMessage",
    "PointCloud",
    "Feature",
    "ImagePrimitive",
    "Variable",
    "TimeSeries",
    "Pose",
    "PrimitiveSet",
    "StreamEntry",
    "Metadata",
    "Timeslice",
    "Incomplete",
    "ErrorMessage",
    "Done",
    "parse_stream_log_data",
    "parse_xviz_data",
    "detect_major_version",
    "ParseResult",
    "XVIZStreamParser",
    "parse_stream_data_message",
    "iter_stream_data_messages",
]
