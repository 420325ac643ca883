"""
XVIZ data representations, binary codec, writers and providers.
"""
from .formats import XVIZFormat
from .data import XVIZData, XVIZMessage, Envelope, is_envelope, unpack_envelope
from .writer import XVIZFormatWriter, MemorySink, encode_message, to_json
from .provider import XVIZBaseProvider, FrameIterator, MemoryReader

__all__ = [
    "XVIZFormat",
    "XVIZData",
    "XVIZMessage",
    "Envelope",
    "is_envelope",
    "unpack_envelope",
    "XVIZFormatWriter",
    "MemorySink",
    "encode_message",
    "to_json",
    "XVIZBaseProvider",
    "FrameIterator",
    "MemoryReader",
]
