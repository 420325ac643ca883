"""
Binary container protocol for XVIZ data transmission.
"""
from .binary import pack_binary, unpack_binary, is_binary_container, MAGIC_BYTES, VERSION

__all__ = [
    "pack_binary",
    "unpack_binary",
    "is_binary_container",
    "MAGIC_BYTES",
    "VERSION",
]
