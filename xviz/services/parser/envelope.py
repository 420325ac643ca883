"""
Envelope helpers for XVIZ messages of any representation.
"""
from typing import Any

from xviz.core.errors import XVIZError
from xviz.services.io.data import XVIZ_NAMESPACE, XVIZData, is_envelope, unpack_envelope


def is_xviz_message(message: Any) -> bool:
    """True if ``message`` (object, JSON text, JSON bytes or binary) is an ``xviz/*`` envelope."""
    if message is None:
        return False

    try:
        msg = XVIZData(message).message()
    except (XVIZError, TypeError, ValueError):
        return False

    return msg.enveloped and msg.namespace == XVIZ_NAMESPACE


__all__ = ["is_xviz_message", "is_envelope", "unpack_envelope"]
