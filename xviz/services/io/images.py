"""Image helpers for XVIZ image primitives."""
import base64
import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


def sniff_image(data: bytes) -> Optional[Tuple[str, int, int]]:
    """
    Identifies encoded image bytes.

    Only the image header is read; pixel data is not decoded.

    Args:
        data: Candidate image bytes

    Returns:
        Tuple of (encoding, width, height), e.g. ("png", 640, 480), or None
        if the bytes are not a recognized image
    """
    if len(data) < 8:
        return None

    try:
        with Image.open(io.BytesIO(data)) as img:
            if not img.format:
                return None
            width, height = img.size
            return img.format.lower(), width, height
    except (UnidentifiedImageError, OSError):
        return None


def image_bytes(data) -> bytes:
    """Returns raw image bytes from bytes-like or base64 encoded text."""
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)

