"""
XVIZ data representations.
"""
from enum import Enum


class XVIZFormat(str, Enum):
    OBJECT = "OBJECT"
    JSON_STRING = "JSON_STRING"
    JSON_BUFFER = "JSON_BUFFER"
    BINARY = "BINARY"


# Formats that can travel through a websocket as-is
WIRE_FORMATS = {XVIZFormat.JSON_STRING, XVIZFormat.JSON_BUFFER, XVIZFormat.BINARY}
