"""
Binary container codec for XVIZ messages.

Numeric arrays and images are moved out of the JSON message into typed
buffers; the JSON "skeleton" keeps pointer strings in their place.

    Offset | Size | Type    | Description
    -------|------|---------|------------
    0      | 4    | char[4] | Magic "XVIZ"
    4      | 4    | uint32  | Version
    8      | 4    | uint32  | Skeleton length (bytes, unpadded)
    12     | 4    | uint32  | Table length (bytes after the padded skeleton)
    16     | S    | utf-8   | Skeleton JSON, padded to 4 bytes

    Accessor table:
        uint32 count, then per accessor:
        uint8 dtype tag | uint8 size | uint16 reserved | uint32 byte length | bytes (padded to 4)

    Image table:
        uint32 count, then per image:
        char[8] encoding (ASCII, NUL padded) | uint32 byte length | bytes (padded to 4)

Pointers in the skeleton follow the grammar ``#/accessors/<uint>`` and
``#/images/<uint>``; the index is the position in the respective table.
Literal strings that start with ``#/`` (or ``##/``, ...) get one extra ``#``.
"""
import json
import re
import struct
from typing import Any, Optional

import numpy as np

from xviz.core.errors import MalformedContainerError
from xviz.services.io.images import sniff_image


MAGIC_BYTES = b'XVIZ'
VERSION = 1
HEADER_FORMAT = '<4sIII'
HEADER_SIZE = 16
ALIGNMENT = 4

ACCESSOR_HEADER_FORMAT = '<BBHI'
ACCESSOR_HEADER_SIZE = 8
IMAGE_HEADER_FORMAT = '<8sI'
IMAGE_HEADER_SIZE = 12

DTYPE_TAGS = {
    1: np.dtype(np.int8),
    2: np.dtype(np.uint8),
    3: np.dtype('<i2'),
    4: np.dtype('<u2'),
    5: np.dtype('<i4'),
    6: np.dtype('<u4'),
    7: np.dtype('<f4'),
    8: np.dtype('<f8'),
    9: np.dtype('<i8'),
    10: np.dtype('<u8'),
}
TAG_BY_KIND = {(dtype.kind, dtype.itemsize): tag for tag, dtype in DTYPE_TAGS.items()}

POINTER_RE = re.compile(r'^#/(accessors|images)/(0|[1-9][0-9]*)$')
ESCAPED_RE = re.compile(r'^#+/')

# Field names whose nested numeric lists are flattened into typed buffers
VERTEX_KEYS = ('vertices', 'points')
COLOR_KEYS = ('colors',)


class DecodedImage(bytes):
    """Image bytes read from the image table, tagged with their encoding."""

    def __new__(cls, data, encoding: str):
        image = super().__new__(cls, data)
        image.encoding = encoding
        return image


def _padding(length: int) -> int:
    return (ALIGNMENT - length % ALIGNMENT) % ALIGNMENT


def _is_number(value) -> bool:
    return isinstance(value, (int, float, np.number)) and not isinstance(value, (bool, np.bool_))


def _is_numeric_list(value) -> bool:
    """True for a flat list of numbers or a list of flat numeric records."""
    if isinstance(value, np.ndarray):
        return value.dtype.kind in 'iuf'
    if not isinstance(value, (list, tuple)):
        return False
    for item in value:
        if isinstance(item, (list, tuple, np.ndarray)):
            if not all(_is_number(v) for v in item):
                return False
        elif not _is_number(item):
            return False
    return True


def flatten_to_array(nested, size: int, dtype, fill=0) -> np.ndarray:
    """
    Flattens nested records (or an already flat sequence) into a 1-D array.

    Each record contributes exactly ``size`` components; short records are
    padded with ``fill``.
    """
    if isinstance(nested, np.ndarray):
        return nested.astype(dtype, copy=False).reshape(-1)

    flat = []
    for item in nested:
        if isinstance(item, (list, tuple, np.ndarray)):
            record = list(item)[:size]
            flat.extend(record + [fill] * (size - len(record)))
        else:
            flat.append(item)
    if np.dtype(dtype) == np.uint8:
        return np.clip(np.asarray(flat, dtype=np.float64), 0, 255).astype(np.uint8)
    return np.asarray(flat, dtype=dtype)


def color_stride(colors) -> int:
    """Returns 4 if the first color record carries alpha, otherwise 3."""
    if len(colors) == 0:
        return 3
    first = colors[0]
    if isinstance(first, (list, tuple, np.ndarray)) and len(first) == 4:
        return 4
    return 3


def _flatten_field(key: Optional[str], value) -> Optional[tuple[np.ndarray, int]]:
    if key in VERTEX_KEYS and _is_numeric_list(value):
        return flatten_to_array(value, 3, np.float32), 3
    if key in COLOR_KEYS and _is_numeric_list(value):
        size = color_stride(value)
        return flatten_to_array(value, size, np.uint8, fill=255), size
    return None


class BinaryBuilder:
    """Collects accessors and images while the skeleton is being built."""

    def __init__(self):
        self.accessors: list[tuple[np.ndarray, int]] = []
        self.images: list[tuple[bytes, str]] = []

    def add_accessor(self, array: np.ndarray, size: int) -> str:
        array = np.ascontiguousarray(array)
        if array.dtype.kind == 'b':
            array = array.astype(np.uint8)
        elif array.dtype.kind == 'f' and array.dtype.itemsize < 4:
            array = array.astype(np.float32)
        elif (array.dtype.kind, array.dtype.itemsize) not in TAG_BY_KIND:
            raise TypeError(f"Cannot pack array of dtype {array.dtype} into an accessor")
        self.accessors.append((array.reshape(-1), size))
        return f"#/accessors/{len(self.accessors) - 1}"

    def add_image(self, data: bytes, encoding: str) -> str:
        self.images.append((bytes(data), encoding))
        return f"#/images/{len(self.images) - 1}"

    def pack_value(self, value: Any, key: Optional[str] = None, flatten_arrays: bool = True) -> Any:
        """Depth-first rewrite of ``value`` into a JSON skeleton."""
        if isinstance(value, str):
            if ESCAPED_RE.match(value):
                return '#' + value
            return value

        if isinstance(value, (list, tuple)):
            flat = _flatten_field(key, value) if flatten_arrays else None
            if flat is None:
                return [self.pack_value(item, None, flatten_arrays) for item in value]
            array, size = flat
            return self.add_accessor(array, size)

        if isinstance(value, np.ndarray):
            flat = _flatten_field(key, value) if flatten_arrays else None
            if flat is not None:
                return self.add_accessor(*flat)
            size = value.shape[1] if value.ndim == 2 else 1
            return self.add_accessor(value, size)

        if isinstance(value, DecodedImage) and value.encoding:
            return self.add_image(bytes(value), value.encoding)

        if isinstance(value, (bytes, bytearray, memoryview)):
            image = sniff_image(bytes(value))
            if image is not None:
                return self.add_image(bytes(value), image[0])
            return self.add_accessor(np.frombuffer(bytes(value), dtype=np.uint8), 1)

        if isinstance(value, dict):
            return {k: self.pack_value(v, k, flatten_arrays) for k, v in value.items()}

        if isinstance(value, np.generic):
            return value.item()

        return value

    def to_bytes(self, skeleton: Any) -> bytes:
        skeleton_bytes = json.dumps(skeleton, separators=(',', ':')).encode('utf-8')

        table = bytearray()
        table += struct.pack('<I', len(self.accessors))
        for array, size in self.accessors:
            raw = array.astype(array.dtype.newbyteorder('<'), copy=False).tobytes()
            tag = TAG_BY_KIND[(array.dtype.kind, array.dtype.itemsize)]
            table += struct.pack(ACCESSOR_HEADER_FORMAT, tag, size, 0, len(raw))
            table += raw + b'\x00' * _padding(len(raw))

        table += struct.pack('<I', len(self.images))
        for data, encoding in self.images:
            table += struct.pack(IMAGE_HEADER_FORMAT, encoding.encode('ascii')[:8], len(data))
            table += data + b'\x00' * _padding(len(data))

        header = struct.pack(HEADER_FORMAT, MAGIC_BYTES, VERSION, len(skeleton_bytes), len(table))
        skeleton_padding = b' ' * _padding(len(skeleton_bytes))
        return header + skeleton_bytes + skeleton_padding + bytes(table)


def pack_binary(message: Any, flatten_arrays: bool = True) -> bytes:
    """
    Packs a JSON-compatible message into the XVIZ binary container.

    Args:
        message: Message tree (dicts, lists, numbers, strings, numpy arrays,
                 image bytes)
        flatten_arrays: Flatten nested ``vertices``/``points``/``colors`` lists
                        into typed buffers

    Returns:
        Binary container bytes
    """
    builder = BinaryBuilder()
    skeleton = builder.pack_value(message, None, flatten_arrays)
    return builder.to_bytes(skeleton)


def is_binary_container(data) -> bool:
    """Checks the magic bytes at the start of ``data``."""
    return len(data) >= HEADER_SIZE and bytes(data[:4]) == MAGIC_BYTES


def _read_tables(data: bytes, offset: int, end: int):
    def take(count: int) -> int:
        nonlocal offset
        start = offset
        offset += count
        if offset > end:
            raise MalformedContainerError(
                f"Buffer table truncated: need {offset - start} bytes at offset {start}, "
                f"table ends at {end}"
            )
        return start

    accessors: list[np.ndarray] = []
    (count,) = struct.unpack_from('<I', data, take(4))
    for _ in range(count):
        tag, _size, _reserved, length = struct.unpack_from(ACCESSOR_HEADER_FORMAT, data, take(ACCESSOR_HEADER_SIZE))
        dtype = DTYPE_TAGS.get(tag)
        if dtype is None:
            raise MalformedContainerError(f"Unknown accessor type tag: {tag}")
        if length % dtype.itemsize:
            raise MalformedContainerError(
                f"Accessor byte length {length} is not a multiple of {dtype.itemsize}"
            )
        start = take(length + _padding(length))
        # Copy so the result does not alias the caller's buffer
        accessors.append(np.frombuffer(data, dtype=dtype, count=length // dtype.itemsize, offset=start).copy())

    images: list[bytes] = []
    (count,) = struct.unpack_from('<I', data, take(4))
    for _ in range(count):
        encoding, length = struct.unpack_from(IMAGE_HEADER_FORMAT, data, take(IMAGE_HEADER_SIZE))
        start = take(length + _padding(length))
        try:
            encoding = encoding.rstrip(b'\x00').decode('ascii')
        except UnicodeDecodeError as exc:
            raise MalformedContainerError(f"Invalid image encoding tag: {encoding!r}") from exc
        images.append(DecodedImage(data[start:start + length], encoding))

    return accessors, images


def _resolve(value: Any, accessors: list, images: list) -> Any:
    if isinstance(value, str):
        if value.startswith('##') and ESCAPED_RE.match(value):
            return value[1:]
        if value.startswith('#/'):
            match = POINTER_RE.match(value)
            if match is None:
                raise MalformedContainerError(f"Invalid pointer: {value}")
            table = accessors if match.group(1) == 'accessors' else images
            index = int(match.group(2))
            if index >= len(table):
                raise MalformedContainerError(
                    f"Pointer {value} out of range, {match.group(1)} table has {len(table)} entries"
                )
            return table[index]
        return value

    if isinstance(value, list):
        return [_resolve(item, accessors, images) for item in value]

    if isinstance(value, dict):
        return {k: _resolve(v, accessors, images) for k, v in value.items()}

    return value


def unpack_binary(data) -> Any:
    """
    Unpacks an XVIZ binary container into a message tree.

    Args:
        data: Binary container bytes

    Returns:
        Message tree with accessors as flat numpy arrays and images as
        DecodedImage bytes carrying their encoding

    Raises:
        MalformedContainerError: If magic, version, lengths or pointers are invalid
    """
    data = bytes(data)

    if len(data) < HEADER_SIZE:
        raise MalformedContainerError("Data too short to contain XVIZ binary header")

    magic, version, skeleton_length, table_length = struct.unpack_from(HEADER_FORMAT, data, 0)

    if magic != MAGIC_BYTES:
        raise MalformedContainerError(f"Invalid magic bytes: {magic}")

    if version != VERSION:
        raise MalformedContainerError(f"Unsupported version: {version}")

    skeleton_end = HEADER_SIZE + skeleton_length
    table_start = skeleton_end + _padding(skeleton_length)
    table_end = table_start + table_length

    if table_end > len(data):
        raise MalformedContainerError(
            f"Container size mismatch: header declares {table_end} bytes, got {len(data)}"
        )

    try:
        skeleton = json.loads(data[HEADER_SIZE:skeleton_end].decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedContainerError(f"Invalid skeleton JSON: {exc}") from exc

    accessors, images = _read_tables(data, table_start, table_end)
    return _resolve(skeleton, accessors, images)
