"""
Version-independent normalization of XVIZ primitives.

Both protocol versions funnel their primitives into a
:class:`PrimitiveSetBuilder`, which merges all entries of one stream in one
frame into flat numeric arrays.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from xviz.services.io.images import image_bytes, sniff_image
from xviz.services.io.protocol.binary import color_stride, flatten_to_array
from .messages import Feature, ImagePrimitive, PointCloud, Pose, PrimitiveSet, StreamEntry

logger = logging.getLogger(__name__)

DEFAULT_COLOR = 255

# Keys consumed by Feature fields; everything else lands in Feature.extra
FEATURE_KEYS = {"type", "vertices", "id", "base", "style", "center", "radius", "text", "position"}


def _is_flat(values) -> bool:
    if isinstance(values, np.ndarray):
        return values.ndim == 1
    return all(not isinstance(v, (list, tuple, np.ndarray)) for v in values)


def flatten_vertices(vertices) -> np.ndarray:
    """
    Returns vertices as a flat float32 array.

    Flat input is kept in order; nested [x, y, z] records are flattened in
    traversal order (2-D records get z = 0). Polygons are not closed.
    """
    if vertices is None:
        return np.zeros(0, dtype=np.float32)
    if isinstance(vertices, np.ndarray):
        if vertices.ndim == 2 and vertices.shape[1] != 3:
            return flatten_to_array(vertices.tolist(), 3, np.float32)
        return vertices.astype(np.float32, copy=False).reshape(-1)
    if _is_flat(vertices):
        return np.asarray(vertices, dtype=np.float32)
    return flatten_to_array(vertices, 3, np.float32)


def normalize_colors(colors, color, num_points: int) -> Optional[Tuple[np.ndarray, int]]:
    """
    Resolves per-point colors of a single point entry.

    The explicit ``colors`` field wins over a single ``color`` which is then
    repeated for every point.

    Returns:
        Tuple of (flat uint8 colors, stride) or None if the entry has no color
    """
    if colors is not None and len(colors) > 0:
        if _is_flat(colors):
            flat = np.clip(np.asarray(colors, dtype=np.float64).reshape(-1), 0, 255).astype(np.uint8)
            stride = 4 if num_points and len(flat) == 4 * num_points else 3
            return flat, stride
        stride = color_stride(colors)
        return flatten_to_array(colors, stride, np.uint8, fill=DEFAULT_COLOR), stride

    if color is not None and len(color) > 0:
        stride = 4 if len(color) == 4 else 3
        single = flatten_to_array([color], stride, np.uint8, fill=DEFAULT_COLOR)
        return np.tile(single, num_points), stride

    return None


def _conform_colors(colors: Optional[np.ndarray], stride: int, entry_stride: int, num_points: int) -> np.ndarray:
    """Brings one entry's colors to the stream stride and point count."""
    if colors is None:
        return np.full(num_points * stride, DEFAULT_COLOR, dtype=np.uint8)

    usable = (len(colors) // entry_stride) * entry_stride
    records = colors[:usable].reshape(-1, entry_stride)

    if entry_stride == 3 and stride == 4:
        alpha = np.full((len(records), 1), DEFAULT_COLOR, dtype=np.uint8)
        records = np.hstack([records, alpha])
    elif entry_stride == 4 and stride == 3:
        records = records[:, :3]

    if len(records) < num_points:
        pad = np.full((num_points - len(records), stride), DEFAULT_COLOR, dtype=np.uint8)
        records = np.vstack([records, pad])

    return records[:num_points].reshape(-1)


class PointCloudBuilder:
    """Merges the point entries of one stream into a single point cloud."""

    def __init__(self):
        self._positions: List[np.ndarray] = []
        self._colors: List[Optional[Tuple[np.ndarray, int]]] = []
        self.ids: List[Any] = []

    def add(self, points, colors=None, color=None, id=None) -> None:
        positions = flatten_vertices(points)
        positions = positions[:(len(positions) // 3) * 3]
        num_points = len(positions) // 3

        self._positions.append(positions)
        self._colors.append(normalize_colors(colors, color, num_points))
        self.ids.append(id)

    def __len__(self) -> int:
        return len(self._positions)

    def build(self) -> Optional[PointCloud]:
        if not self._positions:
            return None

        positions = np.concatenate(self._positions).astype(np.float32, copy=False)

        colors = None
        first = next((c for c in self._colors if c is not None), None)
        if first is not None:
            stride = first[1]
            colors = np.concatenate([
                _conform_colors(
                    entry[0] if entry else None,
                    stride,
                    entry[1] if entry else stride,
                    len(pos) // 3
                )
                for pos, entry in zip(self._positions, self._colors)
            ])

        return PointCloud(
            positions=positions,
            colors=colors,
            ids=list(self.ids),
            num_instances=len(positions) // 3,
        )


def make_feature(feature_type: str, primitive: dict, id: Any = None, style: Optional[dict] = None) -> Feature:
    """Builds a feature from a primitive dict of either protocol version."""
    vertices = primitive.get("vertices")
    center = primitive.get("center")
    radius = primitive.get("radius")

    if feature_type == "circle" and center is None and vertices is not None and len(vertices) > 0:
        # v1 circles may carry their center as the first vertex
        first = vertices[0]
        center = list(first) if isinstance(first, (list, tuple, np.ndarray)) else list(vertices[:3])
        vertices = None

    if center is None and feature_type == "text":
        center = primitive.get("position")

    return Feature(
        type=feature_type,
        vertices=flatten_vertices(vertices) if vertices is not None else None,
        id=id,
        center=[float(c) for c in center] if center is not None else None,
        radius=radius,
        text=primitive.get("text"),
        style=style,
        extra={k: v for k, v in primitive.items() if k not in FEATURE_KEYS},
    )


def make_image(primitive: dict, id: Any = None) -> ImagePrimitive:
    """
    Builds an image primitive; dimensions and encoding are read from the
    image header when the message does not declare them.
    """
    data = primitive.get("data")
    # Decoded containers tag image bytes with the encoding from the image table
    tagged_encoding = getattr(data, "encoding", None)
    if isinstance(data, np.ndarray):
        data = data.astype(np.uint8, copy=False).tobytes()
    data = image_bytes(data) if data is not None else b""

    encoding = primitive.get("format") or primitive.get("encoding") or tagged_encoding
    width = primitive.get("width_px", primitive.get("width"))
    height = primitive.get("height_px", primitive.get("height"))

    if encoding is None or width is None or height is None:
        sniffed = sniff_image(data)
        if sniffed is not None:
            encoding = encoding or sniffed[0]
            width = width if width is not None else sniffed[1]
            height = height if height is not None else sniffed[2]
        else:
            logger.debug("Image primitive without recognizable image header")

    return ImagePrimitive(
        data=data,
        encoding=encoding,
        width=width,
        height=height,
        position=primitive.get("position"),
        id=id,
    )


class PrimitiveSetBuilder:
    """Collects the primitives of one stream at one time."""

    def __init__(self, time: Optional[float] = None):
        self.time = time
        self.points = PointCloudBuilder()
        self.features: List[Feature] = []
        self.images: List[ImagePrimitive] = []

    def add_points(self, primitive: dict, points_key: str, id: Any = None) -> None:
        self.points.add(
            primitive.get(points_key),
            colors=primitive.get("colors"),
            color=primitive.get("color"),
            id=id,
        )

    def add_feature(self, feature_type: str, primitive: dict, id: Any = None, style: Optional[dict] = None) -> None:
        self.features.append(make_feature(feature_type, primitive, id, style))

    def add_image(self, primitive: dict, id: Any = None) -> None:
        self.images.append(make_image(primitive, id))

    def fill(self, target: PrimitiveSet) -> PrimitiveSet:
        target.time = self.time
        target.point_cloud = self.points.build()
        target.features = self.features
        target.images = self.images
        return target

    def build(self) -> PrimitiveSet:
        return self.fill(PrimitiveSet())


def stream_entry(streams: Dict[str, StreamEntry], name: str, timestamp: Optional[float]) -> StreamEntry:
    """Returns the entry for ``name``, creating it on first use."""
    entry = streams.get(name)
    if entry is None:
        entry = StreamEntry(time=timestamp)
        streams[name] = entry
    return entry


def unwrap_values(values) -> List[Any]:
    """Unwraps v2 value unions ({"doubles": [...]}) into a plain list."""
    if values is None:
        return []
    if isinstance(values, dict):
        for key in ("doubles", "int32s", "bools", "strings"):
            if values.get(key) is not None:
                return list(values[key])
        return []
    if isinstance(values, np.ndarray):
        return values.tolist()
    return list(values)


def normalize_map_origin(origin) -> Optional[dict]:
    """Accepts {longitude, latitude, altitude} or [longitude, latitude, altitude]."""
    if origin is None:
        return None
    if isinstance(origin, dict):
        return {
            "longitude": origin.get("longitude"),
            "latitude": origin.get("latitude"),
            "altitude": origin.get("altitude"),
        }
    values = list(origin)
    values += [None] * (3 - len(values))
    return {"longitude": values[0], "latitude": values[1], "altitude": values[2]}


def normalize_pose_v2(pose: dict, default_timestamp: Optional[float] = None) -> Pose:
    timestamp = pose.get("timestamp")
    return Pose(
        timestamp=timestamp if timestamp is not None else default_timestamp,
        map_origin=normalize_map_origin(pose.get("map_origin")),
        position=[float(v) for v in pose.get("position") or (0.0, 0.0, 0.0)],
        orientation=[float(v) for v in pose.get("orientation") or (0.0, 0.0, 0.0)],
    )


def normalize_pose_v1(vehicle_pose: dict) -> Pose:
    """
    Converts a v1 ``vehicle_pose`` (time, continuous, map_relative and
    optional geographic fields) into a :class:`Pose`.
    """
    continuous = vehicle_pose.get("continuous") or {}

    def read(key):
        value = continuous.get(key, vehicle_pose.get(key))
        return float(value) if value is not None else 0.0

    map_origin = None
    if any(vehicle_pose.get(k) is not None for k in ("longitude", "latitude", "altitude")):
        map_origin = normalize_map_origin(vehicle_pose)

    return Pose(
        timestamp=vehicle_pose.get("time"),
        map_origin=map_origin,
        position=[read("x"), read("y"), read("z")],
        orientation=[read("roll"), read("pitch"), read("yaw")],
    )
