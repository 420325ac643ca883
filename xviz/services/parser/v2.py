"""
Normalizer for XVIZ v2 state updates.
"""
import logging
from typing import Dict, Optional

from .context import ParseContext
from .messages import Incomplete, StreamEntry, TimeSeries, Timeslice, Variable
from .primitives import PrimitiveSetBuilder, normalize_pose_v2, stream_entry, unwrap_values

logger = logging.getLogger(__name__)

# v2 primitive list name -> feature type (None for point clouds and images)
PRIMITIVE_TYPES = {
    "points": None,
    "images": None,
    "polylines": "polyline",
    "polygons": "polygon",
    "circles": "circle",
    "texts": "text",
    "stadiums": "stadium",
    "cuboids": "cuboid",
}


def _base(primitive: dict) -> dict:
    return primitive.get("base") or {}


def resolve_update_timestamp(update, context: ParseContext) -> Optional[float]:
    """
    Resolves the timestamp of one entry in ``updates``.

    The entry's own timestamp wins; otherwise the primary pose stream's
    timestamp, otherwise the first pose (in stream-name order) that has one.
    """
    if not isinstance(update, dict):
        return None

    timestamp = update.get("timestamp")
    if timestamp is not None:
        return timestamp

    poses = update.get("poses") or {}
    primary = poses.get(context.primary_pose_stream)
    if isinstance(primary, dict) and primary.get("timestamp") is not None:
        return primary["timestamp"]

    for pose in poses.values():
        if isinstance(pose, dict) and pose.get("timestamp") is not None:
            return pose["timestamp"]

    return None


def _parse_primitives(stream_name: str, primitive_set: dict, timestamp: float, entry: StreamEntry) -> None:
    builder = PrimitiveSetBuilder(timestamp)

    for list_name, primitives in primitive_set.items():
        if list_name not in PRIMITIVE_TYPES:
            logger.debug(f"Skipping unknown primitive list '{list_name}' on {stream_name}")
            continue

        for primitive in primitives or ():
            if not isinstance(primitive, dict):
                continue

            base = _base(primitive)
            object_id = base.get("object_id")

            if list_name == "points":
                builder.add_points(primitive, "points", object_id)
            elif list_name == "images":
                builder.add_image(primitive, object_id)
            else:
                builder.add_feature(PRIMITIVE_TYPES[list_name], primitive, object_id, base.get("style"))

    builder.fill(entry)


def _parse_variables(variable_set: dict) -> list:
    return [
        Variable(id=_base(variable).get("object_id"), values=unwrap_values(variable.get("values")))
        for variable in variable_set.get("variables") or ()
        if isinstance(variable, dict)
    ]


def _parse_time_series(time_series: list, streams: Dict[str, StreamEntry], timestamp: float) -> None:
    for series in time_series:
        if not isinstance(series, dict):
            continue

        values = unwrap_values(series.get("values"))
        series_time = series.get("timestamp", timestamp)
        for name, value in zip(series.get("streams") or (), values):
            entry = stream_entry(streams, name, timestamp)
            if entry.time_series is None:
                entry.time_series = []
            entry.time_series.append(TimeSeries(timestamp=series_time, value=value, id=series.get("object_id")))


def _parse_update(update: dict, timestamp: float, streams: Dict[str, StreamEntry]) -> None:
    for name, pose in (update.get("poses") or {}).items():
        if not isinstance(pose, dict):
            continue
        stream_entry(streams, name, timestamp).pose = normalize_pose_v2(pose, timestamp)

    for name, primitive_set in (update.get("primitives") or {}).items():
        if not isinstance(primitive_set, dict):
            continue
        _parse_primitives(name, primitive_set, timestamp, stream_entry(streams, name, timestamp))

    for name, variable_set in (update.get("variables") or {}).items():
        if not isinstance(variable_set, dict):
            continue
        stream_entry(streams, name, timestamp).variable = _parse_variables(variable_set)

    _parse_time_series(update.get("time_series") or (), streams, timestamp)


def parse_timeslice_v2(data: dict, context: ParseContext):
    """
    Validates and normalizes a v2 ``state_update``.

    Returns:
        Timeslice, or Incomplete when ``updates`` is missing, empty or an
        update has no resolvable timestamp
    """
    updates = data.get("updates")

    if updates is None:
        return Incomplete(message='Missing required "updates" property')

    if len(updates) == 0:
        return Incomplete(message='Property "updates" has length of 0, no data loaded')

    timestamps = [resolve_update_timestamp(update, context) for update in updates]
    if any(timestamp is None for timestamp in timestamps):
        return Incomplete(message='Missing timestamp in "updates"')

    streams: Dict[str, StreamEntry] = {}
    for update, timestamp in zip(updates, timestamps):
        _parse_update(update, timestamp, streams)

    primary = streams.get(context.primary_pose_stream)

    return Timeslice(
        timestamp=timestamps[0],
        streams=streams,
        vehicle_pose=primary.pose if primary is not None else None,
        update_type=data.get("update_type"),
    )
