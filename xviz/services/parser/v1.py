"""
Normalizer for legacy XVIZ v1 timeslices.

A v1 timeslice carries ``state_updates`` (primitives, variables, futures)
and a single ``vehicle_pose``; the pose is published under the configured
primary pose stream.
"""
import logging
from typing import Dict, Optional

from .context import ParseContext
from .messages import Incomplete, Pose, PrimitiveSet, StreamEntry, Timeslice, Variable
from .primitives import PrimitiveSetBuilder, normalize_pose_v1, stream_entry, unwrap_values

logger = logging.getLogger(__name__)

# v1 primitive type -> normalized kind
PRIMITIVE_TYPES = {
    "points2d": "points",
    "points3d": "points",
    "point": "points",
    "polyline2d": "polyline",
    "polyline": "polyline",
    "line2d": "polyline",
    "polygon2d": "polygon",
    "polygon": "polygon",
    "circle2d": "circle",
    "circle": "circle",
    "text": "text",
    "text2d": "text",
    "stadium": "stadium",
    "image": "image",
}


def resolve_timestamp(data: dict, poses: Dict[str, Pose], context: ParseContext) -> Optional[float]:
    """Primary pose time, then the message timestamp, then any pose time."""
    primary = poses.get(context.primary_pose_stream)
    if primary is not None and primary.timestamp is not None:
        return primary.timestamp

    if data.get("timestamp") is not None:
        return data["timestamp"]

    for pose in poses.values():
        if pose.timestamp is not None:
            return pose.timestamp

    return None


def _build_primitive_set(stream_name: str, primitives, time: Optional[float], context: ParseContext) -> PrimitiveSetBuilder:
    builder = PrimitiveSetBuilder(time)

    for primitive in primitives or ():
        if not isinstance(primitive, dict):
            continue

        if context.pre_process_primitive is not None:
            context.pre_process_primitive(primitive, stream_name, time)

        # The hook may have changed the type
        primitive_type = primitive.get("type")
        kind = PRIMITIVE_TYPES.get(primitive_type, primitive_type)

        if kind == "points":
            builder.add_points(primitive, "vertices", primitive.get("id"))
        elif kind == "image":
            builder.add_image(primitive, primitive.get("id"))
        elif kind:
            builder.add_feature(kind, primitive, primitive.get("id"), primitive.get("style"))
        else:
            logger.debug(f"Skipping untyped primitive on {stream_name}")

    return builder


def _parse_variables(variables) -> list:
    if isinstance(variables, dict):
        variables = [variables]
    return [
        Variable(id=variable.get("id"), values=unwrap_values(variable.get("values")))
        for variable in variables or ()
        if isinstance(variable, dict)
    ]


def _parse_futures(stream_name: str, future, context: ParseContext) -> list:
    """
    Converts one stream's futures into look-ahead primitive sets.

    Accepts ``{"timestamps": [...], "primitives": [[...], ...]}`` or a plain
    list of primitive lists.
    """
    if isinstance(future, dict):
        timestamps = list(future.get("timestamps") or ())
        primitive_sets = future.get("primitives") or ()
    else:
        timestamps = []
        primitive_sets = future or ()

    look_aheads = []
    for index, primitives in enumerate(primitive_sets):
        time = timestamps[index] if index < len(timestamps) else None
        look_aheads.append(_build_primitive_set(stream_name, primitives, time, context).fill(PrimitiveSet()))
    return look_aheads


def parse_timeslice_v1(data: dict, context: ParseContext):
    """
    Validates and normalizes a v1 timeslice.

    Returns:
        Timeslice, or Incomplete when ``state_updates`` is missing or empty
        or no timestamp can be resolved
    """
    state_updates = data.get("state_updates")

    if state_updates is None:
        return Incomplete(message='Missing required "state_updates" property')

    if len(state_updates) == 0:
        return Incomplete(message='Property "state_updates" has length of 0, no data loaded')

    poses: Dict[str, Pose] = {}
    vehicle_pose = data.get("vehicle_pose")
    if isinstance(vehicle_pose, dict):
        poses[context.primary_pose_stream] = normalize_pose_v1(vehicle_pose)

    timestamp = resolve_timestamp(data, poses, context)
    if timestamp is None:
        return Incomplete(message='Missing timestamp in "state_updates"')

    streams: Dict[str, StreamEntry] = {}
    for name, pose in poses.items():
        stream_entry(streams, name, timestamp).pose = pose

    for state_update in state_updates:
        if not isinstance(state_update, dict):
            continue

        for name, primitives in (state_update.get("primitives") or {}).items():
            builder = _build_primitive_set(name, primitives, timestamp, context)
            builder.fill(stream_entry(streams, name, timestamp))

        for name, variables in (state_update.get("variables") or {}).items():
            stream_entry(streams, name, timestamp).variable = _parse_variables(variables)

        for name, future in (state_update.get("futures") or {}).items():
            stream_entry(streams, name, timestamp).look_aheads = _parse_futures(name, future, context)

    return Timeslice(
        timestamp=timestamp,
        streams=streams,
        vehicle_pose=poses.get(context.primary_pose_stream),
    )
