"""
Canonical messages produced by the XVIZ parser.

Whatever the protocol version or wire shape, a parsed frame ends up as one
of :class:`Metadata`, :class:`Timeslice`, :class:`Incomplete`,
:class:`ErrorMessage` or :class:`Done`.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class LogStreamMessage(str, Enum):
    METADATA = "METADATA"
    TIMESLICE = "TIMESLICE"
    ERROR = "ERROR"
    INCOMPLETE = "INCOMPLETE"
    DONE = "DONE"


@dataclass
class PointCloud:
    """Merged points of one stream in one frame."""
    positions: np.ndarray                  # float32, flat [x, y, z, ...]
    colors: Optional[np.ndarray] = None    # uint8, flat, stride 3 or 4
    ids: List[Any] = field(default_factory=list)  # one per merged entry
    num_instances: int = 0                 # number of points

    @property
    def color_stride(self) -> Optional[int]:
        if self.colors is None or self.num_instances == 0:
            return None
        return len(self.colors) // self.num_instances


@dataclass
class Feature:
    type: str
    vertices: Optional[np.ndarray] = None  # float32, flat
    id: Any = None
    center: Optional[List[float]] = None
    radius: Optional[float] = None
    text: Optional[str] = None
    style: Optional[dict] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImagePrimitive:
    data: bytes
    encoding: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    position: Optional[List[float]] = None
    id: Any = None


@dataclass
class Variable:
    id: Any
    values: List[Any]


@dataclass
class TimeSeries:
    timestamp: float
    value: Any
    id: Any = None


@dataclass
class Pose:
    timestamp: Optional[float]
    map_origin: Optional[Dict[str, Optional[float]]] = None
    position: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    orientation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])


@dataclass
class PrimitiveSet:
    """Primitives of one stream at one point in time."""
    time: Optional[float] = None
    point_cloud: Optional[PointCloud] = None
    features: List[Feature] = field(default_factory=list)
    images: List[ImagePrimitive] = field(default_factory=list)


@dataclass
class StreamEntry(PrimitiveSet):
    variable: Optional[List[Variable]] = None
    time_series: Optional[List[TimeSeries]] = None
    look_aheads: Optional[List[PrimitiveSet]] = None
    pose: Optional[Pose] = None


@dataclass
class Metadata:
    version: Optional[str]
    major_version: int
    event_start_time: Optional[float] = None
    event_end_time: Optional[float] = None
    log_start_time: Optional[float] = None
    log_end_time: Optional[float] = None
    streams: Dict[str, dict] = field(default_factory=dict)
    videos: Dict[str, Any] = field(default_factory=dict)
    map: Optional[dict] = None
    ui_config: Optional[dict] = None
    styles: Optional[dict] = None
    vehicle_info: Optional[dict] = None
    type: LogStreamMessage = LogStreamMessage.METADATA


@dataclass
class Timeslice:
    timestamp: float
    streams: Dict[str, StreamEntry] = field(default_factory=dict)
    vehicle_pose: Optional[Pose] = None
    update_type: Optional[str] = None
    type: LogStreamMessage = LogStreamMessage.TIMESLICE


@dataclass
class Incomplete:
    message: str
    type: LogStreamMessage = LogStreamMessage.INCOMPLETE


@dataclass
class ErrorMessage:
    message: Optional[str]
    type: LogStreamMessage = LogStreamMessage.ERROR


@dataclass
class Done:
    id: Any = None
    type: LogStreamMessage = LogStreamMessage.DONE
