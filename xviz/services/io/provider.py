"""
Frame providers over an XVIZ data reader.

A reader implements:
    time_range()        -> {"start_time": float, "end_time": float}
    find_frame(ts)      -> (start_index, end_index) or None
    read_frame(index)   -> raw frame data or None
    read_metadata()     -> raw metadata or None
"""
import bisect
import logging
import math
from typing import Any, Optional, Protocol

from xviz.services.io.data import XVIZData

logger = logging.getLogger(__name__)


class XVIZReader(Protocol):
    def time_range(self) -> dict:
        ...

    def find_frame(self, timestamp: float) -> Optional[tuple[int, int]]:
        ...

    def read_frame(self, index: int) -> Any:
        ...

    def read_metadata(self) -> Any:
        ...


def _is_finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class FrameIterator:
    """Iterates frame indices from ``start`` to ``end`` inclusive."""

    def __init__(self, start: int, end: int, increment: int = 1):
        self.start = start
        self.end = end
        self.increment = increment
        self.current = start

    def valid(self) -> bool:
        return self.current <= self.end

    def value(self) -> int:
        return self.current

    def next(self) -> tuple[bool, Optional[int]]:
        if not self.valid():
            return False, None

        index = self.current
        self.current += self.increment
        return True, index

    def __iter__(self):
        while self.valid():
            _, index = self.next()
            yield index


class XVIZBaseProvider:
    """
    Serves XVIZ metadata and frames from a reader.

    Usage:
        provider = XVIZBaseProvider(reader)
        provider.init()
        iterator = provider.get_frame_iterator(start_time, end_time)
        while (frame := provider.xviz_frame(iterator)) is not None:
            ...
    """

    def __init__(self, reader: Optional[XVIZReader], options: Optional[dict] = None):
        self.reader = reader
        self.options = options or {}
        self.metadata: Optional[XVIZData] = None
        self._valid = False

    def init(self) -> None:
        """Reads the time range and metadata."""
        if not self.reader:
            return

        time_range = self.reader.time_range()
        start_time = time_range.get("start_time")
        end_time = time_range.get("end_time")
        self.metadata = self._read_metadata()

        if self.metadata and _is_finite(start_time) and _is_finite(end_time):
            self._valid = True

        if self.metadata and not (_is_finite(start_time) and _is_finite(end_time)):
            logger.warning("The data source is missing the data index")

    def valid(self) -> bool:
        return self._valid

    def xviz_metadata(self) -> Optional[XVIZData]:
        return self.metadata

    def xviz_frame(self, iterator: FrameIterator) -> Optional[XVIZData]:
        valid, index = iterator.next()
        if not valid:
            return None
        return self._read_frame(index)

    def get_frame_iterator(self, start_time: Optional[float] = None, end_time: Optional[float] = None) -> Optional[FrameIterator]:
        """
        Returns an iterator over the frames covering [start_time, end_time].

        Missing bounds default to the reader's full range and bounds past
        either end are clamped to it. Returns None if the range is inverted,
        lies outside the log or the bounds cannot be located.
        """
        time_range = self.reader.time_range()

        if not _is_finite(start_time):
            start_time = time_range.get("start_time")

        if not _is_finite(end_time):
            end_time = time_range.get("end_time")

        # Bounds that reach past the log are clamped to it
        if _is_finite(time_range.get("start_time")) and _is_finite(start_time):
            start_time = max(start_time, time_range["start_time"])
        if _is_finite(time_range.get("end_time")) and _is_finite(end_time):
            end_time = min(end_time, time_range["end_time"])

        if not (_is_finite(start_time) and _is_finite(end_time)) or start_time > end_time:
            return None

        start_frames = self.reader.find_frame(start_time)
        end_frames = self.reader.find_frame(end_time)

        if start_frames is not None and end_frames is not None:
            return FrameIterator(start_frames[0], end_frames[1])

        return None

    def _read_frame(self, index: int) -> Optional[XVIZData]:
        data = self.reader.read_frame(index)
        if data:
            return XVIZData(data)
        return None

    def _read_metadata(self) -> Optional[XVIZData]:
        data = self.reader.read_metadata()
        if data:
            return XVIZData(data)
        return None


class MemoryReader:
    """
    In-memory reader for a metadata message and timestamped frames.

    Frames must be added in timestamp order.

    Usage:
        reader = MemoryReader(metadata)
        reader.add_frame(1001.0, frame_json)
        provider = XVIZBaseProvider(reader)
    """

    def __init__(self, metadata: Any = None):
        self.metadata = metadata
        self.timestamps: list[float] = []
        self.frames: list[Any] = []

    def add_frame(self, timestamp: float, data: Any) -> None:
        if self.timestamps and timestamp < self.timestamps[-1]:
            raise ValueError(f"Frame timestamp {timestamp} is before {self.timestamps[-1]}")
        self.timestamps.append(timestamp)
        self.frames.append(data)

    def time_range(self) -> dict:
        if not self.timestamps:
            return {"start_time": None, "end_time": None}
        return {"start_time": self.timestamps[0], "end_time": self.timestamps[-1]}

    def find_frame(self, timestamp: float) -> Optional[tuple[int, int]]:
        """Returns the index range of the last frame at or before ``timestamp``."""
        if not self.timestamps or timestamp < self.timestamps[0] or timestamp > self.timestamps[-1]:
            return None
        index = bisect.bisect_right(self.timestamps, timestamp) - 1
        return index, index

    def read_frame(self, index: int) -> Any:
        if 0 <= index < len(self.frames):
            return self.frames[index]
        return None

    def read_metadata(self) -> Any:
        return self.metadata
