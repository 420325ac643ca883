"""
Normalizer for XVIZ metadata messages.
"""
from typing import Optional

from .messages import Metadata


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def parse_metadata(data: dict, major_version: int, version: Optional[str] = None) -> Metadata:
    """
    Normalizes a metadata message of either protocol version.

    v1 keeps its time range at the top level; v2 nests it under ``log_info``.
    Log start/end fall back to the event start/end when absent.
    """
    if major_version == 1:
        start_time = data.get("start_time")
        end_time = data.get("end_time")
        log_start_time = data.get("log_start_time")
        log_end_time = data.get("log_end_time")
        map_info = _first(data.get("map"), data.get("map_info"))
    else:
        log_info = data.get("log_info") or {}
        start_time = _first(log_info.get("start_time"), data.get("start_time"))
        end_time = _first(log_info.get("end_time"), data.get("end_time"))
        log_start_time = log_info.get("log_start_time")
        log_end_time = log_info.get("log_end_time")
        map_info = _first(data.get("map_info"), data.get("map"))

    return Metadata(
        version=_first(version, data.get("version")),
        major_version=major_version,
        event_start_time=start_time,
        event_end_time=end_time,
        log_start_time=_first(log_start_time, start_time),
        log_end_time=_first(log_end_time, end_time),
        streams=data.get("streams") or {},
        videos=data.get("videos") or {},
        map=map_info,
        ui_config=data.get("ui_config"),
        styles=data.get("styles"),
        vehicle_info=data.get("vehicle_info"),
    )
