"""
Parse-time configuration for the XVIZ message parser.

The context is immutable; every parse call receives it explicitly. Version
promotion after a metadata message produces a new context instead of
mutating shared state.
"""
from typing import Any, Callable, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from xviz.core.config import Settings, settings as default_settings


# (primitive, stream_name, time) -> None; may change primitive["type"] in place
PreProcessPrimitive = Callable[[dict, str, Optional[float]], None]


class ParseContext(BaseModel):
    """Protocol configuration consulted by every parse call."""
    model_config = ConfigDict(frozen=True)

    current_major_version: int = 1
    supported_versions: FrozenSet[int] = frozenset({1, 2})
    primary_pose_stream: str = "/vehicle_pose"
    pre_process_primitive: Optional[Callable[..., Any]] = None

    @field_validator("supported_versions", mode="before")
    @classmethod
    def _coerce_versions(cls, value):
        if isinstance(value, int):
            return frozenset({value})
        return frozenset(value)

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "ParseContext":
        return cls(
            current_major_version=settings.XVIZ_MAJOR_VERSION,
            supported_versions=settings.supported_versions,
            primary_pose_stream=settings.XVIZ_PRIMARY_POSE_STREAM,
        )

    def update(self, **changes) -> "ParseContext":
        """Returns a validated copy with ``changes`` applied."""
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(changes)
        return type(self)(**values)

    def promote(self, metadata) -> "ParseContext":
        """Returns a copy whose current version is the one declared by ``metadata``."""
        major_version = getattr(metadata, "major_version", None)
        if major_version is None or major_version == self.current_major_version:
            return self
        return self.update(current_major_version=major_version)
