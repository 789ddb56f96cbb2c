from __future__ import annotations

from typing import Optional


class MapGeoError(ValueError):
    pass


class UnsupportedFormatError(MapGeoError):
    """Wrong magic token or a version outside the supported range."""


class DecodeError(MapGeoError):
    """The byte stream cannot be walked any further (truncated, bad count or index)."""

    def __init__(self, message: str, offset: Optional[int] = None):
        if offset is not None:
            message = f"{message} (offset {offset:#x})"
        super().__init__(message)
        self.offset = offset


class VertexLayoutError(MapGeoError):
    """An object's float buffers do not agree with its attribute layout."""

    def __init__(self, message: str, object_index: Optional[int] = None):
        if object_index is not None:
            message = f"object {object_index}: {message}"
        super().__init__(message)
        self.object_index = object_index
