from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import VertexLayoutError
from .model import (
    AttributeName,
    FloatDataBuffer,
    MapGeo,
    ObjectRecord,
    Vertex,
    VertexBlock,
    VertexFormatDescriptor,
)

_log = logging.getLogger(__name__)

_FIELDS = {
    AttributeName.Position: "position",
    AttributeName.NormalDirection: "normal",
    AttributeName.ColorUV: "color_uv",
    AttributeName.LightmapUV: "lightmap_uv",
}

# legacy strides, in floats
POS_NORMAL_FLOATS = 6
UV_FLOATS = 2
UV_LIGHTMAP_FLOATS = 4


class VertexCache:
    """Builds each object's vertices once; later layers reuse the same block."""

    def __init__(self, geo: MapGeo):
        self.geo = geo
        self._blocks: List[Optional[VertexBlock]] = [None] * len(geo.objects)

    def get(self, index: int) -> VertexBlock:
        block = self._blocks[index]
        if block is None:
            block = build_vertex_block(self.geo.objects[index], self.geo.formats, self.geo.float_buffers, index=index)
            self._blocks[index] = block
        return block


def build_vertex_block(
    obj: ObjectRecord,
    formats: Sequence[VertexFormatDescriptor],
    buffers: Sequence[FloatDataBuffer],
    *,
    index: Optional[int] = None,
) -> VertexBlock:
    if formats:
        return _build_unified(obj, formats, buffers, index)
    return _build_legacy(obj, buffers, index)


def _vertex_count(byte_length: int, stride: int, what: str, index: Optional[int]) -> int:
    if stride <= 0 or byte_length % stride:
        raise VertexLayoutError(
            f"{what} of length {byte_length} does not match vertex byte size {stride}", index
        )
    return byte_length // stride


def _build_unified(
    obj: ObjectRecord,
    formats: Sequence[VertexFormatDescriptor],
    buffers: Sequence[FloatDataBuffer],
    index: Optional[int],
) -> VertexBlock:
    # buffer i is laid out by descriptor (format_start_index + i)
    layouts: List[Tuple[VertexFormatDescriptor, FloatDataBuffer, int]] = []
    seen: Dict[int, int] = {}
    for i, bi in enumerate(obj.float_buffer_indices):
        fmt = formats[obj.format_start_index + i]
        for a in fmt.attributes:
            if a.name in seen:
                _log.warning(
                    "object %s (%r): vertex attribute %s defined more than once",
                    index,
                    obj.name,
                    getattr(a.name, "name", a.name),
                )
            seen[a.name] = i
        stride = fmt.stride
        if stride is None:
            raise VertexLayoutError(f"vertex format block {obj.format_start_index + i} has an unknown attribute format", index)
        layouts.append((fmt, buffers[bi], stride))

    vertices: List[Vertex] = []
    vertex_count = -1
    for i, (fmt, buf, stride) in enumerate(layouts):
        what = f"float data block {obj.float_buffer_indices[i]}"
        n = _vertex_count(buf.byte_length, stride, what, index)
        if i == 0:
            vertex_count = n
            vertices = [Vertex() for _ in range(n)]
        elif n != vertex_count:
            raise VertexLayoutError(
                f"{what} (local index {i}) holds {n} vertices, previous blocks hold {vertex_count}", index
            )

        data = buf.data
        step = stride // 4
        for j, vertex in enumerate(vertices):
            off = j * step
            for a in fmt.attributes:
                width = a.byte_size // 4  # type: ignore[operator]
                attr = _FIELDS.get(a.name)
                if attr is not None:
                    setattr(vertex, attr, tuple(data[off : off + width]))
                # SecondaryColor and unknown names are skipped
                off += width

    return VertexBlock(vertices)


def _build_legacy(obj: ObjectRecord, buffers: Sequence[FloatDataBuffer], index: Optional[int]) -> VertexBlock:
    """
    Files without format descriptors use fixed layouts:

      1 buffer:  pos(3f) nrm(3f) uv(2f) [lightmap uv(2f)]
      2 buffers: pos(3f) nrm(3f) | uv(2f) [lightmap uv(2f)]
    """
    uv_floats = UV_LIGHTMAP_FLOATS if obj.has_lightmap else UV_FLOATS
    refs = obj.float_buffer_indices
    if len(refs) == 1:
        data = buffers[refs[0]].data
        step = POS_NORMAL_FLOATS + uv_floats
        n = _vertex_count(len(data) * 4, step * 4, f"float data block {refs[0]}", index)
        return VertexBlock([_legacy_vertex(data, j * step, data, j * step + POS_NORMAL_FLOATS, obj.has_lightmap) for j in range(n)])

    if len(refs) == 2:
        pos = buffers[refs[0]].data
        uvs = buffers[refs[1]].data
        n = _vertex_count(len(pos) * 4, POS_NORMAL_FLOATS * 4, f"float data block {refs[0]}", index)
        n_uv = _vertex_count(len(uvs) * 4, uv_floats * 4, f"float data block {refs[1]}", index)
        if n_uv != n:
            raise VertexLayoutError(
                f"float data block {refs[1]} holds {n_uv} UVs for {n} vertices", index
            )
        return VertexBlock(
            [_legacy_vertex(pos, j * POS_NORMAL_FLOATS, uvs, j * uv_floats, obj.has_lightmap) for j in range(n)]
        )

    raise VertexLayoutError(f"legacy layout expects 1 or 2 float data blocks, got {len(refs)}", index)


def _legacy_vertex(pos: Sequence[float], p: int, uvs: Sequence[float], u: int, lightmap: bool) -> Vertex:
    return Vertex(
        position=tuple(pos[p : p + 3]),
        normal=tuple(pos[p + 3 : p + 6]),
        color_uv=tuple(uvs[u : u + 2]),
        lightmap_uv=tuple(uvs[u + 2 : u + 4]) if lightmap else None,
    )


def transform_point(v: Sequence[float], m: Sequence[float]) -> Tuple[float, float, float]:
    """Column-major 4x4, w = 1."""
    x, y, z = v[0], v[1], v[2]
    return (
        m[0] * x + m[4] * y + m[8] * z + m[12],
        m[1] * x + m[5] * y + m[9] * z + m[13],
        m[2] * x + m[6] * y + m[10] * z + m[14],
    )


def transform_direction(v: Sequence[float], m: Sequence[float]) -> Tuple[float, float, float]:
    """Column-major 4x4, w = 0, renormalized."""
    x, y, z = v[0], v[1], v[2]
    rx = m[0] * x + m[4] * y + m[8] * z
    ry = m[1] * x + m[5] * y + m[9] * z
    rz = m[2] * x + m[6] * y + m[10] * z
    length = math.sqrt(rx * rx + ry * ry + rz * rz)
    if length == 0.0:
        return (rx, ry, rz)
    return (rx / length, ry / length, rz / length)
