from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

MAX_ATTRIBUTE_SLOTS = 15
MAX_LAYER_COUNT = 8
ALL_LAYERS_MASK = 0xFF

IDENTITY_MATRIX: Tuple[float, ...] = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)

# 0x1c: light cards / window lights (transparent), 0x1e: transparent + scrolling, 0x1f: everything else
KNOWN_OBJECT_CLASSES = (0x1C, 0x1E, 0x1F)


class AttributeName(IntEnum):
    Position = 0x00
    NormalDirection = 0x02
    SecondaryColor = 0x05
    ColorUV = 0x07
    LightmapUV = 0x0E


class AttributeFormat(IntEnum):
    Float2 = 0x01
    Float3 = 0x02
    PackedColor4 = 0x04


ATTRIBUTE_BYTE_SIZES: Dict[int, int] = {
    AttributeFormat.Float2: 8,
    AttributeFormat.Float3: 12,
    AttributeFormat.PackedColor4: 4,
}


@dataclass(frozen=True)
class VertexAttribute:
    name: int
    format: int

    @property
    def byte_size(self) -> Optional[int]:
        return ATTRIBUTE_BYTE_SIZES.get(self.format)


@dataclass(frozen=True)
class VertexFormatDescriptor:
    attributes: Tuple[VertexAttribute, ...]
    block_type: int = 0  # reserved, "dynamic"/"static"/"streamed" in the engine; always 0 so far

    @property
    def stride(self) -> Optional[int]:
        sizes = [a.byte_size for a in self.attributes]
        if any(s is None for s in sizes):
            return None
        return sum(sizes)  # type: ignore[arg-type]


@dataclass(frozen=True)
class FloatDataBuffer:
    data: Tuple[float, ...]

    @property
    def byte_length(self) -> int:
        return len(self.data) * 4


@dataclass(frozen=True)
class TriangleBuffer:
    tris: List[Tuple[int, int, int]]  # local to the buffer

    @property
    def byte_length(self) -> int:
        return len(self.tris) * 6


@dataclass(frozen=True)
class Submesh:
    material_name: str
    tri_start: int
    tri_count: int
    reserved: int = 0
    reserved_range: Tuple[int, int] = (0, 0)  # looks like another start/count pair


@dataclass
class ObjectRecord:
    name: str
    vertex_count: int
    format_start_index: int
    float_buffer_indices: List[int]
    total_index_count: int
    tri_buffer_index: int
    submeshes: List[Submesh]
    bounding_box: Tuple[float, ...] = ()
    transform: Tuple[float, ...] = IDENTITY_MATRIX  # column-major
    object_class: int = 0x1F
    layer_mask: int = ALL_LAYERS_MASK
    lightmap_name: str = ""
    reserved_pad_byte: Optional[int] = None
    reserved_legacy_floats: Tuple[float, ...] = ()
    reserved_v11_byte: Optional[int] = None
    reserved_lightmap_bytes: bytes = b""
    reserved_trailer: bytes = b""

    @property
    def has_lightmap(self) -> bool:
        return bool(self.lightmap_name)

    @property
    def has_identity_transform(self) -> bool:
        return tuple(self.transform) == IDENTITY_MATRIX


@dataclass(frozen=True)
class Anomaly:
    offset: int
    where: str
    field: str
    value: object
    message: str = ""

    def __str__(self) -> str:
        text = f"{self.where}: {self.field} = {self.value!r} at {self.offset:#x}"
        if self.message:
            text += f" ({self.message})"
        return text


@dataclass
class MapGeo:
    version: int
    formats: List[VertexFormatDescriptor] = field(default_factory=list)
    float_buffers: List[FloatDataBuffer] = field(default_factory=list)
    tri_buffers: List[TriangleBuffer] = field(default_factory=list)
    objects: List[ObjectRecord] = field(default_factory=list)
    header_reserved_byte: Optional[int] = None
    header_reserved_ints: Tuple[int, ...] = ()
    discovered_layers: int = 0  # OR of every non-0xff layer mask
    layer_mask_counts: Dict[int, int] = field(default_factory=dict)
    anomalies: List[Anomaly] = field(default_factory=list)

    def material_names(self) -> List[str]:
        """Distinct submesh material names in order of first use."""
        seen: Dict[str, None] = {}
        for obj in self.objects:
            for sm in obj.submeshes:
                seen.setdefault(sm.material_name, None)
        return list(seen)


@dataclass
class Vertex:
    position: Optional[Tuple[float, ...]] = None
    normal: Optional[Tuple[float, ...]] = None
    color_uv: Optional[Tuple[float, ...]] = None
    lightmap_uv: Optional[Tuple[float, ...]] = None


@dataclass
class VertexBlock:
    vertices: List[Vertex]


@dataclass(frozen=True)
class Material:
    name: str
    texture: str = ""
    ambient: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)


UNRESOLVED_COLOR = (1.0, 0.0, 1.0, 1.0)
