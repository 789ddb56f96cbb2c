from __future__ import annotations

import struct
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

IDENTITY = (1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0)

# Position:Float3, NormalDirection:Float3, ColorUV:Float2 -> 32 bytes per vertex
POS_NRM_UV = [(0x00, 0x02), (0x02, 0x02), (0x07, 0x01)]

# three vertices of POS_NRM_UV
TRIANGLE_FLOATS = [
    0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0,
    1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 1.0, 0.0, 1.0, 0.0, 0.0, 1.0,
]


def _i32(v: int) -> bytes:
    return struct.pack("<i", v)


def _str(s: str) -> bytes:
    b = s.encode("utf-8")
    return _i32(len(b)) + b


def _floats(values: Sequence[float]) -> bytes:
    return struct.pack(f"<{len(values)}f", *values)


def build_mapgeo(
    version: int = 7,
    *,
    formats: Optional[List[List[Tuple[int, int]]]] = None,
    float_buffers: Optional[List[List[float]]] = None,
    tri_buffers: Optional[List[List[Tuple[int, int, int]]]] = None,
    objects: Optional[List[Dict]] = None,
    header_byte: int = 0,
    header_ints: Tuple[int, int] = (0, 0),
    magic: bytes = b"OEGM",
    format_block_type: int = 0,
    trailing: bytes = b"",
) -> bytes:
    """Serialize a synthetic mapgeo in the field order the game writes it."""
    formats = [POS_NRM_UV] if formats is None else formats
    float_buffers = [TRIANGLE_FLOATS] if float_buffers is None else float_buffers
    tri_buffers = [[(0, 1, 2)]] if tri_buffers is None else tri_buffers
    objects = [{}] if objects is None else objects

    out = bytearray(magic + _i32(version))
    if version < 7:
        out += bytes([header_byte])
    if version >= 9:
        out += _i32(header_ints[0])
    if version >= 10:
        out += _i32(header_ints[1])

    out += _i32(len(formats))
    for attrs in formats:
        out += _i32(format_block_type) + _i32(len(attrs))
        for name, fmt in attrs:
            out += _i32(name) + _i32(fmt)
        for _ in range(15 - len(attrs)):
            out += _i32(0) + _i32(3)

    out += _i32(len(float_buffers))
    for data in float_buffers:
        out += _i32(len(data) * 4) + _floats(data)

    out += _i32(len(tri_buffers))
    for tris in tri_buffers:
        flat = [i for t in tris for i in t]
        out += _i32(len(flat) * 2) + struct.pack(f"<{len(flat)}H", *flat)

    out += _i32(len(objects))
    for i, overrides in enumerate(objects):
        o = {
            "name": f"MapGeo_Instance_{i}",
            "vertex_count": 3,
            "format_start": 0,
            "buffers": [0],
            "total_index_count": 3,
            "tri": 0,
            "submeshes": [("Maps/Mat_A", 0, 1)],
            "submesh_reserved": 0,
            "pad_byte": 0,
            "aabb": [0.0] * 6,
            "transform": IDENTITY,
            "object_class": 0x1F,
            "layer_mask": 0xFF,
            "legacy_floats": [0.0] * 27,
            "v11_byte": 0,
            "lightmap": "",
            "lightmap_bytes": bytes(16),
            "trailer": bytes(20),
        }
        o.update(overrides)
        out += _str(o["name"])
        out += _i32(o["vertex_count"]) + _i32(len(o["buffers"])) + _i32(o["format_start"])
        for b in o["buffers"]:
            out += _i32(b)
        out += _i32(o["total_index_count"]) + _i32(o["tri"])
        out += _i32(len(o["submeshes"]))
        for material, start, count in o["submeshes"]:
            out += _i32(o["submesh_reserved"]) + _str(material)
            out += _i32(start * 3) + _i32(count * 3) + _i32(0) + _i32(3)
        if version >= 6:
            out += bytes([o["pad_byte"]])
        out += _floats(o["aabb"])
        out += _floats(o["transform"])
        out += bytes([o["object_class"]])
        if version >= 7:
            out += bytes([o["layer_mask"]])
        if version < 8:
            out += _floats(o["legacy_floats"])
        if version >= 11:
            out += bytes([o["v11_byte"]])
        out += _str(o["lightmap"])
        out += o["lightmap_bytes"]
        if version >= 9:
            out += o["trailer"]

    out += trailing
    return bytes(out)


@pytest.fixture
def mapgeo_bytes():
    return build_mapgeo


@pytest.fixture
def value_hash() -> bytes:
    return b"\xca\xd3\x5e\x42"
