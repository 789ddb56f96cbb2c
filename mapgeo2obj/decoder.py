"""
Walks a mapgeo byte stream into typed blocks.

Layout (all scalars little-endian, counts/lengths int32):

  magic[4] = "OEGM", version
  header reserved byte (< v7), reserved ints (v9: 1, v10+: 2)
  format descriptors: count, { block_type, defined, defined * (name, fmt), (15 - defined) * placeholder pair }
  float buffers:      count, { byte_length, float32[byte_length / 4] }
  triangle buffers:   count, { byte_length, u16[byte_length / 2] }
  object records:     count, { ... see _read_object ... }

Reserved fields are kept on the records. Values we have never seen are
reported as anomalies and decoding carries on.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from .errors import DecodeError, UnsupportedFormatError
from .model import (
    ALL_LAYERS_MASK,
    KNOWN_OBJECT_CLASSES,
    MAX_ATTRIBUTE_SLOTS,
    Anomaly,
    AttributeFormat,
    AttributeName,
    FloatDataBuffer,
    MapGeo,
    ObjectRecord,
    Submesh,
    TriangleBuffer,
    VertexAttribute,
    VertexFormatDescriptor,
)
from .reader import Reader
from .versions import MAGIC, MAX_VERSION, MIN_VERSION, FormatVersion

_log = logging.getLogger(__name__)

_KNOWN_NAMES = {int(n) for n in AttributeName}
_KNOWN_FORMATS = {int(f) for f in AttributeFormat}


def read_mapgeo(source: Union[str, Path, bytes]) -> MapGeo:
    """Check magic and version, then decode the rest of the file."""
    data = source if isinstance(source, (bytes, bytearray)) else Path(source).read_bytes()
    r = Reader(bytes(data))
    if r.length() < 8:
        raise UnsupportedFormatError(f"file too small for a mapgeo header ({r.length()} bytes)")
    magic = r.bytes(4)
    if magic != MAGIC:
        raise UnsupportedFormatError(f"unrecognized magic value: {magic!r}")
    version = r.i32()
    if not FormatVersion(version).supported:
        raise UnsupportedFormatError(
            f"unsupported version {version} (expected {MIN_VERSION}..{MAX_VERSION})"
        )
    return decode(r, version)


def decode(r: Reader, version: int) -> MapGeo:
    fv = FormatVersion(version)
    geo = MapGeo(version=version)

    _read_header(r, fv, geo)

    _log.debug("reading vertex format blocks at %#x", r.tell())
    geo.formats = _read_formats(r, geo)

    _log.debug("reading float data blocks at %#x", r.tell())
    geo.float_buffers = _read_float_buffers(r, geo)

    _log.debug("reading tri blocks at %#x", r.tell())
    geo.tri_buffers = _read_tri_buffers(r, geo)

    _log.debug("reading object blocks at %#x", r.tell())
    count = _count(r, "object block")
    for i in range(count):
        _log.debug("object block %d/%d at %#x", i + 1, count, r.tell())
        ofs = r.tell()
        obj = _read_object(r, fv, geo, i)
        _check_indices(geo, obj, i, ofs)
        geo.objects.append(obj)

    if r.remaining():
        _anomaly(geo, r.tell(), "file", "trailing bytes", r.remaining(), "bytes left after the last object block")

    if geo.layer_mask_counts:
        _log.info(
            "layer bitmask object counts: %s",
            ", ".join(f"{mask:#04x}: {n}" for mask, n in sorted(geo.layer_mask_counts.items())),
        )
    return geo


def _anomaly(geo: MapGeo, offset: int, where: str, field: str, value: object, message: str = "") -> None:
    a = Anomaly(offset, where, field, value, message)
    geo.anomalies.append(a)
    _log.warning("%s", a)


def _count(r: Reader, what: str) -> int:
    ofs = r.tell()
    n = r.i32()
    if n < 0:
        raise DecodeError(f"negative {what} count {n}", ofs)
    return n


def _read_header(r: Reader, fv: FormatVersion, geo: MapGeo) -> None:
    if fv.has_header_reserved_byte:
        ofs = r.tell()
        geo.header_reserved_byte = r.u8()
        if geo.header_reserved_byte != 0:
            _anomaly(geo, ofs, "header", "reserved byte", geo.header_reserved_byte)

    ints: List[int] = []
    for k in range(fv.header_reserved_int_count):
        ofs = r.tell()
        v = r.i32()
        ints.append(v)
        if v != 0:
            _anomaly(geo, ofs, "header", f"reserved int {k + 1}", v)
    geo.header_reserved_ints = tuple(ints)


def _read_formats(r: Reader, geo: MapGeo) -> List[VertexFormatDescriptor]:
    out: List[VertexFormatDescriptor] = []
    for i in range(_count(r, "vertex format block")):
        where = f"vertex format block {i}"
        ofs = r.tell()
        block_type = r.i32()
        if block_type != 0:
            _anomaly(geo, ofs, where, "block type", block_type)

        ofs = r.tell()
        defined = r.i32()
        if not (0 <= defined <= MAX_ATTRIBUTE_SLOTS):
            raise DecodeError(f"{where}: defined attribute count {defined} out of range", ofs)

        attrs: List[VertexAttribute] = []
        for j in range(defined):
            ofs = r.tell()
            name = r.i32()
            fmt = r.i32()
            if name not in _KNOWN_NAMES:
                _anomaly(geo, ofs, where, f"attribute {j} name", name, "unknown attribute name")
            if fmt not in _KNOWN_FORMATS:
                _anomaly(geo, ofs + 4, where, f"attribute {j} format", fmt, "unknown attribute format")
            attrs.append(
                VertexAttribute(
                    AttributeName(name) if name in _KNOWN_NAMES else name,
                    AttributeFormat(fmt) if fmt in _KNOWN_FORMATS else fmt,
                )
            )

        # unused slots: (Position, 3) placeholders, ignored
        r.bytes((MAX_ATTRIBUTE_SLOTS - defined) * 8)
        out.append(VertexFormatDescriptor(tuple(attrs), block_type))
    return out


def _byte_length(r: Reader, what: str) -> int:
    ofs = r.tell()
    n = r.i32()
    if n < 0:
        raise DecodeError(f"negative {what} byte length {n}", ofs)
    return n


def _read_float_buffers(r: Reader, geo: MapGeo) -> List[FloatDataBuffer]:
    count = _count(r, "float data block")
    _log.debug("float data block count: %d", count)
    out: List[FloatDataBuffer] = []
    for i in range(count):
        size = _byte_length(r, "float data block")
        data = r.f32s(size // 4)
        if size % 4:
            ofs = r.tell()
            r.bytes(size % 4)
            _anomaly(geo, ofs, f"float data block {i}", "byte length", size, "not a multiple of 4")
        out.append(FloatDataBuffer(data))
    return out


def _read_tri_buffers(r: Reader, geo: MapGeo) -> List[TriangleBuffer]:
    count = _count(r, "tri block")
    _log.debug("tri block count: %d", count)
    out: List[TriangleBuffer] = []
    for i in range(count):
        size = _byte_length(r, "tri block")
        tri_count = size // 6  # 3 u16 indices per tri
        idx = r.u16s(tri_count * 3)
        if size % 6:
            ofs = r.tell()
            r.bytes(size % 6)
            _anomaly(geo, ofs, f"tri block {i}", "byte length", size, "not a multiple of 6")
        tris = [(idx[k], idx[k + 1], idx[k + 2]) for k in range(0, len(idx), 3)]
        out.append(TriangleBuffer(tris))
    return out


def _read_submesh(r: Reader, geo: MapGeo, where: str) -> Submesh:
    ofs = r.tell()
    reserved = r.i32()
    if reserved != 0:
        _anomaly(geo, ofs, where, "reserved int", reserved)
    name = r.fixed_str(_byte_length(r, "material name"))
    # the file counts tri corners, we count tris
    start = r.i32() // 3
    count = r.i32() // 3
    unk1 = r.i32()
    unk2 = r.i32()
    return Submesh(name, start, count, reserved, (unk1, unk2))


def _read_object(r: Reader, fv: FormatVersion, geo: MapGeo, index: int) -> ObjectRecord:
    where = f"object {index}"

    name = r.fixed_str(_byte_length(r, "object name"))
    vertex_count = r.i32()
    buffer_count = _count(r, "float buffer reference")
    format_start = r.i32()
    buffer_indices = [r.i32() for _ in range(buffer_count)]

    total_index_count = r.i32()
    tri_index = r.i32()

    submeshes = [
        _read_submesh(r, geo, f"{where} submesh {j}")
        for j in range(_count(r, "submesh"))
    ]

    obj = ObjectRecord(
        name=name,
        vertex_count=vertex_count,
        format_start_index=format_start,
        float_buffer_indices=buffer_indices,
        total_index_count=total_index_count,
        tri_buffer_index=tri_index,
        submeshes=submeshes,
    )

    if fv.has_object_pad_byte:
        obj.reserved_pad_byte = r.u8()

    obj.bounding_box = r.f32s(6)

    ofs = r.tell()
    obj.transform = r.f32s(16)
    if not obj.has_identity_transform:
        _anomaly(geo, ofs, where, "transform", _rows(obj.transform), "non-identity matrix, baked into the export")

    ofs = r.tell()
    obj.object_class = r.u8()
    if obj.object_class not in KNOWN_OBJECT_CLASSES:
        _anomaly(geo, ofs, where, "class byte", f"{obj.object_class:#04x}", "unrecognized")

    if fv.has_layer_mask:
        obj.layer_mask = r.u8()
        geo.layer_mask_counts[obj.layer_mask] = geo.layer_mask_counts.get(obj.layer_mask, 0) + 1
        if obj.layer_mask != ALL_LAYERS_MASK:
            geo.discovered_layers |= obj.layer_mask

    if fv.legacy_object_float_count:
        obj.reserved_legacy_floats = r.f32s(fv.legacy_object_float_count)

    if fv.has_v11_reserved_byte:
        ofs = r.tell()
        obj.reserved_v11_byte = r.u8()
        if obj.reserved_v11_byte != 0:
            _anomaly(geo, ofs, where, "v11 reserved byte", f"{obj.reserved_v11_byte:#04x}")

    # lightmap textures are named here, color textures live in the materials bin
    obj.lightmap_name = r.fixed_str(_byte_length(r, "lightmap name"))
    obj.reserved_lightmap_bytes = r.bytes(16)

    if fv.object_trailer_size:
        ofs = r.tell()
        obj.reserved_trailer = r.bytes(fv.object_trailer_size)
        for k, b in enumerate(obj.reserved_trailer):
            if b != 0:
                _anomaly(geo, ofs + k, where, "v9 reserved byte", f"{b:#04x}")

    return obj


def _check_indices(geo: MapGeo, obj: ObjectRecord, index: int, offset: int) -> None:
    where = f"object {index} ({obj.name!r})"
    for bi in obj.float_buffer_indices:
        if not (0 <= bi < len(geo.float_buffers)):
            raise DecodeError(f"{where}: float data block index {bi} out of range (have {len(geo.float_buffers)})", offset)
    if not (0 <= obj.tri_buffer_index < len(geo.tri_buffers)):
        raise DecodeError(f"{where}: tri block index {obj.tri_buffer_index} out of range (have {len(geo.tri_buffers)})", offset)
    if geo.formats:
        end = obj.format_start_index + len(obj.float_buffer_indices)
        if obj.format_start_index < 0 or end > len(geo.formats):
            raise DecodeError(
                f"{where}: vertex format blocks {obj.format_start_index}..{end - 1} out of range (have {len(geo.formats)})",
                offset,
            )


def _rows(m: Iterable[float]) -> Tuple[Tuple[float, ...], ...]:
    """Column-major 4x4 back into rows, for logging."""
    m = tuple(m)
    return tuple(tuple(m[c * 4 + row] for c in range(4)) for row in range(4))
