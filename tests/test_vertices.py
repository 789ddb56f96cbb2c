import math

import pytest

from mapgeo2obj.decoder import read_mapgeo
from mapgeo2obj.errors import VertexLayoutError
from mapgeo2obj.model import (
    AttributeFormat,
    AttributeName,
    FloatDataBuffer,
    ObjectRecord,
    VertexAttribute,
    VertexFormatDescriptor,
)
from mapgeo2obj.vertices import VertexCache, build_vertex_block, transform_direction, transform_point

POS = VertexAttribute(AttributeName.Position, AttributeFormat.Float3)
NRM = VertexAttribute(AttributeName.NormalDirection, AttributeFormat.Float3)
UV = VertexAttribute(AttributeName.ColorUV, AttributeFormat.Float2)
LMUV = VertexAttribute(AttributeName.LightmapUV, AttributeFormat.Float2)
COLOR2 = VertexAttribute(AttributeName.SecondaryColor, AttributeFormat.PackedColor4)


def record(buffers, format_start=0, lightmap=""):
    return ObjectRecord(
        name="obj",
        vertex_count=0,
        format_start_index=format_start,
        float_buffer_indices=list(buffers),
        total_index_count=0,
        tri_buffer_index=0,
        submeshes=[],
        lightmap_name=lightmap,
    )


def test_single_interleaved_buffer(mapgeo_bytes):
    geo = read_mapgeo(mapgeo_bytes(8))
    block = VertexCache(geo).get(0)
    assert len(block.vertices) == 3
    v = block.vertices[1]
    assert v.position == (1.0, 0.0, 0.0)
    assert v.normal == (0.0, 1.0, 0.0)
    assert v.color_uv == (1.0, 0.0)
    assert v.lightmap_uv is None


def test_split_buffers_use_consecutive_formats():
    formats = [VertexFormatDescriptor((POS, NRM)), VertexFormatDescriptor((UV, LMUV))]
    buffers = [
        FloatDataBuffer((1.0, 2.0, 3.0, 0.0, 0.0, 1.0, 4.0, 5.0, 6.0, 0.0, 0.0, 1.0)),
        FloatDataBuffer((0.25, 0.5, 0.0, 1.0, 0.75, 1.0, 1.0, 0.0)),
    ]
    block = build_vertex_block(record([0, 1]), formats, buffers)
    assert [v.position for v in block.vertices] == [(1.0, 2.0, 3.0), (4.0, 5.0, 6.0)]
    assert [v.color_uv for v in block.vertices] == [(0.25, 0.5), (0.75, 1.0)]
    assert [v.lightmap_uv for v in block.vertices] == [(0.0, 1.0), (1.0, 0.0)]


def test_secondary_color_is_skipped():
    formats = [VertexFormatDescriptor((POS, COLOR2, UV))]
    buffers = [FloatDataBuffer((1.0, 2.0, 3.0, 9.0, 0.5, 0.5))]
    block = build_vertex_block(record([0]), formats, buffers)
    v = block.vertices[0]
    assert v.position == (1.0, 2.0, 3.0)
    assert v.color_uv == (0.5, 0.5)
    assert v.normal is None


def test_buffer_not_a_multiple_of_stride():
    formats = [VertexFormatDescriptor((POS, NRM))]
    buffers = [FloatDataBuffer((0.0,) * 7)]
    with pytest.raises(VertexLayoutError, match="vertex byte size 24"):
        build_vertex_block(record([0]), formats, buffers, index=4)


def test_buffers_disagree_on_vertex_count():
    formats = [VertexFormatDescriptor((POS, NRM)), VertexFormatDescriptor((UV,))]
    buffers = [FloatDataBuffer((0.0,) * 12), FloatDataBuffer((0.0,) * 6)]
    with pytest.raises(VertexLayoutError) as exc:
        build_vertex_block(record([0, 1]), formats, buffers, index=2)
    assert exc.value.object_index == 2


def test_unknown_format_has_no_stride():
    formats = [VertexFormatDescriptor((POS, VertexAttribute(AttributeName.ColorUV, 9)))]
    with pytest.raises(VertexLayoutError, match="unknown attribute format"):
        build_vertex_block(record([0]), formats, [FloatDataBuffer((0.0,) * 5)])


@pytest.mark.parametrize("lightmap, stride", [("", 8), ("lm.dds", 10)])
def test_legacy_merged_layout(lightmap, stride):
    data = tuple(float(i) for i in range(stride * 2))
    block = build_vertex_block(record([0], lightmap=lightmap), [], [FloatDataBuffer(data)])
    assert len(block.vertices) == 2
    v = block.vertices[1]
    assert v.position == data[stride : stride + 3]
    assert v.normal == data[stride + 3 : stride + 6]
    assert v.color_uv == data[stride + 6 : stride + 8]
    assert v.lightmap_uv == (data[stride + 8 : stride + 10] if lightmap else None)


def test_legacy_split_layout():
    pos = FloatDataBuffer((1.0, 2.0, 3.0, 0.0, 1.0, 0.0) * 2)
    uvs = FloatDataBuffer((0.5, 0.25, 0.0, 0.0, 0.75, 0.125, 1.0, 1.0))
    block = build_vertex_block(record([0, 1], lightmap="lm.dds"), [], [pos, uvs])
    assert [v.color_uv for v in block.vertices] == [(0.5, 0.25), (0.75, 0.125)]
    assert [v.lightmap_uv for v in block.vertices] == [(0.0, 0.0), (1.0, 1.0)]


def test_legacy_split_layout_mismatch():
    pos = FloatDataBuffer((0.0,) * 12)
    uvs = FloatDataBuffer((0.0,) * 2)
    with pytest.raises(VertexLayoutError):
        build_vertex_block(record([0, 1]), [], [pos, uvs])


def test_cache_builds_once(mapgeo_bytes):
    geo = read_mapgeo(mapgeo_bytes(7, objects=[{}, {}]))
    cache = VertexCache(geo)
    first = cache.get(0)
    assert cache.get(0) is first


def test_transform_point_translates():
    m = (0.0, 1.0, 0.0, 0.0, -1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 10.0, 20.0, 30.0, 1.0)
    assert transform_point((1.0, 0.0, 0.0), m) == (10.0, 21.0, 30.0)


def test_transform_direction_renormalizes():
    scale = (2.0, 0.0, 0.0, 0.0, 0.0, 2.0, 0.0, 0.0, 0.0, 0.0, 2.0, 0.0, 5.0, 5.0, 5.0, 1.0)
    x, y, z = transform_direction((0.0, 3.0, 4.0), scale)
    assert (x, y, z) == pytest.approx((0.0, 0.6, 0.8))
    assert math.isclose(x * x + y * y + z * z, 1.0)
