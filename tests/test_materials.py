import struct

import pytest

from mapgeo2obj.materials import locate_materials, resolve_material, resolve_materials, split_definitions
from mapgeo2obj.model import UNRESOLVED_COLOR


def color_param(key, rgba, value_hash, type_tag=0x0D):
    return key.encode() + value_hash + bytes([type_tag]) + struct.pack("<4f", *rgba)


def test_longer_names_claim_first():
    blob = b"header FooBar stuff Foo more"
    located = dict(locate_materials(["Foo", "FooBar"], blob))
    assert located["FooBar"] == blob.index(b"FooBar")
    assert located["Foo"] == blob.index(b"Foo more")
    assert located["Foo"] != located["FooBar"]


def test_missing_name_is_minus_one():
    located = locate_materials(["Here", "Gone"], b"..Here..")
    assert located[0] == ("Gone", -1)
    assert located[1] == ("Here", 2)


def test_spans_run_to_next_name():
    blob = b"xxAAAAyyBBzz"
    spans = split_definitions(locate_materials(["BB", "AAAA", "CC"], blob), blob)
    assert spans == {"AAAA": b"AAAAyy", "BB": b"BBzz", "CC": b""}


def test_texture_path_keeps_case():
    span = b"Mat_A\x00\x10DiffuseTexture\x00\x22ASSETS/Maps/KitPieces/Floor.DDS\x00"
    m = resolve_material("Mat_A", span)
    assert m.texture == "ASSETS/Maps/KitPieces/Floor.DDS"
    assert m.ambient == (0.0, 0.0, 0.0, 1.0)


def test_sampler_priority_order():
    span = (
        b"Mat Mask_Texture ASSETS/mask.dds "
        b"Diffuse_Texture ASSETS/diffuse.dds"
    )
    assert resolve_material("Mat", span).texture == "ASSETS/diffuse.dds"


def test_sampler_without_path():
    m = resolve_material("Mat", b"Mat DiffuseTexture but no path here")
    assert m.texture == ""
    assert m.ambient == (0.0, 0.0, 0.0, 1.0)


def test_emissive_color(value_hash):
    span = b"Glow_Mat " + color_param("Emissive_Color", (0.5, 0.25, 1.0, 1.0), value_hash)
    m = resolve_material("Glow_Mat", span)
    assert m.texture == ""
    assert m.ambient == (0.5, 0.25, 1.0, 1.0)


def test_color_key_needs_value_hash(value_hash):
    # "Color" inside an unrelated string must not be read as a param
    span = b"Mat SomeColorName " + color_param("Color_01", (0.0, 1.0, 0.0, 1.0), value_hash)
    assert resolve_material("Mat", span).ambient == (0.0, 1.0, 0.0, 1.0)


def test_texture_and_color_together(value_hash):
    span = b"Mat Bottom_Texture assets/b.dds " + color_param("Color", (0.125, 0.125, 0.125, 1.0), value_hash)
    m = resolve_material("Mat", span)
    assert m.texture == "assets/b.dds"
    assert m.ambient == (0.125, 0.125, 0.125, 1.0)


def test_unexpected_value_type_keeps_default(value_hash):
    span = b"Mat " + color_param("Color_01", (1.0, 1.0, 1.0, 1.0), value_hash, type_tag=0x0C)
    assert resolve_material("Mat", span).ambient == (0.0, 0.0, 0.0, 1.0)


def test_nothing_found_is_magenta():
    m = resolve_material("Mat", b"Mat with no known keys at all")
    assert m.texture == ""
    assert m.ambient == UNRESOLVED_COLOR == (1.0, 0.0, 1.0, 1.0)


def test_resolve_materials(value_hash):
    blob = (
        b"\x00\x01bin header "
        b"Maps/Floor DiffuseTexture ASSETS/Maps/floor.dds "
        b"Maps/Floor_Glow " + color_param("Emissive_Color", (1.0, 0.5, 0.0, 1.0), value_hash)
    )
    mats = resolve_materials(["Maps/Floor", "Maps/Floor_Glow", "Maps/Missing"], blob)
    assert set(mats) == {"Maps/Floor", "Maps/Floor_Glow", "Maps/Missing"}
    assert mats["Maps/Floor"].texture == "ASSETS/Maps/floor.dds"
    assert mats["Maps/Floor"].ambient == (0.0, 0.0, 0.0, 1.0)
    assert mats["Maps/Floor_Glow"].ambient == (1.0, 0.5, 0.0, 1.0)
    assert mats["Maps/Missing"].texture == ""
    assert mats["Maps/Missing"].ambient == (0.0, 0.0, 0.0, 1.0)


@pytest.mark.parametrize("names", [[], ["Only"]])
def test_resolve_materials_edge_sizes(names):
    mats = resolve_materials(names, b"Only DiffuseTexture ASSETS/x.dds")
    assert list(mats) == names
