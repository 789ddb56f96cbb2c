from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .errors import VertexLayoutError
from .layers import LayerPlan, object_in_layer
from .model import MAX_LAYER_COUNT, MapGeo, Material, ObjectRecord
from .vertices import VertexCache, transform_direction, transform_point

_log = logging.getLogger(__name__)

OBJ_HEADER = "# .MAPGEO file converted to .OBJ format"
MTL_HEADER = "# .MTL file for an accompanying .OBJ file, converted from .MAPGEO file format"
GROUP_PREFIX = "polySurfaceMapGeoMesh"
LAYER_DATA_MAGIC = b"MGLAYERS"
LAYER_DATA_VERSION = 1


@dataclass(frozen=True)
class ConvertOptions:
    output_dir: Path
    base_name: str
    merged_layers: bool = False
    keep_unused_layers: bool = False
    assets_root: Optional[Path] = None
    png: bool = False


@dataclass
class LayerResult:
    obj_path: Path
    mtl_path: Optional[Path]
    objects_written: int = 0
    failed: List[int] = field(default_factory=list)


class TextWriter:
    """Line writer with CRLF endings; truncates whatever was there before."""

    def __init__(self, path: Path):
        self.path = path
        self._f = path.open("w", encoding="utf-8", newline="\r\n")

    def write_line(self, line: str = "") -> None:
        self._f.write(line + "\n")

    def write_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.write_line(line)

    def write_blank_lines(self, count: int = 1) -> None:
        for _ in range(count):
            self.write_line()

    def close(self) -> None:
        self._f.close()

    def __enter__(self) -> "TextWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def fmt(x: float) -> str:
    """float32-ish text: 7 significant digits, no negative zero."""
    if x == 0.0:
        return "0"
    return f"{x:.7g}"


def group_name(object_index: int, submesh_index: int, submesh_count: int) -> str:
    name = f"{GROUP_PREFIX}{object_index + 1}"
    if submesh_count > 1:
        name += f"_{submesh_index + 1}"
    return name


def texture_reference(texture: str) -> str:
    """map_Kd value for a resolved texture path; anything that is not .dds is pointed at its .dds twin."""
    if ".dds" not in texture.lower():
        dot = texture.rfind(".")
        texture = (texture[:dot] if dot > texture.rfind("/") else texture) + ".dds"
    return "textures/" + texture


def face_line(tri: Tuple[int, int, int], vertex_base: int) -> str:
    a, b, c = (i + vertex_base for i in tri)
    # X is negated on export, so swap two corners to keep the winding
    return f"f {b}/{b}/{b} {a}/{a}/{a} {c}/{c}/{c}"


def mtl_entry(name: str, material: Material, texture_ref: Optional[str]) -> List[str]:
    rgb = " ".join(fmt(c) for c in material.ambient[:3])
    lines = ["", "", "", "", f"newmtl {name}", "illum 2", f"Kd {rgb}", f"Ka {rgb}", "Tf 1.00 1.00 1.00"]
    if texture_ref:
        lines.append(f"map_Kd {texture_ref}")
    lines.append("Ni 1.00")
    return lines


def render_object(
    geo: MapGeo,
    cache: VertexCache,
    index: int,
    vertex_base: int,
    *,
    with_materials: bool,
) -> Tuple[List[str], List[Tuple[str, str]], int]:
    """
    OBJ lines for one object, the (group, material) pairs it uses and its
    vertex count. Nothing is written here so a failing object leaves no
    partial text behind.
    """
    obj: ObjectRecord = geo.objects[index]
    block = cache.get(index)
    tris = geo.tri_buffers[obj.tri_buffer_index].tris
    m = obj.transform

    lines: List[str] = ["", "", "", "", "g default", ""]
    for v in block.vertices:
        x, y, z = transform_point(v.position or (0.0, 0.0, 0.0), m)
        lines.append(f"v {fmt(-x)} {fmt(y)} {fmt(z)}")
    lines.append("")

    for v in block.vertices:
        if v.color_uv is None:
            lines.append("vt 0 0")
        else:
            # V is stored flipped about 0.5
            lines.append(f"vt {fmt(v.color_uv[0])} {fmt(1.0 - v.color_uv[1])}")
    lines.append("")

    for v in block.vertices:
        if v.normal is None:
            lines.append("vn 0 0 1")
            continue
        nx, ny, nz = transform_direction(v.normal, m)
        lines.append(f"vn {fmt(-nx)} {fmt(ny)} {fmt(nz)}")
    lines.append("")

    used: List[Tuple[str, str]] = []
    for j, sm in enumerate(obj.submeshes):
        name = group_name(index, j, len(obj.submeshes))
        lines.append("s off")
        lines.append(f"g {name}")
        if with_materials:
            lines.append(f"usemtl {name}SG")
        end = sm.tri_start + sm.tri_count
        if sm.tri_start < 0 or end > len(tris):
            raise VertexLayoutError(
                f"submesh {j} tris {sm.tri_start}..{end - 1} out of range (tri block has {len(tris)})", index
            )
        for k in range(sm.tri_start, end):
            lines.append(face_line(tris[k], vertex_base))
        used.append((f"{name}SG", sm.material_name))

    return lines, used, len(block.vertices)


def write_layer(
    geo: MapGeo,
    cache: VertexCache,
    layer_filter: int,
    out_dir: Path,
    base_name: str,
    materials: Optional[Dict[str, Material]] = None,
    texture_refs: Optional[Dict[str, str]] = None,
) -> LayerResult:
    out_dir.mkdir(parents=True, exist_ok=True)
    obj_path = out_dir / f"{base_name}.obj"
    mtl_path = out_dir / f"{base_name}.mtl" if materials is not None else None
    result = LayerResult(obj_path, mtl_path)
    refs = texture_refs if texture_refs is not None else default_texture_refs(materials or {})

    with TextWriter(obj_path) as obj_file:
        obj_file.write_line(OBJ_HEADER)
        obj_file.write_blank_lines(1)
        mtl_file = TextWriter(mtl_path) if mtl_path is not None else None
        try:
            if mtl_file is not None:
                mtl_file.write_line(MTL_HEADER)
                obj_file.write_line(f"mtllib {mtl_path.name}")

            written: Set[str] = set()
            vertex_base = 1  # OBJ indices are 1-based and file-global
            for i, obj in enumerate(geo.objects):
                if not object_in_layer(obj, layer_filter):
                    continue
                _log.debug("%s: writing object %d/%d", obj_path.name, i + 1, len(geo.objects))
                # a broken vertex layout aborts the whole file
                cache.get(i)
                try:
                    lines, used, n = render_object(geo, cache, i, vertex_base, with_materials=mtl_file is not None)
                    entries: List[str] = []
                    if mtl_file is not None:
                        for group, material_name in used:
                            if group in written:
                                continue
                            entries.extend(mtl_entry(group, materials[material_name], refs.get(material_name)))
                except (ValueError, IndexError, KeyError) as e:
                    _log.error("error writing object %d (%r), skipped: %s", i, obj.name, e)
                    result.failed.append(i)
                    continue

                obj_file.write_lines(lines)
                if mtl_file is not None:
                    mtl_file.write_lines(entries)
                    written.update(g for g, _ in used)
                vertex_base += n
                result.objects_written += 1
        finally:
            if mtl_file is not None:
                mtl_file.close()

    _log.info("wrote %s (%d objects)", obj_path, result.objects_written)
    return result


def default_texture_refs(materials: Dict[str, Material]) -> Dict[str, str]:
    return {name: texture_reference(m.texture) for name, m in materials.items() if m.texture}


def write_layer_data(path: Path, objects: Sequence[ObjectRecord]) -> None:
    """Per-object layer masks next to a merged export, for custom layer processing."""
    with path.open("wb") as f:
        f.write(LAYER_DATA_MAGIC)
        f.write(struct.pack("<ii", LAYER_DATA_VERSION, len(objects)))
        f.write(bytes(o.layer_mask & 0xFF for o in objects))


def convert_layers(
    geo: MapGeo,
    options: ConvertOptions,
    materials: Optional[Dict[str, Material]] = None,
    texture_refs: Optional[Dict[str, str]] = None,
) -> List[LayerResult]:
    cache = VertexCache(geo)
    plan = LayerPlan.from_objects(geo.objects, geo.discovered_layers)
    out = options.output_dir
    base = options.base_name

    if options.merged_layers:
        data_path = out / f"{base}.mapgeolayer"
        out.mkdir(parents=True, exist_ok=True)
        write_layer_data(data_path, geo.objects)
        results = [write_layer(geo, cache, 0, out, base, materials, texture_refs)]
        _log.info("wrote merged layer .obj file along with layer data file %s", data_path)
        return results

    plan.report()
    if not plan.layered:
        return [write_layer(geo, cache, 0, out, base, materials, texture_refs)]

    results: List[LayerResult] = []
    for layer in plan.exported(options.keep_unused_layers):
        _log.info("layer %d/%d", layer.index + 1, MAX_LAYER_COUNT)
        results.append(
            write_layer(geo, cache, layer.mask, out, f"{base}.Layer{layer.index}", materials, texture_refs)
        )
    return results
