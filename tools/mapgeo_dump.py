#!/usr/bin/env python3
# Minimal mapgeo dumper for reverse-engineering.
# Decodes with the converter's own reader and prints every block plus anything it flagged.

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from mapgeo2obj.decoder import read_mapgeo
from mapgeo2obj.errors import MapGeoError
from mapgeo2obj.layers import LayerPlan
from mapgeo2obj.versions import FormatVersion


def attr_label(v: object) -> str:
    return getattr(v, "name", f"0x{v:X}" if isinstance(v, int) else str(v))


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("mapgeo", type=Path)
    ap.add_argument("--objects", action="store_true", help="Print every object block")
    args = ap.parse_args()

    # anomalies are printed below, keep the decoder quiet
    logging.basicConfig(level=logging.ERROR)

    try:
        geo = read_mapgeo(args.mapgeo)
    except MapGeoError as e:
        print(f"[mapgeo] {args.mapgeo}: {e}")
        return 1

    fv = FormatVersion(geo.version)
    print(f"[mapgeo] file={args.mapgeo} version={geo.version}")
    if fv.has_header_reserved_byte:
        print(f"[mapgeo] header.reservedByte=0x{geo.header_reserved_byte:X}")
    for k, v in enumerate(geo.header_reserved_ints):
        print(f"[mapgeo] header.reservedInt{k + 1}=0x{v:X}")

    print(f"[mapgeo] formats={len(geo.formats)} floatBlocks={len(geo.float_buffers)} triBlocks={len(geo.tri_buffers)} objects={len(geo.objects)}")
    for fi, f in enumerate(geo.formats):
        layout = " ".join(f"{attr_label(a.name)}:{attr_label(a.format)}" for a in f.attributes)
        print(f"[mapgeo]   format[{fi}] type={f.block_type} stride={f.stride} {layout}")
    for bi, b in enumerate(geo.float_buffers):
        print(f"[mapgeo]   floats[{bi}] bytes={b.byte_length}")
    for ti, t in enumerate(geo.tri_buffers):
        print(f"[mapgeo]   tris[{ti}] count={len(t.tris)}")

    if args.objects:
        for oi, o in enumerate(geo.objects):
            print(
                f"[mapgeo] object[{oi}] name='{o.name}' verts={o.vertex_count} format={o.format_start_index} "
                f"floats={o.float_buffer_indices} tris={o.tri_buffer_index} class=0x{o.object_class:02X} "
                f"layers=0x{o.layer_mask:02X} lightmap='{o.lightmap_name}'"
            )
            for si, s in enumerate(o.submeshes):
                print(
                    f"[mapgeo]   submesh[{si}] material='{s.material_name}' start={s.tri_start} count={s.tri_count} "
                    f"unk={s.reserved} range={s.reserved_range}"
                )

    plan = LayerPlan.from_objects(geo.objects, geo.discovered_layers)
    print(f"[mapgeo] discoveredLayers=0x{geo.discovered_layers:02X}")
    for layer in plan.layers:
        dup = f" duplicateOf={layer.duplicate_of}" if layer.is_duplicate else ""
        print(f"[mapgeo]   layer[{layer.index}] objects={layer.presence.count('1')}{dup}")
    for mask, n in sorted(geo.layer_mask_counts.items()):
        print(f"[mapgeo]   mask 0x{mask:02X}: {n}")

    print(f"[mapgeo] anomalies={len(geo.anomalies)}")
    for a in geo.anomalies:
        print(f"[mapgeo]   {a}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
