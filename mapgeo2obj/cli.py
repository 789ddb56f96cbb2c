from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .decoder import read_mapgeo
from .errors import MapGeoError
from .export import ConvertOptions, LayerResult, convert_layers
from .materials import resolve_materials
from .model import Material
from .textures import collect_textures

_log = logging.getLogger(__name__)


def split_inputs(paths: Sequence[Path]) -> Tuple[Optional[Path], Optional[Path]]:
    """First .mapgeo and first .bin, in any order."""
    mapgeo: Optional[Path] = None
    bin_path: Optional[Path] = None
    for p in paths:
        suffix = p.suffix.lower()
        if suffix == ".mapgeo":
            if mapgeo is None:
                mapgeo = p
            else:
                _log.warning("found multiple .mapgeo files, only the first will be converted: ignoring %s", p)
        elif suffix == ".bin":
            if bin_path is None:
                bin_path = p
            else:
                _log.warning("found multiple .bin files, only the first will be used: ignoring %s", p)
        else:
            _log.warning("ignoring %s (not a .mapgeo or .bin file)", p)
    return mapgeo, bin_path


def convert_files(mapgeo_path: Path, bin_path: Optional[Path], options: ConvertOptions) -> List[LayerResult]:
    _log.info("converting %s", mapgeo_path)
    geo = read_mapgeo(mapgeo_path)
    _log.info("version = %d, %d objects, %d anomalies", geo.version, len(geo.objects), len(geo.anomalies))

    materials: Optional[Dict[str, Material]] = None
    texture_refs: Optional[Dict[str, str]] = None
    if bin_path is None:
        _log.info("no materials .bin file provided, so materials will not be read")
    else:
        materials = resolve_materials(geo.material_names(), bin_path.read_bytes())
        if options.assets_root is not None:
            texture_refs = collect_textures(materials, options.assets_root, options.output_dir, png=options.png)

    return convert_layers(geo, options, materials, texture_refs)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mapgeo2obj",
        description="Convert a .mapgeo (v5-v11) to OBJ+MTL, one file set per distinct layer.",
    )
    ap.add_argument("inputs", type=Path, nargs="+", help="A .mapgeo file and, optionally, its materials .bin (any order)")
    ap.add_argument("-o", "--output-dir", type=Path, help="Output folder (default: next to the .mapgeo)")
    ap.add_argument("--merged-layers", action="store_true", help="Write one file with every object plus a .mapgeolayer mask file")
    ap.add_argument("--keep-unused-layers", action="store_true", help="Also write unique layers that have no objects of their own")
    ap.add_argument("--assets-root", type=Path, help="Extracted game folder to copy referenced textures from")
    ap.add_argument("--png", action="store_true", help="Convert copied textures to PNG (needs --assets-root)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    mapgeo_path, bin_path = split_inputs(args.inputs)
    if mapgeo_path is None:
        ap.error("must provide a .mapgeo file")
    if bin_path is None:
        _log.warning("no .bin file was provided (no textures will be read)")
    if args.png and args.assets_root is None:
        ap.error("--png needs --assets-root")

    options = ConvertOptions(
        output_dir=args.output_dir or mapgeo_path.parent,
        base_name=mapgeo_path.stem,
        merged_layers=args.merged_layers,
        keep_unused_layers=args.keep_unused_layers,
        assets_root=args.assets_root,
        png=args.png,
    )

    try:
        results = convert_files(mapgeo_path, bin_path, options)
    except (MapGeoError, OSError) as e:
        _log.error("failed: %s (%s)", mapgeo_path, e)
        return 1

    failed = sum(len(r.failed) for r in results)
    if failed:
        _log.warning("%d object(s) could not be written", failed)
    _log.info("done: %d file set(s) in %s", len(results), options.output_dir)
    return 0
