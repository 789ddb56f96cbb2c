"""
Optional copy of referenced textures next to the exported files.

Only textures named by resolved materials are touched; the assets tree is
never scanned by extension.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Dict, Optional

import imageio.v2 as imageio
from PIL import Image

from .export import texture_reference
from .model import Material

_log = logging.getLogger(__name__)

TEXTURE_DIR = "textures"


def find_case_insensitive(root: Path, rel: str) -> Optional[Path]:
    """Game paths are upper-case in the bin and lower-case on disk (or the other way round)."""
    cur = root
    for part in Path(rel.replace("\\", "/")).parts:
        direct = cur / part
        if direct.exists():
            cur = direct
            continue
        if not cur.is_dir():
            return None
        lowered = part.lower()
        match = next((p for p in cur.iterdir() if p.name.lower() == lowered), None)
        if match is None:
            return None
        cur = match
    return cur if cur.is_file() else None


def load_image_any(src: Path) -> Optional[Image.Image]:
    """
    Load image for many formats, including DDS via imageio, and return a PIL Image.
    """
    try:
        arr = imageio.imread(src)
        if getattr(arr, "ndim", 0) in (2, 3):
            return Image.fromarray(arr)
    except Exception as e:  # imageio raises plugin-specific errors
        _log.debug("imageio could not read %s: %s", src, e)
    try:
        img = Image.open(src)
        img.load()
        return img
    except OSError as e:
        _log.debug("Pillow could not read %s: %s", src, e)
        return None


def replace_suffix_with_png(name: str) -> str:
    p = Path(name)
    if not p.suffix:
        return name + ".png"
    return str(p.with_suffix(".png")).replace("\\", "/")


def collect_textures(
    materials: Dict[str, Material],
    assets_root: Path,
    out_dir: Path,
    *,
    png: bool = False,
) -> Dict[str, str]:
    """
    Copy (or convert) each material's texture into out_dir/textures and
    return material name -> map_Kd reference. Missing textures keep their
    plain .dds reference.
    """
    refs: Dict[str, str] = {}
    done: Dict[str, str] = {}
    for name, material in materials.items():
        if not material.texture:
            continue
        default_ref = texture_reference(material.texture)
        rel = default_ref[len(TEXTURE_DIR) + 1 :]
        if rel in done:
            refs[name] = done[rel]
            continue

        src = find_case_insensitive(assets_root, rel)
        if src is None:
            _log.warning("texture %s for material %r not found under %s", rel, name, assets_root)
            refs[name] = done[rel] = default_ref
            continue

        dst = out_dir / TEXTURE_DIR / rel
        dst.parent.mkdir(parents=True, exist_ok=True)
        ref = default_ref
        if png:
            img = load_image_any(src)
            if img is None:
                _log.warning("could not decode %s, copying it unchanged", src)
                shutil.copyfile(src, dst)
            else:
                png_rel = replace_suffix_with_png(rel)
                img.save(out_dir / TEXTURE_DIR / png_rel, format="PNG")
                ref = f"{TEXTURE_DIR}/{png_rel}"
        else:
            shutil.copyfile(src, dst)
        _log.debug("texture %s -> %s", src, ref)
        refs[name] = done[rel] = ref
    return refs
