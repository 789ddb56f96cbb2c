"""
Best-effort material lookup in a materials .bin property dump.

The .bin is not parsed. We find each material name in the raw bytes, treat
everything up to the next material name as that material's definition, and
look inside it for a known texture sampler key or a known color parameter.
Naming conventions are the only thing this relies on, so any content drift
shows up as warnings rather than errors.
"""

from __future__ import annotations

import logging
import struct
from typing import Dict, Iterable, List, Optional, Tuple

from .model import UNRESOLVED_COLOR, Material

_log = logging.getLogger(__name__)

# first match wins
SAMPLER_KEYS: Tuple[str, ...] = (
    "DiffuseTexture",
    "Diffuse_Texture",  # flow map samplers
    "Bottom_Texture",  # blend samplers, no blending on our side
    "FlipBook_Texture",
    "GlowTexture",
    "Glow_Texture",
    "Mask_Textures",
    "Mask_Texture",
    "Scrolling_Texture",  # comes with a "Color" param as well
)
COLOR_KEYS: Tuple[str, ...] = (
    "Emissive_Color",
    "Color_01",
    "Color",
    "ColorTop",  # horizontal gradients, top is the brighter end
    "ColorBottom",
)
REVIEW_SAMPLERS = ("FlipBook_Texture", "GlowTexture")

VALUE_KEY_HASH = b"\xca\xd3\x5e\x42"  # fnv1a32("value") = 0x425ed3ca
VECTOR4_TYPE = 0x0D
TEXTURE_ROOT = b"assets/"
TEXTURE_EXT = b".dds"


def locate_materials(names: Iterable[str], blob: bytes) -> List[Tuple[str, int]]:
    """
    (name, start index) pairs in blob order; -1 for names that are not present.

    Longer names are searched first so that "Foo" cannot claim the index of
    an earlier "FooBar".
    """
    ordered = sorted(set(names), key=len, reverse=True)
    claimed: Dict[int, str] = {}
    found: List[Tuple[str, int]] = []
    for name in ordered:
        needle = name.encode("utf-8")
        idx = -1
        while True:
            idx = blob.find(needle, idx + 1)
            if idx < 0 or idx not in claimed:
                break
        if idx < 0:
            _log.warning("couldn't find material %r in the materials bin, it will not export properly", name)
        else:
            claimed[idx] = name
        found.append((name, idx))
    found.sort(key=lambda t: t[1])
    return found


def split_definitions(located: List[Tuple[str, int]], blob: bytes) -> Dict[str, bytes]:
    spans: Dict[str, bytes] = {}
    for i, (name, start) in enumerate(located):
        if start < 0:
            spans[name] = b""
            continue
        end = located[i + 1][1] if i + 1 < len(located) else len(blob)
        spans[name] = blob[start:end]
    return spans


def find_texture(name: str, span: bytes) -> Tuple[Optional[str], str]:
    """(sampler key, texture path); path is empty when no usable path follows the key."""
    for key in SAMPLER_KEYS:
        at = span.find(key.encode("ascii"))
        if at < 0:
            continue
        if key in REVIEW_SAMPLERS:
            _log.info("%r is in use for material %r", key, name)
        lower = span.lower()  # search case-insensitively, slice from the original
        start = lower.find(TEXTURE_ROOT, at)
        end = lower.find(TEXTURE_EXT, start) if start >= 0 else -1
        if end < 0:
            _log.warning("material %r: sampler %r has no assets/...dds path after it", name, key)
            return key, ""
        return key, span[start : end + len(TEXTURE_EXT)].decode("utf-8", "replace")
    return None, ""


def find_color(name: str, span: bytes) -> Tuple[Optional[str], Optional[Tuple[float, float, float, float]]]:
    """(color key, RGBA); RGBA is None when the value is not a vector4."""
    for key in COLOR_KEYS:
        # the hash of "value" right after the name tells a real param key from "...Color..." inside other strings
        at = span.find(key.encode("ascii") + VALUE_KEY_HASH)
        if at < 0:
            continue
        type_at = at + len(key) + len(VALUE_KEY_HASH)
        if type_at + 1 + 16 > len(span):
            _log.warning("material %r: color %r value runs past the definition", name, key)
            return key, None
        if span[type_at] != VECTOR4_TYPE:
            _log.warning(
                "material %r: color %r has unrecognized value type %#04x", name, key, span[type_at]
            )
            return key, None
        return key, struct.unpack_from("<4f", span, type_at + 1)
    return None, None


def resolve_material(name: str, span: bytes) -> Material:
    if not span:
        return Material(name)

    sampler, texture = find_texture(name, span)
    if sampler is None:
        _log.warning("couldn't find sampler keys for material %r (will try to find emissive colors)", name)

    color_key, rgba = find_color(name, span)
    if color_key is None:
        if sampler is None:
            _log.warning("still couldn't find emissive color keys for material %r, using magenta", name)
            return Material(name, texture, UNRESOLVED_COLOR)
        return Material(name, texture)

    if rgba is None:
        return Material(name, texture)
    if sampler is None:
        _log.info("material %r has an emissive color and no sampler, check for a new sampler key", name)
    return Material(name, texture, rgba)


def resolve_materials(names: Iterable[str], blob: bytes) -> Dict[str, Material]:
    located = locate_materials(names, blob)
    spans = split_definitions(located, blob)
    _log.info("resolving %d materials", len(located))
    return {name: resolve_material(name, spans[name]) for name, _ in located}
