"""Convert League of Legends .mapgeo scene geometry to Wavefront OBJ/MTL."""

from .decoder import decode, read_mapgeo
from .errors import DecodeError, MapGeoError, UnsupportedFormatError, VertexLayoutError
from .export import ConvertOptions, convert_layers
from .materials import resolve_materials
from .model import MapGeo, Material
from .versions import FormatVersion

__version__ = "0.1.0"

__all__ = [
    "ConvertOptions",
    "DecodeError",
    "FormatVersion",
    "MapGeo",
    "MapGeoError",
    "Material",
    "UnsupportedFormatError",
    "VertexLayoutError",
    "convert_layers",
    "decode",
    "read_mapgeo",
    "resolve_materials",
]
