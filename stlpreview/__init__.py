"""stlpreview - Convert STL meshes into smooth-shaded OBJ preview meshes."""

__version__ = "0.1.0"

from stlpreview.core import Config, load_config
from stlpreview.processing import (
    DecodeStats,
    MeshDecoder,
    StlFormat,
    Triangle,
    TriangleMesh,
    WeldedMesh,
    decode,
    detect_format,
    weld,
)
from stlpreview.io import ObjMesh, read_obj, write_obj
from stlpreview.core.converter import ConversionResult, Converter, stl_to_obj

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "DecodeStats",
    "MeshDecoder",
    "StlFormat",
    "Triangle",
    "TriangleMesh",
    "WeldedMesh",
    "decode",
    "detect_format",
    "weld",
    "ObjMesh",
    "read_obj",
    "write_obj",
    "ConversionResult",
    "Converter",
    "stl_to_obj",
]
