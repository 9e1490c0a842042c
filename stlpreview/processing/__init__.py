"""Mesh decoding, welding and normalization for stlpreview."""

from stlpreview.processing.decoder import (
    DecodeStats,
    MeshDecoder,
    StlFormat,
    Triangle,
    TriangleMesh,
    decode,
    decode_ascii,
    decode_binary,
    detect_format,
)
from stlpreview.processing.preprocessor import (
    MeshPreprocessor,
    normalize_vertices,
    preprocess_mesh,
)
from stlpreview.processing.welding import (
    WeldedMesh,
    compute_vertex_normals,
    vertex_keys,
    weld,
    weld_vertices,
)

__all__ = [
    "DecodeStats",
    "MeshDecoder",
    "StlFormat",
    "Triangle",
    "TriangleMesh",
    "decode",
    "decode_ascii",
    "decode_binary",
    "detect_format",
    "MeshPreprocessor",
    "normalize_vertices",
    "preprocess_mesh",
    "WeldedMesh",
    "compute_vertex_normals",
    "vertex_keys",
    "weld",
    "weld_vertices",
]
