"""Wavefront OBJ serialization of preview meshes.

Only the subset needed by mesh consumers is handled: ``v``, ``vn`` and
triangular ``f`` records with 1-based ``vertex//normal`` references.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from stlpreview.core.exceptions import ObjParseError
from stlpreview.processing.decoder import TriangleMesh
from stlpreview.processing.preprocessor import TARGET_SIZE, normalize_vertices
from stlpreview.processing.welding import WeldedMesh, resolve_face_normals

HEADER_COMMENT = "Converted from STL by stlpreview"


def _format_rows(tag: str, rows: np.ndarray, precision: int) -> List[str]:
    fmt = f"{tag} {{:.{precision}f}} {{:.{precision}f}} {{:.{precision}f}}"
    # + 0.0 keeps "-0.000000" out of the output for negative zero
    return [fmt.format(*(row + 0.0)) for row in rows]


def format_obj(
    vertices: np.ndarray,
    normals: np.ndarray,
    faces: np.ndarray,
    normal_indices: np.ndarray,
    header_comment: str = HEADER_COMMENT,
    float_precision: int = 6,
) -> str:
    """Write vertices, normals and faces as OBJ text.

    Args:
        vertices: Array of shape (m, 3)
        normals: Array of shape (p, 3)
        faces: 0-based vertex indices, shape (k, 3)
        normal_indices: 0-based normal indices per face corner, shape (k, 3)
        header_comment: First comment line
        float_precision: Decimals written per coordinate

    Returns:
        OBJ document
    """
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    normal_indices = np.asarray(normal_indices, dtype=np.int64).reshape(-1, 3)

    lines = [
        f"# {header_comment}",
        f"# Vertices: {len(vertices)}",
        f"# Faces: {len(faces)}",
        "",
    ]
    if len(faces) == 0 and len(vertices) == 0:
        return "\n".join(lines)

    lines.extend(_format_rows("v", np.asarray(vertices, dtype=np.float64), float_precision))
    lines.append("")
    lines.extend(_format_rows("vn", np.asarray(normals, dtype=np.float64), float_precision))
    lines.append("")
    for face, normal in zip(faces + 1, normal_indices + 1):
        lines.append(
            f"f {face[0]}//{normal[0]} {face[1]}//{normal[1]} {face[2]}//{normal[2]}"
        )
    lines.append("")

    return "\n".join(lines)


def write_obj(
    mesh: WeldedMesh,
    header_comment: str = HEADER_COMMENT,
    float_precision: int = 6,
) -> str:
    """Serialize a welded mesh; each corner uses its vertex's own normal."""
    return format_obj(
        mesh.vertices,
        mesh.normals,
        mesh.faces,
        mesh.faces,
        header_comment=header_comment,
        float_precision=float_precision,
    )


def write_obj_unwelded(
    mesh: TriangleMesh,
    header_comment: str = HEADER_COMMENT,
    float_precision: int = 6,
) -> str:
    """Serialize triangles as-is: three vertices and one normal per face.

    Stored zero normals are replaced by the geometric face normal and
    every normal is written at unit length.
    """
    count = len(mesh)
    vertices = mesh.vertices.reshape(-1, 3)
    faces = np.arange(count * 3, dtype=np.int64).reshape(-1, 3)
    normal_indices = np.repeat(np.arange(count, dtype=np.int64), 3).reshape(-1, 3)
    normals = resolve_face_normals(mesh.vertices, mesh.normals)
    lengths = np.linalg.norm(normals, axis=1)
    normals[lengths > 0] /= lengths[lengths > 0, None]

    return format_obj(
        vertices,
        normals,
        faces,
        normal_indices,
        header_comment=header_comment,
        float_precision=float_precision,
    )


def save_obj(text: str, path: Union[str, Path]) -> Path:
    """Write an OBJ document to disk, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@dataclass
class ObjMesh:
    """Geometry read back from an OBJ document.

    Attributes:
        vertices: Array of shape (m, 3)
        normals: Array of shape (p, 3)
        faces: 0-based vertex indices, shape (k, 3)
        normal_indices: 0-based normal indices, shape (k, 3); -1 where a
            corner has no normal reference
        transform_info: Centering/scaling applied on load, if any
    """

    vertices: np.ndarray
    normals: np.ndarray
    faces: np.ndarray
    normal_indices: np.ndarray
    transform_info: Optional[dict] = None

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)


def _parse_floats(parts: List[str], line_number: int) -> List[float]:
    if len(parts) < 4:
        raise ObjParseError(line_number, f"expected 3 coordinates in '{' '.join(parts)}'")
    try:
        return [float(p) for p in parts[1:4]]
    except ValueError as e:
        raise ObjParseError(line_number, str(e)) from e


def _parse_corner(token: str, line_number: int) -> tuple:
    """Parse 'v', 'v/t', 'v//n' or 'v/t/n' into 0-based (vertex, normal)."""
    fields = token.split("/")
    try:
        vertex = int(fields[0]) - 1
        normal = int(fields[2]) - 1 if len(fields) >= 3 and fields[2] else -1
    except ValueError as e:
        raise ObjParseError(line_number, f"bad face reference '{token}'") from e
    return vertex, normal


def read_obj(
    text: str,
    normalize: bool = False,
    target_size: float = TARGET_SIZE,
) -> ObjMesh:
    """Parse an OBJ document into arrays.

    Comment and blank lines, and record types other than v/vn/f, are
    ignored. Faces must be triangles and reference existing vertices.

    Args:
        text: OBJ document
        normalize: Center and scale vertices to target_size on load
        target_size: Largest bounding box extent when normalizing

    Returns:
        ObjMesh

    Raises:
        ObjParseError: If a record is malformed or an index is out of range
    """
    vertices = []
    normals = []
    faces = []
    normal_indices = []

    for line_number, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        parts = stripped.split()
        tag = parts[0]

        if tag == "v":
            vertices.append(_parse_floats(parts, line_number))
        elif tag == "vn":
            normals.append(_parse_floats(parts, line_number))
        elif tag == "f":
            if len(parts) != 4:
                raise ObjParseError(
                    line_number, f"expected a triangle, got {len(parts) - 1} corners"
                )
            corners = [_parse_corner(token, line_number) for token in parts[1:]]
            for vertex, normal in corners:
                if not 0 <= vertex < len(vertices):
                    raise ObjParseError(line_number, f"vertex index {vertex + 1} out of range")
                if normal >= len(normals) or normal < -1:
                    raise ObjParseError(line_number, f"normal index {normal + 1} out of range")
            faces.append([c[0] for c in corners])
            normal_indices.append([c[1] for c in corners])

    vertex_array = np.array(vertices, dtype=np.float64).reshape(-1, 3)
    transform_info = None
    if normalize:
        vertex_array, transform_info = normalize_vertices(vertex_array, target_size)

    return ObjMesh(
        vertices=vertex_array,
        normals=np.array(normals, dtype=np.float64).reshape(-1, 3),
        faces=np.array(faces, dtype=np.int64).reshape(-1, 3),
        normal_indices=np.array(normal_indices, dtype=np.int64).reshape(-1, 3),
        transform_info=transform_info,
    )
