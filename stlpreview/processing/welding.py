"""Vertex welding and smooth per-vertex normals."""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import structlog
import trimesh

from stlpreview.processing.decoder import TriangleMesh
from stlpreview.processing.validator import geometric_normals, is_zero_vector

logger = structlog.get_logger(__name__)

# Decimal places for vertex keys; matches float32 resolution of typical parts
WELD_PRECISION = 7

# Summed normal length below which a vertex gets FALLBACK_NORMAL
NORMAL_FALLBACK_THRESHOLD = 1e-4

FALLBACK_NORMAL = np.array([0.0, 0.0, 1.0])


@dataclass
class WeldedMesh:
    """Indexed mesh with shared vertices and one unit normal per vertex.

    Attributes:
        vertices: Unique vertex positions, shape (m, 3)
        normals: Per-vertex unit normals, shape (m, 3)
        faces: 0-based vertex indices, shape (k, 3)
        owners: Index of the first vertex occurrence in the decoder's
            flattened vertex stream that produced each unique vertex
    """

    vertices: np.ndarray
    normals: np.ndarray
    faces: np.ndarray
    owners: Optional[np.ndarray] = None

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def is_empty(self) -> bool:
        return self.face_count == 0

    @property
    def bounds(self) -> Optional[np.ndarray]:
        """Axis-aligned bounding box as [[min], [max]], or None when empty."""
        if self.vertex_count == 0:
            return None
        return np.array([self.vertices.min(axis=0), self.vertices.max(axis=0)])

    @property
    def extents(self) -> Optional[np.ndarray]:
        bounds = self.bounds
        if bounds is None:
            return None
        return bounds[1] - bounds[0]

    def to_trimesh(self) -> trimesh.Trimesh:
        """Convert to a trimesh object without merging or reordering anything."""
        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.faces,
            vertex_normals=self.normals,
            process=False,
        )


def vertex_keys(vertices: np.ndarray, precision: int = WELD_PRECISION) -> np.ndarray:
    """Round coordinates to fixed decimals for use as welding keys.

    Adding 0.0 folds negative zero into zero so both share a key.

    Args:
        vertices: Array of shape (n, 3)
        precision: Decimal places to keep

    Returns:
        Rounded array of shape (n, 3)
    """
    return np.round(np.asarray(vertices, dtype=np.float64), precision) + 0.0


def weld_vertices(
    points: np.ndarray,
    precision: int = WELD_PRECISION,
) -> Tuple[np.ndarray, np.ndarray]:
    """Merge points sharing a rounded position.

    Unique points are numbered in order of first occurrence, so the
    result is stable for a given input order.

    Args:
        points: Array of shape (n, 3)
        precision: Decimal places used for keys

    Returns:
        Tuple of (first-occurrence index per unique point, inverse map
        of shape (n,) giving each input point's unique index)
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(points) == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)

    keys = vertex_keys(points, precision)
    _, first, inverse = np.unique(
        keys, axis=0, return_index=True, return_inverse=True
    )
    inverse = inverse.reshape(-1)

    # np.unique sorts lexicographically; renumber by first occurrence
    order = np.argsort(first, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))

    return first[order].astype(np.int64), rank[inverse].astype(np.int64)


def resolve_face_normals(triangles: np.ndarray, normals: np.ndarray) -> np.ndarray:
    """Return face normals as stored, using geometry where none was stored.

    Non-zero stored normals keep their length so they weigh into the
    per-vertex sum as written in the file.

    Args:
        triangles: Vertex array of shape (n, 3, 3)
        normals: Stored face normals of shape (n, 3), zero when unspecified

    Returns:
        Array of shape (n, 3)
    """
    normals = np.array(normals, dtype=np.float64).reshape(-1, 3)
    missing = is_zero_vector(normals)
    if np.any(missing):
        normals[missing] = geometric_normals(np.asarray(triangles)[missing])
    return normals


def compute_vertex_normals(
    vertex_count: int,
    faces: np.ndarray,
    face_normals: np.ndarray,
    threshold: float = NORMAL_FALLBACK_THRESHOLD,
) -> np.ndarray:
    """Average the normals of the faces around each vertex.

    Vertices with no incident face, or whose incident normals cancel
    out, get FALLBACK_NORMAL.

    Args:
        vertex_count: Number of unique vertices
        faces: 0-based indices of shape (k, 3)
        face_normals: Array of shape (k, 3)
        threshold: Minimum summed length before falling back

    Returns:
        Unit normals of shape (vertex_count, 3)
    """
    sums = np.zeros((vertex_count, 3), dtype=np.float64)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    face_normals = np.asarray(face_normals, dtype=np.float64).reshape(-1, 3)

    for corner in range(3):
        np.add.at(sums, faces[:, corner], face_normals)

    lengths = np.linalg.norm(sums, axis=1)
    normals = np.tile(FALLBACK_NORMAL, (vertex_count, 1))
    usable = lengths >= threshold
    normals[usable] = sums[usable] / lengths[usable, None]

    fallback_count = int(vertex_count - np.count_nonzero(usable))
    if fallback_count:
        logger.debug("normal_fallback", vertices=fallback_count)

    return normals


def weld(
    mesh: TriangleMesh,
    precision: int = WELD_PRECISION,
    threshold: float = NORMAL_FALLBACK_THRESHOLD,
) -> WeldedMesh:
    """Weld coincident vertices and compute smooth per-vertex normals.

    Args:
        mesh: Decoder output
        precision: Decimal places used for vertex keys
        threshold: Summed-normal length below which (0, 0, 1) is used

    Returns:
        WeldedMesh with one normal per unique vertex
    """
    points = mesh.vertices.reshape(-1, 3)
    owners, inverse = weld_vertices(points, precision)

    vertices = points[owners].copy()
    faces = inverse.reshape(-1, 3)
    face_normals = resolve_face_normals(mesh.vertices, mesh.normals)
    normals = compute_vertex_normals(len(vertices), faces, face_normals, threshold)

    logger.debug(
        "mesh_welded",
        input_vertices=len(points),
        unique_vertices=len(vertices),
        faces=len(faces),
    )

    return WeldedMesh(vertices=vertices, normals=normals, faces=faces, owners=owners)
