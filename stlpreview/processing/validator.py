"""Numeric and geometric checks applied to decoded facets."""

from enum import IntEnum

import numpy as np

# Below this distance/area two vertices coincide or three are colinear
DEGENERATE_EPSILON = 1e-7


class FacetStatus(IntEnum):
    """Outcome of validating one facet."""

    VALID = 0
    INVALID = 1
    DEGENERATE = 2


def finite_rows(values: np.ndarray) -> np.ndarray:
    """Return a mask of rows whose every component is finite.

    Args:
        values: Array of shape (n, ...) with float components

    Returns:
        Boolean array of shape (n,)
    """
    values = np.asarray(values, dtype=np.float64)
    if values.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    return np.isfinite(values.reshape(values.shape[0], -1)).all(axis=1)


def degenerate_rows(
    triangles: np.ndarray,
    epsilon: float = DEGENERATE_EPSILON,
) -> np.ndarray:
    """Find triangles with coincident or colinear vertices.

    A triangle is degenerate when any pair of its vertices is closer than
    ``epsilon`` or when the cross product of the two edges leaving the
    first vertex has magnitude below ``epsilon``.

    Args:
        triangles: Vertex array of shape (n, 3, 3)
        epsilon: Distance and cross-product magnitude threshold

    Returns:
        Boolean array of shape (n,), True where degenerate
    """
    triangles = np.asarray(triangles, dtype=np.float64)
    if triangles.shape[0] == 0:
        return np.zeros(0, dtype=bool)

    v0 = triangles[:, 0]
    v1 = triangles[:, 1]
    v2 = triangles[:, 2]

    e1 = v1 - v0
    e2 = v2 - v0
    e3 = v2 - v1

    coincident = (
        (np.linalg.norm(e1, axis=1) < epsilon)
        | (np.linalg.norm(e2, axis=1) < epsilon)
        | (np.linalg.norm(e3, axis=1) < epsilon)
    )
    zero_area = np.linalg.norm(np.cross(e1, e2), axis=1) < epsilon

    return coincident | zero_area


def classify_facets(
    triangles: np.ndarray,
    normals: np.ndarray,
    epsilon: float = DEGENERATE_EPSILON,
) -> np.ndarray:
    """Classify each facet as valid, invalid (non-finite) or degenerate.

    Numeric validity is checked first, so a facet holding NaN is counted
    as invalid rather than degenerate.

    Args:
        triangles: Vertex array of shape (n, 3, 3)
        normals: Face normal array of shape (n, 3)
        epsilon: Degeneracy threshold

    Returns:
        Integer array of FacetStatus codes, shape (n,)
    """
    count = len(triangles)
    status = np.full(count, FacetStatus.VALID, dtype=np.int8)
    if count == 0:
        return status

    finite = finite_rows(triangles) & finite_rows(normals)
    status[~finite] = FacetStatus.INVALID

    # Only test geometry that is finite to avoid NaN warnings in norm()
    candidates = np.flatnonzero(finite)
    if len(candidates) > 0:
        degenerate = degenerate_rows(np.asarray(triangles)[candidates], epsilon)
        status[candidates[degenerate]] = FacetStatus.DEGENERATE

    return status


def is_zero_vector(vector: np.ndarray) -> np.ndarray:
    """Return True for rows that are exactly the zero vector."""
    vector = np.asarray(vector, dtype=np.float64)
    return ~np.any(vector != 0.0, axis=-1)


def geometric_normals(triangles: np.ndarray) -> np.ndarray:
    """Compute unit face normals from vertex winding (right-hand rule).

    Rows whose cross product vanishes get the zero vector.

    Args:
        triangles: Vertex array of shape (n, 3, 3)

    Returns:
        Array of shape (n, 3)
    """
    triangles = np.asarray(triangles, dtype=np.float64)
    if triangles.shape[0] == 0:
        return np.zeros((0, 3), dtype=np.float64)

    cross = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    lengths = np.linalg.norm(cross, axis=1)
    normals = np.zeros_like(cross)
    nonzero = lengths > 0
    normals[nonzero] = cross[nonzero] / lengths[nonzero, None]
    return normals
