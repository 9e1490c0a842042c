"""Mesh centering and scale normalization."""

from typing import Tuple

import numpy as np

from stlpreview.processing.welding import WeldedMesh

# Largest extent of a normalized preview mesh
TARGET_SIZE = 5.0


def normalize_vertices(
    vertices: np.ndarray,
    target_size: float = TARGET_SIZE,
) -> Tuple[np.ndarray, dict]:
    """Center vertices on their bounding box and scale to a target size.

    Scaling is skipped when every extent is zero.

    Args:
        vertices: Array of shape (n, 3)
        target_size: Largest bounding box extent after scaling

    Returns:
        Tuple of (transformed vertices, transform_info)
    """
    vertices = np.array(vertices, dtype=np.float64).reshape(-1, 3)
    transform_info = {
        "translation": np.zeros(3),
        "scale_factor": 1.0,
        "original_bounds": None,
    }
    if len(vertices) == 0:
        return vertices, transform_info

    bounds_min = vertices.min(axis=0)
    bounds_max = vertices.max(axis=0)
    transform_info["original_bounds"] = np.array([bounds_min, bounds_max])

    translation = -(bounds_min + bounds_max) / 2.0
    vertices += translation
    transform_info["translation"] = translation

    max_extent = float(np.max(bounds_max - bounds_min))
    if max_extent > 0:
        scale_factor = target_size / max_extent
        vertices *= scale_factor
        transform_info["scale_factor"] = scale_factor

    return vertices, transform_info


class MeshPreprocessor:
    """Centers and rescales welded meshes for preview rendering."""

    def __init__(self, target_size: float = TARGET_SIZE, center: bool = True):
        """Initialize mesh preprocessor.

        Args:
            target_size: Largest bounding box extent after scaling
            center: Whether to keep the centering translation
        """
        self.target_size = target_size
        self.center = center

    def preprocess(self, mesh: WeldedMesh) -> Tuple[WeldedMesh, dict]:
        """Return a normalized copy of the mesh.

        Normals are unchanged since the transform is a translation plus a
        uniform scale.

        Args:
            mesh: Input mesh

        Returns:
            Tuple of (processed_mesh, transform_info)
        """
        vertices, transform_info = normalize_vertices(mesh.vertices, self.target_size)

        if not self.center and len(vertices) > 0:
            # Undo the translation but keep the scale about the origin
            vertices -= transform_info["translation"] * transform_info["scale_factor"]
            transform_info["translation"] = np.zeros(3)

        processed = WeldedMesh(
            vertices=vertices,
            normals=mesh.normals.copy(),
            faces=mesh.faces.copy(),
            owners=None if mesh.owners is None else mesh.owners.copy(),
        )
        return processed, transform_info

    def apply_transform(
        self,
        points: np.ndarray,
        transform_info: dict,
        inverse: bool = False,
    ) -> np.ndarray:
        """Apply or invert a transform returned by preprocess.

        Args:
            points: Points to transform (N, 3)
            transform_info: Transform info from preprocess
            inverse: Whether to apply inverse transform

        Returns:
            Transformed points
        """
        points = np.array(points, dtype=np.float64)

        if inverse:
            points /= transform_info["scale_factor"]
            points -= transform_info["translation"]
        else:
            points += transform_info["translation"]
            points *= transform_info["scale_factor"]

        return points


def preprocess_mesh(
    mesh: WeldedMesh,
    target_size: float = TARGET_SIZE,
    center: bool = True,
) -> Tuple[WeldedMesh, dict]:
    """Convenience function to center and scale a welded mesh.

    Args:
        mesh: Input mesh
        target_size: Largest bounding box extent after scaling
        center: Whether to center mesh

    Returns:
        Tuple of (processed_mesh, transform_info)
    """
    return MeshPreprocessor(target_size=target_size, center=center).preprocess(mesh)
