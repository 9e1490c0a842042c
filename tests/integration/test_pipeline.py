"""Integration tests for the STL to OBJ preview pipeline."""

from pathlib import Path

import numpy as np
import pytest
import trimesh

from stlpreview import Config, Converter, read_obj, stl_to_obj

pytestmark = pytest.mark.integration


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create temporary output directory."""
    output = tmp_path / "output"
    output.mkdir(exist_ok=True)
    return output


def test_box_conversion(sample_stl_path: Path, output_dir: Path, vn_lines):
    """Binary box: 36 corners weld to 8 vertices and 12 faces."""
    converter = Converter(config=Config())

    result = converter.convert_file(sample_stl_path, output_dir / "box.obj")

    assert result.success
    assert result.vertex_count == 8
    assert result.face_count == 12
    assert result.stats.total == 12
    assert result.stats.valid == 12

    text = (output_dir / "box.obj").read_text(encoding="utf-8")
    mesh = read_obj(text)
    assert mesh.vertex_count == 8
    assert mesh.face_count == 12

    # Every corner normal points away from the box center
    normals = vn_lines(text)
    np.testing.assert_array_equal(np.sign(normals), np.sign(mesh.vertices))

    rebuilt = trimesh.Trimesh(vertices=mesh.vertices, faces=mesh.faces, process=False)
    assert rebuilt.is_watertight
    assert rebuilt.volume == pytest.approx(1.0, rel=1e-6)


def test_icosphere_ascii_conversion(sample_ascii_stl_path: Path, output_dir: Path, vn_lines):
    """ASCII sphere welds to its original 162 vertices and 320 faces."""
    converter = Converter(config=Config())

    result = converter.convert_file(sample_ascii_stl_path, output_dir / "sphere.obj")

    assert result.success
    assert result.stats.format.value == "ascii"
    assert result.vertex_count == 162
    assert result.face_count == 320

    mesh = read_obj(result.obj_text)
    radii = np.linalg.norm(mesh.vertices, axis=1)
    np.testing.assert_allclose(radii, 1.0, atol=1e-5)

    normals = vn_lines(result.obj_text)
    assert np.all(np.abs(np.linalg.norm(normals, axis=1) - 1.0) < 1e-3)
    cosines = np.einsum("ij,ij->i", normals, mesh.vertices / radii[:, None])
    assert np.all(cosines > 0.95)


def test_binary_and_ascii_give_same_mesh(icosphere_mesh: trimesh.Trimesh):
    """Both encodings of the same geometry produce equivalent OBJ meshes."""
    binary = read_obj(stl_to_obj(icosphere_mesh.export(file_type="stl")))
    ascii_text = icosphere_mesh.export(file_type="stl_ascii").encode("utf-8")
    ascii_mesh = read_obj(stl_to_obj(ascii_text))

    np.testing.assert_array_equal(binary.faces, ascii_mesh.faces)
    np.testing.assert_allclose(binary.vertices, ascii_mesh.vertices, atol=1e-6)
    np.testing.assert_allclose(binary.normals, ascii_mesh.normals, atol=1e-5)


def test_dirty_input_keeps_good_facets(binary_stl, simple_box_mesh: trimesh.Trimesh):
    """Degenerate and non-finite facets are dropped without failing."""
    triangles = simple_box_mesh.triangles.tolist()
    normals = simple_box_mesh.face_normals.tolist()
    triangles += [
        [(0, 0, 0), (0, 0, 0), (1, 1, 1)],
        [(0, 0, 0), (1, 1, 1), (2, 2, 2)],
        [(float("nan"), 0, 0), (1, 0, 0), (0, 1, 0)],
    ]
    normals += [(0, 0, 1), (0, 0, 1), (0, 0, 1)]

    result = Converter().convert_bytes(binary_stl(triangles, normals))

    assert result.success
    assert result.face_count == 12
    assert result.vertex_count == 8
    assert result.stats.total == 15
    assert result.stats.degenerate == 2
    assert result.stats.invalid == 1


def test_normalized_preview(sample_stl_path: Path, output_dir: Path):
    """Normalization scales the largest extent to the target size."""
    config = Config(normalize={"enabled": True, "target_size": 5.0})

    result = Converter(config).convert_file(sample_stl_path, output_dir / "box.obj")

    mesh = read_obj(result.obj_text)
    extents = mesh.vertices.max(axis=0) - mesh.vertices.min(axis=0)
    np.testing.assert_allclose(extents, [5.0, 5.0, 5.0], atol=1e-6)
    assert result.metrics["scale_factor"] == pytest.approx(5.0)


def test_consumer_side_normalization(sample_stl_path: Path):
    """A viewer can normalize the stored OBJ on load instead."""
    text = Converter().convert_file(sample_stl_path).obj_text

    mesh = read_obj(text, normalize=True)

    assert mesh.transform_info["scale_factor"] == pytest.approx(5.0)
    np.testing.assert_allclose(mesh.vertices.min(axis=0), [-2.5, -2.5, -2.5], atol=1e-6)
