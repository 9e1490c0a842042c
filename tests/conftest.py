"""Shared test fixtures and configuration."""

import shutil
import struct
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional, Sequence

import numpy as np
import pytest
import trimesh

from stlpreview.core import Config, LoggingConfig
from stlpreview.utils import setup_logging

# A unit right triangle in the XY plane and its +Z normal
UNIT_TRIANGLE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]
UNIT_NORMAL = (0.0, 0.0, 1.0)


def pack_binary_stl(
    triangles: Sequence,
    normals: Optional[Sequence] = None,
    header: bytes = b"binary stl",
    count: Optional[int] = None,
) -> bytes:
    """Pack triangles into binary STL bytes.

    Args:
        triangles: Sequence of three (x, y, z) vertices per facet
        normals: Face normals (zero vectors when omitted)
        header: Comment bytes, padded/truncated to 80
        count: Declared facet count (defaults to len(triangles))
    """
    if normals is None:
        normals = [(0.0, 0.0, 0.0)] * len(triangles)
    if count is None:
        count = len(triangles)

    data = header[:80].ljust(80, b" ") + struct.pack("<I", count)
    for tri, normal in zip(triangles, normals):
        data += struct.pack("<3f", *normal)
        for vertex in tri:
            data += struct.pack("<3f", *vertex)
        data += b"\x00\x00"
    return data


def format_ascii_stl(
    triangles: Sequence,
    normals: Optional[Sequence] = None,
    name: str = "test",
) -> bytes:
    """Format triangles as ASCII STL bytes."""
    if normals is None:
        normals = [(0.0, 0.0, 0.0)] * len(triangles)

    lines = [f"solid {name}"]
    for tri, normal in zip(triangles, normals):
        lines.append("  facet normal {} {} {}".format(*normal))
        lines.append("    outer loop")
        for vertex in tri:
            lines.append("      vertex {} {} {}".format(*vertex))
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return ("\n".join(lines) + "\n").encode("ascii")


@pytest.fixture(autouse=True, scope="session")
def quiet_logging() -> None:
    """Route structlog through stdlib logging at WARNING for the test run."""
    setup_logging(LoggingConfig(level="WARNING", colorize=False))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def test_config() -> Config:
    """Create a test configuration."""
    return Config(
        logging={"level": "WARNING", "colorize": False},
        processing={"max_workers": 2},
    )


@pytest.fixture
def binary_stl() -> Callable[..., bytes]:
    """Builder for binary STL buffers."""
    return pack_binary_stl


@pytest.fixture
def ascii_stl() -> Callable[..., bytes]:
    """Builder for ASCII STL buffers."""
    return format_ascii_stl


@pytest.fixture
def single_triangle_stl() -> bytes:
    """Binary STL holding the unit triangle with a +Z normal."""
    return pack_binary_stl([UNIT_TRIANGLE], [UNIT_NORMAL])


@pytest.fixture
def shared_edge_triangles() -> tuple:
    """Two triangles meeting at a right angle along the X axis.

    The edge (0,0,0)-(1,0,0) is shared; one face lies in the XY plane
    (normal +Z), the other in the XZ plane (normal +Y).
    """
    triangles = [
        [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
        [(0.0, 0.0, 0.0), (0.0, 0.0, 1.0), (1.0, 0.0, 0.0)],
    ]
    normals = [(0.0, 0.0, 1.0), (0.0, 1.0, 0.0)]
    return triangles, normals


@pytest.fixture
def simple_box_mesh() -> trimesh.Trimesh:
    """Create a simple box mesh for testing."""
    return trimesh.creation.box(extents=[1, 1, 1])


@pytest.fixture
def icosphere_mesh() -> trimesh.Trimesh:
    """Create a smooth closed mesh for testing."""
    return trimesh.creation.icosphere(subdivisions=2)


@pytest.fixture
def sample_stl_path(temp_dir: Path, simple_box_mesh: trimesh.Trimesh) -> Path:
    """Create a sample binary STL file."""
    stl_path = temp_dir / "test_box.stl"
    simple_box_mesh.export(stl_path)
    return stl_path


@pytest.fixture
def sample_ascii_stl_path(temp_dir: Path, icosphere_mesh: trimesh.Trimesh) -> Path:
    """Create a sample ASCII STL file."""
    stl_path = temp_dir / "test_sphere.stl"
    stl_path.write_text(icosphere_mesh.export(file_type="stl_ascii"))
    return stl_path


@pytest.fixture
def vn_lines() -> Callable[[str], np.ndarray]:
    """Extract the vn vectors of an OBJ document."""

    def extract(text: str) -> np.ndarray:
        rows = [
            [float(v) for v in line.split()[1:4]]
            for line in text.splitlines()
            if line.startswith("vn ")
        ]
        return np.array(rows, dtype=np.float64).reshape(-1, 3)

    return extract


# Markers for different test categories
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 1 second"
    )
