"""STL decoding: variant detection, binary and ASCII parsing, facet filtering."""

import struct
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple, Union

import numpy as np
import structlog
from tqdm import tqdm

from stlpreview.core.config import DecoderConfig
from stlpreview.processing.validator import (
    DEGENERATE_EPSILON,
    FacetStatus,
    classify_facets,
    is_zero_vector,
)
from stlpreview.utils.logging import log_decode_stats

logger = structlog.get_logger(__name__)

# 80-byte comment followed by a little-endian uint32 facet count
HEADER_SIZE = 80
BINARY_HEADER_SIZE = HEADER_SIZE + 4

# normal (3 x float32) + 3 vertices (9 x float32) + uint16 attribute
RECORD_SIZE = 50

# Allowed size mismatch for binary files whose comment starts with "solid"
SIZE_TOLERANCE = 100

BINARY_RECORD = np.dtype(
    [
        ("normal", "<f4", (3,)),
        ("vertices", "<f4", (3, 3)),
        ("attribute", "<u2"),
    ]
)

BytesLike = Union[bytes, bytearray, memoryview]
Vector3 = Tuple[float, float, float]


class StlFormat(str, Enum):
    """STL encoding variants."""

    BINARY = "binary"
    ASCII = "ascii"


@dataclass
class DecodeStats:
    """Diagnostic counters collected while decoding one STL buffer.

    ``total`` is always ``valid + degenerate + invalid + incomplete``.
    ``zero_normal`` counts valid facets whose stored normal was the zero
    vector; those are kept and get their normal from geometry later.
    """

    format: StlFormat
    total: int = 0
    valid: int = 0
    degenerate: int = 0
    invalid: int = 0
    incomplete: int = 0
    zero_normal: int = 0

    def as_dict(self) -> dict:
        data = asdict(self)
        data["format"] = self.format.value
        return data


@dataclass(frozen=True)
class Triangle:
    """One facet: three vertex positions and the stored face normal."""

    vertices: Tuple[Vector3, Vector3, Vector3]
    normal: Vector3


class TriangleMesh:
    """Ordered, validated triangles produced by the decoder.

    Vertices are not shared between triangles. Both arrays are read-only.
    """

    def __init__(
        self,
        vertices: np.ndarray,
        normals: np.ndarray,
        stats: Optional[DecodeStats] = None,
    ):
        """Initialize triangle mesh.

        Args:
            vertices: Array of shape (n, 3, 3)
            normals: Array of shape (n, 3)
            stats: Decoder counters for this mesh
        """
        vertices = np.array(vertices, dtype=np.float64).reshape(-1, 3, 3)
        normals = np.array(normals, dtype=np.float64).reshape(-1, 3)
        if len(vertices) != len(normals):
            raise ValueError(
                f"Got {len(vertices)} triangles but {len(normals)} normals"
            )
        vertices.flags.writeable = False
        normals.flags.writeable = False

        self.vertices = vertices
        self.normals = normals
        self.stats = stats

    @classmethod
    def empty(cls, stats: Optional[DecodeStats] = None) -> "TriangleMesh":
        return cls(np.zeros((0, 3, 3)), np.zeros((0, 3)), stats)

    @classmethod
    def from_triangles(
        cls,
        triangles: Iterable[Triangle],
        stats: Optional[DecodeStats] = None,
    ) -> "TriangleMesh":
        """Build a mesh from Triangle objects."""
        triangles = list(triangles)
        if not triangles:
            return cls.empty(stats)
        return cls(
            [t.vertices for t in triangles],
            [t.normal for t in triangles],
            stats,
        )

    @property
    def triangles(self) -> List[Triangle]:
        return [
            Triangle(
                vertices=tuple(tuple(float(c) for c in v) for v in tri),
                normal=tuple(float(c) for c in normal),
            )
            for tri, normal in zip(self.vertices, self.normals)
        ]

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) == 0

    def __len__(self) -> int:
        return len(self.vertices)

    def __repr__(self) -> str:
        return f"TriangleMesh(triangles={len(self)})"


def detect_format(data: BytesLike, tolerance: int = SIZE_TOLERANCE) -> StlFormat:
    """Guess whether an STL buffer is binary or ASCII.

    The facet count stored at offset 80 decides when the buffer length
    matches it exactly. Otherwise a leading "solid" means ASCII, unless
    the size is within ``tolerance`` bytes of the binary layout (binary
    headers may start with "solid" too). Anything else is binary.

    Args:
        data: Raw file contents
        tolerance: Size slack for binary files with a "solid" header

    Returns:
        Detected StlFormat
    """
    if len(data) < BINARY_HEADER_SIZE:
        return StlFormat.ASCII

    (triangle_count,) = struct.unpack_from("<I", data, HEADER_SIZE)
    expected_size = BINARY_HEADER_SIZE + RECORD_SIZE * triangle_count

    if len(data) == expected_size:
        return StlFormat.BINARY

    try:
        header = bytes(data[:5]).decode("utf-8")
    except UnicodeDecodeError:
        return StlFormat.BINARY

    if header.lower() == "solid":
        if abs(len(data) - expected_size) < tolerance:
            return StlFormat.BINARY
        return StlFormat.ASCII

    return StlFormat.BINARY


def _finish(
    stats: DecodeStats,
    vertices: np.ndarray,
    normals: np.ndarray,
    epsilon: float,
) -> TriangleMesh:
    """Classify candidate facets, update counters and build the mesh."""
    status = classify_facets(vertices, normals, epsilon)

    stats.invalid += int(np.count_nonzero(status == FacetStatus.INVALID))
    stats.degenerate += int(np.count_nonzero(status == FacetStatus.DEGENERATE))

    keep = status == FacetStatus.VALID
    stats.valid += int(np.count_nonzero(keep))
    if len(normals) > 0:
        stats.zero_normal += int(np.count_nonzero(is_zero_vector(normals[keep])))

    if not np.any(keep):
        return TriangleMesh.empty(stats)
    return TriangleMesh(vertices[keep], normals[keep], stats)


def decode_binary(data: BytesLike, epsilon: float = DEGENERATE_EPSILON) -> TriangleMesh:
    """Parse a binary STL buffer.

    Records declared in the header but missing from a truncated buffer
    are counted as incomplete.

    Args:
        data: Raw file contents (at least 84 bytes)
        epsilon: Degeneracy threshold

    Returns:
        TriangleMesh holding the valid facets
    """
    stats = DecodeStats(format=StlFormat.BINARY)
    if len(data) < BINARY_HEADER_SIZE:
        return TriangleMesh.empty(stats)

    (declared,) = struct.unpack_from("<I", data, HEADER_SIZE)
    available = (len(data) - BINARY_HEADER_SIZE) // RECORD_SIZE
    count = min(declared, available)

    stats.total = declared
    stats.incomplete = declared - count
    if stats.incomplete:
        logger.warning(
            "binary_stl_truncated",
            declared=declared,
            available=available,
        )

    records = np.frombuffer(
        data, dtype=BINARY_RECORD, count=count, offset=BINARY_HEADER_SIZE
    )
    vertices = records["vertices"].astype(np.float64)
    normals = records["normal"].astype(np.float64)

    return _finish(stats, vertices, normals, epsilon)


def _parse_triple(tokens: List[str]) -> Optional[Vector3]:
    """Parse three finite floats, or return None."""
    if len(tokens) < 3:
        return None
    try:
        values = tuple(float(t) for t in tokens[:3])
    except ValueError:
        return None
    if not all(np.isfinite(values)):
        return None
    return values


@dataclass
class _FacetAccumulator:
    """Pending facet state between 'facet' and 'endfacet'."""

    started: bool = False
    normal: Optional[Vector3] = None
    vertices: List[Vector3] = field(default_factory=list)

    def reset(self) -> None:
        self.started = False
        self.normal = None
        self.vertices = []


def decode_ascii(
    data: BytesLike,
    epsilon: float = DEGENERATE_EPSILON,
    show_progress: bool = False,
) -> TriangleMesh:
    """Parse an ASCII STL buffer.

    A facet is kept only when it is closed by ``endfacet`` with a normal
    and exactly three vertices. An unparsable or non-finite normal leaves
    the facet without one, and such a vertex is skipped, so either case
    ends up counted as incomplete along with facets that are never closed.

    Args:
        data: Raw file contents
        epsilon: Degeneracy threshold
        show_progress: Whether to show a progress bar

    Returns:
        TriangleMesh holding the valid facets
    """
    stats = DecodeStats(format=StlFormat.ASCII)
    text = bytes(data).decode("utf-8", errors="replace")
    lines = text.splitlines()

    candidate_vertices: List[Tuple[Vector3, Vector3, Vector3]] = []
    candidate_normals: List[Vector3] = []
    pending = _FacetAccumulator()

    def drop_unclosed(line_number: int) -> None:
        stats.total += 1
        stats.incomplete += 1
        logger.debug("facet_dropped", reason="missing endfacet", line=line_number)

    for line_number, line in enumerate(
        tqdm(lines, desc="Parsing STL", disable=not show_progress, unit="lines"),
        start=1,
    ):
        parts = line.split()
        if not parts:
            continue
        keyword = parts[0].lower()

        if keyword == "facet":
            if pending.started:
                drop_unclosed(line_number)
            pending.reset()
            pending.started = True
            if len(parts) >= 2 and parts[1].lower() == "normal":
                pending.normal = _parse_triple(parts[2:])
            if pending.normal is None:
                logger.debug("normal_rejected", line=line_number)

        elif keyword == "vertex":
            pending.started = True
            vertex = _parse_triple(parts[1:])
            if vertex is None:
                logger.debug("vertex_rejected", line=line_number)
            else:
                pending.vertices.append(vertex)

        elif keyword == "endfacet":
            stats.total += 1
            if len(pending.vertices) != 3 or pending.normal is None:
                stats.incomplete += 1
                logger.debug(
                    "facet_dropped",
                    reason="incomplete",
                    line=line_number,
                    vertices=len(pending.vertices),
                )
            else:
                candidate_vertices.append(tuple(pending.vertices))
                candidate_normals.append(pending.normal)
            pending.reset()

    if pending.started:
        drop_unclosed(len(lines))

    if not candidate_vertices:
        return TriangleMesh.empty(stats)

    # total already counts candidates; _finish only fills the category counters
    return _finish(
        stats,
        np.array(candidate_vertices, dtype=np.float64),
        np.array(candidate_normals, dtype=np.float64),
        epsilon,
    )


class MeshDecoder:
    """Decodes raw STL bytes into a validated TriangleMesh."""

    def __init__(
        self,
        config: Optional[DecoderConfig] = None,
        on_stats: Optional[Callable[[DecodeStats], None]] = None,
    ):
        """Initialize mesh decoder.

        Args:
            config: Decoder configuration
            on_stats: Optional observer called with the counters of every decode
        """
        self.config = config or DecoderConfig()
        self.on_stats = on_stats

    def detect(self, data: BytesLike) -> StlFormat:
        return detect_format(data, tolerance=self.config.size_tolerance)

    def decode(self, data: BytesLike) -> TriangleMesh:
        """Decode an STL buffer, skipping facets that fail validation.

        Args:
            data: Raw STL file contents

        Returns:
            TriangleMesh, possibly empty
        """
        stl_format = self.detect(data)

        if stl_format is StlFormat.BINARY:
            mesh = decode_binary(data, epsilon=self.config.epsilon)
        else:
            mesh = decode_ascii(
                data,
                epsilon=self.config.epsilon,
                show_progress=self.config.show_progress,
            )

        log_decode_stats(logger, mesh.stats, size=len(data))

        if self.on_stats is not None:
            self.on_stats(mesh.stats)

        return mesh


def decode(
    data: BytesLike,
    config: Optional[DecoderConfig] = None,
    on_stats: Optional[Callable[[DecodeStats], None]] = None,
) -> TriangleMesh:
    """Convenience function to decode an STL buffer.

    Args:
        data: Raw STL file contents
        config: Optional decoder configuration
        on_stats: Optional observer for the decode counters

    Returns:
        TriangleMesh holding every facet that passed validation
    """
    return MeshDecoder(config=config, on_stats=on_stats).decode(data)
