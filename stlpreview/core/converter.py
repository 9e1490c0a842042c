"""Main converter pipeline from STL bytes to OBJ preview text."""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from stlpreview.core.config import Config
from stlpreview.core.exceptions import MeshLoadError
from stlpreview.io.obj import save_obj, write_obj, write_obj_unwelded
from stlpreview.processing.decoder import BytesLike, DecodeStats, MeshDecoder
from stlpreview.processing.preprocessor import MeshPreprocessor
from stlpreview.processing.welding import weld

logger = structlog.get_logger(__name__)

EMPTY_RESULT_ERROR = "no model available"


class ConversionResult:
    """Result of a conversion operation."""

    def __init__(
        self,
        success: bool,
        input_path: Optional[Path] = None,
        output_path: Optional[Path] = None,
        obj_text: Optional[str] = None,
        stats: Optional[DecodeStats] = None,
        vertex_count: int = 0,
        face_count: int = 0,
        error: Optional[str] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ):
        """Initialize conversion result.

        Args:
            success: Whether a non-empty mesh was produced
            input_path: Input STL file path (None for in-memory buffers)
            output_path: Output OBJ file path (if written)
            obj_text: Serialized mesh, present even when empty
            stats: Decoder counters
            vertex_count: Vertices in the serialized mesh
            face_count: Faces in the serialized mesh
            error: Error message (if failed)
            metrics: Timing metrics in seconds
        """
        self.success = success
        self.input_path = input_path
        self.output_path = output_path
        self.obj_text = obj_text
        self.stats = stats
        self.vertex_count = vertex_count
        self.face_count = face_count
        self.error = error
        self.metrics = metrics or {}
        self.timestamp = time.time()


class Converter:
    """Converts STL data into OBJ preview meshes."""

    def __init__(self, config: Optional[Config] = None):
        """Initialize converter.

        Args:
            config: Configuration object
        """
        self.config = config or Config()
        self.decoder = MeshDecoder(self.config.decoder)
        self.preprocessor = MeshPreprocessor(target_size=self.config.normalize.target_size)

    def convert_bytes(
        self,
        data: BytesLike,
        optimize: Optional[bool] = None,
    ) -> ConversionResult:
        """Convert an in-memory STL buffer.

        Malformed facets never raise; an input with no usable facets gives
        a failed result that still carries the empty OBJ document.

        Args:
            data: Raw STL file contents
            optimize: Weld vertices and use per-vertex normals
                (defaults to the welding config)

        Returns:
            ConversionResult
        """
        if optimize is None:
            optimize = self.config.welding.enabled
        export = self.config.export

        start_time = time.time()
        metrics: Dict[str, Any] = {}

        mesh = self.decoder.decode(data)
        metrics["decode_time"] = time.time() - start_time

        step_start = time.time()
        if optimize:
            welded = weld(
                mesh,
                precision=self.config.welding.precision,
                threshold=self.config.welding.normal_fallback_threshold,
            )
            if self.config.normalize.enabled:
                welded, transform_info = self.preprocessor.preprocess(welded)
                metrics["scale_factor"] = transform_info["scale_factor"]
            obj_text = write_obj(
                welded,
                header_comment=export.header_comment,
                float_precision=export.float_precision,
            )
            vertex_count, face_count = welded.vertex_count, welded.face_count
        else:
            obj_text = write_obj_unwelded(
                mesh,
                header_comment=export.header_comment,
                float_precision=export.float_precision,
            )
            vertex_count, face_count = len(mesh) * 3, len(mesh)
        metrics["build_time"] = time.time() - step_start
        metrics["total_time"] = time.time() - start_time

        success = face_count > 0
        return ConversionResult(
            success=success,
            obj_text=obj_text,
            stats=mesh.stats,
            vertex_count=vertex_count,
            face_count=face_count,
            error=None if success else EMPTY_RESULT_ERROR,
            metrics=metrics,
        )

    def read_file(self, stl_path: Union[str, Path]) -> bytes:
        """Read an STL file after basic checks.

        Raises:
            MeshLoadError: If the path is missing, not a file, too large or
                not an .stl file
        """
        stl_path = Path(stl_path)

        if not stl_path.exists():
            raise MeshLoadError(stl_path, "File does not exist")
        if not stl_path.is_file():
            raise MeshLoadError(stl_path, "Path is not a file")
        if stl_path.suffix.lower() != ".stl":
            raise MeshLoadError(stl_path, f"Unsupported file extension: {stl_path.suffix}")

        file_size = stl_path.stat().st_size
        max_size = self.config.processing.max_file_size
        if file_size > max_size:
            raise MeshLoadError(
                stl_path,
                f"File too large ({file_size} bytes > {max_size} byte limit)",
            )

        try:
            return stl_path.read_bytes()
        except OSError as e:
            raise MeshLoadError(stl_path, str(e)) from e

    def convert_file(
        self,
        stl_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
        optimize: Optional[bool] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ) -> ConversionResult:
        """Convert a single STL file and write the OBJ next to it.

        Args:
            stl_path: Path to input STL file
            output_path: Path for output OBJ file (auto-generated if None)
            optimize: Weld vertices (defaults to the welding config)
            progress_callback: Optional callback for progress updates

        Returns:
            ConversionResult; nothing is written when no faces survive
        """
        stl_path = Path(stl_path)
        output_path = Path(output_path) if output_path else stl_path.with_suffix(".obj")

        try:
            if progress_callback:
                progress_callback(f"Reading {stl_path.name}...")
            data = self.read_file(stl_path)
        except MeshLoadError as e:
            logger.error("conversion_failed", input_file=str(stl_path), error=str(e))
            return ConversionResult(success=False, input_path=stl_path, error=str(e))

        if progress_callback:
            progress_callback(f"Converting {stl_path.name}...")
        result = self.convert_bytes(data, optimize=optimize)
        result.input_path = stl_path
        result.metrics["input_size"] = len(data)

        if not result.success:
            logger.warning(
                "conversion_empty",
                input_file=str(stl_path),
                **result.stats.as_dict(),
            )
            return result

        result.output_path = save_obj(result.obj_text, output_path)
        logger.info(
            "conversion_success",
            input_file=str(stl_path),
            output_file=str(output_path),
            vertices=result.vertex_count,
            faces=result.face_count,
            duration_ms=round(result.metrics["total_time"] * 1000, 2),
        )
        return result

    def convert_batch(
        self,
        stl_paths: List[Union[str, Path]],
        output_dir: Optional[Union[str, Path]] = None,
        optimize: Optional[bool] = None,
        parallel: Optional[bool] = None,
        max_workers: Optional[int] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ) -> List[ConversionResult]:
        """Convert multiple STL files.

        Each conversion owns its own data, so files can be converted on
        worker threads. Results keep the input order.

        Args:
            stl_paths: List of STL file paths
            output_dir: Output directory (uses input dirs if None)
            optimize: Weld vertices (defaults to the welding config)
            parallel: Whether to process in parallel (defaults to config)
            max_workers: Maximum parallel workers (defaults to config, then auto)
            progress_callback: Optional callback for progress updates

        Returns:
            List of ConversionResult objects
        """
        if parallel is None:
            parallel = self.config.processing.parallel_enabled
        if max_workers is None:
            max_workers = self.config.processing.max_workers

        def output_for(stl_path: Union[str, Path]) -> Optional[Path]:
            if output_dir:
                return Path(output_dir) / Path(stl_path).with_suffix(".obj").name
            return None

        if parallel and len(stl_paths) > 1:
            import concurrent.futures
            from multiprocessing import cpu_count

            if max_workers is None:
                max_workers = min(cpu_count(), len(stl_paths), 4)

            with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = [
                    executor.submit(self.convert_file, path, output_for(path), optimize)
                    for path in stl_paths
                ]
                for i, _ in enumerate(concurrent.futures.as_completed(futures)):
                    if progress_callback:
                        progress_callback(f"Completed {i + 1}/{len(stl_paths)} files")
                return [future.result() for future in futures]

        results = []
        for i, stl_path in enumerate(stl_paths):
            if progress_callback:
                progress_callback(
                    f"Processing file {i + 1}/{len(stl_paths)}: {Path(stl_path).name}"
                )
            results.append(
                self.convert_file(stl_path, output_for(stl_path), optimize, progress_callback)
            )
        return results


def stl_to_obj(data: BytesLike, optimize: bool = True, config: Optional[Config] = None) -> str:
    """Convenience function returning the OBJ text for an STL buffer.

    Args:
        data: Raw STL file contents
        optimize: Weld vertices and use per-vertex normals
        config: Optional configuration

    Returns:
        OBJ document, header-only when nothing survived decoding
    """
    return Converter(config).convert_bytes(data, optimize=optimize).obj_text
