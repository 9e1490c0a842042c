"""Command-line interface for stlpreview."""

import time
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stlpreview import __version__
from stlpreview.core import Config, StlPreviewError
from stlpreview.core.converter import Converter
from stlpreview.processing import MeshDecoder, weld
from stlpreview.utils import (
    StructuredLogger,
    get_logger,
    log_conversion_result,
    log_performance,
    setup_logging,
)

app = typer.Typer(
    name="stlpreview",
    help="Convert STL files into smooth-shaded OBJ preview meshes",
    add_completion=False,
)
console = Console()


def _load_config(config: Optional[Path], **overrides: dict) -> Config:
    """Load TOML config (or defaults) and merge command-line overrides."""
    try:
        cfg = Config.from_toml(config) if config else Config()
        data = cfg.to_dict()
        for section, values in overrides.items():
            data.setdefault(section, {}).update(
                {key: value for key, value in values.items() if value is not None}
            )
        return Config.from_dict(data)
    except (FileNotFoundError, StlPreviewError, ValidationError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command()
def convert(
    stl_files: List[Path] = typer.Argument(
        ...,
        exists=True,
        help="STL files to convert",
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory for OBJ files",
    ),
    optimize: Optional[bool] = typer.Option(
        None,
        "--optimize/--no-optimize",
        help="Weld vertices and use smooth per-vertex normals [default: on]",
    ),
    normalize: bool = typer.Option(
        False,
        "--normalize",
        help="Center the mesh and scale it to the target size",
    ),
    target_size: Optional[float] = typer.Option(
        None,
        "--target-size",
        "-s",
        help="Largest extent after --normalize",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file",
    ),
    parallel: bool = typer.Option(
        False,
        "--parallel",
        "-p",
        help="Process files in parallel",
    ),
) -> None:
    """Convert STL files to OBJ preview meshes."""
    cfg = _load_config(
        config,
        welding={"enabled": optimize},
        normalize={"enabled": normalize or None, "target_size": target_size},
    )
    setup_logging(cfg.logging)
    logger = get_logger("stlpreview.cli")

    console.print(f"\n🚀 Converting {len(stl_files)} STL file(s)...")

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    converter = Converter(config=cfg)
    with StructuredLogger(logger, "batch_conversion", files=len(stl_files)):
        results = converter.convert_batch(
            stl_files,
            output_dir=output_dir,
            parallel=parallel or None,
            progress_callback=lambda msg: console.print(f"  {msg}"),
        )

    for result in results:
        log_conversion_result(logger, result)

    successful = [r for r in results if r.success]
    console.print(f"\n✅ Successfully converted {len(successful)}/{len(results)} files")

    if successful:
        table = Table(title="Converted Meshes")
        table.add_column("File", style="cyan")
        table.add_column("Vertices", justify="right")
        table.add_column("Faces", justify="right")
        table.add_column("Dropped", justify="right")
        table.add_column("Output", style="green")
        for result in successful:
            stats = result.stats
            dropped = stats.degenerate + stats.invalid + stats.incomplete
            table.add_row(
                result.input_path.name,
                f"{result.vertex_count:,}",
                f"{result.face_count:,}",
                f"{dropped:,}",
                str(result.output_path),
            )
        console.print(table)

    failed = [r for r in results if not r.success]
    if failed:
        console.print(f"❌ Failed to convert {len(failed)} files:")
        for result in failed:
            console.print(f"  • {result.input_path.name}: {result.error}")
        raise typer.Exit(1)


@app.command()
def inspect(
    stl_file: Path = typer.Argument(
        ...,
        exists=True,
        help="Path to STL file to inspect",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file",
    ),
) -> None:
    """Decode an STL file and display mesh diagnostics."""
    cfg = _load_config(config)
    setup_logging(cfg.logging)
    logger = get_logger("stlpreview.cli")

    console.print(f"\n🔍 Inspecting [cyan]{stl_file.name}[/cyan]...")

    try:
        start_time = time.time()
        converter = Converter(config=cfg)
        data = converter.read_file(stl_file)
        mesh = MeshDecoder(cfg.decoder).decode(data)
        welded = weld(
            mesh,
            precision=cfg.welding.precision,
            threshold=cfg.welding.normal_fallback_threshold,
        )
        log_performance(logger, "inspect", time.time() - start_time, faces=welded.face_count)
    except StlPreviewError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    stats = mesh.stats
    table = Table(title="Mesh Information", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("File", str(stl_file))
    table.add_row("File Size", f"{len(data) / 1024:.2f} KB")
    table.add_row("Format", stats.format.value)
    table.add_row("Facets", f"{stats.total:,}")
    table.add_row("Valid", f"{stats.valid:,}")
    table.add_row("Degenerate", f"{stats.degenerate:,}")
    table.add_row("Invalid", f"{stats.invalid:,}")
    table.add_row("Incomplete", f"{stats.incomplete:,}")
    table.add_row("Zero Normals", f"{stats.zero_normal:,}")
    table.add_row("Unique Vertices", f"{welded.vertex_count:,}")
    table.add_row("Faces", f"{welded.face_count:,}")

    if not welded.is_empty:
        bounds_min, bounds_max = welded.bounds
        extents = welded.extents
        table.add_row(
            "Bounding Box",
            f"[{bounds_min[0]:.2f}, {bounds_min[1]:.2f}, {bounds_min[2]:.2f}] to "
            f"[{bounds_max[0]:.2f}, {bounds_max[1]:.2f}, {bounds_max[2]:.2f}]"
        )
        table.add_row("Size", f"{extents[0]:.2f} x {extents[1]:.2f} x {extents[2]:.2f}")

        tri = welded.to_trimesh()
        table.add_row("Watertight", "✅" if tri.is_watertight else "❌")
        table.add_row("Surface Area", f"{tri.area:.3f} units²")

    console.print(table)

    if welded.is_empty:
        console.print("[yellow]No model available: no facets survived decoding[/yellow]")
        raise typer.Exit(1)


@app.command()
def info() -> None:
    """Display information about stlpreview."""
    console.print("\n[cyan]stlpreview[/cyan] - STL to OBJ preview mesh converter")
    console.print(f"Version: {__version__}")
    console.print("\nInput formats: binary STL, ASCII STL")
    console.print("Output format: OBJ (v / vn / f v//vn)")
    console.print("\nPipeline:")
    console.print("  • Format detection and facet validation")
    console.print("  • Vertex welding")
    console.print("  • Smooth per-vertex normals")
    console.print("  • Optional centering and scaling")


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
