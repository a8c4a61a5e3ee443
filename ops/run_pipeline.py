#!/usr/bin/env python3
"""
Ancestry Maps Pipeline with Click CLI

Loads the state boundaries, joins the census ancestry percentages and writes
one labelled choropleth per configured variable plus a combined grid.

Usage:
    ancestry-maps [OPTIONS]
    python -m ops.run_pipeline [OPTIONS]

    # Alternate config / output location:
    ancestry-maps --config my_config.yaml --output-dir out/

    # Subset of variables:
    ancestry-maps --variable Irish --variable German

    # Only the grid, or only the single maps:
    ancestry-maps --no-singles
    ancestry-maps --no-grid

    # Verbose logging:
    ancestry-maps --verbose              # Enable DEBUG level logging
"""

import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import click
from loguru import logger

from analysis.map_ancestry import RenderStyle, render_all, render_full_grid
from ops.config_loader import Config
from processing.ancestry_fields import AncestryFieldRegistry, FieldDefinition
from processing.data_joiner import join
from processing.exceptions import RenderError
from processing.map_loader import Relocation, load_and_relocate
from processing.processing_utils import (
    ProcessingContext,
    configure_logging,
    log_data_summary,
    log_processing_step,
    validate_required_files,
)


def relocations_from_config(config: Config) -> List[Relocation]:
    """Build the Alaska / Hawaii moves from ``projection.relocations``."""
    relocations = []
    for entry in config.get_projection_setting("relocations") or []:
        shift = entry.get("shift", [0, 0])
        divisor = entry.get("scale_divisor")
        relocations.append(
            Relocation(
                fips=str(entry["fips"]).zfill(2),
                rotate=float(entry.get("rotate", 0)),
                shift=(float(shift[0]), float(shift[1])),
                scale_divisor=float(divisor) if divisor is not None else None,
                name=entry.get("name", ""),
            )
        )
    return relocations


def select_fields(
    registry: AncestryFieldRegistry,
    configured: Sequence[str],
    selected: Optional[Sequence[str]] = None,
) -> List[FieldDefinition]:
    """
    Resolve the configured variables, optionally narrowed to ``selected``.

    Raises:
        KeyError: a configured or selected variable is unknown
    """
    fields = registry.resolve_all(configured)
    if not selected:
        return fields
    wanted = {registry.resolve(v).name for v in selected}
    return [f for f in fields if f.name in wanted]


def run(
    config: Config,
    output_dir: Optional[Path] = None,
    variables: Optional[Sequence[str]] = None,
    grid: bool = True,
    singles: bool = True,
    labels: bool = True,
) -> Dict[str, Optional[Path]]:
    """
    Run the full pipeline against ``config``.

    Returns:
        Image label -> written path, or None for an image that failed

    Raises:
        AncestryMapError: loading, projection or join failed (no image written)
        KeyError: unknown variable name
    """
    registry = AncestryFieldRegistry(config.get_ancestry_setting("columns"))

    render_fields = select_fields(registry, config.get_variables("render"), variables)
    grid_fields = select_fields(registry, config.get_variables("grid"), variables)
    if variables and not (render_fields or grid_fields):
        raise KeyError(f"None of {list(variables)} are configured for rendering")

    boundaries_dir = config.get_input_path("boundaries_dir")
    table_path = config.get_input_path("ancestry_csv")
    validate_required_files(boundaries_dir, table_path)

    log_processing_step("Loading state boundaries", str(boundaries_dir))
    states = load_and_relocate(
        boundaries_dir,
        config.get("input_files.boundaries_layer"),
        target_crs=config.get_projection_setting("target_crs"),
        source_crs=config.get_projection_setting("source_crs"),
        relocations=relocations_from_config(config),
        excluded_fips=[str(f).zfill(2) for f in config.get_projection_setting("excluded_fips")],
        repair_invalid=bool(config.get_projection_setting("repair_invalid_geometry")),
    )
    log_data_summary(states, "State boundaries")

    log_processing_step("Joining ancestry table", str(table_path))
    result = join(
        states,
        table_path,
        registry=registry,
        name_column=config.get_column_name("state_name"),
        label_column=config.get_column_name("table_label"),
        strict=bool(config.get_ancestry_setting("strict_join")),
    )
    log_data_summary(result.rows, "Fortified rows")

    output_dir = config.get_output_dir(output_dir)
    style = RenderStyle.from_config(config)
    outputs: Dict[str, Optional[Path]] = {}

    if singles and render_fields:
        log_processing_step("Rendering single maps", f"{len(render_fields)} variables -> {output_dir}")
        outputs.update(render_all(result, render_fields, output_dir, style, draw_labels=labels))
    else:
        logger.info("⏭️ Skipping single maps")

    if grid and grid_fields:
        log_processing_step("Rendering grid", f"{len(grid_fields)} panels")
        outputs["full-grid"] = render_full_grid(result, grid_fields, output_dir, style)
    else:
        logger.info("⏭️ Skipping grid")

    return outputs


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to config.yaml (default: $ANCESTRY_MAPS_CONFIG, ./config.yaml, ops/config.yaml)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Override the image output directory",
)
@click.option(
    "--variable",
    "variables",
    multiple=True,
    metavar="NAME",
    help="Only render this variable (repeatable; display name or column name)",
)
@click.option("--grid/--no-grid", default=True, help="Write the combined grid image")
@click.option("--singles/--no-singles", default=True, help="Write one map per variable")
@click.option("--labels/--no-labels", default=True, help="Draw value labels on single maps")
@click.option("-v", "--verbose", is_flag=True, help="Enable DEBUG level logging")
@click.option("--log-file", type=str, help="Also log to specified file")
@click.pass_context
def main(ctx, config_file, output_dir, variables, grid, singles, labels, verbose, log_file):
    """
    Ancestry Maps Pipeline

    \b
    Examples:
      ancestry-maps                                   # All configured maps
      ancestry-maps --variable Irish --no-grid        # One labelled map
      ancestry-maps --no-labels --output-dir out/     # Unlabelled maps elsewhere
    """
    configure_logging(verbose)
    if log_file:
        logger.add(
            log_file,
            level="DEBUG" if verbose else "INFO",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="10 MB",
        )
        logger.info(f"📄 Also logging to file: {log_file}")

    logger.debug(f"🔧 CLI arguments received: {ctx.params}")
    start = time.time()

    # Load, projection and join errors propagate; the context logs them and exits 1
    with ProcessingContext("Ancestry Maps Pipeline", config_file=config_file) as pctx:
        outputs = run(
            pctx.config,
            output_dir=output_dir,
            variables=list(variables),
            grid=grid,
            singles=singles,
            labels=labels,
        )

        elapsed = time.time() - start
        logger.info(f"⏱️ Completed in {elapsed:.1f}s")
        for name, path in outputs.items():
            status = "✅" if path is not None else "❌"
            logger.info(f"  {status} {name}: {path if path is not None else 'failed'}")

        failed = [name for name, path in outputs.items() if path is None]
        if failed:
            raise RenderError(f"{len(failed)} of {len(outputs)} images failed: {failed}")


if __name__ == "__main__":
    main()
