#!/usr/bin/env python3
"""
map_loader.py

Loads the Census cartographic boundary file for US states, reprojects it to
a Lambert azimuthal equal-area projection centred on the continental US, and
relocates Alaska and Hawaii so all fifty states fit in one compact frame.

Steps:
1. Read the boundary dataset (shapefile directory, .shp or any OGR source).
2. Validate geometries and reproject every feature to the target CRS.
3. Rotate / scale / shift Alaska and Hawaii into the lower-left of the frame.
4. Drop territories and the federal district, then re-add the relocated
   states.

The affine transforms only change coordinate values: ring counts, vertex
counts and ring closure survive every step, and the relocated features are
re-stamped with the projected CRS.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from loguru import logger
from shapely.validation import make_valid

from .data_utils import missing_columns
from .exceptions import DataLoadError, ProjectionError

LAEA_US = (
    "+proj=laea +lat_0=45 +lon_0=-100 +x_0=0 +y_0=0 "
    "+a=6370997 +b=6370997 +units=m +no_defs"
)

# Census cartographic boundary files ship in NAD83
DEFAULT_SOURCE_CRS = "EPSG:4269"

# AK, HI, PR, GU, AS, MP, UM, VI, DC
EXCLUDED_FIPS: Tuple[str, ...] = ("02", "15", "72", "66", "60", "69", "74", "78", "11")

FIPS_COLUMN = "STATEFP"
REQUIRED_COLUMNS: Tuple[str, ...] = ("STATEFP", "STUSPS", "NAME")


@dataclass(frozen=True)
class Relocation:
    """
    Affine move applied to one state.

    ``rotate`` is in clockwise degrees about the centre of the state's
    bounding box. When ``scale_divisor`` is set the state is moved so its
    bounding box starts at the origin and shrunk by that factor before the
    final ``shift``.
    """

    fips: str
    rotate: float
    shift: Tuple[float, float]
    scale_divisor: Optional[float] = None
    name: str = ""


DEFAULT_RELOCATIONS: Tuple[Relocation, ...] = (
    Relocation("02", rotate=-50, scale_divisor=2.2, shift=(-2100000, -2500000), name="Alaska"),
    Relocation("15", rotate=-35, shift=(5400000, -1400000), name="Hawaii"),
)


def dataset_candidates(source: Union[str, Path], dataset_id: str) -> List[Path]:
    """
    Paths that may hold ``dataset_id`` under ``source``, in lookup order:
    the Census layout (``<source>/<id>/<id>.shp``), a bare shapefile
    (``<source>/<id>.shp``) or any file named exactly ``dataset_id``.
    """
    source = Path(source)
    return [
        source / dataset_id / f"{dataset_id}.shp",
        source / f"{dataset_id}.shp",
        source / dataset_id,
    ]


def resolve_dataset_path(source: Union[str, Path], dataset_id: str) -> Path:
    """Locate ``dataset_id`` under ``source``; see ``dataset_candidates``."""
    candidates = dataset_candidates(source, dataset_id)
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    logger.critical(f"❌ Boundary dataset '{dataset_id}' not found under {source}")
    raise DataLoadError(
        f"Boundary dataset '{dataset_id}' not found; looked for "
        + ", ".join(str(c) for c in candidates)
    )


def read_boundaries(
    source: Union[str, Path],
    dataset_id: str,
    required_columns: Sequence[str] = REQUIRED_COLUMNS,
    fips_column: str = FIPS_COLUMN,
) -> gpd.GeoDataFrame:
    """Read the boundary dataset and check its attribute columns."""
    path = resolve_dataset_path(source, dataset_id)
    logger.info(f"🗺️ Loading state boundaries from {path}")

    try:
        gdf = gpd.read_file(path)
    except Exception as e:
        logger.critical(f"❌ Could not read boundary dataset: {e}")
        raise DataLoadError(f"Could not read boundary dataset {path}: {e}") from e

    if gdf.empty:
        raise DataLoadError(f"Boundary dataset {path} contains no features")

    absent = missing_columns(gdf, required_columns)
    if absent:
        logger.critical(f"❌ Boundary dataset missing columns: {absent}")
        logger.info(f"   Available columns: {list(gdf.columns)}")
        raise DataLoadError(f"Boundary dataset {path} is missing columns: {absent}")

    gdf[fips_column] = gdf[fips_column].astype(str).str.strip().str.zfill(2)
    logger.success(f"  ✅ Loaded {len(gdf):,} boundary features")
    logger.debug(f"    CRS: {gdf.crs}")
    return gdf


def check_geometries(gdf: gpd.GeoDataFrame, repair_invalid: bool = False) -> gpd.GeoDataFrame:
    """Reject null, empty, non-polygonal or invalid geometries."""
    geoms = gdf.geometry

    bad = gdf[geoms.isna() | geoms.is_empty]
    if len(bad) > 0:
        raise ProjectionError(f"{len(bad)} features have null or empty geometry")

    wrong_type = ~geoms.geom_type.isin(["Polygon", "MultiPolygon"])
    if wrong_type.any():
        types = sorted(set(geoms[wrong_type].geom_type))
        raise ProjectionError(f"Unsupported geometry types for state boundaries: {types}")

    invalid = ~geoms.is_valid
    if invalid.any():
        if not repair_invalid:
            logger.critical(f"❌ Found {int(invalid.sum())} invalid geometries")
            raise ProjectionError(f"{int(invalid.sum())} features have invalid geometry")
        logger.warning(f"  ⚠️ Found {int(invalid.sum())} invalid geometries, repairing...")
        gdf = gdf.copy()
        gdf.loc[invalid, gdf.geometry.name] = geoms[invalid].apply(make_valid)

    return gdf


def project_states(
    gdf: gpd.GeoDataFrame,
    target_crs: str = LAEA_US,
    source_crs: str = DEFAULT_SOURCE_CRS,
    repair_invalid: bool = False,
) -> gpd.GeoDataFrame:
    """Validate geometry and reproject every feature to ``target_crs``."""
    gdf = check_geometries(gdf, repair_invalid=repair_invalid)

    if gdf.crs is None:
        logger.warning(f"  ⚠️ No CRS specified in data, assuming {source_crs}")
        gdf = gdf.set_crs(source_crs)

    logger.info("🔄 Reprojecting to equal-area projection")
    logger.debug(f"    {gdf.crs} -> {target_crs}")
    try:
        projected = gdf.to_crs(target_crs)
    except Exception as e:
        logger.critical(f"❌ Error during reprojection: {e}")
        raise ProjectionError(f"Reprojection to {target_crs} failed: {e}") from e

    if not np.isfinite(projected.geometry.bounds.to_numpy()).all():
        raise ProjectionError("Reprojection produced non-finite coordinates")

    return projected


def apply_relocation(features: gpd.GeoDataFrame, relocation: Relocation) -> gpd.GeoDataFrame:
    """Rotate, optionally rescale, and shift the given features as one block."""
    crs = features.crs
    geoms = features.geometry

    minx, miny, maxx, maxy = geoms.total_bounds
    center = ((minx + maxx) / 2, (miny + maxy) / 2)
    # shapely rotates counter-clockwise for positive angles
    geoms = geoms.rotate(-relocation.rotate, origin=center)

    if relocation.scale_divisor:
        minx, miny, _, _ = geoms.total_bounds
        factor = 1.0 / relocation.scale_divisor
        geoms = geoms.translate(-minx, -miny).scale(factor, factor, origin=(0, 0))

    geoms = geoms.translate(*relocation.shift)

    moved = features.copy()
    moved = moved.set_geometry(geoms)
    # The transform does not alter the CRS tag, only coordinate values
    return moved.set_crs(crs, allow_override=True)


def relocate_states(
    projected: gpd.GeoDataFrame,
    relocations: Iterable[Relocation] = DEFAULT_RELOCATIONS,
    excluded_fips: Iterable[str] = EXCLUDED_FIPS,
    fips_column: str = FIPS_COLUMN,
) -> gpd.GeoDataFrame:
    """
    Return the contiguous states untouched plus the relocated states.

    Every FIPS code in ``excluded_fips`` is removed from the contiguous block;
    states named in ``relocations`` are added back after being moved.
    """
    excluded = set(excluded_fips)
    contiguous = projected[~projected[fips_column].isin(excluded)]
    logger.debug(f"  Kept {len(contiguous)} contiguous features")

    parts = [contiguous]
    for relocation in relocations:
        features = projected[projected[fips_column] == relocation.fips]
        label = relocation.name or relocation.fips
        if features.empty:
            logger.warning(f"  ⚠️ No feature with {fips_column}={relocation.fips} ({label}) to relocate")
            continue
        logger.debug(
            f"  Relocating {label}: rotate={relocation.rotate}, "
            f"scale_divisor={relocation.scale_divisor}, shift={relocation.shift}"
        )
        parts.append(apply_relocation(features, relocation))

    combined = pd.concat(parts, ignore_index=True)
    return gpd.GeoDataFrame(combined, geometry=projected.geometry.name, crs=projected.crs)


def load_and_relocate(
    source: Union[str, Path],
    dataset_id: str,
    target_crs: str = LAEA_US,
    source_crs: str = DEFAULT_SOURCE_CRS,
    relocations: Iterable[Relocation] = DEFAULT_RELOCATIONS,
    excluded_fips: Iterable[str] = EXCLUDED_FIPS,
    repair_invalid: bool = False,
) -> gpd.GeoDataFrame:
    """
    Load the state boundaries and produce the fifty-state display collection.

    Raises:
        DataLoadError: dataset missing, unreadable or lacking attribute columns
        ProjectionError: invalid geometry or failed reprojection
    """
    states = read_boundaries(source, dataset_id)
    projected = project_states(
        states, target_crs=target_crs, source_crs=source_crs, repair_invalid=repair_invalid
    )
    final = relocate_states(projected, relocations=relocations, excluded_fips=excluded_fips)
    logger.success(f"  ✅ Map ready: {len(final)} states in {target_crs.split()[0]}")
    return final
