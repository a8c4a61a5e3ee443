#!/usr/bin/env python3
"""
data_joiner.py

Joins the ACS ancestry table (DP02 "with_ann" extract) onto the relocated
state collection.

Two joined products are returned:
- fortified rows: one row per polygon vertex, in drawing order, carrying the
  ancestry percentages (used for the polygon fill)
- the state collection itself with the percentages added to its attribute
  table (used for centroids and labels)

Both joins are left joins on the lowercase state name, so a state without a
census row keeps its geometry and gets null percentages.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import geopandas as gpd
import pandas as pd
from loguru import logger
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.polygon import orient

from .ancestry_fields import AncestryFieldRegistry
from .data_utils import clean_numeric, find_column_by_pattern, normalize_state_name
from .exceptions import DataLoadError, JoinKeyMismatchError

KEY_COLUMN = "state"
LABEL_COLUMN = "GEO.display-label"
LABEL_PATTERNS = ["display-label", "display.label", "display_label", "geography", "name"]
MISSING_MARKERS = ["N", "(X)", "**", "***", "-"]

FORTIFY_COLUMNS = ["id", "feature", "piece", "group", "order", "hole", "x", "y"]


@dataclass(frozen=True)
class JoinResult:
    """Output of the data joiner."""

    rows: pd.DataFrame
    states: gpd.GeoDataFrame


def read_ancestry_table(
    table_path: Union[str, Path],
    registry: Optional[AncestryFieldRegistry] = None,
    label_column: str = LABEL_COLUMN,
) -> pd.DataFrame:
    """
    Read the census table and trim it to ``state`` plus the semantic
    percentage columns.

    Rows are not filtered here; annotation and footer rows are removed by
    ``drop_unmatched_rows`` once the state names are known.

    Raises:
        DataLoadError: file missing/unreadable, no label column, or a mapped
            raw column absent
    """
    registry = registry or AncestryFieldRegistry()
    table_path = Path(table_path)
    logger.info(f"📊 Loading ancestry table from {table_path}")

    if not table_path.is_file():
        logger.critical(f"❌ Ancestry table not found: {table_path}")
        raise DataLoadError(f"Ancestry table not found: {table_path}")

    try:
        raw = pd.read_csv(
            table_path,
            dtype=str,
            na_values=MISSING_MARKERS,
            keep_default_na=True,
            encoding_errors="replace",
        )
    except Exception as e:
        logger.critical(f"❌ Error loading ancestry table: {e}")
        raise DataLoadError(f"Could not read ancestry table {table_path}: {e}") from e

    logger.info(f"  ✓ Loaded {len(raw):,} rows, {len(raw.columns)} columns")

    if label_column not in raw.columns:
        found = find_column_by_pattern(raw, LABEL_PATTERNS, "state label")
        if found is None:
            raise DataLoadError(f"No state label column ({label_column}) in {table_path}")
        label_column = found

    registry.validate_table(raw)

    trimmed = pd.DataFrame({KEY_COLUMN: normalize_state_name(raw[label_column])})
    for raw_column, name in registry.rename_map().items():
        trimmed[name] = clean_numeric(raw[raw_column])

    n_missing = int(trimmed[registry.names].isna().sum().sum())
    logger.debug(f"    {n_missing} missing percentage cells")
    return trimmed


def drop_unmatched_rows(table: pd.DataFrame, known_names: Iterable[str]) -> pd.DataFrame:
    """
    Drop annotation, summary and footer rows: anything whose key matches no
    known state name. Duplicate keys keep their first row.
    """
    known = set(known_names)
    matched = table[KEY_COLUMN].isin(known)
    dropped = table.loc[~matched, KEY_COLUMN].tolist()

    if dropped:
        logger.info(f"  🧹 Dropped {len(dropped)} non-state rows")
        logger.debug(f"    Dropped keys: {dropped}")
    else:
        logger.warning("  ⚠️ No summary or footer row detected in ancestry table")

    table = table[matched]
    duplicated = table[KEY_COLUMN].duplicated()
    if duplicated.any():
        logger.warning(
            f"  ⚠️ Duplicate state rows, keeping first: {table.loc[duplicated, KEY_COLUMN].tolist()}"
        )
        table = table[~duplicated]

    return table.reset_index(drop=True)


def _polygons(geom) -> List[Polygon]:
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    return [g for g in getattr(geom, "geoms", []) if isinstance(g, Polygon)]


def fortify(states: gpd.GeoDataFrame, id_column: str = KEY_COLUMN) -> pd.DataFrame:
    """
    Flatten polygon rings into drawable vertex rows.

    Each feature yields one contiguous run of rows; within it every ring is
    a ``piece`` (exterior first, then its holes) and ``order`` numbers the
    vertices sequentially across the whole feature. Polygons are oriented so
    holes wind opposite to their exterior.
    """
    records = []
    for feature, (key, geom) in enumerate(zip(states[id_column], states.geometry)):
        order = 0
        piece = 0
        for polygon in _polygons(geom):
            polygon = orient(polygon, sign=1.0)
            rings = [(polygon.exterior, False)] + [(ring, True) for ring in polygon.interiors]
            for ring, hole in rings:
                piece += 1
                group = f"{key}.{piece}"
                for x, y in ring.coords:
                    order += 1
                    records.append((key, feature, piece, group, order, hole, x, y))

    return pd.DataFrame.from_records(records, columns=FORTIFY_COLUMNS)


def join(
    states: gpd.GeoDataFrame,
    table_path: Union[str, Path],
    registry: Optional[AncestryFieldRegistry] = None,
    name_column: str = "NAME",
    label_column: str = LABEL_COLUMN,
    strict: bool = False,
) -> JoinResult:
    """
    Join the ancestry percentages onto the state collection.

    Args:
        states: relocated state collection
        table_path: census CSV
        registry: ancestry column mapping (defaults to the sixteen DP02 columns)
        name_column: display-name attribute in the boundary data
        label_column: display-name column in the census table
        strict: raise JoinKeyMismatchError when a state has no census row

    Returns:
        JoinResult with fortified rows (sorted in drawing order) and the
        state collection carrying the joined percentages
    """
    registry = registry or AncestryFieldRegistry()
    table = read_ancestry_table(table_path, registry, label_column=label_column)

    states = states.copy()
    states[KEY_COLUMN] = normalize_state_name(states[name_column])
    table = drop_unmatched_rows(table, states[KEY_COLUMN])

    logger.info("🔗 Merging ancestry data with state geometries...")
    unmatched = sorted(set(states[KEY_COLUMN]) - set(table[KEY_COLUMN]))
    if unmatched:
        if strict:
            raise JoinKeyMismatchError(unmatched)
        logger.warning(f"  ⚠️ {len(unmatched)} states have no census row: {unmatched}")

    overlap = [c for c in registry.names if c in states.columns]
    if overlap:
        states = states.drop(columns=overlap)
    merged = states.merge(table, on=KEY_COLUMN, how="left", sort=False)

    rows = fortify(states)
    n_rows = len(rows)
    rows = rows.merge(table, left_on="id", right_on=KEY_COLUMN, how="left", sort=False)
    rows = rows.drop(columns=[KEY_COLUMN])
    rows = rows.sort_values(["feature", "order"], kind="stable").reset_index(drop=True)

    if len(rows) != n_rows:
        raise DataLoadError(f"Join changed the vertex row count ({n_rows} -> {len(rows)})")

    logger.success(f"  ✅ Joined {len(table)} census rows onto {len(merged)} states")
    logger.info(f"     📊 Fortified rows: {len(rows):,}")
    return JoinResult(rows=rows, states=merged)
