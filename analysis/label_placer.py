#!/usr/bin/env python3
"""
Per-state text labels for single-variable ancestry maps.

Each label starts at the state's centroid, then the fixed tables in
``label_tables`` move crowded labels (New England, the mid-Atlantic, Hawaii)
to hand-picked positions. Every record carries a two-segment leader line
from the label back to the true centroid; the renderer only draws it for
external labels.

Output is a pure function of the input collection and variable.
"""

from dataclasses import dataclass
from typing import List, Tuple

import geopandas as gpd
import pandas as pd
from loguru import logger

from . import label_tables as tables

Point = Tuple[float, float]
Segment = Tuple[Point, Point]


@dataclass(frozen=True)
class LabelRecord:
    """A placed label and its leader line."""

    state_code: str
    x: float
    y: float
    orig_x: float
    orig_y: float
    text: str
    first_segment: Segment
    leader_segment: Segment
    color: str
    size: float
    external: bool


def format_value(value) -> str:
    """Three significant digits, trailing zeros kept (``12.0``, ``0.500``)."""
    if pd.isna(value):
        return "NA"
    text = f"{float(value):#.3g}"
    return text.rstrip(".")


def _leader_segments(code: str, x: float, y: float, orig_x: float, orig_y: float):
    direction = tables.LEADER_DIRECTION.get(code, tables.DEFAULT_LEADER_DIRECTION)
    elbow_x = x + direction * tables.LEADER_OFFSET
    first = ((x, y), (elbow_x, y))
    second = ((elbow_x, y), (orig_x, orig_y))
    return first, second


def place_labels(
    states: gpd.GeoDataFrame, variable: str, code_column: str = "STUSPS"
) -> List[LabelRecord]:
    """
    Build one LabelRecord per state, in collection order.

    Args:
        states: projected state collection carrying ``variable``
        variable: semantic column name, e.g. ``pctIrish``
        code_column: postal code attribute

    Returns:
        List of label records
    """
    if variable not in states.columns:
        raise KeyError(f"Variable {variable} not found in state attributes")

    logger.debug(f"  🏷️ Placing labels for {variable}")
    centroids = states.geometry.centroid

    labels = []
    for code, value, centroid in zip(states[code_column], states[variable], centroids):
        orig_x, orig_y = float(centroid.x), float(centroid.y)
        x, y = orig_x, orig_y

        override_x, override_y = tables.LABEL_POSITION_OVERRIDES.get(code, (None, None))
        if override_x is not None:
            x = float(override_x)
        if override_y is not None:
            y = float(override_y)

        first, second = _leader_segments(code, x, y, orig_x, orig_y)
        dark = code in tables.DARK_LABELS

        labels.append(
            LabelRecord(
                state_code=code,
                x=x,
                y=y,
                orig_x=orig_x,
                orig_y=orig_y,
                text=f"{code}\n{format_value(value)}",
                first_segment=first,
                leader_segment=second,
                color=tables.DARK_COLOR if dark else tables.LIGHT_COLOR,
                size=tables.LABEL_FONT_SIZES.get(code, tables.DEFAULT_FONT_SIZE),
                external=code in tables.EXTERNAL_LABELS,
            )
        )

    n_moved = sum(1 for label in labels if label.state_code in tables.LABEL_POSITION_OVERRIDES)
    logger.debug(f"    {len(labels)} labels, {n_moved} at fixed positions")
    return labels
