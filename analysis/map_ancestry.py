#!/usr/bin/env python3
"""
Ancestry Choropleth Rendering

Draws static choropleth maps of state ancestry percentages from the
fortified vertex rows produced by ``processing.data_joiner``:

- a filled polygon layer on a continuous colour ramp (light to dark blue)
- a thin black outline layer over the same polygons
- a "%" legend with swatches, no axis chrome, bold title
- optional per-state labels with leader lines for the crowded north-east

Outputs:
- one ``<Ancestry>.png`` per variable (1000x1000, labelled)
- ``full-grid.png`` with every variable in a 3-column grid (1200x1200)

Each image is rendered independently; ``render_all`` logs a failed image and
carries on with the rest.
"""

import math
import traceback
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.colors as mcolors
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from loguru import logger
from matplotlib.collections import LineCollection, PatchCollection
from matplotlib.patches import Patch, PathPatch
from matplotlib.path import Path as MplPath
from matplotlib.ticker import MaxNLocator

from processing.ancestry_fields import FieldDefinition
from processing.data_joiner import JoinResult
from processing.data_utils import ensure_output_directory
from processing.exceptions import RenderError

from .label_placer import LabelRecord, place_labels

# ColorBrewer Blues, steps 4-9
DEFAULT_COLOR_RAMP = ["#9ECAE1", "#6BAED6", "#4292C6", "#2171B5", "#08519C", "#08306B"]

# ggplot text sizes are millimetres
MM_TO_PT = 72.27 / 25.4

GRID_FILENAME = "full-grid.png"


@dataclass(frozen=True)
class RenderStyle:
    """Fixed styling shared by every map. Font sizes are points at 72 ppi."""

    color_ramp: Tuple[str, ...] = tuple(DEFAULT_COLOR_RAMP)
    missing_color: str = "#BDBDBD"
    outline_color: str = "black"
    outline_width: float = 0.3
    leader_width: float = 1.3
    title_size: float = 25.0
    legend_title: str = "%"
    legend_size: float = 18.0
    dpi: int = 100
    single_size_px: int = 1000
    grid_size_px: int = 1200
    grid_columns: int = 3
    grid_font_scale: float = 0.45
    legend_breaks: int = 5

    @classmethod
    def from_config(cls, config) -> "RenderStyle":
        """Build a style from the ``visualization`` section of a Config."""
        get = config.get_visualization_setting
        ramp = get("color_ramp") or DEFAULT_COLOR_RAMP
        return cls(
            color_ramp=tuple(ramp),
            missing_color=get("missing_color"),
            outline_color=get("outline_color"),
            outline_width=float(get("outline_width")),
            leader_width=float(get("leader_width")),
            title_size=float(get("title_size")),
            legend_title=str(get("legend_title")),
            legend_size=float(get("legend_size")),
            dpi=int(get("map_dpi")),
            single_size_px=int(get("single_size_px")),
            grid_size_px=int(get("grid_size_px")),
            grid_columns=int(get("grid_columns")),
            grid_font_scale=float(get("grid_font_scale")),
        )

    @property
    def text_scale(self) -> float:
        """Converts 72 ppi point sizes so text keeps its pixel size at ``dpi``."""
        return 72.0 / self.dpi


def build_colormap(colors: Sequence[str], missing_color: str) -> mcolors.Colormap:
    """Continuous colormap through the ramp; NaN maps to ``missing_color``."""
    if len(colors) < 2:
        raise RenderError("Color ramp needs at least two colors")
    cmap = mcolors.LinearSegmentedColormap.from_list("ancestry_ramp", list(colors), N=256)
    cmap.set_bad(missing_color)
    return cmap


def color_domain(values: pd.Series, variable: str) -> Tuple[float, float]:
    """Observed value range; an all-null variable has no domain."""
    observed = values.dropna()
    if observed.empty:
        raise RenderError(f"No values for {variable}: cannot build a color scale")
    return float(observed.min()), float(observed.max())


def legend_breaks(vmin: float, vmax: float, n: int = 5) -> List[float]:
    """Rounded break values inside [vmin, vmax]."""
    if math.isclose(vmin, vmax):
        return [vmin]
    ticks = MaxNLocator(nbins=n).tick_values(vmin, vmax)
    eps = (vmax - vmin) * 1e-9
    breaks = [float(t) for t in ticks if vmin - eps <= t <= vmax + eps]
    return breaks or [vmin, vmax]


def _ring_codes(n: int) -> List[int]:
    return [MplPath.MOVETO] + [MplPath.LINETO] * (n - 2) + [MplPath.CLOSEPOLY]


def feature_paths(rows: pd.DataFrame, variable: str) -> Tuple[List[MplPath], np.ndarray]:
    """
    One compound path per feature from its fortified rings, plus the
    feature's value of ``variable``.
    """
    paths = []
    values = []
    for _, feature_rows in rows.groupby("feature", sort=True):
        feature_rows = feature_rows.sort_values("order", kind="stable")
        vertices = []
        codes = []
        for _, ring in feature_rows.groupby("piece", sort=True):
            if len(ring) < 4:
                continue
            vertices.append(ring[["x", "y"]].to_numpy(dtype=float))
            codes.extend(_ring_codes(len(ring)))
        if not vertices:
            continue
        paths.append(MplPath(np.concatenate(vertices), codes))
        values.append(feature_rows[variable].iloc[0])
    return paths, np.asarray(values, dtype=float)


def _map_bounds(rows: pd.DataFrame, labels: Optional[Sequence[LabelRecord]]) -> Tuple[float, ...]:
    xs = [rows["x"].min(), rows["x"].max()]
    ys = [rows["y"].min(), rows["y"].max()]
    for label in labels or []:
        if math.isfinite(label.x) and math.isfinite(label.y):
            xs.append(label.x)
            ys.append(label.y)
    return min(xs), min(ys), max(xs), max(ys)


def draw_choropleth(
    ax,
    rows: pd.DataFrame,
    variable: str,
    title: str,
    style: RenderStyle,
    labels: Optional[Sequence[LabelRecord]] = None,
    font_scale: float = 1.0,
) -> None:
    """Draw fill, outline, legend and optional labels onto ``ax``."""
    if variable not in rows.columns:
        raise RenderError(f"Variable {variable} not present in joined data")

    vmin, vmax = color_domain(rows[variable], variable)
    cmap = build_colormap(style.color_ramp, style.missing_color)
    norm = mcolors.Normalize(vmin=vmin, vmax=vmax)
    scale = style.text_scale * font_scale

    paths, values = feature_paths(rows, variable)

    fill = PatchCollection([PathPatch(p) for p in paths], cmap=cmap, norm=norm, linewidth=0)
    fill.set_array(np.ma.masked_invalid(values))
    ax.add_collection(fill)

    outline = PatchCollection(
        [PathPatch(p) for p in paths],
        facecolor="none",
        edgecolor=style.outline_color,
        linewidth=style.outline_width,
    )
    ax.add_collection(outline)

    if labels:
        external = [label.leader_segment for label in labels if label.external]
        if external:
            ax.add_collection(
                LineCollection(external, colors="black", linewidths=style.leader_width * font_scale)
            )
        for label in labels:
            ax.text(
                label.x,
                label.y,
                label.text,
                color=label.color,
                fontsize=label.size * MM_TO_PT * scale,
                ha="center",
                va="center",
                linespacing=1.0,
            )

    # Tight extent with a 1% margin, labels included
    minx, miny, maxx, maxy = _map_bounds(rows, labels)
    x_margin = (maxx - minx) * 0.01
    y_margin = (maxy - miny) * 0.01
    ax.set_xlim(minx - x_margin, maxx + x_margin)
    ax.set_ylim(miny - y_margin, maxy + y_margin)
    ax.set_aspect("equal")
    ax.set_axis_off()

    ax.set_title(title, fontsize=style.title_size * scale, fontweight="bold", loc="left")

    handles = [
        Patch(facecolor=cmap(norm(b)), edgecolor="none", label=f"{b:g}")
        for b in legend_breaks(vmin, vmax, style.legend_breaks)
    ]
    legend = ax.legend(
        handles=handles,
        title=style.legend_title,
        loc="center left",
        bbox_to_anchor=(1.0, 0.5),
        frameon=False,
        fontsize=style.legend_size * scale,
        title_fontsize=style.legend_size * scale,
        handlelength=2,
        handleheight=3,
    )
    legend.get_title().set_fontweight("bold")
    for text in legend.get_texts():
        text.set_fontweight("bold")


def _save(fig, output_path: Union[str, Path], dpi: int) -> Path:
    try:
        output_path = ensure_output_directory(output_path)
        fig.savefig(output_path, dpi=dpi, facecolor="white", edgecolor="none")
    except OSError as e:
        raise RenderError(f"Could not write {output_path}: {e}") from e
    return output_path


def render(
    rows: pd.DataFrame,
    variable: str,
    title: str,
    output_path: Union[str, Path],
    color_ramp: Optional[Sequence[str]] = None,
    draw_labels: bool = False,
    labels: Optional[Sequence[LabelRecord]] = None,
    states=None,
    style: Optional[RenderStyle] = None,
) -> Path:
    """
    Render one variable to a square PNG.

    Labels are only computed (from ``states``) when ``draw_labels`` is set and
    no precomputed ``labels`` are supplied.

    Raises:
        RenderError: unknown or all-null variable, or unwritable output path
    """
    style = style or RenderStyle()
    if color_ramp is not None:
        style = replace(style, color_ramp=tuple(color_ramp))

    if draw_labels and labels is None:
        if states is None:
            raise RenderError("draw_labels requires the joined state collection")
        if variable not in states.columns:
            raise RenderError(f"Variable {variable} not present in state attributes")
        labels = place_labels(states, variable)
    if not draw_labels:
        labels = None

    size_in = style.single_size_px / style.dpi
    fig, ax = plt.subplots(figsize=(size_in, size_in), dpi=style.dpi)
    try:
        fig.subplots_adjust(left=0.02, right=0.86, bottom=0.02, top=0.93)
        draw_choropleth(ax, rows, variable, title, style, labels=labels)
        output_path = _save(fig, output_path, style.dpi)
    finally:
        plt.close(fig)

    logger.info(f"  🗺️ Map saved: {output_path}")
    return output_path


def render_grid(
    rows: pd.DataFrame,
    panels: Sequence[Tuple[str, str]],
    output_path: Union[str, Path],
    style: Optional[RenderStyle] = None,
) -> Path:
    """
    Render several variables into one grid image, without labels.

    Args:
        rows: fortified, joined rows
        panels: (variable, title) pairs in grid order
        output_path: PNG destination
        style: rendering style
    """
    style = style or RenderStyle()
    if not panels:
        raise RenderError("No variables to place in the grid")

    ncol = style.grid_columns
    nrow = math.ceil(len(panels) / ncol)
    size_in = style.grid_size_px / style.dpi

    fig, axes = plt.subplots(nrow, ncol, figsize=(size_in, size_in), dpi=style.dpi, squeeze=False)
    try:
        fig.subplots_adjust(left=0.01, right=0.95, bottom=0.01, top=0.97, wspace=0.35, hspace=0.15)
        flat = axes.ravel()
        title_size = style.title_size * style.text_scale * style.grid_font_scale
        for ax, (variable, title) in zip(flat, panels):
            try:
                draw_choropleth(ax, rows, variable, title, style, font_scale=style.grid_font_scale)
            except RenderError as e:
                # An empty panel keeps the rest of the grid
                logger.warning(f"  ⚠️ Grid panel {title} left blank: {e}")
                ax.cla()
                ax.set_axis_off()
                ax.set_title(title, fontsize=title_size, fontweight="bold", loc="left")
                ax.text(0.5, 0.5, "No data", ha="center", va="center", color="#666666",
                        transform=ax.transAxes)
        for ax in flat[len(panels):]:
            ax.set_axis_off()
        output_path = _save(fig, output_path, style.dpi)
    finally:
        plt.close(fig)

    logger.info(f"  🗺️ Grid saved: {output_path}")
    return output_path


def render_all(
    result: JoinResult,
    fields: Sequence[FieldDefinition],
    output_dir: Union[str, Path],
    style: Optional[RenderStyle] = None,
    draw_labels: bool = True,
) -> Dict[str, Optional[Path]]:
    """
    Render one labelled map per field. A failure is logged and recorded as
    ``None`` without stopping the remaining maps.
    """
    style = style or RenderStyle()
    output_dir = Path(output_dir)
    results: Dict[str, Optional[Path]] = {}

    for field_def in fields:
        output_path = output_dir / f"{field_def.label}.png"
        logger.info(f"🎨 Rendering {field_def.label} ({field_def.name})")
        try:
            results[field_def.label] = render(
                result.rows,
                field_def.name,
                field_def.label,
                output_path,
                draw_labels=draw_labels,
                states=result.states,
                style=style,
            )
        except Exception as e:
            logger.error(f"❌ {field_def.label} map failed: {e}")
            logger.trace(traceback.format_exc())
            results[field_def.label] = None

    n_ok = sum(1 for path in results.values() if path is not None)
    if n_ok == len(results):
        logger.success(f"✅ Rendered {n_ok} maps")
    else:
        logger.warning(f"⚠️ Rendered {n_ok} of {len(results)} maps")
    return results


def render_full_grid(
    result: JoinResult,
    fields: Sequence[FieldDefinition],
    output_dir: Union[str, Path],
    style: Optional[RenderStyle] = None,
) -> Optional[Path]:
    """Grid of every field; failures are logged and return None."""
    style = style or RenderStyle()
    output_path = Path(output_dir) / GRID_FILENAME
    logger.info(f"🎨 Rendering grid of {len(fields)} maps")
    try:
        return render_grid(result.rows, [(f.name, f.label) for f in fields], output_path, style)
    except Exception as e:
        logger.error(f"❌ Grid map failed: {e}")
        logger.trace(traceback.format_exc())
        return None
