"""
Analysis package for the ancestry maps pipeline

Label placement and choropleth rendering on top of the joined state data.
"""

from .label_placer import LabelRecord, format_value, place_labels
from .map_ancestry import (
    RenderStyle,
    render,
    render_all,
    render_full_grid,
    render_grid,
)

__all__ = [
    "LabelRecord",
    "format_value",
    "place_labels",
    "RenderStyle",
    "render",
    "render_all",
    "render_full_grid",
    "render_grid",
]
