"""Tests for choropleth rendering: sizes, failure modes and isolation."""

import matplotlib.image as mpimg
import numpy as np
import pandas as pd
import pytest

import analysis.map_ancestry as map_ancestry
from analysis.map_ancestry import (
    GRID_FILENAME,
    RenderStyle,
    build_colormap,
    color_domain,
    feature_paths,
    legend_breaks,
    render,
    render_all,
    render_full_grid,
    render_grid,
)
from ops.config_loader import Config
from processing.ancestry_fields import AncestryFieldRegistry
from processing.exceptions import RenderError


def _size(path):
    image = mpimg.imread(path)
    return image.shape[1], image.shape[0]


def test_single_map_is_1000_square(tmp_path, joined):
    path = render(
        joined.rows, "pctIrish", "Irish", tmp_path / "Irish.png",
        draw_labels=True, states=joined.states,
    )
    assert path.exists()
    assert _size(path) == (1000, 1000)


def test_grid_is_1200_square(tmp_path, joined):
    panels = [("pctIrish", "Irish"), ("pctGerman", "German"), ("pctArab", "Arab"),
              ("pctItalian", "Italian")]
    path = render_grid(joined.rows, panels, tmp_path / GRID_FILENAME)
    assert _size(path) == (1200, 1200)


def test_all_null_variable_raises(tmp_path, joined):
    rows = joined.rows.assign(pctIrish=np.nan)
    with pytest.raises(RenderError, match="pctIrish"):
        render(rows, "pctIrish", "Irish", tmp_path / "Irish.png")
    assert not (tmp_path / "Irish.png").exists()


def test_unknown_variable_raises(tmp_path, joined):
    with pytest.raises(RenderError):
        render(joined.rows, "pctMartian", "Martian", tmp_path / "Martian.png")


def test_unwritable_output_raises(tmp_path, joined):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    with pytest.raises(RenderError):
        render(joined.rows, "pctIrish", "Irish", blocker / "Irish.png")


def test_no_labels_never_places_labels(tmp_path, joined, monkeypatch):
    def explode(*args, **kwargs):
        raise AssertionError("label placer called")

    monkeypatch.setattr(map_ancestry, "place_labels", explode)
    path = render(
        joined.rows, "pctIrish", "Irish", tmp_path / "Irish.png",
        draw_labels=False, states=joined.states,
    )
    assert path.exists()


def test_precomputed_labels_skip_placer(tmp_path, joined, monkeypatch):
    labels = map_ancestry.place_labels(joined.states, "pctIrish")
    monkeypatch.setattr(map_ancestry, "place_labels", lambda *a, **k: pytest.fail("recomputed"))
    render(
        joined.rows, "pctIrish", "Irish", tmp_path / "Irish.png",
        draw_labels=True, labels=labels,
    )


def test_grid_blank_panel_for_empty_variable(tmp_path, joined):
    rows = joined.rows.assign(pctGreek=np.nan)
    path = render_grid(rows, [("pctIrish", "Irish"), ("pctGreek", "Greek")], tmp_path / "g.png")
    assert path.exists()


def test_render_all_isolates_failures(tmp_path, joined):
    registry = AncestryFieldRegistry()
    rows = joined.rows.assign(pctGreek=np.nan)
    result = type(joined)(rows=rows, states=joined.states)
    fields = registry.resolve_all(["Irish", "Greek", "German"])
    style = RenderStyle(single_size_px=200)

    outputs = render_all(result, fields, tmp_path, style)

    assert outputs["Greek"] is None
    assert outputs["Irish"] == tmp_path / "Irish.png"
    assert outputs["German"].exists()
    assert _size(outputs["Irish"]) == (200, 200)


def test_render_full_grid_returns_none_on_failure(tmp_path, joined):
    blocker = tmp_path / "blocked"
    blocker.write_text("")
    fields = AncestryFieldRegistry().resolve_all(["Irish"])
    assert render_full_grid(joined, fields, blocker) is None


def test_missing_states_get_missing_color(joined):
    rows = joined.rows.copy()
    rows.loc[rows["id"] == "ohio", "pctIrish"] = np.nan
    paths, values = feature_paths(rows, "pctIrish")
    assert len(paths) == 50
    assert np.isnan(values).sum() == 1

    cmap = build_colormap(RenderStyle().color_ramp, "#BDBDBD")
    masked = np.ma.masked_invalid(values)
    bad = cmap(masked)[np.isnan(values)][0]
    assert tuple(np.round(bad[:3], 3)) == tuple(np.round([0xBD / 255] * 3, 3))


def test_color_domain_and_breaks():
    vmin, vmax = color_domain(pd.Series([3.0, None, 17.5]), "pctIrish")
    assert (vmin, vmax) == (3.0, 17.5)
    breaks = legend_breaks(vmin, vmax)
    assert breaks and all(vmin <= b <= vmax for b in breaks)
    assert legend_breaks(4.0, 4.0) == [4.0]


def test_style_from_config(config_file):
    style = RenderStyle.from_config(Config(config_file))
    assert style.single_size_px == 300
    assert style.dpi == 100
    assert style.color_ramp[0] == "#9ECAE1"
