"""Tests for the census table reader, fortify and the left join."""

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from loguru import logger
from shapely.geometry import Polygon

from conftest import write_ancestry_csv
from processing.ancestry_fields import DEFAULT_ANCESTRY_COLUMNS, AncestryFieldRegistry
from processing.data_joiner import (
    FORTIFY_COLUMNS,
    drop_unmatched_rows,
    fortify,
    join,
    read_ancestry_table,
)
from processing.data_utils import clean_numeric
from processing.exceptions import DataLoadError, JoinKeyMismatchError


@pytest.fixture
def warnings():
    messages = []
    handler_id = logger.add(messages.append, level="WARNING", format="{message}")
    yield messages
    logger.remove(handler_id)


def test_clean_numeric_marks_suppressed_cells_null():
    cleaned = clean_numeric(pd.Series(["12.5", "N", "1,234", "7%", None]))
    assert cleaned.iloc[0] == 12.5
    assert np.isnan(cleaned.iloc[1])
    assert cleaned.iloc[2] == 1234
    assert cleaned.iloc[3] == 7
    assert np.isnan(cleaned.iloc[4])


def test_read_table_renames_to_semantic_columns(ancestry_csv):
    table = read_ancestry_table(ancestry_csv)
    assert list(table.columns) == ["state"] + list(DEFAULT_ANCESTRY_COLUMNS)
    assert "wyoming" in set(table["state"])
    for column in DEFAULT_ANCESTRY_COLUMNS:
        assert table[column].dtype.kind == "f"


def test_n_cell_joins_as_null(joined):
    wyoming = joined.states.loc[joined.states["NAME"] == "Wyoming"]
    assert pd.isna(wyoming["pctArab"].iloc[0])
    assert not pd.isna(wyoming["pctIrish"].iloc[0])

    rows = joined.rows[joined.rows["id"] == "wyoming"]
    assert len(rows) > 0
    assert rows["pctArab"].isna().all()


def test_join_preserves_fortified_row_count(states, joined):
    assert len(joined.rows) == len(fortify(states.assign(state=states["NAME"].str.lower())))
    assert len(joined.states) == len(states)


def test_rows_contiguous_per_feature_and_ordered(joined):
    rows = joined.rows
    assert list(rows.columns[: len(FORTIFY_COLUMNS)]) == FORTIFY_COLUMNS
    # each feature is one contiguous run
    runs = (rows["feature"] != rows["feature"].shift()).sum()
    assert runs == rows["feature"].nunique() == 50
    for _, feature_rows in rows.groupby("feature"):
        order = feature_rows["order"].to_numpy()
        assert (np.diff(order) == 1).all()


def test_fortified_rings_are_closed(joined):
    for _, ring in joined.rows.groupby("group"):
        assert ring[["x", "y"]].iloc[0].tolist() == ring[["x", "y"]].iloc[-1].tolist()


def test_fortify_hole_piece_numbering():
    donut = Polygon(
        [(0, 0), (10, 0), (10, 10), (0, 10)],
        holes=[[(2, 2), (2, 4), (4, 4), (4, 2)]],
    )
    gdf = gpd.GeoDataFrame({"state": ["donut"]}, geometry=[donut])
    rows = fortify(gdf)
    assert sorted(rows["group"].unique()) == ["donut.1", "donut.2"]
    assert not rows.loc[rows["piece"] == 1, "hole"].any()
    assert rows.loc[rows["piece"] == 2, "hole"].all()
    assert rows["order"].tolist() == list(range(1, len(rows) + 1))


def test_unmatched_state_keeps_geometry_with_nulls(tmp_path, states):
    table = write_ancestry_csv(tmp_path / "partial.csv", omit=["Ohio"])
    result = join(states, table)

    ohio = result.states.loc[result.states["NAME"] == "Ohio"]
    assert len(ohio) == 1
    assert ohio[list(DEFAULT_ANCESTRY_COLUMNS)].isna().all(axis=1).iloc[0]
    assert (result.rows["id"] == "ohio").any()


def test_strict_join_raises_on_unmatched(tmp_path, states):
    table = write_ancestry_csv(tmp_path / "partial.csv", omit=["Ohio", "Utah"])
    with pytest.raises(JoinKeyMismatchError) as excinfo:
        join(states, table, strict=True)
    assert excinfo.value.unmatched == ["ohio", "utah"]


def test_annotation_and_footer_rows_dropped(tmp_path, states, warnings):
    table = write_ancestry_csv(tmp_path / "ancestry.csv")
    result = join(states, table)
    assert "geography" not in set(result.rows["id"])
    assert not any("No summary or footer row" in m for m in warnings)


def test_warning_when_no_footer_found(warnings):
    table = pd.DataFrame({"state": ["ohio", "utah"], "pctIrish": [1.0, 2.0]})
    kept = drop_unmatched_rows(table, ["ohio", "utah"])
    assert len(kept) == 2
    assert any("No summary or footer row" in m for m in warnings)


def test_duplicate_rows_keep_first(warnings):
    table = pd.DataFrame(
        {"state": ["ohio", "ohio", "footer"], "pctIrish": [1.0, 9.0, np.nan]}
    )
    kept = drop_unmatched_rows(table, ["ohio"])
    assert kept["pctIrish"].tolist() == [1.0]
    assert any("Duplicate" in m for m in warnings)


def test_missing_raw_column_fails_fast(tmp_path):
    path = write_ancestry_csv(tmp_path / "ancestry.csv")
    table = pd.read_csv(path, dtype=str).drop(columns=["HC03_VC197"])
    table.to_csv(path, index=False)
    with pytest.raises(DataLoadError, match="HC03_VC197"):
        read_ancestry_table(path)


def test_missing_table_raises(tmp_path):
    with pytest.raises(DataLoadError):
        read_ancestry_table(tmp_path / "missing.csv")


def test_custom_registry_subset(ancestry_csv):
    registry = AncestryFieldRegistry({"pctIrish": "HC03_VC197"})
    table = read_ancestry_table(ancestry_csv, registry)
    assert list(table.columns) == ["state", "pctIrish"]
