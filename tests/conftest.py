"""
Shared fixtures: synthetic state boundaries and census-style ancestry tables.

Every state is a one-degree lon/lat square laid out on a grid over the
continental US, so projected coordinates are finite and shapes never touch.
Alaska and Hawaii sit near their real locations so relocation moves them.
"""

from pathlib import Path

import geopandas as gpd
import pandas as pd
import pytest
import yaml
from shapely.geometry import Polygon, box

from processing.ancestry_fields import DEFAULT_ANCESTRY_COLUMNS
from processing.data_joiner import join
from processing.map_loader import load_and_relocate

# (STATEFP, STUSPS, NAME)
STATES = [
    ("01", "AL", "Alabama"), ("04", "AZ", "Arizona"), ("05", "AR", "Arkansas"),
    ("06", "CA", "California"), ("08", "CO", "Colorado"), ("09", "CT", "Connecticut"),
    ("10", "DE", "Delaware"), ("12", "FL", "Florida"), ("13", "GA", "Georgia"),
    ("16", "ID", "Idaho"), ("17", "IL", "Illinois"), ("18", "IN", "Indiana"),
    ("19", "IA", "Iowa"), ("20", "KS", "Kansas"), ("21", "KY", "Kentucky"),
    ("22", "LA", "Louisiana"), ("23", "ME", "Maine"), ("24", "MD", "Maryland"),
    ("25", "MA", "Massachusetts"), ("26", "MI", "Michigan"), ("27", "MN", "Minnesota"),
    ("28", "MS", "Mississippi"), ("29", "MO", "Missouri"), ("30", "MT", "Montana"),
    ("31", "NE", "Nebraska"), ("32", "NV", "Nevada"), ("33", "NH", "New Hampshire"),
    ("34", "NJ", "New Jersey"), ("35", "NM", "New Mexico"), ("36", "NY", "New York"),
    ("37", "NC", "North Carolina"), ("38", "ND", "North Dakota"), ("39", "OH", "Ohio"),
    ("40", "OK", "Oklahoma"), ("41", "OR", "Oregon"), ("42", "PA", "Pennsylvania"),
    ("44", "RI", "Rhode Island"), ("45", "SC", "South Carolina"), ("46", "SD", "South Dakota"),
    ("47", "TN", "Tennessee"), ("48", "TX", "Texas"), ("49", "UT", "Utah"),
    ("50", "VT", "Vermont"), ("51", "VA", "Virginia"), ("53", "WA", "Washington"),
    ("54", "WV", "West Virginia"), ("55", "WI", "Wisconsin"), ("56", "WY", "Wyoming"),
]
ALASKA = ("02", "AK", "Alaska")
HAWAII = ("15", "HI", "Hawaii")
DISTRICT = ("11", "DC", "District of Columbia")
TERRITORIES = [
    ("72", "PR", "Puerto Rico"), ("66", "GU", "Guam"), ("60", "AS", "American Samoa"),
    ("69", "MP", "Commonwealth of the Northern Mariana Islands"),
    ("74", "UM", "United States Minor Outlying Islands"),
    ("78", "VI", "United States Virgin Islands"),
]

LAYER = "states.geojson"


def square(lon: float, lat: float, size: float = 1.0) -> Polygon:
    return box(lon, lat, lon + size, lat + size)


def build_boundaries() -> gpd.GeoDataFrame:
    """50 states + DC + 6 territories in EPSG:4269."""
    records = []
    for i, (fips, code, name) in enumerate(STATES):
        lon = -120 + (i % 12) * 3.5
        lat = 30 + (i // 12) * 4
        records.append((fips, code, name, square(lon, lat)))

    records.append((*ALASKA, square(-152, 62, 4)))
    records.append((*HAWAII, square(-157, 20)))
    records.append((*DISTRICT, square(-77.2, 38.8, 0.2)))
    for j, (fips, code, name) in enumerate(TERRITORIES):
        records.append((fips, code, name, square(-67 + j * 0.5, 17, 0.3)))

    return gpd.GeoDataFrame(
        [r[:3] for r in records],
        columns=["STATEFP", "STUSPS", "NAME"],
        geometry=[r[3] for r in records],
        crs="EPSG:4269",
    )


def write_boundaries(directory: Path, gdf: gpd.GeoDataFrame, layer: str = LAYER) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / layer
    gdf.to_file(path, driver="GeoJSON")
    return path


def state_names(include_territories: bool = True):
    names = [s[2] for s in STATES + [ALASKA, HAWAII, DISTRICT]]
    if include_territories:
        names.append("Puerto Rico")
    return names


def write_ancestry_csv(path: Path, omit=(), missing=(), footer: bool = True) -> Path:
    """
    Census DP02 "with_ann" style extract.

    Row 1 is the human-readable annotation header; ``missing`` holds
    (state name, semantic column) cells written as ``"N"``; ``footer`` adds a
    trailing summary row that matches no state.
    """
    raw_columns = list(DEFAULT_ANCESTRY_COLUMNS.values())
    header = ["GEO.id", "GEO.id2", "GEO.display-label", "HC01_VC03"] + raw_columns
    rows = [["Id", "Id2", "Geography", "Estimate; HOUSEHOLDS"]
            + [f"Percent; ANCESTRY - {c}" for c in DEFAULT_ANCESTRY_COLUMNS]]

    missing = set(missing)
    for i, name in enumerate(n for n in state_names() if n not in omit):
        row = [f"0400000US{i:02d}", f"{i:02d}", name, str(1000 + i)]
        for j, semantic in enumerate(DEFAULT_ANCESTRY_COLUMNS):
            if (name, semantic) in missing:
                row.append("N")
            else:
                row.append(f"{1 + (i * 7 + j * 3) % 30 + 0.1 * j:.1f}")
        rows.append(row)

    if footer:
        rows.append(["", "", "Source: U.S. Census Bureau, 2013 American Community Survey", ""]
                    + [""] * len(raw_columns))

    pd.DataFrame(rows, columns=header).to_csv(path, index=False)
    return path


@pytest.fixture
def boundaries():
    return build_boundaries()


@pytest.fixture
def boundary_dir(tmp_path, boundaries):
    directory = tmp_path / "geospatial"
    write_boundaries(directory, boundaries)
    return directory


@pytest.fixture
def ancestry_csv(tmp_path):
    return write_ancestry_csv(
        tmp_path / "ancestry.csv", missing=[("Wyoming", "pctArab")]
    )


@pytest.fixture
def states(boundary_dir):
    return load_and_relocate(boundary_dir, LAYER)


@pytest.fixture
def joined(states, ancestry_csv):
    return join(states, ancestry_csv)


@pytest.fixture
def config_file(tmp_path, boundary_dir, ancestry_csv):
    """A config.yaml pointing at the synthetic inputs, with a small render set."""
    data = {
        "project_name": "Ancestry Maps (test)",
        "description": "Synthetic fixture run",
        "directories": {"data": "data", "output": "maps"},
        "input_files": {
            "boundaries_dir": str(boundary_dir),
            "boundaries_layer": LAYER,
            "ancestry_csv": str(ancestry_csv),
        },
        "ancestry": {
            "render": ["Irish", "German"],
            "grid": ["Irish", "German", "Arab"],
        },
        "visualization": {"single_size_px": 300, "grid_size_px": 360},
    }
    path = tmp_path / "config.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path
