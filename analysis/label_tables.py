"""
Hand-tuned label placement tables for the fifty-state LAEA layout.

Coordinates are in metres of the projected map (see
``processing.map_loader.LAEA_US``) and assume Alaska and Hawaii have been
relocated with the default offsets.
"""

from typing import Dict, FrozenSet, Optional, Tuple

# postal code -> (x, y); None keeps the computed centroid for that axis
LABEL_POSITION_OVERRIDES: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "CA": (-1750000, None),
    "LA": (710000, None),
    "FL": (1800000, None),
    "KY": (1350224, None),
    "NY": (1970000, None),
    "SC": (1770000, None),
    "VA": (1860000, None),
    "WV": (1660000, None),
    "MI": (1250000, -100000),
    # labels moved outside their state
    "HI": (-388560.8, -2258325),
    "NH": (1900000, 600000),
    "VT": (1900000, 400000),
    "MA": (2600000, 292375.55),
    "RI": (2600000, 100000),
    "CT": (2600000, -100000),
    "NJ": (2600000, -300000),
    "DE": (2600000, -500000),
    "MD": (2600000, -700000),
    "DC": (2600000, -900000),
}

# Labels drawn outside the state with a leader line back to its centroid
EXTERNAL_LABELS: FrozenSet[str] = frozenset(
    {"MA", "RI", "CT", "NJ", "DE", "MD", "DC", "NH", "VT"}
)

# Black text; everything else is white over the fill
DARK_LABELS: FrozenSet[str] = EXTERNAL_LABELS | {"HI"}

LEADER_OFFSET = 100000

# Multiplier on LEADER_OFFSET for the first leader segment; default -1 (left)
LEADER_DIRECTION: Dict[str, float] = {"VT": 1.1, "NH": 1.1}
DEFAULT_LEADER_DIRECTION = -1.0

DEFAULT_FONT_SIZE = 6.0
LABEL_FONT_SIZES: Dict[str, float] = {"WV": 4.5}

LIGHT_COLOR = "white"
DARK_COLOR = "black"


def validate_tables() -> None:
    """Sanity checks on the tables; raises ValueError on inconsistency."""
    for code, (x, y) in LABEL_POSITION_OVERRIDES.items():
        if x is None and y is None:
            raise ValueError(f"Override for {code} sets neither x nor y")
    missing = EXTERNAL_LABELS - set(LABEL_POSITION_OVERRIDES)
    if missing:
        raise ValueError(f"External labels without a fixed position: {sorted(missing)}")
    if any(size <= 0 for size in LABEL_FONT_SIZES.values()):
        raise ValueError("Label font sizes must be positive")
