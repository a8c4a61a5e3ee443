#!/usr/bin/env python3
"""
data_utils.py - Shared Data Processing Utilities

Small helpers used by both the map loader and the data joiner: column
lookup, numeric coercion of census cells and join-key normalization.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Union

import pandas as pd
from loguru import logger


def find_column_by_pattern(
    df: pd.DataFrame, patterns: Iterable[str], description: str = "column"
) -> Optional[str]:
    """Find a column by matching patterns (case-insensitive).

    Args:
        df: DataFrame to search
        patterns: List of patterns to match (e.g., ["display-label", "geography"])
        description: Description for logging

    Returns:
        Column name if found, None if not found
    """
    patterns = list(patterns)
    for pattern in patterns:
        matching_cols = [col for col in df.columns if pattern.lower() in str(col).lower()]
        if matching_cols:
            logger.info(f"  📍 Found {description} column: {matching_cols[0]} (pattern: {pattern})")
            return matching_cols[0]

    logger.warning(f"  ⚠️ No {description} column found for patterns: {patterns}")
    return None


def missing_columns(df: pd.DataFrame, required: Iterable[str]) -> List[str]:
    """Return the required column names that are absent from ``df``."""
    return [col for col in required if col not in df.columns]


def clean_numeric(series: pd.Series) -> pd.Series:
    """
    Cleans a pandas Series to numeric type, handling commas and percent signs.

    Census suppression markers such as "N" (and any other non-numeric text)
    become NaN rather than zero.

    Args:
        series: The pandas Series to clean.

    Returns:
        A pandas Series with numeric data.
    """
    s = (
        series.astype(str)
        .str.replace(",", "", regex=False)
        .str.replace("%", "", regex=False)
        .str.strip()
    )
    return pd.to_numeric(s, errors="coerce")


def normalize_state_name(series: pd.Series) -> pd.Series:
    """Canonical join key for state display names: trimmed, lowercase."""
    return series.astype(str).str.strip().str.lower()


def ensure_output_directory(output_path: Union[str, Path]) -> Path:
    """Ensure output directory exists and return Path object.

    Args:
        output_path: Output file path (string or Path)

    Returns:
        Path object with directory created
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path
