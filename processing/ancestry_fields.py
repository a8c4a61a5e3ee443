#!/usr/bin/env python3
"""
Ancestry Field Registry

Declarative mapping between the raw ACS DP02 percentage columns and the
semantic column names used throughout the pipeline (``HC03_VC197`` ->
``pctIrish``). The mapping is checked against the table at load time so a
dataset revision that drops or renames a column fails fast instead of
silently shifting values between ancestries.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd
from loguru import logger

from .exceptions import DataLoadError

# ACS 2013 1-year DP02, "Percent" estimates for selected ancestries
DEFAULT_ANCESTRY_COLUMNS: Dict[str, str] = {
    "pctArab": "HC03_VC187",
    "pctEnglish": "HC03_VC191",
    "pctGerman": "HC03_VC194",
    "pctIrish": "HC03_VC197",
    "pctItalian": "HC03_VC198",
    "pctPolish": "HC03_VC201",
    "pctSwedish": "HC03_VC208",
    "pctRussian": "HC03_VC203",
    "pctAmerican": "HC03_VC186",
    "pctCzech": "HC03_VC188",
    "pctDanish": "HC03_VC189",
    "pctDutch": "HC03_VC190",
    "pctFrench": "HC03_VC192",
    "pctGreek": "HC03_VC195",
    "pctScotchIrish": "HC03_VC204",
    "pctScottish": "HC03_VC205",
}

LABEL_EXCEPTIONS = {"pctScotchIrish": "Scotch-Irish"}


@dataclass(frozen=True)
class FieldDefinition:
    """One ancestry percentage column."""

    name: str
    raw_column: str
    label: str


def label_from_name(name: str) -> str:
    """``pctScottish`` -> ``Scottish``; camel case is split into words."""
    if name in LABEL_EXCEPTIONS:
        return LABEL_EXCEPTIONS[name]
    stem = name[3:] if name.startswith("pct") else name
    return re.sub(r"(?<!^)(?=[A-Z])", " ", stem)


class AncestryFieldRegistry:
    """Registry of ancestry fields keyed by semantic name."""

    def __init__(self, columns: Optional[Mapping[str, str]] = None):
        self._fields: Dict[str, FieldDefinition] = {}
        for name, raw_column in (columns or DEFAULT_ANCESTRY_COLUMNS).items():
            self.register(FieldDefinition(name, raw_column, label_from_name(name)))

    def register(self, field_def: FieldDefinition) -> None:
        """Register a field definition, rejecting duplicate raw columns."""
        for existing in self._fields.values():
            if existing.raw_column == field_def.raw_column and existing.name != field_def.name:
                raise ValueError(
                    f"Raw column {field_def.raw_column} already mapped to {existing.name}"
                )
        self._fields[field_def.name] = field_def
        logger.debug(f"Registered field: {field_def.name} <- {field_def.raw_column}")

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __iter__(self):
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def names(self) -> List[str]:
        return list(self._fields)

    def get(self, name: str) -> FieldDefinition:
        if name not in self._fields:
            raise KeyError(f"Unknown ancestry field: {name}")
        return self._fields[name]

    def resolve(self, variable: str) -> FieldDefinition:
        """
        Look a field up by semantic name (``pctIrish``) or display label
        (``Irish``, case-insensitive).
        """
        if variable in self._fields:
            return self._fields[variable]
        for field_def in self._fields.values():
            if field_def.label.lower() == variable.lower():
                return field_def
        raise KeyError(f"Unknown ancestry variable: {variable}")

    def resolve_all(self, variables: Iterable[str]) -> List[FieldDefinition]:
        return [self.resolve(v) for v in variables]

    def rename_map(self) -> Dict[str, str]:
        """Raw survey column -> semantic name."""
        return {f.raw_column: f.name for f in self._fields.values()}

    def validate_table(self, df: pd.DataFrame) -> None:
        """Raise DataLoadError if any mapped raw column is absent from ``df``."""
        absent = [f.raw_column for f in self._fields.values() if f.raw_column not in df.columns]
        if absent:
            logger.critical(f"❌ Census table is missing mapped columns: {absent}")
            raise DataLoadError(f"Census table is missing expected columns: {absent}")
        logger.debug(f"  ✓ All {len(self._fields)} mapped ancestry columns present")
