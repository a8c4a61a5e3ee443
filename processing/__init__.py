"""
Processing package for the ancestry maps pipeline

This package holds the data side of the pipeline: loading and relocating
the state boundaries, and joining the census ancestry table onto them.
"""

__version__ = "0.1.0"

from .ancestry_fields import AncestryFieldRegistry, FieldDefinition
from .data_joiner import JoinResult, fortify, join, read_ancestry_table
from .exceptions import (
    AncestryMapError,
    DataLoadError,
    JoinKeyMismatchError,
    ProjectionError,
    RenderError,
)
from .map_loader import Relocation, load_and_relocate, relocate_states

__all__ = [
    "AncestryFieldRegistry",
    "FieldDefinition",
    "JoinResult",
    "fortify",
    "join",
    "read_ancestry_table",
    "AncestryMapError",
    "DataLoadError",
    "JoinKeyMismatchError",
    "ProjectionError",
    "RenderError",
    "Relocation",
    "load_and_relocate",
    "relocate_states",
]
