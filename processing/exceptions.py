"""
Error types for the ancestry maps pipeline.

Load and projection failures abort the whole run, join mismatches are
tolerated unless strict joining is requested, and render failures are
isolated per output image.
"""


class AncestryMapError(Exception):
    """Base class for all pipeline errors."""


class DataLoadError(AncestryMapError):
    """Boundary dataset or census table is missing, unreadable or malformed."""


class ProjectionError(AncestryMapError):
    """Geometry could not be reprojected or relocated."""


class JoinKeyMismatchError(AncestryMapError):
    """One or more map features have no matching row in the census table."""

    def __init__(self, unmatched):
        self.unmatched = sorted(unmatched)
        preview = ", ".join(self.unmatched[:5])
        more = f" (+{len(self.unmatched) - 5} more)" if len(self.unmatched) > 5 else ""
        super().__init__(f"{len(self.unmatched)} features have no census row: {preview}{more}")


class RenderError(AncestryMapError):
    """A map image could not be produced."""
