"""Error taxonomy for heightmap generation.

Fatal errors abort the run with a non-zero exit status. MalformedGeometry is
the only recoverable one: the loader skips the offending feature and moves on.
"""

from __future__ import annotations


class HeightmapError(Exception):
    """Base class for every error raised by the generator."""


class MissingInputFile(HeightmapError):
    """A required dataset file does not exist."""

    def __init__(self, path) -> None:
        self.path = path
        super().__init__(f"required dataset not found: {path}")


class MalformedDataset(HeightmapError):
    """A dataset file is not a readable GeoJSON FeatureCollection."""


class MalformedGeometry(HeightmapError):
    """A single feature has missing, non-polygon or invalid geometry."""

    def __init__(self, reason: str, index: int | None = None, name: str | None = None) -> None:
        self.reason = reason
        self.index = index
        self.name = name
        where = f"feature {index}" if index is not None else "feature"
        if name:
            where += f" ({name})"
        super().__init__(f"{where}: {reason}")


class DegenerateBoundingBox(HeightmapError):
    """The padded bounding box has zero width or height."""


class NonFiniteElevation(HeightmapError):
    """An elevation sample came out as NaN or infinity."""


class EncodingFailure(HeightmapError):
    """The output raster could not be written."""
