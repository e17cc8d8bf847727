"""Mapping between raster pixels and geographic coordinates.

Pixel-center convention: pixel (i, j) samples the center of its cell, so
i = 0 is half a pixel east of min_lon and j = 0 is half a pixel south of
max_lat. Row 0 is north. The mapping is affine and exactly invertible.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .bbox import BoundingBox


@dataclass(frozen=True)
class RasterProjector:
    bbox: BoundingBox
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"raster size must be positive, got {self.width}x{self.height}")

    @property
    def lon_step(self) -> float:
        return self.bbox.lon_range / self.width

    @property
    def lat_step(self) -> float:
        return self.bbox.lat_range / self.height

    # -- pixel -> geographic -------------------------------------------------

    def x_to_lon(self, x):
        """Convert pixel column (scalar or array) to longitude."""
        return self.bbox.min_lon + (x + 0.5) * self.lon_step

    def y_to_lat(self, y):
        """Convert pixel row (scalar or array) to latitude (row 0 = north)."""
        return self.bbox.max_lat - (y + 0.5) * self.lat_step

    def pixel_to_lonlat(self, i, j) -> tuple[float, float]:
        return self.x_to_lon(i), self.y_to_lat(j)

    # -- geographic -> pixel -------------------------------------------------

    def lon_to_x(self, lon):
        """Convert longitude to a fractional pixel column."""
        return (lon - self.bbox.min_lon) / self.lon_step - 0.5

    def lat_to_y(self, lat):
        """Convert latitude to a fractional pixel row."""
        return (self.bbox.max_lat - lat) / self.lat_step - 0.5

    def lonlat_to_pixel(self, lon, lat) -> tuple[float, float]:
        return self.lon_to_x(lon), self.lat_to_y(lat)

    # -- blocks --------------------------------------------------------------

    def pixel_grid(self, row_start: int, row_stop: int) -> tuple[np.ndarray, np.ndarray]:
        """Column and row indices (float64) for rows [row_start, row_stop)."""
        ys, xs = np.mgrid[row_start:row_stop, 0 : self.width]
        return xs.astype(np.float64), ys.astype(np.float64)

    def grid(self, row_start: int, row_stop: int) -> tuple[np.ndarray, np.ndarray]:
        """Longitudes and latitudes of every pixel center in a block of rows."""
        xs, ys = self.pixel_grid(row_start, row_stop)
        return self.x_to_lon(xs), self.y_to_lat(ys)
