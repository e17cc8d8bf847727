"""Bounding box of all features, padded by a fraction of its span."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import structlog

from .errors import DegenerateBoundingBox
from .features import FeatureCollection

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    min_lon: float
    max_lon: float
    min_lat: float
    max_lat: float

    @property
    def lon_range(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def lat_range(self) -> float:
        return self.max_lat - self.min_lat

    def as_dict(self) -> dict[str, float]:
        return {
            "min_lon": self.min_lon,
            "max_lon": self.max_lon,
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
        }


def resolve_bounding_box(
    collections: Iterable[FeatureCollection], padding: float = 0.0
) -> BoundingBox:
    """Scan every ring of every feature once and pad the resulting box.

    Each side grows by ``padding`` times the span along that axis. Raises
    DegenerateBoundingBox when there are no features or the padded box has
    zero width or height.
    """
    min_lon = min_lat = float("inf")
    max_lon = max_lat = float("-inf")
    for collection in collections:
        for feature in collection:
            for ring in feature.rings:
                for lon, lat in ring:
                    min_lon = min(min_lon, lon)
                    max_lon = max(max_lon, lon)
                    min_lat = min(min_lat, lat)
                    max_lat = max(max_lat, lat)

    if min_lon > max_lon:
        raise DegenerateBoundingBox("no features to compute a bounding box from")

    pad_lon = (max_lon - min_lon) * padding
    pad_lat = (max_lat - min_lat) * padding
    bbox = BoundingBox(
        min_lon=min_lon - pad_lon,
        max_lon=max_lon + pad_lon,
        min_lat=min_lat - pad_lat,
        max_lat=max_lat + pad_lat,
    )
    if not (bbox.max_lon > bbox.min_lon and bbox.max_lat > bbox.min_lat):
        raise DegenerateBoundingBox(
            f"bounding box has zero extent: lon [{bbox.min_lon}, {bbox.max_lon}], "
            f"lat [{bbox.min_lat}, {bbox.max_lat}]"
        )

    logger.info("bounding box resolved", padding=padding, **bbox.as_dict())
    return bbox
