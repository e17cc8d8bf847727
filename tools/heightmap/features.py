"""Load regions and parcels from GeoJSON into immutable feature collections.

Only Polygon geometries are accepted. Ring 0 is the outer boundary, further
rings are holes. A feature with broken geometry is skipped with a warning;
a missing or unreadable dataset aborts the run.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

import structlog

from .config import Category, TerrainTag
from .errors import MalformedDataset, MalformedGeometry, MissingInputFile

logger = structlog.get_logger(__name__)

Ring = tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class Feature:
    """One named polygon with its terrain attributes."""

    name: str
    rings: tuple[Ring, ...]
    category: Category = Category.DEFAULT
    elevation: Optional[float] = None
    terrain: Optional[TerrainTag] = None
    properties: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False
    )

    @property
    def outer(self) -> Ring:
        return self.rings[0]

    @cached_property
    def extent(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) of the outer ring."""
        lons = [lon for lon, _ in self.outer]
        lats = [lat for _, lat in self.outer]
        return min(lons), min(lats), max(lons), max(lats)


@dataclass(frozen=True)
class FeatureCollection:
    """Priority-ordered features; the first containing feature wins."""

    name: str
    features: tuple[Feature, ...] = ()
    skipped: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def __getitem__(self, index: int) -> Feature:
        return self.features[index]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _parse_position(raw: Any) -> tuple[float, float]:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise ValueError(f"position must be [lon, lat], got {raw!r}")
    lon, lat = raw[0], raw[1]
    if isinstance(lon, bool) or isinstance(lat, bool):
        raise ValueError(f"position must be numeric, got {raw!r}")
    try:
        lon, lat = float(lon), float(lat)
    except (TypeError, ValueError):
        raise ValueError(f"position must be numeric, got {raw!r}") from None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError(f"position must be finite, got {raw!r}")
    return lon, lat


def _parse_rings(geometry: Any) -> tuple[Ring, ...]:
    if not isinstance(geometry, Mapping):
        raise ValueError("missing geometry")
    kind = geometry.get("type")
    if kind != "Polygon":
        raise ValueError(f"unsupported geometry type {kind!r}")
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list) or not coordinates:
        raise ValueError("polygon has no rings")

    rings = []
    for k, raw_ring in enumerate(coordinates):
        if not isinstance(raw_ring, list):
            raise ValueError(f"ring {k} is not a list of positions")
        ring = tuple(_parse_position(p) for p in raw_ring)
        # Drop the closing position so every edge is counted once.
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        if len(ring) < 3:
            raise ValueError(f"ring {k} has fewer than 3 distinct positions")
        rings.append(ring)
    return tuple(rings)


def _parse_elevation(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    if not isinstance(value, bool):
        try:
            elevation = float(value)
        except (TypeError, ValueError):
            elevation = math.nan
        if math.isfinite(elevation):
            return elevation
    logger.warning("invalid elevation override ignored", feature=name, elevation=value)
    return None


def parse_feature(raw: Any, index: int, collection: str = "features") -> Feature:
    """Build a Feature from one GeoJSON feature object.

    Raises MalformedGeometry when the geometry is not a usable polygon.
    """
    if not isinstance(raw, Mapping):
        raise MalformedGeometry("feature is not an object", index=index)
    properties = raw.get("properties") or {}
    if not isinstance(properties, Mapping):
        properties = {}
    name = str(properties.get("name") or properties.get("id") or f"{collection}#{index}")

    try:
        rings = _parse_rings(raw.get("geometry"))
    except ValueError as exc:
        raise MalformedGeometry(str(exc), index=index, name=name) from exc

    return Feature(
        name=name,
        rings=rings,
        category=Category.parse(properties.get("category")),
        elevation=_parse_elevation(properties.get("elevation"), name),
        terrain=TerrainTag.parse(properties.get("terrain")),
        properties=MappingProxyType(dict(properties)),
    )


def load_collection(path: Path, name: Optional[str] = None) -> FeatureCollection:
    """Read a GeoJSON FeatureCollection file, skipping malformed features."""
    path = Path(path)
    name = name or path.stem
    if not path.is_file():
        raise MissingInputFile(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedDataset(f"cannot read {name} dataset {path}: {exc}") from exc
    if not isinstance(data, Mapping) or not isinstance(data.get("features"), list):
        raise MalformedDataset(f"{name} dataset {path} is not a GeoJSON FeatureCollection")

    features = []
    skipped = []
    for index, raw in enumerate(data["features"]):
        try:
            features.append(parse_feature(raw, index, name))
        except MalformedGeometry as exc:
            logger.warning("skipping malformed feature", dataset=name, index=index,
                           feature=exc.name, reason=exc.reason)
            skipped.append(str(exc))

    logger.info("dataset loaded", dataset=name, features=len(features), skipped=len(skipped))
    return FeatureCollection(name=name, features=tuple(features), skipped=tuple(skipped))


def load_datasets(
    regions_path: Path, parcels_path: Path
) -> tuple[FeatureCollection, FeatureCollection]:
    """Load both collections; any missing file aborts before parsing starts."""
    for path in (regions_path, parcels_path):
        if not Path(path).is_file():
            raise MissingInputFile(path)
    return load_collection(regions_path, "regions"), load_collection(parcels_path, "parcels")
