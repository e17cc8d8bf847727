"""Pytest configuration and shared fixtures for pipeline tests."""

import json
import sys
from pathlib import Path

import pytest

# Add tools directory to path so the heightmap package imports without install
TOOLS_DIR = Path(__file__).resolve().parent.parent.parent / "tools"
sys.path.insert(0, str(TOOLS_DIR))

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

from heightmap.config import Category, TerrainTag  # noqa: E402
from heightmap.features import Feature, FeatureCollection  # noqa: E402


def square_ring(min_lon, min_lat, max_lon, max_lat):
    """Closed GeoJSON ring for an axis-aligned rectangle."""
    return [
        [min_lon, min_lat],
        [max_lon, min_lat],
        [max_lon, max_lat],
        [min_lon, max_lat],
        [min_lon, min_lat],
    ]


def geojson_feature(rings, **properties):
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Polygon", "coordinates": rings},
    }


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return a temporary data directory for test inputs."""
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def write_collection(data_dir: Path):
    """Write a list of GeoJSON features as a FeatureCollection file."""

    def write(filename, features):
        path = data_dir / filename
        path.write_text(
            json.dumps({"type": "FeatureCollection", "features": features}),
            encoding="utf-8",
        )
        return path

    return write


@pytest.fixture
def rect_feature():
    """Build an in-memory rectangular Feature."""

    def build(min_lon, min_lat, max_lon, max_lat, name="rect", category=Category.DEFAULT,
              elevation=None, terrain=None, holes=()):
        outer = tuple(tuple(p) for p in square_ring(min_lon, min_lat, max_lon, max_lat)[:-1])
        rings = (outer,) + tuple(tuple(tuple(p) for p in hole) for hole in holes)
        return Feature(
            name=name,
            rings=rings,
            category=Category(category),
            elevation=elevation,
            terrain=TerrainTag(terrain) if terrain else None,
        )

    return build


@pytest.fixture
def collection():
    """Wrap features into a FeatureCollection."""

    def build(*features, name="test"):
        return FeatureCollection(name=name, features=tuple(features))

    return build


@pytest.fixture
def geo():
    """Namespace of GeoJSON helpers."""

    class Geo:
        square = staticmethod(square_ring)
        feature = staticmethod(geojson_feature)

    return Geo
