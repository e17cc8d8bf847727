"""Tests for GeoJSON dataset loading and validation."""

import pytest

from heightmap.config import Category, TerrainTag
from heightmap.errors import MalformedDataset, MalformedGeometry, MissingInputFile
from heightmap.features import load_collection, load_datasets, parse_feature


def test_load_valid_collection(write_collection, geo):
    path = write_collection("regions.geojson", [
        geo.feature([geo.square(0, 0, 1, 1)], name="Hearthside", category="residential"),
        geo.feature([geo.square(1, 0, 2, 1)], id="n-2", category="Mountain", elevation=42),
    ])
    regions = load_collection(path, "regions")

    assert len(regions) == 2
    first, second = regions
    assert first.name == "Hearthside"
    assert first.category is Category.RESIDENTIAL
    assert first.elevation is None
    assert second.name == "n-2"
    assert second.category is Category.MOUNTAIN
    assert second.elevation == 42.0
    # Closing position is dropped.
    assert len(first.outer) == 4
    assert first.extent == (0.0, 0.0, 1.0, 1.0)


def test_properties_are_read_only(write_collection, geo):
    path = write_collection("r.geojson", [geo.feature([geo.square(0, 0, 1, 1)], name="a")])
    feature = load_collection(path)[0]
    with pytest.raises(TypeError):
        feature.properties["name"] = "b"


def test_terrain_and_unknown_values(write_collection, geo):
    path = write_collection("lots.geojson", [
        geo.feature([geo.square(0, 0, 1, 1)], terrain="lava"),
        geo.feature([geo.square(0, 0, 1, 1)], terrain="plasma", category="castle"),
        geo.feature([geo.square(0, 0, 1, 1)], elevation="high"),
    ])
    lots = load_collection(path, "parcels")

    assert lots[0].terrain is TerrainTag.LAVA
    assert lots[1].terrain is None
    assert lots[1].category is Category.DEFAULT
    assert lots[2].elevation is None
    assert lots[2].name == "parcels#2"


def test_malformed_features_are_skipped(write_collection, geo):
    path = write_collection("mixed.geojson", [
        geo.feature([geo.square(0, 0, 1, 1)], name="good"),
        {"type": "Feature", "properties": {"name": "point"},
         "geometry": {"type": "Point", "coordinates": [0, 0]}},
        {"type": "Feature", "properties": {"name": "nogeom"}, "geometry": None},
        geo.feature([[[0, 0], [1, 1]]], name="short"),
        geo.feature([[[0, 0], ["a", 1], [1, 1], [0, 0]]], name="text"),
        "not a feature",
        geo.feature([geo.square(2, 2, 3, 3)], name="also good"),
    ])
    loaded = load_collection(path)

    assert [f.name for f in loaded] == ["good", "also good"]
    assert len(loaded.skipped) == 5
    assert any("point" in reason for reason in loaded.skipped)


def test_parse_feature_reports_reason(geo):
    with pytest.raises(MalformedGeometry) as excinfo:
        parse_feature(
            {"type": "Feature", "properties": {"name": "x"},
             "geometry": {"type": "MultiPolygon", "coordinates": []}},
            index=3,
        )
    assert excinfo.value.index == 3
    assert excinfo.value.name == "x"
    assert "MultiPolygon" in excinfo.value.reason


def test_polygon_with_hole(geo):
    feature = parse_feature(geo.feature([geo.square(0, 0, 10, 10), geo.square(4, 4, 6, 6)]), 0)
    assert len(feature.rings) == 2


def test_missing_file(data_dir):
    with pytest.raises(MissingInputFile):
        load_collection(data_dir / "absent.geojson")


def test_missing_parcels_aborts_before_loading(write_collection, data_dir, geo):
    regions = write_collection("regions.geojson", [geo.feature([geo.square(0, 0, 1, 1)])])
    with pytest.raises(MissingInputFile) as excinfo:
        load_datasets(regions, data_dir / "lots.geojson")
    assert excinfo.value.path == data_dir / "lots.geojson"


@pytest.mark.parametrize("content", ["{not json", '{"type": "Feature"}', "[1, 2, 3]"])
def test_malformed_dataset(data_dir, content):
    path = data_dir / "broken.geojson"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(MalformedDataset):
        load_collection(path)
