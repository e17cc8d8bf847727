"""Tests for the generation config tables and runtime settings."""

import json
import math
import os

import pytest
from pydantic import ValidationError

from heightmap.config import (
    Category,
    GenerationConfig,
    NormalizationPolicy,
    ReloadableConfig,
    Settings,
    TerrainTag,
    load_generation_config,
)
from heightmap.errors import MissingInputFile


def test_defaults():
    config = GenerationConfig()
    assert (config.width, config.height) == (512, 512)
    assert config.normalization is NormalizationPolicy.FIXED
    assert config.category_elevation(Category.MOUNTAIN) == 50.0
    assert config.terrain[TerrainTag.LAVA].band == (0.0, 15.0)


def test_partial_category_table_is_filled():
    config = GenerationConfig.model_validate({"category_elevations": {"mountain": 80}})
    assert config.category_elevation(Category.MOUNTAIN) == 80.0
    assert config.category_elevation(Category.RESIDENTIAL) == 23.0
    assert config.category_elevation(Category.DEFAULT) == 21.0


def test_overlapping_bands_rejected():
    with pytest.raises(ValidationError):
        GenerationConfig.model_validate({
            "terrain": {
                "lava": {"multiplier": 0.3, "band": [0, 50]},
                "ice": {"multiplier": 1.5, "band": [40, 100]},
            }
        })


def test_inverted_band_rejected():
    with pytest.raises(ValidationError):
        GenerationConfig.model_validate({"terrain": {"lava": {"band": [10, 5]}}})


def test_reserved_ranges_default():
    margin = 5.0 + 2 * 100.0 / 255
    ranges = GenerationConfig().reserved_ranges()
    assert ranges[0][0] == -math.inf
    assert ranges[0][1] == pytest.approx(15.0 + margin)
    assert ranges[1][0] == pytest.approx(80.0 - margin)
    assert ranges[1][1] == math.inf


def test_reserved_ranges_are_finite_under_dynamic_policy():
    config = GenerationConfig.model_validate({"normalization": "dynamic", "noise": {"amplitude": 0}})
    margin = 2 * 100.0 / 255
    assert config.reserved_ranges() == [
        pytest.approx((-margin, 15.0 + margin)),
        pytest.approx((80.0 - margin, 100.0 + margin)),
    ]


def test_bands_leaving_no_room_rejected():
    with pytest.raises(ValidationError, match="no elevation for untagged terrain"):
        GenerationConfig.model_validate({
            "terrain": {
                "lava": {"multiplier": 0.3, "band": [0, 45]},
                "ice": {"multiplier": 1.5, "band": [50, 100]},
            }
        })


@pytest.mark.parametrize("data", [
    {"unknown_option": 1},
    {"width": 0},
    {"noise": {"octaves": 0}},
    {"category_elevations": {"castle": 5}},
    {"normalization": "logarithmic"},
])
def test_invalid_config(data):
    with pytest.raises(ValidationError):
        GenerationConfig.model_validate(data)


def test_load_from_file(tmp_path):
    path = tmp_path / "heightmap.json"
    path.write_text(json.dumps({"noise": {"seed": 7}, "normalization": "dynamic"}))
    config = load_generation_config(path)
    assert config.noise.seed == 7
    assert config.normalization is NormalizationPolicy.DYNAMIC


def test_project_config_file_is_valid(project_root):
    config = load_generation_config(project_root / "config" / "heightmap.json")
    assert config == GenerationConfig(workers=4)


def test_load_missing_file(tmp_path):
    with pytest.raises(MissingInputFile):
        load_generation_config(tmp_path / "nope.json")


def test_reloadable_config_picks_up_changes(tmp_path):
    path = tmp_path / "heightmap.json"
    path.write_text(json.dumps({"noise": {"seed": 1}}))
    reloadable = ReloadableConfig(path)

    first = reloadable.current()
    assert first.noise.seed == 1
    assert reloadable.current() is first
    assert not reloadable.changed()

    path.write_text(json.dumps({"noise": {"seed": 2}}))
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    assert reloadable.changed()
    assert reloadable.current().noise.seed == 2


def test_reloadable_without_path_uses_defaults():
    assert ReloadableConfig(None).current() == GenerationConfig()


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("HEIGHTMAP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HEIGHTMAP_PARCELS_FILE", "parcels.geojson")
    settings = Settings()
    assert settings.regions_path == tmp_path / "neighborhoods.geojson"
    assert settings.parcels_path == tmp_path / "parcels.geojson"


def test_settings_reject_unknown_log_format():
    with pytest.raises(ValidationError):
        Settings(log_format="xml")
