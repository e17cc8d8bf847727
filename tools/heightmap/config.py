"""Configuration for heightmap generation.

Two layers:

  - GenerationConfig: the tables and knobs that shape the terrain (category
    elevations, terrain modifiers, noise, normalization). Loaded from an
    optional JSON file; ReloadableConfig re-reads it when it changes.
  - Settings: where things live on disk and how to log, pulled from
    HEIGHTMAP_* environment variables or a .env file.

Elevation units are arbitrary "meters". With the default fixed normalization
an elevation of ``reference_max`` encodes to 255.
"""

from __future__ import annotations

import json
import math
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import MissingInputFile

logger = structlog.get_logger(__name__)

MAX_LEVEL = 255

# Output levels kept free between a reserved band and untagged terrain.
BAND_CLEARANCE_LEVELS = 2


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Category(str, Enum):
    """Zoning category of a region."""

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    PARK = "park"
    BEACH = "beach"
    MOUNTAIN = "mountain"
    VOLCANIC = "volcanic"
    ARCTIC = "arctic"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value) -> "Category":
        """Map a free-form property value to a category, ``default`` if unknown."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        if value is not None:
            logger.debug("unknown category, using default", category=value)
        return cls.DEFAULT


class TerrainTag(str, Enum):
    """Terrain type carried by a parcel."""

    ROCK = "rock"
    LAVA = "lava"
    ICE = "ice"
    SAND = "sand"

    @classmethod
    def parse(cls, value) -> Optional["TerrainTag"]:
        """Map a property value to a tag; None when absent or unrecognized."""
        if value is None or value == "":
            return None
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        logger.warning("unknown terrain tag ignored", terrain=value)
        return None


class NormalizationPolicy(str, Enum):
    DYNAMIC = "dynamic"
    FIXED = "fixed"


# ---------------------------------------------------------------------------
# Generation config
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY_ELEVATIONS: dict[Category, float] = {
    Category.RESIDENTIAL: 23.0,
    Category.COMMERCIAL: 25.0,
    Category.PARK: 22.0,
    Category.BEACH: 22.0,
    Category.MOUNTAIN: 50.0,
    Category.VOLCANIC: 50.0,
    Category.ARCTIC: 60.0,
    Category.DEFAULT: 21.0,
}


class TerrainModifier(BaseModel):
    """How a parcel terrain tag bends the running elevation.

    ``band`` marks a categorical zone: after the multiplier the elevation is
    clamped into it so the renderer can detect the zone by threshold alone.
    """

    multiplier: float = Field(default=1.0, ge=0.0, description="Elevation multiplier")
    band: Optional[tuple[float, float]] = Field(
        default=None, description="Reserved (floor, ceiling) elevation band"
    )

    @field_validator("band")
    @classmethod
    def _check_band(cls, band):
        if band is not None and not band[0] < band[1]:
            raise ValueError(f"band floor must be below ceiling, got {band}")
        return band


DEFAULT_TERRAIN_MODIFIERS: dict[TerrainTag, TerrainModifier] = {
    TerrainTag.LAVA: TerrainModifier(multiplier=0.3, band=(0.0, 15.0)),
    TerrainTag.ICE: TerrainModifier(multiplier=1.5, band=(80.0, 100.0)),
    TerrainTag.ROCK: TerrainModifier(multiplier=1.1),
    TerrainTag.SAND: TerrainModifier(multiplier=0.8),
}


class NoiseConfig(BaseModel):
    """Octave value noise parameters."""

    seed: int = Field(default=12345, description="Noise seed")
    frequency: float = Field(default=0.05, gt=0.0, description="Base frequency per pixel")
    amplitude: float = Field(default=5.0, ge=0.0, description="Elevation added at full noise")
    octaves: int = Field(default=4, ge=1, description="Number of octaves")
    persistence: float = Field(default=0.5, gt=0.0, description="Amplitude decay per octave")


class GenerationConfig(BaseModel):
    """Everything that decides what the heightmap looks like."""

    width: int = Field(default=512, ge=1, description="Output width in pixels")
    height: int = Field(default=512, ge=1, description="Output height in pixels")
    padding: float = Field(default=0.05, ge=0.0, description="Bounding-box padding fraction per side")
    noise: NoiseConfig = Field(default_factory=NoiseConfig)
    category_elevations: dict[Category, float] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_ELEVATIONS)
    )
    parcel_increment: float = Field(default=2.0, description="Added by a parcel without override")
    terrain: dict[TerrainTag, TerrainModifier] = Field(
        default_factory=lambda: dict(DEFAULT_TERRAIN_MODIFIERS)
    )
    normalization: NormalizationPolicy = NormalizationPolicy.FIXED
    reference_max: float = Field(default=100.0, gt=0.0, description="Elevation encoded as 255 (fixed)")
    workers: int = Field(default=1, ge=1, description="Worker threads for the elevation pass")
    block_rows: int = Field(default=64, ge=1, description="Rows per work block")

    model_config = {"extra": "forbid"}

    @field_validator("category_elevations")
    @classmethod
    def _fill_categories(cls, table):
        return {**DEFAULT_CATEGORY_ELEVATIONS, **table}

    @model_validator(mode="after")
    def _check_bands_disjoint(self):
        banded = sorted(
            (modifier.band, tag.value)
            for tag, modifier in self.terrain.items()
            if modifier.band is not None
        )
        for (low, low_tag), (high, high_tag) in zip(banded, banded[1:]):
            if high[0] < low[1]:
                raise ValueError(
                    f"terrain bands overlap: {low_tag} {low} and {high_tag} {high}"
                )
        ranges = self.reserved_ranges()
        if ranges and ranges[0] == (-math.inf, math.inf):
            raise ValueError("terrain bands leave no elevation for untagged terrain")
        return self

    def reserved_ranges(self) -> list[tuple[float, float]]:
        """Open elevation ranges untagged terrain must stay out of before noise.

        Each band is widened by the noise amplitude plus BAND_CLEARANCE_LEVELS
        output levels. Under the fixed policy anything below 0 or above
        ``reference_max`` encodes to the extreme levels, so a band touching
        either end reaches to infinity. Overlapping ranges are merged.
        """
        margin = self.noise.amplitude + BAND_CLEARANCE_LEVELS * self.reference_max / MAX_LEVEL
        fixed = self.normalization is NormalizationPolicy.FIXED
        spans = []
        for modifier in self.terrain.values():
            if modifier.band is None:
                continue
            floor, ceiling = modifier.band
            low = -math.inf if fixed and floor <= 0.0 else floor - margin
            high = math.inf if fixed and ceiling >= self.reference_max else ceiling + margin
            spans.append((low, high))

        merged: list[tuple[float, float]] = []
        for low, high in sorted(spans):
            if merged and low <= merged[-1][1]:
                merged[-1] = (merged[-1][0], max(merged[-1][1], high))
            else:
                merged.append((low, high))
        return merged

    def category_elevation(self, category: Category) -> float:
        return self.category_elevations.get(
            category, self.category_elevations[Category.DEFAULT]
        )


def load_generation_config(path: Optional[Path]) -> GenerationConfig:
    """Load a GenerationConfig from JSON, or the defaults when path is None."""
    if path is None:
        return GenerationConfig()
    path = Path(path)
    if not path.is_file():
        raise MissingInputFile(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    config = GenerationConfig.model_validate(data)
    logger.info("generation config loaded", path=str(path))
    return config


class ReloadableConfig:
    """GenerationConfig backed by a JSON file, re-read whenever it changes."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = Path(path) if path is not None else None
        self._mtime: Optional[float] = None
        self._config: Optional[GenerationConfig] = None

    def _stat(self) -> Optional[float]:
        if self.path is None:
            return None
        if not self.path.is_file():
            raise MissingInputFile(self.path)
        return self.path.stat().st_mtime

    def changed(self) -> bool:
        return self._config is None or self._stat() != self._mtime

    def current(self) -> GenerationConfig:
        mtime = self._stat()
        if self._config is None or mtime != self._mtime:
            self._config = load_generation_config(self.path)
            self._mtime = mtime
        return self._config


# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Paths and logging, pulled from HEIGHTMAP_* environment variables."""

    data_dir: Path = Field(default=Path("data"), description="Directory holding the datasets")
    regions_file: str = Field(default="neighborhoods.geojson", description="Regions dataset")
    parcels_file: str = Field(default="lots.geojson", description="Parcels dataset")
    output_path: Path = Field(
        default=Path("frontend/3d/assets/heightmap.png"), description="Output PNG"
    )
    config_path: Optional[Path] = Field(default=None, description="GenerationConfig JSON")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["plain", "json"] = Field(default="plain", description="Logging format")

    model_config = SettingsConfigDict(
        env_prefix="HEIGHTMAP_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def regions_path(self) -> Path:
        return self.data_dir / self.regions_file

    @property
    def parcels_path(self) -> Path:
        return self.data_dir / self.parcels_file
