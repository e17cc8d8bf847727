"""Terrain heightmap generation from region and parcel polygons."""

from .bbox import BoundingBox, resolve_bounding_box
from .compositor import Compositor
from .config import (
    Category,
    GenerationConfig,
    NoiseConfig,
    NormalizationPolicy,
    ReloadableConfig,
    Settings,
    TerrainModifier,
    TerrainTag,
    load_generation_config,
)
from .containment import classify, classify_grid, point_in_rings
from .errors import (
    DegenerateBoundingBox,
    EncodingFailure,
    HeightmapError,
    MalformedDataset,
    MalformedGeometry,
    MissingInputFile,
    NonFiniteElevation,
)
from .features import Feature, FeatureCollection, load_collection, load_datasets
from .noise import octave_noise, value_noise
from .pipeline import GenerationResult, generate_heightmap, run
from .projection import RasterProjector

__all__ = [
    "BoundingBox",
    "Category",
    "Compositor",
    "DegenerateBoundingBox",
    "EncodingFailure",
    "Feature",
    "FeatureCollection",
    "GenerationConfig",
    "GenerationResult",
    "HeightmapError",
    "MalformedDataset",
    "MalformedGeometry",
    "MissingInputFile",
    "NoiseConfig",
    "NonFiniteElevation",
    "NormalizationPolicy",
    "RasterProjector",
    "ReloadableConfig",
    "Settings",
    "TerrainModifier",
    "TerrainTag",
    "classify",
    "classify_grid",
    "generate_heightmap",
    "load_collection",
    "load_datasets",
    "load_generation_config",
    "octave_noise",
    "point_in_rings",
    "resolve_bounding_box",
    "run",
    "value_noise",
]
