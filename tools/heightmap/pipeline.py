"""End-to-end heightmap generation.

load datasets -> bounding box -> projector -> compositor -> normalize -> PNG

generate_heightmap() is the pure in-memory transform; run() adds the file
input/output around it and writes a JSON metadata sidecar next to the PNG
describing how the levels were produced (policy, terrain bands, bbox).
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import numpy as np
import structlog

from .bbox import BoundingBox, resolve_bounding_box
from .compositor import Compositor, ProgressCallback
from .config import GenerationConfig, NormalizationPolicy, Settings
from .encoding import (
    level_for,
    normalize_dynamic,
    normalize_fixed,
    png_writer,
    to_raster,
    write_files_atomically,
)
from .features import FeatureCollection, load_datasets
from .projection import RasterProjector

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    raster: np.ndarray
    levels: np.ndarray
    bbox: BoundingBox
    elevation_min: float
    elevation_max: float
    regions: FeatureCollection
    parcels: FeatureCollection
    config: GenerationConfig


def generate_heightmap(
    regions: FeatureCollection,
    parcels: FeatureCollection,
    config: GenerationConfig,
    progress: Optional[ProgressCallback] = None,
) -> GenerationResult:
    """Rasterize both collections into an RGBA heightmap held in memory."""
    bbox = resolve_bounding_box((regions, parcels), config.padding)
    projector = RasterProjector(bbox, config.width, config.height)
    compositor = Compositor(regions, parcels, projector, config)

    started = time.perf_counter()
    if config.normalization is NormalizationPolicy.DYNAMIC:
        field = compositor.compose(config.workers, config.block_rows, progress)
        elevation_min, elevation_max = float(field.min()), float(field.max())
        levels = normalize_dynamic(field)
    else:
        # Blocks are encoded as they arrive; the float field is never assembled.
        levels = np.empty((config.height, config.width), dtype=np.uint8)
        elevation_min, elevation_max = float("inf"), float("-inf")
        for start, stop, block in compositor.iter_blocks(
            config.workers, config.block_rows, progress
        ):
            levels[start:stop] = normalize_fixed(block, config.reference_max)
            elevation_min = min(elevation_min, float(block.min()))
            elevation_max = max(elevation_max, float(block.max()))

    logger.info(
        "elevation field composited",
        width=config.width,
        height=config.height,
        policy=config.normalization.value,
        elevation_min=round(elevation_min, 3),
        elevation_max=round(elevation_max, 3),
        level_min=int(levels.min()),
        level_max=int(levels.max()),
        seconds=round(time.perf_counter() - started, 3),
    )
    levels.setflags(write=False)
    return GenerationResult(
        raster=to_raster(levels),
        levels=levels,
        bbox=bbox,
        elevation_min=elevation_min,
        elevation_max=elevation_max,
        regions=regions,
        parcels=parcels,
        config=config,
    )


def terrain_bands(config: GenerationConfig) -> dict[str, dict[str, Any]]:
    """Reserved band of each banded terrain tag, in elevation and output levels."""
    bands = {}
    for tag, modifier in sorted(config.terrain.items(), key=lambda item: item[0].value):
        if modifier.band is None:
            continue
        floor, ceiling = modifier.band
        entry: dict[str, Any] = {"elevation": [floor, ceiling]}
        if config.normalization is NormalizationPolicy.FIXED:
            entry["levels"] = [
                level_for(floor, config.reference_max),
                level_for(ceiling, config.reference_max),
            ]
        bands[tag.value] = entry
    return bands


def build_metadata(result: GenerationResult) -> dict[str, Any]:
    config = result.config
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "width": config.width,
        "height": config.height,
        "format": "png-rgba-gray",
        "normalization": config.normalization.value,
        "reference_max": (
            config.reference_max
            if config.normalization is NormalizationPolicy.FIXED
            else None
        ),
        "elevation_min": result.elevation_min,
        "elevation_max": result.elevation_max,
        "level_min": int(result.levels.min()),
        "level_max": int(result.levels.max()),
        "seed": config.noise.seed,
        "bbox": result.bbox.as_dict(),
        "terrain_bands": terrain_bands(config),
        "features": {
            "regions": len(result.regions),
            "parcels": len(result.parcels),
            "skipped": len(result.regions.skipped) + len(result.parcels.skipped),
        },
    }


def metadata_path(output_path: Path) -> Path:
    return Path(output_path).with_suffix(".json")


def run(
    settings: Settings,
    config: GenerationConfig,
    progress: Optional[ProgressCallback] = None,
) -> GenerationResult:
    """Load the datasets named by settings, generate, and write PNG + sidecar.

    The PNG and its sidecar are staged together, so a failure leaves both
    previous files in place.
    """
    regions, parcels = load_datasets(settings.regions_path, settings.parcels_path)
    result = generate_heightmap(regions, parcels, config, progress)

    output_path = Path(settings.output_path)
    meta_path = metadata_path(output_path)
    payload = json.dumps(build_metadata(result), indent=2).encode("utf-8")
    write_files_atomically({
        output_path: png_writer(result.raster),
        meta_path: lambda fh: fh.write(payload),
    })

    file_size = output_path.stat().st_size
    logger.info("heightmap written", path=str(output_path), size_kb=round(file_size / 1024, 1))
    logger.info("metadata written", path=str(meta_path))
    return result
