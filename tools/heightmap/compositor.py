"""Combine regions, parcels and noise into one elevation per pixel.

Per pixel:
  1. base = first containing region's override, else its category elevation
     (0 outside every region);
  2. a containing parcel adds its override, else ``parcel_increment``; a
     terrain tag then multiplies the running elevation and, for banded tags,
     clamps it into the band shrunk by the noise amplitude;
  3. every pixel not covered by a banded parcel, including those outside all
     regions, is moved to the nearest edge of any reserved range it falls in
     (see GenerationConfig.reserved_ranges);
  4. noise adds ``amplitude * octave_noise`` at the pixel indices.

Because of the shrunk clamp a banded pixel stays inside its band after the
noise is added, and because of step 3 no other pixel reaches a band's levels.
Rows are computed in independent blocks; the result does not depend on how
many workers run them.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterator, Optional

import numpy as np
import structlog

from .config import GenerationConfig
from .containment import classify_grid
from .errors import NonFiniteElevation
from .features import FeatureCollection
from .noise import octave_noise
from .projection import RasterProjector

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


def effective_band(band: tuple[float, float], amplitude: float) -> tuple[float, float]:
    """Band to clamp into before noise, so that band +/- amplitude stays inside."""
    floor, ceiling = band
    low, high = floor + amplitude, ceiling - amplitude
    if low > high:
        mid = (floor + ceiling) / 2.0
        return mid, mid
    return low, high


def keep_out_of_ranges(values: np.ndarray, ranges: list[tuple[float, float]]) -> np.ndarray:
    """Move values lying inside any open (low, high) range to its nearest edge.

    ``ranges`` must be sorted and disjoint; ties go to the lower edge.
    """
    out = np.array(values, dtype=np.float64)
    for low, high in ranges:
        inside = (out > low) & (out < high)
        if not inside.any():
            continue
        hits = out[inside]
        out[inside] = np.where(hits - low <= high - hits, low, high)
    return out


class Compositor:
    """Builds the elevation field for one generation run."""

    def __init__(
        self,
        regions: FeatureCollection,
        parcels: FeatureCollection,
        projector: RasterProjector,
        config: GenerationConfig,
    ) -> None:
        self.regions = regions
        self.parcels = parcels
        self.projector = projector
        self.config = config

        # Per-feature lookup vectors, indexed by classify_grid results.
        self._region_base = np.array(
            [
                f.elevation if f.elevation is not None else config.category_elevation(f.category)
                for f in regions
            ],
            dtype=np.float64,
        )
        self._parcel_add = np.array(
            [f.elevation if f.elevation is not None else config.parcel_increment for f in parcels],
            dtype=np.float64,
        )

        amplitude = config.noise.amplitude
        multipliers = []
        band_low = []
        band_high = []
        banded = []
        for parcel in parcels:
            modifier = config.terrain.get(parcel.terrain) if parcel.terrain else None
            multipliers.append(modifier.multiplier if modifier else 1.0)
            if modifier is not None and modifier.band is not None:
                low, high = effective_band(modifier.band, amplitude)
                banded.append(True)
            else:
                low, high = -np.inf, np.inf
                banded.append(False)
            band_low.append(low)
            band_high.append(high)
        self._parcel_mult = np.array(multipliers, dtype=np.float64)
        self._parcel_low = np.array(band_low, dtype=np.float64)
        self._parcel_high = np.array(band_high, dtype=np.float64)
        self._parcel_banded = np.array(banded, dtype=bool)
        self._reserved = config.reserved_ranges()

    @property
    def width(self) -> int:
        return self.projector.width

    @property
    def height(self) -> int:
        return self.projector.height

    def compute_rows(self, row_start: int, row_stop: int) -> np.ndarray:
        """Elevations for rows [row_start, row_stop) as a (rows, width) array."""
        lons, lats = self.projector.grid(row_start, row_stop)
        elevation = np.zeros(lons.shape, dtype=np.float64)
        banded = np.zeros(lons.shape, dtype=bool)

        if len(self.regions):
            region_idx = classify_grid(lons, lats, self.regions)
            hit = region_idx >= 0
            elevation[hit] = self._region_base[region_idx[hit]]

        if len(self.parcels):
            parcel_idx = classify_grid(lons, lats, self.parcels)
            hit = parcel_idx >= 0
            idx = parcel_idx[hit]
            tagged = elevation[hit] + self._parcel_add[idx]
            tagged = tagged * self._parcel_mult[idx]
            elevation[hit] = np.clip(tagged, self._parcel_low[idx], self._parcel_high[idx])
            banded[hit] = self._parcel_banded[idx]

        if self._reserved:
            free = ~banded
            elevation[free] = keep_out_of_ranges(elevation[free], self._reserved)

        noise = self.config.noise
        if noise.amplitude:
            xs, ys = self.projector.pixel_grid(row_start, row_stop)
            elevation += noise.amplitude * octave_noise(
                noise.seed,
                xs,
                ys,
                octaves=noise.octaves,
                persistence=noise.persistence,
                frequency=noise.frequency,
            )

        if not np.isfinite(elevation).all():
            raise NonFiniteElevation(f"non-finite elevation in rows {row_start}-{row_stop}")
        return elevation

    def _blocks(self, block_rows: int) -> list[tuple[int, int]]:
        return [
            (start, min(start + block_rows, self.height))
            for start in range(0, self.height, block_rows)
        ]

    def iter_blocks(
        self,
        workers: int = 1,
        block_rows: int = 64,
        progress: Optional[ProgressCallback] = None,
    ) -> Iterator[tuple[int, int, np.ndarray]]:
        """Yield (row_start, row_stop, elevations) as blocks complete.

        With more than one worker the blocks arrive in completion order.
        """
        blocks = self._blocks(block_rows)
        done = 0

        def report(start: int, stop: int) -> None:
            nonlocal done
            done += stop - start
            logger.debug("rows composited", rows_done=done, rows_total=self.height)
            if progress is not None:
                progress(done, self.height)

        if workers <= 1:
            for start, stop in blocks:
                block = self.compute_rows(start, stop)
                report(start, stop)
                yield start, stop, block
            return

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.compute_rows, start, stop): (start, stop)
                for start, stop in blocks
            }
            for future in as_completed(futures):
                start, stop = futures[future]
                block = future.result()
                report(start, stop)
                yield start, stop, block

    def compose(
        self,
        workers: int = 1,
        block_rows: int = 64,
        progress: Optional[ProgressCallback] = None,
    ) -> np.ndarray:
        """Full (height, width) elevation field."""
        field = np.empty((self.height, self.width), dtype=np.float64)
        for start, stop, block in self.iter_blocks(workers, block_rows, progress):
            field[start:stop] = block
        return field
