"""Point-in-polygon classification against priority-ordered collections.

Even-odd ray casting toward +x over every ring of a polygon, so holes
subtract from the outer ring. An edge counts as a crossing only when its
endpoints straddle the ray's latitude; edges with equal y endpoints never
straddle and are skipped, which keeps vertex and horizontal-edge queries
free of division by zero. Self-intersecting rings get the plain even-odd
answer.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .features import Feature, FeatureCollection

# ---------------------------------------------------------------------------
# Scalar queries
# ---------------------------------------------------------------------------


def point_in_ring(px: float, py: float, ring: Sequence[tuple[float, float]]) -> bool:
    """Ray-casting test for point-in-polygon."""
    n = len(ring)
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if ((yi > py) != (yj > py)) and (
            px < (xj - xi) * (py - yi) / (yj - yi) + xi
        ):
            inside = not inside
        j = i
    return inside


def point_in_rings(px: float, py: float, rings: Sequence[Sequence[tuple[float, float]]]) -> bool:
    """Even-odd test over all rings at once (outer ring plus holes)."""
    inside = False
    for ring in rings:
        if point_in_ring(px, py, ring):
            inside = not inside
    return inside


def _in_extent(feature: Feature, px: float, py: float) -> bool:
    min_lon, min_lat, max_lon, max_lat = feature.extent
    return min_lon <= px <= max_lon and min_lat <= py <= max_lat


def contains(feature: Feature, px: float, py: float) -> bool:
    return _in_extent(feature, px, py) and point_in_rings(px, py, feature.rings)


def classify(px: float, py: float, collection: FeatureCollection) -> Optional[Feature]:
    """Return the first feature in collection order containing the point."""
    for feature in collection:
        if contains(feature, px, py):
            return feature
    return None


# ---------------------------------------------------------------------------
# Vectorized queries
# ---------------------------------------------------------------------------


def points_in_ring(xs: np.ndarray, ys: np.ndarray, ring: Sequence[tuple[float, float]]) -> np.ndarray:
    """Vectorized point_in_ring over 1-D coordinate arrays."""
    inside = np.zeros(xs.shape, dtype=bool)
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        j = i
        if yi == yj:
            continue
        straddle = (yi > ys) != (yj > ys)
        crossing = xs < (xj - xi) * (ys - yi) / (yj - yi) + xi
        inside ^= straddle & crossing
    return inside


def points_in_rings(xs: np.ndarray, ys: np.ndarray, rings) -> np.ndarray:
    inside = np.zeros(xs.shape, dtype=bool)
    for ring in rings:
        inside ^= points_in_ring(xs, ys, ring)
    return inside


def classify_grid(
    lons: np.ndarray, lats: np.ndarray, collection: FeatureCollection
) -> np.ndarray:
    """Index of the first containing feature for every point, -1 for none.

    Agrees point by point with classify(). Each feature only tests points
    that are still unassigned and inside its extent.
    """
    lons = np.asarray(lons, dtype=np.float64)
    lats = np.asarray(lats, dtype=np.float64)
    result = np.full(lons.shape, -1, dtype=np.int64)
    flat_lons = lons.ravel()
    flat_lats = lats.ravel()
    flat_result = result.reshape(-1)

    for index, feature in enumerate(collection):
        min_lon, min_lat, max_lon, max_lat = feature.extent
        candidates = np.flatnonzero(
            (flat_result == -1)
            & (flat_lons >= min_lon)
            & (flat_lons <= max_lon)
            & (flat_lats >= min_lat)
            & (flat_lats <= max_lat)
        )
        if candidates.size == 0:
            continue
        hits = points_in_rings(flat_lons[candidates], flat_lats[candidates], feature.rings)
        flat_result[candidates[hits]] = index
        if not (flat_result == -1).any():
            break

    return result
