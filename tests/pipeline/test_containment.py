"""Tests for even-odd polygon containment."""

import numpy as np
import pytest

from heightmap.containment import (
    classify,
    classify_grid,
    point_in_ring,
    point_in_rings,
    points_in_rings,
)
from heightmap.features import Feature, FeatureCollection

SQUARE = ((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0))
L_SHAPE = ((0.0, 0.0), (10.0, 0.0), (10.0, 5.0), (5.0, 5.0), (5.0, 10.0), (0.0, 10.0))


def test_interior_points_are_inside():
    """Every point strictly inside a simple polygon is contained."""
    for x in np.linspace(0.1, 9.9, 15):
        for y in np.linspace(0.1, 9.9, 15):
            assert point_in_ring(float(x), float(y), SQUARE)


@pytest.mark.parametrize("point", [(-1, 5), (11, 5), (5, -1), (5, 11), (20, 20), (-0.001, 0.5)])
def test_exterior_points_are_outside(point):
    assert not point_in_ring(point[0], point[1], SQUARE)


def test_concave_notch_is_outside():
    assert point_in_ring(2.0, 8.0, L_SHAPE)
    assert point_in_ring(8.0, 2.0, L_SHAPE)
    assert not point_in_ring(8.0, 8.0, L_SHAPE)


def test_point_on_horizontal_edge_does_not_divide_by_zero():
    """Horizontal edges are excluded from the crossing count."""
    # (7, 5) lies on the horizontal edge (10, 5)-(5, 5) of the L shape.
    assert point_in_ring(7.0, 5.0, L_SHAPE) is False
    # Bottom edge of the square counts as inside, top edge as outside.
    assert point_in_ring(5.0, 0.0, SQUARE) is True
    assert point_in_ring(5.0, 10.0, SQUARE) is False


def test_vertex_query_is_deterministic():
    results = {point_in_ring(0.0, 0.0, SQUARE) for _ in range(5)}
    assert len(results) == 1


def test_horizontal_edge_matches_vectorized():
    xs = np.array([7.0, 5.0, 5.0, 0.0, 10.0])
    ys = np.array([5.0, 0.0, 10.0, 0.0, 10.0])
    expected = [point_in_rings(x, y, (L_SHAPE,)) for x, y in zip(xs, ys)]
    assert points_in_rings(xs, ys, (L_SHAPE,)).tolist() == expected


def test_hole_is_excluded():
    hole = ((4.0, 4.0), (6.0, 4.0), (6.0, 6.0), (4.0, 6.0))
    assert not point_in_rings(5.0, 5.0, (SQUARE, hole))
    assert point_in_rings(2.0, 2.0, (SQUARE, hole))


def test_classify_first_match_wins(rect_feature, collection):
    first = rect_feature(0, 0, 10, 10, name="first")
    second = rect_feature(5, 5, 15, 15, name="second")
    features = collection(first, second)

    assert classify(7.0, 7.0, features) is first
    assert classify(12.0, 12.0, features) is second
    assert classify(20.0, 20.0, features) is None


def test_classify_empty_collection(collection):
    assert classify(1.0, 1.0, collection()) is None


def test_classify_grid_agrees_with_classify(rect_feature):
    triangle = Feature(name="tri", rings=(((2.0, 2.0), (9.0, 3.0), (4.0, 9.0)),))
    notched = Feature(name="L", rings=(L_SHAPE,))
    holed = rect_feature(1, 1, 8, 8, name="holed", holes=[((3, 3), (5, 3), (5, 5), (3, 5))])
    features = FeatureCollection(name="mixed", features=(triangle, holed, notched))

    rng = np.random.default_rng(0)
    lons = rng.uniform(-2.0, 12.0, size=(40, 50))
    lats = rng.uniform(-2.0, 12.0, size=(40, 50))
    # Include exact vertices and edge points.
    lons[0, :6] = [0.0, 10.0, 5.0, 7.0, 3.0, 2.0]
    lats[0, :6] = [0.0, 5.0, 5.0, 5.0, 3.0, 2.0]

    result = classify_grid(lons, lats, features)
    assert result.shape == lons.shape

    index = {id(f): k for k, f in enumerate(features)}
    for r in range(lons.shape[0]):
        for c in range(lons.shape[1]):
            match = classify(float(lons[r, c]), float(lats[r, c]), features)
            expected = -1 if match is None else index[id(match)]
            assert result[r, c] == expected


def test_classify_grid_none_is_minus_one(rect_feature, collection):
    features = collection(rect_feature(0, 0, 1, 1))
    result = classify_grid(np.array([5.0, 0.5]), np.array([5.0, 0.5]), features)
    assert result.tolist() == [-1, 0]
