"""Seeded coherent value noise.

Pure and stateless: the value at lattice cell (ix, iy) is a 64-bit hash of
(seed, ix, iy), so no permutation table or cache is shared between threads.
Within a cell the four corner values are blended with the smootherstep
curve 6t^5 - 15t^4 + 10t^3, which is C2 continuous across cell borders.

Output range: value_noise and octave_noise both return values in [-1, 1].
Every sample is a convex combination of lattice values in [-1, 1], and the
octave sum is divided by the sum of its amplitudes.

All functions accept Python floats or numpy arrays (broadcast together).
"""

from __future__ import annotations

import numpy as np

_MASK64 = (1 << 64) - 1
_PRIME_X = np.uint64(0x9E3779B97F4A7C15)
_PRIME_Y = np.uint64(0xC2B2AE3D27D4EB4F)
_MIX_1 = np.uint64(0xFF51AFD7ED558CCD)
_MIX_2 = np.uint64(0xC4CEB9FE1A85EC53)
_SHIFT_33 = np.uint64(33)
_SHIFT_11 = np.uint64(11)
_UNIT = 1.0 / (1 << 53)


def _fmix64(h: np.ndarray) -> np.ndarray:
    h = h ^ (h >> _SHIFT_33)
    h = h * _MIX_1
    h = h ^ (h >> _SHIFT_33)
    h = h * _MIX_2
    return h ^ (h >> _SHIFT_33)


def lattice_value(seed: int, ix: np.ndarray, iy: np.ndarray) -> np.ndarray:
    """Pseudo-random value in [-1, 1) for integer lattice coordinates."""
    ix = np.atleast_1d(np.asarray(ix, dtype=np.int64)).astype(np.uint64)
    iy = np.atleast_1d(np.asarray(iy, dtype=np.int64)).astype(np.uint64)
    with np.errstate(over="ignore"):
        h = np.full(np.broadcast(ix, iy).shape, seed & _MASK64, dtype=np.uint64)
        h = _fmix64(h ^ (ix * _PRIME_X))
        h = _fmix64(h ^ (iy * _PRIME_Y))
    return (h >> _SHIFT_11).astype(np.float64) * (2.0 * _UNIT) - 1.0


def smootherstep(t):
    """6t^5 - 15t^4 + 10t^3"""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a, b, t):
    return a + t * (b - a)


def _as_result(values: np.ndarray, scalar: bool):
    values = np.clip(values, -1.0, 1.0)
    return float(values.reshape(-1)[0]) if scalar else values


def value_noise(seed: int, x, y):
    """Single-octave value noise at (x, y)."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    scalar = x.ndim == 0 and y.ndim == 0
    x, y = np.broadcast_arrays(np.atleast_1d(x), np.atleast_1d(y))

    x0 = np.floor(x)
    y0 = np.floor(y)
    u = smootherstep(x - x0)
    v = smootherstep(y - y0)
    ix = x0.astype(np.int64)
    iy = y0.astype(np.int64)

    v00 = lattice_value(seed, ix, iy)
    v10 = lattice_value(seed, ix + 1, iy)
    v01 = lattice_value(seed, ix, iy + 1)
    v11 = lattice_value(seed, ix + 1, iy + 1)

    values = _lerp(_lerp(v00, v10, u), _lerp(v01, v11, u), v)
    return _as_result(values, scalar)


def octave_noise(
    seed: int,
    x,
    y,
    octaves: int = 4,
    persistence: float = 0.5,
    frequency: float = 1.0,
):
    """Sum of ``octaves`` value-noise layers, normalized to [-1, 1].

    Octave k samples at ``frequency * 2**k`` with weight ``persistence**k``.
    """
    if octaves < 1:
        raise ValueError(f"octaves must be >= 1, got {octaves}")
    if persistence <= 0:
        raise ValueError(f"persistence must be > 0, got {persistence}")

    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    scalar = x.ndim == 0 and y.ndim == 0

    total = np.zeros(np.broadcast(np.atleast_1d(x), np.atleast_1d(y)).shape)
    amplitude = 1.0
    norm = 0.0
    freq = frequency
    for _ in range(octaves):
        total += amplitude * value_noise(seed, np.atleast_1d(x) * freq, np.atleast_1d(y) * freq)
        norm += amplitude
        amplitude *= persistence
        freq *= 2.0

    return _as_result(total / norm, scalar)
