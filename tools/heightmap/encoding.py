"""Normalize elevation fields to 8-bit levels and write them as PNG.

Two policies:
  - dynamic: the field's min maps to 0 and its max to 255; a constant field
    maps to MIDPOINT everywhere. Needs the whole field first.
  - fixed: elevation / reference_max scaled to 255 and clipped. Works one
    block at a time.

The PNG is RGBA with the level replicated in R, G and B and alpha 255. It is
written to a temporary file next to the destination and moved into place
only once complete.
"""

from __future__ import annotations

import errno
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Callable

import numpy as np
import structlog
from PIL import Image

from .config import MAX_LEVEL, NormalizationPolicy
from .errors import EncodingFailure

logger = structlog.get_logger(__name__)

MIDPOINT = 128


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def normalize_dynamic(field: np.ndarray) -> np.ndarray:
    """Stretch the field so its min is 0 and its max is 255."""
    lo = float(field.min())
    hi = float(field.max())
    if hi == lo:
        return np.full(field.shape, MIDPOINT, dtype=np.uint8)
    scaled = np.floor((field - lo) / (hi - lo) * MAX_LEVEL)
    return np.clip(scaled, 0, MAX_LEVEL).astype(np.uint8)


def normalize_fixed(field: np.ndarray, reference_max: float) -> np.ndarray:
    """Scale by a fixed reference so 0 -> 0 and reference_max -> 255."""
    if reference_max <= 0:
        raise ValueError(f"reference_max must be > 0, got {reference_max}")
    scaled = np.floor(field / reference_max * MAX_LEVEL)
    return np.clip(scaled, 0, MAX_LEVEL).astype(np.uint8)


def normalize(field: np.ndarray, policy: NormalizationPolicy, reference_max: float = 100.0) -> np.ndarray:
    if policy is NormalizationPolicy.DYNAMIC:
        return normalize_dynamic(field)
    return normalize_fixed(field, reference_max)


def level_for(elevation: float, reference_max: float) -> int:
    """Output level of a single elevation under the fixed policy."""
    return int(normalize_fixed(np.array([elevation], dtype=np.float64), reference_max)[0])


# ---------------------------------------------------------------------------
# Raster output
# ---------------------------------------------------------------------------

def to_raster(levels: np.ndarray) -> np.ndarray:
    """(H, W) uint8 levels -> read-only (H, W, 4) RGBA array."""
    height, width = levels.shape
    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[:, :, 0] = levels
    rgba[:, :, 1] = levels
    rgba[:, :, 2] = levels
    rgba[:, :, 3] = MAX_LEVEL
    rgba.setflags(write=False)
    return rgba


def write_files_atomically(writers: dict[Path, Callable[[BinaryIO], None]]) -> None:
    """Write each file through ``writer(fh)`` and publish them together.

    Every file is written to a temporary sibling first; they are moved into
    place only after all of them are complete. Temporary files are removed on
    failure and the error is raised as EncodingFailure.
    """
    staged: list[tuple[str, Path]] = []
    path = None
    try:
        for path, writer in writers.items():
            path = Path(path)
            if path.is_dir():
                raise IsADirectoryError(errno.EISDIR, "destination is a directory", str(path))
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-", suffix=".tmp")
            staged.append((tmp_name, path))
            with os.fdopen(fd, "wb") as fh:
                writer(fh)
            os.chmod(tmp_name, 0o644)
        for tmp_name, path in staged:
            os.replace(tmp_name, path)
    except (OSError, ValueError) as exc:
        raise EncodingFailure(f"cannot write {path}: {exc}") from exc
    finally:
        for tmp_name, _ in staged:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)


def png_writer(raster: np.ndarray) -> Callable[[BinaryIO], None]:
    def write(fh: BinaryIO) -> None:
        Image.fromarray(np.ascontiguousarray(raster)).save(fh, format="PNG")

    return write


def write_png(raster: np.ndarray, output_path: Path) -> None:
    """Save the raster as PNG, publishing the file only when fully written."""
    output_path = Path(output_path)
    write_files_atomically({output_path: png_writer(raster)})
    file_size = output_path.stat().st_size
    logger.info("heightmap written", path=str(output_path), size_kb=round(file_size / 1024, 1))
