"""Command line entry point: generate the terrain heightmap PNG.

    python -m heightmap --data-dir data --out frontend/3d/assets/heightmap.png

Settings come from HEIGHTMAP_* environment variables and are overridden by
the options below. Exit status is 0 on success and 1 on a fatal error.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import ValidationError

from .config import GenerationConfig, NormalizationPolicy, ReloadableConfig, Settings
from .errors import HeightmapError
from .logs import LOG_FORMATS, configure_logging
from .pipeline import GenerationResult, run

logger = structlog.get_logger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return number


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="aelphera-heightmap",
        description="Rasterize region and parcel polygons into a displacement heightmap PNG.",
    )
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the datasets")
    parser.add_argument("--regions", default=None, help="Regions GeoJSON file name")
    parser.add_argument("--parcels", default=None, help="Parcels GeoJSON file name")
    parser.add_argument("--out", type=Path, default=None, help="Output PNG path")
    parser.add_argument("--config", type=Path, default=None, help="Generation config JSON")
    parser.add_argument("--seed", type=int, default=None, help="Noise seed")
    parser.add_argument("--width", type=_positive_int, default=None, help="Output width in pixels")
    parser.add_argument("--height", type=_positive_int, default=None, help="Output height in pixels")
    parser.add_argument("--workers", type=_positive_int, default=None, help="Worker threads")
    parser.add_argument(
        "--normalization",
        choices=[p.value for p in NormalizationPolicy],
        default=None,
        help="Normalization policy",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Regenerate whenever the config file or a dataset changes",
    )
    parser.add_argument(
        "--interval", type=float, default=1.0, help="Polling interval in seconds for --watch"
    )
    parser.add_argument("--log-level", default=None, help="Logging level")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="Logging format")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides = {
        "data_dir": args.data_dir,
        "regions_file": args.regions,
        "parcels_file": args.parcels,
        "output_path": args.out,
        "config_path": args.config,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def build_config(base: GenerationConfig, args: argparse.Namespace) -> GenerationConfig:
    """Apply command line overrides on top of the file config, revalidating."""
    data = base.model_dump()
    for key in ("width", "height", "workers", "normalization"):
        value = getattr(args, key)
        if value is not None:
            data[key] = value
    if args.seed is not None:
        data["noise"]["seed"] = args.seed
    return GenerationConfig.model_validate(data)


def progress_logger(step: int = 25):
    """Progress callback logging every ``step`` percent."""
    next_mark = step

    def report(rows_done: int, rows_total: int) -> None:
        nonlocal next_mark
        percent = 100 * rows_done // rows_total
        if percent >= next_mark:
            logger.info("progress", percent=percent)
            next_mark = (percent // step + 1) * step

    return report


def generate_once(settings: Settings, reloadable: ReloadableConfig, args) -> GenerationResult:
    config = build_config(reloadable.current(), args)
    return run(settings, config, progress=progress_logger())


def _watched_mtimes(settings: Settings) -> tuple:
    paths = [settings.regions_path, settings.parcels_path]
    if settings.config_path is not None:
        paths.append(settings.config_path)
    return tuple(p.stat().st_mtime if p.exists() else None for p in paths)


def watch(settings: Settings, reloadable: ReloadableConfig, args) -> int:
    """Regenerate on every change until interrupted."""
    last = None
    try:
        while True:
            current = _watched_mtimes(settings)
            if current != last:
                last = current
                try:
                    generate_once(settings, reloadable, args)
                except (HeightmapError, ValueError) as exc:
                    logger.error("generation failed, waiting for changes", error=str(exc))
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("watch stopped")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as exc:
        print(f"invalid settings: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level, settings.log_format)

    logger.info(
        "heightmap generator starting",
        regions=str(settings.regions_path),
        parcels=str(settings.parcels_path),
        output=str(settings.output_path),
    )
    reloadable = ReloadableConfig(settings.config_path)
    if args.watch:
        return watch(settings, reloadable, args)

    try:
        generate_once(settings, reloadable, args)
    except (HeightmapError, ValueError) as exc:
        logger.error("generation failed", error=str(exc), error_type=type(exc).__name__)
        return 1
    logger.info("generation complete", output=str(settings.output_path))
    return 0


if __name__ == "__main__":
    sys.exit(main())
