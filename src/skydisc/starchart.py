"""CLI entry point for star map generation.

    uv run skydisc --lat 35.17 --lon 129.07 --when "1995-01-15 00:00" --tz Asia/Seoul
    uv run skydisc --preset "Greenwich, UK" --format png --theme sepia
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Sequence

from pytz import utc

from skydisc.builder import build_geometry
from skydisc.compute import (
    SkyfieldEphemeris,
    catalog_from_frame,
    load_constellation_figures,
    load_hipparcos_frame,
)
from skydisc.config import load_settings
from skydisc.export import ExportConfig, save_png, save_svg
from skydisc.models import GRID_STYLES, STAR_STYLES, THEMES, RenderOptions
from skydisc.observer import (
    PRESET_LOCATIONS,
    InputValidationError,
    observer_from_local_time,
    preset_observer,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parser(default_log_level: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a sky map for a place and time")
    where = parser.add_argument_group("observer")
    where.add_argument("--lat", type=float, help="Latitude in decimal degrees")
    where.add_argument("--lon", type=float, help="Longitude in decimal degrees")
    where.add_argument("--elevation", type=float, default=0.0, help="Elevation in metres")
    where.add_argument("--preset", choices=sorted(PRESET_LOCATIONS), help="Named location")
    where.add_argument("--when", help='Local time "YYYY-MM-DD HH:MM" (default: now, UTC)')
    where.add_argument("--tz", default="UTC", help="IANA time zone of --when (default: UTC)")

    look = parser.add_argument_group("map")
    look.add_argument("--theme", choices=THEMES, default="dark")
    look.add_argument("--star-style", choices=STAR_STYLES, default="glow")
    look.add_argument(
        "--grid", choices=GRID_STYLES, default="none", help="Coordinate grid (default: none)"
    )
    look.add_argument("--magnitude-limit", type=float, default=6.0)
    look.add_argument("--topo", action="store_true", help="Draw altitude contours")
    look.add_argument("--no-constellations", action="store_true")
    look.add_argument("--no-labels", action="store_true", help="Hide star and constellation names")
    look.add_argument("--no-planets", action="store_true")
    look.add_argument("--no-metadata", action="store_true", help="Hide location and date text")

    out = parser.add_argument_group("output")
    out.add_argument("--format", choices=("svg", "png"), default="svg")
    out.add_argument("--size-mm", type=float, default=200.0, help="Width and height in mm")
    out.add_argument("--dpi", type=int, default=300, help="PNG resolution")
    out.add_argument("--stroke-only", action="store_true", help="SVG outlines only")
    out.add_argument("--output", type=Path, help="File or directory (default: SKYDISC_OUTPUT_DIR)")

    parser.add_argument(
        "--log-level",
        default=default_log_level,
        help=f"Logging level (default: {default_log_level})",
    )
    return parser


def _observer(args: argparse.Namespace):
    if args.preset:
        when = args.when or datetime.now(utc).strftime("%Y-%m-%d %H:%M")
        local = observer_from_local_time(0.0, 0.0, when, args.tz)
        return preset_observer(args.preset, local.instant)
    if args.lat is None or args.lon is None:
        raise InputValidationError(["Either --preset or both --lat and --lon are required"])
    when = args.when or datetime.now(utc).strftime("%Y-%m-%d %H:%M")
    tz_name = args.tz if args.when else "UTC"
    return observer_from_local_time(args.lat, args.lon, when, tz_name, args.elevation)


def main(argv: Sequence[str] | None = None) -> None:
    settings = load_settings()
    args = _parser(settings.log_level).parse_args(argv)
    _configure_logging(args.log_level)

    try:
        observer = _observer(args)
    except InputValidationError as exc:
        logger.error("Invalid observer: %s", exc)
        raise SystemExit(2) from exc

    options = RenderOptions(
        magnitude_limit=args.magnitude_limit,
        show_constellations=not args.no_constellations,
        show_constellation_names=not (args.no_labels or args.no_constellations),
        show_star_names=not args.no_labels,
        show_planets=not args.no_planets,
        show_grid=args.grid != "none",
        grid_style=args.grid,
        show_topo_contours=args.topo,
        show_map_coordinates=not args.no_metadata,
        show_map_date=not args.no_metadata,
        star_style=args.star_style,
        theme=args.theme,
    )

    frame = load_hipparcos_frame(settings)
    catalog = catalog_from_frame(frame, options.magnitude_limit)
    constellations = ()
    if options.show_constellations:
        fab_path = settings.data_dir / "constellationship.fab"
        if fab_path.exists():
            constellations = load_constellation_figures(frame, fab_path)
        else:
            logger.warning("No constellation data at %s; drawing stars only", fab_path)

    geometry = build_geometry(
        catalog.stars,
        observer,
        options,
        ephemeris=SkyfieldEphemeris(settings),
        constellations=constellations,
    )
    logger.info(
        "%s: %d of %d stars above the horizon",
        geometry.metadata.location,
        geometry.metadata.visible_star_count,
        geometry.metadata.star_count,
    )

    config = ExportConfig(
        format=args.format,
        width_mm=args.size_mm,
        height_mm=args.size_mm,
        dpi=args.dpi,
        stroke_only=args.stroke_only,
        theme=args.theme,
    )
    output = args.output or settings.output_dir
    save = save_png if args.format == "png" else save_svg
    path = save(geometry, output, config)
    print(f"Saved: {path}")


if __name__ == "__main__":
    main()
