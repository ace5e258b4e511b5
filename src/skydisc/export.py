"""Export wrappers: physical sizing, file names, and writing rendered maps to disk."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from pytz import utc

from skydisc.models import Theme
from skydisc.primitives import StarMapGeometry
from skydisc.renderers.raster import render_png
from skydisc.renderers.svg import render_svg

logger = logging.getLogger(__name__)

ExportFormat = Literal["svg", "png"]

MM_PER_INCH = 25.4


@dataclass(frozen=True)
class ExportConfig:
    format: ExportFormat = "svg"
    width_mm: float = 200.0  # Physical width
    height_mm: float = 200.0  # Physical height
    dpi: int = 300  # PNG only
    stroke_only: bool = False  # SVG only, for plotters and cutters
    separate_layers: bool = True  # SVG only
    include_metadata: bool = True
    theme: Theme = "dark"


def mm_to_pixels(mm: float, dpi: float) -> int:
    return round(mm / MM_PER_INCH * dpi)


def pixels_to_mm(pixels: float, dpi: float) -> float:
    return pixels / dpi * MM_PER_INCH


def generate_filename(location: str, when: datetime, extension: str) -> str:
    """``starmap-{location-slug}-{YYYY-MM-DD}.{extension}``.

    Non-alphanumeric runs in ``location`` become single hyphens; the date is
    taken in UTC.
    """
    slug = re.sub(r"-+", "-", re.sub(r"[^a-zA-Z0-9]", "-", location))
    date_str = when.astimezone(utc).strftime("%Y-%m-%d") if when.tzinfo else when.strftime("%Y-%m-%d")
    return f"starmap-{slug}-{date_str}.{extension}"


def export_svg(geometry: StarMapGeometry, config: ExportConfig = ExportConfig()) -> str:
    return render_svg(
        geometry,
        config.width_mm,
        config.height_mm,
        config.theme,
        stroke_only=config.stroke_only,
        separate_layers=config.separate_layers,
        include_metadata=config.include_metadata,
    )


def export_png(geometry: StarMapGeometry, config: ExportConfig = ExportConfig(format="png")) -> bytes:
    """Raster export sized from the physical dimensions at ``config.dpi``."""
    return render_png(
        geometry,
        mm_to_pixels(config.width_mm, config.dpi),
        mm_to_pixels(config.height_mm, config.dpi),
        config.theme,
        dpi=config.dpi,
        include_metadata=config.include_metadata,
    )


def _destination(geometry: StarMapGeometry, output: Path, extension: str) -> Path:
    if output.suffix:
        path = output
    else:
        path = output / generate_filename(
            geometry.metadata.location, geometry.metadata.timestamp, extension
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def save_svg(geometry: StarMapGeometry, output: Path, config: ExportConfig = ExportConfig()) -> Path:
    """Write an SVG to ``output`` (a file path, or a directory for a generated name).

    Returns:
        Path to the saved file.
    """
    path = _destination(geometry, output, "svg")
    path.write_text(export_svg(geometry, config), encoding="utf-8")
    logger.info("Saved %s", path)
    return path


def save_png(
    geometry: StarMapGeometry, output: Path, config: ExportConfig = ExportConfig(format="png")
) -> Path:
    """Write a PNG to ``output`` (a file path, or a directory for a generated name).

    Returns:
        Path to the saved file.
    """
    path = _destination(geometry, output, "png")
    path.write_bytes(export_png(geometry, config))
    logger.info("Saved %s", path)
    return path
