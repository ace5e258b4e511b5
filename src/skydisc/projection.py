"""Azimuthal equidistant projection of the visible hemisphere onto the unit disc.

Coordinate system:
  zenith (altitude=90)  → origin
  horizon (altitude=0)  → unit circle
  radial distance is linear in angular distance from zenith: r = (90 - alt) / 90

Azimuth runs 0=N, 90=E clockwise. The default orientation is north-up,
east-right (a sky globe seen from outside, i.e. the sky mapped onto paper),
and y grows downward to match SVG/raster conventions.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True)
class ProjectionResult:
    """Projected point plus whether it lies above the horizon."""

    x: float
    y: float
    visible: bool

    @property
    def point(self) -> Point2D:
        return Point2D(self.x, self.y)

    @property
    def distance_from_center(self) -> float:
        return math.hypot(self.x, self.y)


@dataclass(frozen=True)
class ProjectionConfig:
    center_altitude: float = 90.0  # Projection centre, normally the zenith
    max_radius: float = 1.0  # Normalized radius of the horizon
    north_up: bool = True
    east_right: bool = True


DEFAULT_PROJECTION = ProjectionConfig()


def project(
    altitude: float,
    azimuth: float,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> ProjectionResult:
    """Map (altitude, azimuth) in degrees to normalized plane coordinates.

    Points below the horizon are still computed (r > max_radius) but flagged
    ``visible=False``; culling is the caller's decision.
    """
    r = (config.center_altitude - altitude) / 90.0 * config.max_radius
    az_rad = math.radians(azimuth)
    if not config.east_right:
        az_rad = -az_rad

    x = r * math.sin(az_rad)
    y = -r * math.cos(az_rad) if config.north_up else r * math.cos(az_rad)
    return ProjectionResult(x=x, y=y, visible=altitude > 0)


def inverse_project(
    x: float,
    y: float,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> tuple[float, float]:
    """Exact inverse of :func:`project`. Returns (altitude, azimuth) in degrees.

    Azimuth is normalized into [0, 360). At the exact centre the azimuth is
    undefined and 0 is returned.
    """
    r = math.hypot(x, y)
    altitude = config.center_altitude - r / config.max_radius * 90.0
    if r == 0.0:
        return altitude, 0.0

    az_rad = math.atan2(x, -y) if config.north_up else math.atan2(x, y)
    if not config.east_right:
        az_rad = -az_rad

    azimuth = math.degrees(az_rad) % 360.0
    # tiny negative angles wrap to exactly 360.0
    if azimuth >= 360.0:
        azimuth -= 360.0
    return altitude, azimuth


def project_many(
    altitudes: np.ndarray,
    azimuths: np.ndarray,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized :func:`project`. Returns (x, y, visible) arrays."""
    alt = np.asarray(altitudes, dtype=float)
    az_rad = np.radians(np.asarray(azimuths, dtype=float))
    if not config.east_right:
        az_rad = -az_rad
    r = (config.center_altitude - alt) / 90.0 * config.max_radius
    x = r * np.sin(az_rad)
    y = -r * np.cos(az_rad) if config.north_up else r * np.cos(az_rad)
    return x, y, alt > 0


def project_to_viewport(
    altitude: float,
    azimuth: float,
    viewport_size: float,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> ProjectionResult:
    """Project and scale into a square viewport, leaving a 5% margin."""
    projected = project(altitude, azimuth, config)
    center = viewport_size / 2
    scale = center * 0.95
    return ProjectionResult(
        x=center + projected.x * scale,
        y=center + projected.y * scale,
        visible=projected.visible,
    )


def altitude_to_radius(
    altitude: float, config: ProjectionConfig = DEFAULT_PROJECTION
) -> float:
    """Normalized radius of the constant-altitude circle."""
    return (config.center_altitude - altitude) / 90.0 * config.max_radius


def altitude_circle(
    altitude: float,
    point_count: int = 72,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> list[Point2D]:
    """Sample ``point_count`` points along a constant-altitude circle.

    The default of 72 points gives 5° azimuth steps. The polyline is open;
    callers close it (e.g. a closed path primitive).
    """
    if point_count < 3:
        raise ValueError(f"point_count must be >= 3, got {point_count}")
    step = 360.0 / point_count
    return [project(altitude, i * step, config).point for i in range(point_count)]


def azimuth_line(
    azimuth: float,
    step: float = 5.0,
    config: ProjectionConfig = DEFAULT_PROJECTION,
) -> list[Point2D]:
    """Sample a constant-azimuth radius from zenith (alt=90) down to the horizon."""
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    count = int(round(90.0 / step))
    return [project(90.0 - i * step, azimuth, config).point for i in range(count + 1)]
