"""Data model definitions: explicit boundaries between input, geometry, and render layers."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Theme = Literal["dark", "light", "monochrome", "sepia"]
GridStyle = Literal["none", "altitude", "equatorial", "both"]
StarStyle = Literal["dots", "glow", "spikes"]

THEMES: tuple[Theme, ...] = ("dark", "light", "monochrome", "sepia")
GRID_STYLES: tuple[GridStyle, ...] = ("none", "altitude", "equatorial", "both")
STAR_STYLES: tuple[StarStyle, ...] = ("dots", "glow", "spikes")


@dataclass(frozen=True)
class Observer:
    """Observer snapshot consumed by a single build. Never mutated by the core."""

    latitude: float  # Decimal degrees, -90..90
    longitude: float  # Decimal degrees, -180..180
    elevation: float  # Meters above sea level
    instant: datetime  # UTC datetime (with tzinfo=utc)


@dataclass(frozen=True)
class CatalogStar:
    """Catalogue entry for a single star. Read-only source data."""

    hip: int  # Hipparcos catalogue number
    ra_deg: float  # Right ascension (degrees, 0..360)
    dec_deg: float  # Declination (degrees, -90..90)
    magnitude: float  # Apparent magnitude
    name: str | None = None  # Common name ("Sirius"), if any


@dataclass(frozen=True)
class CatalogMeta:
    """Provenance of a star catalogue."""

    source: str  # "Hipparcos (ESA 1997)"
    epoch: str  # "J2000"
    total_count: int  # Number of stars in the catalogue
    magnitude_limit: float  # Faintest magnitude included


@dataclass(frozen=True)
class StarCatalog:
    """An ordered, read-only star catalogue plus its metadata."""

    meta: CatalogMeta
    stars: tuple[CatalogStar, ...]

    def stars_by_magnitude(self, magnitude_limit: float) -> tuple[CatalogStar, ...]:
        """Stars at or brighter than magnitude_limit, catalogue order preserved."""
        return tuple(s for s in self.stars if s.magnitude <= magnitude_limit)

    def star_by_hip(self, hip: int) -> CatalogStar | None:
        for star in self.stars:
            if star.hip == hip:
                return star
        return None

    def search_by_name(self, query: str) -> tuple[CatalogStar, ...]:
        """Case-insensitive substring match on common names."""
        needle = query.lower()
        return tuple(s for s in self.stars if s.name and needle in s.name.lower())

    def brightest(self, count: int) -> tuple[CatalogStar, ...]:
        return tuple(sorted(self.stars, key=lambda s: s.magnitude)[:count])

    def stats(self) -> dict[str, float]:
        """Summary counts: total, brightest/faintest magnitude, named stars."""
        mags = [s.magnitude for s in self.stars]
        return {
            "total_stars": len(self.stars),
            "brightest_mag": min(mags) if mags else float("nan"),
            "faintest_mag": max(mags) if mags else float("nan"),
            "named_stars": sum(1 for s in self.stars if s.name),
        }


@dataclass(frozen=True)
class HorizontalCoordinates:
    """Altitude/azimuth of a body as seen by an observer."""

    altitude_deg: float  # Degrees above horizon (-90..90)
    azimuth_deg: float  # Degrees from North, clockwise (0..360)


@dataclass(frozen=True)
class PlanetPosition:
    """Horizontal position of a planet at the observer's instant."""

    name: str  # "Jupiter"
    altitude_deg: float
    azimuth_deg: float
    magnitude: float


@dataclass(frozen=True)
class SkyVertex:
    """A single RA/Dec vertex of a constellation figure."""

    ra_deg: float
    dec_deg: float


@dataclass(frozen=True)
class ConstellationFigure:
    """Stick figure of one constellation: a list of RA/Dec polylines."""

    name: str  # Display name or IAU abbreviation ("Ori")
    lines: tuple[tuple[SkyVertex, ...], ...]


@dataclass(frozen=True)
class ProjectedStar:
    """A catalogue star after horizon filtering and projection. Ephemeral."""

    hip: int
    x: float  # Planar x (viewport units, or unit disc for project_catalog)
    y: float  # Planar y
    altitude_deg: float
    azimuth_deg: float
    magnitude: float
    radius: float  # Rendered radius in viewport units
    name: str | None = None


@dataclass(frozen=True)
class RenderOptions:
    """Configuration for a single geometry build."""

    magnitude_limit: float = 6.0  # Only stars with magnitude <= this are drawn
    star_size_min: float = 0.2  # Radius of the faintest star
    star_size_max: float = 2.0  # Radius of a magnitude -1.5 star
    show_constellations: bool = True
    show_constellation_names: bool = True
    show_planets: bool = True
    show_star_names: bool = True
    show_horizon: bool = True
    show_cardinals: bool = True
    show_grid: bool = False
    show_degree_ring: bool = True
    show_topo_contours: bool = False
    show_map_coordinates: bool = True
    show_map_date: bool = True
    star_style: StarStyle = "glow"
    grid_style: GridStyle = "none"
    theme: Theme = "dark"
