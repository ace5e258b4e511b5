"""Turn catalogue data plus an observer into layered StarMapGeometry.

All coordinates produced here are viewport units: the sky disc is centred
at (viewport/2, viewport/2) and the horizon has radius ``0.91 * viewport/2``.
The builder is deterministic: ephemeris queries always run in the same order
(catalogue stars, constellation vertices, planets, grid samples) and label
placement follows ``labels.PLACEMENT_PHASES``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Sequence

from skydisc.ephemeris import EphemerisProvider, TransientResolutionFailure
from skydisc.labels import PLACEMENT_PHASES, LabelCollisionDetector, PlacementPhase
from skydisc.models import (
    GRID_STYLES,
    STAR_STYLES,
    THEMES,
    CatalogStar,
    ConstellationFigure,
    HorizontalCoordinates,
    Observer,
    PlanetPosition,
    ProjectedStar,
    RenderOptions,
)
from skydisc.observer import (
    InputValidationError,
    format_datetime,
    format_location,
    validate_observer,
)
from skydisc.primitives import (
    BRIGHTEST_MAGNITUDE,
    LAYER_ORDER,
    Bounds,
    GeometryMetadata,
    LayerName,
    RenderLayer,
    RenderPrimitive,
    StarMapGeometry,
    circle,
    line,
    magnitude_to_radius,
    path,
    text,
)
from skydisc.projection import Point2D, altitude_circle, project

logger = logging.getLogger(__name__)

# Horizon radius as a fraction of half the viewport.
DISC_FRACTION = 0.91
# Sky content stops where the degree-ring bezel begins.
EXCLUSION_FRACTION = 0.96
# Constellation labels only for centroids well inside the exclusion radius.
CONSTELLATION_LABEL_FRACTION = 0.85

LABEL_PADDING = 8.0
CARDINAL_FONT_SIZE = 14.0
CONSTELLATION_FONT_SIZE = 11.0
STAR_NAME_FONT_SIZE = 9.0
PLANET_FONT_SIZE = 9.0
DEGREE_FONT_SIZE = 8.0

CONSTELLATION_LABEL_OFFSET = 15.0
STAR_LABEL_GAP = 8.0
STAR_LABEL_RISE = 2.0
PLANET_MARKER_RADIUS = 3.0
PLANET_LABEL_OFFSET = 5.0

STAR_NAME_MAGNITUDE_LIMIT = 2.5
EFFECT_MAGNITUDE_LIMIT = 3.5
SIX_SPIKE_MAGNITUDE_LIMIT = 1.5

TOPO_ALTITUDES = (15, 30, 45, 60, 75)
HORIZON_POINTS = 72

CARDINALS = (("N", 0.0), ("E", 90.0), ("S", 180.0), ("W", 270.0))
CARDINAL_ALTITUDE = -5.0

GRID_DECLINATIONS = (75, 60, 45, 30, 15, 0, -15, -30, -45, -60)
GRID_RA_STEP = 30
GRID_CIRCLE_SAMPLES = 72
GRID_MERIDIAN_DEC_STEP = 3
GRID_MIN_SAMPLE_ALTITUDE = -5.0
GRID_PINNED_ALTITUDE = 0.5
GRID_AZIMUTH_STEP = 30
# Longest chord kept between consecutive grid samples, as a fraction of the
# horizon radius. Longer chords come from arcs that wrap across the horizon.
GRID_CHORD_LIMITS = {"declination": 0.3, "meridian": 0.2}
POLE_CROSS_FRACTION = 0.02

# Degree ring radii as fractions of the horizon radius.
OUTER_BEZEL = 1.02
RING_OUTER = 1.0
RING_INNER = 0.96
INNER_BEZEL = 0.94
DEGREE_TEXT = 0.88
MEDIUM_TICK_INSET = 0.99

METADATA_LOCATION_Y = 0.94
METADATA_DATE_Y = 0.97

# Star sizes, glow radii and label offsets are absolute viewport units; on a
# smaller viewport they reach past the degree ring.
MIN_VIEWPORT_SIZE = 200.0


@dataclass
class _Frame:
    """Viewport placement shared by every build step."""

    viewport: float
    center: float
    scale: float

    @property
    def exclusion_radius(self) -> float:
        return self.scale * EXCLUSION_FRACTION

    def to_viewport(self, altitude: float, azimuth: float) -> Point2D:
        projected = project(altitude, azimuth)
        return Point2D(
            self.center + projected.x * self.scale,
            self.center + projected.y * self.scale,
        )

    def distance(self, x: float, y: float) -> float:
        return math.hypot(x - self.center, y - self.center)

    def inside_exclusion(self, x: float, y: float) -> bool:
        return self.distance(x, y) < self.exclusion_radius


@dataclass
class _ResolvedFigure:
    name: str
    # One list per polyline; None marks a vertex that could not be resolved.
    polylines: list[list[HorizontalCoordinates | None]]


class _Resolver:
    """Wraps the ephemeris provider, omitting bodies that fail to resolve."""

    def __init__(self, ephemeris: EphemerisProvider, observer: Observer) -> None:
        self.ephemeris = ephemeris
        self.observer = observer
        self.failures = 0
        self._vertex_cache: dict[tuple[float, float], HorizontalCoordinates | None] = {}

    def star(self, ra_deg: float, dec_deg: float, label: str) -> HorizontalCoordinates | None:
        try:
            return self.ephemeris.horizontal_coordinates(ra_deg, dec_deg, self.observer)
        except TransientResolutionFailure as exc:
            self.failures += 1
            logger.warning("Omitting %s: %s", label, exc)
            return None

    def vertex(self, ra_deg: float, dec_deg: float) -> HorizontalCoordinates | None:
        key = (ra_deg, dec_deg)
        if key not in self._vertex_cache:
            self._vertex_cache[key] = self.star(
                ra_deg, dec_deg, f"vertex ra={ra_deg:.3f} dec={dec_deg:.3f}"
            )
        return self._vertex_cache[key]

    def planets(self) -> list[PlanetPosition]:
        try:
            return list(self.ephemeris.planet_positions(self.observer))
        except TransientResolutionFailure as exc:
            self.failures += 1
            logger.warning("Omitting planets: %s", exc)
            return []


def validate_options(options: RenderOptions, viewport_size: float | None = None) -> None:
    """Raise InputValidationError for options the builder cannot honour."""
    errors: list[str] = []
    if not options.magnitude_limit > BRIGHTEST_MAGNITUDE:
        errors.append(f"magnitude_limit must be greater than {BRIGHTEST_MAGNITUDE}")
    if options.star_size_min < 0 or options.star_size_max < options.star_size_min:
        errors.append("star sizes must satisfy 0 <= star_size_min <= star_size_max")
    if options.star_style not in STAR_STYLES:
        errors.append(f"unknown star_style {options.star_style!r}")
    if options.grid_style not in GRID_STYLES:
        errors.append(f"unknown grid_style {options.grid_style!r}")
    if options.theme not in THEMES:
        errors.append(f"unknown theme {options.theme!r}")
    if viewport_size is not None and not viewport_size >= MIN_VIEWPORT_SIZE:
        errors.append(f"viewport_size must be at least {MIN_VIEWPORT_SIZE:g}")
    if errors:
        raise InputValidationError(errors)


def build_geometry(
    catalog_stars: Sequence[CatalogStar],
    observer: Observer,
    options: RenderOptions,
    viewport_size: float = 500.0,
    *,
    ephemeris: EphemerisProvider,
    constellations: Sequence[ConstellationFigure] = (),
) -> StarMapGeometry:
    """Build complete star map geometry for one observer and instant.

    Args:
        catalog_stars: Catalogue in source order.
        observer: Validated before any work; never mutated.
        options: Visibility, sizing and style toggles.
        viewport_size: Side of the square viewport in viewport units, at least
            ``MIN_VIEWPORT_SIZE``.
        ephemeris: Alt/az and planet position provider.
        constellations: Stick figures as RA/Dec polylines.

    Returns:
        An immutable StarMapGeometry whose layer order is the paint order.

    Raises:
        InputValidationError: Observer or options out of range.
    """
    validate_observer(observer)
    validate_options(options, viewport_size)

    center = viewport_size / 2
    frame = _Frame(viewport=viewport_size, center=center, scale=center * DISC_FRACTION)
    resolver = _Resolver(ephemeris, observer)
    detector = LabelCollisionDetector(padding=LABEL_PADDING)

    # Ephemeris queries, in fixed order.
    projected = _project_stars(catalog_stars, options, frame, resolver)
    figures: list[_ResolvedFigure] = []
    if options.show_constellations or options.show_constellation_names:
        figures = _resolve_figures(constellations, resolver)
    planets = resolver.planets() if options.show_planets else []

    built: dict[LayerName, list[RenderPrimitive]] = {}

    in_disc = [s for s in projected if frame.inside_exclusion(s.x, s.y)]

    if options.show_topo_contours:
        built["topo-contours"] = _topo_contours(frame)
    built["stars"] = [circle(s.x, s.y, s.radius, s.hip) for s in in_disc]
    if options.star_style in ("glow", "spikes"):
        built["star-glow"] = _star_effects(in_disc, options.star_style)
    if options.show_constellations:
        built["constellations"] = _constellation_lines(figures, frame)
    if options.show_horizon:
        built["horizon"] = _horizon(frame)
    if options.show_grid:
        built["grid"] = _grid(options, frame, resolver)

    phases: dict[PlacementPhase, Callable[[], None]] = {
        "cardinals": lambda: _set_if(
            built, "cardinals", options.show_cardinals, lambda: _cardinals(frame, detector)
        ),
        "constellation-names": lambda: _set_if(
            built,
            "constellation-names",
            options.show_constellation_names,
            lambda: _constellation_names(figures, frame, detector),
        ),
        "star-names": lambda: _set_if(
            built, "star-names", options.show_star_names, lambda: _star_names(in_disc, detector)
        ),
        "planets": lambda: _set_if(
            built, "planets", options.show_planets, lambda: _planets(planets, frame, detector)
        ),
        "degree-ring": lambda: _set_if(
            built, "degree-ring", options.show_degree_ring, lambda: _degree_ring(frame, detector)
        ),
    }
    for phase in PLACEMENT_PHASES:
        phases[phase]()

    built["metadata"] = _metadata(observer, options, frame)

    layers = tuple(
        RenderLayer(name=name, primitives=tuple(built[name]), visible=True)
        for name in LAYER_ORDER
        if built.get(name)
    )

    geometry = StarMapGeometry(
        layers=layers,
        bounds=Bounds(
            width=viewport_size,
            height=viewport_size,
            center_x=center,
            center_y=center,
            radius=frame.scale,
        ),
        metadata=GeometryMetadata(
            star_count=len(catalog_stars),
            visible_star_count=len(projected),
            timestamp=observer.instant,
            location=format_location(observer),
        ),
    )
    logger.debug(
        "Built geometry: %d/%d stars visible, layers=%s, omitted bodies=%d",
        geometry.metadata.visible_star_count,
        geometry.metadata.star_count,
        ",".join(geometry.layer_names),
        resolver.failures,
    )
    return geometry


def _set_if(
    built: dict[LayerName, list[RenderPrimitive]],
    name: LayerName,
    enabled: bool,
    step: Callable[[], list[RenderPrimitive]],
) -> None:
    if enabled:
        built[name] = step()


def project_catalog(
    catalog_stars: Sequence[CatalogStar],
    observer: Observer,
    options: RenderOptions,
    *,
    ephemeris: EphemerisProvider,
) -> list[ProjectedStar]:
    """Visible stars in normalized unit-disc coordinates (no viewport scaling)."""
    validate_observer(observer)
    validate_options(options)
    frame = _Frame(viewport=0.0, center=0.0, scale=1.0)
    return _project_stars(catalog_stars, options, frame, _Resolver(ephemeris, observer))


def _project_stars(
    catalog_stars: Sequence[CatalogStar],
    options: RenderOptions,
    frame: _Frame,
    resolver: _Resolver,
) -> list[ProjectedStar]:
    projected: list[ProjectedStar] = []
    for star in catalog_stars:
        if star.magnitude > options.magnitude_limit:
            continue
        coords = resolver.star(star.ra_deg, star.dec_deg, f"HIP {star.hip}")
        if coords is None or coords.altitude_deg <= 0:
            continue
        point = frame.to_viewport(coords.altitude_deg, coords.azimuth_deg)
        projected.append(
            ProjectedStar(
                hip=star.hip,
                x=point.x,
                y=point.y,
                altitude_deg=coords.altitude_deg,
                azimuth_deg=coords.azimuth_deg,
                magnitude=star.magnitude,
                radius=magnitude_to_radius(
                    star.magnitude,
                    options.star_size_min,
                    options.star_size_max,
                    options.magnitude_limit,
                ),
                name=star.name,
            )
        )
    return projected


def _resolve_figures(
    constellations: Sequence[ConstellationFigure], resolver: _Resolver
) -> list[_ResolvedFigure]:
    return [
        _ResolvedFigure(
            name=figure.name,
            polylines=[
                [resolver.vertex(v.ra_deg, v.dec_deg) for v in polyline]
                for polyline in figure.lines
            ],
        )
        for figure in constellations
    ]


def _topo_contours(frame: _Frame) -> list[RenderPrimitive]:
    return [
        circle(frame.center, frame.center, (90 - alt) / 90 * frame.scale, alt)
        for alt in TOPO_ALTITUDES
    ]


def _star_effects(stars: list[ProjectedStar], style: str) -> list[RenderPrimitive]:
    """Glow halos or diffraction spikes for the brighter stars. Purely decorative."""
    effects: list[RenderPrimitive] = []
    for star in stars:
        if star.magnitude >= EFFECT_MAGNITUDE_LIMIT:
            continue
        brightness = max(0.5, (4 - star.magnitude) / 3)

        if style == "glow":
            effects.append(circle(star.x, star.y, star.radius * (2 + brightness * 2.5), star.hip))
            continue

        spike_length = star.radius * (2 + brightness * 2)
        spikes = 6 if star.magnitude < SIX_SPIKE_MAGNITUDE_LIMIT else 4
        for i in range(spikes):
            angle = i * 2 * math.pi / spikes + math.pi / 4
            dx = math.cos(angle) * spike_length
            dy = math.sin(angle) * spike_length
            effects.append(line(star.x - dx, star.y - dy, star.x + dx, star.y + dy))
        effects.append(circle(star.x, star.y, star.radius * 1.5, star.hip))
    return effects


def _constellation_lines(figures: list[_ResolvedFigure], frame: _Frame) -> list[RenderPrimitive]:
    # Segments crossing the horizon or the ring boundary are dropped, not clipped.
    lines: list[RenderPrimitive] = []
    for figure in figures:
        for polyline in figure.polylines:
            for a, b in zip(polyline, polyline[1:]):
                if a is None or b is None:
                    continue
                if a.altitude_deg <= 0 or b.altitude_deg <= 0:
                    continue
                p1 = frame.to_viewport(a.altitude_deg, a.azimuth_deg)
                p2 = frame.to_viewport(b.altitude_deg, b.azimuth_deg)
                if frame.inside_exclusion(p1.x, p1.y) and frame.inside_exclusion(p2.x, p2.y):
                    lines.append(line(p1.x, p1.y, p2.x, p2.y))
    return lines


def _horizon(frame: _Frame) -> list[RenderPrimitive]:
    points = [
        Point2D(frame.center + p.x * frame.scale, frame.center + p.y * frame.scale)
        for p in altitude_circle(0, HORIZON_POINTS)
    ]
    return [path(points, closed=True)]


def _grid(options: RenderOptions, frame: _Frame, resolver: _Resolver) -> list[RenderPrimitive]:
    """Equatorial grid around the north celestial pole, or an alt/az grid.

    ``grid_style``: "altitude" always draws the alt/az grid, "both" draws the
    equatorial grid plus the alt/az grid, "equatorial" and "none" draw the
    equatorial grid and fall back to alt/az when the pole is below the horizon.
    """
    if options.grid_style == "altitude":
        return _altaz_grid(frame)

    pole = resolver.star(0.0, 90.0, "north celestial pole")
    if pole is None or pole.altitude_deg <= 0:
        return _altaz_grid(frame)

    primitives = _equatorial_grid(pole, frame, resolver)
    if options.grid_style == "both":
        primitives.extend(_altaz_grid(frame))
    return primitives


def _grid_samples(
    coords: list[HorizontalCoordinates | None], frame: _Frame
) -> list[Point2D]:
    points: list[Point2D] = []
    for c in coords:
        if c is None or c.altitude_deg <= GRID_MIN_SAMPLE_ALTITUDE:
            continue
        points.append(frame.to_viewport(max(c.altitude_deg, GRID_PINNED_ALTITUDE), c.azimuth_deg))
    return points


def _chords(points: list[Point2D], limit: float) -> list[RenderPrimitive]:
    segments: list[RenderPrimitive] = []
    for a, b in zip(points, points[1:]):
        if math.hypot(b.x - a.x, b.y - a.y) < limit:
            segments.append(line(a.x, a.y, b.x, b.y))
    return segments


def _equatorial_grid(
    pole: HorizontalCoordinates, frame: _Frame, resolver: _Resolver
) -> list[RenderPrimitive]:
    primitives: list[RenderPrimitive] = []

    for dec in GRID_DECLINATIONS:
        coords = [
            resolver.star(i / GRID_CIRCLE_SAMPLES * 360, dec, f"grid dec={dec}")
            for i in range(GRID_CIRCLE_SAMPLES + 1)
        ]
        primitives.extend(
            _chords(_grid_samples(coords, frame), frame.scale * GRID_CHORD_LIMITS["declination"])
        )

    for ra in range(0, 360, GRID_RA_STEP):
        coords = [
            resolver.star(ra, dec, f"grid ra={ra}")
            for dec in range(89, -91, -GRID_MERIDIAN_DEC_STEP)
        ]
        primitives.extend(
            _chords(_grid_samples(coords, frame), frame.scale * GRID_CHORD_LIMITS["meridian"])
        )

    p = frame.to_viewport(pole.altitude_deg, pole.azimuth_deg)
    cross = frame.scale * POLE_CROSS_FRACTION
    primitives.append(line(p.x - cross, p.y, p.x + cross, p.y))
    primitives.append(line(p.x, p.y - cross, p.x, p.y + cross))
    return primitives


def _altaz_grid(frame: _Frame) -> list[RenderPrimitive]:
    primitives: list[RenderPrimitive] = [
        circle(frame.center, frame.center, (90 - alt) / 90 * frame.scale) for alt in TOPO_ALTITUDES
    ]
    for az in range(0, 360, GRID_AZIMUTH_STEP):
        edge = frame.to_viewport(0, az)
        primitives.append(line(frame.center, frame.center, edge.x, edge.y))
    return primitives


def _cardinals(frame: _Frame, detector: LabelCollisionDetector) -> list[RenderPrimitive]:
    # Always placed; their boxes are reserved before any other label.
    labels: list[RenderPrimitive] = []
    for label, azimuth in CARDINALS:
        p = frame.to_viewport(CARDINAL_ALTITUDE, azimuth)
        detector.place(p.x, p.y, label, "middle", CARDINAL_FONT_SIZE)
        labels.append(text(p.x, p.y, label, "middle", "middle"))
    return labels


def _constellation_names(
    figures: list[_ResolvedFigure], frame: _Frame, detector: LabelCollisionDetector
) -> list[RenderPrimitive]:
    candidates: list[tuple[str, float, float, int]] = []
    for figure in figures:
        visible = [
            frame.to_viewport(c.altitude_deg, c.azimuth_deg)
            for polyline in figure.polylines
            for c in polyline
            if c is not None and c.altitude_deg > 0
        ]
        if len(visible) < 2:
            continue
        cx = sum(p.x for p in visible) / len(visible)
        cy = sum(p.y for p in visible) / len(visible)
        if frame.distance(cx, cy) < frame.exclusion_radius * CONSTELLATION_LABEL_FRACTION:
            candidates.append((figure.name, cx, cy - CONSTELLATION_LABEL_OFFSET, len(visible)))

    # More visible structure first; ties keep dataset order.
    candidates.sort(key=lambda c: -c[3])

    labels: list[RenderPrimitive] = []
    for name, x, y, _count in candidates:
        if detector.try_place(x, y, name, "middle", CONSTELLATION_FONT_SIZE):
            labels.append(text(x, y, name, "middle", "middle"))
    return labels


def _star_names(stars: list[ProjectedStar], detector: LabelCollisionDetector) -> list[RenderPrimitive]:
    candidates = sorted(
        (s for s in stars if s.name and s.magnitude <= STAR_NAME_MAGNITUDE_LIMIT),
        key=lambda s: s.magnitude,
    )
    labels: list[RenderPrimitive] = []
    for star in candidates:
        name = star.name or ""
        x = star.x + star.radius + STAR_LABEL_GAP
        y = star.y - star.radius - STAR_LABEL_RISE
        if detector.try_place(x, y, name, "start", STAR_NAME_FONT_SIZE):
            labels.append(text(x, y, name, "start", "middle"))
    return labels


def _planets(
    planets: list[PlanetPosition], frame: _Frame, detector: LabelCollisionDetector
) -> list[RenderPrimitive]:
    primitives: list[RenderPrimitive] = []
    for planet in planets:
        if planet.altitude_deg <= 0:
            continue
        p = frame.to_viewport(planet.altitude_deg, planet.azimuth_deg)
        if not frame.inside_exclusion(p.x, p.y):
            continue
        primitives.append(circle(p.x, p.y, PLANET_MARKER_RADIUS, 0))
        x, y = p.x + PLANET_LABEL_OFFSET, p.y - PLANET_LABEL_OFFSET
        if detector.try_place(x, y, planet.name, "start", PLANET_FONT_SIZE):
            primitives.append(text(x, y, planet.name, "start", "middle"))
    return primitives


def _degree_ring(frame: _Frame, detector: LabelCollisionDetector) -> list[RenderPrimitive]:
    """Bezel with 2° ticks in three tiers and labels at the 30° ticks."""
    c, s = frame.center, frame.scale
    outer = s * RING_OUTER
    inner = s * RING_INNER
    primitives: list[RenderPrimitive] = []

    for deg in range(0, 360, 2):
        angle = math.radians(deg - 90)
        cos, sin = math.cos(angle), math.sin(angle)

        if deg % 30 == 0:
            tick_inner = s * INNER_BEZEL
        elif deg % 10 == 0:
            tick_inner = inner * MEDIUM_TICK_INSET
        else:
            tick_inner = inner
        primitives.append(line(c + cos * tick_inner, c + sin * tick_inner, c + cos * outer, c + sin * outer))

        # Cardinal positions carry N/E/S/W instead of a number.
        if deg % 30 == 0 and deg % 90 != 0:
            x, y = c + cos * s * DEGREE_TEXT, c + sin * s * DEGREE_TEXT
            label = f"{deg}°"
            if detector.try_place(x, y, label, "middle", DEGREE_FONT_SIZE):
                primitives.append(text(x, y, label, "middle", "middle"))

    for fraction in (OUTER_BEZEL, RING_OUTER, RING_INNER, INNER_BEZEL):
        primitives.append(circle(c, c, s * fraction))
    return primitives


def _metadata(observer: Observer, options: RenderOptions, frame: _Frame) -> list[RenderPrimitive]:
    primitives: list[RenderPrimitive] = []
    if options.show_map_coordinates:
        primitives.append(
            text(frame.center, frame.viewport * METADATA_LOCATION_Y, format_location(observer))
        )
    if options.show_map_date:
        primitives.append(
            text(frame.center, frame.viewport * METADATA_DATE_Y, format_datetime(observer))
        )
    return primitives
