"""Drawable primitives, named layers, and the StarMapGeometry aggregate.

Primitives carry geometry and content only. Colours, stroke widths and
fonts are resolved at render time from the theme (see ``skydisc.styles``).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Union

from skydisc.projection import Point2D

Anchor = Literal["start", "middle", "end"]
Baseline = Literal["top", "middle", "bottom"]

LayerName = Literal[
    "background",
    "topo-contours",
    "grid",
    "horizon",
    "constellations",
    "constellation-names",
    "stars",
    "star-glow",
    "star-names",
    "planets",
    "cardinals",
    "degree-ring",
    "metadata",
    "hour-indices",
]

# Registration order of layers in a built geometry (painter's order).
LAYER_ORDER: tuple[LayerName, ...] = (
    "background",
    "topo-contours",
    "grid",
    "horizon",
    "constellations",
    "constellation-names",
    "stars",
    "star-glow",
    "star-names",
    "planets",
    "cardinals",
    "degree-ring",
    "metadata",
    "hour-indices",
)

# Reference magnitude of the brightest stars (Sirius-class).
BRIGHTEST_MAGNITUDE = -1.5


@dataclass(frozen=True)
class Circle:
    center: Point2D
    radius: float
    id: int | None = None  # HIP number, contour altitude, ...
    kind: Literal["circle"] = "circle"


@dataclass(frozen=True)
class Line:
    start: Point2D
    end: Point2D
    kind: Literal["line"] = "line"

    @property
    def length(self) -> float:
        return math.hypot(self.end.x - self.start.x, self.end.y - self.start.y)


@dataclass(frozen=True)
class Path:
    points: tuple[Point2D, ...]
    closed: bool = False
    kind: Literal["path"] = "path"


@dataclass(frozen=True)
class Text:
    position: Point2D
    text: str
    anchor: Anchor = "middle"
    baseline: Baseline = "middle"
    kind: Literal["text"] = "text"


RenderPrimitive = Union[Circle, Line, Path, Text]


def circle(x: float, y: float, radius: float, id: int | None = None) -> Circle:
    return Circle(center=Point2D(x, y), radius=radius, id=id)


def line(x1: float, y1: float, x2: float, y2: float) -> Line:
    return Line(start=Point2D(x1, y1), end=Point2D(x2, y2))


def path(points: list[Point2D] | tuple[Point2D, ...], closed: bool = False) -> Path:
    return Path(points=tuple(points), closed=closed)


def text(
    x: float,
    y: float,
    content: str,
    anchor: Anchor = "middle",
    baseline: Baseline = "middle",
) -> Text:
    return Text(position=Point2D(x, y), text=content, anchor=anchor, baseline=baseline)


def primitive_points(primitive: RenderPrimitive) -> tuple[Point2D, ...]:
    """Every coordinate a primitive touches (circle extents included)."""
    if isinstance(primitive, Circle):
        c, r = primitive.center, primitive.radius
        return (
            Point2D(c.x - r, c.y - r),
            Point2D(c.x + r, c.y + r),
        )
    if isinstance(primitive, Line):
        return (primitive.start, primitive.end)
    if isinstance(primitive, Path):
        return primitive.points
    return (primitive.position,)


@dataclass(frozen=True)
class RenderLayer:
    name: LayerName
    primitives: tuple[RenderPrimitive, ...]
    visible: bool = True

    def __len__(self) -> int:
        return len(self.primitives)


@dataclass(frozen=True)
class Bounds:
    width: float
    height: float
    center_x: float
    center_y: float
    radius: float  # Radius of the horizon circle in viewport units


@dataclass(frozen=True)
class GeometryMetadata:
    star_count: int  # Catalogue stars passed to the build
    visible_star_count: int  # Stars above the horizon and within the limit
    timestamp: datetime
    location: str  # "51.48°N, 0.00°W"


@dataclass(frozen=True)
class StarMapGeometry:
    """Complete, immutable output of one build.

    ``layers`` is an ordered tuple: position in the tuple is paint order.
    """

    layers: tuple[RenderLayer, ...]
    bounds: Bounds
    metadata: GeometryMetadata

    @property
    def layer_names(self) -> tuple[LayerName, ...]:
        return tuple(layer.name for layer in self.layers)

    def layer(self, name: LayerName) -> RenderLayer | None:
        for layer in self.layers:
            if layer.name == name:
                return layer
        return None

    def primitives(self, name: LayerName) -> tuple[RenderPrimitive, ...]:
        found = self.layer(name)
        return found.primitives if found is not None else ()

    def with_layer_visibility(self, name: LayerName, visible: bool) -> StarMapGeometry:
        """Copy of this geometry with one layer shown or hidden."""
        layers = tuple(
            replace(layer, visible=visible) if layer.name == name else layer
            for layer in self.layers
        )
        return replace(self, layers=layers)


def magnitude_to_radius(
    magnitude: float,
    min_radius: float,
    max_radius: float,
    magnitude_limit: float = 6.0,
) -> float:
    """Star radius from apparent magnitude.

    Magnitude is normalized over [-1.5, magnitude_limit], clamped, and eased
    with sqrt(1 - n) so bright stars stand out more than a linear map gives.
    magnitude -1.5 → max_radius, magnitude_limit → min_radius.
    """
    span = magnitude_limit - BRIGHTEST_MAGNITUDE
    normalized = (magnitude - BRIGHTEST_MAGNITUDE) / span
    clamped = max(0.0, min(1.0, normalized))
    size_factor = math.sqrt(1.0 - clamped)
    return min_radius + size_factor * (max_radius - min_radius)
