"""Paint plan shared by the SVG and raster backends."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from skydisc.primitives import (
    Circle,
    LayerName,
    Line,
    Path,
    RenderPrimitive,
    StarMapGeometry,
    Text,
)
from skydisc.projection import Point2D
from skydisc.styles import CLIPPED_LAYERS, PAINT_ORDER, RenderStyles, ResolvedStyle, resolve_style


@dataclass(frozen=True)
class PaintOp:
    """One primitive, already scaled to output units, with its resolved style."""

    layer: LayerName
    primitive: RenderPrimitive
    style: ResolvedStyle
    clipped: bool  # Drawn inside the sky-disc clip


def scale_primitive(primitive: RenderPrimitive, factor: float) -> RenderPrimitive:
    def pt(p: Point2D) -> Point2D:
        return Point2D(p.x * factor, p.y * factor)

    if isinstance(primitive, Circle):
        return Circle(center=pt(primitive.center), radius=primitive.radius * factor, id=primitive.id)
    if isinstance(primitive, Line):
        return Line(start=pt(primitive.start), end=pt(primitive.end))
    if isinstance(primitive, Path):
        return Path(points=tuple(pt(p) for p in primitive.points), closed=primitive.closed)
    return Text(
        position=pt(primitive.position),
        text=primitive.text,
        anchor=primitive.anchor,
        baseline=primitive.baseline,
    )


def painted_layers(
    geometry: StarMapGeometry, include_metadata: bool = True
) -> list[LayerName]:
    """Visible layers of ``geometry`` in paint order, background excluded."""
    names: list[LayerName] = []
    for name in PAINT_ORDER:
        if name == "background" or (name == "metadata" and not include_metadata):
            continue
        layer = geometry.layer(name)
        if layer is not None and layer.visible:
            names.append(name)
    return names


def paint_plan(
    geometry: StarMapGeometry,
    styles: RenderStyles,
    scale: float,
    include_metadata: bool = True,
) -> Iterator[PaintOp]:
    """Yield paint operations in painter's order.

    Args:
        geometry: Built star map geometry.
        styles: Base styles for the output theme.
        scale: Output units per viewport unit (mm for SVG, pixels for raster).
        include_metadata: Whether the location/date text is painted.

    Yields:
        PaintOp per primitive of every visible layer. Hidden layers and the
        background are skipped; backends paint the background themselves.
    """
    radius = geometry.bounds.radius
    for name in painted_layers(geometry, include_metadata):
        for index, primitive in enumerate(geometry.primitives(name)):
            style = resolve_style(name, primitive, styles, radius, index)
            yield PaintOp(
                layer=name,
                primitive=scale_primitive(primitive, scale),
                style=style.scaled(scale),
                clipped=name in CLIPPED_LAYERS,
            )
