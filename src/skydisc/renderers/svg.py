"""SVG star map renderer.

Produces a standalone SVG document sized in millimetres for print. One
``<g id="layer-...">`` group per painted layer when ``separate_layers`` is
set, so the file can be edited layer by layer in a vector editor.
"""

from __future__ import annotations

from xml.sax.saxutils import escape

from skydisc.models import Theme
from skydisc.primitives import Circle, Line, Path, StarMapGeometry, Text
from skydisc.renderers.common import PaintOp, paint_plan, painted_layers
from skydisc.styles import CLIPPED_LAYERS, HALO_OPACITY, HALO_WIDTH, RenderStyles, styles_for_theme

_BASELINES = {"top": "hanging", "middle": "middle", "bottom": "alphabetic"}

# (offset, opacity) stops of the star glow and spike gradients.
_GLOW_STOPS = ((0, 0.2), (30, 0.12), (70, 0.05), (100, 0.0))
_SPIKE_STOPS = ((0, 0.0), (40, 0.2), (50, 0.4), (60, 0.2), (100, 0.0))


def fmt(value: float) -> str:
    """Coordinates and sizes with three decimals."""
    return f"{value:.3f}"


def render_svg(
    geometry: StarMapGeometry,
    width_mm: float = 200.0,
    height_mm: float | None = None,
    theme: Theme = "dark",
    *,
    stroke_only: bool = False,
    separate_layers: bool = True,
    include_metadata: bool = True,
) -> str:
    """Render geometry as a standalone SVG document.

    Args:
        geometry: Built star map geometry.
        width_mm: Physical width of the document.
        height_mm: Physical height; defaults to ``width_mm``.
        theme: Colour theme.
        stroke_only: Outline stars instead of filling them and omit the
            background (for plotters and laser cutters).
        separate_layers: Wrap each layer in its own ``<g id="layer-...">``.
        include_metadata: Paint the location and date text.

    Returns:
        SVG XML string.

    Raises:
        ValueError: Non-positive dimensions or unknown theme.
    """
    height_mm = width_mm if height_mm is None else height_mm
    if width_mm <= 0 or height_mm <= 0:
        raise ValueError(f"SVG size must be positive, got {width_mm}x{height_mm} mm")

    styles = styles_for_theme(theme, stroke_only)
    bounds = geometry.bounds
    scale = width_mm / bounds.width
    view_height = bounds.height * scale

    ops_by_layer: dict[str, list[PaintOp]] = {}
    for op in paint_plan(geometry, styles, scale, include_metadata):
        ops_by_layer.setdefault(op.layer, []).append(op)

    gradients: list[str] = []
    body: list[str] = []
    if not stroke_only:
        body.append("  <!-- Background -->")
        body.append(
            f'  <rect id="layer-background" width="100%" height="100%" '
            f'fill="{styles.colors.background}"/>'
        )

    for name in painted_layers(geometry, include_metadata):
        ops = ops_by_layer.get(name, [])
        elements = [_element(op, gradients, separate_layers) for op in ops]
        if separate_layers:
            clip = ' clip-path="url(#horizon-clip)"' if name in CLIPPED_LAYERS else ""
            body.append(f"  <!-- {name} ({len(elements)}) -->")
            body.append(f'  <g id="layer-{name}"{clip}>')
            body.extend(f"    {e}" for e in elements)
            body.append("  </g>")
        else:
            body.extend(f"  {e}" for e in elements)

    defs = _defs(styles, scale, bounds.center_x * scale, bounds.center_y * scale, bounds.radius * scale)
    title = escape(f"Star Map - {geometry.metadata.location}")
    desc = escape(f"Star map showing {geometry.metadata.visible_star_count} stars")

    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width_mm}mm" height="{height_mm}mm" '
        f'viewBox="0 0 {fmt(width_mm)} {fmt(view_height)}">',
        f"  <title>{title}</title>",
        f"  <desc>{desc}</desc>",
        "  <defs>",
        *defs,
        *gradients,
        "  </defs>",
        *body,
        "</svg>",
    ]
    return "\n".join(parts) + "\n"


def _defs(styles: RenderStyles, scale: float, cx: float, cy: float, r: float) -> list[str]:
    halo = styles.halo_color
    return [
        '    <clipPath id="horizon-clip">',
        f'      <circle cx="{fmt(cx)}" cy="{fmt(cy)}" r="{fmt(r)}"/>',
        "    </clipPath>",
        '    <filter id="text-halo" x="-20%" y="-20%" width="140%" height="140%">',
        f'      <feMorphology in="SourceAlpha" result="dilated" operator="dilate" '
        f'radius="{fmt(scale * HALO_WIDTH / 2)}"/>',
        f'      <feFlood flood-color="{halo}" flood-opacity="{HALO_OPACITY}" result="halo-color"/>',
        '      <feComposite in="halo-color" in2="dilated" operator="in" result="halo"/>',
        "      <feMerge>",
        '        <feMergeNode in="halo"/>',
        '        <feMergeNode in="SourceGraphic"/>',
        "      </feMerge>",
        "    </filter>",
        '    <filter id="text-shadow" x="-10%" y="-10%" width="120%" height="120%">',
        f'      <feDropShadow dx="0" dy="0" stdDeviation="{fmt(scale * HALO_WIDTH / 2)}" '
        f'flood-color="{halo}" flood-opacity="0.9"/>',
        "    </filter>",
    ]


def _paint_attrs(op: PaintOp, clip_inline: bool) -> str:
    style = op.style
    attrs = [f'fill="{style.fill}"' if style.fill else 'fill="none"']
    if style.stroke:
        attrs.append(f'stroke="{style.stroke}" stroke-width="{fmt(style.stroke_width)}"')
    if style.dash:
        attrs.append(f'stroke-dasharray="{fmt(style.dash[0])} {fmt(style.dash[1])}"')
    if style.opacity != 1.0:
        attrs.append(f'opacity="{style.opacity:g}"')
    if clip_inline and op.clipped:
        attrs.append('clip-path="url(#horizon-clip)"')
    return " ".join(attrs)


def _element(op: PaintOp, gradients: list[str], separate_layers: bool) -> str:
    p = op.primitive
    style = op.style
    clip_inline = not separate_layers

    if style.effect == "glow" and isinstance(p, Circle):
        gid = f"star-glow-{len(gradients)}"
        stops = "".join(
            f'<stop offset="{offset}%" stop-color="{style.fill}" stop-opacity="{opacity:g}"/>'
            for offset, opacity in _GLOW_STOPS
        )
        gradients.append(f'    <radialGradient id="{gid}" cx="50%" cy="50%" r="50%">{stops}</radialGradient>')
        clip = ' clip-path="url(#horizon-clip)"' if clip_inline else ""
        return (
            f'<circle cx="{fmt(p.center.x)}" cy="{fmt(p.center.y)}" r="{fmt(p.radius)}" '
            f'fill="url(#{gid})"{clip}/>'
        )

    if style.effect == "spike" and isinstance(p, Line):
        gid = f"star-spike-{len(gradients)}"
        stops = "".join(
            f'<stop offset="{offset}%" stop-color="{style.stroke}" stop-opacity="{opacity:g}"/>'
            for offset, opacity in _SPIKE_STOPS
        )
        gradients.append(
            f'    <linearGradient id="{gid}" gradientUnits="userSpaceOnUse" '
            f'x1="{fmt(p.start.x)}" y1="{fmt(p.start.y)}" x2="{fmt(p.end.x)}" y2="{fmt(p.end.y)}">'
            f"{stops}</linearGradient>"
        )
        clip = ' clip-path="url(#horizon-clip)"' if clip_inline else ""
        return (
            f'<line x1="{fmt(p.start.x)}" y1="{fmt(p.start.y)}" x2="{fmt(p.end.x)}" y2="{fmt(p.end.y)}" '
            f'stroke="url(#{gid})" stroke-width="{fmt(style.stroke_width)}" stroke-linecap="round" '
            f'opacity="{style.opacity:g}"{clip}/>'
        )

    attrs = _paint_attrs(op, clip_inline)

    if isinstance(p, Circle):
        return f'<circle cx="{fmt(p.center.x)}" cy="{fmt(p.center.y)}" r="{fmt(p.radius)}" {attrs}/>'

    if isinstance(p, Line):
        return (
            f'<line x1="{fmt(p.start.x)}" y1="{fmt(p.start.y)}" '
            f'x2="{fmt(p.end.x)}" y2="{fmt(p.end.y)}" stroke-linecap="round" {attrs}/>'
        )

    if isinstance(p, Path):
        return f'<path d="{path_data(p)}" {attrs}/>'

    if isinstance(p, Text):
        font = f'font-family="{style.font_family}" font-size="{fmt(style.font_size)}"'
        if style.font_style != "normal":
            font += f' font-style="{style.font_style}"'
        if style.font_weight != 400:
            font += f' font-weight="{style.font_weight}"'
        halo = ""
        if style.halo:
            halo = ' filter="url(#text-shadow)"' if op.layer == "metadata" else ' filter="url(#text-halo)"'
        return (
            f'<text x="{fmt(p.position.x)}" y="{fmt(p.position.y)}" text-anchor="{p.anchor}" '
            f'dominant-baseline="{_BASELINES[p.baseline]}" {font} {attrs}{halo}>{escape(p.text)}</text>'
        )

    raise TypeError(f"Unsupported primitive {p!r}")


def path_data(p: Path) -> str:
    """SVG path ``d`` attribute for a polyline path."""
    if not p.points:
        return ""
    first, *rest = p.points
    parts = [f"M {fmt(first.x)} {fmt(first.y)}"]
    parts.extend(f"L {fmt(pt.x)} {fmt(pt.y)}" for pt in rest)
    if p.closed:
        parts.append("Z")
    return " ".join(parts)
