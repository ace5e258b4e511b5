"""Matplotlib raster renderer.

Draws the same paint plan as the SVG backend onto an Agg canvas. Geometry is
in pixels with y growing downward, so the axes span the full figure with an
inverted y axis; stroke widths and font sizes are converted to points.
"""

from __future__ import annotations

import io
import logging

from matplotlib import patheffects
from matplotlib.axes import Axes
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
from matplotlib.patches import Circle as CirclePatch
from matplotlib.patches import Polygon

from skydisc.models import Theme
from skydisc.primitives import Circle, Line, Path, StarMapGeometry, Text
from skydisc.renderers.common import PaintOp, paint_plan
from skydisc.styles import HALO_OPACITY, HALO_WIDTH, SERIF_FAMILY, styles_for_theme

logger = logging.getLogger(__name__)

MAX_SIDE_PX = 20000

_HA = {"start": "left", "middle": "center", "end": "right"}
_VA = {"top": "top", "middle": "center", "bottom": "bottom"}

# (radius fraction, alpha) rings approximating the radial glow gradient.
_GLOW_RINGS = ((1.0, 0.03), (0.7, 0.05), (0.3, 0.1))
# Spikes fade to nothing at both ends; a flat line uses the gradient peak.
_SPIKE_PEAK = 0.4


class RenderTargetUnavailable(RuntimeError):
    """Raster surface could not be created or encoded."""


def render_png(
    geometry: StarMapGeometry,
    width_px: int | None = None,
    height_px: int | None = None,
    theme: Theme = "dark",
    *,
    dpi: int = 100,
    include_metadata: bool = True,
) -> bytes:
    """Render geometry to PNG bytes.

    Args:
        geometry: Built star map geometry.
        width_px: Output width; defaults to the geometry viewport width.
        height_px: Output height; defaults to ``width_px``.
        theme: Colour theme. Raster output is always filled.
        dpi: Resolution recorded in the PNG and used for point conversion.
        include_metadata: Paint the location and date text.

    Returns:
        PNG-encoded image.

    Raises:
        RenderTargetUnavailable: Dimensions out of range or encoding failed.
    """
    width = int(round(geometry.bounds.width)) if width_px is None else int(width_px)
    height = width if height_px is None else int(height_px)
    if not (0 < width <= MAX_SIDE_PX and 0 < height <= MAX_SIDE_PX) or dpi <= 0:
        raise RenderTargetUnavailable(
            f"Cannot create a {width}x{height} px surface at {dpi} dpi"
        )

    styles = styles_for_theme(theme)
    fig = Figure(figsize=(width / dpi, height / dpi), dpi=dpi)
    canvas = FigureCanvasAgg(fig)
    fig.patch.set_facecolor(styles.colors.background)
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.axis("off")
    ax.set_facecolor(styles.colors.background)

    ops = render_to_axes(
        ax, geometry, theme, scale=width / geometry.bounds.width, include_metadata=include_metadata
    )
    logger.debug("Raster render: %d paint ops at %dx%d px", len(ops), width, height)

    buffer = io.BytesIO()
    try:
        canvas.print_png(buffer)
    except (ValueError, OSError, MemoryError) as exc:
        raise RenderTargetUnavailable(f"PNG encoding failed: {exc}") from exc
    return buffer.getvalue()


def render_to_axes(
    ax: Axes,
    geometry: StarMapGeometry,
    theme: Theme = "dark",
    *,
    scale: float = 1.0,
    include_metadata: bool = True,
) -> list[PaintOp]:
    """Draw geometry onto existing matplotlib axes in pixel data coordinates.

    The axes are expected to map data units to pixels with y pointing down.

    Returns:
        The paint operations drawn, in order.
    """
    styles = styles_for_theme(theme)
    bounds = geometry.bounds
    points_per_px = 72.0 / ax.figure.dpi

    clip = CirclePatch(
        (bounds.center_x * scale, bounds.center_y * scale),
        bounds.radius * scale,
        transform=ax.transData,
    )
    halo_width = HALO_WIDTH * scale * points_per_px

    ops = list(paint_plan(geometry, styles, scale, include_metadata))
    for zorder, op in enumerate(ops):
        artists = _draw(ax, op, points_per_px, halo_width, zorder)
        if op.clipped:
            for artist in artists:
                artist.set_clip_path(clip)
    return ops


def _draw(ax: Axes, op: PaintOp, points_per_px: float, halo_width: float, zorder: int) -> list:
    p = op.primitive
    style = op.style
    lw = style.stroke_width * points_per_px

    if style.effect == "glow" and isinstance(p, Circle):
        artists = []
        for fraction, alpha in _GLOW_RINGS:
            patch = CirclePatch(
                (p.center.x, p.center.y), p.radius * fraction,
                facecolor=style.fill, edgecolor="none", alpha=alpha, zorder=zorder,
            )
            ax.add_patch(patch)
            artists.append(patch)
        return artists

    if isinstance(p, Circle):
        patch = CirclePatch(
            (p.center.x, p.center.y), p.radius,
            facecolor=style.fill or "none",
            edgecolor=style.stroke or "none",
            linewidth=lw,
            alpha=style.opacity,
            zorder=zorder,
        )
        if style.dash and lw > 0:
            patch.set_linestyle((0, (style.dash[0] * points_per_px / lw, style.dash[1] * points_per_px / lw)))
        ax.add_patch(patch)
        return [patch]

    if isinstance(p, Line):
        alpha = style.opacity * _SPIKE_PEAK if style.effect == "spike" else style.opacity
        artist = Line2D(
            [p.start.x, p.end.x], [p.start.y, p.end.y],
            color=style.stroke, linewidth=lw, alpha=alpha,
            solid_capstyle="round", zorder=zorder,
        )
        ax.add_line(artist)
        return [artist]

    if isinstance(p, Path):
        xy = [(pt.x, pt.y) for pt in p.points]
        patch = Polygon(
            xy, closed=p.closed, fill=False,
            edgecolor=style.stroke, linewidth=lw, alpha=style.opacity, zorder=zorder,
        )
        ax.add_patch(patch)
        return [patch]

    if isinstance(p, Text):
        effects = []
        if style.halo:
            effects = [patheffects.withStroke(linewidth=halo_width, foreground=style.halo, alpha=HALO_OPACITY)]
        artist = ax.text(
            p.position.x, p.position.y, p.text,
            ha=_HA[p.anchor], va=_VA[p.baseline],
            color=style.fill,
            alpha=style.opacity,
            fontsize=style.font_size * points_per_px,
            family="serif" if style.font_family == SERIF_FAMILY else "sans-serif",
            style=style.font_style,
            weight=style.font_weight,
            path_effects=effects,
            zorder=zorder,
        )
        return [artist]

    raise TypeError(f"Unsupported primitive {p!r}")
