"""Theme palettes and per-primitive style resolution shared by every backend.

Both renderers ask :func:`resolve_style` for the look of each primitive, so a
geometry rendered to SVG and to a raster image uses the same colours, widths
and fonts. All widths and font sizes are in viewport units; the paint plan
multiplies them by the output scale.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

from skydisc.models import THEMES, Theme
from skydisc.primitives import (
    LayerName,
    Line,
    RenderPrimitive,
    Text,
)


@dataclass(frozen=True)
class ThemeColors:
    background: str
    stars: str
    star_glow: str
    horizon: str
    cardinals: str
    grid: str
    text: str
    constellations: str
    planets: str
    star_names: str
    constellation_names: str
    degree_ring: str
    topo_contours: tuple[str, ...]  # One colour per altitude band, cycled


THEME_COLORS: dict[Theme, ThemeColors] = {
    "dark": ThemeColors(
        background="#0a0a0f",
        stars="#ffffff",
        star_glow="#6688ff",
        horizon="#1a1a2e",
        cardinals="#666688",
        grid="#3a3a6a",
        text="#888899",
        constellations="#444466",
        planets="#ffaa44",
        star_names="#aaaaaa",
        constellation_names="#8888aa",
        degree_ring="#3a3a5a",
        topo_contours=("#1a1a3a", "#252550", "#303068", "#3a3a80", "#454598", "#5050b0"),
    ),
    "light": ThemeColors(
        background="#ffffff",
        stars="#000000",
        star_glow="#4466cc",
        horizon="#e0e0e0",
        cardinals="#666666",
        grid="#aaaacc",
        text="#444444",
        constellations="#888888",
        planets="#ff6600",
        star_names="#333333",
        constellation_names="#555555",
        degree_ring="#999999",
        topo_contours=("#f0f0f8", "#e0e0f0", "#d0d0e8", "#c0c0e0", "#b0b0d8", "#a0a0d0"),
    ),
    "monochrome": ThemeColors(
        background="#000000",
        stars="#ffffff",
        star_glow="#ffffff",
        horizon="#333333",
        cardinals="#ffffff",
        grid="#444444",
        text="#cccccc",
        constellations="#666666",
        planets="#ffffff",
        star_names="#aaaaaa",
        constellation_names="#888888",
        degree_ring="#555555",
        topo_contours=("#111111", "#1a1a1a", "#222222", "#2a2a2a", "#333333", "#3a3a3a"),
    ),
    "sepia": ThemeColors(
        background="#f5f0e6",
        stars="#2c2416",
        star_glow="#8b7355",
        horizon="#d4c9b5",
        cardinals="#6b5d4d",
        grid="#c4b8a4",
        text="#5a4d3c",
        constellations="#9a8a72",
        planets="#c4722e",
        star_names="#6b5d4d",
        constellation_names="#8b7d68",
        degree_ring="#b5a890",
        topo_contours=("#ebe3d4", "#e0d6c4", "#d5cab4", "#cabea4", "#bfb294", "#b4a684"),
    ),
}

SANS_FAMILY = "system-ui, -apple-system, sans-serif"
LABEL_FAMILY = "'Helvetica Neue', Helvetica, Arial, sans-serif"
SERIF_FAMILY = "Georgia, 'Times New Roman', serif"

# Painter's order used by every backend. "background" is painted by the
# renderer itself; "hour-indices" is never painted.
PAINT_ORDER: tuple[LayerName, ...] = (
    "background",
    "topo-contours",
    "grid",
    "horizon",
    "constellations",
    "star-glow",
    "stars",
    "planets",
    "star-names",
    "constellation-names",
    "cardinals",
    "degree-ring",
    "metadata",
)

# Layers drawn inside the circular sky-disc clip.
CLIPPED_LAYERS: frozenset[LayerName] = frozenset(
    {"topo-contours", "grid", "constellations", "star-glow", "stars", "planets"}
)

# Degree-ring tick tiers by length as a fraction of the horizon radius.
MAJOR_TICK_FRACTION = 0.055
MEDIUM_TICK_FRACTION = 0.045

HALO_OPACITY = 0.85
# Outline width of the halo drawn behind text, in viewport units.
HALO_WIDTH = 3.0

Effect = Literal["glow", "spike"]


@dataclass(frozen=True)
class RenderStyles:
    """Theme colours plus base stroke widths and font sizes."""

    theme: Theme
    colors: ThemeColors
    star_fill: bool
    star_stroke: bool
    star_stroke_width: float = 0.5
    horizon_width: float = 2.0
    grid_width: float = 0.5
    constellation_width: float = 0.9
    planet_size: float = 3.0
    cardinal_font_size: float = 14.0
    metadata_font_size: float = 8.0
    font_family: str = SANS_FAMILY

    @property
    def halo_color(self) -> str:
        return "#ffffff" if self.theme == "light" else self.colors.background

    @property
    def spike_color(self) -> str:
        return "#000000" if self.theme == "light" else "#ffffff"


@dataclass(frozen=True)
class ResolvedStyle:
    """Fully resolved look of one primitive. ``None`` means "not painted"."""

    fill: str | None = None
    stroke: str | None = None
    stroke_width: float = 0.0
    opacity: float = 1.0
    dash: tuple[float, float] | None = None
    font_size: float = 0.0
    font_family: str = SANS_FAMILY
    font_style: Literal["normal", "italic"] = "normal"
    font_weight: int = 400
    halo: str | None = None  # Halo colour behind text
    effect: Effect | None = None

    def scaled(self, factor: float) -> ResolvedStyle:
        dash = (self.dash[0] * factor, self.dash[1] * factor) if self.dash else None
        return replace(
            self,
            stroke_width=self.stroke_width * factor,
            font_size=self.font_size * factor,
            dash=dash,
        )


def styles_for_theme(theme: Theme, stroke_only: bool = False) -> RenderStyles:
    """Base styles for ``theme``. ``stroke_only`` outlines stars instead of filling them.

    Raises:
        ValueError: Unknown theme.
    """
    if theme not in THEMES:
        raise ValueError(f"Unknown theme {theme!r}; expected one of {THEMES}")
    return RenderStyles(
        theme=theme,
        colors=THEME_COLORS[theme],
        star_fill=not stroke_only,
        star_stroke=stroke_only,
    )


def scale_styles(styles: RenderStyles, factor: float) -> RenderStyles:
    """Scale stroke widths and base font sizes for a different output size."""
    return replace(
        styles,
        star_stroke_width=styles.star_stroke_width * factor,
        horizon_width=styles.horizon_width * factor,
        grid_width=styles.grid_width * factor,
        constellation_width=styles.constellation_width * factor,
        cardinal_font_size=styles.cardinal_font_size * factor,
        metadata_font_size=styles.metadata_font_size * factor,
    )


def tick_tier(primitive: Line, radius: float) -> Literal["major", "medium", "fine"]:
    """Classify a degree-ring tick by its length relative to the horizon radius."""
    fraction = primitive.length / radius
    if fraction > MAJOR_TICK_FRACTION:
        return "major"
    if fraction > MEDIUM_TICK_FRACTION:
        return "medium"
    return "fine"


def resolve_style(
    layer: LayerName,
    primitive: RenderPrimitive,
    styles: RenderStyles,
    radius: float,
    index: int = 0,
) -> ResolvedStyle:
    """Look of ``primitive`` in ``layer``, in viewport units.

    Args:
        layer: Layer the primitive belongs to.
        primitive: The primitive being painted.
        styles: Base styles for the theme.
        radius: Horizon radius of the geometry (degree-ring tick tiers).
        index: Position of the primitive within its layer (topo colour cycling).

    Returns:
        The resolved style. Text outside the clipped layers carries a halo.
    """
    colors = styles.colors
    is_text = isinstance(primitive, Text)
    halo = styles.halo_color if is_text and layer not in CLIPPED_LAYERS else None

    if layer == "topo-contours":
        palette = colors.topo_contours
        return ResolvedStyle(
            stroke=palette[index % len(palette)], stroke_width=0.5, opacity=0.6, dash=(2.0, 2.0)
        )

    if layer == "grid":
        return ResolvedStyle(stroke=colors.grid, stroke_width=styles.grid_width)

    if layer == "horizon":
        return ResolvedStyle(stroke=colors.horizon, stroke_width=styles.horizon_width)

    if layer == "constellations":
        return ResolvedStyle(stroke=colors.constellations, stroke_width=styles.constellation_width)

    if layer == "star-glow":
        if isinstance(primitive, Line):
            return ResolvedStyle(
                stroke=styles.spike_color, stroke_width=0.6, opacity=0.3, effect="spike"
            )
        return ResolvedStyle(fill=colors.star_glow, effect="glow")

    if layer == "stars":
        if styles.star_stroke:
            return ResolvedStyle(stroke=colors.stars, stroke_width=styles.star_stroke_width)
        return ResolvedStyle(fill=colors.stars)

    if layer == "planets":
        if is_text:
            return ResolvedStyle(
                fill=colors.planets, font_size=styles.metadata_font_size * 0.9, halo=halo
            )
        return ResolvedStyle(fill=colors.planets)

    if layer == "star-names":
        return ResolvedStyle(
            fill=colors.star_names,
            font_size=styles.metadata_font_size * 0.8,
            font_family=LABEL_FAMILY,
            halo=halo,
        )

    if layer == "constellation-names":
        return ResolvedStyle(
            fill=colors.constellation_names,
            font_size=styles.metadata_font_size * 1.05,
            font_family=SERIF_FAMILY,
            font_style="italic",
            font_weight=300,
            halo=halo,
        )

    if layer == "cardinals":
        north = isinstance(primitive, Text) and primitive.text == "N"
        return ResolvedStyle(
            fill=colors.cardinals,
            opacity=1.0 if north else 0.85,
            font_size=styles.cardinal_font_size,
            font_family=LABEL_FAMILY,
            font_weight=600 if north else 400,
            halo=halo,
        )

    if layer == "degree-ring":
        if is_text:
            return ResolvedStyle(
                fill=colors.degree_ring,
                font_size=styles.metadata_font_size * 0.75,
                font_family=LABEL_FAMILY,
                font_weight=500,
                halo=halo,
            )
        if isinstance(primitive, Line):
            tier = tick_tier(primitive, radius)
            width, opacity = {
                "major": (1.2, 1.0),
                "medium": (0.8, 0.8),
                "fine": (0.5, 0.6),
            }[tier]
            return ResolvedStyle(
                stroke=colors.degree_ring, stroke_width=styles.grid_width * width, opacity=opacity
            )
        return ResolvedStyle(stroke=colors.degree_ring, stroke_width=styles.grid_width * 0.5)

    if layer == "metadata":
        return ResolvedStyle(
            fill=colors.text,
            font_size=styles.metadata_font_size,
            font_family=styles.font_family,
            halo=halo,
        )

    raise ValueError(f"Layer {layer!r} has no style")

