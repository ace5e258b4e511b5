import struct
import xml.etree.ElementTree as ET
from collections import Counter
from datetime import datetime

import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import to_hex
from matplotlib.figure import Figure
from pytz import utc

from skydisc.builder import build_geometry
from skydisc.models import ConstellationFigure, RenderOptions, SkyVertex
from skydisc.primitives import (
    Bounds,
    GeometryMetadata,
    RenderLayer,
    StarMapGeometry,
    circle,
    line,
    path,
    text,
)
from skydisc.projection import Point2D
from skydisc.renderers.common import paint_plan, painted_layers
from skydisc.renderers.raster import RenderTargetUnavailable, render_png, render_to_axes
from skydisc.renderers.svg import path_data, render_svg
from skydisc.styles import (
    THEME_COLORS,
    resolve_style,
    scale_styles,
    styles_for_theme,
    tick_tier,
)

SVG = "{http://www.w3.org/2000/svg}"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def geometry(catalog, observer, planets, make_ephemeris):
    figures = (
        ConstellationFigure(name="Test", lines=((SkyVertex(0.0, 80.0), SkyVertex(90.0, 80.0)),)),
    )
    options = RenderOptions(show_grid=True, show_topo_contours=True)
    return build_geometry(
        catalog, observer, options, ephemeris=make_ephemeris(planets), constellations=figures
    )


def _parse(svg):
    return ET.fromstring(svg.encode("utf-8"))


def _groups(root):
    return {g.get("id"): g for g in root.iter(f"{SVG}g")}


def _png_size(data):
    assert data[:8] == PNG_SIGNATURE
    return struct.unpack(">II", data[16:24])


def _handmade(label="A & B <C>"):
    return StarMapGeometry(
        layers=(
            RenderLayer("stars", (circle(250, 250, 2, 1),)),
            RenderLayer("star-names", (text(260, 240, label, "start"),)),
        ),
        bounds=Bounds(width=500, height=500, center_x=250, center_y=250, radius=227.5),
        metadata=GeometryMetadata(
            star_count=1,
            visible_star_count=1,
            timestamp=datetime(2000, 1, 1, tzinfo=utc),
            location="Here & <there>",
        ),
    )


@pytest.mark.render
class TestStyles:
    def test_unknown_theme(self):
        with pytest.raises(ValueError):
            styles_for_theme("neon")

    def test_tick_tiers(self):
        r = 100.0
        assert tick_tier(line(0, 94, 0, 100), r) == "major"
        assert tick_tier(line(0, 95.04, 0, 100), r) == "medium"
        assert tick_tier(line(0, 96, 0, 100), r) == "fine"

    def test_stroke_only_outlines_stars(self):
        styles = styles_for_theme("dark", stroke_only=True)
        style = resolve_style("stars", circle(0, 0, 1), styles, 227.5)
        assert style.fill is None
        assert style.stroke == THEME_COLORS["dark"].stars

    def test_halo_only_outside_clip(self):
        styles = styles_for_theme("light")
        assert resolve_style("star-names", text(0, 0, "Vega"), styles, 1).halo == "#ffffff"
        assert resolve_style("planets", circle(0, 0, 3), styles, 1).halo is None

    def test_north_emphasised(self):
        styles = styles_for_theme("dark")
        north = resolve_style("cardinals", text(0, 0, "N"), styles, 1)
        east = resolve_style("cardinals", text(0, 0, "E"), styles, 1)
        assert (north.font_weight, north.opacity) == (600, 1.0)
        assert (east.font_weight, east.opacity) == (400, 0.85)

    def test_topo_palette_cycles(self):
        styles = styles_for_theme("sepia")
        palette = THEME_COLORS["sepia"].topo_contours
        style = resolve_style("topo-contours", circle(0, 0, 1), styles, 1, index=7)
        assert style.stroke == palette[7 % len(palette)]
        assert style.dash == (2.0, 2.0)

    def test_scale_styles(self):
        styles = scale_styles(styles_for_theme("dark"), 2.0)
        assert styles.horizon_width == pytest.approx(4.0)
        assert styles.cardinal_font_size == pytest.approx(28.0)
        assert resolve_style("grid", line(0, 0, 1, 1), styles, 1).stroke_width == pytest.approx(1.0)

    def test_scaled(self):
        styles = styles_for_theme("dark")
        style = resolve_style("topo-contours", circle(0, 0, 1), styles, 1).scaled(2)
        assert style.stroke_width == pytest.approx(1.0)
        assert style.dash == (4.0, 4.0)


@pytest.mark.render
class TestSvg:
    def test_document_structure(self, geometry):
        root = _parse(render_svg(geometry, 200))
        assert root.get("width") == "200mm"
        assert root.get("viewBox") == "0 0 200.000 200.000"
        groups = _groups(root)
        assert "layer-background" not in groups
        assert root.find(f"{SVG}rect").get("id") == "layer-background"
        assert [g.get("id") for g in root.findall(f"{SVG}g")] == [
            f"layer-{name}" for name in painted_layers(geometry)
        ]
        assert root.find(f"{SVG}defs/{SVG}clipPath").get("id") == "horizon-clip"

    def test_clipped_layers(self, geometry):
        groups = _groups(_parse(render_svg(geometry)))
        assert groups["layer-stars"].get("clip-path") == "url(#horizon-clip)"
        assert groups["layer-grid"].get("clip-path") == "url(#horizon-clip)"
        assert groups["layer-cardinals"].get("clip-path") is None
        assert groups["layer-degree-ring"].get("clip-path") is None

    def test_scaled_to_millimetres(self, geometry):
        groups = _groups(_parse(render_svg(geometry, 100)))
        zenith = groups["layer-stars"][0]
        assert float(zenith.get("cx")) == pytest.approx(50.0, abs=1e-3)

    def test_text_escaped(self):
        svg = render_svg(_handmade())
        assert "A &amp; B &lt;C&gt;" in svg
        assert "Here &amp; &lt;there&gt;" in svg
        root = _parse(svg)
        assert _groups(root)["layer-star-names"][0].text == "A & B <C>"

    def test_text_halo_filters(self, geometry):
        groups = _groups(_parse(render_svg(geometry)))
        assert groups["layer-cardinals"][0].get("filter") == "url(#text-halo)"
        assert groups["layer-metadata"][0].get("filter") == "url(#text-shadow)"

    def test_glow_gradients(self, geometry):
        root = _parse(render_svg(geometry))
        glows = _groups(root)["layer-star-glow"]
        ids = [el.get("fill")[5:-1] for el in glows]
        gradients = {g.get("id") for g in root.iter(f"{SVG}radialGradient")}
        assert ids and set(ids) <= gradients

    def test_stroke_only(self, geometry):
        root = _parse(render_svg(geometry, stroke_only=True))
        assert root.find(f"{SVG}rect") is None
        for star in _groups(root)["layer-stars"]:
            assert star.get("fill") == "none"
            assert star.get("stroke") == THEME_COLORS["dark"].stars

    def test_flat_output(self, geometry):
        root = _parse(render_svg(geometry, separate_layers=False))
        assert root.find(f"{SVG}g") is None
        clipped = [el for el in root if el.get("clip-path") == "url(#horizon-clip)"]
        assert clipped

    def test_without_metadata(self, geometry):
        groups = _groups(_parse(render_svg(geometry, include_metadata=False)))
        assert "layer-metadata" not in groups

    def test_hidden_layer_omitted(self, geometry):
        hidden = geometry.with_layer_visibility("grid", False)
        groups = _groups(_parse(render_svg(hidden)))
        assert "layer-grid" not in groups
        assert "layer-stars" in groups

    def test_theme_background(self, geometry):
        root = _parse(render_svg(geometry, theme="sepia"))
        assert root.find(f"{SVG}rect").get("fill") == "#f5f0e6"

    @pytest.mark.parametrize("width, height", [(0, None), (200, -1)])
    def test_invalid_size(self, geometry, width, height):
        with pytest.raises(ValueError):
            render_svg(geometry, width, height)

    def test_path_data(self):
        closed = path([Point2D(0, 0), Point2D(1, 0), Point2D(1, 1)], closed=True)
        assert path_data(closed) == "M 0.000 0.000 L 1.000 0.000 L 1.000 1.000 Z"
        assert path_data(path([])) == ""


@pytest.mark.render
class TestRaster:
    def test_png_signature_and_size(self, geometry):
        assert _png_size(render_png(geometry)) == (500, 500)

    def test_explicit_size(self, geometry):
        assert _png_size(render_png(geometry, 300, 200, "light")) == (300, 200)

    @pytest.mark.parametrize("width", [0, -5, 30000])
    def test_unavailable_target(self, geometry, width):
        with pytest.raises(RenderTargetUnavailable):
            render_png(geometry, width)

    def test_bad_dpi(self, geometry):
        with pytest.raises(RenderTargetUnavailable):
            render_png(geometry, 100, dpi=0)


@pytest.mark.render
class TestConformance:
    def _axes(self):
        fig = Figure(figsize=(5, 5), dpi=100)
        FigureCanvasAgg(fig)
        ax = fig.add_axes((0, 0, 1, 1))
        ax.set_xlim(0, 500)
        ax.set_ylim(500, 0)
        return ax

    def test_same_primitives_per_layer(self, geometry):
        ops = render_to_axes(self._axes(), geometry)
        raster_counts = Counter(op.layer for op in ops)
        groups = _groups(_parse(render_svg(geometry, 500)))
        svg_counts = {name[len("layer-"):]: len(g) for name, g in groups.items()}
        assert svg_counts == dict(raster_counts)

    def test_same_colours(self, geometry):
        ax = self._axes()
        ops = render_to_axes(ax, geometry, "sepia")
        groups = _groups(_parse(render_svg(geometry, 500, theme="sepia")))
        star_ops = [op for op in ops if op.layer == "stars"]
        svg_stars = list(groups["layer-stars"])
        assert [op.style.fill for op in star_ops] == [el.get("fill") for el in svg_stars]
        assert [float(el.get("r")) for el in svg_stars] == pytest.approx(
            [op.primitive.radius for op in star_ops], abs=1e-3
        )
        facecolors = {to_hex(p.get_facecolor()) for p in ax.patches}
        assert THEME_COLORS["sepia"].stars in facecolors

    def test_paint_plan_skips_background_and_hidden(self, geometry):
        styles = styles_for_theme("dark")
        hidden = geometry.with_layer_visibility("stars", False)
        layers = {op.layer for op in paint_plan(hidden, styles, 1.0)}
        assert "stars" not in layers
        assert "background" not in layers
        assert "metadata" in layers
        assert "metadata" not in {op.layer for op in paint_plan(hidden, styles, 1.0, False)}

    def test_raster_clips_disc_layers(self, geometry):
        ax = self._axes()
        render_to_axes(ax, geometry)
        clipped = [p for p in ax.patches if p.get_clip_path() is not None]
        assert clipped
