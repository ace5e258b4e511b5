import math
from datetime import datetime

import pytest
from pytz import utc

from skydisc.primitives import (
    Bounds,
    GeometryMetadata,
    RenderLayer,
    StarMapGeometry,
    circle,
    line,
    magnitude_to_radius,
    path,
    primitive_points,
    text,
)
from skydisc.projection import Point2D


def _geometry():
    return StarMapGeometry(
        layers=(
            RenderLayer("horizon", (path([Point2D(0, 0), Point2D(1, 1)], closed=True),)),
            RenderLayer("stars", (circle(5, 5, 1.5, 42),)),
        ),
        bounds=Bounds(width=500, height=500, center_x=250, center_y=250, radius=227.5),
        metadata=GeometryMetadata(
            star_count=1,
            visible_star_count=1,
            timestamp=datetime(2000, 1, 1, tzinfo=utc),
            location="0.00°N, 0.00°E",
        ),
    )


@pytest.mark.unit
class TestMagnitudeToRadius:
    def test_endpoints(self):
        assert magnitude_to_radius(-1.5, 0.2, 2.0) == pytest.approx(2.0)
        assert magnitude_to_radius(6.0, 0.2, 2.0) == pytest.approx(0.2)

    def test_clamps_outside_range(self):
        assert magnitude_to_radius(-4.0, 0.2, 2.0) == pytest.approx(2.0)
        assert magnitude_to_radius(9.0, 0.2, 2.0) == pytest.approx(0.2)

    def test_sqrt_easing_at_midpoint(self):
        mid = (-1.5 + 6.0) / 2
        expected = 0.2 + math.sqrt(0.5) * 1.8
        assert magnitude_to_radius(mid, 0.2, 2.0) == pytest.approx(expected)

    def test_monotonic_in_magnitude(self):
        radii = [magnitude_to_radius(m / 2, 0.2, 2.0, 6.0) for m in range(-3, 13)]
        assert all(a >= b for a, b in zip(radii, radii[1:]))

    def test_respects_magnitude_limit(self):
        assert magnitude_to_radius(4.0, 0.5, 3.0, magnitude_limit=4.0) == pytest.approx(0.5)


@pytest.mark.unit
class TestPrimitives:
    def test_kind_tags(self):
        assert circle(0, 0, 1).kind == "circle"
        assert line(0, 0, 1, 1).kind == "line"
        assert path([]).kind == "path"
        assert text(0, 0, "N").kind == "text"

    def test_line_length(self):
        assert line(0, 0, 3, 4).length == pytest.approx(5)

    def test_circle_points_cover_extent(self):
        points = primitive_points(circle(10, 20, 2))
        assert points == (Point2D(8, 18), Point2D(12, 22))

    def test_text_defaults(self):
        t = text(1, 2, "Vega")
        assert (t.anchor, t.baseline) == ("middle", "middle")


@pytest.mark.unit
class TestStarMapGeometry:
    def test_layer_lookup_preserves_order(self):
        geometry = _geometry()
        assert geometry.layer_names == ("horizon", "stars")
        assert len(geometry.layer("stars")) == 1
        assert geometry.layer("grid") is None
        assert geometry.primitives("grid") == ()

    def test_visibility_copy_leaves_original(self):
        geometry = _geometry()
        hidden = geometry.with_layer_visibility("stars", False)
        assert hidden.layer("stars").visible is False
        assert geometry.layer("stars").visible is True
        assert hidden.layer_names == geometry.layer_names

    def test_is_frozen(self):
        geometry = _geometry()
        with pytest.raises(AttributeError):
            geometry.layers = ()
