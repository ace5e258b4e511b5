from datetime import datetime

import pytest
from pytz import utc

from skydisc.ephemeris import TransientResolutionFailure
from skydisc.models import CatalogStar, HorizontalCoordinates, PlanetPosition, RenderOptions
from skydisc.observer import create_observer


class FakeEphemeris:
    """Fixed sky seen from the north pole: altitude = dec, azimuth = ra.

    Records every query so tests can check call order.
    """

    def __init__(self, planets=(), failing=(), error=None):
        self.planets = list(planets)
        self.failing = set(failing)
        self.error = error
        self.calls = []

    def horizontal_coordinates(self, ra_deg, dec_deg, observer):
        self.calls.append(("coords", ra_deg, dec_deg))
        if self.error is not None:
            raise self.error
        if (ra_deg, dec_deg) in self.failing:
            raise TransientResolutionFailure(f"no solution for {ra_deg}, {dec_deg}")
        return HorizontalCoordinates(altitude_deg=dec_deg, azimuth_deg=ra_deg % 360)

    def planet_positions(self, observer):
        self.calls.append(("planets",))
        return list(self.planets)


@pytest.fixture
def observer():
    return create_observer(51.4772, -0.0005, 0.0, datetime(1995, 1, 15, 0, 0, tzinfo=utc))


@pytest.fixture
def fake_ephemeris():
    return FakeEphemeris()


@pytest.fixture
def make_ephemeris():
    return FakeEphemeris


@pytest.fixture
def catalog():
    return [
        CatalogStar(hip=1, ra_deg=0.0, dec_deg=90.0, magnitude=-1.46, name="Sirius"),
        CatalogStar(hip=2, ra_deg=90.0, dec_deg=45.0, magnitude=0.03, name="Vega"),
        CatalogStar(hip=3, ra_deg=180.0, dec_deg=30.0, magnitude=2.0, name="Polaris"),
        CatalogStar(hip=4, ra_deg=270.0, dec_deg=10.0, magnitude=4.5),
        CatalogStar(hip=5, ra_deg=45.0, dec_deg=-1.0, magnitude=1.0, name="Below"),
        CatalogStar(hip=6, ra_deg=135.0, dec_deg=60.0, magnitude=6.5),
    ]


@pytest.fixture
def planets():
    return [
        PlanetPosition(name="Jupiter", altitude_deg=40.0, azimuth_deg=200.0, magnitude=-2.3),
        PlanetPosition(name="Saturn", altitude_deg=-10.0, azimuth_deg=20.0, magnitude=0.8),
    ]


@pytest.fixture
def options():
    return RenderOptions()
