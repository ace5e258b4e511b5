import json
import math
from datetime import datetime

import pandas as pd
import pytest
from pytz import utc

from skydisc.compute import (
    BRIGHT_STAR_NAMES,
    CONSTELLATION_NAMES,
    SkyfieldEphemeris,
    catalog_from_frame,
    catalog_from_records,
    load_catalog_json,
    load_constellation_figures,
    load_constellations_json,
)
from skydisc.config import Settings, load_settings
from skydisc.ephemeris import TransientResolutionFailure
from skydisc.models import SkyVertex
from skydisc.observer import create_observer


@pytest.fixture
def frame():
    return pd.DataFrame(
        {
            "ra_degrees": [101.287, 279.234, 37.955, 10.0, 20.0, float("nan")],
            "dec_degrees": [-16.716, 38.784, 89.264, 5.0, -5.0, 0.0],
            "magnitude": [-1.44, 0.03, 1.97, 7.2, 4.0, 3.0],
        },
        index=pd.Index([32349, 91262, 11767, 500, 400, 600], name="hip"),
    )


@pytest.fixture
def fab(tmp_path):
    path = tmp_path / "constellationship.fab"
    path.write_text(
        "# comment line\n"
        "CMa 3 32349 91262 91262 11767 400 500\n"
        "Lyr 2 91262 999999 999999 11767\n"
        "Xyz 1 600 700\n",
        encoding="utf-8",
    )
    return path


@pytest.mark.unit
class TestCatalogFromFrame:
    def test_filters_and_sorts(self, frame):
        catalog = catalog_from_frame(frame, magnitude_limit=6.5)
        assert [s.hip for s in catalog.stars] == [400, 11767, 32349, 91262]
        assert catalog.meta.total_count == 4
        assert catalog.meta.magnitude_limit == 6.5

    def test_common_names(self, frame):
        catalog = catalog_from_frame(frame)
        assert catalog.star_by_hip(32349).name == BRIGHT_STAR_NAMES[32349] == "Sirius"
        assert catalog.star_by_hip(400).name is None

    def test_custom_names(self, frame):
        catalog = catalog_from_frame(frame, names={400: "Test Star"})
        assert catalog.search_by_name("test") == (catalog.star_by_hip(400),)


@pytest.mark.unit
class TestCatalogFromRecords:
    RECORDS = [
        {"hip": 32349, "ra": 101.287, "dec": -16.716, "mag": -1.46, "name": "Sirius"},
        {"hip": 91262, "ra": 279.234, "dec": 38.784, "mag": 0.03, "name": "Vega"},
        {"hip": 11767, "ra": 37.955, "dec": 89.264, "mag": 1.97, "name": ""},
    ]

    def test_records(self):
        catalog = catalog_from_records(self.RECORDS, {"source": "test", "magLimit": 6})
        assert [s.hip for s in catalog.stars] == [32349, 91262, 11767]
        assert catalog.stars[2].name is None
        assert catalog.meta.source == "test"
        assert catalog.meta.magnitude_limit == 6.0

    def test_helpers(self):
        catalog = catalog_from_records(self.RECORDS)
        assert [s.hip for s in catalog.stars_by_magnitude(1.0)] == [32349, 91262]
        assert catalog.brightest(1)[0].name == "Sirius"
        assert catalog.star_by_hip(1) is None
        stats = catalog.stats()
        assert stats["total_stars"] == 3
        assert stats["brightest_mag"] == -1.46
        assert stats["named_stars"] == 2

    def test_empty_stats(self):
        stats = catalog_from_records([]).stats()
        assert stats["total_stars"] == 0
        assert math.isnan(stats["brightest_mag"])

    @pytest.mark.parametrize(
        "record",
        [
            {"hip": 1, "ra": 10.0, "dec": 5.0},
            {"hip": 1, "ra": "east", "dec": 5.0, "mag": 1.0},
            {"hip": 1, "ra": 360.0, "dec": 5.0, "mag": 1.0},
            {"hip": 1, "ra": 10.0, "dec": -91.0, "mag": 1.0},
        ],
    )
    def test_invalid_records(self, record):
        with pytest.raises(ValueError):
            catalog_from_records([record])

    def test_json_file(self, tmp_path):
        path = tmp_path / "stars.json"
        path.write_text(json.dumps({"meta": {"epoch": "J2000"}, "stars": self.RECORDS}), encoding="utf-8")
        catalog = load_catalog_json(path)
        assert catalog.meta.epoch == "J2000"
        assert len(catalog.stars) == 3


@pytest.mark.unit
class TestConstellationFigures:
    def test_chains_shared_endpoints(self, frame, fab):
        figures = load_constellation_figures(frame, fab)
        canis_major = figures[0]
        assert canis_major.name == CONSTELLATION_NAMES["CMa"] == "Canis Major"
        assert len(canis_major.lines) == 2
        assert len(canis_major.lines[0]) == 3
        assert canis_major.lines[0][0] == SkyVertex(101.287, -16.716)
        assert canis_major.lines[1] == (SkyVertex(20.0, -5.0), SkyVertex(10.0, 5.0))

    def test_unknown_stars_skipped(self, frame, fab):
        names = [f.name for f in load_constellation_figures(frame, fab)]
        # Lyr references only unknown stars; Xyz only a star without position.
        assert names == ["Canis Major"]

    def test_custom_names(self, frame, fab):
        figures = load_constellation_figures(frame, fab, names={"CMa": "Great Dog"})
        assert figures[0].name == "Great Dog"

    def test_json_file(self, tmp_path):
        path = tmp_path / "constellations.json"
        path.write_text(
            json.dumps(
                {"constellations": [{"name": "Lyra", "lines": [[{"ra": 279.2, "dec": 38.8}, {"ra": 281.2, "dec": 37.6}]]}]}
            ),
            encoding="utf-8",
        )
        (lyra,) = load_constellations_json(path)
        assert lyra.name == "Lyra"
        assert lyra.lines == ((SkyVertex(279.2, 38.8), SkyVertex(281.2, 37.6)),)


class _Angle:
    def __init__(self, degrees):
        self.degrees = degrees


class _Observed:
    def __init__(self, target, altitude, azimuth):
        self.target = target
        self.altitude = altitude
        self.azimuth = azimuth

    def apparent(self):
        return self

    def altaz(self, temperature_C=None):
        return _Angle(self.altitude), _Angle(self.azimuth), None


class _Located:
    """Stands in for a skyfield topocentric position at one instant."""

    def __init__(self, star=(45.0, 90.0), planets=None, error=None):
        self.star = star
        self.planets = planets or {}
        self.error = error

    def observe(self, body):
        if self.error is not None:
            raise self.error
        if isinstance(body, str):
            return _Observed(body, *self.planets[body])
        return _Observed(body, *self.star)


@pytest.fixture
def offline_observer():
    return create_observer(51.4772, -0.0005, 0.0, datetime(1995, 1, 15, 0, 0, tzinfo=utc))


@pytest.fixture
def offline_ephemeris(tmp_path):
    return SkyfieldEphemeris(Settings(tmp_path, "de421.bsp", "INFO", tmp_path))


@pytest.mark.unit
class TestSkyfieldEphemerisErrors:
    def test_star_position(self, offline_ephemeris, offline_observer, monkeypatch):
        monkeypatch.setattr(offline_ephemeris, "_observer_at", lambda observer: _Located((30.5, 271.0)))
        coords = offline_ephemeris.horizontal_coordinates(279.2, 38.8, offline_observer)
        assert (coords.altitude_deg, coords.azimuth_deg) == (30.5, 271.0)

    @pytest.mark.parametrize("error", [ValueError("bad date"), ZeroDivisionError("degenerate")])
    def test_computation_errors_are_transient(self, offline_ephemeris, offline_observer, monkeypatch, error):
        monkeypatch.setattr(offline_ephemeris, "_observer_at", lambda observer: _Located(error=error))
        with pytest.raises(TransientResolutionFailure, match="ra=279.2000"):
            offline_ephemeris.horizontal_coordinates(279.2, 38.8, offline_observer)

    def test_observer_failure_is_transient(self, offline_ephemeris, offline_observer, monkeypatch):
        def fail(observer):
            raise ValueError("ephemeris does not cover this date")

        monkeypatch.setattr(offline_ephemeris, "_observer_at", fail)
        with pytest.raises(TransientResolutionFailure):
            offline_ephemeris.horizontal_coordinates(0.0, 0.0, offline_observer)

    def test_non_finite_result_is_transient(self, offline_ephemeris, offline_observer, monkeypatch):
        located = _Located((float("nan"), 10.0))
        monkeypatch.setattr(offline_ephemeris, "_observer_at", lambda observer: located)
        with pytest.raises(TransientResolutionFailure, match="non-finite"):
            offline_ephemeris.horizontal_coordinates(0.0, 0.0, offline_observer)

    def test_missing_planet_omitted(self, offline_ephemeris, offline_observer, monkeypatch, caplog):
        segments = {name: (20.0 + i, 100.0 + i) for i, name in enumerate(
            ["mercury", "venus", "jupiter barycenter", "saturn barycenter"]
        )}
        located = _Located(planets=segments)
        # Kernel without Mars: indexing it raises KeyError.
        kernel = {name: name for name in segments}
        monkeypatch.setattr(offline_ephemeris, "_observer_at", lambda observer: located)
        monkeypatch.setattr(SkyfieldEphemeris, "eph", property(lambda self: kernel))

        def magnitude(apparent):
            if apparent.target == "venus":
                raise ValueError("phase angle out of range")
            return 1.25

        monkeypatch.setattr("skydisc.compute.planetary_magnitude", magnitude)
        with caplog.at_level("WARNING", logger="skydisc.compute"):
            positions = offline_ephemeris.planet_positions(offline_observer)

        assert [p.name for p in positions] == ["Mercury", "Venus", "Jupiter", "Saturn"]
        assert positions[0].magnitude == 1.25
        assert math.isnan(positions[1].magnitude)
        assert (positions[2].altitude_deg, positions[2].azimuth_deg) == (22.0, 102.0)
        assert "Omitting planet Mars" in caplog.text


def _ephemeris_available():
    settings = load_settings()
    return (settings.data_dir / settings.ephemeris).exists()


@pytest.mark.skipif(not _ephemeris_available(), reason="JPL ephemeris not downloaded")
class TestSkyfieldEphemeris:
    @pytest.fixture
    def observer(self):
        return create_observer(51.4772, -0.0005, 0.0, datetime(1995, 1, 15, 0, 0, tzinfo=utc))

    def test_polaris_altitude_tracks_latitude(self, observer):
        coords = SkyfieldEphemeris().horizontal_coordinates(37.955, 89.264, observer)
        assert coords.altitude_deg == pytest.approx(51.5, abs=1.5)
        assert 0 <= coords.azimuth_deg < 360

    def test_planets(self, observer):
        positions = SkyfieldEphemeris().planet_positions(observer)
        assert [p.name for p in positions] == ["Mercury", "Venus", "Mars", "Jupiter", "Saturn"]
        assert all(-90 <= p.altitude_deg <= 90 for p in positions)
