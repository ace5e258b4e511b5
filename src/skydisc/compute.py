"""Astronomy computation layer: skyfield ephemeris, star catalogue and constellation figures.

Nothing is downloaded at import time. The skyfield loader, timescale and JPL
ephemeris are created on first use and cached per process.
"""

from __future__ import annotations

import json
import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd
from skyfield.api import Loader, Star, wgs84
from skyfield.data import hipparcos
from skyfield.magnitudelib import planetary_magnitude

from skydisc.config import Settings, load_settings
from skydisc.ephemeris import TransientResolutionFailure
from skydisc.models import (
    CatalogMeta,
    CatalogStar,
    ConstellationFigure,
    HorizontalCoordinates,
    Observer,
    PlanetPosition,
    SkyVertex,
    StarCatalog,
)

logger = logging.getLogger(__name__)

HIPPARCOS_SOURCE = "Hipparcos (ESA 1997)"
HIPPARCOS_EPOCH = "J1991.25"

# Display name and ephemeris segment of each naked-eye planet.
PLANETS: tuple[tuple[str, str], ...] = (
    ("Mercury", "mercury"),
    ("Venus", "venus"),
    ("Mars", "mars barycenter"),
    ("Jupiter", "jupiter barycenter"),
    ("Saturn", "saturn barycenter"),
)

# Proper names of the brightest stars, by Hipparcos number.
BRIGHT_STAR_NAMES: dict[int, str] = {
    677: "Alpheratz",
    3419: "Diphda",
    5447: "Mirach",
    7588: "Achernar",
    9884: "Hamal",
    11767: "Polaris",
    14576: "Algol",
    15863: "Mirfak",
    21421: "Aldebaran",
    24436: "Rigel",
    24608: "Capella",
    25336: "Bellatrix",
    25428: "Elnath",
    26311: "Alnilam",
    26727: "Alnitak",
    27366: "Saiph",
    27989: "Betelgeuse",
    28360: "Menkalinan",
    30324: "Mirzam",
    30438: "Canopus",
    31681: "Alhena",
    32349: "Sirius",
    33579: "Adhara",
    34444: "Wezen",
    36850: "Castor",
    37279: "Procyon",
    37826: "Pollux",
    41037: "Avior",
    46390: "Alphard",
    49669: "Regulus",
    54061: "Dubhe",
    57632: "Denebola",
    60718: "Acrux",
    61084: "Gacrux",
    62434: "Mimosa",
    62956: "Alioth",
    65474: "Spica",
    67301: "Alkaid",
    68702: "Hadar",
    68933: "Menkent",
    69673: "Arcturus",
    72607: "Kochab",
    80763: "Antares",
    82273: "Atria",
    85927: "Shaula",
    86032: "Rasalhague",
    86228: "Sargas",
    90185: "Kaus Australis",
    91262: "Vega",
    92855: "Nunki",
    97649: "Altair",
    100751: "Peacock",
    102098: "Deneb",
    109268: "Alnair",
    113368: "Fomalhaut",
}

CONSTELLATION_NAMES: dict[str, str] = {
    "And": "Andromeda", "Ant": "Antlia", "Aps": "Apus", "Aql": "Aquila",
    "Aqr": "Aquarius", "Ara": "Ara", "Ari": "Aries", "Aur": "Auriga",
    "Boo": "Bootes", "CMa": "Canis Major", "CMi": "Canis Minor", "CVn": "Canes Venatici",
    "Cae": "Caelum", "Cam": "Camelopardalis", "Cap": "Capricornus", "Car": "Carina",
    "Cas": "Cassiopeia", "Cen": "Centaurus", "Cep": "Cepheus", "Cet": "Cetus",
    "Cha": "Chamaeleon", "Cir": "Circinus", "Cnc": "Cancer", "Col": "Columba",
    "Com": "Coma Berenices", "CrA": "Corona Australis", "CrB": "Corona Borealis", "Crt": "Crater",
    "Cru": "Crux", "Crv": "Corvus", "Cyg": "Cygnus", "Del": "Delphinus",
    "Dor": "Dorado", "Dra": "Draco", "Equ": "Equuleus", "Eri": "Eridanus",
    "For": "Fornax", "Gem": "Gemini", "Gru": "Grus", "Her": "Hercules",
    "Hor": "Horologium", "Hya": "Hydra", "Hyi": "Hydrus", "Ind": "Indus",
    "LMi": "Leo Minor", "Lac": "Lacerta", "Leo": "Leo", "Lep": "Lepus",
    "Lib": "Libra", "Lup": "Lupus", "Lyn": "Lynx", "Lyr": "Lyra",
    "Men": "Mensa", "Mic": "Microscopium", "Mon": "Monoceros", "Mus": "Musca",
    "Nor": "Norma", "Oct": "Octans", "Oph": "Ophiuchus", "Ori": "Orion",
    "Pav": "Pavo", "Peg": "Pegasus", "Per": "Perseus", "Phe": "Phoenix",
    "Pic": "Pictor", "PsA": "Piscis Austrinus", "Psc": "Pisces", "Pup": "Puppis",
    "Pyx": "Pyxis", "Ret": "Reticulum", "Scl": "Sculptor", "Sco": "Scorpius",
    "Sct": "Scutum", "Ser": "Serpens", "Sex": "Sextans", "Sge": "Sagitta",
    "Sgr": "Sagittarius", "Tau": "Taurus", "Tel": "Telescopium", "TrA": "Triangulum Australe",
    "Tri": "Triangulum", "Tuc": "Tucana", "UMa": "Ursa Major", "UMi": "Ursa Minor",
    "Vel": "Vela", "Vir": "Virgo", "Vol": "Volans", "Vul": "Vulpecula",
}


@lru_cache(maxsize=None)
def get_loader(data_dir: str) -> Loader:
    return Loader(data_dir)


@lru_cache(maxsize=None)
def get_timescale(data_dir: str):
    return get_loader(data_dir).timescale()


@lru_cache(maxsize=None)
def load_ephemeris(data_dir: str, filename: str):
    """JPL ephemeris, downloaded into ``data_dir`` on first use."""
    logger.info("Loading ephemeris %s from %s", filename, data_dir)
    return get_loader(data_dir)(filename)


class SkyfieldEphemeris:
    """Ephemeris provider backed by skyfield and a JPL ephemeris.

    Apparent positions include aberration and nutation, with standard
    atmospheric refraction applied to the altitude.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or load_settings()
        self.data_dir = str(settings.data_dir)
        self.ephemeris_name = settings.ephemeris
        self._located: tuple[Observer, Any] | None = None

    @property
    def eph(self):
        return load_ephemeris(self.data_dir, self.ephemeris_name)

    def _observer_at(self, observer: Observer):
        """Topocentric position of the observer at its instant, reused across queries."""
        if self._located is not None and self._located[0] == observer:
            return self._located[1]
        t = get_timescale(self.data_dir).from_datetime(observer.instant)
        site = self.eph["earth"] + wgs84.latlon(
            latitude_degrees=observer.latitude,
            longitude_degrees=observer.longitude,
            elevation_m=observer.elevation,
        )
        located = site.at(t)
        self._located = (observer, located)
        return located

    def horizontal_coordinates(
        self, ra_deg: float, dec_deg: float, observer: Observer
    ) -> HorizontalCoordinates:
        star = Star(ra_hours=ra_deg / 15.0, dec_degrees=dec_deg)
        try:
            apparent = self._observer_at(observer).observe(star).apparent()
            alt, az, _ = apparent.altaz("standard")
        except (ValueError, ArithmeticError) as exc:
            raise TransientResolutionFailure(
                f"ra={ra_deg:.4f} dec={dec_deg:.4f}: {exc}"
            ) from exc
        altitude, azimuth = float(alt.degrees), float(az.degrees)
        if not (math.isfinite(altitude) and math.isfinite(azimuth)):
            raise TransientResolutionFailure(f"ra={ra_deg:.4f} dec={dec_deg:.4f}: non-finite result")
        return HorizontalCoordinates(altitude_deg=altitude, azimuth_deg=azimuth)

    def planet_positions(self, observer: Observer) -> list[PlanetPosition]:
        located = self._observer_at(observer)
        positions: list[PlanetPosition] = []
        for name, segment in PLANETS:
            try:
                apparent = located.observe(self.eph[segment]).apparent()
                alt, az, _ = apparent.altaz("standard")
            except (KeyError, ValueError, ArithmeticError) as exc:
                logger.warning("Omitting planet %s: %s", name, exc)
                continue
            try:
                magnitude = float(planetary_magnitude(apparent))
            except ValueError:
                magnitude = float("nan")
            positions.append(
                PlanetPosition(
                    name=name,
                    altitude_deg=float(alt.degrees),
                    azimuth_deg=float(az.degrees),
                    magnitude=magnitude,
                )
            )
        return positions


def load_hipparcos_frame(settings: Settings | None = None) -> pd.DataFrame:
    """Hipparcos main catalogue as a dataframe indexed by HIP number."""
    settings = settings or load_settings()
    loader = get_loader(str(settings.data_dir))
    with loader.open(hipparcos.URL) as f:
        return hipparcos.load_dataframe(f)


def catalog_from_frame(
    frame: pd.DataFrame,
    magnitude_limit: float = 6.5,
    names: Mapping[int, str] | None = None,
) -> StarCatalog:
    """Build a StarCatalog from a skyfield Hipparcos dataframe.

    Rows without a position or magnitude are dropped. Stars are ordered by
    HIP number.
    """
    names = BRIGHT_STAR_NAMES if names is None else names
    frame = frame.dropna(subset=["ra_degrees", "dec_degrees", "magnitude"])
    frame = frame[frame["magnitude"] <= magnitude_limit].sort_index()

    stars = tuple(
        CatalogStar(
            hip=int(hip),
            ra_deg=float(row.ra_degrees),
            dec_deg=float(row.dec_degrees),
            magnitude=float(row.magnitude),
            name=names.get(int(hip)),
        )
        for hip, row in zip(frame.index, frame.itertuples(index=False))
    )
    meta = CatalogMeta(
        source=HIPPARCOS_SOURCE,
        epoch=HIPPARCOS_EPOCH,
        total_count=len(stars),
        magnitude_limit=magnitude_limit,
    )
    logger.info("Loaded %d catalogue stars (mag <= %.1f)", len(stars), magnitude_limit)
    return StarCatalog(meta=meta, stars=stars)


def load_hipparcos_catalog(
    magnitude_limit: float = 6.5, settings: Settings | None = None
) -> StarCatalog:
    """Hipparcos stars down to ``magnitude_limit``, downloading the catalogue if needed."""
    return catalog_from_frame(load_hipparcos_frame(settings), magnitude_limit)


def catalog_from_records(
    records: Iterable[Mapping[str, Any]],
    meta: Mapping[str, Any] | None = None,
) -> StarCatalog:
    """Build a StarCatalog from plain records.

    Args:
        records: Mappings with ``hip``, ``ra``, ``dec``, ``mag`` and an
            optional ``name``, all in degrees.
        meta: Optional ``source``, ``epoch`` and ``magLimit`` entries.

    Raises:
        ValueError: A record lacks a required field or is out of range.
    """
    stars: list[CatalogStar] = []
    for i, record in enumerate(records):
        try:
            star = CatalogStar(
                hip=int(record["hip"]),
                ra_deg=float(record["ra"]),
                dec_deg=float(record["dec"]),
                magnitude=float(record["mag"]),
                name=record.get("name") or None,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid catalogue record #{i}: {exc}") from exc
        if not (0 <= star.ra_deg < 360 and -90 <= star.dec_deg <= 90):
            raise ValueError(f"Catalogue record #{i} (HIP {star.hip}) out of range")
        stars.append(star)

    meta = meta or {}
    mags = [s.magnitude for s in stars]
    return StarCatalog(
        meta=CatalogMeta(
            source=str(meta.get("source", "unknown")),
            epoch=str(meta.get("epoch", "J2000")),
            total_count=len(stars),
            magnitude_limit=float(meta.get("magLimit", max(mags) if mags else 0.0)),
        ),
        stars=tuple(stars),
    )


def load_catalog_json(path: Path) -> StarCatalog:
    """Load a ``{"meta": {...}, "stars": [...]}`` catalogue file."""
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    return catalog_from_records(data["stars"], data.get("meta"))


def load_constellation_figures(
    frame: pd.DataFrame,
    fab_path: Path | None = None,
    names: Mapping[str, str] | None = None,
    settings: Settings | None = None,
) -> tuple[ConstellationFigure, ...]:
    """Parse a Stellarium ``constellationship.fab`` into RA/Dec stick figures.

    File format: ``IAU_abbr line_pair_count HIP1 HIP2 HIP3 HIP4 ...``.
    Consecutive HIP pairs are segments; segments sharing an endpoint are
    chained into polylines. Segments naming a star missing from ``frame``
    are skipped.

    Args:
        frame: Hipparcos dataframe supplying star positions.
        fab_path: Defaults to ``<data_dir>/constellationship.fab``.
        names: Abbreviation to display name; defaults to the Latin names.
        settings: Used to locate the default file.

    Returns:
        One figure per constellation in file order.
    """
    if fab_path is None:
        fab_path = (settings or load_settings()).data_dir / "constellationship.fab"
    names = CONSTELLATION_NAMES if names is None else names

    positions = frame.dropna(subset=["ra_degrees", "dec_degrees"])
    vertex_of: dict[int, SkyVertex] = {
        int(hip): SkyVertex(ra_deg=float(ra), dec_deg=float(dec))
        for hip, ra, dec in zip(positions.index, positions["ra_degrees"], positions["dec_degrees"])
    }

    figures: list[ConstellationFigure] = []
    with fab_path.open(encoding="utf-8") as f:
        for raw in f:
            parts = raw.split()
            if len(parts) < 4 or raw.lstrip().startswith("#"):
                continue
            abbr = parts[0]
            hips = [int(p) for p in parts[2:]]
            polylines: list[list[SkyVertex]] = []
            last_hip: int | None = None
            for i in range(0, len(hips) - 1, 2):
                a, b = hips[i], hips[i + 1]
                if a not in vertex_of or b not in vertex_of:
                    logger.debug("%s: skipping segment %d-%d with unknown star", abbr, a, b)
                    last_hip = None
                    continue
                if last_hip == a and polylines:
                    polylines[-1].append(vertex_of[b])
                else:
                    polylines.append([vertex_of[a], vertex_of[b]])
                last_hip = b
            if polylines:
                figures.append(
                    ConstellationFigure(
                        name=names.get(abbr, abbr),
                        lines=tuple(tuple(p) for p in polylines),
                    )
                )
    return tuple(figures)


def load_constellations_json(path: Path) -> tuple[ConstellationFigure, ...]:
    """Load ``{"constellations": [{"name": ..., "lines": [[{"ra", "dec"}, ...]]}]}``."""
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    return tuple(
        ConstellationFigure(
            name=entry["name"],
            lines=tuple(
                tuple(SkyVertex(ra_deg=float(v["ra"]), dec_deg=float(v["dec"])) for v in polyline)
                for polyline in entry["lines"]
            ),
        )
        for entry in data["constellations"]
    )
