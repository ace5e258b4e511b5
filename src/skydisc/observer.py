"""Observer construction, validation and display formatting."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from pytz import UnknownTimeZoneError, timezone, utc
from pytz.exceptions import InvalidTimeError

from skydisc.models import Observer

MIN_ELEVATION_M = -500.0
MAX_ELEVATION_M = 10000.0


class InputValidationError(ValueError):
    """Observer coordinates or instant out of range. Raised before any build."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


PRESET_LOCATIONS: dict[str, tuple[float, float, float]] = {
    # name: (latitude, longitude, elevation_m)
    "Greenwich, UK": (51.4772, -0.0005, 0.0),
    "New York, USA": (40.7128, -74.0060, 10.0),
    "Tokyo, Japan": (35.6762, 139.6503, 40.0),
    "Sydney, Australia": (-33.8688, 151.2093, 58.0),
    "Paris, France": (48.8566, 2.3522, 35.0),
    "Cape Town, South Africa": (-33.9249, 18.4241, 0.0),
    "Mauna Kea, Hawaii": (19.8207, -155.4680, 4207.0),
    "North Pole": (90.0, 0.0, 0.0),
    "South Pole": (-90.0, 0.0, 2835.0),
}


def observer_errors(observer: Observer) -> list[str]:
    """Return every validation problem with ``observer`` (empty when valid)."""
    errors: list[str] = []

    if not math.isfinite(observer.latitude) or not -90 <= observer.latitude <= 90:
        errors.append("Latitude must be between -90 and 90 degrees")
    if not math.isfinite(observer.longitude) or not -180 <= observer.longitude <= 180:
        errors.append("Longitude must be between -180 and 180 degrees")
    if not math.isfinite(observer.elevation) or not (
        MIN_ELEVATION_M <= observer.elevation <= MAX_ELEVATION_M
    ):
        errors.append(
            f"Elevation must be between {MIN_ELEVATION_M:g} and {MAX_ELEVATION_M:g} meters"
        )
    if not isinstance(observer.instant, datetime):
        errors.append("Instant must be a datetime")
    elif observer.instant.tzinfo is None or observer.instant.utcoffset() is None:
        errors.append("Instant must be timezone-aware (UTC)")
    elif observer.instant.utcoffset() != timedelta(0):
        errors.append("Instant must be in UTC; use create_observer to convert")

    return errors


def validate_observer(observer: Observer) -> Observer:
    """Raise InputValidationError unless ``observer`` is in range.

    Values are never clamped; clamping is the caller's decision.
    """
    errors = observer_errors(observer)
    if errors:
        raise InputValidationError(errors)
    return observer


def create_observer(
    latitude: float,
    longitude: float,
    elevation: float,
    when: datetime,
) -> Observer:
    """Build a validated Observer, normalizing an aware ``when`` to UTC."""
    instant = when.astimezone(utc) if when.tzinfo is not None else when
    return validate_observer(
        Observer(
            latitude=latitude,
            longitude=longitude,
            elevation=elevation,
            instant=instant,
        )
    )


def observer_from_local_time(
    latitude: float,
    longitude: float,
    when: str,
    tz_name: str = "UTC",
    elevation: float = 0.0,
) -> Observer:
    """Build an Observer from a local "YYYY-MM-DD HH:MM" string in ``tz_name``.

    Raises:
        InputValidationError: On a malformed time string, unknown time zone,
            or out-of-range coordinates.
    """
    try:
        dt = datetime.strptime(when, "%Y-%m-%d %H:%M")
    except ValueError as exc:
        raise InputValidationError([f"Invalid time {when!r}: {exc}"]) from exc
    try:
        local_tz = timezone(tz_name)
    except UnknownTimeZoneError as exc:
        raise InputValidationError([f"Unknown time zone {tz_name!r}"]) from exc
    try:
        utc_dt = local_tz.localize(dt, is_dst=None).astimezone(utc)
    except InvalidTimeError as exc:
        raise InputValidationError([f"Ambiguous or skipped local time {when!r} in {tz_name}"]) from exc
    return create_observer(latitude, longitude, elevation, utc_dt)


def preset_observer(name: str, when: datetime) -> Observer:
    """Observer at one of PRESET_LOCATIONS."""
    try:
        latitude, longitude, elevation = PRESET_LOCATIONS[name]
    except KeyError as exc:
        raise InputValidationError([f"Unknown preset location {name!r}"]) from exc
    return create_observer(latitude, longitude, elevation, when)


def default_observer(now: datetime | None = None) -> Observer:
    """Greenwich Observatory at ``now`` (defaults to the current UTC time)."""
    when = now if now is not None else datetime.now(utc)
    return preset_observer("Greenwich, UK", when)


def format_location(observer: Observer) -> str:
    """Format as ``"51.48°N, 0.00°W"``."""
    lat_dir = "N" if observer.latitude >= 0 else "S"
    lon_dir = "E" if observer.longitude >= 0 else "W"
    return (
        f"{abs(observer.latitude):.2f}°{lat_dir}, "
        f"{abs(observer.longitude):.2f}°{lon_dir}"
    )


def format_datetime(observer: Observer) -> str:
    """Format as ``"1995-01-15 00:00:00 UTC"``."""
    return observer.instant.astimezone(utc).strftime("%Y-%m-%d %H:%M:%S") + " UTC"
