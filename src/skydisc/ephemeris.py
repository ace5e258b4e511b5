"""Interfaces the geometry builder consumes from the astronomy layer."""

from __future__ import annotations

from typing import Protocol

from skydisc.models import (
    HorizontalCoordinates,
    Observer,
    PlanetPosition,
)


class TransientResolutionFailure(RuntimeError):
    """A single body's coordinates could not be computed.

    Callers omit that body and carry on; it never aborts a whole build.
    """


class EphemerisProvider(Protocol):
    def horizontal_coordinates(
        self, ra_deg: float, dec_deg: float, observer: Observer
    ) -> HorizontalCoordinates:
        """Alt/az of a fixed RA/Dec position. May raise TransientResolutionFailure."""
        ...

    def planet_positions(self, observer: Observer) -> list[PlanetPosition]:
        """Positions of the naked-eye planets. Unresolvable bodies are left out."""
        ...
