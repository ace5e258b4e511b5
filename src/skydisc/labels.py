"""Label collision detection for a single geometry build.

Label extents are estimated from a fixed character-width heuristic rather
than measured, so the result is identical for every render backend. A
linear scan over the placed boxes is enough for the few hundred labels a
sky map carries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from skydisc.primitives import Anchor

PlacementPhase = Literal[
    "cardinals",
    "constellation-names",
    "star-names",
    "planets",
    "degree-ring",
]

# Label priority, highest first. Cardinals reserve their space unconditionally;
# every later phase only gets what is left.
PLACEMENT_PHASES: tuple[PlacementPhase, ...] = (
    "cardinals",
    "constellation-names",
    "star-names",
    "planets",
    "degree-ring",
)

CHAR_WIDTH_RATIO = 0.6
LINE_HEIGHT_RATIO = 1.2


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    def intersects(self, other: BoundingBox) -> bool:
        # Touching edges count as a collision.
        return not (
            self.x + self.width < other.x
            or other.x + other.width < self.x
            or self.y + self.height < other.y
            or other.y + other.height < self.y
        )


class LabelCollisionDetector:
    """Tracks placed label boxes and rejects overlapping placements.

    One instance per build; never shared or persisted.
    """

    def __init__(self, padding: float = 2.0) -> None:
        self.padding = padding
        self._placed: list[BoundingBox] = []

    @property
    def placed(self) -> tuple[BoundingBox, ...]:
        return tuple(self._placed)

    def estimate_box(
        self,
        x: float,
        y: float,
        text: str,
        anchor: Anchor = "middle",
        font_size: float = 10.0,
    ) -> BoundingBox:
        """Padded box around a label drawn at (x, y) with a middle baseline."""
        width = len(text) * font_size * CHAR_WIDTH_RATIO
        height = font_size * LINE_HEIGHT_RATIO

        if anchor == "middle":
            left = x - width / 2
        elif anchor == "end":
            left = x - width
        else:
            left = x

        return BoundingBox(
            x=left - self.padding,
            y=y - height / 2 - self.padding,
            width=width + self.padding * 2,
            height=height + self.padding * 2,
        )

    def can_place(
        self,
        x: float,
        y: float,
        text: str,
        anchor: Anchor = "middle",
        font_size: float = 10.0,
    ) -> bool:
        box = self.estimate_box(x, y, text, anchor, font_size)
        return not any(box.intersects(placed) for placed in self._placed)

    def place(
        self,
        x: float,
        y: float,
        text: str,
        anchor: Anchor = "middle",
        font_size: float = 10.0,
    ) -> None:
        """Reserve the label's box without checking for collisions."""
        self._placed.append(self.estimate_box(x, y, text, anchor, font_size))

    def try_place(
        self,
        x: float,
        y: float,
        text: str,
        anchor: Anchor = "middle",
        font_size: float = 10.0,
    ) -> bool:
        """Place the label if it fits. A rejected label is simply dropped."""
        if not self.can_place(x, y, text, anchor, font_size):
            return False
        self.place(x, y, text, anchor, font_size)
        return True
