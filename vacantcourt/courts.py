"""
Court Types

Occupancy status values and the normalized court regions that
detections are matched against.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple

from .geometry import Point, normalized_to_absolute


class CourtStatus(str, Enum):
    """Persisted occupancy status of a court."""
    AVAILABLE = "available"
    IN_USE = "in-use"

    @classmethod
    def from_occupied(cls, occupied: bool) -> "CourtStatus":
        return cls.IN_USE if occupied else cls.AVAILABLE


@dataclass(frozen=True)
class CourtRegion:
    """
    Named court polygon in normalized [0, 1] frame coordinates.

    The polygon is a closed loop; a trailing vertex equal to the first
    one is dropped on construction.
    """
    name: str
    normalized_polygon: Tuple[Point, ...] = field(default_factory=tuple)

    def __post_init__(self):
        points = tuple((float(x), float(y)) for x, y in self.normalized_polygon)
        if len(points) > 1 and points[0] == points[-1]:
            points = points[:-1]
        object.__setattr__(self, 'normalized_polygon', points)

    @property
    def is_usable(self) -> bool:
        """Regions with fewer than 3 vertices can never be occupied."""
        return len(self.normalized_polygon) >= 3

    def to_absolute(self, width: float, height: float) -> List[Point]:
        """Return the polygon in pixel coordinates of a width x height frame."""
        return normalized_to_absolute(self.normalized_polygon, width, height)

    @classmethod
    def from_points(cls, name: str, points: Sequence[Point]) -> "CourtRegion":
        return cls(name=name, normalized_polygon=tuple(points))
