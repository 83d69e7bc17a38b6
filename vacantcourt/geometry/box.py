"""
Bounding Box Module

Axis-aligned boxes in pixel coordinates and the overlap metrics used
by non-maximum suppression.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle (left, top, right, bottom) in pixels."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def corners(self) -> Tuple[Tuple[float, float], ...]:
        """Return the four corners in clockwise order starting top-left."""
        return (
            (self.left, self.top),
            (self.right, self.top),
            (self.right, self.bottom),
            (self.left, self.bottom),
        )

    def contains(self, x: float, y: float) -> bool:
        """Check whether a point lies inside or on the box edges."""
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def to_xyxy(self) -> Tuple[float, float, float, float]:
        """Return box as an (x1, y1, x2, y2) tuple."""
        return (self.left, self.top, self.right, self.bottom)


def calculate_iou(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """
    Calculate Intersection over Union of two boxes.

    Args:
        box_a: First box
        box_b: Second box

    Returns:
        IoU in [0, 1]; 0 when the boxes do not intersect
    """
    x1 = max(box_a.left, box_b.left)
    y1 = max(box_a.top, box_b.top)
    x2 = min(box_a.right, box_b.right)
    y2 = min(box_a.bottom, box_b.bottom)

    intersection = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    if intersection <= 0:
        return 0.0

    union = box_a.area + box_b.area - intersection
    return intersection / union if union > 0 else 0.0
