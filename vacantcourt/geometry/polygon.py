"""
Polygon Geometry Module

Point-in-polygon testing, rectangle/polygon overlap, segment
intersection and normalized coordinate mapping for court regions.

Polygons are closed loops given as a sequence of (x, y) vertices; the
last vertex connects implicitly to the first.
"""

from typing import List, Sequence, Tuple

from .box import BoundingBox

Point = Tuple[float, float]


def normalized_to_absolute(
    points: Sequence[Point],
    width: float,
    height: float
) -> List[Point]:
    """
    Map normalized [0, 1] points onto a frame of the given size.

    Args:
        points: Normalized polygon vertices
        width: Frame width in pixels
        height: Frame height in pixels

    Returns:
        Vertices in pixel coordinates
    """
    return [(x * width, y * height) for x, y in points]


def absolute_to_normalized(
    points: Sequence[Point],
    width: float,
    height: float
) -> List[Point]:
    """Map pixel points back into normalized [0, 1] coordinates."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid frame size: {width}x{height}")
    return [(x / width, y / height) for x, y in points]


def point_in_polygon(x: float, y: float, polygon: Sequence[Point]) -> bool:
    """
    Even-odd ray casting test.

    Casts a horizontal ray to the right of the point and counts edge
    crossings. Each edge is half-open in y so shared vertices are not
    counted twice.

    Args:
        x: Point x coordinate
        y: Point y coordinate
        polygon: Polygon vertices

    Returns:
        True if the point is inside the polygon
    """
    n = len(polygon)
    if n < 3:
        return False

    inside = False
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]

        if (y1 <= y < y2) or (y2 <= y < y1):
            x_cross = (x2 - x1) * (y - y1) / (y2 - y1) + x1
            if x < x_cross:
                inside = not inside

    return inside


def _orientation(a: Point, b: Point, c: Point) -> int:
    """Return 0 for collinear, 1 for clockwise, 2 for counterclockwise."""
    value = (b[1] - a[1]) * (c[0] - b[0]) - (b[0] - a[0]) * (c[1] - b[1])
    if value == 0:
        return 0
    return 1 if value > 0 else 2


def _on_segment(p: Point, q: Point, r: Point) -> bool:
    """Check whether q lies within the bounding box of segment pr."""
    return (
        min(p[0], r[0]) <= q[0] <= max(p[0], r[0]) and
        min(p[1], r[1]) <= q[1] <= max(p[1], r[1])
    )


def segments_intersect(
    p1: Point,
    p2: Point,
    p3: Point,
    p4: Point,
    allow_shared_endpoints: bool = True
) -> bool:
    """
    Check whether segment p1p2 intersects segment p3p4.

    Args:
        p1, p2: First segment
        p3, p4: Second segment
        allow_shared_endpoints: When False, two segments that cross only
            at a common endpoint are treated as touching, not crossing

    Returns:
        True if the segments intersect
    """
    o1 = _orientation(p1, p2, p3)
    o2 = _orientation(p1, p2, p4)
    o3 = _orientation(p3, p4, p1)
    o4 = _orientation(p3, p4, p2)

    if o1 != o2 and o3 != o4:
        if not allow_shared_endpoints and (p1 == p3 or p1 == p4 or p2 == p3 or p2 == p4):
            return False
        return True

    # Collinear special cases
    if o1 == 0 and _on_segment(p1, p3, p2):
        return True
    if o2 == 0 and _on_segment(p1, p4, p2):
        return True
    if o3 == 0 and _on_segment(p3, p1, p4):
        return True
    if o4 == 0 and _on_segment(p3, p2, p4):
        return True

    return False


def _edges(points: Sequence[Point]) -> List[Tuple[Point, Point]]:
    n = len(points)
    return [(points[i], points[(i + 1) % n]) for i in range(n)]


def rect_overlaps_polygon(rect: BoundingBox, polygon: Sequence[Point]) -> bool:
    """
    Check whether a rectangle overlaps a polygon.

    True if any rectangle corner lies inside the polygon, any polygon
    vertex lies inside the rectangle, or any rectangle edge intersects a
    polygon edge (partial edge crossings where no vertex is contained).

    Args:
        rect: Rectangle in the polygon's coordinate space
        polygon: Polygon vertices

    Returns:
        True if the shapes overlap
    """
    if len(polygon) < 3:
        return False

    if any(point_in_polygon(cx, cy, polygon) for cx, cy in rect.corners()):
        return True

    if any(rect.contains(px, py) for px, py in polygon):
        return True

    for a, b in _edges(rect.corners()):
        for c, d in _edges(polygon):
            if segments_intersect(a, b, c, d):
                return True

    return False


def polygon_self_intersects(points: Sequence[Point]) -> bool:
    """
    Check whether any two non-adjacent polygon edges cross.

    Args:
        points: Polygon vertices

    Returns:
        True if the polygon is self-intersecting
    """
    n = len(points)
    # A triangle cannot self-intersect
    if n < 4:
        return False

    for i in range(n):
        p1 = points[i]
        p2 = points[(i + 1) % n]

        for j in range(i + 2, n):
            # Skip the edge adjacent to edge i through the closing vertex
            if (j + 1) % n == i:
                continue

            p3 = points[j]
            p4 = points[(j + 1) % n]

            if segments_intersect(p1, p2, p3, p4, allow_shared_endpoints=False):
                return True

    return False
