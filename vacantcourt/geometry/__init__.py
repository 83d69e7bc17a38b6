# Geometry Module

from .box import BoundingBox, calculate_iou
from .polygon import (
    Point,
    normalized_to_absolute,
    absolute_to_normalized,
    point_in_polygon,
    segments_intersect,
    rect_overlaps_polygon,
    polygon_self_intersects,
)

__all__ = [
    'BoundingBox',
    'calculate_iou',
    'Point',
    'normalized_to_absolute',
    'absolute_to_normalized',
    'point_in_polygon',
    'segments_intersect',
    'rect_overlaps_polygon',
    'polygon_self_intersects',
]
