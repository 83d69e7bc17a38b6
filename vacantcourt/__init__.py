# VacantCourt - Court Occupancy Detection

"""
Live Court Occupancy Detection

This package provides tools for:
- Running an on-device YOLOv5 (TFLite) detector over camera or video frames
- Mapping person detections onto user-defined court polygons
- Persisting debounced per-court occupancy status to a document store
"""

__version__ = "1.0.0"
__author__ = "VacantCourt Project"
