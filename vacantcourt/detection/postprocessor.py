"""
Detection Postprocessor Module

Turns raw YOLOv5 output rows into scored, de-duplicated detections.

Each row is [cx, cy, w, h, objectness, class_0 ... class_C-1] with box
values normalized to the model input.
"""

import numpy as np
from typing import List, Optional, Dict, Any, Sequence
from dataclasses import dataclass
import logging

from ..geometry import BoundingBox, calculate_iou

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.4
IOU_THRESHOLD = 0.5
MAX_DETECTED_OBJECTS = 10
UNKNOWN_LABEL = "unknown"


@dataclass(frozen=True)
class Detection:
    """A single detected object."""

    # Box in pixels of the upright target frame
    bounding_box: BoundingBox

    # Label from the model's label list
    class_name: str

    # objectness * class score
    confidence: float


def non_max_suppression(
    detections: Sequence[Detection],
    iou_threshold: float = IOU_THRESHOLD,
    max_detections: int = MAX_DETECTED_OBJECTS
) -> List[Detection]:
    """
    Greedy class-agnostic non-maximum suppression.

    Candidates are visited in descending confidence order (ties keep
    input order). Each kept candidate suppresses every later candidate
    whose IoU with it exceeds iou_threshold.

    Args:
        detections: Candidate detections
        iou_threshold: Suppression threshold (strictly greater suppresses)
        max_detections: Maximum number of detections to keep

    Returns:
        Kept detections in descending confidence order
    """
    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    active = [True] * len(ordered)
    kept: List[Detection] = []

    for i, candidate in enumerate(ordered):
        if not active[i]:
            continue

        kept.append(candidate)
        if len(kept) >= max_detections:
            break

        for j in range(i + 1, len(ordered)):
            if active[j] and calculate_iou(candidate.bounding_box, ordered[j].bounding_box) > iou_threshold:
                active[j] = False

    return kept


class DetectionPostprocessor:
    """
    Filters, decodes and de-duplicates raw detector output.

    Thresholds are read from the 'detection' config section.
    """

    def __init__(
        self,
        labels: Sequence[str],
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the postprocessor.

        Args:
            labels: Class labels indexed by class id
            config: Configuration dictionary
        """
        self.labels = list(labels)
        self.config = config or {}

        detection_config = self.config.get('detection', {})
        self.confidence_threshold = detection_config.get('confidence_threshold', CONFIDENCE_THRESHOLD)
        self.iou_threshold = detection_config.get('iou_threshold', IOU_THRESHOLD)
        self.max_detections = detection_config.get('max_detected_objects', MAX_DETECTED_OBJECTS)

    def label_for(self, class_id: int) -> str:
        """Look up a class label, falling back to 'unknown'."""
        if 0 <= class_id < len(self.labels):
            return self.labels[class_id]
        return UNKNOWN_LABEL

    def decode(
        self,
        output: np.ndarray,
        target_width: float,
        target_height: float
    ) -> List[Detection]:
        """
        Decode raw rows into candidate detections before NMS.

        Args:
            output: Array of shape (N, 5 + C)
            target_width: Width of the frame boxes are mapped onto
            target_height: Height of the frame boxes are mapped onto

        Returns:
            Candidates in input row order
        """
        rows = np.asarray(output, dtype=np.float32)
        if rows.ndim != 2 or rows.shape[1] < 6:
            logger.warning(f"Unexpected detector output shape: {rows.shape}")
            return []

        objectness = rows[:, 4]
        class_scores = rows[:, 5:]
        class_ids = np.argmax(class_scores, axis=1)
        best_scores = class_scores[np.arange(len(rows)), class_ids]

        keep = (objectness >= self.confidence_threshold) & (best_scores > self.confidence_threshold)

        cx, cy, w, h = rows[:, 0], rows[:, 1], rows[:, 2], rows[:, 3]
        left = np.clip((cx - w / 2) * target_width, 0, target_width)
        top = np.clip((cy - h / 2) * target_height, 0, target_height)
        right = np.clip((cx + w / 2) * target_width, 0, target_width)
        bottom = np.clip((cy + h / 2) * target_height, 0, target_height)

        keep &= (right > left) & (bottom > top)

        candidates = []
        for idx in np.flatnonzero(keep):
            candidates.append(Detection(
                bounding_box=BoundingBox(
                    float(left[idx]), float(top[idx]), float(right[idx]), float(bottom[idx])
                ),
                class_name=self.label_for(int(class_ids[idx])),
                confidence=float(objectness[idx] * best_scores[idx])
            ))
        return candidates

    def process(
        self,
        output: np.ndarray,
        target_width: float,
        target_height: float
    ) -> List[Detection]:
        """
        Full postprocessing: decode, then non-maximum suppression.

        Args:
            output: Array of shape (N, 5 + C)
            target_width: Upright frame width in pixels
            target_height: Upright frame height in pixels

        Returns:
            At most max_detections detections, highest confidence first
        """
        candidates = self.decode(output, target_width, target_height)
        detections = non_max_suppression(candidates, self.iou_threshold, self.max_detections)
        logger.debug(f"Postprocessed {len(candidates)} candidates into {len(detections)} detections")
        return detections
