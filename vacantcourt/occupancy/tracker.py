"""
Occupancy Tracker Module

Maps person detections onto court polygons and requests status changes
when a court's computed occupancy disagrees with its cached status.
"""

from typing import Dict, List, Optional, Any, Sequence
import logging

from ..courts import CourtRegion, CourtStatus
from ..detection.postprocessor import Detection
from ..geometry import rect_overlaps_polygon
from .status_updater import StatusUpdater

logger = logging.getLogger(__name__)

INFERENCE_INTERVAL_MS = 3000
PERSON_LABEL = "person"


class InferenceThrottle:
    """
    Admits at most one frame per interval.

    Frames are compared by timestamp against the last admitted frame;
    anything sooner than interval_ms is dropped.
    """

    def __init__(self, interval_ms: float = INFERENCE_INTERVAL_MS):
        self.interval_ms = interval_ms
        self._last_admitted: Optional[float] = None

    def admit(self, timestamp_ms: float) -> bool:
        if self._last_admitted is not None and timestamp_ms - self._last_admitted < self.interval_ms:
            return False
        self._last_admitted = timestamp_ms
        return True


class OccupancyTracker:
    """
    Decides per-court occupancy from detections.

    A court is occupied when any person box overlaps its polygon.
    Courts with an update in flight are skipped until it resolves.
    """

    def __init__(
        self,
        regions: Sequence[CourtRegion],
        updater: StatusUpdater,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the tracker.

        Args:
            regions: Configured court regions
            updater: Status updater owning cached statuses
            config: Configuration dictionary
        """
        self.config = config or {}
        self.regions: List[CourtRegion] = list(regions)
        self.updater = updater

        occupancy_config = self.config.get('occupancy', {})
        self.person_label = occupancy_config.get('person_label', PERSON_LABEL).lower()

        for region in self.regions:
            if not region.is_usable:
                logger.warning(
                    f"Court {region.name} has {len(region.normalized_polygon)} points "
                    f"and will never be occupied"
                )

    def is_person(self, detection: Detection) -> bool:
        return detection.class_name.lower() == self.person_label

    def compute_occupancy(
        self,
        detections: Sequence[Detection],
        image_width: float,
        image_height: float
    ) -> Dict[str, bool]:
        """
        Compute occupancy for every court.

        Args:
            detections: Detections in pixels of the upright frame
            image_width: Upright frame width
            image_height: Upright frame height

        Returns:
            Mapping of court name to occupied flag
        """
        people = [d for d in detections if self.is_person(d)]

        occupancy = {}
        for region in self.regions:
            if not region.is_usable:
                occupancy[region.name] = False
                continue

            polygon = region.to_absolute(image_width, image_height)
            occupancy[region.name] = any(
                rect_overlaps_polygon(person.bounding_box, polygon) for person in people
            )
        return occupancy

    def process(
        self,
        detections: Sequence[Detection],
        image_width: float,
        image_height: float
    ) -> Dict[str, bool]:
        """
        Run one occupancy cycle and request any needed status changes.

        Must be called from the dispatcher thread.

        Returns:
            Mapping of court name to occupied flag for this cycle
        """
        occupancy = self.compute_occupancy(detections, image_width, image_height)

        for name, occupied in occupancy.items():
            if self.updater.is_pending(name):
                logger.debug(f"Skipping {name}: update in flight")
                continue

            desired = CourtStatus.from_occupied(occupied)
            if desired != self.updater.cached_status(name):
                self.updater.request_update(name, desired)

        return occupancy
