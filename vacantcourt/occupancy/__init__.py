# Occupancy Module

from .status_updater import StatusUpdater, PendingUpdateSet
from .tracker import OccupancyTracker, InferenceThrottle, INFERENCE_INTERVAL_MS

__all__ = [
    'StatusUpdater',
    'PendingUpdateSet',
    'OccupancyTracker',
    'InferenceThrottle',
    'INFERENCE_INTERVAL_MS',
]
