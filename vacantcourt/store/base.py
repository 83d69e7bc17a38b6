"""
Court Store Interface

Abstract persistence API for tennis-complex documents, plus validation
shared by every backend.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Mapping, Optional, Sequence

from ..courts import CourtStatus
from ..errors import RecordNotFound
from ..geometry import polygon_self_intersects
from .models import ComplexRecord, PointData

MIN_REGION_POINTS = 3


class UpdateOutcome(Enum):
    """Result of a status update transaction."""
    WRITTEN = "written"
    NO_OP = "no_op"


def validate_region(court_name: str, points: Sequence[PointData]) -> None:
    """
    Check a normalized court polygon before saving it.

    Raises:
        ValueError: Too few points, coordinates outside [0, 1], or a
            self-intersecting outline
    """
    if len(points) < MIN_REGION_POINTS:
        raise ValueError(
            f"Court '{court_name}' needs at least {MIN_REGION_POINTS} points, got {len(points)}"
        )
    for p in points:
        if not (0.0 <= p.x <= 1.0 and 0.0 <= p.y <= 1.0):
            raise ValueError(f"Court '{court_name}' has point outside [0, 1]: ({p.x}, {p.y})")
    if polygon_self_intersects([(p.x, p.y) for p in points]):
        raise ValueError(f"Court '{court_name}' region is self-intersecting")


class CourtStore(ABC):
    """Persistence backend for complexes and court status."""

    @abstractmethod
    def load_complex(self, complex_id: str) -> ComplexRecord:
        """
        Load one complex.

        Raises:
            ConfigLoadError: Missing document or schema mismatch
        """

    @abstractmethod
    def list_complexes(self) -> List[ComplexRecord]:
        """Load every complex; unparseable documents are skipped."""

    @abstractmethod
    def update_court_status(
        self,
        complex_id: str,
        court_name: str,
        status: CourtStatus,
        timestamp_ms: int
    ) -> UpdateOutcome:
        """
        Set one court's status in a single read-modify-write transaction.

        The status and lastUpdatedStatus fields are written together. If
        the stored status already equals status, nothing is written.

        Raises:
            RecordNotFound: Complex or court does not exist
            TransactionConflict: Document changed between read and commit
            NetworkError: Store unreachable
        """

    @abstractmethod
    def save_court_regions(
        self,
        complex_id: str,
        regions: Mapping[str, Sequence[PointData]]
    ) -> int:
        """
        Save normalized polygons and mark those courts configured.

        Returns:
            Number of courts updated

        Raises:
            ValueError: Invalid polygon
            RecordNotFound: Complex or a named court does not exist
        """

    def close(self) -> None:
        """Release backend resources."""


def apply_regions(
    record: ComplexRecord,
    regions: Mapping[str, Sequence[PointData]]
) -> int:
    """Validate and apply regions to a loaded complex in place."""
    for name, points in regions.items():
        validate_region(name, points)

    for name, points in regions.items():
        court = record.find_court(name)
        if court is None:
            raise RecordNotFound(f"Court '{name}' not found in complex {record.id}")
        court.region_points = [PointData(float(p.x), float(p.y)) for p in points]
        court.is_configured = True
    return len(regions)


def apply_status(
    document: Mapping,
    complex_id: str,
    court_name: str,
    status: CourtStatus,
    timestamp_ms: int
) -> Optional[List[dict]]:
    """
    Compute the updated courts list for a raw complex document.

    Returns:
        The new courts list, or None when the stored status already
        matches and nothing should be written

    Raises:
        RecordNotFound: The court is not part of the document
    """
    courts = [dict(court) for court in document.get('courts') or []]
    for court in courts:
        if court.get('name') == court_name:
            if court.get('status') == status.value:
                return None
            court['status'] = status.value
            court['lastUpdatedStatus'] = int(timestamp_ms)
            return courts

    raise RecordNotFound(f"Court '{court_name}' not found in complex {complex_id}")
