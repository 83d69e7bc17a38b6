# Court Store Module

from .models import (
    PointData,
    CourtRecord,
    ComplexRecord,
    parse_complex,
    dump_complex,
)
from .base import CourtStore, UpdateOutcome, validate_region
from .memory_store import InMemoryCourtStore

__all__ = [
    'PointData',
    'CourtRecord',
    'ComplexRecord',
    'parse_complex',
    'dump_complex',
    'CourtStore',
    'UpdateOutcome',
    'validate_region',
    'InMemoryCourtStore',
]
