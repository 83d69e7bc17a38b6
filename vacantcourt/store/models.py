"""
Court Record Models

Explicit schemas for the persisted tennis-complex documents.

A complex document holds a name and a list of court records:

    {
        "name": "Riverside Tennis Center",
        "courts": [
            {
                "name": "Court 1",
                "status": "available",
                "isConfigured": true,
                "surface": "hard",
                "regionPoints": [{"x": 0.1, "y": 0.2}, ...],
                "lastUpdatedStatus": 1700000000000
            }
        ]
    }

The document id is the complex id.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, validate

from ..courts import CourtRegion, CourtStatus
from ..errors import ConfigLoadError


@dataclass
class PointData:
    """Normalized polygon vertex."""
    x: float
    y: float


@dataclass
class CourtRecord:
    """Persisted state of a single court."""
    name: str
    status: CourtStatus = CourtStatus.AVAILABLE
    is_configured: bool = False
    surface: str = ""
    region_points: Optional[List[PointData]] = None
    last_updated_status: Optional[int] = None

    @property
    def has_region(self) -> bool:
        return bool(self.region_points)

    def to_region(self) -> CourtRegion:
        points = [(p.x, p.y) for p in self.region_points or []]
        return CourtRegion.from_points(self.name, points)


@dataclass
class ComplexRecord:
    """A tennis complex and its courts."""
    id: str
    name: str = ""
    courts: List[CourtRecord] = field(default_factory=list)

    def has_unconfigured_courts(self) -> bool:
        return any(not court.is_configured for court in self.courts)

    def find_court(self, name: str) -> Optional[CourtRecord]:
        for court in self.courts:
            if court.name == name:
                return court
        return None

    def configured_regions(self) -> List[CourtRegion]:
        """Regions of courts that are configured and have region points."""
        return [
            court.to_region()
            for court in self.courts
            if court.is_configured and court.has_region
        ]

    def statuses(self) -> Dict[str, CourtStatus]:
        """Stored status of every configured court with a region."""
        return {
            court.name: court.status
            for court in self.courts
            if court.is_configured and court.has_region
        }


class PointSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    x = fields.Float(required=True)
    y = fields.Float(required=True)

    @post_load
    def make_point(self, data, **kwargs):
        return PointData(**data)


class CourtSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(required=True, validate=validate.Length(min=1))
    status = fields.Enum(CourtStatus, by_value=True, load_default=CourtStatus.AVAILABLE)
    is_configured = fields.Boolean(data_key="isConfigured", load_default=False)
    surface = fields.String(load_default="")
    region_points = fields.List(
        fields.Nested(PointSchema),
        data_key="regionPoints",
        allow_none=True,
        load_default=None
    )
    last_updated_status = fields.Integer(
        data_key="lastUpdatedStatus",
        allow_none=True,
        load_default=None
    )

    @post_load
    def make_court(self, data, **kwargs):
        return CourtRecord(**data)


class ComplexSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    id = fields.String(required=True)
    name = fields.String(load_default="")
    courts = fields.List(fields.Nested(CourtSchema), load_default=list)

    @post_load
    def make_complex(self, data, **kwargs):
        return ComplexRecord(**data)


def parse_complex(complex_id: str, document: Optional[Mapping[str, Any]]) -> ComplexRecord:
    """
    Validate a raw complex document.

    Args:
        complex_id: Document id
        document: Raw document body

    Returns:
        ComplexRecord

    Raises:
        ConfigLoadError: Document missing or not matching the schema
    """
    if document is None:
        raise ConfigLoadError(f"Complex document is empty: {complex_id}")

    payload = dict(document)
    payload['id'] = complex_id
    try:
        return ComplexSchema().load(payload)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid complex document {complex_id}: {e.messages}") from e


def dump_complex(record: ComplexRecord) -> Dict[str, Any]:
    """Serialize a complex into its document body (without the id)."""
    return ComplexSchema(exclude=('id',)).dump(record)
