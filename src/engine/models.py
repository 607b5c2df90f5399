"""
Value objects shared by the query pipeline.

Geometry is a tagged union (``kind``) parsed once from the ESRI JSON wire
encoding by ``parse_geometry``; downstream code dispatches on the type instead
of probing ``x`` / ``paths`` / ``rings`` fields.
"""

import math
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.config import settings


class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., description="WGS84 latitude")
    lon: float = Field(..., description="WGS84 longitude")


class PointGeometry(BaseModel):
    kind: Literal["point"] = "point"
    lat: float
    lon: float

    @property
    def point(self) -> Point:
        return Point(lat=self.lat, lon=self.lon)


class PolylineGeometry(BaseModel):
    kind: Literal["polyline"] = "polyline"
    paths: List[List[Point]]


class PolygonGeometry(BaseModel):
    kind: Literal["polygon"] = "polygon"
    rings: List[List[Point]]  # rings[0] exterior, rest holes

    @property
    def exterior(self) -> List[Point]:
        return self.rings[0] if self.rings else []

    @property
    def holes(self) -> List[List[Point]]:
        return self.rings[1:]


Geometry = Annotated[
    Union[PointGeometry, PolylineGeometry, PolygonGeometry],
    Field(discriminator="kind"),
]


def _number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_points(coords) -> List[Point]:
    # ESRI coordinates are [x, y(, z, m)] = [lon, lat, ...]; unusable vertices are skipped
    if not isinstance(coords, list):
        return []
    points = []
    for c in coords:
        if not isinstance(c, (list, tuple)) or len(c) < 2:
            continue
        lon, lat = _number(c[0]), _number(c[1])
        if lon is not None and lat is not None:
            points.append(Point(lat=lat, lon=lon))
    return points


def _to_parts(parts) -> List[List[Point]]:
    if not isinstance(parts, list):
        return []
    return [points for points in (_to_points(part) for part in parts) if points]


def parse_geometry(raw: Optional[Dict[str, Any]]):
    """
    ESRI JSON geometry → PointGeometry | PolylineGeometry | PolygonGeometry.

    Returns None for missing, empty, unrecognized or unparsable encodings.
    Malformed vertices and parts are dropped rather than raising.
    """
    if not isinstance(raw, dict):
        return None
    if raw.get("x") is not None or raw.get("y") is not None:
        lon, lat = _number(raw.get("x")), _number(raw.get("y"))
        if lon is None or lat is None:
            return None
        return PointGeometry(lat=lat, lon=lon)
    if raw.get("paths"):
        paths = _to_parts(raw["paths"])
        return PolylineGeometry(paths=paths) if paths else None
    if raw.get("rings"):
        rings = raw["rings"]
        exterior = _to_points(rings[0]) if isinstance(rings, list) else []
        if not exterior:
            # an unreadable exterior must not promote a hole to the outer boundary
            return None
        return PolygonGeometry(rings=[exterior] + _to_parts(rings[1:]))
    return None


class QueryPhase(str, Enum):
    CONTAINMENT = "containment"   # features intersecting the bare point
    PROXIMITY = "proximity"       # features within the buffer radius


class QuerySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_url: str = ""
    layer_id: Optional[Union[int, str]] = None
    center: Point
    requested_radius_miles: Optional[float] = None
    service_max_radius_miles: Optional[float] = None
    page_size: int = Field(default_factory=lambda: settings.FEATURE_PAGE_SIZE, gt=0)
    spatial_relation: str = "intersects"
    phases: List[QueryPhase] = Field(default_factory=lambda: [QueryPhase.PROXIMITY])
    radius_required: bool = False
    max_results: Optional[int] = Field(default=None, ge=0)
    id_field: Optional[str] = None

    @property
    def effective_radius_miles(self) -> Optional[float]:
        """Requested radius capped at the service maximum (None when no radius was given)."""
        if self.requested_radius_miles is None:
            return None
        if self.service_max_radius_miles is None:
            return self.requested_radius_miles
        return min(self.requested_radius_miles, self.service_max_radius_miles)


class PageCursor(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset: int = 0
    page_size: int

    def advance(self, returned: Optional[int] = None) -> "PageCursor":
        """Next cursor; servers may cap a page below page_size, so step by what came back."""
        step = self.page_size if returned is None else returned
        return PageCursor(offset=self.offset + step, page_size=self.page_size)


class WireRequest(BaseModel):
    url: str
    params: Dict[str, Any]


class RawFeature(BaseModel):
    attributes: Dict[str, Any] = Field(default_factory=dict)
    geometry: Optional[Dict[str, Any]] = None
    phase: QueryPhase = QueryPhase.PROXIMITY

    @classmethod
    def from_wire(cls, payload: Dict[str, Any], phase: QueryPhase) -> "RawFeature":
        attributes = payload.get("attributes")
        geometry = payload.get("geometry")
        return cls(
            attributes=attributes if isinstance(attributes, dict) else {},
            geometry=geometry if isinstance(geometry, dict) and geometry else None,
            phase=phase,
        )


class Feature(BaseModel):
    id: Optional[Union[int, str]] = None
    geometry: Optional[Geometry] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    distance_miles: float
    is_containing: bool = False
    phase: QueryPhase = QueryPhase.PROXIMITY
