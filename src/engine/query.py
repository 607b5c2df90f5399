"""
QuerySpec + PageCursor → ArcGIS FeatureServer ``/query`` request.

    from engine.query import build_query

    request = build_query(spec, PageCursor(page_size=spec.page_size))
    # → WireRequest(url=".../FeatureServer/4/query", params={"f": "json", ...})
"""

import json

from engine.errors import InvalidSpecError
from engine.models import PageCursor, QueryPhase, QuerySpec, WireRequest
from shared.constants import (
    ESRI_GEOMETRY_POINT,
    ESRI_UNIT_METER,
    METERS_PER_MILE,
    SPATIAL_RELATIONS,
    WGS84_WKID,
)


def validate_spec(spec: QuerySpec) -> None:
    if not spec.service_url or not spec.service_url.strip():
        raise InvalidSpecError("service_url is required")
    if spec.layer_id is None or str(spec.layer_id).strip() == "":
        raise InvalidSpecError("layer_id is required")
    if spec.spatial_relation not in SPATIAL_RELATIONS:
        raise InvalidSpecError(f"unknown spatial_relation: {spec.spatial_relation}")
    if not (-90.0 <= spec.center.lat <= 90.0) or not (-180.0 <= spec.center.lon <= 180.0):
        raise InvalidSpecError("center is outside WGS84 bounds")
    if spec.requested_radius_miles is not None and spec.requested_radius_miles < 0:
        raise InvalidSpecError("requested_radius_miles must not be negative")
    if spec.service_max_radius_miles is not None and spec.service_max_radius_miles <= 0:
        raise InvalidSpecError("service_max_radius_miles must be positive")
    if not spec.phases:
        raise InvalidSpecError("at least one query phase is required")
    if spec.radius_required and QueryPhase.PROXIMITY in spec.phases and not has_radius(spec):
        raise InvalidSpecError("this dataset requires a positive radius")


def has_radius(spec: QuerySpec) -> bool:
    radius = spec.effective_radius_miles
    return radius is not None and radius > 0


def query_url(spec: QuerySpec) -> str:
    return f"{spec.service_url.rstrip('/')}/{spec.layer_id}/query"


def buffer_meters(spec: QuerySpec) -> float:
    return spec.effective_radius_miles * METERS_PER_MILE


def build_query(
    spec: QuerySpec,
    cursor: PageCursor,
    phase: QueryPhase = QueryPhase.PROXIMITY,
) -> WireRequest:
    """
    Build the wire parameters for one page of one query phase.

    The proximity phase buffers the point by the effective (capped) radius;
    the containment phase sends the bare point.
    """
    validate_spec(spec)
    if phase == QueryPhase.PROXIMITY and not has_radius(spec):
        raise InvalidSpecError("proximity queries need a positive radius")

    geometry = {
        "x": spec.center.lon,
        "y": spec.center.lat,
        "spatialReference": {"wkid": WGS84_WKID},
    }
    params = {
        "f": "json",
        "where": "1=1",
        "outFields": "*",
        "geometry": json.dumps(geometry),
        "geometryType": ESRI_GEOMETRY_POINT,
        "spatialRel": SPATIAL_RELATIONS[spec.spatial_relation],
        "inSR": WGS84_WKID,
        "outSR": WGS84_WKID,
        "returnGeometry": "true",
        "resultRecordCount": cursor.page_size,
        "resultOffset": cursor.offset,
    }
    if phase == QueryPhase.PROXIMITY:
        params["distance"] = buffer_meters(spec)
        params["units"] = ESRI_UNIT_METER

    return WireRequest(url=query_url(spec), params=params)
