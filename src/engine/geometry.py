"""
Distance and containment between a query point and feature geometry.

Segment distances use a small-scale planar projection: the closest point on a
segment is found in raw lon/lat space, then the haversine distance to that
point is taken. Accurate enough for radii of ~100 miles and kept for
consistency with previously reported numbers.

Every function is total: missing or degenerate geometry gives ``math.inf``
distance and ``False`` containment.
"""

import math
from math import atan2, cos, radians, sin, sqrt
from typing import List, Optional, Sequence

from engine.models import Point, PointGeometry, PolygonGeometry, PolylineGeometry
from shared.constants import EARTH_RADIUS_MILES


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in miles between two WGS84 coordinates.
    """
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_MILES * c


def point_to_segment_miles(point: Point, a: Point, b: Point) -> float:
    """
    Distance from ``point`` to the segment a-b.

    The projection parameter t is computed in lon/lat space and clamped to
    [0, 1]; a zero-length segment degrades to the distance to ``a``.
    """
    dx = b.lon - a.lon
    dy = b.lat - a.lat
    length_sq = dx * dx + dy * dy

    t = 0.0
    if length_sq > 0:
        t = ((point.lon - a.lon) * dx + (point.lat - a.lat) * dy) / length_sq
        t = max(0.0, min(1.0, t))

    return haversine_miles(point.lat, point.lon, a.lat + t * dy, a.lon + t * dx)


def _segments(points: Sequence[Point], closed: bool):
    for i in range(len(points) - 1):
        yield points[i], points[i + 1]
    if closed and len(points) > 2 and points[0] != points[-1]:
        yield points[-1], points[0]


def distance_to_path(point: Point, path: Sequence[Point], closed: bool = False) -> float:
    if not path:
        return math.inf
    if len(path) == 1:
        return haversine_miles(point.lat, point.lon, path[0].lat, path[0].lon)
    return min(point_to_segment_miles(point, a, b) for a, b in _segments(path, closed))


def distance_to_polyline(point: Point, paths: Sequence[Sequence[Point]]) -> float:
    """Minimum over every segment of every path."""
    return min((distance_to_path(point, path) for path in paths), default=math.inf)


def distance_to_ring(point: Point, ring: Sequence[Point]) -> float:
    """Minimum over every edge of the ring, including the closing edge."""
    return distance_to_path(point, ring, closed=True)


def _distinct(ring: Sequence[Point]) -> List[Point]:
    if len(ring) > 1 and ring[0] == ring[-1]:
        return list(ring[:-1])
    return list(ring)


def point_in_ring(point: Point, ring: Sequence[Point]) -> bool:
    """
    Ray casting on a single ring (x = lon, y = lat).

    Rings with fewer than three distinct vertices never contain a point.
    """
    vertices = _distinct(ring)
    if len(vertices) < 3:
        return False

    inside = False
    j = len(vertices) - 1
    for i in range(len(vertices)):
        xi, yi = vertices[i].lon, vertices[i].lat
        xj, yj = vertices[j].lon, vertices[j].lat
        if (yi > point.lat) != (yj > point.lat):
            x_cross = (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            if point.lon < x_cross:
                inside = not inside
        j = i
    return inside


def contains(point: Point, polygon: Optional[PolygonGeometry]) -> bool:
    """Inside the exterior ring and outside every hole."""
    if polygon is None or not polygon.rings:
        return False
    if not point_in_ring(point, polygon.exterior):
        return False
    return not any(point_in_ring(point, hole) for hole in polygon.holes)


def distance(point: Point, geometry) -> float:
    """
    Distance in miles from ``point`` to any geometry variant.

    Polygons that contain the point are at distance 0; otherwise only the
    exterior ring's edges are measured (holes only matter for containment).
    """
    if isinstance(geometry, PointGeometry):
        return haversine_miles(point.lat, point.lon, geometry.lat, geometry.lon)
    if isinstance(geometry, PolylineGeometry):
        return distance_to_polyline(point, geometry.paths)
    if isinstance(geometry, PolygonGeometry):
        if contains(point, geometry):
            return 0.0
        return distance_to_ring(point, geometry.exterior)
    return math.inf
