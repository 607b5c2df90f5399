"""
Feature Proximity shared constants

Spatial reference codes, unit conversions and the ESRI query protocol
vocabulary used across the engine.
"""

# ─── Spatial Reference ────────────────────────────────────
WGS84_WKID = 4326                  # inSR / outSR / geometry spatialReference

# ─── Units ────────────────────────────────────────────────
EARTH_RADIUS_MILES = 3958.8
METERS_PER_MILE = 1609.34

# ─── ESRI Query Protocol ──────────────────────────────────
ESRI_GEOMETRY_POINT = "esriGeometryPoint"
ESRI_UNIT_METER = "esriSRUnit_Meter"

SPATIAL_RELATIONS = {
    "intersects": "esriSpatialRelIntersects",
    "contains": "esriSpatialRelContains",
    "within": "esriSpatialRelWithin",
    "envelope_intersects": "esriSpatialRelEnvelopeIntersects",
}

# ─── Feature Identity ─────────────────────────────────────
ID_FIELD_ALIASES = ("OBJECTID", "FID", "GlobalID")

# ─── HTTP ─────────────────────────────────────────────────
RETRYABLE_STATUS = 504             # Gateway Timeout

# ─── Assembly ─────────────────────────────────────────────
CONTAINMENT_TOLERANCE_MILES = 0.01  # point/line containment matches measured farther than this are logged
