"""
Raw features → final ordered Feature list.

    1. distance / containment per feature (GeometryEngine)
    2. exact radius filter (the service buffer is only a coarse proxy)
    3. dedup by id, the containment-phase entry wins
    4. stable sort: containing first, then ascending distance
    5. optional truncation to ``max_results``
"""

import logging
from typing import Iterable, List

from engine.attributes import feature_id
from engine.geometry import contains, distance
from engine.models import Feature, PolygonGeometry, QueryPhase, QuerySpec, RawFeature, parse_geometry
from shared.constants import CONTAINMENT_TOLERANCE_MILES

logger = logging.getLogger("Assembler")


def measure(raw: RawFeature, spec: QuerySpec) -> Feature:
    geometry = parse_geometry(raw.geometry)
    center = spec.center

    if raw.phase == QueryPhase.CONTAINMENT and not (
        isinstance(geometry, PolygonGeometry) and not contains(center, geometry)
    ):
        # service matched the bare point; only polygons are re-tested client-side,
        # points and lines keep the service verdict and are logged if they measure far
        if geometry is not None and not isinstance(geometry, PolygonGeometry):
            measured = distance(center, geometry)
            if measured > CONTAINMENT_TOLERANCE_MILES:
                logger.warning(
                    f"Containment match measures {measured:.3f} mi from the query point",
                    extra={"layer": str(spec.layer_id), "distance_miles": measured},
                )
        is_containing = True
        distance_miles = 0.0
    else:
        is_containing = isinstance(geometry, PolygonGeometry) and contains(center, geometry)
        distance_miles = 0.0 if is_containing else distance(center, geometry)

    return Feature(
        id=feature_id(raw.attributes, spec.id_field),
        geometry=geometry,
        attributes=raw.attributes,
        distance_miles=distance_miles,
        is_containing=is_containing,
        phase=raw.phase,
    )


def _dedupe(features: List[Feature]) -> List[Feature]:
    positions = {}
    deduped: List[Feature] = []
    for feature in features:
        if feature.id is None:
            deduped.append(feature)
            continue
        key = str(feature.id)
        if key not in positions:
            positions[key] = len(deduped)
            deduped.append(feature)
        elif feature.phase == QueryPhase.CONTAINMENT and deduped[positions[key]].phase != QueryPhase.CONTAINMENT:
            deduped[positions[key]] = feature
    return deduped


def assemble(raw_features: Iterable[RawFeature], spec: QuerySpec) -> List[Feature]:
    features = [measure(raw, spec) for raw in raw_features]

    radius = spec.effective_radius_miles
    if radius is not None:
        features = [f for f in features if f.distance_miles <= radius]

    features = _dedupe(features)
    # sorted() is stable, so ties keep fetch order
    features = sorted(features, key=lambda f: (not f.is_containing, f.distance_miles))

    if spec.max_results is not None:
        features = features[: spec.max_results]
    return features
