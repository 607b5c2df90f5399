"""
Proximity query: fetch every phase of a QuerySpec and assemble the result.

    from engine.proximity import proximity_query
    from engine.transport import FeatureServiceTransport

    async with FeatureServiceTransport() as fetch:
        result = await proximity_query(spec, fetch)
    # → ProximityResult(features=[Feature(...), ...], error=None, ...)

A spec with phases [CONTAINMENT, PROXIMITY] runs the point-in-polygon query
first and merges the buffered query into it, so a feature returned by both
appears once, as containing.

run_queries() fans independent specs (one per dataset) out with bounded
concurrency. A failing dataset degrades to an empty result carrying its
error; siblings are never cancelled.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from engine.assembler import assemble
from engine.errors import FeatureQueryError
from engine.models import Feature, QuerySpec, RawFeature
from engine.paginator import fetch_all
from engine.query import validate_spec
from engine.transport import Fetch
from shared.config import settings

logger = logging.getLogger("Proximity")


@dataclass
class ProximityResult:
    features: List[Feature] = field(default_factory=list)
    error: Optional[Exception] = None
    cancelled: bool = False
    truncated: bool = False


async def proximity_query(
    spec: QuerySpec,
    fetch: Fetch,
    *,
    cancel: Optional[asyncio.Event] = None,
) -> ProximityResult:
    validate_spec(spec)
    start = time.monotonic()
    logger.info(
        f"Querying layer {spec.layer_id} at [{spec.center.lat}, {spec.center.lon}]",
        extra={
            "url": spec.service_url,
            "radius_miles": spec.effective_radius_miles,
            "phases": [phase.value for phase in spec.phases],
        },
    )

    raw: List[RawFeature] = []
    result = ProximityResult()
    for phase in spec.phases:
        fetched = await fetch_all(spec, fetch, phase, cancel=cancel)
        raw.extend(fetched.features)
        result.truncated = result.truncated or fetched.truncated
        if fetched.error is not None or fetched.cancelled:
            result.error = fetched.error
            result.cancelled = fetched.cancelled
            break

    result.features = assemble(raw, spec)
    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        f"Layer {spec.layer_id}: {len(result.features)} feature(s) in {elapsed_ms}ms",
        extra={"url": spec.service_url, "fetched": len(raw), "elapsed_ms": elapsed_ms},
    )
    return result


async def _guarded(
    spec: QuerySpec,
    fetch: Fetch,
    semaphore: asyncio.Semaphore,
    cancel: Optional[asyncio.Event],
) -> ProximityResult:
    async with semaphore:
        try:
            return await proximity_query(spec, fetch, cancel=cancel)
        except FeatureQueryError as e:
            logger.warning(f"Dataset query failed: {e}", extra={"url": spec.service_url})
            return ProximityResult(error=e)
        except Exception as e:
            logger.exception(f"Unexpected error querying {spec.service_url}")
            return ProximityResult(error=e)


async def run_queries(
    specs: Sequence[QuerySpec],
    fetch: Fetch,
    *,
    max_concurrency: Optional[int] = None,
    cancel: Optional[asyncio.Event] = None,
) -> List[ProximityResult]:
    """Run independent dataset queries concurrently; results keep input order."""
    limit = max_concurrency or settings.FEATURE_MAX_CONCURRENCY
    semaphore = asyncio.Semaphore(limit)
    return list(await asyncio.gather(*(_guarded(spec, fetch, semaphore, cancel) for spec in specs)))
