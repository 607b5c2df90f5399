"""
Paginated fetch of one query phase.

Keeps requesting pages while the service reports ``exceededTransferLimit`` or
returns a full page, up to FEATURE_MAX_RECORDS. Failures never raise past this
module (except InvalidSpecError): they stop the loop and are attached to the
returned FetchResult together with whatever was fetched so far.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from engine.errors import (
    FeatureQueryError,
    MalformedResponseError,
    RemoteServiceError,
    TransportError,
)
from engine.models import PageCursor, QueryPhase, QuerySpec, RawFeature
from engine.query import build_query, has_radius, validate_spec
from engine.transport import Fetch
from shared.config import settings

logger = logging.getLogger("Paginator")


@dataclass
class FetchResult:
    features: List[RawFeature] = field(default_factory=list)
    error: Optional[FeatureQueryError] = None
    cancelled: bool = False
    truncated: bool = False
    pages: int = 0


async def fetch_all(
    spec: QuerySpec,
    fetch: Fetch,
    phase: QueryPhase = QueryPhase.PROXIMITY,
    *,
    cancel: Optional[asyncio.Event] = None,
    max_records: Optional[int] = None,
    page_delay_s: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FetchResult:
    """
    Fetch every page of ``phase`` for ``spec``.

    Setting ``cancel`` stops the loop at the next page boundary; the pages
    already fetched are returned with ``cancelled=True``.
    """
    validate_spec(spec)
    max_records = settings.FEATURE_MAX_RECORDS if max_records is None else max_records
    page_delay_s = settings.FEATURE_PAGE_DELAY_S if page_delay_s is None else page_delay_s

    result = FetchResult()
    if phase == QueryPhase.PROXIMITY and not has_radius(spec):
        logger.info("No radius given; skipping proximity query", extra={"layer": str(spec.layer_id)})
        return result

    cursor = PageCursor(offset=0, page_size=spec.page_size)
    while True:
        if cancel is not None and cancel.is_set():
            logger.info(
                f"Cancelled after {result.pages} page(s)",
                extra={"offset": cursor.offset, "fetched": len(result.features)},
            )
            result.cancelled = True
            break

        request = build_query(spec, cursor, phase)
        logger.debug(
            f"Fetching {phase.value} page {result.pages + 1}",
            extra={"url": request.url, "offset": cursor.offset, "page": result.pages + 1},
        )
        try:
            payload = await fetch(request.url, request.params)
        except MalformedResponseError as e:
            logger.warning(f"Malformed response, treating as no more data: {e}", extra={"url": request.url})
            break
        except TransportError as e:
            result.error = e
            break

        if payload.get("error"):
            result.error = RemoteServiceError.from_payload(payload["error"])
            logger.error(f"Service error: {result.error}", extra={"url": request.url, "offset": cursor.offset})
            break

        page = payload.get("features")
        if not isinstance(page, list):
            logger.warning("Response has no features array, treating as no more data", extra={"url": request.url})
            break

        result.pages += 1
        result.features.extend(
            RawFeature.from_wire(item, phase) for item in page if isinstance(item, dict)
        )

        if len(result.features) > max_records:
            logger.warning(
                f"Record ceiling {max_records} exceeded, stopping pagination",
                extra={"url": request.url, "fetched": len(result.features)},
            )
            result.truncated = True
            break

        has_more = payload.get("exceededTransferLimit") is True or len(page) == cursor.page_size
        if not has_more or not page:
            break

        cursor = cursor.advance(len(page))
        if page_delay_s > 0:
            await sleep(page_delay_s)

    logger.info(
        f"Fetched {len(result.features)} {phase.value} feature(s) in {result.pages} page(s)",
        extra={"fetched": len(result.features), "page": result.pages},
    )
    return result
