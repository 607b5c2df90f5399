import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from engine.errors import InvalidSpecError
from engine.models import QuerySpec
from engine.proximity import ProximityResult, proximity_query, run_queries
from engine.transport import FeatureServiceTransport

VERSION = "1.0"

app = FastAPI(title="Feature Proximity API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = logging.getLogger("api")


class BatchRequest(BaseModel):
    queries: List[QuerySpec] = Field(..., min_length=1)
    max_concurrency: Optional[int] = Field(default=None, gt=0)


def _error_payload(error: Optional[Exception]) -> Optional[Dict[str, Any]]:
    if error is None:
        return None
    return {"type": type(error).__name__, "message": str(error)}


def _result_payload(result: ProximityResult) -> Dict[str, Any]:
    return {
        "features": [feature.model_dump(mode="json") for feature in result.features],
        "total": len(result.features),
        "cancelled": result.cancelled,
        "truncated": result.truncated,
        "error": _error_payload(result.error),
    }


@app.get("/health")
def health_check():
    return {"status": "ok", "version": VERSION}


@app.post("/api/v1/proximity")
async def proximity_endpoint(spec: QuerySpec):
    """
    Features of one layer near (or containing) a point.

    Request:
        {
            "service_url": "https://.../FeatureServer",
            "layer_id": 4,
            "center": { "lat": 40.0, "lon": -75.0 },
            "requested_radius_miles": 5,
            "service_max_radius_miles": 25,
            "phases": ["containment", "proximity"]
        }

    A failing dataset answers 200 with no features and ``error`` set.
    """
    start_ms = time.time() * 1000
    try:
        async with FeatureServiceTransport() as fetch:
            result = await proximity_query(spec, fetch)
    except InvalidSpecError as e:
        raise HTTPException(status_code=400, detail=f"INVALID_SPEC: {e}")
    except Exception as e:
        logger.error(f"Proximity Error: {e}")
        raise HTTPException(status_code=500, detail=f"PROXIMITY_ERROR: {str(e)}")

    end_ms = time.time() * 1000
    return {
        "success": result.error is None,
        "data": _result_payload(result),
        "meta": {
            "effective_radius_miles": spec.effective_radius_miles,
            "processing_time_ms": int(end_ms - start_ms),
        },
    }


@app.post("/api/v1/proximity/batch")
async def proximity_batch_endpoint(payload: BatchRequest):
    """
    Several independent layers for the same location, run concurrently.
    Results keep request order; one failing layer never fails the batch.
    """
    start_ms = time.time() * 1000
    async with FeatureServiceTransport() as fetch:
        results = await run_queries(payload.queries, fetch, max_concurrency=payload.max_concurrency)

    end_ms = time.time() * 1000
    return {
        "success": True,
        "data": {
            "results": [_result_payload(result) for result in results],
            "summary": {
                "total_queries": len(results),
                "failed_queries": sum(1 for result in results if result.error is not None),
                "total_features": sum(len(result.features) for result in results),
            },
        },
        "meta": {"processing_time_ms": int(end_ms - start_ms)},
    }
