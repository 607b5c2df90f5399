"""
End-to-end tests for proximity_query / run_queries over fake feature services.
"""

import asyncio
from unittest.mock import patch

import pytest

from engine.errors import InvalidSpecError, RemoteServiceError
from engine.models import Point, QueryPhase, QuerySpec
from engine.proximity import proximity_query, run_queries

SQUARE = [[-75.1, 39.9], [-74.9, 39.9], [-74.9, 40.1], [-75.1, 40.1]]
BASE_URL = "https://services.example.com/FeatureServer"


def _spec(layer_id=0, **overrides):
    values = dict(
        service_url=BASE_URL,
        layer_id=layer_id,
        center=Point(lat=40.0, lon=-75.0),
        requested_radius_miles=10.0,
        service_max_radius_miles=25.0,
        page_size=100,
    )
    values.update(overrides)
    return QuerySpec(**values)


class FakeFeatureService:
    """Answers by layer and phase: containment requests carry no ``distance``."""

    def __init__(self, layers):
        self.layers = layers
        self.calls = []

    async def __call__(self, url, params=None):
        self.calls.append((url, params))
        layer = url.rstrip("/").split("/")[-2]
        phase = "proximity" if "distance" in params else "containment"
        answer = self.layers[layer][phase]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture(autouse=True)
def no_page_delay():
    with patch("engine.paginator.settings.FEATURE_PAGE_DELAY_S", 0):
        yield


def test_scenario_c_two_phase_plan():
    service = FakeFeatureService({
        "0": {
            "containment": {"features": [{"attributes": {"OBJECTID": 7}, "geometry": {"rings": [SQUARE]}}]},
            "proximity": {"features": [
                {"attributes": {"OBJECTID": 7}, "geometry": {"rings": [SQUARE]}},
                {"attributes": {"OBJECTID": 9}, "geometry": {"x": -75.0, "y": 40.05}},
            ]},
        }
    })
    spec = _spec(phases=[QueryPhase.CONTAINMENT, QueryPhase.PROXIMITY])
    result = asyncio.run(proximity_query(spec, service))

    assert result.error is None
    assert [f.id for f in result.features] == [7, 9]
    assert result.features[0].phase == QueryPhase.CONTAINMENT
    assert result.features[0].is_containing is True
    assert len(service.calls) == 2


def test_radius_clamp_end_to_end():
    service = FakeFeatureService({
        "0": {"proximity": {"features": [
            {"attributes": {"OBJECTID": 1}, "geometry": {"x": -75.0, "y": 40.2}},   # ~14 mi
            {"attributes": {"OBJECTID": 2}, "geometry": {"x": -75.0, "y": 40.5}},   # ~35 mi
        ]}}
    })
    spec = _spec(requested_radius_miles=100.0, service_max_radius_miles=25.0)
    result = asyncio.run(proximity_query(spec, service))

    assert service.calls[0][1]["distance"] == pytest.approx(25.0 * 1609.34)
    assert [f.id for f in result.features] == [1]
    assert all(f.distance_miles <= 25.0 for f in result.features)


def test_remote_error_degrades_to_empty_result():
    service = FakeFeatureService({"0": {"proximity": {"error": {"code": 500, "message": "boom"}}}})
    result = asyncio.run(proximity_query(_spec(), service))
    assert result.features == []
    assert isinstance(result.error, RemoteServiceError)


def test_error_in_first_phase_skips_second():
    service = FakeFeatureService({"0": {
        "containment": {"error": {"message": "layer offline"}},
        "proximity": {"features": []},
    }})
    spec = _spec(phases=[QueryPhase.CONTAINMENT, QueryPhase.PROXIMITY])
    result = asyncio.run(proximity_query(spec, service))
    assert isinstance(result.error, RemoteServiceError)
    assert len(service.calls) == 1


def test_invalid_spec_raises_before_network():
    service = FakeFeatureService({})
    with pytest.raises(InvalidSpecError):
        asyncio.run(proximity_query(_spec(layer_id=None), service))
    assert service.calls == []


def test_run_queries_isolates_failures_and_keeps_order():
    service = FakeFeatureService({
        "0": {"proximity": {"features": [{"attributes": {"OBJECTID": 1}, "geometry": {"x": -75.0, "y": 40.01}}]}},
        "1": {"proximity": RuntimeError("socket exploded")},
        "2": {"proximity": {"error": {"message": "bad layer"}}},
        "3": {"proximity": {"features": [{"attributes": {"OBJECTID": 3}, "geometry": {"x": -75.0, "y": 40.02}}]}},
    })
    specs = [_spec(0), _spec(1), _spec(2), _spec(3), _spec(4, service_url="")]
    results = asyncio.run(run_queries(specs, service, max_concurrency=2))

    assert [f.id for f in results[0].features] == [1]
    assert isinstance(results[1].error, RuntimeError)
    assert isinstance(results[2].error, RemoteServiceError)
    assert [f.id for f in results[3].features] == [3]
    assert isinstance(results[4].error, InvalidSpecError)
    assert all(r.features == [] for r in results[1:3] + results[4:])


def test_run_queries_respects_concurrency_limit():
    active = 0
    peak = 0

    async def slow_fetch(url, params=None):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return {"features": []}

    specs = [_spec(i) for i in range(6)]
    results = asyncio.run(run_queries(specs, slow_fetch, max_concurrency=2))
    assert len(results) == 6
    assert peak <= 2


def test_cancel_before_start_returns_empty_cancelled_result():
    service = FakeFeatureService({"0": {"proximity": {"features": []}}})
    cancel = asyncio.Event()
    cancel.set()
    result = asyncio.run(proximity_query(_spec(), service, cancel=cancel))
    assert result.cancelled is True
    assert result.features == []
    assert service.calls == []


def test_malformed_geometry_does_not_discard_dataset():
    service = FakeFeatureService({
        "0": {"proximity": {"features": [
            {"attributes": {"OBJECTID": 1}, "geometry": {"x": -75.0, "y": 40.01}},
            {"attributes": {"OBJECTID": 2}, "geometry": {"paths": [None]}},
            {"attributes": {"OBJECTID": 3}, "geometry": {"rings": [[-75.0, 40.0]]}},
            {"attributes": {"OBJECTID": 4}, "geometry": {"x": "abc", "y": 40.0}},
            {"attributes": None, "geometry": ["not", "a", "dict"]},
        ]}}
    })
    results = asyncio.run(run_queries([_spec()], service))

    assert results[0].error is None
    assert [f.id for f in results[0].features] == [1]
