"""Tests for the API endpoints (in-memory store, Haversine distance)."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.schemas import Assignment, AssignmentStatus, Contractor, Job
from app.store import Store, store

DISPATCHER = {"X-Dispatcher-Id": "1"}
SEED_FILE = Path(__file__).resolve().parent.parent / "data" / "seed_demo.json"


@pytest.fixture(autouse=True)
def _clear_store() -> None:
    """Reset in-memory store between tests."""
    store.clear()


def _future(days: int = 2, hour: int = 10) -> datetime:
    return (datetime.now(timezone.utc) + timedelta(days=days)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )


async def _seed() -> datetime:
    start = _future()
    await store.add_job(Job(id=1, desired_datetime=start, estimated_duration_hours=2, latitude=37.7749, longitude=-122.4194))
    # ~1 mile from the job
    await store.add_contractor(Contractor(
        id=1, name="Near", latitude=37.7890, longitude=-122.4194, average_rating=4.0, review_count=4,
        working_hours_start=time(9), working_hours_end=time(12),
    ))
    # Oakland, ~11 miles
    await store.add_contractor(Contractor(id=2, name="Far", latitude=37.8044, longitude=-122.2712))
    await store.add_job(Job(id=2, desired_datetime=start.replace(hour=9), estimated_duration_hours=1, latitude=37.7749, longitude=-122.4194))
    await store.add_assignment(Assignment(id=1, contractor_id=1, job_id=2, status=AssignmentStatus.accepted))
    return start


@pytest.mark.anyio
async def test_health() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.anyio
async def test_recommendations_ranked() -> None:
    start = await _seed()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/v1/recommendations", params={"job_id": 1}, headers=DISPATCHER)

    assert resp.status_code == 200
    data = resp.json()
    assert data["message"] == "Success"
    ranked = data["recommendations"]
    assert [r["contractor_id"] for r in ranked] == [1, 2]
    assert ranked[0]["score"] > ranked[1]["score"]
    assert ranked[1]["rating"] is None
    # Contractor 1 works 9-12 and is booked 9-10
    slots = [datetime.fromisoformat(s.replace("Z", "+00:00")) for s in ranked[0]["available_slots"]]
    assert [s.hour for s in slots] == [10, 11]
    assert all(s.date() == start.date() for s in slots)


@pytest.mark.anyio
async def test_recommendations_contractor_list_only_empty() -> None:
    await _seed()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get(
            "/api/v1/recommendations",
            params={"job_id": 1, "contractor_list_only": "true"},
            headers=DISPATCHER,
        )
    assert resp.status_code == 200
    assert resp.json() == {"recommendations": [], "message": "No available contractors"}


@pytest.mark.anyio
async def test_recommendations_job_not_found() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/v1/recommendations", params={"job_id": 999}, headers=DISPATCHER)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_recommendations_past_job_is_bad_request() -> None:
    await store.add_job(Job(
        id=3, desired_datetime=datetime.now(timezone.utc) - timedelta(days=1),
        estimated_duration_hours=1, latitude=0, longitude=0,
    ))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/v1/recommendations", params={"job_id": 3}, headers=DISPATCHER)
    assert resp.status_code == 400
    body = resp.json()["error"]
    assert body["code"] == "INVALID_REQUEST"
    assert body["statusCode"] == 400


@pytest.mark.anyio
async def test_recommendations_requires_dispatcher_header() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/api/v1/recommendations", params={"job_id": 1})
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_available_slots_endpoint() -> None:
    start = await _seed()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get(
            "/api/v1/contractors/1/available-slots",
            params={"date": start.date().isoformat()},
        )
    assert resp.status_code == 200
    data = resp.json()
    assert data["contractor_id"] == 1
    assert len(data["slots"]) == 2


@pytest.mark.anyio
async def test_available_slots_unknown_contractor() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get(
            "/api/v1/contractors/77/available-slots", params={"date": "2030-01-01"}
        )
    assert resp.status_code == 404


def test_seed_file_loads() -> None:
    s = Store()
    s.load_seed(SEED_FILE)
    assert len(s.jobs) == 3
    assert s.contractors[3].average_rating is None
    assert not s.contractors[5].is_active
    assert s.dispatcher_lists[1] == [1, 3]
