import pytest
from sqlalchemy.exc import OperationalError

from workshop_crm.database import SessionLocal
from workshop_crm.domain.tracker.cache import StatusTrackerCache
from workshop_crm.domain.tracker.repository import TrackerRepository
from workshop_crm.domain.tracker.router import FALLBACK_WARNING


def test_tracker_status_roundtrip(client, staff_headers):
    response = client.post(
        "/tracker-status",
        json={"trackerStatus": {"b1-0": "done", "b1-1": {"status": "pending", "timestamp": "2024-05-01T10:00:00Z"}}},
        headers=staff_headers,
    )

    assert response.status_code == 200
    assert sorted(response.json()["applied"]) == ["b1-0", "b1-1"]

    status = client.get("/tracker-status", headers=staff_headers).json()
    assert status["stale"] is False
    assert status["trackerStatus"]["b1-0"]["status"] == "done"
    assert status["trackerStatus"]["b1-1"]["lastUpdatedAt"].startswith("2024-05-01T10:00:00")


def test_done_cannot_be_reverted_through_api(client, staff_headers):
    client.put("/tracker-status/b1-0", json={"status": "done"}, headers=staff_headers)

    bulk = client.post("/tracker-status", json={"trackerStatus": {"b1-0": "pending"}}, headers=staff_headers)
    single = client.put("/tracker-status/b1-0", json={"status": "pending"}, headers=staff_headers)

    assert bulk.json()["skipped"] == ["b1-0"]
    assert single.json()["skipped"] == ["b1-0"]
    status = client.get("/tracker-status", headers=staff_headers).json()
    assert status["trackerStatus"]["b1-0"]["status"] == "done"


def test_invalid_tracker_status_is_rejected(client, staff_headers):
    response = client.post(
        "/tracker-status", json={"trackerStatus": {"b1-0": "called"}}, headers=staff_headers
    )

    assert response.status_code == 400


class UnreachableTrackerRepository(TrackerRepository):
    def fetch_all(self):
        raise OperationalError("SELECT welcome_call_status", {}, Exception("down"))

    def write_entries(self, entries):
        raise OperationalError("UPDATE welcome_call_status", {}, Exception("down"))


@pytest.fixture
def unreachable_tracker(client):
    cache = StatusTrackerCache(UnreachableTrackerRepository(SessionLocal), save_delay=0, max_save_failures=1)
    client.app.state.tracker_cache = cache
    return cache


def test_tracker_read_falls_back_to_memory(client, staff_headers, unreachable_tracker):
    response = client.get("/tracker-status", headers=staff_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["stale"] is True
    assert body["trackerStatus"] == {}
    assert body["warning"] == "Database connection failed"


def test_tracker_write_succeeds_with_warning_when_store_is_down(client, staff_headers, unreachable_tracker):
    response = client.post("/tracker-status", json={"trackerStatus": {"b1-0": "done"}}, headers=staff_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["applied"] == ["b1-0"]
    assert body["warning"] == FALLBACK_WARNING

    status = client.get("/tracker-status", headers=staff_headers).json()
    assert status["stale"] is True
    assert status["trackerStatus"]["b1-0"]["status"] == "done"


def test_tracker_write_in_memory_only_mode(client, staff_headers, unreachable_tracker):
    unreachable_tracker.memory_only = True

    response = client.put("/tracker-status/b1-0", json={"status": "pending"}, headers=staff_headers)

    assert response.status_code == 200
    assert response.json()["warning"] == FALLBACK_WARNING
    assert unreachable_tracker.get("b1-0").status == "pending"
