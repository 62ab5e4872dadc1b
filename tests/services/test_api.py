# tests/services/test_api.py
"""
Тесты HTTP API на in-memory сервисах.
"""

from __future__ import annotations

from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import Harness, request_payload
from src.core.geo import ExternalSearchClient
from src.services.api.app import create_app
from src.services.api.dependencies import ServiceContainer

CUSTOMER = {"X-User-Id": "cust-1", "X-User-Role": "END_USER"}
OTHER_CUSTOMER = {"X-User-Id": "cust-2", "X-User-Role": "END_USER"}
MECHANIC = {"X-User-Id": "mech-user-a", "X-User-Role": "MECHANIC"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "WORKSHOP_ADMIN"}


def _search_handler(request: httpx.Request) -> httpx.Response:
    query = request.url.params["q"]
    results = [
        {
            "place_id": f"{query}-near",
            "title": f"{query} Near",
            "gps_coordinates": {"latitude": 30.734, "longitude": 76.78},
            "rating": 4.6,
            "reviews": 40,
        },
        {
            "place_id": f"{query}-far",
            "title": f"{query} Far",
            "gps_coordinates": {"latitude": 30.80, "longitude": 76.78},
            "rating": 3.1,
            "reviews": 5,
        },
    ]
    return httpx.Response(200, json={"local_results": results})


@pytest.fixture
def client(harness: Harness) -> Iterator[TestClient]:
    container = ServiceContainer(
        lifecycle=harness.lifecycle,
        coordinator=harness.coordinator,
        updates=harness.update_log,
        fanout=harness.fanout,
        workshops=harness.workshops,
        mechanics=harness.mechanics,
        search=ExternalSearchClient(
            api_key="key",
            base_url="https://search.example.com/search",
            client=httpx.AsyncClient(transport=httpx.MockTransport(_search_handler)),
        ),
        db=harness.db,
        event_bus=harness.event_bus,
    )
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


def _create(client: TestClient, **overrides) -> dict:
    response = client.post("/api/v1/services", json={**request_payload(), **overrides}, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()["service_request"]


def _assign(client: TestClient, request_id: str, mechanic_id: str = "mech-a") -> dict:
    response = client.put(
        f"/api/v1/services/{request_id}/assign", json={"mechanic_id": mechanic_id}, headers=ADMIN
    )
    assert response.status_code == 200
    return response.json()["service_request"]


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "service": "api",
            "checks": {"database": True, "event_bus": True},
        }


class TestServiceRequests:
    def test_create(self, client: TestClient) -> None:
        response = client.post("/api/v1/services", json=request_payload(), headers=CUSTOMER)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Service request created successfully"
        assert body["service_request"]["status"] == "SUBMITTED"
        assert body["service_request"]["mechanic_id"] is None

    def test_create_validation_error(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/services", json={**request_payload(), "description": "flat"}, headers=CUSTOMER
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert any(d["field"] == "description" for d in body["details"])

    def test_estimate(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/services/estimate",
            json={
                "workshop_id": "ws-1",
                "vehicle_type": "Motorcycle",
                "issue_type": "Flat Tire",
                "description": "rear tyre punctured",
            },
            headers=CUSTOMER,
        )

        assert response.status_code == 200
        estimate = response.json()["estimate"]
        assert estimate["estimated_cost"] == 180
        assert estimate["breakdown"] == {"service_cost": 126, "parts_cost": 54, "taxes": 32}

    def test_estimate_validation(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/services/estimate", json={"workshop_id": "ws-1"}, headers=CUSTOMER
        )

        assert response.status_code == 400
        assert {d["field"] for d in response.json()["details"]} >= {"vehicle_type", "issue_type"}
        assert client.post("/api/v1/services/estimate", json={}).status_code == 403

    def test_missing_identity(self, client: TestClient) -> None:
        response = client.post("/api/v1/services", json=request_payload())

        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_unknown_role(self, client: TestClient) -> None:
        response = client.get("/api/v1/services/my-requests", headers={"X-User-Id": "u", "X-User-Role": "pilot"})

        assert response.status_code == 400

    def test_get_and_not_found(self, client: TestClient) -> None:
        created = _create(client)

        assert client.get(f"/api/v1/services/{created['id']}", headers=CUSTOMER).status_code == 200
        assert client.get(f"/api/v1/services/{created['id']}", headers=OTHER_CUSTOMER).status_code == 403

        missing = client.get("/api/v1/services/missing", headers=CUSTOMER)
        assert missing.status_code == 404
        assert missing.json()["error"] == "request_not_found"

    def test_full_flow(self, client: TestClient, harness: Harness) -> None:
        created = _create(client)
        assigned = _assign(client, created["id"])
        assert assigned["status"] == "ASSIGNED"
        assert assigned["mechanic_id"] == "mech-a"

        url = f"/api/v1/services/{created['id']}/status"
        for status in ("IN_PROGRESS", "REACHED"):
            response = client.put(url, json={"status": status, "message": f"now {status}"}, headers=MECHANIC)
            assert response.status_code == 200
            assert response.json()["service_request"]["status"] == status

        done = client.put(url, json={"status": "COMPLETED", "actual_cost": 120.0}, headers=MECHANIC)
        assert done.status_code == 200
        assert done.json()["service_request"]["actual_cost"] == 120.0
        assert harness.availability("mech-a").value == "AVAILABLE"

        tasks = client.get("/api/v1/services/my-tasks?status=COMPLETED", headers=MECHANIC).json()
        assert [t["id"] for t in tasks["service_requests"]] == [created["id"]]

    def test_invalid_transition_is_conflict(self, client: TestClient) -> None:
        created = _create(client)
        _assign(client, created["id"])

        response = client.put(
            f"/api/v1/services/{created['id']}/status", json={"status": "COMPLETED"}, headers=MECHANIC
        )

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_assigned_status_is_forbidden(self, client: TestClient) -> None:
        created = _create(client)

        response = client.put(
            f"/api/v1/services/{created['id']}/status", json={"status": "ASSIGNED"}, headers=MECHANIC
        )

        assert response.status_code == 403

    def test_customer_cannot_advance(self, client: TestClient) -> None:
        created = _create(client)
        _assign(client, created["id"])

        response = client.put(
            f"/api/v1/services/{created['id']}/status", json={"status": "IN_PROGRESS"}, headers=CUSTOMER
        )

        assert response.status_code == 403

    def test_assign_errors(self, client: TestClient, harness: Harness) -> None:
        created = _create(client)

        by_customer = client.put(
            f"/api/v1/services/{created['id']}/assign", json={"mechanic_id": "mech-a"}, headers=CUSTOMER
        )
        assert by_customer.status_code == 403

        no_body = client.put(f"/api/v1/services/{created['id']}/assign", json={}, headers=ADMIN)
        assert no_body.status_code == 400

        other_workshop = client.put(
            f"/api/v1/services/{created['id']}/assign", json={"mechanic_id": "mech-c"}, headers=ADMIN
        )
        assert other_workshop.status_code == 404
        assert other_workshop.json()["error"] == "mechanic_not_in_workshop"

        _assign(client, created["id"])
        again = client.put(
            f"/api/v1/services/{created['id']}/assign", json={"mechanic_id": "mech-b"}, headers=ADMIN
        )
        assert again.status_code == 409
        assert again.json()["error"] == "request_already_assigned"
        assert harness.availability("mech-b").value == "AVAILABLE"

    def test_cancel_with_and_without_body(self, client: TestClient) -> None:
        first = _create(client)
        second = _create(client)

        with_reason = client.post(
            f"/api/v1/services/{first['id']}/cancel", json={"reason": "Fixed it"}, headers=CUSTOMER
        )
        without_body = client.post(f"/api/v1/services/{second['id']}/cancel", headers=CUSTOMER)

        assert with_reason.status_code == 200
        assert with_reason.json()["service_request"]["status"] == "CANCELLED"
        assert without_body.status_code == 200

    def test_lists(self, client: TestClient) -> None:
        created = _create(client)

        mine = client.get("/api/v1/services/my-requests", headers=CUSTOMER).json()
        assert [r["id"] for r in mine["service_requests"]] == [created["id"]]

        workshop = client.get("/api/v1/services?status=ALL", headers=ADMIN).json()
        assert [r["id"] for r in workshop["service_requests"]] == [created["id"]]

        bad = client.get("/api/v1/services/my-tasks?status=PAUSED", headers=MECHANIC)
        assert bad.status_code == 400


class TestUpdates:
    def test_append_and_list(self, client: TestClient) -> None:
        created = _create(client)
        _assign(client, created["id"])
        url = f"/api/v1/services/{created['id']}/updates"

        added = client.post(url, json={"message": "Parts ordered"}, headers=MECHANIC)
        assert added.status_code == 201
        assert added.json()["update"]["message"] == "Parts ordered"

        empty = client.post(url, json={"message": "  "}, headers=MECHANIC)
        assert empty.status_code == 400

        forbidden = client.post(url, json={"message": "hi"}, headers=CUSTOMER)
        assert forbidden.status_code == 403

        listed = client.get(url, headers=CUSTOMER).json()
        assert [u["message"] for u in listed["updates"]] == ["Parts ordered"]


class TestNotifications:
    def test_counts_and_read(self, client: TestClient) -> None:
        created = _create(client)
        _assign(client, created["id"])

        count = client.get("/api/v1/notifications/unread-count", headers=CUSTOMER).json()["count"]
        assert count == 1

        [notification] = client.get("/api/v1/notifications", headers=CUSTOMER).json()["notifications"]
        assert notification["related_id"] == created["id"]

        foreign = client.patch(f"/api/v1/notifications/{notification['id']}/read", headers=OTHER_CUSTOMER)
        assert foreign.status_code == 404

        read = client.patch(f"/api/v1/notifications/{notification['id']}/read", headers=CUSTOMER)
        assert read.json()["notification"]["is_read"] is True
        assert client.patch("/api/v1/notifications/read-all", headers=CUSTOMER).json() == {"updated": 0}


class TestDiscovery:
    def test_nearby_workshops(self, client: TestClient) -> None:
        response = client.get("/api/v1/workshops/nearby?latitude=30.7333&longitude=76.7794&radius=10")

        body = response.json()
        assert response.status_code == 200
        assert [w["id"] for w in body["workshops"]] == ["ws-1", "ws-2"]
        assert body["workshops"][0]["distance_km"] <= body["workshops"][1]["distance_km"]
        assert body["total"] == 2

    def test_nearby_workshops_by_rating_without_location(self, client: TestClient) -> None:
        body = client.get("/api/v1/workshops/nearby?sort_by=rating").json()

        assert [w["rating"] for w in body["workshops"]] == [4.5, 4.0]
        assert all(w["distance_km"] is None for w in body["workshops"])

    def test_unknown_sort(self, client: TestClient) -> None:
        assert client.get("/api/v1/workshops/nearby?sort_by=price").status_code == 400

    def test_nearby_mechanics(self, client: TestClient) -> None:
        single = client.get("/api/v1/mechanics/nearby?latitude=30.7333&longitude=76.7794&query=Towing").json()
        assert [m["place_id"] for m in single["mechanics"]] == ["Towing-near", "Towing-far"]

        merged = client.get(
            "/api/v1/mechanics/nearby?latitude=30.7333&longitude=76.7794&service_types=Mechanic,Tyres"
        ).json()
        assert merged["total"] == 4

    def test_search_filters(self, client: TestClient) -> None:
        body = client.get(
            "/api/v1/mechanics/search?latitude=30.7333&longitude=76.7794&min_rating=4"
        ).json()

        assert [m["rating"] for m in body["mechanics"]] == [4.6]

    def test_availability_and_schedule(self, client: TestClient) -> None:
        response = client.patch(
            "/api/v1/mechanics/mech-a/availability", json={"availability": "NOT_AVAILABLE"}, headers=MECHANIC
        )
        assert response.status_code == 200
        assert response.json()["mechanic"]["availability"] == "NOT_AVAILABLE"

        denied = client.patch(
            "/api/v1/mechanics/mech-a/availability", json={"availability": "AVAILABLE"}, headers=CUSTOMER
        )
        assert denied.status_code == 403

        schedule = client.get("/api/v1/mechanics/mech-a/schedule", headers=ADMIN)
        assert schedule.json() == {"schedule": []}

    def test_schedule_entry(self, client: TestClient) -> None:
        entry = {
            "title": "Parts pickup",
            "start_time": "2026-03-02T09:00:00+00:00",
            "end_time": "2026-03-02T10:30:00+00:00",
            "type": "ERRAND",
        }

        created = client.post("/api/v1/mechanic-schedules", json=entry, headers=MECHANIC)
        assert created.status_code == 201
        assert created.json()["schedule_entry"]["mechanic_id"] == "mech-a"

        assert client.post("/api/v1/mechanic-schedules", json=entry, headers=ADMIN).status_code == 403
        assert client.post(
            "/api/v1/mechanic-schedules", json={"title": "x"}, headers=MECHANIC
        ).status_code == 400

        schedule = client.get("/api/v1/mechanics/mech-a/schedule", headers=MECHANIC).json()["schedule"]
        assert [s["title"] for s in schedule] == ["Parts pickup"]
