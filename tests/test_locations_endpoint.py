"""Tests for the /locations endpoints.

Uses FastAPI TestClient over the seeded in-memory database; the session
registry is reset per test so sessions never leak between cases.
"""
from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client(seeded_db, monkeypatch):
    import location_builder.api.locations as locations_module
    import location_builder.main as main_module

    monkeypatch.setattr(locations_module, "_registry", None)
    return TestClient(main_module.app)


@pytest.fixture()
def live_client(seeded_db, monkeypatch):
    """Client kept open so tasks scheduled by one request keep running after it."""
    import location_builder.api.locations as locations_module
    import location_builder.main as main_module

    monkeypatch.setattr(locations_module, "_registry", None)
    monkeypatch.setattr(locations_module.settings, "radius_debounce_ms", 20)
    with TestClient(main_module.app) as client:
        yield client


def _new_session(client) -> str:
    resp = client.post("/locations/sessions")
    assert resp.status_code == 200
    return resp.json()["session_id"]


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_version(client):
    data = client.get("/version").json()
    assert data["name"] == "location-builder"
    assert "version" in data


# ---------------------------------------------------------------------------
# One-shot search
# ---------------------------------------------------------------------------

def test_search_returns_counties_sorted_by_distance(client):
    resp = client.get("/locations/search", params={"zip_code": "30309", "radius_miles": 50})
    assert resp.status_code == 200

    data = resp.json()
    assert data["postal_code"] == "30309"
    assert data["center"] == {"lat": 33.7984, "lng": -84.3883}
    names = {c["county_name"] for c in data["counties"]}
    assert names == {"Fulton", "DeKalb", "Cobb"}

    distances = [c["distance_miles"] for c in data["counties"]]
    assert distances == sorted(distances)
    assert all("cities" not in c for c in data["counties"])


def test_search_can_include_member_cities(client):
    resp = client.get(
        "/locations/search",
        params={"zip_code": "30309", "radius_miles": 50, "include_cities": True},
    )
    fulton = next(c for c in resp.json()["counties"] if c["county_name"] == "Fulton")
    assert {c["city"] for c in fulton["cities"]} == {"Atlanta", "Sandy Springs"}
    assert all(c["distance_miles"] <= 50 for c in fulton["cities"])


def test_search_uses_default_radius(client):
    resp = client.get("/locations/search", params={"zip_code": "30309"})
    assert resp.status_code == 200
    assert resp.json()["radius_miles"] == 50


def test_search_malformed_zip_is_400(client):
    resp = client.get("/locations/search", params={"zip_code": "abc"})
    assert resp.status_code == 400


def test_search_unknown_zip_is_404(client):
    resp = client.get("/locations/search", params={"zip_code": "00000"})
    assert resp.status_code == 404


def test_search_radius_over_max_is_400(client):
    resp = client.get("/locations/search", params={"zip_code": "30309", "radius_miles": 5000})
    assert resp.status_code == 400


def test_search_radius_must_be_positive(client):
    resp = client.get("/locations/search", params={"zip_code": "30309", "radius_miles": 0})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

def test_new_session_is_idle(client):
    sid = _new_session(client)
    data = client.get(f"/locations/sessions/{sid}").json()
    assert data["state"] == "idle"
    assert data["has_initial_search"] is False
    assert data["criteria"]["radius_miles"] == 50


def test_unknown_session_is_404(client):
    assert client.get("/locations/sessions/nope").status_code == 404
    assert client.post("/locations/sessions/nope/search", json={"zip_code": "30309"}).status_code == 404


def test_filters_before_search_is_409(client):
    sid = _new_session(client)
    resp = client.post(f"/locations/sessions/{sid}/filters", json={"min_population": 1000})
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Perform a search first."


def test_session_search_then_refilter(client):
    sid = _new_session(client)

    resp = client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "30309", "radius_miles": 150})
    assert resp.status_code == 200
    data = resp.json()
    assert data["state"] == "ready"
    assert data["total_in_radius"] == 6

    resp = client.post(f"/locations/sessions/{sid}/filters", json={"selected_states": ["TN"]})
    assert resp.status_code == 200
    data = resp.json()
    assert data["research_scheduled"] is False
    assert [c["county_name"] for c in data["counties"]] == ["Hamilton"]

    resp = client.post(f"/locations/sessions/{sid}/filters", json={"selected_states": []})
    assert len(resp.json()["counties"]) == 6


def test_session_radius_change_schedules_research(client):
    sid = _new_session(client)
    client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "30309", "radius_miles": 50})

    resp = client.post(f"/locations/sessions/{sid}/filters", json={"radius_miles": 150})
    assert resp.status_code == 200
    data = resp.json()
    assert data["research_scheduled"] is True
    assert data["criteria"]["radius_miles"] == 150
    # Cached counties are served until the debounced search lands
    assert len(data["counties"]) == 3


def test_session_search_errors(client):
    sid = _new_session(client)
    assert client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "abc"}).status_code == 400

    resp = client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "00000"})
    assert resp.status_code == 404
    assert client.get(f"/locations/sessions/{sid}").json()["state"] == "empty"


def test_session_states_and_cities(client):
    sid = _new_session(client)
    client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "30309", "radius_miles": 150})

    states = client.get(f"/locations/sessions/{sid}/states").json()
    assert [s["state_id"] for s in states] == ["GA", "TN"]

    cities = client.get(
        f"/locations/sessions/{sid}/cities",
        params={"county_name": "Fulton", "state_id": "GA"},
    ).json()
    assert {c["city"] for c in cities} == {"Atlanta", "Sandy Springs"}

    missing = client.get(f"/locations/sessions/{sid}/cities", params={"county_name": "Nowhere"})
    assert missing.status_code == 404


def test_cities_before_search_is_409(client):
    sid = _new_session(client)
    resp = client.get(f"/locations/sessions/{sid}/cities", params={"county_name": "Fulton"})
    assert resp.status_code == 409


def test_delete_session(client):
    sid = _new_session(client)
    assert client.delete(f"/locations/sessions/{sid}").status_code == 200
    assert client.get(f"/locations/sessions/{sid}").status_code == 404
    assert client.delete(f"/locations/sessions/{sid}").status_code == 404


def test_debounced_research_lands(live_client):
    sid = _new_session(live_client)
    live_client.post(f"/locations/sessions/{sid}/search", json={"zip_code": "30309", "radius_miles": 50})

    resp = live_client.post(f"/locations/sessions/{sid}/filters", json={"radius_miles": 150})
    assert resp.json()["research_scheduled"] is True

    snapshot = {}
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline:
        snapshot = live_client.get(f"/locations/sessions/{sid}").json()
        if snapshot["county_count"] == 6 and not snapshot["research_pending"]:
            break
        time.sleep(0.02)

    assert snapshot["county_count"] == 6
    assert snapshot["state"] == "ready"
    assert snapshot["criteria"]["radius_miles"] == 150

    resp = live_client.post(f"/locations/sessions/{sid}/filters", json={"selected_states": ["TN"]})
    assert [c["county_name"] for c in resp.json()["counties"]] == ["Hamilton"]
