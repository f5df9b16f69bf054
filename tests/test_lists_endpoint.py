"""Tests for the /lists saved location list endpoints."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def _payload(name: str = "Atlanta core", **overrides) -> dict:
    payload = {
        "name": name,
        "center_city": "Atlanta",
        "center_latitude": 33.7984,
        "center_longitude": -84.3883,
        "radius_miles": 50,
        "filters": {"min_population": 1000, "selected_states": ["GA"]},
        "items": [
            {"location_data_id": 1, "city": "Atlanta", "state_name": "Georgia", "county_name": "Fulton",
             "postal_code": "30309", "latitude": 33.7984, "longitude": -84.3883, "distance_miles": 0.0},
            {"location_data_id": 2, "city": "Sandy Springs", "state_name": "Georgia", "county_name": "Fulton",
             "postal_code": "30328", "latitude": 33.9304, "longitude": -84.3733, "distance_miles": 9.1},
            {"location_data_id": 3, "city": "Decatur", "state_name": "Georgia", "county_name": "DeKalb",
             "postal_code": "30030", "latitude": 33.7748, "longitude": -84.2963, "distance_miles": 5.5},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def client(seeded_db):
    import location_builder.main as main_module

    return TestClient(main_module.app)


def test_create_list(client):
    resp = client.post("/lists/", json=_payload())
    assert resp.status_code == 200

    data = resp.json()
    assert data["id"] is not None
    assert data["location_count"] == 3
    assert data["filters"]["selected_states"] == ["GA"]
    assert [i["city"] for i in data["items"]] == ["Atlanta", "Sandy Springs", "Decatur"]
    assert all(i["list_id"] == data["id"] for i in data["items"])
    assert all(i["country"] == "US" for i in data["items"])


def test_create_list_rejects_missing_name(client):
    resp = client.post("/lists/", json=_payload(name=""))
    assert resp.status_code == 422


def test_recent_lists_newest_first_and_limited(client):
    ids = [client.post("/lists/", json=_payload(f"List {n}")).json()["id"] for n in range(12)]

    recent = client.get("/lists/").json()
    assert len(recent) == 10
    assert [r["id"] for r in recent] == list(reversed(ids))[:10]

    assert len(client.get("/lists/", params={"limit": 3}).json()) == 3


def test_load_list_rebuilds_counties(client):
    list_id = client.post("/lists/", json=_payload()).json()["id"]

    resp = client.get(f"/lists/{list_id}")
    assert resp.status_code == 200
    data = resp.json()

    assert data["last_accessed_at"] is not None
    assert data["states"] == ["Georgia"]
    assert len(data["items"]) == 3

    counties = {c["county_name"]: c for c in data["counties"]}
    assert set(counties) == {"Fulton", "DeKalb"}
    assert counties["Fulton"]["city_count"] == 2
    assert counties["Fulton"]["total_population"] == 28521 + 35102
    assert counties["Fulton"]["center_lat"] == pytest.approx((33.7984 + 33.9304) / 2)


def test_load_missing_list_is_404(client):
    assert client.get("/lists/9999").status_code == 404


def test_delete_list(client):
    list_id = client.post("/lists/", json=_payload()).json()["id"]

    assert client.delete(f"/lists/{list_id}").status_code == 200
    assert client.get(f"/lists/{list_id}").status_code == 404
    assert client.delete(f"/lists/{list_id}").status_code == 404
