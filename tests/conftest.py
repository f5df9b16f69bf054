"""Shared fixtures.

DATABASE_URL is pinned to an in-memory SQLite URL before anything from
location_builder is imported, so importing the app never touches a file DB.
Tests that need tables get their own StaticPool engine swapped into
location_builder.database.
"""
from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel, Session, create_engine  # noqa: E402

from location_builder.services.geo import BoundingBox, normalize  # noqa: E402

ATLANTA = (33.7984, -84.3883)


def make_row(
    id: int,
    city: str,
    county_name: Optional[str],
    lat: Optional[float],
    lng: Optional[float],
    *,
    postal_code: str = "30000",
    state_id: str = "GA",
    state_name: str = "Georgia",
    population: Any = "1000",
    age_median: Any = "35",
    income_household_median: Any = "60000",
    housing_units: Any = "400",
    home_value: Any = "250000",
    home_ownership: Any = "55",
    veteran: Any = "5",
) -> Dict[str, Any]:
    return {
        "id": id,
        "city": city,
        "state_name": state_name,
        "state_id": state_id,
        "county_name": county_name,
        "postal_code": postal_code,
        "latitude": lat,
        "longitude": lng,
        "population": population,
        "age_median": age_median,
        "income_household_median": income_household_median,
        "housing_units": housing_units,
        "home_value": home_value,
        "home_ownership": home_ownership,
        "veteran": veteran,
    }


def atlanta_rows() -> List[Dict[str, Any]]:
    return [
        make_row(1, "Atlanta", "Fulton", 33.7984, -84.3883, postal_code="30309",
                 population="28,521", age_median="31.2", income_household_median="98,410", home_value="452,300"),
        make_row(2, "Sandy Springs", "Fulton", 33.9304, -84.3733, postal_code="30328",
                 population="35102", age_median="36.8", income_household_median="84250", home_value="510900"),
        make_row(3, "Decatur", "DeKalb", 33.7748, -84.2963, postal_code="30030",
                 population="27340", age_median="37.5", home_value=""),
        make_row(4, "Marietta", "Cobb", 33.9526, -84.5499, postal_code="30060", population="41880"),
        make_row(5, "Athens", "Clarke", 33.9760, -83.3625, postal_code="30601", population="20150"),
        make_row(6, "Macon", "Bibb", 32.8407, -83.6324, postal_code="31201", population="9871"),
        make_row(7, "Ghost Town", "Cobb", 33.9000, -84.5000, postal_code="30061", population=""),
        make_row(8, "No County", "", 33.8000, -84.3900, postal_code="30310", population="500"),
        make_row(9, "Chattanooga", "Hamilton", 35.0456, -85.3097, postal_code="37402",
                 state_id="TN", state_name="Tennessee", population="17000"),
    ]


class FakeLocationStore:
    """
    In-memory LocationStore with call counters. Applies the bounding box and
    drops rows without a usable population.
    """

    def __init__(self, rows: List[Dict[str, Any]]):
        self.rows = rows
        self.center_calls = 0
        self.box_calls = 0
        self.boxes: List[BoundingBox] = []

    def find_center(self, postal_code: str) -> Optional[Dict[str, Any]]:
        self.center_calls += 1
        for row in self.rows:
            if row["postal_code"] == postal_code and row["latitude"] is not None and row["longitude"] is not None:
                return row
        return None

    def find_in_box(self, box: BoundingBox) -> List[Dict[str, Any]]:
        self.box_calls += 1
        self.boxes.append(box)
        return [
            row
            for row in self.rows
            if row["latitude"] is not None
            and row["longitude"] is not None
            and box.contains(row["latitude"], row["longitude"])
            and normalize(row["population"]) > 0
        ]


@pytest.fixture()
def fake_store() -> FakeLocationStore:
    return FakeLocationStore(atlanta_rows())


@pytest.fixture()
def db_engine(monkeypatch):
    """Fresh in-memory database shared across threads, swapped in as the app engine."""
    import location_builder.database as database

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.register_models()
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(database, "engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def seeded_db(db_engine):
    """Load atlanta_rows() into location_data."""
    from location_builder.models.location_data import LocationData

    with Session(db_engine) as session:
        for row in atlanta_rows():
            session.add(LocationData(**row))
        session.commit()
    return db_engine
