from __future__ import annotations

from typing import Dict, List, Optional

from sqlmodel import select

from location_builder.database import init_db, session_scope
from location_builder.models.location_data import LocationData
from location_builder.services.timezones import timezone_for_state


# Small Atlanta-metro sample so a local search for 30309 returns several counties.
# Demographics are text on purpose: the upstream feed mixes numbers, commas and blanks.
GA_SAMPLE_LOCATIONS: List[Dict[str, Optional[str]]] = [
    {"city": "Atlanta", "county_name": "Fulton", "postal_code": "30309", "latitude": "33.7984", "longitude": "-84.3883",
     "population": "28,521", "age_median": "31.2", "income_household_median": "98,410", "housing_units": "19,870",
     "home_value": "452,300", "home_ownership": "38.4", "veteran": "4.1"},
    {"city": "Sandy Springs", "county_name": "Fulton", "postal_code": "30328", "latitude": "33.9304", "longitude": "-84.3733",
     "population": "35,102", "age_median": "36.8", "income_household_median": "84,250", "housing_units": "18,044",
     "home_value": "510,900", "home_ownership": "47.9", "veteran": "5.0"},
    {"city": "Decatur", "county_name": "DeKalb", "postal_code": "30030", "latitude": "33.7748", "longitude": "-84.2963",
     "population": "27,340", "age_median": "37.5", "income_household_median": "91,300", "housing_units": "12,101",
     "home_value": "498,000", "home_ownership": "55.2", "veteran": "4.7"},
    {"city": "Tucker", "county_name": "DeKalb", "postal_code": "30084", "latitude": "33.8545", "longitude": "-84.2171",
     "population": "35,990", "age_median": "39.1", "income_household_median": "76,800", "housing_units": "14,230",
     "home_value": "331,500", "home_ownership": "63.0", "veteran": "6.2"},
    {"city": "Marietta", "county_name": "Cobb", "postal_code": "30060", "latitude": "33.9526", "longitude": "-84.5499",
     "population": "41,880", "age_median": "33.9", "income_household_median": "58,900", "housing_units": "17,650",
     "home_value": "289,400", "home_ownership": "46.1", "veteran": "7.3"},
    {"city": "Smyrna", "county_name": "Cobb", "postal_code": "30080", "latitude": "33.8840", "longitude": "-84.5144",
     "population": "33,450", "age_median": "34.6", "income_household_median": "79,150", "housing_units": "16,020",
     "home_value": "371,200", "home_ownership": "50.8", "veteran": "5.9"},
    {"city": "Lawrenceville", "county_name": "Gwinnett", "postal_code": "30043", "latitude": "34.0004", "longitude": "-84.0077",
     "population": "", "age_median": "36.0", "income_household_median": "88,000", "housing_units": "28,300",
     "home_value": "312,000", "home_ownership": "75.5", "veteran": "6.8"},
    {"city": "Duluth", "county_name": "Gwinnett", "postal_code": "30096", "latitude": "33.9734", "longitude": "-84.1446",
     "population": "68,212", "age_median": "37.7", "income_household_median": "77,400", "housing_units": "24,981",
     "home_value": "334,700", "home_ownership": "62.3", "veteran": "4.9"},
    {"city": "Athens", "county_name": "Clarke", "postal_code": "30601", "latitude": "33.9760", "longitude": "-83.3625",
     "population": "20,150", "age_median": "25.4", "income_household_median": "38,900", "housing_units": "9,870",
     "home_value": "221,000", "home_ownership": "33.7", "veteran": "3.2"},
    {"city": "Macon", "county_name": "Bibb", "postal_code": "31201", "latitude": "32.8407", "longitude": "-83.6324",
     "population": "9,871", "age_median": "35.0", "income_household_median": "29,100", "housing_units": "5,512",
     "home_value": "98,600", "home_ownership": "31.9", "veteran": "8.0"},
]


def _float_or_none(raw: Optional[str]) -> Optional[float]:
    if raw is None or str(raw).strip() == "":
        return None
    return float(raw)


def upsert_location(session, row: Dict[str, Optional[str]], state_id: str = "GA", state_name: str = "Georgia") -> LocationData:
    """
    Upsert by (postal_code, city, state_id). Existing demographic text is replaced.
    """
    stmt = select(LocationData).where(
        (LocationData.postal_code == row["postal_code"])
        & (LocationData.city == row["city"])
        & (LocationData.state_id == state_id)
    )
    existing: Optional[LocationData] = session.exec(stmt).first()
    location = existing or LocationData(city=row["city"], postal_code=row["postal_code"], state_id=state_id)

    location.state_name = state_name
    location.county_name = row["county_name"]
    location.latitude = _float_or_none(row.get("latitude"))
    location.longitude = _float_or_none(row.get("longitude"))
    for field in (
        "population",
        "age_median",
        "income_household_median",
        "housing_units",
        "home_value",
        "home_ownership",
        "veteran",
    ):
        setattr(location, field, row.get(field))
    location.timezone = timezone_for_state(state_id)

    session.add(location)
    return location


def main() -> None:
    # Ensure tables exist (local dev)
    init_db()

    with session_scope() as session:
        for row in GA_SAMPLE_LOCATIONS:
            upsert_location(session, row)

        total = session.exec(select(LocationData)).all()

    print(f"Seeded/updated locations: {len(total)}")


if __name__ == "__main__":
    main()
