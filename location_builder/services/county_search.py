from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from .errors import InvalidInputError, NotFoundError
from .geo import Coords, bounding_box, haversine_miles, normalize
from .location_store import LocationStore
from .timezones import timezone_for_state

logger = logging.getLogger(__name__)

POSTAL_CODE_RE = re.compile(r"^\d{5}(-\d{4})?$")

DEMOGRAPHIC_FIELDS = (
    "population",
    "age_median",
    "income_household_median",
    "housing_units",
    "home_value",
    "home_ownership",
    "veteran",
)

# (field on EnrichedCity, attribute on CountyAggregate, decimals)
WEIGHTED_FIELDS = (
    ("age_median", "avg_age_median", 1),
    ("income_household_median", "avg_income_household_median", 0),
    ("home_value", "avg_home_value", 0),
    ("home_ownership", "avg_home_ownership", 1),
)


# -----------------------------
# Types
# -----------------------------

@dataclass(frozen=True)
class SearchCenter:
    postal_code: str
    coords: Optional[Coords]


@dataclass(frozen=True)
class EnrichedCity:
    """
    A location row that survived the radius filter, with every demographic
    field normalized to a float and its distance from the search center.
    """
    id: Optional[int]
    city: Optional[str]
    state_name: Optional[str]
    state_id: Optional[str]
    county_name: Optional[str]
    postal_code: Optional[str]
    latitude: float
    longitude: float
    population: float
    age_median: float
    income_household_median: float
    housing_units: float
    home_value: float
    home_ownership: float
    veteran: float
    distance_miles: float


@dataclass(frozen=True)
class CountyAggregate:
    county_name: str
    state_id: Optional[str]
    state_name: Optional[str]
    city_count: int
    total_population: float
    total_housing_units: float
    avg_age_median: float
    avg_income_household_median: float
    avg_home_value: float
    avg_home_ownership: float
    center_lat: float
    center_lng: float
    distance_miles: float
    timezone: str
    cities: Tuple[EnrichedCity, ...]


class FilterCriteria(BaseModel):
    """
    User-editable filter state. Ranges are inclusive on both ends.
    """
    radius_miles: float = Field(default=50.0, gt=0)

    min_population: float = Field(default=0, ge=0)
    max_population: float = Field(default=10_000_000, ge=0)

    min_median_age: float = Field(default=0, ge=0)
    max_median_age: float = Field(default=100, ge=0)

    min_household_income: float = Field(default=0, ge=0)
    max_household_income: float = Field(default=500_000, ge=0)

    min_home_value: float = Field(default=0, ge=0)
    max_home_value: float = Field(default=2_000_000, ge=0)

    home_ownership_min: float = Field(default=0, ge=0)
    home_ownership_max: float = Field(default=100, ge=0)

    selected_states: Set[str] = Field(default_factory=set)


# -----------------------------
# Helpers
# -----------------------------

def _get(row: Any, name: str) -> Any:
    if isinstance(row, dict):
        return row.get(name)
    return getattr(row, name, None)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _blank(s: Optional[str]) -> bool:
    return s is None or not str(s).strip()


# -----------------------------
# Center Resolver
# -----------------------------

def validate_postal_code(raw: Any) -> str:
    """
    Returns the 5-digit ZIP prefix of a valid ZIP or ZIP+4.
    """
    s = ("" if raw is None else str(raw)).strip()
    if not POSTAL_CODE_RE.match(s):
        raise InvalidInputError(f"Invalid ZIP code: {raw!r}. Use 12345 or 12345-6789.")
    return s[:5]


def resolve_center(store: LocationStore, raw_postal_code: Any) -> SearchCenter:
    zip5 = validate_postal_code(raw_postal_code)

    row = store.find_center(zip5)
    if row is None:
        raise NotFoundError(f"ZIP code {zip5} was not found in the location dataset.")

    coords = Coords(lat=float(_get(row, "latitude")), lng=float(_get(row, "longitude")))
    logger.info("Resolved ZIP %s to (%.5f, %.5f)", zip5, coords.lat, coords.lng)
    return SearchCenter(postal_code=zip5, coords=coords)


# -----------------------------
# Candidate Fetcher
# -----------------------------

def fetch_candidates(store: LocationStore, center: Coords, radius_miles: float) -> List[Any]:
    box = bounding_box(center, radius_miles)
    rows = store.find_in_box(box)
    logger.info("Bounding box for %.1f mi returned %d candidate rows", radius_miles, len(rows))
    return rows


# -----------------------------
# Distance & Normalization
# -----------------------------

def enrich_row(row: Any, center: Coords) -> Optional[EnrichedCity]:
    lat = _get(row, "latitude")
    lng = _get(row, "longitude")
    if lat is None or lng is None:
        return None

    lat = float(lat)
    lng = float(lng)
    values = {name: normalize(_get(row, name)) for name in DEMOGRAPHIC_FIELDS}

    return EnrichedCity(
        id=_get(row, "id"),
        city=_get(row, "city"),
        state_name=_get(row, "state_name"),
        state_id=_get(row, "state_id"),
        county_name=_get(row, "county_name"),
        postal_code=_get(row, "postal_code"),
        latitude=lat,
        longitude=lng,
        distance_miles=haversine_miles(center.lat, center.lng, lat, lng),
        **values,
    )


def enrich_candidates(rows: Iterable[Any], center: Coords, radius_miles: float) -> List[EnrichedCity]:
    """
    Authoritative radius filter: keep rows within radius_miles that have at
    least one resident, nearest first.
    """
    kept: List[EnrichedCity] = []
    for row in rows:
        city = enrich_row(row, center)
        if city is None:
            continue
        if city.distance_miles <= radius_miles and city.population >= 1:
            kept.append(city)

    kept.sort(key=lambda c: c.distance_miles)
    return kept


# -----------------------------
# County Aggregator
# -----------------------------

def build_county_aggregate(
    county_name: str,
    state_id: Optional[str],
    members: List[EnrichedCity],
    center: Optional[Coords],
) -> CountyAggregate:
    city_count = len(members)

    center_lat = sum(c.latitude for c in members) / city_count
    center_lng = sum(c.longitude for c in members) / city_count

    distance = haversine_miles(center.lat, center.lng, center_lat, center_lng) if center else 0.0

    total_population = sum(c.population for c in members)
    total_housing_units = sum(c.housing_units for c in members)

    averages: Dict[str, float] = {}
    for field, attr, digits in WEIGHTED_FIELDS:
        if total_population > 0:
            weighted = sum(getattr(c, field) * c.population for c in members) / total_population
        else:
            weighted = 0.0
        averages[attr] = _round_half_up(weighted, digits)

    return CountyAggregate(
        county_name=county_name,
        state_id=state_id,
        state_name=members[0].state_name,
        city_count=city_count,
        total_population=total_population,
        total_housing_units=total_housing_units,
        center_lat=center_lat,
        center_lng=center_lng,
        distance_miles=distance,
        timezone=timezone_for_state(state_id),
        cities=tuple(members),
        **averages,
    )


def aggregate_counties(cities: Iterable[EnrichedCity], center: Optional[Coords]) -> List[CountyAggregate]:
    """
    Roll city rows up into one aggregate per (county_name, state_id), nearest
    county first. Rows without a county are left out entirely.
    """
    groups: Dict[Tuple[str, Optional[str]], List[EnrichedCity]] = {}
    for city in cities:
        if _blank(city.county_name):
            continue
        key = (str(city.county_name).strip(), city.state_id)
        groups.setdefault(key, []).append(city)

    counties = [
        build_county_aggregate(county_name, state_id, members, center)
        for (county_name, state_id), members in groups.items()
    ]
    counties.sort(key=lambda c: c.distance_miles)
    return counties


# -----------------------------
# Filter
# -----------------------------

def _in_range(value: float, lo: float, hi: float) -> bool:
    return lo <= value <= hi


def _in_range_or_missing(value: float, lo: float, hi: float) -> bool:
    # 0 means "no data" for medians/averages, not an actual zero
    return value == 0 or _in_range(value, lo, hi)


def county_matches(county: CountyAggregate, criteria: FilterCriteria) -> bool:
    if not _in_range(county.total_population, criteria.min_population, criteria.max_population):
        return False
    if not _in_range_or_missing(county.avg_age_median, criteria.min_median_age, criteria.max_median_age):
        return False
    if not _in_range_or_missing(
        county.avg_income_household_median,
        criteria.min_household_income,
        criteria.max_household_income,
    ):
        return False
    if not _in_range_or_missing(county.avg_home_value, criteria.min_home_value, criteria.max_home_value):
        return False
    if not _in_range_or_missing(
        county.avg_home_ownership,
        criteria.home_ownership_min,
        criteria.home_ownership_max,
    ):
        return False
    if criteria.selected_states and county.state_id not in criteria.selected_states:
        return False
    return True


def apply_filters(counties: Iterable[CountyAggregate], criteria: FilterCriteria) -> List[CountyAggregate]:
    """
    Pure: returns the matching subset in input order; never mutates counties.
    """
    return [c for c in counties if county_matches(c, criteria)]


def state_facets(counties: Iterable[CountyAggregate]) -> List[Dict[str, Any]]:
    """
    Unique states among the counties with how many counties each has,
    sorted by state id. Drives the state toggle tags.
    """
    counts: Dict[str, Dict[str, Any]] = {}
    for county in counties:
        state_id = county.state_id or ""
        entry = counts.setdefault(
            state_id,
            {"state_id": county.state_id, "state_name": county.state_name, "county_count": 0},
        )
        entry["county_count"] += 1
    return [counts[k] for k in sorted(counts)]


# -----------------------------
# Full pipeline
# -----------------------------

def run_county_search(
    store: LocationStore,
    raw_postal_code: Any,
    radius_miles: float,
) -> Tuple[SearchCenter, List[CountyAggregate]]:
    """
    Resolver -> Fetcher -> Normalizer -> Aggregator. Returns the full,
    unfiltered county list for the radius.
    """
    center = resolve_center(store, raw_postal_code)

    rows = fetch_candidates(store, center.coords, radius_miles)
    cities = enrich_candidates(rows, center.coords, radius_miles)
    counties = aggregate_counties(cities, center.coords)

    logger.info(
        "ZIP %s radius %.1f mi: %d cities in radius, %d counties",
        center.postal_code,
        radius_miles,
        len(cities),
        len(counties),
    )
    return center, counties
