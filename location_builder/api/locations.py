from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Set

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field as PydField

from ..config import settings
from ..services.county_search import CountyAggregate, FilterCriteria, run_county_search
from ..services.errors import (
    InvalidInputError,
    LocationSearchError,
    NoPriorSearchError,
    NotFoundError,
    SearchFailedError,
)
from ..services.location_store import LocationStore, SqlLocationStore
from ..services.search_session import CountySearchSession, SearchSessionRegistry

router = APIRouter(prefix="/locations", tags=["locations"])


# -----------------------------
# Dependencies
# -----------------------------

_registry: Optional[SearchSessionRegistry] = None


def get_location_store() -> LocationStore:
    return SqlLocationStore()


def get_registry() -> SearchSessionRegistry:
    global _registry
    if _registry is None:
        _registry = SearchSessionRegistry(
            get_location_store,
            max_sessions=settings.max_search_sessions,
            debounce_seconds=settings.radius_debounce_seconds,
        )
    return _registry


def close_registry() -> None:
    """
    Drop all sessions and cancel their pending re-searches (app shutdown).
    """
    global _registry
    if _registry is not None:
        _registry.clear()
        _registry = None


def _get_session_or_404(registry: SearchSessionRegistry, sid: str) -> CountySearchSession:
    session = registry.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail="Search session not found")
    return session


# -----------------------------
# Schemas
# -----------------------------

class SearchRequest(BaseModel):
    zip_code: str = PydField(..., min_length=1, max_length=16)
    radius_miles: Optional[float] = PydField(default=None, gt=0)


class CriteriaUpdate(BaseModel):
    """
    Partial FilterCriteria: only the fields present are changed.
    """
    radius_miles: Optional[float] = PydField(default=None, gt=0)
    min_population: Optional[float] = PydField(default=None, ge=0)
    max_population: Optional[float] = PydField(default=None, ge=0)
    min_median_age: Optional[float] = PydField(default=None, ge=0)
    max_median_age: Optional[float] = PydField(default=None, ge=0)
    min_household_income: Optional[float] = PydField(default=None, ge=0)
    max_household_income: Optional[float] = PydField(default=None, ge=0)
    min_home_value: Optional[float] = PydField(default=None, ge=0)
    max_home_value: Optional[float] = PydField(default=None, ge=0)
    home_ownership_min: Optional[float] = PydField(default=None, ge=0)
    home_ownership_max: Optional[float] = PydField(default=None, ge=0)
    selected_states: Optional[Set[str]] = None


# -----------------------------
# Helpers
# -----------------------------

def _check_radius(radius_miles: Optional[float]) -> None:
    if radius_miles is not None and radius_miles > settings.max_radius_miles:
        raise HTTPException(
            status_code=400,
            detail=f"radius_miles must be <= {settings.max_radius_miles:g}",
        )


def _http_error(exc: LocationSearchError) -> HTTPException:
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, NoPriorSearchError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, SearchFailedError):
        return HTTPException(status_code=502, detail="Location search failed. Please try again.")
    return HTTPException(status_code=500, detail=str(exc))


def county_payload(county: CountyAggregate, *, include_cities: bool = False) -> Dict[str, Any]:
    data = asdict(county)
    if include_cities:
        data["cities"] = list(data["cities"])
    else:
        data.pop("cities")
    return data


def _counties_payload(counties: List[CountyAggregate], include_cities: bool) -> List[Dict[str, Any]]:
    return [county_payload(c, include_cities=include_cities) for c in counties]


# -----------------------------
# Stateless search
# -----------------------------

@router.get("/search")
async def search_once(
    zip_code: str = Query(..., min_length=1, max_length=16),
    radius_miles: Optional[float] = Query(default=None, gt=0),
    include_cities: bool = Query(False),
    store: LocationStore = Depends(get_location_store),
) -> Dict[str, Any]:
    """
    One-shot search with no session: full county list for the radius, unfiltered.
    """
    radius = radius_miles if radius_miles is not None else settings.default_radius_miles
    _check_radius(radius)

    try:
        center, counties = await asyncio.to_thread(run_county_search, store, zip_code, radius)
    except LocationSearchError as exc:
        raise _http_error(exc) from exc

    return {
        "center": asdict(center.coords) if center.coords else None,
        "postal_code": center.postal_code,
        "radius_miles": radius,
        "counties": _counties_payload(counties, include_cities),
    }


# -----------------------------
# Search sessions
# -----------------------------

@router.post("/sessions")
def create_session(registry: SearchSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    criteria = FilterCriteria(radius_miles=settings.default_radius_miles)
    sid, session = registry.create(criteria=criteria)
    return {"session_id": sid, **session.snapshot()}


@router.get("/sessions/{sid}")
def get_session_snapshot(sid: str, registry: SearchSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    session = _get_session_or_404(registry, sid)
    return {"session_id": sid, **session.snapshot()}


@router.delete("/sessions/{sid}")
def delete_session(sid: str, registry: SearchSessionRegistry = Depends(get_registry)) -> Dict[str, Any]:
    if not registry.discard(sid):
        raise HTTPException(status_code=404, detail="Search session not found")
    return {"ok": True}


@router.post("/sessions/{sid}/search")
async def session_search(
    sid: str,
    payload: SearchRequest,
    include_cities: bool = Query(False),
    registry: SearchSessionRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    session = _get_session_or_404(registry, sid)
    _check_radius(payload.radius_miles)

    try:
        result = await session.search(payload.zip_code, payload.radius_miles)
    except LocationSearchError as exc:
        raise _http_error(exc) from exc

    return {
        "state": session.state.value,
        "center": asdict(result.center) if result.center else None,
        "total_in_radius": len(session.all_counties_in_radius),
        "counties": _counties_payload(result.counties, include_cities),
    }


@router.post("/sessions/{sid}/filters")
async def session_filters(
    sid: str,
    payload: CriteriaUpdate,
    include_cities: bool = Query(False),
    registry: SearchSessionRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """
    Update criteria. A radius change schedules a debounced re-search; any
    other change re-filters the cached counties immediately.
    """
    session = _get_session_or_404(registry, sid)
    changes = payload.model_dump(exclude_none=True)
    _check_radius(changes.get("radius_miles"))

    research_scheduled = session.update_criteria(**changes)

    try:
        counties = session.apply_filters()
    except LocationSearchError as exc:
        raise _http_error(exc) from exc

    return {
        "state": session.state.value,
        "research_scheduled": research_scheduled,
        "criteria": session.criteria.model_dump(mode="json"),
        "counties": _counties_payload(counties, include_cities),
    }


@router.get("/sessions/{sid}/states")
def session_states(sid: str, registry: SearchSessionRegistry = Depends(get_registry)) -> List[Dict[str, Any]]:
    session = _get_session_or_404(registry, sid)
    try:
        return session.state_facets()
    except LocationSearchError as exc:
        raise _http_error(exc) from exc


@router.get("/sessions/{sid}/cities")
def session_county_cities(
    sid: str,
    county_name: str = Query(..., min_length=1),
    state_id: Optional[str] = Query(None),
    registry: SearchSessionRegistry = Depends(get_registry),
) -> List[Dict[str, Any]]:
    """
    Drill-down: member cities of one county from the last search.
    """
    session = _get_session_or_404(registry, sid)
    if not session.has_initial_search:
        raise _http_error(NoPriorSearchError())

    for county in session.all_counties_in_radius:
        if county.county_name == county_name and (state_id is None or county.state_id == state_id):
            return [asdict(c) for c in county.cities]

    raise HTTPException(status_code=404, detail="County not found in the last search")
