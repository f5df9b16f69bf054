from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field as PydField
from sqlmodel import Session, select

from ..models.location_data import LocationData
from ..models.location_list import LocationList, LocationListItem, utcnow
from .geo import normalize

logger = logging.getLogger(__name__)


# -----------------------------
# Schemas
# -----------------------------

class LocationListItemIn(BaseModel):
    location_data_id: Optional[int] = None
    city: str = PydField(..., min_length=1)
    state_name: str = PydField(..., min_length=1)
    county_name: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "US"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_miles: Optional[float] = None


class LocationListCreate(BaseModel):
    """
    Schema-based create so clients can't pass DB-only fields (ids, counts, timestamps).
    """
    name: str = PydField(..., min_length=1, max_length=128)
    description: Optional[str] = PydField(default=None, max_length=512)
    center_city: str = PydField(..., min_length=1)
    center_latitude: float = PydField(..., ge=-90, le=90)
    center_longitude: float = PydField(..., ge=-180, le=180)
    radius_miles: float = PydField(..., gt=0)
    filters: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    items: List[LocationListItemIn] = PydField(default_factory=list)


@dataclass(frozen=True)
class CountyRollup:
    """
    County grouping rebuilt from a saved list's items.
    """
    county_name: Optional[str]
    state_name: str
    city_count: int
    total_population: float
    center_lat: Optional[float]
    center_lng: Optional[float]


# -----------------------------
# Operations
# -----------------------------

def save_list(session: Session, payload: LocationListCreate) -> Tuple[LocationList, List[LocationListItem]]:
    now = utcnow()
    location_list = LocationList(
        name=payload.name.strip(),
        description=payload.description,
        center_city=payload.center_city.strip(),
        center_latitude=payload.center_latitude,
        center_longitude=payload.center_longitude,
        radius_miles=payload.radius_miles,
        filters=payload.filters,
        created_by=payload.created_by,
        location_count=len(payload.items),
        created_at=now,
        updated_at=now,
    )
    session.add(location_list)
    session.flush()

    items = [
        LocationListItem(list_id=location_list.id, **item.model_dump())
        for item in payload.items
    ]
    session.add_all(items)
    session.commit()

    session.refresh(location_list)
    for item in items:
        session.refresh(item)

    logger.info("Saved location list %s (%r) with %d items", location_list.id, location_list.name, len(items))
    return location_list, items


def recent_lists(session: Session, limit: int = 10) -> List[LocationList]:
    limit = max(1, int(limit))
    stmt = select(LocationList).order_by(LocationList.updated_at.desc(), LocationList.id.desc()).limit(limit)
    return list(session.exec(stmt).all())


def list_items(session: Session, list_id: int) -> List[LocationListItem]:
    stmt = select(LocationListItem).where(LocationListItem.list_id == list_id).order_by(LocationListItem.id)
    return list(session.exec(stmt).all())


def _populations(session: Session, items: List[LocationListItem]) -> Dict[int, float]:
    ids = [i.location_data_id for i in items if i.location_data_id is not None]
    if not ids:
        return {}
    rows = session.exec(select(LocationData.id, LocationData.population).where(LocationData.id.in_(ids))).all()
    return {row_id: normalize(population) for row_id, population in rows}


def rollup_counties(items: List[LocationListItem], populations: Dict[int, float]) -> List[CountyRollup]:
    """
    Group saved cities by (county_name, state_name). Center is the mean of
    the item coordinates that are present.
    """
    groups: Dict[Tuple[Optional[str], str], List[LocationListItem]] = {}
    for item in items:
        groups.setdefault((item.county_name, item.state_name), []).append(item)

    out: List[CountyRollup] = []
    for (county_name, state_name), members in groups.items():
        lats = [m.latitude for m in members if m.latitude is not None]
        lngs = [m.longitude for m in members if m.longitude is not None]
        out.append(
            CountyRollup(
                county_name=county_name,
                state_name=state_name,
                city_count=len(members),
                total_population=sum(populations.get(m.location_data_id, 0.0) for m in members),
                center_lat=sum(lats) / len(lats) if lats else None,
                center_lng=sum(lngs) / len(lngs) if lngs else None,
            )
        )
    return out


def load_list(
    session: Session,
    list_id: int,
) -> Optional[Tuple[LocationList, List[LocationListItem], List[CountyRollup]]]:
    """
    Fetch a saved list with its items and county rollup; stamps last_accessed_at.
    """
    location_list = session.get(LocationList, list_id)
    if location_list is None:
        return None

    location_list.last_accessed_at = utcnow()
    session.add(location_list)
    session.commit()
    session.refresh(location_list)

    # Loaded after the commit so the returned rows are not expired
    items = list_items(session, list_id)
    counties = rollup_counties(items, _populations(session, items))

    return location_list, items, counties


def delete_list(session: Session, list_id: int) -> bool:
    location_list = session.get(LocationList, list_id)
    if location_list is None:
        return False

    for item in list_items(session, list_id):
        session.delete(item)
    session.delete(location_list)
    session.commit()
    logger.info("Deleted location list %s", list_id)
    return True
