from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from ..config import settings
from ..database import get_db
from ..models.location_list import LocationList
from ..services.saved_lists import (
    LocationListCreate,
    delete_list,
    load_list,
    recent_lists,
    save_list,
)

router = APIRouter(prefix="/lists", tags=["location_lists"])


def _list_payload(location_list: LocationList) -> Dict[str, Any]:
    return location_list.model_dump(mode="json")


@router.post("/")
def create_list(payload: LocationListCreate, db: Session = Depends(get_db)) -> Dict[str, Any]:
    location_list, items = save_list(db, payload)
    return {
        **_list_payload(location_list),
        "items": [i.model_dump(mode="json") for i in items],
    }


@router.get("/")
def get_recent_lists(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """
    Most recently updated lists first.
    """
    n = limit if limit is not None else settings.saved_lists_limit
    return [_list_payload(x) for x in recent_lists(db, n)]


@router.get("/{list_id}")
def get_list(list_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    loaded = load_list(db, list_id)
    if loaded is None:
        raise HTTPException(status_code=404, detail="Location list not found")

    location_list, items, counties = loaded
    return {
        **_list_payload(location_list),
        "items": [i.model_dump(mode="json") for i in items],
        "counties": [asdict(c) for c in counties],
        "states": sorted({i.state_name for i in items}),
    }


@router.delete("/{list_id}")
def remove_list(list_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    if not delete_list(db, list_id):
        raise HTTPException(status_code=404, detail="Location list not found")
    return {"ok": True}
