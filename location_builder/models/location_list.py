from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocationList(SQLModel, table=True):
    """
    A saved set of targeted cities built from a county radius search.

    center_* and radius_miles record the search the list came from so it can
    be reopened on the map; filters keeps the criteria snapshot as JSON.
    """

    __tablename__ = "location_lists"

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str = Field(index=True, max_length=128)
    description: Optional[str] = Field(default=None, max_length=512)

    center_city: str = Field(max_length=128)
    center_latitude: float
    center_longitude: float
    radius_miles: float

    location_count: int = Field(default=0)
    filters: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_by: Optional[str] = Field(default=None, max_length=128)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, index=True)
    last_accessed_at: Optional[datetime] = Field(default=None)


class LocationListItem(SQLModel, table=True):
    __tablename__ = "location_list_items"

    id: Optional[int] = Field(default=None, primary_key=True)

    list_id: int = Field(foreign_key="location_lists.id", index=True)
    location_data_id: Optional[int] = Field(default=None, index=True)

    city: str = Field(max_length=128)
    state_name: str = Field(max_length=64)
    county_name: Optional[str] = Field(default=None, max_length=128)
    postal_code: Optional[str] = Field(default=None, max_length=10)
    country: str = Field(default="US", max_length=8)

    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)
    distance_miles: Optional[float] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)

    # NOTE: Relationship intentionally omitted; items are queried by list_id explicitly.
