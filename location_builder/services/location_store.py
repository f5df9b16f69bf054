from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..models.location_data import LocationData
from .errors import SearchFailedError
from .geo import BoundingBox

logger = logging.getLogger(__name__)


class LocationStore(Protocol):
    """
    The two query shapes the county search needs from the location dataset.
    """

    def find_center(self, postal_code: str) -> Optional[LocationData]:
        ...

    def find_in_box(self, box: BoundingBox) -> List[LocationData]:
        ...


def box_query(box: BoundingBox):
    """
    Rows inside the box with a non-blank population.

    population is free text ("28,521", "n/a", ...), so no numeric cast happens
    in SQL; enrich_candidates() applies population >= 1 after normalize().
    """
    return select(LocationData).where(
        LocationData.latitude.between(box.lat_min, box.lat_max),
        LocationData.longitude.between(box.lng_min, box.lng_max),
        func.coalesce(func.trim(LocationData.population), "") != "",
    )


class SqlLocationStore:
    """
    LocationStore over the `location_data` table.

    Every query opens its own short-lived session so the store can be shared
    by concurrent searches and called from a worker thread.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        if self._session_factory is not None:
            return self._session_factory()
        # Resolved at call time so tests can swap the shared engine
        from ..database import get_session

        return get_session()

    def find_center(self, postal_code: str) -> Optional[LocationData]:
        stmt = (
            select(LocationData)
            .where(
                LocationData.postal_code == postal_code,
                LocationData.latitude.is_not(None),
                LocationData.longitude.is_not(None),
            )
            .order_by(LocationData.id)
            .limit(1)
        )
        try:
            with self._session() as session:
                return session.exec(stmt).first()
        except SQLAlchemyError as exc:
            logger.exception("Center lookup failed for postal_code=%s", postal_code)
            raise SearchFailedError("center_lookup", str(exc)) from exc

    def find_in_box(self, box: BoundingBox) -> List[LocationData]:
        stmt = box_query(box)
        try:
            with self._session() as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as exc:
            logger.exception("Range scan failed for box=%s", box)
            raise SearchFailedError("range_scan", str(exc)) from exc
