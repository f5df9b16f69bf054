from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from cachetools import LRUCache

from .county_search import (
    CountyAggregate,
    FilterCriteria,
    apply_filters,
    run_county_search,
    state_facets,
    validate_postal_code,
)
from .debounce import Debouncer
from .errors import LocationSearchError, NoPriorSearchError, NotFoundError, SearchFailedError
from .geo import Coords
from .location_store import LocationStore

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


class SearchState(str, Enum):
    """
    Idle -> Searching -> (SearchFailed | Empty | Ready)

    From Ready, a radius change goes back to Searching after the debounce
    window; any other criteria change re-filters and stays in Ready.
    """

    IDLE = "idle"
    SEARCHING = "searching"
    SEARCH_FAILED = "search_failed"
    EMPTY = "empty"
    READY = "ready"


@dataclass(frozen=True)
class SearchResult:
    counties: List[CountyAggregate]
    center: Optional[Coords]


class CountySearchSession:
    """
    Owns one user's search state: criteria, the resolved center and the full
    county list for the last radius (all_counties_in_radius).

    Each search takes a generation number when it starts. Only the newest
    generation may write session state, so a slow older search finishing late
    cannot overwrite a newer result.
    """

    def __init__(
        self,
        store: LocationStore,
        *,
        criteria: Optional[FilterCriteria] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.store = store
        self.criteria = criteria or FilterCriteria()
        self.state = SearchState.IDLE
        self.center: Optional[Coords] = None
        self.postal_code: Optional[str] = None
        self.has_initial_search = False
        self.last_error: Optional[str] = None

        self._all_counties: Optional[Tuple[CountyAggregate, ...]] = None
        self._generation = 0
        self._debouncer = Debouncer(debounce_seconds, name="radius_research")

    # -------------------------
    # Read accessors
    # -------------------------

    @property
    def all_counties_in_radius(self) -> Tuple[CountyAggregate, ...]:
        return self._all_counties or ()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def research_pending(self) -> bool:
        return self._debouncer.pending

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # -------------------------
    # Full search
    # -------------------------

    async def search(self, postal_code: Any, radius_miles: Optional[float] = None) -> SearchResult:
        """
        Resolve the ZIP, fetch and aggregate counties within the radius, and
        return them filtered by the current criteria.

        Raises InvalidInputError (nothing queried, state untouched),
        NotFoundError (results cleared) or SearchFailedError.
        """
        zip5 = validate_postal_code(postal_code)

        radius = float(radius_miles) if radius_miles is not None else self.criteria.radius_miles
        if radius != self.criteria.radius_miles:
            self.criteria = FilterCriteria.model_validate(
                {**self.criteria.model_dump(), "radius_miles": radius}
            )
        criteria = self.criteria

        self._generation += 1
        generation = self._generation
        self.state = SearchState.SEARCHING

        try:
            center, counties = await asyncio.to_thread(run_county_search, self.store, zip5, radius)
        except NotFoundError as exc:
            if self._is_current(generation):
                self._all_counties = None
                self.center = None
                self.postal_code = None
                self.has_initial_search = False
                self.last_error = str(exc)
                self.state = SearchState.EMPTY
            raise
        except SearchFailedError as exc:
            if self._is_current(generation):
                self.last_error = str(exc)
                self.state = SearchState.SEARCH_FAILED
            raise
        except LocationSearchError:
            raise
        except Exception as exc:
            logger.exception("County search crashed for ZIP %s", zip5)
            if self._is_current(generation):
                self.last_error = str(exc)
                self.state = SearchState.SEARCH_FAILED
            raise SearchFailedError("search", str(exc)) from exc

        visible = apply_filters(counties, criteria)

        if not self._is_current(generation):
            logger.debug(
                "Dropping stale search result (generation %d, current %d)",
                generation,
                self._generation,
            )
            return SearchResult(counties=visible, center=center.coords)

        self._all_counties = tuple(counties)
        self.center = center.coords
        self.postal_code = zip5
        self.has_initial_search = True
        self.last_error = None
        self.state = SearchState.READY if counties else SearchState.EMPTY

        return SearchResult(counties=visible, center=center.coords)

    # -------------------------
    # Filter-only path
    # -------------------------

    def apply_filters(self, criteria: Optional[FilterCriteria] = None) -> List[CountyAggregate]:
        """
        Re-filter the cached county list. No network, no state change.
        """
        if self._all_counties is None:
            raise NoPriorSearchError()
        return apply_filters(self._all_counties, criteria or self.criteria)

    def state_facets(self) -> List[Dict[str, Any]]:
        if self._all_counties is None:
            raise NoPriorSearchError()
        return state_facets(self._all_counties)

    def update_criteria(self, **changes: Any) -> bool:
        """
        Merge criteria changes. Returns True when a radius change scheduled a
        debounced full re-search; other changes only affect apply_filters().

        Scheduling needs a running event loop.
        """
        updated = FilterCriteria.model_validate({**self.criteria.model_dump(), **changes})
        radius_changed = updated.radius_miles != self.criteria.radius_miles
        self.criteria = updated

        if not radius_changed or not self.has_initial_search or not self.postal_code:
            return False

        postal_code = self.postal_code
        radius = updated.radius_miles

        async def _research() -> None:
            try:
                await self.search(postal_code, radius)
            except LocationSearchError as exc:
                # Already reflected in state/last_error
                logger.warning("Debounced re-search for ZIP %s failed: %s", postal_code, exc)

        self._debouncer.schedule(_research)
        logger.info("Radius changed to %.1f mi; re-search scheduled", radius)
        return True

    async def settle(self) -> None:
        """
        Wait for a pending debounced re-search, if any, to finish.
        """
        task = self._debouncer.task
        if task is None or task.done():
            return
        try:
            await task
        except asyncio.CancelledError:
            # Superseded by a newer radius change; wait for that one instead
            await self.settle()

    def cancel_pending(self) -> bool:
        return self._debouncer.cancel()

    # -------------------------
    # Serialization
    # -------------------------

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "postal_code": self.postal_code,
            "center": asdict(self.center) if self.center else None,
            "criteria": self.criteria.model_dump(mode="json"),
            "has_initial_search": self.has_initial_search,
            "research_pending": self.research_pending,
            "county_count": len(self.all_counties_in_radius),
            "last_error": self.last_error,
        }


class _SessionCache(LRUCache):
    """
    LRUCache that cancels an evicted session's pending re-search.
    """

    def popitem(self):
        sid, session = super().popitem()
        session.cancel_pending()
        logger.info("Evicted search session %s", sid)
        return sid, session


class SearchSessionRegistry:
    """
    In-process map of session id -> CountySearchSession. The least recently
    used session is evicted once max_sessions is reached.
    """

    def __init__(
        self,
        store_factory: Callable[[], LocationStore],
        *,
        max_sessions: int = 500,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self._store_factory = store_factory
        self._debounce_seconds = debounce_seconds
        self._sessions = _SessionCache(maxsize=max(1, int(max_sessions)))

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, criteria: Optional[FilterCriteria] = None) -> Tuple[str, CountySearchSession]:
        sid = uuid.uuid4().hex
        session = CountySearchSession(
            self._store_factory(),
            criteria=criteria,
            debounce_seconds=self._debounce_seconds,
        )
        self._sessions[sid] = session
        return sid, session

    def get(self, sid: str) -> Optional[CountySearchSession]:
        # LRUCache.get() marks the entry as recently used
        return self._sessions.get(sid)

    def discard(self, sid: str) -> bool:
        session = self._sessions.pop(sid, None)
        if session is None:
            return False
        session.cancel_pending()
        return True

    def clear(self) -> None:
        # MutableMapping.clear() drains through popitem(), which cancels pending re-searches
        self._sessions.clear()
