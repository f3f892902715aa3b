from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol

from storefinder.errors import MalformedResponse, StoreApiError
from storefinder.models import Coordinates, SearchPage, Store

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"


class StoreSearcher(Protocol):
    async def search(self, query: str, coords: Coordinates, page: int = 1) -> SearchPage: ...


@dataclass
class SearchState:
    query_text: str = ""
    committed_query: str = ""
    coordinates: Optional[Coordinates] = None
    page: int = 1
    results: List[Store] = field(default_factory=list)
    has_more: bool = False
    is_loading: bool = False
    load_count: int = 0
    phase: Phase = Phase.IDLE
    outcome: Optional[Phase] = None
    advisory: Optional[str] = None
    generation: int = 0


Listener = Callable[[SearchState], None]


class ResultsPager:
    """Owns the SearchState of one finder view and the only code paths that mutate it.

    Each reset starts a new generation; a fetch only applies (and only clears
    ``is_loading``) if its generation is still current. Phases run
    IDLE -> LOADING -> SUCCESS | FAILURE -> IDLE; the last outcome stays in
    ``state.outcome`` once the pager is idle again.
    """

    def __init__(self, searcher: StoreSearcher, *, max_load_count: int = 20) -> None:
        self.searcher = searcher
        self.max_load_count = max_load_count
        self.state = SearchState()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def track_text(self, text: str) -> None:
        """Mirror the live query text; it never triggers a fetch."""
        if text != self.state.query_text:
            self.state.query_text = text
            self._notify()

    def can_load_more(self) -> bool:
        s = self.state
        return s.has_more and not s.is_loading and s.load_count < self.max_load_count

    async def reset(self, query: str, coords: Coordinates) -> None:
        s = self.state
        s.generation += 1
        s.committed_query = query
        s.coordinates = coords
        s.page = 1
        s.results = []
        s.has_more = False
        s.load_count = 0
        s.outcome = None
        s.advisory = None
        await self._fetch(s.generation, 1)

    async def load_more(self) -> bool:
        """Fetch and append the next page. Returns False when the call was refused."""
        if not self.can_load_more() or self.state.coordinates is None:
            return False
        await self._fetch(self.state.generation, self.state.page + 1)
        return True

    async def _fetch(self, generation: int, page: int) -> None:
        s = self.state
        s.is_loading = True
        s.phase = Phase.LOADING
        self._notify()

        query, coords = s.committed_query, s.coordinates
        try:
            result = await self.searcher.search(query, coords, page)
        except StoreApiError as e:
            logger.error("Error fetching stores for %r page %s: %s", query, page, e)
            if generation == s.generation:
                s.phase = Phase.FAILURE
                s.advisory = "Error fetching stores. Please try again."
        except MalformedResponse as e:
            logger.error("Unexpected stores payload for %r page %s: %s", query, page, e)
            if generation == s.generation:
                s.has_more = False
                s.phase = Phase.FAILURE
        else:
            if generation == s.generation:
                self._apply(result, page)
            else:
                logger.debug("Discarding page %s for superseded query %r", page, query)
        finally:
            if generation == s.generation:
                s.is_loading = False
                if s.phase != Phase.LOADING:
                    s.outcome = s.phase
                    self._notify()
                s.phase = Phase.IDLE
                self._notify()

    def _apply(self, result: SearchPage, page: int) -> None:
        s = self.state
        if page == 1:
            s.results = list(result.stores)
        else:
            known = {store.id for store in s.results}
            fresh = [store for store in result.stores if store.id not in known]
            if len(fresh) != len(result.stores):
                logger.debug("Dropped %d duplicate stores from page %s", len(result.stores) - len(fresh), page)
            s.results.extend(fresh)
            s.load_count += 1
        s.page = page
        s.has_more = len(result.stores) > 0 and page < result.total_pages
        s.phase = Phase.SUCCESS
        s.advisory = None

    def _notify(self) -> None:
        snapshot = copy.copy(self.state)
        snapshot.results = list(self.state.results)
        for listener in list(self._listeners):
            listener(snapshot)
