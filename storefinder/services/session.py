from __future__ import annotations

import logging
import uuid
from typing import Optional

from storefinder.config import Settings, SuggestionMode, get_settings
from storefinder.models import Coordinates, SessionView, StoreView
from storefinder.services.distance import annotate, nearest_first
from storefinder.services.geolocation import STATUS_UNAVAILABLE, GeolocationProvider
from storefinder.services.links import build_links
from storefinder.services.pager import ResultsPager
from storefinder.services.query_store import SearchQueryStore
from storefinder.services.store_api import StoreApiClient
from storefinder.services.suggestions import FuzzySuggestions, RemoteSuggestions, SuggestionSource

logger = logging.getLogger(__name__)

LOCATION_NOT_READY = "Location not ready yet."


class FinderSession:
    """One finder view: location, query box, result pages and their display decoration."""

    def __init__(
        self,
        client: StoreApiClient,
        geolocation: GeolocationProvider,
        *,
        settings: Optional[Settings] = None,
        suggestions: Optional[SuggestionSource] = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.settings = settings or get_settings()
        self.geolocation = geolocation
        self.pager = ResultsPager(client, max_load_count=self.settings.max_load_count)
        if suggestions is None:
            suggestions = self._default_suggestions(client)
        self.query = SearchQueryStore(
            suggestions,
            self._on_commit,
            debounce_s=self.settings.debounce_s,
            default_query=self.settings.default_query,
            auto_commit=self.settings.auto_search,
        )
        self.advisory: Optional[str] = None

    def _default_suggestions(self, client: StoreApiClient) -> SuggestionSource:
        if self.settings.suggestion_mode == SuggestionMode.FUZZY:
            return FuzzySuggestions(
                lambda: [store.name for store in self.pager.state.results],
                max_distance=self.settings.fuzzy_max_distance,
                limit=self.settings.max_suggestions,
            )
        return RemoteSuggestions(client)

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return self.geolocation.coordinates

    async def start(self) -> Optional[Coordinates]:
        coords = await self.geolocation.acquire()
        self.advisory = self.geolocation.advisory
        return coords

    def type(self, text: str) -> None:
        self.query.set_text(text)
        self.pager.track_text(text)

    async def commit(self) -> str:
        return await self.query.commit()

    async def select(self, label: str) -> str:
        self.pager.track_text(label)
        return await self.query.select(label)

    def dismiss_suggestions(self) -> None:
        self.query.dismiss()

    async def load_more(self) -> bool:
        return await self.pager.load_more()

    async def set_location(self, coords: Coordinates) -> None:
        changed = coords != self.coordinates
        self.geolocation.report(coords)
        self.advisory = None
        if changed and self.query.committed_query:
            await self.pager.reset(self.query.committed_query, coords)

    async def _on_commit(self, query: str) -> None:
        coords = self.coordinates
        if coords is None:
            logger.info("Search for %r ignored: location status is %s", query, self.geolocation.status)
            self.advisory = LOCATION_NOT_READY
            return
        self.advisory = None
        await self.pager.reset(query, coords)

    def view(self, order: str = "server") -> SessionView:
        """Render the current frame; ``order="distance"`` lists the nearest stores first."""
        state = self.pager.state
        coords = self.coordinates
        results = [
            StoreView(
                store=store,
                distance_km=annotate(coords, store),
                links=build_links(store, self.settings.default_country_code),
            )
            for store in state.results
        ]
        if order == "distance":
            results = nearest_first(results)
        advisory = state.advisory or self.advisory
        if advisory is None and self.geolocation.status == STATUS_UNAVAILABLE:
            advisory = self.geolocation.advisory
        return SessionView(
            session_id=self.id,
            location_status=self.geolocation.status,
            coordinates=coords,
            query_text=state.query_text,
            committed_query=self.query.committed_query,
            suggestions=list(self.query.suggestions),
            phase=state.phase.value,
            outcome=state.outcome.value if state.outcome else None,
            page=state.page,
            results=results,
            has_more=state.has_more,
            is_loading=state.is_loading,
            load_count=state.load_count,
            can_load_more=self.pager.can_load_more(),
            advisory=advisory,
        )

    def close(self) -> None:
        self.query.close()
