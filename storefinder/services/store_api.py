from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from storefinder.config import Settings, get_settings
from storefinder.errors import MalformedResponse, StoreApiError
from storefinder.models import Coordinates, NewStore, SearchPage, Store, Suggestion

logger = logging.getLogger(__name__)


def parse_search_page(data: Any, page: int) -> SearchPage:
    """Read a search response: {"stores": [...], "totalPages": n}, or a bare list as a last page."""
    if isinstance(data, list):
        items, total_pages = data, page
    elif isinstance(data, dict) and isinstance(data.get("stores"), list):
        items = data["stores"]
        total = data.get("totalPages", data.get("total_pages"))
        try:
            total_pages = int(total) if total is not None else page
        except (TypeError, ValueError):
            raise MalformedResponse(f"totalPages is not a number: {total!r}")
    else:
        raise MalformedResponse(f"Expected 'stores' to be an array, got: {type(data).__name__}")

    stores: list[Store] = []
    for item in items:
        try:
            stores.append(Store.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed store record %r: %s", item, e.errors()[:1])
    return SearchPage(stores=stores, total_pages=max(0, total_pages))


def parse_suggestions(data: Any, limit: int) -> List[Suggestion]:
    if isinstance(data, dict):
        data = data.get("suggestions", data.get("results"))
    if not isinstance(data, list):
        raise MalformedResponse(f"Expected a list of suggestions, got: {type(data).__name__}")

    seen: set[str] = set()
    result: list[Suggestion] = []
    for item in data:
        if isinstance(item, dict):
            label = item.get("label") or item.get("name") or item.get("tag")
        else:
            label = item
        if not isinstance(label, str) or not label.strip():
            continue
        label = label.strip()
        if label.lower() in seen:
            continue
        seen.add(label.lower())
        result.append(Suggestion(label=label))
        if len(result) >= limit:
            break
    return result


class StoreApiClient:
    """Thin aiohttp client for the remote store search service."""

    def __init__(self, session: aiohttp.ClientSession, settings: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def _url(self, path: str) -> str:
        return f"{str(self.settings.api_base_url).rstrip('/')}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {"User-Agent": self.settings.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_s)
        url = self._url(path)
        try:
            async with self.session.request(method, url, headers=headers, timeout=timeout, **kwargs) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except aiohttp.ClientResponseError as e:
            raise StoreApiError(f"Store API error: {e.status}", status=e.status) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StoreApiError(f"Store API unreachable: {e!r}") from e
        except ValueError as e:
            raise MalformedResponse(f"Store API returned invalid JSON for {path}") from e
        return data

    async def search(self, query: str, coords: Coordinates, page: int = 1) -> SearchPage:
        params: Dict[str, Any] = {
            "query": query,
            "page": page,
            "latitude": coords.latitude,
            "longitude": coords.longitude,
        }
        data = await self._request("GET", "stores/search", params=params)
        return parse_search_page(data, page)

    async def autocomplete(self, query: str) -> List[Suggestion]:
        data = await self._request("GET", "stores/autocomplete", params={"query": query})
        return parse_suggestions(data, self.settings.max_suggestions)

    async def add_store(self, store: NewStore) -> Dict[str, Any]:
        data = await self._request("POST", "stores", json=store.model_dump())
        return data if isinstance(data, dict) else {"ok": True}
