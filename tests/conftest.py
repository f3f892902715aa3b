from __future__ import annotations

import asyncio

import pytest

from storefinder.config import Settings
from storefinder.errors import StoreApiError
from storefinder.models import SearchPage, Store, Suggestion


class FakeStoreApi:
    """Stands in for StoreApiClient: canned pages keyed by (query, page), optional gates."""

    def __init__(self):
        self.pages = {}
        self.suggestions = {}
        self.gates = {}
        self.calls = []
        self.autocomplete_calls = []
        self.added = []
        self.add_error = None

    async def search(self, query, coords, page=1):
        self.calls.append((query, coords, page))
        gate = self.gates.get((query, page))
        if gate is not None:
            await gate.wait()
        result = self.pages.get((query, page), SearchPage(stores=[], total_pages=0))
        if isinstance(result, Exception):
            raise result
        return result

    async def autocomplete(self, query):
        self.autocomplete_calls.append(query)
        gate = self.gates.get(("autocomplete", query))
        if gate is not None:
            await gate.wait()
        result = self.suggestions.get(query, [])
        if isinstance(result, Exception):
            raise result
        return [Suggestion(label=label) for label in result]

    async def add_store(self, store):
        if self.add_error is not None:
            raise self.add_error
        self.added.append(store)
        return {"_id": "new-1", **store.model_dump()}


def make_stores(prefix, count, start=0):
    return [
        Store.model_validate(
            {
                "_id": f"{prefix}-{i}",
                "name": f"{prefix.title()} Store {i}",
                "address": f"{i} MG Road, Pune",
                "phone": f"098765{i:05d}",
                "latitude": 18.52 + i * 0.01,
                "longitude": 73.86,
            }
        )
        for i in range(start, start + count)
    ]


@pytest.fixture
def fake_api():
    return FakeStoreApi()


@pytest.fixture
def stores():
    return make_stores


@pytest.fixture
def settings():
    return Settings(debounce_s=0.0, max_load_count=20)


@pytest.fixture
def api_error():
    return StoreApiError("Store API error: 500", status=500)


@pytest.fixture
def run():
    def _run(coro, timeout=2.0):
        return asyncio.run(asyncio.wait_for(coro, timeout))

    return _run
