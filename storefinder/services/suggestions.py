from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, List

from storefinder.models import Suggestion
from storefinder.services.store_api import StoreApiClient


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert/delete/substitute, each cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


class SuggestionSource(ABC):
    @abstractmethod
    async def suggest(self, text: str) -> List[Suggestion]:
        """Suggestions for partial text. May raise StoreApiError/MalformedResponse."""
        ...


class RemoteSuggestions(SuggestionSource):
    def __init__(self, client: StoreApiClient) -> None:
        self.client = client

    async def suggest(self, text: str) -> List[Suggestion]:
        return await self.client.autocomplete(text)


class FuzzySuggestions(SuggestionSource):
    """Matches the typed text against store names already on screen."""

    def __init__(self, names: Callable[[], Iterable[str]], max_distance: int = 3, limit: int = 8) -> None:
        self.names = names
        self.max_distance = max_distance
        self.limit = limit

    async def suggest(self, text: str) -> List[Suggestion]:
        needle = text.strip().lower()
        if not needle:
            return []
        seen: set[str] = set()
        result: list[Suggestion] = []
        for name in self.names():
            key = name.lower()
            if key in seen:
                continue
            if levenshtein(needle, key) <= self.max_distance:
                seen.add(key)
                result.append(Suggestion(label=name))
                if len(result) >= self.limit:
                    break
        return result
