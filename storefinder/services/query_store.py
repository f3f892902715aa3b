from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from storefinder.errors import MalformedResponse, StoreApiError
from storefinder.models import Suggestion
from storefinder.services.suggestions import SuggestionSource

logger = logging.getLogger(__name__)

CommitCallback = Callable[[str], Awaitable[None]]


class SearchQueryStore:
    """Live query text, debounced autocomplete and commit/select behaviour.

    Every keystroke bumps a sequence number. A lookup that was already sent is never
    aborted; its answer is simply dropped if the sequence moved on in the meantime.
    With ``auto_commit`` the debounce timer also commits non-blank text, so typing
    alone triggers a search.
    """

    def __init__(
        self,
        source: SuggestionSource,
        on_commit: CommitCallback,
        *,
        debounce_s: float = 0.3,
        default_query: str = "advertisement",
        auto_commit: bool = False,
    ) -> None:
        self.source = source
        self.on_commit = on_commit
        self.debounce_s = debounce_s
        self.default_query = default_query
        self.auto_commit = auto_commit

        self.text = ""
        self.committed_query = ""
        self.suggestions: List[Suggestion] = []

        self._seq = 0
        self._pending: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    def set_text(self, text: str) -> None:
        """Record a keystroke. Must be called from the running event loop."""
        self.text = text
        self._invalidate()
        if not text.strip():
            self.suggestions = []
            return
        loop = asyncio.get_running_loop()
        self._pending = loop.create_task(self._debounce(self._seq, text))

    async def commit(self) -> str:
        self._invalidate()
        self.suggestions = []
        query = self.text.strip() or self.default_query
        self.committed_query = query
        await self.on_commit(query)
        return query

    async def select(self, label: str) -> str:
        self.text = label
        return await self.commit()

    def dismiss(self) -> None:
        """Focus left the input: hide suggestions and ignore lookups still in flight."""
        self._invalidate()
        self.suggestions = []

    async def wait_idle(self) -> None:
        """Wait for the pending debounce timer and every lookup already sent."""
        while True:
            tasks = list(self._inflight)
            if self._pending is not None and not self._pending.done():
                tasks.append(self._pending)
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        self._invalidate()
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    def _invalidate(self) -> None:
        self._seq += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _debounce(self, seq: int, text: str) -> None:
        await asyncio.sleep(self.debounce_s)
        if seq != self._seq:
            return
        self._spawn(self._lookup(seq, text))
        if self.auto_commit:
            self._spawn(self._debounced_commit(seq, text))

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _debounced_commit(self, seq: int, text: str) -> None:
        query = text.strip()
        if seq != self._seq or query == self.committed_query:
            return
        self.committed_query = query
        await self.on_commit(query)

    async def _lookup(self, seq: int, text: str) -> None:
        try:
            suggestions = await self.source.suggest(text)
        except (StoreApiError, MalformedResponse) as e:
            logger.warning("Autocomplete failed for %r: %s", text, e)
            suggestions = []

        if seq != self._seq or text != self.text:
            logger.debug("Dropping stale suggestions for %r (current text %r)", text, self.text)
            return
        self.suggestions = suggestions
