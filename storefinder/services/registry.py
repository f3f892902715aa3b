from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from storefinder.services.session import FinderSession

logger = logging.getLogger(__name__)


@dataclass
class SessionEntry:
    session: FinderSession
    expires_at: float


class SessionRegistry:
    """Live finder sessions with idle expiry and least-recently-used eviction."""

    def __init__(self, *, ttl_s: float, max_size: int) -> None:
        self.ttl_s = ttl_s
        self.max_size = max_size
        self._entries: Dict[str, SessionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, session: FinderSession) -> FinderSession:
        now = time.monotonic()
        self._purge_expired(now)
        if len(self._entries) >= self.max_size:
            self._evict_oldest()
        self._entries[session.id] = SessionEntry(session=session, expires_at=now + self.ttl_s)
        return session

    def get(self, session_id: str) -> Optional[FinderSession]:
        now = time.monotonic()
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        if entry.expires_at < now:
            self._close(session_id)
            return None
        entry.expires_at = now + self.ttl_s
        return entry.session

    def drop(self, session_id: str) -> bool:
        if session_id not in self._entries:
            return False
        self._close(session_id)
        return True

    def clear(self) -> None:
        for session_id in list(self._entries):
            self._close(session_id)

    def _close(self, session_id: str) -> None:
        entry = self._entries.pop(session_id, None)
        if entry is not None:
            entry.session.close()

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            logger.debug("Finder session %s expired", key)
            self._close(key)

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest_key = min(self._entries.items(), key=lambda item: item[1].expires_at)[0]
        logger.info("Evicting idle finder session %s", oldest_key)
        self._close(oldest_key)
