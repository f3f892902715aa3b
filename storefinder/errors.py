from __future__ import annotations

from typing import Optional


class StoreFinderError(Exception):
    """Base class for every recoverable store finder failure."""


class GeolocationUnavailable(StoreFinderError):
    """Position could not be obtained (permission denied, timeout, no fix)."""

    def __init__(self, reason: str = "unavailable") -> None:
        super().__init__(f"Geolocation unavailable: {reason}")
        self.reason = reason


class StoreApiError(StoreFinderError):
    """Network failure or non-success status from the store search service."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedResponse(StoreFinderError):
    """The store search service answered with a payload of the wrong shape."""
