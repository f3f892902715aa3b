"""One-shot position acquisition with a fallback-or-block policy."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
from pydantic import ValidationError

from storefinder.config import LocationPolicy, Settings, get_settings
from storefinder.errors import GeolocationUnavailable
from storefinder.models import Coordinates

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_LOCATED = "located"
STATUS_FALLBACK = "fallback"
STATUS_UNAVAILABLE = "unavailable"


class PositionSource(ABC):
    @abstractmethod
    async def locate(self) -> Coordinates:
        """Return the current position or raise GeolocationUnavailable."""
        ...


class ReportedPosition(PositionSource):
    """Position the client device already reported (or refused to report)."""

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        *,
        denied: bool = False,
    ) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.denied = denied

    async def locate(self) -> Coordinates:
        if self.denied:
            raise GeolocationUnavailable("permission denied")
        if self.latitude is None or self.longitude is None:
            raise GeolocationUnavailable("position unavailable")
        try:
            return Coordinates(latitude=self.latitude, longitude=self.longitude)
        except ValidationError as e:
            raise GeolocationUnavailable("position out of range") from e


class IpGeolocationSource(PositionSource):
    """Approximate position from the caller's public IP (ip-api.com compatible)."""

    def __init__(self, session: aiohttp.ClientSession, settings: Optional[Settings] = None, ip: str = "") -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.ip = ip

    async def locate(self) -> Coordinates:
        url = f"{str(self.settings.ip_geolocation_url).rstrip('/')}/{self.ip}".rstrip("/")
        headers = {"User-Agent": self.settings.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.settings.http_timeout_s)
        try:
            async with self.session.get(url, headers=headers, timeout=timeout) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise GeolocationUnavailable("timeout") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise GeolocationUnavailable(f"lookup failed: {e!r}") from e

        if not isinstance(data, dict) or data.get("status", "success") != "success":
            raise GeolocationUnavailable("position unavailable")
        try:
            return Coordinates(latitude=data["lat"], longitude=data["lon"])
        except (KeyError, ValidationError) as e:
            raise GeolocationUnavailable("position unavailable") from e


class GeolocationProvider:
    """Resolves the session position exactly once; no retry, no cancellation.

    Concurrent ``acquire()`` calls share the single outstanding lookup.
    """

    def __init__(
        self,
        source: PositionSource,
        *,
        policy: LocationPolicy = LocationPolicy.FALLBACK,
        fallback: Optional[Coordinates] = None,
    ) -> None:
        self.source = source
        self.policy = policy
        self.fallback = fallback
        self.status = STATUS_PENDING
        self.coordinates: Optional[Coordinates] = None
        self.advisory: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, source: PositionSource, settings: Optional[Settings] = None) -> "GeolocationProvider":
        settings = settings or get_settings()
        return cls(
            source,
            policy=settings.location_policy,
            fallback=Coordinates(latitude=settings.fallback_latitude, longitude=settings.fallback_longitude),
        )

    async def acquire(self) -> Optional[Coordinates]:
        if self._task is None:
            self._task = asyncio.ensure_future(self._resolve())
        return await asyncio.shield(self._task)

    async def _resolve(self) -> Optional[Coordinates]:
        try:
            coords = await self.source.locate()
        except GeolocationUnavailable as e:
            logger.warning("Error getting location: %s", e.reason)
            if self.policy == LocationPolicy.FALLBACK and self.fallback is not None:
                self.status = STATUS_FALLBACK
                self.coordinates = self.fallback
                self.advisory = "Location unavailable; showing stores near a default location."
            else:
                self.status = STATUS_UNAVAILABLE
                self.advisory = "Location is required to find nearby stores. Please allow it."
            return self.coordinates

        self.status = STATUS_LOCATED
        self.coordinates = coords
        self.advisory = None
        return coords

    def report(self, coords: Coordinates) -> None:
        """Accept a position the device reports after acquisition settled.

        Covers permission granted late under the block policy, and a real fix
        replacing the fallback. The frozen value is swapped, never mutated.
        """
        self.coordinates = coords
        self.status = STATUS_LOCATED
        self.advisory = None
