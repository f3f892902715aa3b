from __future__ import annotations

import logging
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


def parse_coordinate(value: Any) -> Optional[float]:
    """Return value as a finite float, or None if it is not one (bools, "abc", NaN, inf...)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class Store(BaseModel):
    """A store record as returned by the search service. Never mutated client-side."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    address: str = ""
    phone: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    tags: set[str] = Field(default_factory=set)

    @model_validator(mode="before")
    @classmethod
    def _from_api_record(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        record = dict(data)
        existing = record.pop("coordinates", None)
        if isinstance(existing, Coordinates):
            existing = existing.model_dump()
        if isinstance(existing, dict):
            record.setdefault("latitude", existing.get("latitude"))
            record.setdefault("longitude", existing.get("longitude"))
        if "id" not in record and "_id" in record:
            record["id"] = record.pop("_id")
        if record.get("id") is not None:
            record["id"] = str(record["id"])

        phone = record.get("phone")
        if phone is not None and not isinstance(phone, str):
            record["phone"] = str(phone)

        # Backend variants: latitude/longitude, lat/lng, or GeoJSON location.coordinates=[lng, lat]
        alt_lat = record.pop("lat", None)
        alt_lon = record.pop("lng", record.pop("lon", None))
        raw_lat = record.pop("latitude", alt_lat)
        raw_lon = record.pop("longitude", alt_lon)
        location = record.pop("location", None)
        if raw_lat is None and raw_lon is None and isinstance(location, dict):
            pair = location.get("coordinates")
            if isinstance(pair, (list, tuple)) and len(pair) == 2:
                raw_lon, raw_lat = pair

        lat = parse_coordinate(raw_lat)
        lon = parse_coordinate(raw_lon)
        if lat is not None and lon is not None and -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0:
            record["coordinates"] = {"latitude": lat, "longitude": lon}
        else:
            if raw_lat is not None or raw_lon is not None:
                logger.warning("Store %s has unusable coordinates: %r, %r", record.get("id"), raw_lat, raw_lon)
            record["coordinates"] = None

        tags = record.get("tags")
        if tags is None:
            record["tags"] = set()
        elif isinstance(tags, str):
            record["tags"] = {t.strip().lower() for t in tags.split(",") if t.strip()}
        return record


class SearchPage(BaseModel):
    stores: List[Store] = Field(default_factory=list)
    total_pages: int = Field(1, ge=0)


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str


class NewStore(BaseModel):
    """Administrative add-store form."""

    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    phone: str = ""
    tags: List[str] = Field(default_factory=list)
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple, set)):
            return [str(tag).strip().lower() for tag in value if str(tag).strip()]
        return value


class ActionLinks(BaseModel):
    call: Optional[str] = None
    chat: Optional[str] = None
    directions: Optional[str] = None


class StoreView(BaseModel):
    store: Store
    distance_km: Optional[float] = None
    links: ActionLinks


class SessionView(BaseModel):
    """Everything a UI needs to render one frame of the finder."""

    session_id: str = ""
    location_status: str
    coordinates: Optional[Coordinates] = None
    query_text: str = ""
    committed_query: str = ""
    suggestions: List[Suggestion] = Field(default_factory=list)
    phase: str
    outcome: Optional[str] = None
    page: int = 1
    results: List[StoreView] = Field(default_factory=list)
    has_more: bool = False
    is_loading: bool = False
    load_count: int = 0
    can_load_more: bool = False
    advisory: Optional[str] = None


class SessionCreate(BaseModel):
    """Position report sent by the browser when the finder view opens."""

    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)
    denied: bool = Field(False, description="Device refused or failed to report a position")


class QueryInput(BaseModel):
    text: str = ""


class SearchInput(BaseModel):
    text: Optional[str] = None


class SelectInput(BaseModel):
    label: str = Field(..., min_length=1)
