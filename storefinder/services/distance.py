from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from storefinder.models import Coordinates, Store, StoreView, parse_coordinate

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: object, lon1: object, lat2: object, lon2: object) -> Optional[float]:
    """Great-circle distance in km between two WGS84 coords, rounded to 2 decimals.

    Inputs may be raw API values; None is returned (and the input logged) when any of
    them is not a finite number.
    """
    values = [parse_coordinate(v) for v in (lat1, lon1, lat2, lon2)]
    if any(v is None for v in values):
        logger.warning("Cannot compute distance for malformed coordinates: %r", (lat1, lon1, lat2, lon2))
        return None
    a_lat, a_lon, b_lat, b_lon = values

    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlambda = math.radians(b_lon - a_lon)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # rounding noise can push a a hair above 1
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def annotate(user: Optional[Coordinates], store: Store) -> Optional[float]:
    if user is None or store.coordinates is None:
        return None
    return haversine_km(user.latitude, user.longitude, store.coordinates.latitude, store.coordinates.longitude)


def nearest_first(views: Iterable[StoreView]) -> List[StoreView]:
    """Sorted copy by distance; stores without a distance go last, server order kept among ties."""
    return sorted(views, key=lambda v: (v.distance_km is None, v.distance_km or 0.0))
