from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote, urlencode

import phonenumbers

from storefinder.models import ActionLinks, Store

logger = logging.getLogger(__name__)

# Values the backend stores when a shop has no usable number (spreadsheet imports).
INVALID_PHONES = {"", "0", "nan"}

_DIRECTIONS_URL = "https://www.google.com/maps/dir/"
_CHAT_URL = "https://wa.me/"


def is_valid_phone(phone: Optional[str]) -> bool:
    if phone is None:
        return False
    return phone.strip().lower() not in INVALID_PHONES


def region_for(country_code: str) -> Optional[str]:
    try:
        region = phonenumbers.region_code_for_country_code(int(country_code))
    except ValueError:
        return None
    return None if region == phonenumbers.UNKNOWN_REGION else region


def normalize_phone(phone: Optional[str], country_code: str = "91") -> Optional[str]:
    """E.164 form of a store phone, local numbers read in the default country; None if not dialable."""
    if not is_valid_phone(phone):
        return None
    try:
        parsed = phonenumbers.parse(phone.strip(), region_for(country_code))
    except phonenumbers.NumberParseException:
        logger.debug("Unparseable store phone %r", phone)
        return None
    if not phonenumbers.is_possible_number(parsed):
        logger.debug("Impossible store phone %r", phone)
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def directions_url(store: Store) -> Optional[str]:
    if store.coordinates is not None:
        destination = f"{store.coordinates.latitude},{store.coordinates.longitude}"
    elif store.address.strip():
        destination = store.address.strip()
    else:
        return None
    return f"{_DIRECTIONS_URL}?{urlencode({'api': 1, 'destination': destination}, quote_via=quote, safe=',')}"


def build_links(store: Store, country_code: str = "91") -> ActionLinks:
    links = ActionLinks(directions=directions_url(store))
    e164 = normalize_phone(store.phone, country_code)
    if e164 is None:
        return links
    links.call = f"tel:{e164}"
    links.chat = f"{_CHAT_URL}{e164.lstrip('+')}"
    return links
