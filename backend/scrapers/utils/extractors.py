"""
Data extraction utilities for scrapers.

These functions pull numbers and flags out of listing card text using regex patterns.
"""

import re
from typing import Optional, List, Iterable, NamedTuple


ROOMS_PATTERN = re.compile(r'hab', re.IGNORECASE)
AREA_PATTERN = re.compile(r'm²|m2\b', re.IGNORECASE)
GARAGE_PATTERN = re.compile(r'garaje|parking', re.IGNORECASE)
# 1.200 / 1,200 / 85
INTEGER_PATTERN = re.compile(r'\d{1,3}(?:[.,]\d{3})+(?!\d)|\d+')

EXTRAS_SEPARATOR = ' | '


class CardDetails(NamedTuple):
    """Detail tokens of a listing card, classified."""
    rooms: Optional[int]
    area_sqm: Optional[int]
    extras: str


def parse_price(text: Optional[str]) -> Optional[int]:
    """
    Extract a price as an integer by dropping every non-digit.

    Examples:
        "1.200 €" -> 1200
        "350.000€" -> 350000
        "A consultar" -> None
        "" -> None
    """
    if not text:
        return None
    digits = re.sub(r'\D', '', text)
    if not digits:
        return None
    return int(digits)


def extract_first_integer(text: Optional[str]) -> Optional[int]:
    """
    Extract the first integer in the text.

    Handles thousand separators:
        "3 hab." -> 3
        "1.250 m²" -> 1250
        "Planta 2ª exterior" -> 2
    """
    if not text:
        return None
    match = INTEGER_PATTERN.search(text)
    if not match:
        return None
    return int(re.sub(r'\D', '', match.group(0)))


def classify_details(tokens: Iterable[str]) -> CardDetails:
    """
    Sort the small detail tokens of a card into rooms, area and extras.

    Room tokens ("3 hab.") set rooms, area tokens ("85 m²") set area,
    and everything else is joined with " | " into extras.
    """
    rooms = None
    area = None
    extras: List[str] = []

    for token in tokens:
        token = (token or '').strip()
        if not token:
            continue
        if ROOMS_PATTERN.search(token):
            rooms = extract_first_integer(token)
        elif AREA_PATTERN.search(token):
            area = extract_first_integer(token)
        else:
            extras.append(token)

    return CardDetails(rooms=rooms, area_sqm=area, extras=EXTRAS_SEPARATOR.join(extras))


def has_garage(extras: Optional[str]) -> bool:
    """Check whether the extras text mentions a garage or parking space."""
    if not extras:
        return False
    return GARAGE_PATTERN.search(extras) is not None
