"""
Data normalization utilities for scrapers.

These functions standardize scraped listing text into consistent formats.
"""

import re
from typing import Optional
from bs4 import BeautifulSoup

from ..base import Address


DASH_VARIANTS = re.compile(r'[–—]')
SEGMENT_SEPARATOR = re.compile(r',| - ')
LOCATIVE_CONNECTIVE = ' en '
ENERGY_CLASS = re.compile(r'icon-energy-([a-g])\b', re.IGNORECASE)


def normalize_whitespace(text: Optional[str]) -> str:
    """Collapse runs of whitespace and trim."""
    if not text:
        return ''
    return re.sub(r'\s+', ' ', text).strip()


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a place name to Title Case.

    Examples:
        MADRID -> Madrid
        gran vía -> Gran Vía
        malasaña -> Malasaña
    """
    if not name:
        return ''
    return name.strip().lower().title()


def parse_address(raw_title: Optional[str]) -> Address:
    """
    Parse a listing title into street, neighborhood and city.

    The text after the last " en " is split on commas or " - ":
    one segment is the city, two are neighborhood and city, three or
    more are street, neighborhood and the rest joined as the city.

    Examples:
        "Piso en venta en Malasaña, Madrid" -> ("", "Malasaña", "Madrid")
        "Ático en Gran Vía, Chamberí, Madrid" -> ("Gran Vía", "Chamberí", "Madrid")
        "Casa en Sitges" -> ("", "", "Sitges")
    """
    if not raw_title:
        return Address()

    clean = normalize_whitespace(DASH_VARIANTS.sub('-', raw_title))
    idx = clean.lower().rfind(LOCATIVE_CONNECTIVE)
    if idx != -1:
        clean = clean[idx + len(LOCATIVE_CONNECTIVE):].strip()

    parts = [part.strip() for part in SEGMENT_SEPARATOR.split(clean) if part.strip()]

    street = neighborhood = city = ''
    if len(parts) == 1:
        city = parts[0]
    elif len(parts) == 2:
        neighborhood, city = parts
    elif len(parts) >= 3:
        street = parts[0]
        neighborhood = parts[1]
        city = ', '.join(parts[2:])

    return Address(
        street=normalize_name(street),
        neighborhood=normalize_name(neighborhood),
        city=normalize_name(city),
    )


def normalize_description(html_text: Optional[str]) -> str:
    """
    Turn the rich text of a description block into plain text.

    Line breaks become newlines and paragraph (and any other) markup is
    dropped.
    """
    if not html_text:
        return ''
    soup = BeautifulSoup(html_text, 'html.parser')
    for br in soup.find_all('br'):
        br.replace_with('\n')
    return soup.get_text().strip()


def normalize_energy_rating(class_text: Optional[str]) -> str:
    """
    Extract the energy rating letter from an energy badge class.

    Examples:
        "icon-energy-c" -> "C"
        "icon-energy-B-xl" -> "B"
        "icon-energy-exempt" -> "icon-energy-exempt"
    """
    if not class_text:
        return ''
    match = ENERGY_CLASS.search(class_text)
    if match:
        return match.group(1).upper()
    return class_text.strip()
