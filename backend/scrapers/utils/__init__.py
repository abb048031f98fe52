"""Shared utilities for scrapers."""

from .normalizers import (
    normalize_whitespace,
    normalize_name,
    parse_address,
    normalize_description,
    normalize_energy_rating,
)
from .extractors import (
    parse_price,
    extract_first_integer,
    classify_details,
    has_garage,
)

__all__ = [
    'normalize_whitespace',
    'normalize_name',
    'parse_address',
    'normalize_description',
    'normalize_energy_rating',
    'parse_price',
    'extract_first_integer',
    'classify_details',
    'has_garage',
]
