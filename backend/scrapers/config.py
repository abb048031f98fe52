"""
Site configuration for the listing sources the crawler understands.

Each site has a SiteConfig that defines:
- Base URL used to resolve relative item links
- CSS selectors for the listing grid, cards, pagination and detail pages
- Pacing bounds between interactions
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class SiteConfig:
    """Configuration for a listing site."""
    name: str                           # Full display name
    short_name: str                     # Log/source identifier (e.g., 'IDEALISTA')
    base_url: str                       # Base URL for resolving item links
    selectors: Dict[str, str] = field(default_factory=dict)  # CSS selectors


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

IDEALISTA_SELECTORS = {
    # Listing page
    # Results container or any card; an empty results page still has the container
    'listing_grid': 'section.items-container, div.item-info-container',
    'item_card': 'div.item-info-container',
    'item_link': 'a.item-link',
    'item_price': 'span.item-price',
    'item_detail': 'span.item-detail',
    'next_page': 'li.next:not(.disabled) a',
    'cookie_accept': '#didomi-notice-agree-button',

    # Detail page
    'description': '.comment p',
    'features_primary': '#details .details-property-feature-one li',
    'features_secondary': '#details .details-property-feature-two li',
    'energy_badge': "span[class*='icon-energy']",
}

SITES = {
    'idealista': SiteConfig(
        name='Idealista',
        short_name='IDEALISTA',
        base_url='https://www.idealista.com/',
        selectors=IDEALISTA_SELECTORS,
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key: str) -> SiteConfig:
    """
    Get configuration for a site by its key.

    Raises:
        ValueError: If site_key is not found
    """
    if site_key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ValueError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[site_key]

