"""
Idealista listing and detail page extraction.

Site structure:
- Listing page: `div.item-info-container` cards with `a.item-link` (title + href),
  `span.item-price` and several `span.item-detail` tokens (rooms, m², floor...)
- Detail page: `.comment p` description, two feature panels under `#details`,
  an `icon-energy-<letter>` badge for the energy certificate
"""

import logging
from typing import Optional
from urllib.parse import urljoin

from ..base import DetailFields, ListingSummary
from ..config import SiteConfig, get_site_config
from ..utils.extractors import classify_details, parse_price
from ..utils.normalizers import (
    normalize_description,
    normalize_energy_rating,
    normalize_whitespace,
)
from .reader import ElementReader


class ListingSummaryExtractor:
    """
    Reads the summary fields of one listing card.

    A missing title, price or detail token falls back to its default;
    the card itself is never rejected here.
    """

    def __init__(self, session, config: Optional[SiteConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_site_config('idealista')
        self.selectors = self.config.selectors
        self.reader = ElementReader(session, logger)

    async def extract(self, card, page_url: Optional[str] = None) -> ListingSummary:
        title = (await self.reader.text(self.selectors['item_link'], card)).value_or('')
        href = (await self.reader.attribute(self.selectors['item_link'], 'href', card)).value_or('')
        price_text = (await self.reader.text(self.selectors['item_price'], card)).value_or('')
        tokens = await self.reader.texts(self.selectors['item_detail'], card)

        details = classify_details(tokens)
        return ListingSummary(
            title=normalize_whitespace(title),
            url=resolve_url(href, page_url or self.config.base_url),
            price_amount=parse_price(price_text),
            rooms=details.rooms,
            area_sqm=details.area_sqm,
            extras=details.extras,
        )


class DetailExtractor:
    """
    Reads description, features and energy rating from the current detail page.

    Every field degrades to its empty default when its element is missing.
    """

    def __init__(self, session, config: Optional[SiteConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_site_config('idealista')
        self.selectors = self.config.selectors
        self.reader = ElementReader(session, logger)

    async def extract(self) -> DetailFields:
        return DetailFields(
            detailed_description=await self.extract_description(),
            features=await self.extract_features(),
            energy_rating=await self.extract_energy_rating(),
        )

    async def extract_description(self) -> str:
        html = await self.reader.inner_html(self.selectors['description'])
        return normalize_description(html.value_or(''))

    async def extract_features(self) -> tuple:
        features = []
        for key in ('features_primary', 'features_secondary'):
            for text in await self.reader.texts(self.selectors[key]):
                text = text.strip()
                if len(text) > 1:
                    features.append(text)
        return tuple(features)

    async def extract_energy_rating(self) -> str:
        class_text = await self.reader.attribute(self.selectors['energy_badge'], 'class')
        return normalize_energy_rating(class_text.value_or(''))


def resolve_url(href: Optional[str], page_url: str) -> str:
    """
    Make an item href absolute.

    Examples:
        ("/inmueble/123/", "https://www.idealista.com/venta-viviendas/") -> "https://www.idealista.com/inmueble/123/"
        ("", ...) -> ""
    """
    href = (href or '').strip()
    if not href or href.startswith(('javascript:', '#')):
        return ''
    return urljoin(page_url, href)
