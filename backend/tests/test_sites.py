"""
Tests for Idealista listing card and detail page extraction.
"""

import asyncio

from scrapers.base import ABSENT, Found
from scrapers.sites.idealista import DetailExtractor, ListingSummaryExtractor, resolve_url
from scrapers.sites.reader import ElementReader

LISTING_URL = "https://www.idealista.com/venta-viviendas/madrid-madrid/"
DETAIL_URL = "https://www.idealista.com/inmueble/101/"


class TestListingSummaryExtractor:
    """Test reading summary fields from a listing card."""

    def test_full_card(self, fake_site):
        card = fake_site.card(
            title="Piso en venta en Malasaña, Madrid",
            href="/inmueble/101/",
            price="350.000€",
            details=("3 hab.", "85 m²", "Planta 2ª exterior con ascensor"),
        )
        session = fake_site.session()

        summary = asyncio.run(ListingSummaryExtractor(session).extract(card, LISTING_URL))

        assert summary.title == "Piso en venta en Malasaña, Madrid"
        assert summary.url == "https://www.idealista.com/inmueble/101/"
        assert summary.price_amount == 350000
        assert summary.rooms == 3
        assert summary.area_sqm == 85
        assert summary.extras == "Planta 2ª exterior con ascensor"

    def test_missing_fields_default(self, fake_site):
        """A card without price or details still yields a summary."""
        card = fake_site.card(title="Estudio en Lavapiés, Madrid", href="/inmueble/7/")

        summary = asyncio.run(ListingSummaryExtractor(fake_site.session()).extract(card, LISTING_URL))

        assert summary.price_amount is None
        assert summary.rooms is None
        assert summary.area_sqm is None
        assert summary.extras == ""

    def test_card_without_link(self, fake_site):
        card = fake_site.card(price="100.000€")

        summary = asyncio.run(ListingSummaryExtractor(fake_site.session()).extract(card, LISTING_URL))

        assert summary.url == ""
        assert summary.title == ""
        assert summary.price_amount == 100000


class TestDetailExtractor:
    """Test reading the detail page of one property."""

    def test_all_fields(self, fake_site):
        fake_site.detail(
            DETAIL_URL,
            description="Piso luminoso.<br>Reformado en 2020.",
            features_primary=("85 m² construidos", "3 habitaciones", "x"),
            features_secondary=("Calefacción central",),
            energy_class="icon-energy-c",
        )
        session = fake_site.session()
        asyncio.run(session.goto(DETAIL_URL))

        details = asyncio.run(DetailExtractor(session).extract())

        assert details.detailed_description == "Piso luminoso.\nReformado en 2020."
        # Single-character entries are dropped, panels keep their order
        assert details.features == ("85 m² construidos", "3 habitaciones", "Calefacción central")
        assert details.energy_rating == "C"

    def test_empty_detail_page(self, fake_site):
        """Every missing element degrades to its empty default."""
        fake_site.detail(DETAIL_URL)
        session = fake_site.session()
        asyncio.run(session.goto(DETAIL_URL))

        details = asyncio.run(DetailExtractor(session).extract())

        assert details.detailed_description == ""
        assert details.features == ()
        assert details.energy_rating == ""


class TestElementReader:
    """Test best-effort lookups."""

    def test_lookup_errors_become_absent(self, fake_site):
        class BrokenSession:
            async def query(self, selector, root=None):
                raise RuntimeError("target closed")

            async def query_all(self, selector, root=None):
                raise RuntimeError("target closed")

        reader = ElementReader(BrokenSession())

        assert asyncio.run(reader.find(".comment p")) is ABSENT
        assert asyncio.run(reader.text(".comment p")) is ABSENT
        assert asyncio.run(reader.find_all("li")) == []

    def test_found_value(self, fake_site):
        fake_site.detail(DETAIL_URL, description="Hola")
        session = fake_site.session()
        asyncio.run(session.goto(DETAIL_URL))

        result = asyncio.run(ElementReader(session).text(".comment p"))

        assert result == Found("Hola")
        assert result.value_or("") == "Hola"
        assert ABSENT.value_or("default") == "default"


class TestResolveUrl:
    """Test item link resolution."""

    def test_relative_path(self):
        assert resolve_url("/inmueble/5/", LISTING_URL) == "https://www.idealista.com/inmueble/5/"

    def test_absolute_url_is_kept(self):
        assert resolve_url("https://www.idealista.com/inmueble/5/", LISTING_URL) == "https://www.idealista.com/inmueble/5/"

    def test_unusable_hrefs(self):
        assert resolve_url("", LISTING_URL) == ""
        assert resolve_url(None, LISTING_URL) == ""
        assert resolve_url("#", LISTING_URL) == ""
        assert resolve_url("javascript:void(0)", LISTING_URL) == ""
