"""
Tests for listing card value extraction.
"""

import pytest

from scrapers.utils.extractors import (
    classify_details,
    extract_first_integer,
    has_garage,
    parse_price,
)


class TestParsePrice:
    """Test price parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("350.000 €", 350000),
        ("1.200€/mes", 1200),
        ("  95000 ", 95000),
    ])
    def test_digits_are_kept(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", ["", None, "A consultar", "€"])
    def test_missing_price(self, text):
        """Empty or non-numeric text has no price."""
        assert parse_price(text) is None


class TestExtractFirstInteger:
    """Test integer extraction from detail tokens."""

    def test_plain_number(self):
        assert extract_first_integer("3 hab.") == 3

    def test_thousand_separator(self):
        assert extract_first_integer("1.250 m²") == 1250

    def test_first_of_several(self):
        assert extract_first_integer("Planta 2ª de 5") == 2

    def test_no_number(self):
        assert extract_first_integer("Bajo") is None
        assert extract_first_integer(None) is None


class TestClassifyDetails:
    """Test sorting card tokens into rooms, area and extras."""

    def test_typical_card(self):
        details = classify_details(["3 hab.", "85 m²", "Planta 2ª exterior con ascensor"])

        assert details.rooms == 3
        assert details.area_sqm == 85
        assert details.extras == "Planta 2ª exterior con ascensor"

    def test_extras_joined_in_order(self):
        details = classify_details(["Bajo exterior", "2 hab.", "Garaje incluido", "60 m2"])

        assert details.rooms == 2
        assert details.area_sqm == 60
        assert details.extras == "Bajo exterior | Garaje incluido"

    def test_empty_tokens_are_ignored(self):
        details = classify_details(["", "   ", "1 hab."])

        assert details.rooms == 1
        assert details.area_sqm is None
        assert details.extras == ""

    def test_no_tokens(self):
        details = classify_details([])

        assert details.rooms is None
        assert details.area_sqm is None
        assert details.extras == ""


class TestHasGarage:
    """Test the garage flag."""

    @pytest.mark.parametrize("extras", ["Garaje incluido", "plaza de PARKING", "Bajo | garaje"])
    def test_garage_mentioned(self, extras):
        assert has_garage(extras) is True

    @pytest.mark.parametrize("extras", ["", None, "Planta 3ª exterior con ascensor"])
    def test_no_garage(self, extras):
        assert has_garage(extras) is False
