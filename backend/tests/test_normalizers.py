"""
Tests for address parsing and text normalization.
"""

import pytest

from scrapers.base import Address
from scrapers.utils.normalizers import (
    normalize_description,
    normalize_energy_rating,
    normalize_name,
    normalize_whitespace,
    parse_address,
)


class TestParseAddress:
    """Test splitting listing titles into street, neighborhood and city."""

    def test_neighborhood_and_city(self):
        """Two segments after the connective are neighborhood and city."""
        assert parse_address("Piso en venta en Malasaña, Madrid") == Address(
            street="", neighborhood="Malasaña", city="Madrid"
        )

    def test_street_neighborhood_city(self):
        assert parse_address("Ático en Gran Vía, Chamberí, Madrid") == Address(
            street="Gran Vía", neighborhood="Chamberí", city="Madrid"
        )

    def test_three_segments(self):
        """Three segments are street, neighborhood and city."""
        address = parse_address("Ático en Calle de Alcalá, Salamanca, Madrid")

        assert address.street == "Calle De Alcalá"
        assert address.neighborhood == "Salamanca"
        assert address.city == "Madrid"

    def test_extra_segments_join_into_city(self):
        """Segments beyond the third are kept in the city field."""
        address = parse_address("Chalet en Calle Mayor, Centro, Alcobendas, Madrid")

        assert address.street == "Calle Mayor"
        assert address.neighborhood == "Centro"
        assert address.city == "Alcobendas, Madrid"

    def test_single_segment_is_city(self):
        assert parse_address("Casa en Sitges") == Address(city="Sitges")

    def test_empty_input(self):
        """Empty input yields all-empty fields, never an error."""
        assert parse_address("") == Address()
        assert parse_address(None) == Address()

    def test_title_case_regardless_of_source(self):
        address = parse_address("PISO EN VENTA EN CHAMBERÍ, MADRID")

        assert address.neighborhood == "Chamberí"
        assert address.city == "Madrid"

    def test_dash_separator_and_variants(self):
        """Em/en dashes are normalized and ' - ' splits segments."""
        address = parse_address("Piso en Retiro – Madrid")

        assert address.neighborhood == "Retiro"
        assert address.city == "Madrid"

    def test_hyphenated_names_are_not_split(self):
        address = parse_address("Piso en Sant Martí, Barcelona-Ciudad")

        assert address.neighborhood == "Sant Martí"
        assert address.city == "Barcelona-Ciudad"

    def test_no_connective_uses_whole_title(self):
        address = parse_address("Eixample, Barcelona")

        assert address.neighborhood == "Eixample"
        assert address.city == "Barcelona"

    def test_whitespace_and_empty_segments(self):
        address = parse_address("Piso  en   Lavapiés ,, Madrid ")

        assert address.neighborhood == "Lavapiés"
        assert address.city == "Madrid"


class TestNormalizeText:
    """Test small text helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ("  Gran   Vía \n", "Gran Vía"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_whitespace(self, raw, expected):
        assert normalize_whitespace(raw) == expected

    def test_normalize_name(self):
        assert normalize_name("gran vía") == "Gran Vía"
        assert normalize_name("MADRID") == "Madrid"
        assert normalize_name(None) == ""


class TestNormalizeDescription:
    """Test conversion of description markup to text."""

    def test_line_breaks_become_newlines(self):
        html = "Luminoso piso reformado.<br>Cocina equipada.<br/>Portero físico."

        assert normalize_description(html) == "Luminoso piso reformado.\nCocina equipada.\nPortero físico."

    def test_markup_is_removed(self):
        html = "<p>Piso <strong>exterior</strong> con <em>terraza</em></p>"

        assert normalize_description(html) == "Piso exterior con terraza"

    def test_empty(self):
        assert normalize_description("") == ""
        assert normalize_description(None) == ""


class TestNormalizeEnergyRating:
    """Test extraction of the energy certificate letter."""

    @pytest.mark.parametrize("class_text,expected", [
        ("icon-energy-c", "C"),
        ("icon-energy-A", "A"),
        ("status icon-energy-e big", "E"),
    ])
    def test_letter_is_extracted(self, class_text, expected):
        assert normalize_energy_rating(class_text) == expected

    def test_unrecognized_class_is_kept(self):
        assert normalize_energy_rating(" icon-energy-exempt ") == "icon-energy-exempt"

    def test_missing_badge(self):
        assert normalize_energy_rating("") == ""
        assert normalize_energy_rating(None) == ""
