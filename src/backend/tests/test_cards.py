"""
Tests for card number validation, masking and extraction.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from fisparser.utils.cards import (
    card_last4,
    detect_card_scheme,
    extract_card_candidates,
    luhn_valid,
    mask_card_number,
)


class TestLuhn:

    def test_valid_numbers(self):
        assert luhn_valid("4532015112830366")
        assert luhn_valid("5555555555554444")
        assert luhn_valid("4532 0151 1283 0366")

    def test_invalid_checksum(self):
        assert not luhn_valid("4532015112830367")

    def test_too_short_or_empty(self):
        assert not luhn_valid("123456789")
        assert not luhn_valid("")
        assert not luhn_valid(None)
        assert not luhn_valid("abcd")


class TestScheme:

    @pytest.mark.parametrize("number,scheme", [
        ("4532015112830366", "Visa"),
        ("5555555555554444", "Mastercard"),
        ("2221000000000009", "Mastercard"),
        ("378282246310005", "American Express"),
        ("341111111111111", "American Express"),
        ("6011111111111117", "Discover"),
        ("6500000000000002", "Discover"),
    ])
    def test_prefixes(self, number, scheme):
        assert detect_card_scheme(number) == scheme

    def test_unknown(self):
        assert detect_card_scheme("123456789") is None
        assert detect_card_scheme("") is None
        assert detect_card_scheme(None) is None


class TestMasking:

    def test_sixteen_digits(self):
        assert mask_card_number("4532015112830366") == "****-****-****-0366"

    def test_other_lengths(self):
        assert mask_card_number("378282246310005") == "***********-0005"

    def test_too_short(self):
        assert mask_card_number("12345678901") is None
        assert mask_card_number("") is None

    def test_last4(self):
        assert card_last4("4532015112830366") == "0366"
        assert card_last4("12") is None


class TestExtraction:

    @pytest.mark.parametrize("text", [
        "521824******9016",
        "#521824******9016",
        "#521824******9016 TEK POS",
    ])
    def test_masked_fragment(self, text):
        card = extract_card_candidates(text).first()
        assert card is not None
        assert card.last4 == "9016"
        assert card.masked_pan == "****-****-****-9016"
        assert card.scheme == "Mastercard"
        assert not card.luhn_checked

    def test_masked_visa_fragment(self):
        card = extract_card_candidates("494314******4645 ORTAK POS").first()
        assert card.last4 == "4645"
        assert card.scheme == "Visa"

    def test_full_number_is_masked(self):
        card = extract_card_candidates("KART NO: 4532 0151 1283 0366").first()
        assert card.masked_pan == "****-****-****-0366"
        assert card.last4 == "0366"
        assert card.luhn_checked
        # the full PAN is not kept anywhere on the record
        assert "4532015112830366" not in repr(card)

    def test_luhn_invalid_number_dropped(self):
        assert extract_card_candidates("BARKOD 4532015112830367").first() is None

    def test_no_card(self):
        assert list(extract_card_candidates("TOPLAM *136,50")) == []
