"""
Tests for merchant-to-chain classification.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from fisparser.utils.merchants import (
    MERCHANT_MAPPINGS,
    clean_merchant_name,
    extract_merchant_brand,
    find_merchant_line,
    merchant_group_key,
    normalize_merchant_to_chain,
)


class TestNormalizeMerchantToChain:

    @pytest.mark.parametrize("raw", ['Migros', 'MIGROS', 'MigroS', 'Migros Ticaret A.S.', 'MİGROS TİCARET A.Ş.'])
    def test_migros_variants(self, raw):
        assert normalize_merchant_to_chain(raw) == 'Migros'

    @pytest.mark.parametrize("raw", ['A101', 'A-101', 'a101'])
    def test_a101_variants(self, raw):
        assert normalize_merchant_to_chain(raw) == 'A101'

    @pytest.mark.parametrize("raw", ['BIM', 'BİM', 'BIM BIRLESIK MAGAZALAR'])
    def test_bim_variants(self, raw):
        assert normalize_merchant_to_chain(raw) == 'BIM'

    @pytest.mark.parametrize("raw", ['SOK', 'ŞOK', 'ŞOK MARKETLERI'])
    def test_sok_variants(self, raw):
        assert normalize_merchant_to_chain(raw) == 'SOK'

    @pytest.mark.parametrize("raw", ['CarrefourSA', 'CARREFOURSA', 'CARREFOUR', 'CARREFOUR SABANCI'])
    def test_carrefour_variants(self, raw):
        assert normalize_merchant_to_chain(raw) == 'CarrefourSA'

    def test_no_match_returns_trimmed_input(self):
        assert normalize_merchant_to_chain('Local Bakery') == 'Local Bakery'
        assert normalize_merchant_to_chain('  Köşe Fırın  ') == 'Köşe Fırın'

    def test_empty_or_invalid(self):
        assert normalize_merchant_to_chain('') == 'Unknown'
        assert normalize_merchant_to_chain('   ') == 'Unknown'
        assert normalize_merchant_to_chain(None) == 'Unknown'
        assert normalize_merchant_to_chain(123) == 'Unknown'

    def test_trims_whitespace(self):
        assert normalize_merchant_to_chain('  Migros  ') == 'Migros'
        assert normalize_merchant_to_chain('\tA101\n') == 'A101'

    def test_longest_pattern_wins(self):
        # 'migros' (6 chars) outscores 'sok' (3 chars) on a street name
        assert normalize_merchant_to_chain('MİGROS GÜL SOKAK') == 'Migros'

    def test_mappings_are_immutable(self):
        assert isinstance(MERCHANT_MAPPINGS, tuple)
        for mapping in MERCHANT_MAPPINGS:
            assert isinstance(mapping.patterns, frozenset)


SOK_HEADER = """\
ŞOK MARKETLER TİCARET A.Ş.
8654-CUMHURIYET MAHALLESİ HALİLBEY BULVARI NO:91B-91C
ESENYURT/İSTANBUL
TARİH: 09.01.2025
"""

LOCAL_HEADER = """\
12345678
Cumhuriyet Mah. Atatürk Cad. No:5
KÖŞE FIRINI
TARİH: 09.01.2025
"""


class TestMerchantBrand:

    def test_known_chain_line(self):
        assert extract_merchant_brand(SOK_HEADER) == 'SOK'

    def test_skips_codes_and_address_lines(self):
        assert find_merchant_line(LOCAL_HEADER) == 'KÖŞE FIRINI'
        assert extract_merchant_brand(LOCAL_HEADER) == 'KÖŞE FIRINI'

    def test_first_qualifying_line_stops_the_scan(self):
        """A local shop header is kept even when a chain name follows it."""
        text = "KAFE CINAR\nMIGROS JET\n21.11.2024"
        assert find_merchant_line(text) == 'KAFE CINAR'
        assert extract_merchant_brand(text) == 'KAFE CINAR'

    def test_chain_after_skipped_lines(self):
        text = "0212 555 44 33\nBarbaros Mah. Begonya Sk.\nMİGROS GÜNEY\nTARİH: 01.01.2025"
        assert extract_merchant_brand(text) == 'Migros'

    def test_only_first_lines_scanned(self):
        text = "\n".join(["1111"] * 5 + ["MIGROS"])
        assert extract_merchant_brand(text) is None

    def test_empty(self):
        assert extract_merchant_brand("") is None
        assert extract_merchant_brand(None) is None


class TestCleanMerchantName:

    def test_strips_legal_suffixes(self):
        assert clean_merchant_name("MİGROS TİC. A.Ş.") == "MİGROS"
        assert clean_merchant_name("ŞOK MARKETLER T.A.Ş.") == "ŞOK MARKETLER"
        assert clean_merchant_name("ABC GIDA SAN. VE TİC. LTD. ŞTİ.") == "ABC GIDA"

    def test_drops_odd_characters(self):
        assert clean_merchant_name("KÖŞE #FIRIN!") == "KÖŞE FIRIN"

    def test_keeps_words_containing_suffix_letters(self):
        assert clean_merchant_name("SANAT KİTABEVİ") == "SANAT KİTABEVİ"

    def test_empty(self):
        assert clean_merchant_name("") == ""
        assert clean_merchant_name(None) == ""


def test_merchant_group_key():
    """Spelling variants of one store share a key."""
    assert merchant_group_key("ŞOK Marketler T.A.Ş.") == "sokmarketler"
    assert merchant_group_key("SOK MARKETLER") == "sokmarketler"
    assert merchant_group_key("") == ""
