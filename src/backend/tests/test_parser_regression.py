#!/usr/bin/env python3
"""
Regression test suite for ReceiptParser.
Uses synthetic snippets based on known Turkish chain receipt formats.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fisparser.models.receipt import OcrMetadata, ParsedReceipt
from fisparser.services.parser import ReceiptParser, parse_receipt
from fisparser.services.validator import ReceiptValidator
from decimal import Decimal
import pytest


SOK_RECEIPT_SIMPLE = """\
ŞOK MARKETLER TİCARET A.Ş.
8654-CUMHURIYET MAHALLESİ HALİLBEY BULVARI NO:91B-91C
ESENYURT/İSTANBUL
TARİH: 09.01.2025
SAAT: 17:28
FİŞ NO: 1234

ÜLKER ÇİKOLATA
*4,25

NESTLE SU 1.5L
*2,50

UZUM RED GLOBE
0.550 KG x 245,00 TL/KG
*134,75

KOCAILEM İNDİRİM
*-5,00

TOPLAM
*136,50

#521824******9016 TEK POS
ONAY KODU: 789456"""

SOK_RECEIPT_COMPLEX = """\
ŞOK MARKETLER TİCARET A.Ş.
8654-CUMHURIYET MAHALLESİ
HALİLBEY BULVARI NO:91B-91C
ESENYURT/İSTANBUL
VD: 1234567890
TARİH: 09.01.2025
SAAT: 5:28 PM
FİŞ NO: 5678

COCA COLA 330ML
*8,50

LAYS PEYNİRLİ
*12,75

ÜLKER ÇİKOLATA
*4,25

NESTLE SU 1.5L
*2,50

EKMEK TAZE
*3,00

DOMATES
1.200 KG x 45,00 TL/KG
*54,00

PATATES
0.750 KG x 25,00 TL/KG
*18,75

KOCAILEM İNDİRİM
*-8,25

TUTAR İND.
*-2,50

TOPLAM
*93,00

#521824******9016 TEK POS
ONAY KODU: 456789"""

MIGROS_RECEIPT = """\
MİGROS TİCARET A.Ş.
GÜNEY MEGA STORE
Barbaros Mah. Begonya Sk. No:3/A
34349 İSTANBUL
VERGİ NO: 6200278131
TARİH: 08.01.2025
SAAT: 14:23:45
FİŞ NO: 0078

SERFRESH SADE ŞALGAM
*12,75

ZEYTIN DOLMASI
2,500 KG x 89,90
*224,75

KAMPANYA İNDİRİMİ
*-5,50

TOPLAM                  *231,00

#494314******4645 ORTAK POS
ONAY KODU: 123456"""

# Five items summing to 89,40 against a printed total of 89,90 (difference exactly 0,50)
BOUNDARY_RECEIPT = """\
MİGROS TİCARET A.Ş.
Barbaros Mah. Begonya Sk. No:3/A
TARİH: 21.11.2024
SAAT: 15:34
Fiş No: MIG2024112123456
EKMEK *10,00
SUT 1 LT *25,50
PEYNIR *30,00
DOMATES *12,40
SU *11,50
TOPLAM *89,90
KDV %10: 8,17
KREDİ KARTI"""


def test_sok_simple():
    """Şok: two-line items, weighed item, discount row, total on its own line."""
    result = ReceiptParser().parse(SOK_RECEIPT_SIMPLE)

    assert result.merchant_chain == 'SOK', f"Expected SOK, got {result.merchant_chain}"
    assert result.merchant_brand == 'SOK'
    assert result.purchase_date == '2025-01-09', f"Expected 2025-01-09, got {result.purchase_date}"
    assert result.purchase_time == '17:28'
    assert result.total == Decimal('136.50'), f"Expected 136.50, got {result.total}"

    assert [item.line_total for item in result.items] == [Decimal('4.25'), Decimal('2.50'), Decimal('134.75')]
    assert result.items[0].description == 'ÜLKER ÇİKOLATA'

    grapes = result.items[2]
    assert grapes.qty == Decimal('0.550')
    assert grapes.unit == 'kg'
    assert grapes.unit_price == Decimal('245.00')

    assert result.discount_total == Decimal('5.00')
    assert result.discounts[0].description == 'KOCAILEM İNDİRİM'

    assert result.payment_method == 'card'
    assert result.card_last4 == '9016'
    assert result.masked_pan == '****-****-****-9016'
    assert result.card_scheme == 'Mastercard'

    # Items add up to 141,50 against TOPLAM 136,50; discounts are not reconciled by default
    assert len(result.warnings) == 1, f"Expected one warning, got {result.warnings}"
    assert 'differ from total' in result.warnings[0]
    assert result.is_valid
    assert result.confidence == 0.8
    print("✓ test_sok_simple")


def test_sok_simple_with_discount_reconciliation():
    """Subtracting the printed discount row closes the gap to the total."""
    parser = ReceiptParser(validator=ReceiptValidator(subtract_discounts=True))
    result = parser.parse(SOK_RECEIPT_SIMPLE)
    assert result.warnings == (), f"Expected no warnings, got {result.warnings}"
    assert result.confidence == 0.9
    print("✓ test_sok_simple_with_discount_reconciliation")


def test_sok_complex():
    """Şok: 12-hour clock, tax office number, two discount rows."""
    parser = ReceiptParser(validator=ReceiptValidator(subtract_discounts=True))
    result = parser.parse(SOK_RECEIPT_COMPLEX)

    assert result.purchase_time == '17:28', f"Expected 17:28, got {result.purchase_time}"
    assert result.fiscal_number == '1234567890'
    assert len(result.items) == 7, f"Expected 7 items, got {len(result.items)}"
    assert result.items_sum == Decimal('103.75')
    assert result.discount_total == Decimal('10.75')
    assert result.total == Decimal('93.00')
    assert result.warnings == (), f"Expected no warnings, got {result.warnings}"

    tomatoes = next(item for item in result.items if item.description == 'DOMATES')
    assert tomatoes.qty == Decimal('1.200')
    assert tomatoes.line_total == Decimal('54.00')
    print("✓ test_sok_complex")


def test_sok_address():
    """Address lines in the header are split into components."""
    result = ReceiptParser().parse(SOK_RECEIPT_SIMPLE)
    assert result.address.district == 'Esenyurt'
    assert result.address.city == 'İstanbul'
    assert result.address.neighborhood == 'Cumhuriyet'
    print("✓ test_sok_address")


def test_migros_total_mismatch():
    """Migros: items add up to 237,50 against TOPLAM 231,00: exactly one warning."""
    result = ReceiptParser().parse(MIGROS_RECEIPT)

    assert result.merchant_chain == 'Migros'
    assert result.merchant_display == 'MİGROS TİCARET'
    assert result.fiscal_number == '6200278131'
    assert result.purchase_time == '14:23'
    assert result.total == Decimal('231.00'), f"Expected 231.00, got {result.total}"
    assert result.discount_total == Decimal('5.50')
    assert result.card_scheme == 'Visa'

    assert len(result.warnings) == 1, f"Expected one warning, got {result.warnings}"
    assert 'differ from total' in result.warnings[0]
    assert result.is_valid
    assert result.confidence == 0.8

    olives = result.items[1]
    assert olives.qty == Decimal('2.500')
    assert olives.unit_price == Decimal('89.90')
    print("✓ test_migros_total_mismatch")


class TestToleranceBoundary:
    """End-to-end: difference of exactly 0,50 between items and total."""

    def test_inclusive_default_is_silent(self):
        result = ReceiptParser().parse(BOUNDARY_RECEIPT)
        assert result.items_sum == Decimal('89.40')
        assert result.total == Decimal('89.90')
        assert result.warnings == ()
        assert result.is_valid

    def test_exclusive_boundary_warns_once(self):
        parser = ReceiptParser(validator=ReceiptValidator(tolerance_inclusive=False))
        result = parser.parse(BOUNDARY_RECEIPT)
        assert len(result.warnings) == 1
        assert 'differ from total' in result.warnings[0]

    def test_other_fields(self):
        result = ReceiptParser().parse(BOUNDARY_RECEIPT)
        assert result.purchase_date == '2024-11-21'
        assert result.purchase_time == '15:34'
        assert result.receipt_number == 'MIG2024112123456'
        assert result.vat_total == Decimal('8.17')
        assert result.vat_entries[0].rate == 10
        assert result.payment_method == 'card'
        assert result.card_last4 is None
        assert [item.description for item in result.items] == ['EKMEK', 'SUT 1 LT', 'PEYNIR', 'DOMATES', 'SU']


class TestPipelineContract:
    """The pipeline never raises and never invents values."""

    @pytest.mark.parametrize("text", ["", "   \n\n", "lorem ipsum dolor", None, 12345])
    def test_garbage_input(self, text):
        result = parse_receipt(text)
        assert isinstance(result, ParsedReceipt)
        assert not result.is_valid
        assert result.purchase_date is None
        assert 'Total amount must be greater than 0' in result.errors

    def test_missing_date_not_defaulted(self):
        text = "A101\nEKMEK *5,00\nTOPLAM *5,00"
        result = parse_receipt(text)
        assert result.date is None
        assert result.purchase_date is None
        assert 'Purchase date not found' in result.warnings
        assert result.is_valid

    def test_repeat_parse_is_identical(self):
        parser = ReceiptParser()
        first = parser.parse(SOK_RECEIPT_COMPLEX)
        second = parser.parse(SOK_RECEIPT_COMPLEX)
        assert first == second

    def test_result_is_frozen(self):
        result = parse_receipt(SOK_RECEIPT_SIMPLE)
        with pytest.raises(Exception):
            result.total = Decimal('1.00')

    def test_sequences_are_immutable(self):
        result = parse_receipt(SOK_RECEIPT_SIMPLE)
        for field in (result.items, result.discounts, result.vat_entries, result.warnings, result.errors):
            assert isinstance(field, tuple)
        with pytest.raises(AttributeError):
            result.warnings.append('edited')
        with pytest.raises(TypeError):
            result.items[0] = result.items[1]

    def test_metadata_lowers_confidence(self):
        metadata = OcrMetadata.from_tesseract({
            'text': ['ŞOK', '', 'TOPLAM', '136,50'],
            'conf': [60, -1, 70, 80],
            'left': [0, 0, 0, 50],
            'top': [0, 10, 20, 20],
            'width': [30, 0, 40, 30],
            'height': [10, 0, 10, 10],
        })
        assert len(metadata.tokens) == 3
        result = parse_receipt(BOUNDARY_RECEIPT, metadata=metadata)
        assert result.warnings == ()
        assert result.confidence == 0.7

    def test_ocr_confused_total_is_repaired(self):
        """'1O,00' (letter O) in the total line still reads as 10,00."""
        result = parse_receipt("MİGROS\n21.11.2024 15:34\nEKMEK *10,00\nTOPLAM: 1O,00\n")
        assert result.total == Decimal('10.00'), f"Expected 10.00, got {result.total}"
        assert result.errors == ()
        assert result.is_valid
        assert result.warnings == ()

    def test_json_serializable(self):
        payload = parse_receipt(MIGROS_RECEIPT).model_dump_json()
        assert '"merchant_chain":"Migros"' in payload
