"""
Receipt parser service for extracting structured data from Turkish receipt OCR text.
"""

import re
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from fisparser.models.extraction import QuantityUnit
from fisparser.models.receipt import DiscountLine, LineItem, OcrMetadata, ParsedReceipt
from fisparser.services.validator import ReceiptValidator
from fisparser.utils.address import parse_address_components
from fisparser.utils.cards import extract_card_candidates
from fisparser.utils.merchants import (
    clean_merchant_name,
    extract_merchant_brand,
    find_merchant_line,
    normalize_merchant_to_chain,
)
from fisparser.utils.numeric import AMOUNT, normalize_number, parse_quantity_unit, repair_money_tokens, to_money
from fisparser.utils.patterns import (
    extract_address,
    extract_dates,
    extract_discount,
    extract_fiscal_numbers,
    extract_merchant_labels,
    extract_payment_method,
    extract_receipt_numbers,
    extract_subtotal,
    extract_times,
    extract_total,
    extract_vat,
    extract_vat_total,
    kw,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PendingItem:
    """Name line waiting for its price line (receipts print them on two lines)."""
    description: str
    quantity: QuantityUnit = QuantityUnit()
    unit_price: Optional[Decimal] = None


class ReceiptParser:
    """Service for parsing receipt text and extracting structured data."""

    def __init__(self, validator: Optional[ReceiptValidator] = None):
        """Initialize parser with regex patterns."""
        self.validator = validator or ReceiptValidator()
        self._init_patterns()

    def _init_patterns(self):
        """Line-level patterns for the item section."""
        flags = re.IGNORECASE

        # "0.550 KG x 245,00 TL/KG", "2 ADET x 4,25"
        self.weight_line = re.compile(
            r'^(\d+(?:[.,]\d+)?)\s*(KG|GR|G|LT|L|ML|ADET|AD)\.?\s*[xX*]\s*(' + AMOUNT + r')'
            r'(?:\s*TL(?:\s*/\s*\w+)?)?$',
            flags,
        )
        # "*4,25", "*-5,00"
        self.price_only_line = re.compile(r'^\*?\s*(-?)\s*\*?(' + AMOUNT + r')$')
        # "COCA COLA 330ML *8,50", "EKMEK %01 3,00"
        self.single_line_item = re.compile(r'^(.+?)\s+\*?\s*(-?)\s*(' + AMOUNT + r')$')
        self.vat_rate_suffix = re.compile(r'\s*%\s*\d{1,2}$')

        self.discount_label = re.compile(
            r'(?:' + kw('İNDİRİM') + r'|' + kw('İSKONTO') + r'|' + kw('KAMPANYA')
            + r'|\b' + kw('İND') + r'\b\.?|\bDISCOUNT\b)',
            flags,
        )
        # Items end where the totals block starts
        self.totals_label = re.compile(
            r'(?<![^\W\d_])(?:' + kw('TOPLAM') + r'|TOTAL|SUBTOTAL|TOP\s*KDV)(?![^\W\d_])'
            r'|\b(?:NET|' + kw('ÖDENECEK') + r')\s*TUTAR\b',
            flags,
        )
        self.noise_line = re.compile(
            r'\b(?:' + '|'.join(kw(word) for word in (
                'TARİH', 'SAAT', 'FİŞ', 'KDV', 'ONAY', 'POS', 'VKN', 'VD', 'V.D.', 'VERGİ',
                'TEL', 'MERSİS', 'KASİYER', 'KASA', 'Z NO', 'EKÜ', 'NAKİT', 'KART',
                'KREDİ', 'PARA ÜSTÜ', 'ADRES',
            )) + r')\b',
            flags,
        )

    def parse(self, text: str, metadata: Optional[OcrMetadata] = None) -> ParsedReceipt:
        """
        Parse receipt text and extract all available fields.

        Args:
            text: OCR-extracted text from receipt
            metadata: Optional OCR engine output (token confidences, boxes)

        Returns:
            ParsedReceipt with fields, warnings, errors and confidence
        """
        if not isinstance(text, str):
            text = ""

        merchant_raw = extract_merchant_labels(text).first() or find_merchant_line(text)
        merchant_chain = normalize_merchant_to_chain(merchant_raw)

        date = extract_dates(text).first()
        time = extract_times(text).first()

        items, discounts = self.extract_line_items(text)

        # Amount fields are read from digit-repaired text ("TOPLAM: 1O,00")
        repaired = '\n'.join(repair_money_tokens(line) for line in text.split('\n'))

        total = extract_total(repaired)
        subtotal = extract_subtotal(repaired)
        if discounts:
            discount_total = sum((d.amount for d in discounts), Decimal('0.00'))
        else:
            discount_total = extract_discount(repaired)

        vat_entries = self._dedupe_vat(list(extract_vat(repaired)))
        vat_total = extract_vat_total(repaired)
        if vat_total is None and vat_entries:
            vat_total = sum((entry.amount for entry in vat_entries), Decimal('0.00'))

        card = extract_card_candidates(text).first()
        payment_method = extract_payment_method(text)
        if payment_method is None and card is not None:
            payment_method = 'card'

        address_raw = extract_address(text)
        purchase_date = date.isoformat() if date else None

        validation = self.validator.validate(
            merchant_raw=merchant_raw,
            total=total,
            items=items,
            discount_total=discount_total,
            subtotal=subtotal,
            vat_total=vat_total,
            purchase_date=purchase_date,
            metadata=metadata,
        )

        receipt = ParsedReceipt(
            merchant_raw=merchant_raw,
            merchant_brand=extract_merchant_brand(text),
            merchant_chain=merchant_chain,
            merchant_display=clean_merchant_name(merchant_raw) or None,
            date=date,
            time=time,
            purchase_date=purchase_date,
            purchase_time=time.isoformat() if time else None,
            subtotal=subtotal,
            discount_total=discount_total,
            vat_total=vat_total,
            vat_entries=vat_entries,
            total=total,
            items=items,
            discounts=discounts,
            payment_method=payment_method,
            masked_pan=card.masked_pan if card else None,
            card_last4=card.last4 if card else None,
            card_scheme=card.scheme if card else None,
            receipt_number=extract_receipt_numbers(text).first(),
            fiscal_number=extract_fiscal_numbers(text).first(),
            address=parse_address_components(address_raw),
            confidence=validation.confidence,
            warnings=validation.warnings,
            errors=validation.errors,
            is_valid=validation.is_valid,
        )

        logger.debug(
            "Parsed receipt: merchant=%s total=%s items=%d warnings=%d",
            merchant_chain, total, len(items), len(validation.warnings),
        )
        return receipt

    @staticmethod
    def _dedupe_vat(entries):
        seen = set()
        unique = []
        for entry in entries:
            if entry not in seen:
                seen.add(entry)
                unique.append(entry)
        return unique

    def _money(self, value: str) -> Optional[Decimal]:
        amount = normalize_number(value)
        return to_money(amount) if amount is not None else None

    def _clean_description(self, name: str) -> str:
        name = self.vat_rate_suffix.sub('', name.strip())
        return re.sub(r'\s+', ' ', name).strip(' *:-')

    @staticmethod
    def _has_letters(value: str, minimum: int = 2) -> bool:
        return sum(1 for c in value if c.isalpha()) >= minimum

    def extract_line_items(self, text: str) -> Tuple[List[LineItem], List[DiscountLine]]:
        """
        Walk receipt lines and collect purchased items and discount rows.

        Handles single-line items ("NAME *12,75"), name and price on two
        lines, weighed/counted items with a quantity line in between, and
        discount rows. Stops at the first totals line.
        """
        items: List[LineItem] = []
        discounts: List[DiscountLine] = []
        if not text:
            return items, discounts

        pending: Optional[_PendingItem] = None
        pending_discount: Optional[str] = None

        for raw_line in text.split('\n'):
            stripped = raw_line.strip()
            if not stripped:
                continue
            line = repair_money_tokens(stripped)

            if self.totals_label.search(line) and not self.discount_label.search(line):
                break

            if self.discount_label.search(line):
                match = self.single_line_item.match(line)
                if match:
                    amount = self._money(match.group(3))
                    if amount is not None:
                        discounts.append(DiscountLine(
                            description=self._clean_description(match.group(1)), amount=amount))
                    pending, pending_discount = None, None
                else:
                    pending, pending_discount = None, self._clean_description(line)
                continue

            if self.noise_line.search(line):
                pending, pending_discount = None, None
                continue

            match = self.price_only_line.match(line)
            if match:
                amount = self._money(match.group(2))
                is_negative = match.group(1) == '-'
                if amount is None:
                    pending, pending_discount = None, None
                    continue

                if pending_discount is not None or is_negative:
                    description = pending_discount or (pending.description if pending else 'İndirim')
                    discounts.append(DiscountLine(description=description, amount=amount))
                elif pending is not None:
                    items.append(LineItem(
                        description=pending.description,
                        qty=pending.quantity.qty,
                        unit=pending.quantity.unit,
                        unit_price=pending.unit_price,
                        line_total=amount,
                        raw_line=pending.description,
                    ))
                pending, pending_discount = None, None
                continue

            match = self.weight_line.match(line)
            if match:
                if pending is not None:
                    pending = _PendingItem(
                        description=pending.description,
                        quantity=parse_quantity_unit(f"{match.group(1)} {match.group(2)}"),
                        unit_price=self._money(match.group(3)),
                    )
                continue

            match = self.single_line_item.match(line)
            if match and self._has_letters(match.group(1)):
                amount = self._money(match.group(3))
                if amount is not None:
                    description = self._clean_description(match.group(1))
                    if match.group(2) == '-':
                        discounts.append(DiscountLine(description=description, amount=amount))
                    else:
                        items.append(LineItem(description=description, line_total=amount, raw_line=stripped))
                pending, pending_discount = None, None
                continue

            if self._has_letters(line) and not line[0].isdigit():
                pending, pending_discount = _PendingItem(description=self._clean_description(line)), None
            else:
                pending, pending_discount = None, None

        logger.debug("Extracted %d line item(s), %d discount(s)", len(items), len(discounts))
        return items, discounts


def parse_receipt(text: str, metadata: Optional[OcrMetadata] = None) -> ParsedReceipt:
    """Parse receipt text with a default-configured parser."""
    return ReceiptParser().parse(text, metadata=metadata)
