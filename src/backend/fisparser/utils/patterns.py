"""
Turkish retail receipt regex patterns.

Every rule is a PatternSpec record compiled once at import. Tables are
tuples and are never mutated, so they can be shared by any number of
concurrent parses.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from operator import itemgetter
from typing import Callable, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar
import heapq
import logging
import re

from fisparser.config import settings
from fisparser.models.extraction import ExtractedDate, ExtractedTime, QuantityUnit, VatEntry
from fisparser.utils.numeric import AMOUNT, UNITS, normalize_number, parse_quantity_unit, to_money
from fisparser.utils.text import collapse_whitespace

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    priority: int = 100
    flags: int = re.IGNORECASE
    output: Optional[str] = None  # canonical value emitted when this rule fires
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


class MatchSequence(Generic[T]):
    """
    Lazy, finite and restartable sequence of extracted values.

    Nothing is cached: every iteration rescans the full text from the start,
    so iterating twice yields the same values. With several specs the
    results are merged in text order.
    """

    def __init__(
        self,
        text: str,
        specs: Iterable[PatternSpec],
        convert: Callable[[re.Match, PatternSpec], Optional[T]],
    ):
        self._text = text if isinstance(text, str) else ""
        self._specs = tuple(specs)
        self._convert = convert

    def _scan(self, spec: PatternSpec) -> Iterator[Tuple[int, T]]:
        for match in spec.compiled.finditer(self._text):
            value = self._convert(match, spec)
            if value is not None:
                yield match.start(), value

    def __iter__(self) -> Iterator[T]:
        scans = [self._scan(spec) for spec in self._specs]
        for _, value in heapq.merge(*scans, key=itemgetter(0)):
            yield value

    def first(self) -> Optional[T]:
        return next(iter(self), None)

    def __repr__(self) -> str:
        names = ', '.join(spec.name for spec in self._specs)
        return f"MatchSequence({names})"


_TR_CHAR_CLASSES = {
    'C': '[ÇçCc]', 'Ç': '[ÇçCc]',
    'G': '[ĞğGg]', 'Ğ': '[ĞğGg]',
    'I': '[İIıi]', 'İ': '[İIıi]',
    'O': '[ÖöOo]', 'Ö': '[ÖöOo]',
    'S': '[ŞşSs]', 'Ş': '[ŞşSs]',
    'U': '[ÜüUu]', 'Ü': '[ÜüUu]',
}


def kw(word: str) -> str:
    """
    Diacritic-tolerant regex for an upper-case Turkish keyword.

    OCR routinely drops the cedilla/breve/dot, so 'FİŞ' must also match
    'FIS' and 'Fiş'.
    """
    parts = []
    for ch in word:
        if ch == ' ':
            parts.append(r'\s*')
        elif ch == '.':
            parts.append(r'\.?')
        else:
            parts.append(_TR_CHAR_CLASSES.get(ch, re.escape(ch)))
    return ''.join(parts)


# Captured money amount; refuses to start or end inside a longer number
AMT = r'(?<![\d.,])(' + AMOUNT + r')(?!\d)(?![.,]\d)'

# Separator run between a label and its amount ("TOPLAM: *89,90", "TOPLAM\n*136,50")
SEP = r'[\s:=*]*'

UNIT_ALTERNATION = '|'.join(sorted(UNITS, key=len, reverse=True))

# Lines that are part of a store address (merchant header scan skips them)
ADDRESS_KEYWORD_RE = re.compile(
    r'\b(?:MAH(?:ALLE(?:S[İI])?)?|CAD(?:DE(?:S[İI])?)?|SOK(?:AK|A[ĞG]I)?|SK|'
    r'BUL(?:VAR[Iİ]?)?|BLV|NO|APT|KAT)\b',
    re.IGNORECASE,
)

# Narrower set used when collecting address lines ("NO" alone also tags FİŞ NO lines)
STREET_KEYWORD_RE = re.compile(
    r'\b(?:MAH(?:ALLE(?:S[İI])?)?|CAD(?:DE(?:S[İI])?)?|SOK(?:AK|A[ĞG]I)?|SK|'
    r'BUL(?:VAR[Iİ]?)?|BLV|APT)\b\.?',
    re.IGNORECASE,
)
POSTAL_LINE_RE = re.compile(r'^\d{5}\s+\S')
DISTRICT_CITY_RE = re.compile(r'^[^\W\d_][^\s/]*\s*/\s*[^\W\d_][^\s/]*$')


DATE_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='dmy_date',
        pattern=r'(?<!\d)(\d{1,2})[./\-](\d{1,2})[./\-](\d{4})(?!\d)',
        example='21.11.2024',
        notes='DD.MM.YYYY, DD/MM/YYYY or DD-MM-YYYY (Turkish order)',
        priority=1,
    ),
    PatternSpec(
        name='iso_date',
        pattern=r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)',
        example='2024-11-21',
        priority=2,
    ),
)

TIME_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='clock_time',
        pattern=r'(?<![\d:])([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?(?!\d)(?:\s*([AP]M)\b)?',
        example='SAAT: 5:28 PM',
        notes='H:MM / HH:MM with optional seconds and 12-hour suffix',
    ),
)

MONEY_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='money',
        pattern=r'(?:₺\s*|\bTL\s*)?' + AMT + r'(?:\s*(?:₺|TL\b))?',
        example='₺23,50 / 23,50 TL / 1.234,56',
    ),
)

VAT_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='kdv_rate_amount',
        pattern=r'KDV\s*%?\s*(\d{1,2})(?![\d.,])\s*[:=]?\s*\*?\s*' + AMT,
        example='KDV %18: 5,40',
    ),
)

VAT_TOTAL_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(name='topkdv', pattern=r'TOP\s*KDV' + SEP + AMT, example='TOPKDV *5,40', priority=1),
    PatternSpec(name='toplam_kdv', pattern=kw('TOPLAM') + r'\s+KDV' + SEP + AMT,
                example='TOPLAM KDV 5,40', priority=2),
    PatternSpec(name='kdv_toplam', pattern=r'KDV\s+' + kw('TOPLAM') + SEP + AMT,
                example='KDV TOPLAM: 5,40', priority=3),
    PatternSpec(name='vat_en', pattern=r'\b(?:TOTAL\s+)?VAT' + SEP + AMT, example='VAT: 5.40', priority=4),
)

RECEIPT_NUMBER_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='receipt_serial',
        pattern=(
            r'\b(?:' + kw('FİŞ') + r'|' + kw('SERİ') + r'[^\n]*?' + kw('SIRA') + r'|'
            + kw('SERİ') + r'\s*NO|BELGE\s*NO|Z\s*NO)'
            r'\s*(?:NO)?\s*[:#]?\s*([A-Z0-9\-/]{6,})'
        ),
        example='Fiş No: MIG2024112123456',
        notes='Fiş / Seri-Sıra / Seri No / Belge No / Z No labels',
    ),
)

FISCAL_NUMBER_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='tax_number',
        pattern=(
            r'(?:\b' + kw('MALİ MÜŞAVİR') + r'(?:\s*NO)?|\b' + kw('VERGİ') + r'\s*(?:'
            + kw('KİMLİK') + r'\s*)?NO|\bVKN|\bTCKN|\bV\.\s*D\.?|\bVD)'
            r'\s*[:#.]?\s*(\d{10,11})(?!\d)'
        ),
        example='VERGİ NO: 6200278131',
    ),
)

TOTAL_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='genel_toplam',
        pattern=kw('GENEL') + r'\s*' + kw('TOPLAM') + SEP + AMT,
        example='GENEL TOPLAM: 89,90',
        priority=1,
    ),
    PatternSpec(
        name='toplam',
        pattern=r'(?<![^\W\d_])(?<!ARA\s)(?<!KDV\s)' + kw('TOPLAM') + SEP + AMT,
        example='TOPLAM *136,50',
        notes='Excludes ARA TOPLAM (subtotal) and KDV TOPLAM',
        priority=2,
    ),
    PatternSpec(
        name='total_en',
        pattern=r'(?<!SUB\s)\bTOTAL' + SEP + AMT,
        example='TOTAL: 89.90',
        priority=3,
    ),
    PatternSpec(
        name='tutar',
        pattern=r'(?:NET\s*|' + kw('ÖDENECEK') + r'\s*)?\bTUTAR' + SEP + AMT,
        example='NET TUTAR 89,90',
        priority=4,
    ),
)

SUBTOTAL_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(name='ara_toplam', pattern=r'\bARA\s*' + kw('TOPLAM') + SEP + AMT,
                example='ARA TOPLAM: 95,40', priority=1),
    PatternSpec(name='subtotal_en', pattern=r'\bSUB\s*TOTAL' + SEP + AMT,
                example='SUBTOTAL 95.40', priority=2),
)

DISCOUNT_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(name='indirim', pattern=r'(?:' + kw('İNDİRİM') + r'|DISCOUNT)[\s:=*\-]*' + AMT,
                example='İNDİRİM: -5,50', priority=1),
    PatternSpec(name='iskonto', pattern=r'(?:' + kw('İSKONTO') + r'|REBATE)[\s:=*\-]*' + AMT,
                example='İSKONTO 2,00', priority=2),
)

QUANTITY_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='qty_unit',
        pattern=r'(?<![\d.,])(\d+(?:[.,]\d+)?)\s*(' + UNIT_ALTERNATION + r')(?![^\W\d_])',
        example='0.550 KG',
    ),
)

MERCHANT_LABEL_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(name='store_label', pattern=r'^\s*(?:' + kw('MAĞAZA') + r'|STORE|MARKET|F[İI]RMA)\s*[:=]\s*(.+?)\s*$',
                example='MAĞAZA: Migros Kadıköy', flags=re.IGNORECASE | re.MULTILINE),
    PatternSpec(name='title_label', pattern=r'^\s*(?:' + kw('ÜNVAN') + r'|TITLE)\s*[:=]\s*(.+?)\s*$',
                example='UNVAN: BİM BİRLEŞİK MAĞAZALAR A.Ş.', flags=re.IGNORECASE | re.MULTILINE),
)

ADDRESS_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='address_label',
        pattern=r'(?:ADRES[İI]?|ADDRESS)\s*[:=]?\s*([^\n]+?)(?=\s*(?:VKN|TEL\b|$))',
        example='ADRES: Barbaros Mah. Begonya Sk. No:3/A',
        flags=re.IGNORECASE | re.MULTILINE,
        priority=1,
    ),
    PatternSpec(
        name='neighborhood_street',
        pattern=r'([^\n]*?\b(?:MAH|MAHALLE)\s*[.:]\s*[^\n]+?\s+(?:CAD|CADDE|SOK|SOKAK|SK)\b[^\n]*)',
        example='Barbaros Mah. Begonya Sk. No:3/A',
        flags=re.IGNORECASE | re.MULTILINE,
        priority=2,
    ),
)

PAYMENT_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='card_named',
        pattern=r'KRED[İI]\s*KART[Iİ]?|BANKA\s*KART[Iİ]?|CREDIT\s*CARD|DEBIT\s*CARD|TEMASSIZ|CONTACTLESS',
        example='KREDİ KARTI',
        priority=1,
        output='card',
    ),
    PatternSpec(
        name='card_terminal',
        pattern=r'\b(?:ORTAK|TEK)\s*POS\b|\bONAY\s*KODU\b|\bPROV[İI]ZYON\b',
        example='TEK POS / ONAY KODU: 123456',
        priority=2,
        output='card',
    ),
    PatternSpec(
        name='card_label',
        pattern=r'\b(?:KART|CARD)\b',
        example='KART: ****1234',
        priority=3,
        output='card',
    ),
    PatternSpec(
        name='cash',
        pattern=r'\b' + kw('NAKİT') + r'\b|\bCASH\b',
        example='NAKİT 100,00',
        priority=4,
        output='cash',
    ),
)


# Converters

def _amount_from(match: re.Match, group: int) -> Optional[Decimal]:
    value = normalize_number(match.group(group))
    if value is None or value < 0:
        return None
    return to_money(value)


def _date_from(min_year: int, max_year: int) -> Callable[[re.Match, PatternSpec], Optional[ExtractedDate]]:
    def convert(match: re.Match, spec: PatternSpec) -> Optional[ExtractedDate]:
        if spec.name == 'iso_date':
            year, month, day = (int(g) for g in match.groups())
        else:
            day, month, year = (int(g) for g in match.groups())
        if 1 <= day <= 31 and 1 <= month <= 12 and min_year <= year <= max_year:
            return ExtractedDate(day=day, month=month, year=year)
        return None
    return convert


def _time_from(match: re.Match, spec: PatternSpec) -> Optional[ExtractedTime]:
    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(3)

    if meridiem and 1 <= hour <= 12:
        if meridiem.upper() == 'PM' and hour != 12:
            hour += 12
        elif meridiem.upper() == 'AM' and hour == 12:
            hour = 0

    return ExtractedTime(hour=hour, minute=minute)


def _vat_from(match: re.Match, spec: PatternSpec) -> Optional[VatEntry]:
    amount = _amount_from(match, 2)
    if amount is None:
        return None
    return VatEntry(rate=int(match.group(1)), amount=amount)


def _first_group_amount(match: re.Match, spec: PatternSpec) -> Optional[Decimal]:
    return _amount_from(match, 1)


def _first_group_text(match: re.Match, spec: PatternSpec) -> Optional[str]:
    value = collapse_whitespace(match.group(1))
    return value or None


# Extraction functions

def extract_dates(
    text: str,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
) -> MatchSequence[ExtractedDate]:
    """
    Extract plausible dates.

    Examples:
        >>> list(extract_dates("21.11.2024 15:34"))
        [ExtractedDate(day=21, month=11, year=2024)]
    """
    convert = _date_from(
        settings.MIN_RECEIPT_YEAR if min_year is None else min_year,
        settings.MAX_RECEIPT_YEAR if max_year is None else max_year,
    )
    return MatchSequence(text, DATE_PATTERNS, convert)


def extract_times(text: str) -> MatchSequence[ExtractedTime]:
    return MatchSequence(text, TIME_PATTERNS, _time_from)


def extract_money(text: str) -> MatchSequence[Decimal]:
    return MatchSequence(text, MONEY_PATTERNS, _first_group_amount)


def extract_vat(text: str) -> MatchSequence[VatEntry]:
    """
    Extract KDV rate/amount pairs.

    Examples:
        >>> list(extract_vat("KDV %18: 5,40"))
        [VatEntry(rate=18, amount=Decimal('5.40'))]
    """
    return MatchSequence(text, VAT_PATTERNS, _vat_from)


def extract_receipt_numbers(text: str) -> MatchSequence[str]:
    return MatchSequence(text, RECEIPT_NUMBER_PATTERNS, _first_group_text)


def extract_fiscal_numbers(text: str) -> MatchSequence[str]:
    return MatchSequence(text, FISCAL_NUMBER_PATTERNS, _first_group_text)


def extract_quantity_units(text: str) -> MatchSequence[QuantityUnit]:
    return MatchSequence(
        text, QUANTITY_PATTERNS,
        lambda match, spec: parse_quantity_unit(match.group(0)),
    )


def extract_merchant_labels(text: str) -> MatchSequence[str]:
    return MatchSequence(text, MERCHANT_LABEL_PATTERNS, _first_group_text)


def first_by_priority(
    text: str,
    specs: Iterable[PatternSpec],
    convert: Callable[[re.Match, PatternSpec], Optional[T]],
    field_name: str = '',
) -> Optional[T]:
    """
    Ordered alternatives: the first pattern (by priority) that yields a value wins.

    Within the winning pattern the earliest match in the text is used.
    """
    if not text or not isinstance(text, str):
        return None

    try:
        for spec in sorted(specs, key=lambda s: s.priority):
            for match in spec.compiled.finditer(text):
                value = convert(match, spec)
                if value is not None:
                    logger.debug("Matched %s with pattern %s", field_name or 'field', spec.name)
                    return value
    except (InvalidOperation, ValueError):
        logger.warning("Error extracting %s", field_name or 'field', exc_info=True)
    return None


def extract_total(text: str) -> Optional[Decimal]:
    return first_by_priority(text, TOTAL_PATTERNS, _first_group_amount, 'total')


def extract_subtotal(text: str) -> Optional[Decimal]:
    return first_by_priority(text, SUBTOTAL_PATTERNS, _first_group_amount, 'subtotal')


def extract_discount(text: str) -> Optional[Decimal]:
    return first_by_priority(text, DISCOUNT_PATTERNS, _first_group_amount, 'discount')


def extract_vat_total(text: str) -> Optional[Decimal]:
    return first_by_priority(text, VAT_TOTAL_PATTERNS, _first_group_amount, 'vat_total')


def extract_payment_method(text: str) -> Optional[str]:
    """Return 'card' or 'cash' from the first payment rule that fires."""
    return first_by_priority(text, PAYMENT_PATTERNS, lambda match, spec: spec.output, 'payment')


def _is_header_stop(line: str) -> bool:
    """Header ends at the first date, time, money or receipt-number line."""
    return bool(
        DATE_PATTERNS[0].compiled.search(line)
        or TIME_PATTERNS[0].compiled.search(line)
        or MONEY_PATTERNS[0].compiled.search(line)
        or RECEIPT_NUMBER_PATTERNS[0].compiled.search(line)
        or FISCAL_NUMBER_PATTERNS[0].compiled.search(line)
    )


def _looks_like_address_line(line: str) -> bool:
    return bool(
        STREET_KEYWORD_RE.search(line)
        or POSTAL_LINE_RE.match(line)
        or DISTRICT_CITY_RE.match(line)
    )


def extract_address(text: str, max_lines: int = 8) -> Optional[str]:
    """
    Best-effort store address.

    An explicit ADRES label wins; otherwise the address-looking lines of
    the receipt header are joined.
    """
    if not text or not isinstance(text, str):
        return None

    labelled = first_by_priority(text, ADDRESS_PATTERNS[:1], _first_group_text, 'address')
    if labelled:
        return labelled

    lines = [line.strip() for line in text.split('\n') if line.strip()]
    collected: List[str] = []
    for line in lines[:max_lines]:
        if _is_header_stop(line):
            break
        if _looks_like_address_line(line):
            collected.append(collapse_whitespace(line))

    if collected:
        return ' '.join(collected)

    return first_by_priority(text, ADDRESS_PATTERNS[1:], _first_group_text, 'address')
