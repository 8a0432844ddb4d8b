"""
Numeric parsing utilities for Turkish receipts.

Handles:
- Turkish notation: 1.234,56 (dot thousands, comma decimal)
- OCR-reversed notation: 1,234.56 or 89.90
- Currency markers: ₺23,50 / 23,50 TL / *23,50
- OCR digit confusion: 12O,5O -> 120,50
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional
import re

from fisparser.models.extraction import QuantityUnit
from fisparser.utils.text import turkish_lower


# OCR confusions: letter -> digit. Lower-case 's' and 'b' are left alone
# because they are far more often real letters.
_OCR_DIGIT_MAP = str.maketrans({
    'O': '0', 'o': '0',
    'I': '1', 'l': '1',
    'S': '5',
    'B': '8',
})
_CONFUSABLE = frozenset('OoIlSB')

_TOKEN_RE = re.compile(r'\S+')

# Amount-shaped tokens (digits possibly misread as letters) for repair_money_tokens
_MONEY_TOKEN_RE = re.compile(
    r'(?<!\S)(\*?-?₺?)([\dOoIlSB][\dOoIlSB.,]*[.,][\dOoIlSB]{2})(?=₺|\s|$)'
)

_TR_THOUSANDS = re.compile(r'^\d{1,3}(?:\.\d{3})+,\d+$')    # 1.234,56
_COMMA_DECIMAL = re.compile(r'^\d+,\d+$')                    # 23,45
_US_THOUSANDS = re.compile(r'^\d{1,3}(?:,\d{3})+\.\d{1,2}$')  # 1,234.56
_DOT_THOUSANDS = re.compile(r'^\d{1,3}(?:\.\d{3})+$')         # 1.234
_PLAIN = re.compile(r'^\d+(?:\.\d+)?$')                       # 123 / 89.90

# Money shape: Turkish thousands form first so "1.234,56" is not split
AMOUNT = r'\d{1,3}(?:\.\d{3})+,\d{2}|\d+[.,]\d{2}'

_MONEY_SHAPES = [
    re.compile(rf'₺\s*(?:{AMOUNT})(?!\d)'),                           # ₺23,50
    re.compile(rf'(?<![\d.,])(?:{AMOUNT})\s*₺'),                      # 23,50₺
    re.compile(rf'(?<![\d.,])(?:{AMOUNT})\s*TL\b', re.IGNORECASE),    # 23,50 TL
    re.compile(rf'\bTL\s*(?:{AMOUNT})(?!\d)', re.IGNORECASE),         # TL 23,50
    re.compile(rf'^\*?(?:{AMOUNT})$'),                                # 23,50 (standalone)
]

_MONEY_VALUE_PATTERNS = [
    re.compile(rf'₺\s*({AMOUNT})(?!\d)'),
    re.compile(rf'(?<![\d.,])({AMOUNT})\s*₺'),
    re.compile(rf'(?<![\d.,])({AMOUNT})\s*TL\b', re.IGNORECASE),
    re.compile(rf'\bTL\s*({AMOUNT})(?!\d)', re.IGNORECASE),
]

UNITS = ('adet', 'kg', 'gr', 'g', 'lt', 'l', 'ml', 'cl', 'pk', 'paket', 'kutu', 'şişe', 'poşet')

# Longest alternatives first so "gr" is not read as "g"
_UNIT_ALTERNATION = '|'.join(sorted(UNITS, key=len, reverse=True))
_QTY_UNIT_RE = re.compile(
    rf'(\d+(?:[.,]\d+)?)\s*(?:({_UNIT_ALTERNATION})(?![^\W\d_]))?',
    re.IGNORECASE,
)

TWO_PLACES = Decimal('0.01')


def _looks_numeric(token: str) -> bool:
    """
    Majority-digit heuristic.

    A token is numeric-looking when it has at least one real digit and
    digits plus confusable letters outnumber the remaining letters.
    """
    alnum = [c for c in token if c.isalnum()]
    digits = sum(1 for c in alnum if c.isdigit())
    if digits == 0:
        return False
    digit_like = digits + sum(1 for c in alnum if c in _CONFUSABLE)
    return digit_like * 2 > len(alnum)


def fix_ocr_digits(token: str) -> str:
    """
    Correct OCR letter/digit confusions inside numeric-looking tokens.

    Examples:
        >>> fix_ocr_digits("12O.5O")
        '120.50'
        >>> fix_ocr_digits("normal text")
        'normal text'
    """
    if not token or not isinstance(token, str):
        return token

    def _fix(match: re.Match) -> str:
        word = match.group(0)
        if _looks_numeric(word):
            return word.translate(_OCR_DIGIT_MAP)
        return word

    return _TOKEN_RE.sub(_fix, token)


def repair_money_tokens(text: str) -> str:
    """Apply fix_ocr_digits to amount-shaped tokens only, leaving codes and words intact."""
    if not text:
        return text

    def _fix(match: re.Match) -> str:
        prefix, body = match.group(1), match.group(2)
        if not any(c.isdigit() for c in body):
            return match.group(0)
        return prefix + fix_ocr_digits(body)

    return _MONEY_TOKEN_RE.sub(_fix, text)


def normalize_number(text: str, allow_negative: bool = False) -> Optional[Decimal]:
    """
    Parse a Turkish-locale number or money string.

    Args:
        text: String such as "23,45", "₺ 1.234,56", "123,50 TL", "*8,50"
        allow_negative: Whether a leading minus sign is accepted

    Returns:
        Decimal value or None if the text is not a number

    Examples:
        >>> normalize_number("1.234,56")
        Decimal('1234.56')
        >>> normalize_number("invalid") is None
        True
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = fix_ocr_digits(text.strip())
    cleaned = cleaned.replace('₺', '')
    cleaned = re.sub(r'(?<![^\W\d_])TL(?![^\W\d_])', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\s+', '', cleaned)
    cleaned = cleaned.lstrip('*')

    is_negative = False
    if cleaned.startswith('-'):
        if not allow_negative:
            return None
        is_negative = True
        cleaned = cleaned[1:]

    if not cleaned:
        return None

    if _TR_THOUSANDS.match(cleaned):
        cleaned = cleaned.replace('.', '').replace(',', '.')
    elif _COMMA_DECIMAL.match(cleaned):
        cleaned = cleaned.replace(',', '.')
    elif _US_THOUSANDS.match(cleaned):
        cleaned = cleaned.replace(',', '')
    elif _DOT_THOUSANDS.match(cleaned):
        cleaned = cleaned.replace('.', '')
    elif not _PLAIN.match(cleaned):
        return None

    try:
        value = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None

    return -value if is_negative else value


def to_money(value: Optional[Decimal]) -> Optional[Decimal]:
    """Quantize to exactly two fractional digits."""
    if value is None:
        return None
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def is_money(text: str) -> bool:
    """
    True if text has a money shape with exactly two fractional digits.

    Examples:
        >>> is_money("23,45₺")
        True
        >>> is_money("123")
        False
    """
    if not text or not isinstance(text, str):
        return False

    normalized = fix_ocr_digits(text.strip())
    return any(pattern.search(normalized) for pattern in _MONEY_SHAPES)


def extract_money_values(text: str) -> List[Decimal]:
    """Return every currency-marked amount in the text, in pattern order."""
    if not text or not isinstance(text, str):
        return []

    normalized = fix_ocr_digits(text)
    values: List[Decimal] = []
    for pattern in _MONEY_VALUE_PATTERNS:
        for match in pattern.finditer(normalized):
            value = normalize_number(match.group(1))
            if value is not None:
                values.append(to_money(value))
    return values


def parse_quantity_unit(text: str) -> QuantityUnit:
    """
    Extract a leading quantity and an optional unit.

    Returns an empty QuantityUnit (both fields None) when no number is present.

    Examples:
        >>> parse_quantity_unit("1,5 kg")
        QuantityUnit(qty=Decimal('1.5'), unit='kg')
    """
    if not text or not isinstance(text, str):
        return QuantityUnit()

    normalized = fix_ocr_digits(text.strip())
    match = _QTY_UNIT_RE.search(normalized)
    if not match:
        return QuantityUnit()

    # Quantities use either separator as the decimal point ("0.550 KG")
    try:
        qty = Decimal(match.group(1).replace(',', '.'))
    except (InvalidOperation, ValueError):
        return QuantityUnit()

    unit = turkish_lower(match.group(2)) if match.group(2) else None
    return QuantityUnit(qty=qty, unit=unit)


def format_try(amount: Optional[Decimal]) -> str:
    """
    Format Decimal amount as Turkish Lira.

    Examples:
        >>> format_try(Decimal('1234.5'))
        '₺1.234,50'
    """
    if amount is None:
        return 'N/A'

    quantized = to_money(Decimal(amount))
    formatted = f"{abs(quantized):,.2f}"
    # 1,234.56 -> 1.234,56
    formatted = formatted.replace(',', '_').replace('.', ',').replace('_', '.')
    sign = '-' if quantized < 0 else ''
    return f"{sign}₺{formatted}"
