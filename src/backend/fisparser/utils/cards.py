"""
Card number validation and masking.

Full PANs never leave this module: extraction yields CardInfo records that
only carry the masked display string, the last four digits and the scheme.
"""

from typing import Optional, Tuple
import logging
import re

from fisparser.models.extraction import CardInfo
from fisparser.utils.patterns import MatchSequence, PatternSpec

logger = logging.getLogger(__name__)

MIN_PAN_DIGITS = 12

# Longer prefixes first: a single-digit rule would otherwise shadow them
CARD_SCHEMES: Tuple[Tuple[str, str], ...] = (
    ('34', 'American Express'),
    ('37', 'American Express'),
    ('6011', 'Discover'),
    ('65', 'Discover'),
    ('4', 'Visa'),
    ('5', 'Mastercard'),
    ('2', 'Mastercard'),
)

CARD_PATTERNS: Tuple[PatternSpec, ...] = (
    PatternSpec(
        name='masked_pan',
        pattern=r'(?<!\d)(\d{4,6})((?:[ \-]?[*Xx•]{2,})+)[ \-]?(\d{4})(?!\d)',
        example='#521824******9016 TEK POS',
        notes='BIN + mask + last four, as printed by Turkish POS terminals',
        priority=1,
        flags=0,
    ),
    PatternSpec(
        name='full_pan',
        pattern=r'(?<![\d*])(?:\d[ \-]?){11,18}\d(?![\d*])',
        example='4532 0151 1283 0366',
        notes='Luhn-checked before use',
        priority=2,
        flags=0,
    ),
)


def _digits(value) -> str:
    if not isinstance(value, str):
        return ""
    return re.sub(r'\D', '', value)


def luhn_valid(card_number: str) -> bool:
    """
    Validate a card number using the Luhn checksum.

    Non-digit characters are ignored; fewer than 12 digits is never valid.

    Examples:
        >>> luhn_valid("4532015112830366")
        True
        >>> luhn_valid("4532015112830367")
        False
    """
    digits = _digits(card_number)
    if len(digits) < MIN_PAN_DIGITS:
        return False

    total = 0
    for i, ch in enumerate(reversed(digits)):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit

    return total % 10 == 0


def detect_card_scheme(card_number: str) -> Optional[str]:
    digits = _digits(card_number)
    if not digits:
        return None

    for prefix, scheme in CARD_SCHEMES:
        if digits.startswith(prefix):
            return scheme
    return None


def card_last4(card_number: str) -> Optional[str]:
    digits = _digits(card_number)
    if len(digits) < 4:
        return None
    return digits[-4:]


def _format_mask(length: int, last4: str) -> str:
    stars = '*' * max(0, length - 4)
    if length == 16:
        return f"{stars[0:4]}-{stars[4:8]}-{stars[8:12]}-{last4}"
    return f"{stars}-{last4}"


def mask_card_number(card_number: str) -> Optional[str]:
    """
    Masked PAN display string.

    Examples:
        >>> mask_card_number("4532015112830366")
        '****-****-****-0366'
        >>> mask_card_number("378282246310005")
        '***********-0005'
    """
    digits = _digits(card_number)
    if len(digits) < MIN_PAN_DIGITS:
        return None
    return _format_mask(len(digits), digits[-4:])


def _card_from(match: re.Match, spec: PatternSpec) -> Optional[CardInfo]:
    if spec.name == 'masked_pan':
        bin_digits, mask, last4 = match.group(1), match.group(2), match.group(3)
        length = len(bin_digits) + sum(1 for c in mask if c not in ' -') + len(last4)
        if length < MIN_PAN_DIGITS:
            return None
        return CardInfo(
            masked_pan=_format_mask(length, last4),
            last4=last4,
            scheme=detect_card_scheme(bin_digits),
        )

    digits = _digits(match.group(0))
    if not luhn_valid(digits):
        return None

    logger.debug("Luhn-valid card number found, keeping masked form only")
    return CardInfo(
        masked_pan=mask_card_number(digits),
        last4=digits[-4:],
        scheme=detect_card_scheme(digits),
        luhn_checked=True,
    )


def extract_card_candidates(text: str) -> MatchSequence[CardInfo]:
    """
    Card numbers found in receipt text, masked.

    Yields masked POS fragments and Luhn-valid full numbers in text order.
    """
    return MatchSequence(text, CARD_PATTERNS, _card_from)