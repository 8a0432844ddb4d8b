"""
Merchant classification: map raw merchant strings to canonical chain groups.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple
import logging
import re

from fisparser.config import settings
from fisparser.utils.patterns import ADDRESS_KEYWORD_RE, DISTRICT_CITY_RE
from fisparser.utils.text import collapse_whitespace, fold_turkish, turkish_lower

logger = logging.getLogger(__name__)

UNKNOWN_MERCHANT = "Unknown"


@dataclass(frozen=True)
class MerchantMapping:
    """Lower-cased substrings that identify one retail chain."""
    patterns: FrozenSet[str]
    chain_group: str
    priority: int = 10


MERCHANT_MAPPINGS: Tuple[MerchantMapping, ...] = (
    MerchantMapping(frozenset({'migros', 'mıgros'}), 'Migros'),
    MerchantMapping(frozenset({'a101', 'a-101', 'a 101'}), 'A101'),
    MerchantMapping(frozenset({'bim', 'b.i.m'}), 'BIM'),
    MerchantMapping(frozenset({'sok', 'şok', 's.o.k'}), 'SOK'),
    MerchantMapping(frozenset({'carrefour', 'carrefoursa', 'krefur'}), 'CarrefourSA'),
    MerchantMapping(frozenset({'metro', 'metro market', 'metro gross'}), 'Metro'),
    MerchantMapping(frozenset({'real', 'real market'}), 'Real'),
    MerchantMapping(frozenset({'macro', 'macrocenter', 'macro center'}), 'Macrocenter'),
    MerchantMapping(frozenset({'file', 'file market'}), 'File'),
    MerchantMapping(frozenset({'hakmar', 'hak-mar'}), 'Hakmar'),
    MerchantMapping(frozenset({'teknosa'}), 'Teknosa'),
    MerchantMapping(frozenset({'mediamarkt', 'media markt', 'medya market'}), 'MediaMarkt'),
    MerchantMapping(frozenset({'lc waikiki', 'lcw', 'lc waıkıkı'}), 'LC Waikiki'),
)

_LEGAL_SUFFIX_RE = re.compile(
    r'(?<![\w.])(?:T\.\s*A\.\s*Ş\.?|A\.\s*Ş\.?|AŞ|LTD\.?|ŞT[İI]\.?|SAN\.?|T[İI]C\.?)(?!\w)',
    re.IGNORECASE,
)
_DANGLING_CONJUNCTION_RE = re.compile(r'(?:\s+VE)+\s*$', re.IGNORECASE)
_DISALLOWED_CHARS_RE = re.compile(r'[^\w\s\-.]')


class _ScanState(Enum):
    SEEKING = 'seeking'
    FOUND = 'found'


def _best_mapping(raw: str) -> Optional[MerchantMapping]:
    lowered = turkish_lower(raw.strip())
    best: Optional[MerchantMapping] = None
    best_score = 0

    for mapping in MERCHANT_MAPPINGS:
        for pattern in mapping.patterns:
            if pattern in lowered:
                score = len(pattern) * mapping.priority
                if score > best_score:
                    best, best_score = mapping, score

    return best


def normalize_merchant_to_chain(raw_merchant) -> str:
    """
    Normalize a raw merchant string to its chain group.

    Args:
        raw_merchant: Merchant text as printed on the receipt

    Returns:
        Canonical chain name, the trimmed input if no chain matches,
        or "Unknown" for empty / non-string input

    Examples:
        >>> normalize_merchant_to_chain("MİGROS TİCARET A.Ş.")
        'Migros'
        >>> normalize_merchant_to_chain("Local Bakery")
        'Local Bakery'
    """
    if not isinstance(raw_merchant, str) or not raw_merchant.strip():
        return UNKNOWN_MERCHANT

    trimmed = raw_merchant.strip()
    mapping = _best_mapping(trimmed)
    if mapping is None:
        return trimmed

    logger.debug("Merchant %r classified as %s", trimmed, mapping.chain_group)
    return mapping.chain_group


def is_known_chain(raw_merchant: str) -> bool:
    return isinstance(raw_merchant, str) and _best_mapping(raw_merchant) is not None


def _is_substantial(line: str) -> bool:
    letters = sum(1 for c in line if c.isalpha())
    return letters >= 3 and letters * 2 >= len(line.replace(' ', ''))


def find_merchant_line(full_text: str, max_lines: Optional[int] = None) -> Optional[str]:
    """
    Scan the receipt header for the merchant line.

    Walks the first non-empty lines while SEEKING. The first line that
    names a known chain or is a substantial alphabetic string moves the
    scan to FOUND, which stops it. Lines starting with a digit and address
    lines are skipped.
    """
    if not isinstance(full_text, str) or not full_text.strip():
        return None

    limit = max_lines or settings.MERCHANT_SCAN_LINES
    lines = [line.strip() for line in full_text.split('\n') if line.strip()][:limit]

    state = _ScanState.SEEKING
    candidate: Optional[str] = None

    for line in lines:
        if state is _ScanState.FOUND:
            break

        if line[0].isdigit() or ADDRESS_KEYWORD_RE.search(line) or DISTRICT_CITY_RE.match(line):
            continue

        if is_known_chain(line) or _is_substantial(line):
            candidate = line
            state = _ScanState.FOUND

    return candidate


def extract_merchant_brand(full_text: str) -> Optional[str]:
    """
    Chain name of the merchant printed in the receipt header.

    Returns the canonical chain, or the first substantial alphabetic line
    if no chain is recognized; None if no header line qualifies.
    """
    line = find_merchant_line(full_text)
    if line is None:
        return None
    return normalize_merchant_to_chain(line)


def clean_merchant_name(name: str) -> str:
    """
    Display form of a merchant name with legal suffixes removed.

    Examples:
        >>> clean_merchant_name("MİGROS TİC. A.Ş.")
        'MİGROS'
    """
    if not name or not isinstance(name, str):
        return ""

    cleaned = _DISALLOWED_CHARS_RE.sub(' ', name)
    cleaned = _LEGAL_SUFFIX_RE.sub(' ', cleaned)
    cleaned = collapse_whitespace(cleaned)
    cleaned = _DANGLING_CONJUNCTION_RE.sub('', cleaned)
    return cleaned.strip(' .-')


def merchant_group_key(name: str) -> str:
    """
    ASCII-folded, punctuation-free key for grouping merchant spellings.

    Examples:
        >>> merchant_group_key("ŞOK Marketler T.A.Ş.")
        'sokmarketler'
    """
    cleaned = clean_merchant_name(name)
    if not cleaned:
        return ""
    return re.sub(r'[^a-z0-9]', '', fold_turkish(cleaned))
