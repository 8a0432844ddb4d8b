"""
Input sanitization for caller-supplied receipt fields.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union
import re

from fisparser.config import settings
from fisparser.utils.numeric import normalize_number

_SCRIPT_RE = re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r'<[^>]*>')
_JS_PROTOCOL_RE = re.compile(r'javascript:', re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r'on\w+=', re.IGNORECASE)


def sanitize_text(value, max_length: Optional[int] = None) -> str:
    """
    Strip markup and script content, then cap the length.

    Non-string input yields an empty string.
    """
    if not value or not isinstance(value, str):
        return ""

    limit = settings.MAX_TEXT_LENGTH if max_length is None else max_length

    cleaned = value.strip()
    cleaned = _SCRIPT_RE.sub('', cleaned)
    cleaned = _TAG_RE.sub('', cleaned)
    cleaned = _JS_PROTOCOL_RE.sub('', cleaned)
    cleaned = _EVENT_HANDLER_RE.sub('', cleaned)
    return cleaned[:limit]


def sanitize_number(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """Parse a caller-supplied amount; anything unparseable or negative becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal('0')

    if isinstance(value, str):
        number = normalize_number(value, allow_negative=True)
    else:
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError):
            number = None

    if number is None or not number.is_finite():
        return Decimal('0')
    return max(Decimal('0'), number)


def sanitize_store_name(value) -> str:
    return sanitize_text(value)[:settings.MAX_STORE_NAME_LENGTH]


def sanitize_items(value) -> str:
    return sanitize_text(value)[:settings.MAX_ITEMS_TEXT_LENGTH]
