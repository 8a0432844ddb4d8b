"""
Turkish-aware casing helpers.

str.lower() turns 'İ' into 'i' + U+0307 (combining dot), which breaks
substring matching against plain 'i' patterns, so all matching in this
package goes through turkish_lower().
"""

import re

_FOLD_MAP = str.maketrans({
    'ç': 'c', 'ğ': 'g', 'ı': 'i', 'ö': 'o', 'ş': 's', 'ü': 'u',
    'â': 'a', 'î': 'i', 'û': 'u',
})


def turkish_lower(text: str) -> str:
    """Lower-case with Turkish dotted/dotless I handled."""
    if not text:
        return ""
    return text.replace('İ', 'i').lower().replace('̇', '')


def turkish_capitalize(word: str) -> str:
    """'istanbul' -> 'İstanbul', 'izmir' -> 'İzmir'."""
    if not word:
        return ""
    head = word[0]
    if head == 'i':
        head = 'İ'
    elif head == 'ı':
        head = 'I'
    else:
        head = head.upper()
    return head + turkish_lower(word[1:])


def turkish_title(text: str) -> str:
    return ' '.join(turkish_capitalize(w) for w in text.split())


def fold_turkish(text: str) -> str:
    """
    ASCII-fold Turkish letters after lower-casing.

    'ŞOK Marketler' -> 'sok marketler'
    """
    return turkish_lower(text).translate(_FOLD_MAP)


def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip()
