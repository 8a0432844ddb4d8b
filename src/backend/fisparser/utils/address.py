"""
Turkish store address parsing.

Splits a raw address line ("Barbaros Mah. Begonya Sk. No:3/A ESENYURT/İSTANBUL")
into city, district, neighborhood and street.
"""

from typing import List, Optional
import re

from fisparser.models.receipt import AddressComponents
from fisparser.utils.text import collapse_whitespace, fold_turkish, turkish_lower, turkish_title

CITIES = (
    'istanbul', 'ankara', 'izmir', 'bursa', 'antalya', 'adana', 'konya', 'gaziantep',
    'mersin', 'diyarbakır', 'kayseri', 'eskişehir', 'urfa', 'malatya', 'erzurum',
    'trabzon', 'denizli', 'kocaeli', 'hatay', 'manisa', 'kahramanmaraş', 'van',
    'aydın', 'balıkesir', 'tokat', 'tekirdağ', 'sakarya', 'muğla', 'afyon',
    'samsun', 'edirne', 'çanakkale', 'bolu', 'düzce', 'zonguldak',
)

_WORD = r'[a-zçğıöşüâîû]+'

_NEIGHBORHOOD_KW = re.compile(r'\b(?:mah(?:alle(?:si)?)?)\b\.?')
_STREET_KW = re.compile(r'\b(?:cad(?:de(?:si)?)?|sok(?:ak|ağı)?|sk|bulvar[ıi]?|blv)\b\.?')
_ANY_KW_WORD = re.compile(r'^(?:mah|mahalle|mahallesi|cad|cadde|caddesi|sok|sokak|sokağı|sk|bulvarı|bulvari|blv|no)$')
_TRAILING_WORDS = re.compile(rf'({_WORD}(?:\s+{_WORD})*)\s*$')

_DISTRICT_PATTERNS = (
    re.compile(rf'({_WORD})\s*/\s*({_WORD})'),
    re.compile(rf'({_WORD})\s+ilçe(?:si)?\b'),
)


def _words_before(text: str, end: int, max_words: int = 3) -> Optional[str]:
    """Run of words right before position `end`, cut at the previous address keyword."""
    match = _TRAILING_WORDS.search(text[:end])
    if not match:
        return None

    words: List[str] = match.group(1).split()
    for i in range(len(words) - 1, -1, -1):
        if _ANY_KW_WORD.match(words[i]):
            words = words[i + 1:]
            break

    words = words[-max_words:]
    return ' '.join(words) if words else None


def _find_city(folded: str) -> Optional[str]:
    for city in CITIES:
        if re.search(rf'\b{fold_turkish(city)}\b', folded):
            return turkish_title(city)
    return None


def parse_address_components(address_raw: Optional[str]) -> AddressComponents:
    """
    Parse Turkish address components from raw text.

    Missing parts are left as None; an empty input gives an empty record.

    Examples:
        >>> parse_address_components("Barbaros Mah. Begonya Sk. ESENYURT/İSTANBUL").district
        'Esenyurt'
    """
    if not address_raw or not isinstance(address_raw, str):
        return AddressComponents()

    raw = collapse_whitespace(address_raw)
    lowered = turkish_lower(raw)
    folded = fold_turkish(raw)

    neighborhood = None
    match = _NEIGHBORHOOD_KW.search(lowered)
    if match:
        neighborhood = _words_before(lowered, match.start())

    street = None
    match = _STREET_KW.search(lowered)
    if match:
        street = _words_before(lowered, match.start())

    district = None
    city = _find_city(folded)
    for pattern in _DISTRICT_PATTERNS:
        match = pattern.search(lowered)
        if match:
            district = match.group(1)
            if city is None and pattern.groups > 1:
                city = match.group(2)
            break

    # "ESENYURT/İSTANBUL": the part before the slash is the district
    # unless it is itself the city
    if district and city and fold_turkish(district) == fold_turkish(city):
        district = None

    return AddressComponents(
        raw=raw,
        city=turkish_title(city) if city else None,
        district=turkish_title(district) if district else None,
        neighborhood=turkish_title(neighborhood) if neighborhood else None,
        street=turkish_title(street) if street else None,
    )
