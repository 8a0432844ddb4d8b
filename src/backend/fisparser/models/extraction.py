"""
Value records produced by the pattern extractor and numeric normalizer.

Each record is a small frozen dataclass so extraction results can be
compared, hashed and embedded in the pydantic output models.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ExtractedDate:
    """Calendar date found in receipt text (DD.MM.YYYY on Turkish receipts)."""
    day: int
    month: int
    year: int

    def isoformat(self) -> str:
        """Return YYYY-MM-DD."""
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True)
class ExtractedTime:
    """24-hour clock time."""
    hour: int
    minute: int

    def isoformat(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class VatEntry:
    """A single KDV line: rate in percent and the VAT amount."""
    rate: int
    amount: Decimal


@dataclass(frozen=True)
class QuantityUnit:
    """
    Quantity with optional unit.

    Both fields are None when no quantity was found, so callers can tell
    "no quantity" apart from a quantity of zero.
    """
    qty: Optional[Decimal] = None
    unit: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.qty is None and self.unit is None


@dataclass(frozen=True)
class CardInfo:
    """
    Card data that is safe to keep.

    The full PAN never reaches this record; only the masked display form,
    the last four digits and the scheme inferred from the prefix.
    """
    masked_pan: str
    last4: str
    scheme: Optional[str] = None
    luhn_checked: bool = False
