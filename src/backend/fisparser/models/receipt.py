"""
Pydantic models for parsed receipts.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from fisparser.models.extraction import ExtractedDate, ExtractedTime, VatEntry

# Full-scale token confidence per OCR engine
CONFIDENCE_SCALES = {
    'tesseract': 100.0,
}


class OcrToken(BaseModel):
    """A single word reported by the OCR engine."""
    text: str
    confidence: Optional[float] = None  # 0-1 or 0-100, engine dependent
    bbox: Optional[Tuple[int, int, int, int]] = None  # (x, y, width, height)


class OcrMetadata(BaseModel):
    """Optional structured output of the OCR provider."""
    engine: Optional[str] = None
    tokens: List[OcrToken] = Field(default_factory=list)
    confidence_scale: Optional[float] = None  # full-scale value, e.g. 100 for 0-100 engines

    @classmethod
    def from_tesseract(cls, bbox_data: Dict[str, List[Any]], engine: str = "tesseract") -> "OcrMetadata":
        """
        Build metadata from a pytesseract.image_to_data() dict.

        Args:
            bbox_data: {'text': [...], 'left': [...], 'top': [...], 'width': [...],
                        'height': [...], 'conf': [...]}
        """
        tokens: List[OcrToken] = []
        if not bbox_data or 'text' not in bbox_data:
            return cls(engine=engine, tokens=tokens)

        for i, raw in enumerate(bbox_data['text']):
            text = str(raw).strip()
            if not text:
                continue

            # Tesseract reports -1 for layout-only boxes
            conf = float(bbox_data['conf'][i])
            if conf < 0:
                continue

            tokens.append(OcrToken(
                text=text,
                confidence=conf,
                bbox=(
                    int(bbox_data['left'][i]),
                    int(bbox_data['top'][i]),
                    int(bbox_data['width'][i]),
                    int(bbox_data['height'][i]),
                ),
            ))

        return cls(engine=engine, tokens=tokens)

    def mean_confidence(self) -> Optional[float]:
        """
        Average token confidence scaled to [0, 1], or None if unknown.

        The scale comes from confidence_scale when set, otherwise from the
        engine name; unknown engines are taken to report 0-1.
        """
        values = [t.confidence for t in self.tokens if t.confidence is not None]
        if not values:
            return None
        scale = self.confidence_scale
        if not scale:
            scale = CONFIDENCE_SCALES.get((self.engine or '').lower(), 1.0)
        mean = sum(values) / len(values) / scale
        return max(0.0, min(1.0, mean))


class LineItem(BaseModel):
    """One purchased article."""
    model_config = ConfigDict(frozen=True)

    description: str
    qty: Optional[Decimal] = None
    unit: Optional[str] = None
    unit_price: Optional[Decimal] = None
    line_total: Decimal
    raw_line: str = ""


class DiscountLine(BaseModel):
    """A discount row; amount is stored as a positive value."""
    model_config = ConfigDict(frozen=True)

    description: str
    amount: Decimal


class AddressComponents(BaseModel):
    """Store address fragments."""
    model_config = ConfigDict(frozen=True)

    raw: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    neighborhood: Optional[str] = None
    street: Optional[str] = None


class ParsedReceipt(BaseModel):
    """Structured receipt returned to the caller."""
    model_config = ConfigDict(frozen=True)

    merchant_raw: Optional[str] = None
    merchant_brand: Optional[str] = None
    merchant_chain: Optional[str] = None
    merchant_display: Optional[str] = None

    date: Optional[ExtractedDate] = None
    time: Optional[ExtractedTime] = None
    purchase_date: Optional[str] = None  # YYYY-MM-DD
    purchase_time: Optional[str] = None  # HH:MM

    subtotal: Optional[Decimal] = None
    discount_total: Optional[Decimal] = None
    vat_total: Optional[Decimal] = None
    vat_entries: Tuple[VatEntry, ...] = ()
    total: Optional[Decimal] = None

    items: Tuple[LineItem, ...] = ()
    discounts: Tuple[DiscountLine, ...] = ()

    payment_method: Optional[str] = None  # 'card' or 'cash'
    masked_pan: Optional[str] = None
    card_last4: Optional[str] = None
    card_scheme: Optional[str] = None

    receipt_number: Optional[str] = None
    fiscal_number: Optional[str] = None
    address: AddressComponents = Field(default_factory=AddressComponents)

    confidence: float = 0.0
    warnings: Tuple[str, ...] = ()
    errors: Tuple[str, ...] = ()
    is_valid: bool = False

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    @property
    def items_sum(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal('0.00'))


class SanitizedReceiptData(BaseModel):
    """Caller-supplied receipt fields after sanitization."""
    store_name: str = ""
    total_amount: Decimal = Decimal('0')
    items: str = ""
    date: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of the cross-field checks."""
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    confidence: float = 0.0
    sanitized: Optional[SanitizedReceiptData] = None
