"""
Receipt validation service: cross-field checks, warnings and confidence.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Sequence

from fisparser.config import settings
from fisparser.models.receipt import LineItem, OcrMetadata, SanitizedReceiptData, ValidationResult
from fisparser.utils.merchants import UNKNOWN_MERCHANT, is_known_chain
from fisparser.utils.numeric import format_try
from fisparser.utils.sanitize import sanitize_items, sanitize_number, sanitize_store_name, sanitize_text

logger = logging.getLogger(__name__)

ConfidenceFn = Callable[[Sequence[str], Sequence[str], float], float]

ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

ZERO = Decimal('0.00')


def score_confidence(
    warnings: Sequence[str],
    errors: Sequence[str],
    base: Optional[float] = None,
) -> float:
    """
    Confidence score from the number of warnings and errors.

    Never increases when a warning or error is added.

    Args:
        warnings: Collected warning messages
        errors: Collected error messages
        base: Starting score (OCR confidence); defaults to CONFIDENCE_BASE

    Returns:
        Confidence score between 0.0 and 1.0
    """
    score = settings.CONFIDENCE_BASE if base is None else base
    score -= len(warnings) * settings.CONFIDENCE_WARNING_PENALTY
    score -= len(errors) * settings.CONFIDENCE_ERROR_PENALTY

    # Ensure score is in valid range
    score = max(0.0, min(1.0, score))

    return round(score, 2)


class ReceiptValidator:
    """Runs the consistency checks over extracted receipt fields."""

    def __init__(
        self,
        confidence_fn: Optional[ConfidenceFn] = None,
        tolerance: Optional[Decimal] = None,
        tolerance_inclusive: Optional[bool] = None,
        amount_ceiling: Optional[Decimal] = None,
        subtract_discounts: Optional[bool] = None,
    ):
        self.confidence_fn = confidence_fn or score_confidence
        self.subtract_discounts = (
            settings.ITEM_SUM_SUBTRACT_DISCOUNTS if subtract_discounts is None else subtract_discounts
        )
        self.tolerance = settings.ITEM_SUM_TOLERANCE if tolerance is None else tolerance
        self.tolerance_inclusive = (
            settings.TOLERANCE_INCLUSIVE if tolerance_inclusive is None else tolerance_inclusive
        )
        self.amount_ceiling = settings.TOTAL_AMOUNT_CEILING if amount_ceiling is None else amount_ceiling

    def _within_tolerance(self, difference: Decimal) -> bool:
        if self.tolerance_inclusive:
            return difference <= self.tolerance
        return difference < self.tolerance

    def check_required(self, store_name: Optional[str], total: Optional[Decimal]) -> List[str]:
        errors = []
        if not store_name or not store_name.strip() or store_name == UNKNOWN_MERCHANT:
            errors.append('Store name is required')
        if total is None or total <= 0:
            errors.append('Total amount must be greater than 0')
        return errors

    def check_amount_ceiling(self, total: Optional[Decimal]) -> Optional[str]:
        if total is not None and total > self.amount_ceiling:
            return f'Total amount seems unusually high: {format_try(total)}'
        return None

    def check_date(self, date_str: Optional[str]) -> Optional[str]:
        """Strict YYYY-MM-DD check plus a calendar check; returns an error message."""
        if not isinstance(date_str, str) or not ISO_DATE_RE.match(date_str):
            return 'Invalid date format'
        try:
            datetime.strptime(date_str, '%Y-%m-%d')
        except ValueError:
            return 'Invalid date format'
        return None

    def check_item_sum(
        self,
        items: Sequence[LineItem],
        discount_total: Optional[Decimal],
        total: Optional[Decimal],
    ) -> Optional[str]:
        """
        Sanity check: line totals should add up to the receipt total.

        Compares |sum(line totals) - total| against the tolerance. With
        subtract_discounts set, printed discount rows are taken off the
        item sum first.

        Returns a single warning message when the difference is outside the
        tolerance, None otherwise (or when there is nothing to compare).
        """
        if not items or total is None:
            return None

        items_sum = sum((item.line_total for item in items), ZERO)
        discounts = (discount_total or ZERO) if self.subtract_discounts else ZERO
        difference = abs(items_sum - discounts - total)

        if self._within_tolerance(difference):
            return None

        if discounts:
            return (
                f'Line items ({format_try(items_sum)}) minus discounts ({format_try(discounts)}) '
                f'differ from total ({format_try(total)}) by {format_try(difference)}'
            )
        return (
            f'Line items ({format_try(items_sum)}) differ from total '
            f'({format_try(total)}) by {format_try(difference)}'
        )

    def check_subtotal(
        self,
        subtotal: Optional[Decimal],
        discount_total: Optional[Decimal],
        total: Optional[Decimal],
    ) -> Optional[str]:
        if subtotal is None or total is None:
            return None

        # Some receipts print ARA TOPLAM after discounts, some before
        discounts = discount_total or ZERO
        if self._within_tolerance(abs(subtotal - total)):
            return None
        if self._within_tolerance(abs(subtotal - discounts - total)):
            return None

        return f'Subtotal ({format_try(subtotal)}) is inconsistent with total ({format_try(total)})'

    def check_vat(self, vat_total: Optional[Decimal], total: Optional[Decimal]) -> Optional[str]:
        if vat_total is None or total is None:
            return None
        if vat_total > total:
            return f'VAT total ({format_try(vat_total)}) exceeds total ({format_try(total)})'
        return None

    def check_merchant(self, merchant_raw: Optional[str]) -> Optional[str]:
        if merchant_raw and merchant_raw.strip() and not is_known_chain(merchant_raw):
            return f'Merchant not recognized: {merchant_raw.strip()}'
        return None

    def validate(
        self,
        *,
        merchant_raw: Optional[str] = None,
        total: Optional[Decimal] = None,
        items: Sequence[LineItem] = (),
        discount_total: Optional[Decimal] = None,
        subtotal: Optional[Decimal] = None,
        vat_total: Optional[Decimal] = None,
        purchase_date: Optional[str] = None,
        metadata: Optional[OcrMetadata] = None,
    ) -> ValidationResult:
        """
        Validate fields extracted from a receipt.

        Missing required fields become errors and mark the result invalid;
        everything else becomes a warning. Nothing here raises.
        """
        errors = self.check_required(merchant_raw, total)
        warnings: List[str] = []

        if purchase_date is None:
            warnings.append('Purchase date not found')
        else:
            date_error = self.check_date(purchase_date)
            if date_error:
                errors.append(date_error)

        if not items:
            warnings.append('No line items found')

        for message in (
            self.check_merchant(merchant_raw),
            self.check_amount_ceiling(total),
            self.check_item_sum(items, discount_total, total),
            self.check_subtotal(subtotal, discount_total, total),
            self.check_vat(vat_total, total),
        ):
            if message:
                warnings.append(message)

        base = metadata.mean_confidence() if metadata is not None else None
        if base is None:
            base = settings.CONFIDENCE_BASE

        result = ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            confidence=self.confidence_fn(warnings, errors, base),
        )
        logger.debug("Validation finished: %d error(s), %d warning(s)", len(errors), len(warnings))
        return result

    def validate_receipt_data(self, data: Mapping[str, Any]) -> ValidationResult:
        """
        Validate form-style receipt data (store name, total, items text, date).

        Args:
            data: Mapping with 'store_name', 'total_amount', 'items' and 'date'

        Returns:
            ValidationResult carrying the sanitized values
        """
        data = data or {}
        raw_date = data.get('date')

        sanitized = SanitizedReceiptData(
            store_name=sanitize_store_name(data.get('store_name')),
            total_amount=sanitize_number(data.get('total_amount')),
            items=sanitize_items(data.get('items')),
            date=sanitize_text(raw_date) if isinstance(raw_date, str) and raw_date.strip() else None,
        )

        errors = self.check_required(sanitized.store_name, sanitized.total_amount)
        warnings: List[str] = []

        ceiling_warning = self.check_amount_ceiling(sanitized.total_amount)
        if ceiling_warning:
            warnings.append(ceiling_warning)

        if sanitized.date is None:
            warnings.append('Purchase date not found')
        else:
            date_error = self.check_date(sanitized.date)
            if date_error:
                errors.append(date_error)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            confidence=self.confidence_fn(warnings, errors, settings.CONFIDENCE_BASE),
            sanitized=sanitized,
        )


def validate_receipt_data(data: Mapping[str, Any]) -> ValidationResult:
    return ReceiptValidator().validate_receipt_data(data)
