#!/usr/bin/env python3
"""
Debug script: parse an OCR text dump of a receipt and print the result as JSON.

Usage:
    python scripts/parse_receipt.py receipt.txt
    cat receipt.txt | python scripts/parse_receipt.py -
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fisparser.config import settings
from fisparser.services.parser import ReceiptParser
from fisparser.utils.numeric import format_try


def main(argv=None) -> int:
    arg_parser = argparse.ArgumentParser(description="Parse Turkish receipt OCR text")
    arg_parser.add_argument('path', help="Text file with OCR output, or '-' for stdin")
    arg_parser.add_argument('--summary', action='store_true', help="Print a short summary instead of JSON")
    args = arg_parser.parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if args.path == '-':
        text = sys.stdin.read()
    else:
        with open(args.path, encoding='utf-8') as f:
            text = f.read()

    receipt = ReceiptParser().parse(text)

    if not args.summary:
        print(receipt.model_dump_json(indent=2))
        return 0 if receipt.is_valid else 1

    print("=" * 60)
    print(f"Merchant: {receipt.merchant_display} ({receipt.merchant_chain})")
    print(f"Date: {receipt.purchase_date} {receipt.purchase_time or ''}")
    print(f"Total: {format_try(receipt.total)}")
    print(f"Items: {len(receipt.items)}  Discounts: {format_try(receipt.discount_total)}")
    print(f"Payment: {receipt.payment_method} {receipt.masked_pan or ''}")
    print(f"Confidence: {receipt.confidence}")
    print("=" * 60)
    for warning in receipt.warnings:
        print(f"  ! {warning}")
    for error in receipt.errors:
        print(f"  ✗ {error}")

    return 0 if receipt.is_valid else 1


if __name__ == '__main__':
    sys.exit(main())
