"""
EAN-13 barcode generation for products created without one.

Internal-use barcodes start with the "200" prefix (GS1 restricted range)
followed by the low digits of a millisecond timestamp and a check digit.
"""
from __future__ import annotations

import random
import re

from backoffice.time_utils import epoch_millis


INTERNAL_PREFIX = "200"

_EAN13_RE = re.compile(r"^\d{13}$")


def ean13_check_digit(base: str) -> str:
    if len(base) != 12 or not base.isdigit():
        raise ValueError("Barcode base must be exactly 12 digits")
    total = sum(int(digit) * (1 if i % 2 == 0 else 3) for i, digit in enumerate(base))
    return str((10 - total % 10) % 10)


def generate_ean13(prefix: str = INTERNAL_PREFIX, timestamp: int | None = None) -> str:
    if timestamp is None:
        timestamp = epoch_millis()
    remaining = 12 - len(prefix)
    base = prefix + str(timestamp)[-remaining:].rjust(remaining, "0") if remaining > 0 else prefix
    base = base[:12].rjust(12, "0")
    return base + ean13_check_digit(base)


def is_valid_ean13(barcode: str | None) -> bool:
    if not barcode or not _EAN13_RE.match(barcode):
        return False
    return ean13_check_digit(barcode[:12]) == barcode[12]


def generate_product_barcode(prefix: str = INTERNAL_PREFIX) -> str:
    return generate_ean13(prefix, epoch_millis() + random.randint(0, 999))
