# catalog/services/ean13.py

"""
EAN-13 PRIMITIVES (pure functions, no database access)

Internal barcode layout:
    <prefix: 2 digits> <sequence: 10 digits, zero-padded> <check digit>

Check digit (standard weighted modulo-10):
- digits at even 0-based positions weigh 1, odd positions weigh 3
- check = 0 if sum % 10 == 0 else 10 - (sum % 10)
"""

from __future__ import annotations

from catalog.models.barcode_counter import MAX_SEQUENCE

BODY_LENGTH = 12
BARCODE_LENGTH = 13
SEQUENCE_WIDTH = 10


def calculate_check_digit(body: str) -> int:
    if not isinstance(body, str) or len(body) != BODY_LENGTH or not body.isdigit():
        raise ValueError("EAN-13 body must be exactly 12 digits")

    total = 0
    for index, char in enumerate(body):
        digit = int(char)
        total += digit if index % 2 == 0 else digit * 3

    remainder = total % 10
    return 0 if remainder == 0 else 10 - remainder


def build_ean13(sequence: int, *, prefix: str = "21") -> str:
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        raise ValueError("sequence must be an integer")

    if sequence < 0 or sequence > MAX_SEQUENCE:
        raise ValueError(f"sequence must be between 0 and {MAX_SEQUENCE}")

    prefix = (prefix or "").strip()
    if len(prefix) != BODY_LENGTH - SEQUENCE_WIDTH or not prefix.isdigit():
        raise ValueError("prefix must be exactly 2 digits")

    body = f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"
    return f"{body}{calculate_check_digit(body)}"


def validate_ean13(barcode) -> bool:
    if not isinstance(barcode, str):
        return False

    barcode = barcode.strip()
    if len(barcode) != BARCODE_LENGTH or not barcode.isdigit():
        return False

    return int(barcode[-1]) == calculate_check_digit(barcode[:BODY_LENGTH])


def parse_sequence(barcode, *, prefix: str = "21") -> int | None:
    """
    Extract the embedded sequence from an internal barcode.
    Returns None for foreign / malformed barcodes (they never collide with ours).
    """
    if not isinstance(barcode, str):
        return None

    barcode = barcode.strip()
    if len(barcode) != BARCODE_LENGTH or not barcode.isdigit():
        return None
    if not barcode.startswith(prefix):
        return None

    return int(barcode[len(prefix):BODY_LENGTH])
