from .barcodes import (
    assign_barcode,
    build_ean13,
    calculate_check_digit,
    generate_barcode,
    validate_ean13,
)
from .sequence import current_sequence, next_sequence, resync_sequence

__all__ = [
    "assign_barcode",
    "build_ean13",
    "calculate_check_digit",
    "generate_barcode",
    "validate_ean13",
    "current_sequence",
    "next_sequence",
    "resync_sequence",
]
