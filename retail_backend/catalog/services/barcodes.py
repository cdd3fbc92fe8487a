# catalog/services/barcodes.py

"""
======================================================
PATH: catalog/services/barcodes.py
======================================================
BARCODE GENERATOR

Purpose:
- Issue internal EAN-13 barcodes: prefix "21" + 10-digit sequence + check digit.
- Sequence comes from the atomic counter (catalog.services.sequence).

Collision handling:
- A freshly minted barcode can only already exist when the counter lags
  behind stored data (bulk import without resync). We skip forward with a
  fresh sequence, up to BARCODE_MAX_RETRIES, then raise DuplicateBarcodeError.
- assign_barcode() additionally retries on the unique index (IntegrityError),
  which covers an import racing with issuance.
"""

from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from catalog.models import Product
from catalog.services.ean13 import build_ean13, calculate_check_digit, validate_ean13
from catalog.services.exceptions import DuplicateBarcodeError
from catalog.services.sequence import next_sequence
from inventory.conf import inventory_setting

logger = logging.getLogger(__name__)

__all__ = [
    "assign_barcode",
    "barcode_exists",
    "build_ean13",
    "calculate_check_digit",
    "generate_barcode",
    "validate_ean13",
]


def _max_retries() -> int:
    return max(int(inventory_setting("BARCODE_MAX_RETRIES") or 1), 1)


def barcode_exists(barcode: str, *, exclude_product=None) -> bool:
    barcode = (barcode or "").strip()
    if not barcode:
        return False

    qs = Product.objects.filter(barcode=barcode)
    if exclude_product is not None:
        qs = qs.exclude(pk=getattr(exclude_product, "pk", exclude_product))
    return qs.exists()


def _mint() -> str:
    return build_ean13(next_sequence(), prefix=inventory_setting("BARCODE_PREFIX"))


def generate_barcode() -> str:
    """
    Return a new, currently unused internal barcode.
    """
    retries = _max_retries()

    for attempt in range(1, retries + 1):
        barcode = _mint()
        if not barcode_exists(barcode):
            return barcode

        logger.warning(
            "Generated barcode already in use; retrying with next sequence",
            extra={"barcode": barcode, "attempt": attempt, "max_retries": retries},
        )

    raise DuplicateBarcodeError(
        f"Could not generate a unique barcode after {retries} attempts. "
        "The barcode counter is behind stored barcodes; run sync_barcode_counter."
    )


def assign_barcode(product, *, force: bool = False) -> str:
    """
    Generate a barcode and persist it onto `product`.

    Idempotent: a product that already has a barcode keeps it unless force=True.
    """
    if product is None or getattr(product, "pk", None) is None:
        raise ValueError("product is required")

    existing = (product.barcode or "").strip()
    if existing and not force:
        return existing

    retries = _max_retries()

    for attempt in range(1, retries + 1):
        barcode = generate_barcode()
        try:
            with transaction.atomic():
                Product.objects.filter(pk=product.pk).update(barcode=barcode)
        except IntegrityError:
            logger.warning(
                "Barcode rejected by unique index; retrying",
                extra={"barcode": barcode, "attempt": attempt, "product_id": str(product.pk)},
            )
            continue

        product.barcode = barcode
        logger.info(
            "Barcode assigned",
            extra={"barcode": barcode, "product_id": str(product.pk)},
        )
        return barcode

    raise DuplicateBarcodeError(
        f"Could not assign a unique barcode to product {product.pk} after {retries} attempts."
    )
