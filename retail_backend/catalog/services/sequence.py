# catalog/services/sequence.py

"""
SEQUENCE COUNTER (PHASE 1)

Purpose:
- Mint collision-free integers for product barcodes.

Guarantees:
- next_sequence() never returns the same value twice, even across workers,
  because the increment is a single UPDATE ... SET sequence = sequence + 1
  executed by the database (no read-modify-write in Python).
- The counter row is created lazily with sequence=0.

Maintenance:
- resync_sequence() is a NON-atomic read-then-write used once after bulk
  imports. Barcode-issuing traffic MUST be paused while it runs.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import F

from catalog.models import BarcodeCounter, Product
from catalog.services.ean13 import parse_sequence
from inventory.conf import inventory_setting

logger = logging.getLogger(__name__)


def _default_key() -> str:
    return inventory_setting("BARCODE_SEQUENCE_KEY")


@transaction.atomic
def next_sequence(key: str | None = None) -> int:
    """
    Atomically increment the counter and return the NEW value.
    The first call on a fresh database returns 1.
    """
    key = key or _default_key()

    BarcodeCounter.objects.get_or_create(key=key, defaults={"sequence": 0})
    BarcodeCounter.objects.filter(key=key).update(sequence=F("sequence") + 1)

    # Same transaction as the UPDATE: we read our own row-locked value.
    return BarcodeCounter.objects.values_list("sequence", flat=True).get(key=key)


def current_sequence(key: str | None = None) -> int:
    key = key or _default_key()
    value = (
        BarcodeCounter.objects.filter(key=key)
        .values_list("sequence", flat=True)
        .first()
    )
    return int(value or 0)


def max_existing_sequence(barcodes=None, *, prefix: str | None = None) -> int:
    """
    Highest sequence embedded in the given barcodes (default: all product barcodes).
    Foreign barcodes (other prefixes / malformed) are ignored. Returns 0 if none.
    """
    prefix = prefix or inventory_setting("BARCODE_PREFIX")

    if barcodes is None:
        barcodes = (
            Product.objects.filter(barcode__startswith=prefix)
            .values_list("barcode", flat=True)
            .iterator()
        )

    highest = 0
    for barcode in barcodes:
        seq = parse_sequence(barcode, prefix=prefix)
        if seq is not None and seq > highest:
            highest = seq
    return highest


@transaction.atomic
def resync_sequence(barcodes=None, *, key: str | None = None, dry_run: bool = False) -> int:
    """
    Set the counter to the highest sequence already in use, so the next
    next_sequence() call yields max + 1. Returns that maximum.

    dry_run=True computes the maximum without writing anything.
    """
    key = key or _default_key()
    highest = max_existing_sequence(barcodes)
    previous = current_sequence(key)

    if dry_run:
        logger.info(
            "Barcode counter resync (dry run)",
            extra={"key": key, "current": previous, "max_existing": highest},
        )
        return highest

    BarcodeCounter.objects.update_or_create(key=key, defaults={"sequence": highest})

    if highest < previous:
        # Counter was ahead of stored barcodes (e.g. products deleted); we rewind.
        logger.warning(
            "Barcode counter rewound by resync",
            extra={"key": key, "previous": previous, "sequence": highest},
        )
    else:
        logger.info(
            "Barcode counter resynced",
            extra={"key": key, "previous": previous, "sequence": highest},
        )

    return highest
