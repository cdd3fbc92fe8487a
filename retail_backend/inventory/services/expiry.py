# inventory/services/expiry.py

"""
EXPIRY SWEEPER

check_and_update_expired_batches():
- Candidates: ACTIVE batches with expiry_date < today and stock > 0.
- Each batch is retired in its OWN transaction; one failure is recorded in
  `errors` and the sweep moves on (best-effort reconciliation).
- The retire UPDATE re-checks status=active AND current_quantity=<seen>, so a
  sale racing the sweep makes the batch a no-op for this run (next run picks
  it up). Running the sweep twice in a row touches nothing the second time.

get_expiry_statistics(): three independent buckets (expired-but-unswept,
expiring within the window, all active) with count / quantity / cost value.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from inventory.models import InventoryBatch, StockMovement
from inventory.services.batch_queries import resolve_window_days
from inventory.services.batch_service import apply_product_stock_delta
from inventory.services.ledger import record_movement

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    success: bool = True
    timestamp: datetime | None = None
    total_checked: int = 0
    batches_updated: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def _expire_batch(batch: InventoryBatch, *, user=None) -> dict | None:
    seen = int(batch.current_quantity or 0)

    updated = InventoryBatch.objects.filter(
        pk=batch.pk,
        status=InventoryBatch.Status.ACTIVE,
        current_quantity=seen,
    ).update(
        status=InventoryBatch.Status.EXPIRED,
        current_quantity=0,
        reserved_quantity=0,
        updated_at=timezone.now(),
    )
    if not updated:
        logger.info(
            "Batch changed during sweep; skipping until next run",
            extra={"batch_number": batch.batch_number},
        )
        return None

    previous_stock, new_stock = apply_product_stock_delta(batch.product_id, -seen)

    record_movement(
        product=batch.product,
        batch=batch,
        movement_type=StockMovement.MovementType.EXPIRED,
        quantity=-seen,
        previous_stock=previous_stock,
        new_stock=new_stock,
        user=user,
        reference=batch.batch_number,
        reason="Batch expired",
    )

    return {
        "batch_id": str(batch.pk),
        "batch_number": batch.batch_number,
        "product_id": str(batch.product_id),
        "product_name": batch.product.name,
        "expiry_date": batch.expiry_date,
        "quantity_removed": seen,
    }


def check_and_update_expired_batches(*, user=None) -> SweepResult:
    result = SweepResult(timestamp=timezone.now())
    today = timezone.localdate()

    candidates = list(
        InventoryBatch.objects.filter(
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gt=0,
            expiry_date__lt=today,
        )
        .select_related("product")
        .order_by("expiry_date", "purchase_date")
    )
    result.total_checked = len(candidates)

    for batch in candidates:
        try:
            with transaction.atomic():
                entry = _expire_batch(batch, user=user)
        except Exception as exc:
            logger.exception(
                "Failed to expire batch",
                extra={"batch_id": str(batch.pk), "batch_number": batch.batch_number},
            )
            result.errors.append(
                {
                    "batch_id": str(batch.pk),
                    "batch_number": batch.batch_number,
                    "error": str(exc),
                }
            )
            continue

        if entry is not None:
            result.batches_updated.append(entry)

    result.success = not result.errors

    logger.info(
        "Expiry sweep finished",
        extra={
            "total_checked": result.total_checked,
            "updated": len(result.batches_updated),
            "errors": len(result.errors),
        },
    )
    return result


def _bucket(qs) -> dict:
    total_batches = 0
    total_quantity = 0
    total_value = Decimal("0")
    for qty, cost in qs.values_list("current_quantity", "cost_price"):
        total_batches += 1
        total_quantity += int(qty or 0)
        total_value += Decimal(cost or 0) * int(qty or 0)
    return {
        "total_batches": total_batches,
        "total_quantity": total_quantity,
        "total_value": total_value.quantize(Decimal("0.01")),
    }


def get_expiry_statistics(window_days: int | None = None) -> dict:
    window = resolve_window_days(window_days)
    today = timezone.localdate()

    stocked = InventoryBatch.objects.filter(
        status=InventoryBatch.Status.ACTIVE,
        current_quantity__gt=0,
    )

    return {
        "window_days": window,
        "expired": _bucket(stocked.filter(expiry_date__lt=today)),
        "expiring_soon": _bucket(
            stocked.filter(
                expiry_date__gte=today,
                expiry_date__lte=today + timedelta(days=window),
            )
        ),
        "total_active": _bucket(stocked),
    }


def check_batch_expiry(batch: InventoryBatch) -> dict:
    is_expired = batch.is_expired
    return {
        "batch_id": str(batch.pk),
        "batch_number": batch.batch_number,
        "status": batch.status,
        "expiry_date": batch.expiry_date,
        "is_expired": is_expired,
        "days_until_expiry": batch.days_until_expiry,
        "needs_update": (
            is_expired
            and batch.status == InventoryBatch.Status.ACTIVE
            and int(batch.current_quantity or 0) > 0
        ),
    }
