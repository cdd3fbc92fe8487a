# inventory/services/ledger.py

"""
MOVEMENT LEDGER

Single write path for StockMovement rows.

Rules:
- quantity is SIGNED (+ in, - out) and must match new_stock - previous_stock
- unit_cost / batch_number are snapshotted at write time
- rows are append-only; the model refuses update and delete
"""

from __future__ import annotations

from decimal import Decimal

from inventory.models import StockMovement


def record_movement(
    *,
    product,
    movement_type: str,
    quantity: int,
    previous_stock: int,
    new_stock: int,
    user=None,
    batch=None,
    reference: str = "",
    reason: str = "",
    notes: str = "",
    unit_cost=None,
) -> StockMovement:
    if unit_cost is None and batch is not None:
        unit_cost = batch.cost_price

    total_cost = None
    if unit_cost is not None:
        unit_cost = Decimal(str(unit_cost))
        total_cost = unit_cost * abs(int(quantity or 0))

    # save() runs full_clean(), so sign/snapshot rules are enforced here
    return StockMovement.objects.create(
        product=product,
        batch=batch,
        movement_type=movement_type,
        quantity=int(quantity),
        previous_stock=int(previous_stock),
        new_stock=int(new_stock),
        reference=(reference or "")[:128],
        reason=(reason or "")[:200],
        notes=notes or "",
        unit_cost=unit_cost,
        total_cost=total_cost,
        batch_number=getattr(batch, "batch_number", "") or "",
        created_by=user,
    )


def movements_for_batch(batch, limit: int | None = 50):
    qs = (
        StockMovement.objects.filter(batch=batch)
        .select_related("created_by")
        .order_by("-created_at")
    )
    return list(qs[:limit]) if limit else list(qs)


def movements_for_product(product, limit: int | None = None):
    qs = (
        StockMovement.objects.filter(product=product)
        .select_related("batch", "created_by")
        .order_by("-created_at")
    )
    return list(qs[:limit]) if limit else list(qs)
