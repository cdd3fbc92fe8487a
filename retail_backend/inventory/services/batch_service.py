# inventory/services/batch_service.py

"""
======================================================
PATH: inventory/services/batch_service.py
======================================================
BATCH SERVICE (CREATION, STATUS, ADJUSTMENT, REPAIR)

Purpose:
- Canonical stock intake: create InventoryBatch + PURCHASE movement
  + product aggregate increment + catalog price snapshot.
- Retire an ACTIVE batch as expired / damaged / returned.
- Explicit quantity corrections on an ACTIVE batch.
- Repair pass: rebuild Product.current_stock from batch quantities.

Rules:
- Quantities are integer units; money is Decimal (2 dp).
- Batch quantity/status writes are conditional UPDATEs (WHERE re-checks
  what we read), never read-modify-write through save().
- Product.current_stock moves by atomic F() deltas. It is DERIVED from
  active batches and may be rebuilt with reconcile_product_stock().
- Every quantity change writes exactly one StockMovement per batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from catalog.models import Product
from inventory.models import InventoryBatch, StockMovement
from inventory.services.batch_queries import resolve_batch, resolve_product
from inventory.services.exceptions import InventoryServiceError
from inventory.services.ledger import record_movement

logger = logging.getLogger(__name__)

BATCH_NUMBER_PREFIX = "BATCH"
BATCH_NUMBER_RETRIES = 5

# Status change -> movement type recorded for the removed quantity
STATUS_MOVEMENT = {
    InventoryBatch.Status.EXPIRED: StockMovement.MovementType.EXPIRED,
    InventoryBatch.Status.DAMAGED: StockMovement.MovementType.DAMAGE,
    InventoryBatch.Status.RETURNED: StockMovement.MovementType.RETURN,
}


@dataclass(frozen=True)
class AdjustmentResult:
    batch: InventoryBatch
    movement: StockMovement
    quantity_delta: int


@dataclass(frozen=True)
class StockRepair:
    product_id: str
    sku: str
    recorded_stock: int
    batch_stock: int
    applied: bool

    @property
    def drift(self) -> int:
        return self.batch_stock - self.recorded_stock


# ============================================================
# NORMALIZERS
# ============================================================

def _to_int(value, *, field_name="value") -> int:
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} must be a whole integer unit")
    if isinstance(value, Decimal) and (not value.is_finite() or value != value.to_integral_value()):
        raise ValidationError(f"{field_name} must be a whole integer unit")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")


def require_positive_int(value, *, field_name: str) -> int:
    v = _to_int(value, field_name=field_name)
    if v <= 0:
        raise ValidationError(f"{field_name} must be greater than zero")
    return v


def _to_money(value, *, field_name: str, required: bool = True) -> Decimal | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field_name} must be a valid decimal") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a valid decimal")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return amount.quantize(Decimal("0.01"))


# ============================================================
# PRODUCT AGGREGATE
# ============================================================

def apply_product_stock_delta(product_id, delta: int) -> tuple[int, int]:
    """
    Atomically move Product.current_stock by `delta`.
    Returns (previous_stock, new_stock) as seen by this transaction.

    A decrement is guarded (current_stock >= -delta); if the guard fails the
    aggregate has drifted below the batch store and the caller's transaction
    must abort.
    """
    delta = int(delta)
    qs = Product.objects.filter(pk=product_id)
    if delta < 0:
        qs = qs.filter(current_stock__gte=-delta)

    updated = qs.update(current_stock=F("current_stock") + delta, updated_at=timezone.now())
    if not updated:
        logger.error(
            "Product stock aggregate below batch stock",
            extra={"product_id": str(product_id), "delta": delta},
        )
        raise InventoryServiceError(
            f"Product {product_id} stock aggregate is out of sync with its batches. "
            "Run reconcile_product_stock."
        )

    new_stock = Product.objects.values_list("current_stock", flat=True).get(pk=product_id)
    return new_stock - delta, new_stock


def refresh_catalog_price_snapshot(*, product, batch: InventoryBatch | None = None) -> Product:
    """
    Mirror cost/selling price of `batch` (default: most recently created batch)
    onto the product. Last write wins; older batches keep their own prices.
    """
    product = resolve_product(product)

    if batch is None:
        batch = (
            InventoryBatch.objects.filter(product=product)
            .order_by("-created_at", "-purchase_date")
            .first()
        )
        if batch is None:
            return product
    elif batch.product_id != product.pk:
        raise ValidationError("Batch does not belong to product")

    Product.objects.filter(pk=product.pk).update(
        cost_price=batch.cost_price,
        selling_price=batch.selling_price,
        updated_at=timezone.now(),
    )
    product.cost_price = batch.cost_price
    product.selling_price = batch.selling_price
    return product


# ============================================================
# CREATION
# ============================================================

def _next_batch_number(today) -> str:
    stem = f"{BATCH_NUMBER_PREFIX}{today:%y%m%d}"
    highest = 0
    for number in InventoryBatch.objects.filter(batch_number__startswith=stem).values_list(
        "batch_number", flat=True
    ):
        suffix = number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{stem}{highest + 1:03d}"


def _insert_batch(**fields) -> InventoryBatch:
    """
    Insert with a freshly minted batch number; a same-day collision with a
    concurrent insert is retried with the next number.
    """
    today = timezone.localdate()

    for attempt in range(1, BATCH_NUMBER_RETRIES + 1):
        batch = InventoryBatch(batch_number=_next_batch_number(today), **fields)
        try:
            with transaction.atomic():
                batch.save()
        except IntegrityError:
            logger.warning(
                "Batch number collision; retrying",
                extra={"batch_number": batch.batch_number, "attempt": attempt},
            )
            continue
        return batch

    raise InventoryServiceError(
        f"Could not mint a unique batch number after {BATCH_NUMBER_RETRIES} attempts"
    )


@transaction.atomic
def create_batch(
    *,
    product,
    quantity,
    cost_price,
    selling_price,
    created_by,
    mrp=None,
    supplier_ref=None,
    purchase_order_ref=None,
    expiry_date=None,
    manufacture_date=None,
    purchase_date=None,
    location: str = "",
    notes: str = "",
) -> InventoryBatch:
    """
    CANONICAL STOCK INTAKE

    Creates, as one unit:
    - InventoryBatch (initial = current = quantity, status=active)
    - Product.current_stock += quantity
    - PURCHASE StockMovement with the before/after product stock
    - catalog price snapshot from this batch
    """
    product = resolve_product(product)

    if created_by is None:
        raise ValidationError("created_by is required")

    qty = require_positive_int(quantity, field_name="quantity")
    cost = _to_money(cost_price, field_name="cost_price")
    selling = _to_money(selling_price, field_name="selling_price")
    mrp_value = _to_money(mrp, field_name="mrp", required=False)
    if mrp_value is None:
        mrp_value = product.mrp

    if manufacture_date and expiry_date and manufacture_date > expiry_date:
        raise ValidationError("expiry_date cannot precede manufacture_date")

    batch = _insert_batch(
        product=product,
        supplier_ref=(supplier_ref or "").strip(),
        purchase_order_ref=(purchase_order_ref or "").strip(),
        cost_price=cost,
        selling_price=selling,
        mrp=mrp_value,
        initial_quantity=qty,
        current_quantity=qty,
        purchase_date=purchase_date or timezone.now(),
        manufacture_date=manufacture_date,
        expiry_date=expiry_date,
        status=InventoryBatch.Status.ACTIVE,
        location=location or "",
        notes=notes or "",
        created_by=created_by,
    )

    previous_stock, new_stock = apply_product_stock_delta(product.pk, qty)

    record_movement(
        product=product,
        batch=batch,
        movement_type=StockMovement.MovementType.PURCHASE,
        quantity=qty,
        previous_stock=previous_stock,
        new_stock=new_stock,
        user=created_by,
        reference=batch.purchase_order_ref or batch.batch_number,
        reason="Batch received",
        notes=notes or "",
        unit_cost=cost,
    )

    refresh_catalog_price_snapshot(product=product, batch=batch)
    product.current_stock = new_stock

    logger.info(
        "Batch created",
        extra={
            "batch_number": batch.batch_number,
            "product_id": str(product.pk),
            "quantity": qty,
            "new_stock": new_stock,
        },
    )
    return batch


# ============================================================
# STATUS CHANGES
# ============================================================

@transaction.atomic
def update_batch_status(*, batch, new_status, user, reason: str = "") -> InventoryBatch:
    """
    Retire an ACTIVE batch (expired / damaged / returned).

    Zeroes current_quantity, takes it off the product aggregate and records
    the removed quantity. Terminal statuses never change again.
    """
    if new_status not in STATUS_MOVEMENT:
        allowed = ", ".join(sorted(str(s) for s in STATUS_MOVEMENT))
        raise ValidationError(f"new_status must be one of: {allowed}")

    batch = InventoryBatch.objects.select_related("product").get(pk=resolve_batch(batch).pk)

    if batch.status != InventoryBatch.Status.ACTIVE:
        raise ValidationError(
            f"Cannot change status of a {batch.status} batch ({batch.batch_number})"
        )

    removed = int(batch.current_quantity or 0)

    updated = InventoryBatch.objects.filter(
        pk=batch.pk,
        status=InventoryBatch.Status.ACTIVE,
        current_quantity=removed,
    ).update(
        status=new_status,
        current_quantity=0,
        reserved_quantity=0,
        updated_at=timezone.now(),
    )
    if not updated:
        raise InventoryServiceError(
            f"Batch {batch.batch_number} changed while updating its status; retry"
        )

    if removed > 0:
        previous_stock, new_stock = apply_product_stock_delta(batch.product_id, -removed)
        record_movement(
            product=batch.product,
            batch=batch,
            movement_type=STATUS_MOVEMENT[new_status],
            quantity=-removed,
            previous_stock=previous_stock,
            new_stock=new_stock,
            user=user,
            reference=batch.batch_number,
            reason=reason or f"Batch marked {new_status}",
        )

    logger.info(
        "Batch status changed",
        extra={
            "batch_number": batch.batch_number,
            "status": str(new_status),
            "quantity_removed": removed,
        },
    )

    batch.refresh_from_db()
    return batch


# ============================================================
# ADJUSTMENTS
# ============================================================

@transaction.atomic
def adjust_batch_quantity(
    *,
    batch,
    delta,
    user,
    reason: str = "Manual adjustment",
) -> AdjustmentResult:
    """
    Explicit correction of an ACTIVE batch.

    delta:
      +N -> adds to current_quantity (never above initial_quantity)
      -N -> removes from current_quantity (never below reserved_quantity)
    A correction that reaches zero depletes the batch.
    """
    delta = _to_int(delta, field_name="delta")
    if delta == 0:
        raise ValidationError("delta cannot be 0")

    batch = InventoryBatch.objects.select_related("product").get(pk=resolve_batch(batch).pk)

    if batch.status != InventoryBatch.Status.ACTIVE:
        raise ValidationError(
            f"Only active batches can be adjusted ({batch.batch_number} is {batch.status})"
        )

    seen = int(batch.current_quantity or 0)
    new_quantity = seen + delta

    if new_quantity > batch.initial_quantity:
        raise ValidationError(
            f"Adjustment would exceed initial quantity. "
            f"Initial: {batch.initial_quantity}, Resulting: {new_quantity}"
        )
    if new_quantity < int(batch.reserved_quantity or 0):
        raise ValidationError(
            f"Cannot reduce stock below reserved quantity. "
            f"Reserved: {batch.reserved_quantity}, Resulting: {new_quantity}"
        )

    updated = InventoryBatch.objects.filter(
        pk=batch.pk,
        status=InventoryBatch.Status.ACTIVE,
        current_quantity=seen,
    ).update(
        current_quantity=new_quantity,
        status=(
            InventoryBatch.Status.DEPLETED if new_quantity == 0 else InventoryBatch.Status.ACTIVE
        ),
        updated_at=timezone.now(),
    )
    if not updated:
        raise InventoryServiceError(
            f"Batch {batch.batch_number} changed while adjusting; retry"
        )

    previous_stock, new_stock = apply_product_stock_delta(batch.product_id, delta)

    movement = record_movement(
        product=batch.product,
        batch=batch,
        movement_type=StockMovement.MovementType.ADJUSTMENT,
        quantity=delta,
        previous_stock=previous_stock,
        new_stock=new_stock,
        user=user,
        reference=batch.batch_number,
        reason=reason or "Manual adjustment",
    )

    batch.refresh_from_db()
    return AdjustmentResult(batch=batch, movement=movement, quantity_delta=delta)


# ============================================================
# REPAIR PASS
# ============================================================

@transaction.atomic
def reconcile_product_stock(*, product=None, dry_run: bool = False) -> list[StockRepair]:
    """
    Rebuild Product.current_stock from the batch store (the source of truth).

    Returns one StockRepair per product whose aggregate drifted.
    dry_run=True reports without writing.
    """
    qs = Product.objects.all()
    if product is not None:
        qs = qs.filter(pk=resolve_product(product).pk)

    qs = qs.annotate(
        batch_total=Coalesce(
            Sum(
                "inventory_batches__current_quantity",
                filter=Q(inventory_batches__status=InventoryBatch.Status.ACTIVE),
            ),
            0,
        )
    ).order_by("sku")

    repairs = []
    for row in qs.values("pk", "sku", "current_stock", "batch_total"):
        recorded = int(row["current_stock"] or 0)
        actual = int(row["batch_total"] or 0)
        if recorded == actual:
            continue

        applied = False
        if not dry_run:
            applied = bool(
                Product.objects.filter(pk=row["pk"], current_stock=recorded).update(
                    current_stock=actual, updated_at=timezone.now()
                )
            )

        logger.warning(
            "Product stock drift detected",
            extra={
                "product_id": str(row["pk"]),
                "sku": row["sku"],
                "recorded_stock": recorded,
                "batch_stock": actual,
                "dry_run": dry_run,
                "applied": applied,
            },
        )
        repairs.append(
            StockRepair(
                product_id=str(row["pk"]),
                sku=row["sku"],
                recorded_stock=recorded,
                batch_stock=actual,
                applied=applied,
            )
        )

    return repairs
