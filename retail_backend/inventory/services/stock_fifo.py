# inventory/services/stock_fifo.py

"""
FIFO SALE ENGINE

Purpose:
- Consume ACTIVE, unexpired batches oldest-first (purchase_date, created_at).
- Cost and price every unit at the batch it came from.
- Sell from one explicitly scanned batch (batch label sale).

Algorithm (process_sale_fifo):
1) load sellable batches in FIFO order (expired ones are never eligible)
2) advisory check: sum(available) >= quantity, else InsufficientStockError
3) walk batches taking min(remaining, available) with a GUARDED decrement:
     UPDATE ... SET current_quantity = current_quantity - take
     WHERE status = active AND current_quantity >= reserved_quantity + take
   a lost race re-reads that batch and retries (SALE_DECREMENT_RETRIES)
4) a batch reaching zero flips to DEPLETED in the same UPDATE
5) product.current_stock -= quantity, one SALE movement per batch touched

All-or-nothing:
- Everything runs in one transaction.atomic block. A walk that ends short
  raises InsufficientStockError and rolls back the decrements already made.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Case, F, Value, When
from django.utils import timezone

from inventory.conf import inventory_setting
from inventory.models import InventoryBatch, StockMovement
from inventory.services.batch_queries import resolve_batch, resolve_product, sellable_batches
from inventory.services.batch_service import apply_product_stock_delta, require_positive_int
from inventory.services.exceptions import ExpiredBatchViolation, InsufficientStockError
from inventory.services.ledger import record_movement

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


# ============================================================
# RESULTS
# ============================================================

@dataclass(frozen=True)
class BatchUsage:
    batch_id: str
    batch_number: str
    quantity: int
    cost_price: Decimal
    selling_price: Decimal

    @property
    def total_cost(self) -> Decimal:
        return (self.cost_price * self.quantity).quantize(TWOPLACES)

    @property
    def total_revenue(self) -> Decimal:
        return (self.selling_price * self.quantity).quantize(TWOPLACES)

    def as_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "cost_price": self.cost_price,
            "selling_price": self.selling_price,
            "total_cost": self.total_cost,
            "total_revenue": self.total_revenue,
        }


@dataclass(frozen=True)
class SaleResult:
    product_id: str
    quantity_sold: int
    batches_used: tuple
    movements: tuple = ()

    @property
    def total_cost(self) -> Decimal:
        return sum((u.total_cost for u in self.batches_used), ZERO)

    @property
    def total_revenue(self) -> Decimal:
        return sum((u.total_revenue for u in self.batches_used), ZERO)

    @property
    def profit(self) -> Decimal:
        return self.total_revenue - self.total_cost

    @property
    def profit_margin(self) -> Decimal:
        revenue = self.total_revenue
        if revenue <= 0:
            return ZERO
        return (self.profit / revenue * 100).quantize(TWOPLACES)

    @property
    def average_cost_price(self) -> Decimal:
        if not self.quantity_sold:
            return ZERO
        return (self.total_cost / self.quantity_sold).quantize(TWOPLACES)

    @property
    def average_selling_price(self) -> Decimal:
        if not self.quantity_sold:
            return ZERO
        return (self.total_revenue / self.quantity_sold).quantize(TWOPLACES)

    def as_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity_sold": self.quantity_sold,
            "batches_used": [u.as_dict() for u in self.batches_used],
            "total_cost": self.total_cost,
            "total_revenue": self.total_revenue,
            "profit": self.profit,
            "profit_margin": self.profit_margin,
            "average_cost_price": self.average_cost_price,
            "average_selling_price": self.average_selling_price,
        }


# ============================================================
# GUARDED DECREMENT
# ============================================================

def _decrement_retries() -> int:
    return max(int(inventory_setting("SALE_DECREMENT_RETRIES") or 1), 1)


def _consume_from_batch(batch: InventoryBatch, wanted: int) -> int:
    """
    Take up to `wanted` units from `batch`. Returns the units actually taken
    (0 when the batch was emptied or retired under us).
    """
    retries = _decrement_retries()

    for attempt in range(1, retries + 1):
        if batch.status != InventoryBatch.Status.ACTIVE:
            return 0

        take = min(wanted, batch.available_quantity)
        if take <= 0:
            return 0

        updated = InventoryBatch.objects.filter(
            pk=batch.pk,
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gte=F("reserved_quantity") + take,
        ).update(
            current_quantity=F("current_quantity") - take,
            # When() sees the pre-update row
            status=Case(
                When(current_quantity=take, then=Value(InventoryBatch.Status.DEPLETED)),
                default=F("status"),
            ),
            updated_at=timezone.now(),
        )

        batch.refresh_from_db(fields=["current_quantity", "reserved_quantity", "status"])

        if updated:
            return take

        logger.info(
            "Batch decrement lost a race; re-reading batch",
            extra={
                "batch_number": batch.batch_number,
                "attempt": attempt,
                "wanted": take,
                "available": batch.available_quantity,
            },
        )

    logger.warning(
        "Giving up on contended batch",
        extra={"batch_number": batch.batch_number, "retries": retries},
    )
    return 0


def _eligible_batches(product, today):
    return list(sellable_batches(product, today=today))


def _record_sale(*, product, quantity, consumed, user, reference, notes) -> SaleResult:
    """
    Take `quantity` off the product aggregate and write one SALE movement per
    batch, with before/after stock snapshots chained in consumption order.
    """
    previous_stock, new_stock = apply_product_stock_delta(product.pk, -quantity)

    running = previous_stock
    movements = []
    usages = []
    for batch, taken in consumed:
        movements.append(
            record_movement(
                product=product,
                batch=batch,
                movement_type=StockMovement.MovementType.SALE,
                quantity=-taken,
                previous_stock=running,
                new_stock=running - taken,
                user=user,
                reference=reference,
                reason="Sale",
                notes=notes,
                unit_cost=batch.cost_price,
            )
        )
        running -= taken
        usages.append(
            BatchUsage(
                batch_id=str(batch.pk),
                batch_number=batch.batch_number,
                quantity=taken,
                cost_price=Decimal(batch.cost_price),
                selling_price=Decimal(batch.selling_price),
            )
        )

    product.current_stock = new_stock

    result = SaleResult(
        product_id=str(product.pk),
        quantity_sold=quantity,
        batches_used=tuple(usages),
        movements=tuple(movements),
    )
    logger.info(
        "Sale processed",
        extra={
            "product_id": str(product.pk),
            "quantity": quantity,
            "batches": [u.batch_number for u in usages],
            "total_cost": str(result.total_cost),
            "total_revenue": str(result.total_revenue),
        },
    )
    return result


# ============================================================
# FIFO SALE
# ============================================================

@transaction.atomic
def process_sale_fifo(
    *,
    product,
    quantity,
    user,
    reference: str = "",
    notes: str = "",
) -> SaleResult:
    product = resolve_product(product)

    if user is None:
        raise ValidationError("user is required")

    qty = require_positive_int(quantity, field_name="quantity")
    today = timezone.localdate()

    batches = _eligible_batches(product, today)
    total_available = sum(b.available_quantity for b in batches)

    if total_available < qty:
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}. "
            f"Requested: {qty}, Available: {total_available}",
            requested=qty,
            available=total_available,
        )

    remaining = qty
    consumed = []

    for batch in batches:
        if remaining <= 0:
            break

        taken = _consume_from_batch(batch, remaining)
        if taken:
            consumed.append((batch, taken))
            remaining -= taken

    if remaining > 0:
        # Concurrent sales drained the batches after the advisory check.
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}. "
            f"Requested: {qty}, Available: {qty - remaining}",
            requested=qty,
            available=qty - remaining,
        )

    return _record_sale(
        product=product,
        quantity=qty,
        consumed=consumed,
        user=user,
        reference=reference,
        notes=notes,
    )


@transaction.atomic
def process_sale_from_batch(
    *,
    batch,
    quantity,
    user,
    reference: str = "",
    notes: str = "",
) -> SaleResult:
    """
    Sell from ONE explicitly chosen batch (scanned batch label).
    """
    batch = InventoryBatch.objects.select_related("product").get(pk=resolve_batch(batch).pk)

    if user is None:
        raise ValidationError("user is required")

    qty = require_positive_int(quantity, field_name="quantity")

    if batch.status == InventoryBatch.Status.EXPIRED or batch.is_expired:
        raise ExpiredBatchViolation(
            f"Batch {batch.batch_number} expired on {batch.expiry_date} and cannot be sold"
        )

    available = batch.available_quantity if batch.status == InventoryBatch.Status.ACTIVE else 0
    if available < qty:
        raise InsufficientStockError(
            f"Insufficient stock in batch {batch.batch_number}. "
            f"Requested: {qty}, Available: {available}",
            requested=qty,
            available=available,
        )

    taken = _consume_from_batch(batch, qty)
    if taken < qty:
        raise InsufficientStockError(
            f"Insufficient stock in batch {batch.batch_number}. "
            f"Requested: {qty}, Available: {taken}",
            requested=qty,
            available=taken,
        )

    return _record_sale(
        product=batch.product,
        quantity=qty,
        consumed=[(batch, taken)],
        user=user,
        reference=reference,
        notes=notes,
    )
