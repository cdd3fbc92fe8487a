# inventory/services/batch_queries.py

"""
======================================================
PATH: inventory/services/batch_queries.py
======================================================
BATCH QUERIES (READ-ONLY)

Purpose:
- Resolve products / batches from loose identifiers (UUID, barcode, SKU, batch number).
- Per-product batch summaries in FIFO order.
- Inventory valuation over ACTIVE batches.
- Expiring-soon listing and per-batch detail with recent movements.

Rules:
- Nothing here writes.
- Money is Decimal, quantized to 2 dp at the edges only.
"""

from __future__ import annotations

import uuid
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db.models import Q
from django.utils import timezone

from catalog.models import Product
from inventory.conf import MAX_WINDOW_DAYS, inventory_setting
from inventory.models import InventoryBatch
from inventory.services.exceptions import NotFoundError
from inventory.services.ledger import movements_for_batch

TWOPLACES = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(TWOPLACES)


def _margin(cost: Decimal, selling: Decimal) -> Decimal:
    if selling <= 0:
        return Decimal("0.00")
    return ((selling - cost) / selling * 100).quantize(TWOPLACES)


def resolve_window_days(window_days=None) -> int:
    """
    Expiry look-ahead window in days; defaults to EXPIRY_WARNING_DAYS.
    Must be a whole number in [0, MAX_WINDOW_DAYS].
    """
    if window_days is None:
        window_days = inventory_setting("EXPIRY_WARNING_DAYS")

    if isinstance(window_days, bool):
        raise ValidationError("window_days must be an integer")
    try:
        window = int(window_days)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("window_days must be an integer") from exc
    if window != window_days and not isinstance(window_days, str):
        raise ValidationError("window_days must be a whole number of days")

    if window < 0 or window > MAX_WINDOW_DAYS:
        raise ValidationError(f"window_days must be between 0 and {MAX_WINDOW_DAYS}")
    return window


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


# ============================================================
# RESOLUTION
# ============================================================

def resolve_product(identifier) -> Product:
    """
    Accepts a Product, its UUID, its barcode, or its SKU.
    """
    if isinstance(identifier, Product):
        return identifier

    raw = str(identifier or "").strip()
    if not raw:
        raise NotFoundError("Product identifier is required")

    pk = _as_uuid(raw)
    if pk is not None:
        product = Product.objects.filter(pk=pk).first()
        if product is not None:
            return product

    # barcode wins over SKU when both match different products
    product = Product.objects.filter(barcode=raw).first()
    if product is None:
        product = Product.objects.filter(sku=raw).first()
    if product is None:
        raise NotFoundError(f"Product not found: {raw}")
    return product


def resolve_batch(identifier) -> InventoryBatch:
    """
    Accepts an InventoryBatch, its UUID, or its batch number.
    """
    if isinstance(identifier, InventoryBatch):
        return identifier

    raw = str(identifier or "").strip()
    if not raw:
        raise NotFoundError("Batch identifier is required")

    qs = InventoryBatch.objects.select_related("product")

    pk = _as_uuid(raw)
    batch = qs.filter(pk=pk).first() if pk is not None else None
    if batch is None:
        batch = qs.filter(batch_number=raw).first()
    if batch is None:
        raise NotFoundError(f"Batch not found: {raw}")
    return batch


# ============================================================
# ROW BUILDERS
# ============================================================

def batch_row(batch: InventoryBatch) -> dict:
    return {
        "id": str(batch.pk),
        "batch_number": batch.batch_number,
        "status": batch.status,
        "initial_quantity": batch.initial_quantity,
        "current_quantity": batch.current_quantity,
        "reserved_quantity": batch.reserved_quantity,
        "available_quantity": batch.available_quantity,
        "cost_price": _money(batch.cost_price),
        "selling_price": _money(batch.selling_price),
        "mrp": _money(batch.mrp) if batch.mrp is not None else None,
        "purchase_date": batch.purchase_date,
        "manufacture_date": batch.manufacture_date,
        "expiry_date": batch.expiry_date,
        "days_until_expiry": batch.days_until_expiry,
        "is_expired": batch.is_expired,
        "batch_value": _money(batch.batch_value),
        "potential_revenue": _money(batch.potential_revenue),
        "profit_margin": batch.profit_margin,
        "supplier_ref": batch.supplier_ref,
        "purchase_order_ref": batch.purchase_order_ref,
        "location": batch.location,
    }


def movement_row(movement) -> dict:
    return {
        "id": str(movement.pk),
        "movement_type": movement.movement_type,
        "quantity": movement.quantity,
        "previous_stock": movement.previous_stock,
        "new_stock": movement.new_stock,
        "reference": movement.reference,
        "reason": movement.reason,
        "unit_cost": movement.unit_cost,
        "total_cost": movement.total_cost,
        "batch_number": movement.batch_number,
        "created_by": getattr(movement.created_by, "username", None),
        "created_at": movement.created_at,
    }


def sellable_batches(product, *, today=None):
    """
    ACTIVE, stocked, unexpired batches in FIFO order (purchase_date, created_at).
    A batch expiring today is still sellable.
    """
    today = today or timezone.localdate()
    return (
        InventoryBatch.objects.filter(
            product=product,
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gt=0,
        )
        .filter(Q(expiry_date__isnull=True) | Q(expiry_date__gte=today))
        .order_by("purchase_date", "created_at")
    )


# ============================================================
# QUERIES
# ============================================================

def get_batches_by_product(identifier) -> dict:
    product = resolve_product(identifier)
    batches = list(sellable_batches(product))

    price_range = None
    if batches:
        costs = [Decimal(b.cost_price) for b in batches]
        sells = [Decimal(b.selling_price) for b in batches]
        price_range = {
            "min_cost_price": _money(min(costs)),
            "max_cost_price": _money(max(costs)),
            "min_selling_price": _money(min(sells)),
            "max_selling_price": _money(max(sells)),
        }

    return {
        "product_id": str(product.pk),
        "product_name": product.name,
        "sku": product.sku,
        "barcode": product.barcode,
        "current_stock": product.current_stock,
        "total_batches": len(batches),
        "total_quantity": sum(int(b.current_quantity or 0) for b in batches),
        "price_range": price_range,
        "batches": [batch_row(b) for b in batches],
    }


def get_inventory_valuation() -> dict:
    """
    Valuation of every ACTIVE batch with stock, grouped per product and
    sorted by cost value (highest first).
    """
    per_product: "OrderedDict[str, dict]" = OrderedDict()

    qs = (
        InventoryBatch.objects.filter(
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gt=0,
        )
        .select_related("product")
        .order_by("product__name", "purchase_date")
    )

    for batch in qs:
        key = str(batch.product_id)
        row = per_product.get(key)
        if row is None:
            row = per_product[key] = {
                "product_id": key,
                "product_name": batch.product.name,
                "sku": batch.product.sku,
                "total_batches": 0,
                "total_quantity": 0,
                "total_cost_value": Decimal("0"),
                "total_selling_value": Decimal("0"),
            }

        qty = int(batch.current_quantity or 0)
        row["total_batches"] += 1
        row["total_quantity"] += qty
        row["total_cost_value"] += Decimal(batch.cost_price) * qty
        row["total_selling_value"] += Decimal(batch.selling_price) * qty

    products = []
    for row in per_product.values():
        cost = row["total_cost_value"]
        selling = row["total_selling_value"]
        qty = row["total_quantity"]
        products.append(
            {
                **row,
                "total_cost_value": _money(cost),
                "total_selling_value": _money(selling),
                "potential_profit": _money(selling - cost),
                "profit_margin": _margin(cost, selling),
                "average_cost_price": _money(cost / qty) if qty else Decimal("0.00"),
                "average_selling_price": _money(selling / qty) if qty else Decimal("0.00"),
            }
        )

    products.sort(key=lambda r: r["total_cost_value"], reverse=True)

    total_cost = sum((r["total_cost_value"] for r in products), Decimal("0"))
    total_selling = sum((r["total_selling_value"] for r in products), Decimal("0"))

    return {
        "summary": {
            "total_products": len(products),
            "total_batches": sum(r["total_batches"] for r in products),
            "total_quantity": sum(r["total_quantity"] for r in products),
            "total_cost_value": _money(total_cost),
            "total_selling_value": _money(total_selling),
            "total_potential_profit": _money(total_selling - total_cost),
        },
        "products": products,
    }


def get_expiring_batches(window_days: int | None = None) -> dict:
    window = resolve_window_days(window_days)

    soon = int(inventory_setting("EXPIRING_SOON_DAYS"))
    today = timezone.localdate()

    qs = (
        InventoryBatch.objects.filter(
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gt=0,
            expiry_date__gte=today,
            expiry_date__lte=today + timedelta(days=window),
        )
        .select_related("product")
        .order_by("expiry_date", "purchase_date")
    )

    rows = []
    total_at_risk = Decimal("0")
    for batch in qs:
        days = batch.days_until_expiry
        value = _money(batch.batch_value)
        total_at_risk += value
        rows.append(
            {
                **batch_row(batch),
                "product_id": str(batch.product_id),
                "product_name": batch.product.name,
                "sku": batch.product.sku,
                "is_expiring_soon": days is not None and days <= soon,
                "value_at_risk": value,
            }
        )

    return {
        "window_days": window,
        "total_batches": len(rows),
        "total_value_at_risk": _money(total_at_risk),
        "batches": rows,
    }


def get_batch_details(identifier) -> dict:
    batch = resolve_batch(identifier)
    return {
        "batch": {
            **batch_row(batch),
            "product_id": str(batch.product_id),
            "product_name": batch.product.name,
            "sku": batch.product.sku,
            "barcode": batch.product.barcode,
            "notes": batch.notes,
            "created_at": batch.created_at,
        },
        "movements": [movement_row(m) for m in movements_for_batch(batch, limit=50)],
    }
