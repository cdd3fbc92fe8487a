# inventory/models/stock_movement.py

"""
CANONICAL INVENTORY LEDGER

Immutable audit record of one quantity change to a product's stock.

GUARANTEES:
- Append-only (no updates, no deletes)
- quantity is SIGNED: positive = stock in, negative = stock out
- previous_stock / new_stock snapshot the product aggregate around the change
- unit_cost / batch_number are snapshots, so the row stays readable even if
  catalog prices move on
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from catalog.models import Product

from .batch import InventoryBatch


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        SALE = "sale", "Sale"
        ADJUSTMENT = "adjustment", "Adjustment"
        RETURN = "return", "Return"
        DAMAGE = "damage", "Damage"
        TRANSFER = "transfer", "Transfer"
        EXPIRED = "expired", "Expired"

    # Required sign of quantity per type (None = either direction)
    TYPE_DIRECTION = {
        MovementType.PURCHASE: 1,
        MovementType.SALE: -1,
        MovementType.DAMAGE: -1,
        MovementType.EXPIRED: -1,
        MovementType.RETURN: None,
        MovementType.ADJUSTMENT: None,
        MovementType.TRANSFER: None,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product, on_delete=models.PROTECT, related_name="stock_movements"
    )
    batch = models.ForeignKey(
        InventoryBatch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    movement_type = models.CharField(max_length=16, choices=MovementType.choices)

    quantity = models.IntegerField()
    previous_stock = models.IntegerField()
    new_stock = models.IntegerField()

    reference = models.CharField(max_length=128, blank=True, default="", db_index=True)
    reason = models.CharField(max_length=200, blank=True, default="")
    notes = models.TextField(max_length=500, blank=True, default="")

    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    batch_number = models.CharField(max_length=32, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["product", "created_at"]),
            models.Index(fields=["batch", "created_at"]),
            models.Index(fields=["movement_type"]),
        ]

    def clean(self):
        if not self.quantity:
            raise ValidationError("quantity cannot be zero")

        if self.previous_stock is None or self.new_stock is None:
            raise ValidationError("previous_stock and new_stock are required")

        if self.new_stock - self.previous_stock != self.quantity:
            raise ValidationError("new_stock must equal previous_stock + quantity")

        direction = self.TYPE_DIRECTION.get(self.movement_type)
        if direction is not None and (self.quantity > 0) != (direction > 0):
            raise ValidationError(
                f"{self.movement_type} movements must have "
                f"{'positive' if direction > 0 else 'negative'} quantity"
            )

        if self.batch_id and self.product_id:
            batch_product_id = (
                InventoryBatch.objects.filter(pk=self.batch_id)
                .values_list("product_id", flat=True)
                .first()
            )
            if batch_product_id is not None and batch_product_id != self.product_id:
                raise ValidationError("Batch does not belong to product")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")

        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockMovement records are immutable and cannot be deleted"
        )

    @property
    def direction(self) -> str:
        return "in" if int(self.quantity or 0) >= 0 else "out"

    @property
    def absolute_quantity(self) -> int:
        return abs(int(self.quantity or 0))

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.movement_type} | {self.quantity}"
