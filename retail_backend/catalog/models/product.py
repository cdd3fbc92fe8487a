# catalog/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum


class Product(models.Model):
    """
    Represents a sellable product.

    STOCK MODEL (IMPORTANT):
    - Stock lives in inventory.InventoryBatch rows (one row per receipt).
    - current_stock is a DENORMALIZED aggregate: sum of current_quantity over
      the product's ACTIVE batches. It is written only by the inventory engine
      (atomic F() increments) and can be rebuilt by reconcile_product_stock().

    PRICE SNAPSHOT (last-write-wins):
    - cost_price / selling_price mirror the most recently received batch.
    - Older batches keep their own prices; sales are always costed per batch.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255, db_index=True)
    sku = models.CharField(max_length=128, unique=True)

    # EAN-13; unique when present (imported products may not have one yet)
    barcode = models.CharField(
        max_length=13,
        null=True,
        blank=True,
        unique=True,
    )

    # Catalog price snapshot (mirrored from the latest batch)
    cost_price = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    selling_price = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    mrp = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Maximum retail price; default for new batches.",
    )

    # Engine-managed aggregate (never edited by catalog code)
    current_stock = models.IntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_stock__gte=0),
                name="chk_product_current_stock_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(cost_price__gte=0) & Q(selling_price__gte=0),
                name="chk_product_prices_gte_zero",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        if self.cost_price is not None and Decimal(self.cost_price) < 0:
            raise ValidationError({"cost_price": "cost_price cannot be negative"})

        if self.selling_price is not None and Decimal(self.selling_price) < 0:
            raise ValidationError({"selling_price": "selling_price cannot be negative"})

        if self.mrp is not None and Decimal(self.mrp) < 0:
            raise ValidationError({"mrp": "mrp cannot be negative"})

    @property
    def batch_stock_db(self) -> int:
        """
        Stock recomputed from the batch store (source of truth).
        Differs from current_stock only after a partially applied write.
        """
        return (
            self.inventory_batches.filter(status="active")
            .aggregate(total=Sum("current_quantity"))
            .get("total")
            or 0
        )
