# inventory/models/batch.py

"""
INVENTORY BATCH (RECEIPT-BASED INVENTORY)

Represents ONE physical receipt of a product at ONE price point.

CANONICAL MODEL:
- initial_quantity is immutable after creation
- current_quantity only goes down (sale / expiry / status change),
  except for an explicit adjustment on an ACTIVE batch
- reserved_quantity holds units for in-flight orders;
  available_quantity = current_quantity - reserved_quantity
- cost_price / selling_price / mrp are fixed at creation
- purchase_date drives FIFO order
- status is terminal once it leaves ACTIVE

Quantity writes happen in services via conditional UPDATEs (F() expressions),
which bypass save(). The DB check constraints below are the last line of defence.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from catalog.models import Product


class InventoryBatch(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        DEPLETED = "depleted", "Depleted"
        EXPIRED = "expired", "Expired"
        DAMAGED = "damaged", "Damaged"
        RETURNED = "returned", "Returned"

    TERMINAL_STATUSES = frozenset(
        {Status.DEPLETED, Status.EXPIRED, Status.DAMAGED, Status.RETURNED}
    )
    IMMUTABLE_FIELDS = ("initial_quantity", "cost_price", "selling_price", "mrp", "product_id")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="inventory_batches",
    )

    batch_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="BATCH<yymmdd><nnn>, generated at creation",
    )

    # Opaque references to external collaborators (supplier / PO services)
    supplier_ref = models.CharField(max_length=64, blank=True, default="")
    purchase_order_ref = models.CharField(max_length=64, blank=True, default="", db_index=True)

    # Pricing (immutable)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2)
    selling_price = models.DecimalField(max_digits=12, decimal_places=2)
    mrp = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    # Quantities
    initial_quantity = models.PositiveIntegerField(help_text="Quantity received (immutable)")
    current_quantity = models.PositiveIntegerField(help_text="On hand (service-managed only)")
    reserved_quantity = models.PositiveIntegerField(default=0)

    # Lifecycle dates
    purchase_date = models.DateTimeField(default=timezone.now, db_index=True)
    manufacture_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True, db_index=True)

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )

    location = models.CharField(max_length=100, blank=True, default="")
    notes = models.TextField(max_length=500, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_batches",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["purchase_date", "created_at"]
        indexes = [
            models.Index(fields=["product", "status", "purchase_date"]),
            models.Index(fields=["status", "expiry_date"]),
            models.Index(fields=["created_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(initial_quantity__gt=0),
                name="chk_batch_initial_qty_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(current_quantity__lte=F("initial_quantity")),
                name="chk_batch_current_lte_initial",
            ),
            models.CheckConstraint(
                condition=Q(reserved_quantity__lte=F("current_quantity")),
                name="chk_batch_reserved_lte_current",
            ),
            models.CheckConstraint(
                condition=Q(cost_price__gte=0) & Q(selling_price__gte=0),
                name="chk_batch_prices_gte_zero",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.initial_quantity is None or self.initial_quantity <= 0:
            raise ValidationError({"initial_quantity": "initial_quantity must be greater than zero"})

        if self.current_quantity is None or self.current_quantity < 0:
            raise ValidationError({"current_quantity": "current_quantity cannot be negative"})

        if self.current_quantity > self.initial_quantity:
            raise ValidationError(
                {"current_quantity": "current_quantity cannot exceed initial_quantity"}
            )

        if int(self.reserved_quantity or 0) > self.current_quantity:
            raise ValidationError(
                {"reserved_quantity": "reserved_quantity cannot exceed current_quantity"}
            )

        for field in ("cost_price", "selling_price", "mrp"):
            value = getattr(self, field)
            if value is not None and Decimal(value) < 0:
                raise ValidationError({field: f"{field} cannot be negative"})

        if self.manufacture_date and self.expiry_date and self.manufacture_date > self.expiry_date:
            raise ValidationError({"expiry_date": "expiry_date cannot precede manufacture_date"})

        if self.status != self.Status.ACTIVE and self.current_quantity > 0:
            raise ValidationError(
                {"status": "only active batches may hold stock"}
            )

    # -------------------------------------------------
    # IMMUTABILITY + LIFECYCLE
    # -------------------------------------------------

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = InventoryBatch.objects.get(pk=self.pk)

            for field in self.IMMUTABLE_FIELDS:
                if getattr(self, field) != getattr(original, field):
                    raise ValidationError({field: f"{field} is immutable"})

            if original.status in self.TERMINAL_STATUSES and self.status != original.status:
                raise ValidationError(
                    {"status": f"status {original.status} is terminal"}
                )

        self.full_clean()
        super().save(*args, **kwargs)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def available_quantity(self) -> int:
        return max(0, int(self.current_quantity or 0) - int(self.reserved_quantity or 0))

    @property
    def is_expired(self) -> bool:
        if not self.expiry_date:
            return False
        return self.expiry_date < timezone.localdate()

    @property
    def days_until_expiry(self) -> int | None:
        if not self.expiry_date:
            return None
        return (self.expiry_date - timezone.localdate()).days

    @property
    def batch_value(self) -> Decimal:
        return Decimal(self.cost_price or 0) * int(self.current_quantity or 0)

    @property
    def potential_revenue(self) -> Decimal:
        return Decimal(self.selling_price or 0) * int(self.current_quantity or 0)

    @property
    def profit_margin(self) -> Decimal:
        selling = Decimal(self.selling_price or 0)
        if selling <= 0:
            return Decimal("0.00")
        margin = (selling - Decimal(self.cost_price or 0)) / selling * 100
        return margin.quantize(Decimal("0.01"))

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | {self.batch_number} | {self.status}"
