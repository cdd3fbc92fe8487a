# inventory/admin.py
"""
Admin rules (audit-safe):
- Batches and movements are read-only here; quantities change only through
  inventory.services (API / management commands).
- Retiring a batch from the admin goes through update_batch_status() so the
  product aggregate and the ledger stay in step.
"""

from __future__ import annotations

from django.contrib import admin, messages
from django.core.exceptions import ValidationError

from inventory.models import InventoryBatch, StockMovement
from inventory.services import update_batch_status
from inventory.services.exceptions import InventoryServiceError


@admin.register(InventoryBatch)
class InventoryBatchAdmin(admin.ModelAdmin):
    list_display = (
        "batch_number",
        "product",
        "status",
        "current_quantity",
        "initial_quantity",
        "cost_price",
        "selling_price",
        "purchase_date",
        "expiry_date",
    )
    list_filter = ("status", "expiry_date")
    search_fields = ("batch_number", "product__name", "product__sku", "product__barcode")
    ordering = ("product__name", "purchase_date")
    actions = ("mark_damaged",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Mark selected active batches as damaged")
    def mark_damaged(self, request, queryset):
        done = 0
        for batch in queryset.filter(status=InventoryBatch.Status.ACTIVE):
            try:
                update_batch_status(
                    batch=batch,
                    new_status=InventoryBatch.Status.DAMAGED,
                    user=request.user,
                    reason="Marked damaged from admin",
                )
            except (ValidationError, InventoryServiceError) as exc:
                self.message_user(request, f"{batch.batch_number}: {exc}", level=messages.ERROR)
                continue
            done += 1
        self.message_user(request, f"{done} batch(es) marked damaged.")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "product",
        "batch_number",
        "movement_type",
        "quantity",
        "previous_stock",
        "new_stock",
        "reference",
    )
    list_filter = ("movement_type",)
    search_fields = ("product__name", "product__sku", "batch_number", "reference")
    ordering = ("-created_at",)

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
