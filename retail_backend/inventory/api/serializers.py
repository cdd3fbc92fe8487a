# inventory/api/serializers.py

"""
INVENTORY API SERIALIZERS

Thin request validation. Business rules live in inventory.services;
quantities are never writable through a model serializer.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from inventory.conf import MAX_WINDOW_DAYS
from inventory.models import InventoryBatch, StockMovement

MONEY = {"max_digits": 12, "decimal_places": 2, "min_value": Decimal("0.00")}


class InventoryBatchSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    available_quantity = serializers.IntegerField(read_only=True)
    # unbounded: a deep loss (cost far above selling) still renders
    profit_margin = serializers.DecimalField(max_digits=None, decimal_places=2, read_only=True)
    batch_value = serializers.DecimalField(max_digits=None, decimal_places=2, read_only=True)
    is_expired = serializers.BooleanField(read_only=True)
    days_until_expiry = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = InventoryBatch
        fields = [
            "id",
            "batch_number",
            "product",
            "product_name",
            "product_sku",
            "status",
            "initial_quantity",
            "current_quantity",
            "reserved_quantity",
            "available_quantity",
            "cost_price",
            "selling_price",
            "mrp",
            "profit_margin",
            "batch_value",
            "purchase_date",
            "manufacture_date",
            "expiry_date",
            "is_expired",
            "days_until_expiry",
            "supplier_ref",
            "purchase_order_ref",
            "location",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class BatchCreateSerializer(serializers.Serializer):
    product = serializers.CharField(help_text="Product UUID, barcode or SKU")
    quantity = serializers.IntegerField(min_value=1)
    cost_price = serializers.DecimalField(**MONEY)
    selling_price = serializers.DecimalField(**MONEY)
    mrp = serializers.DecimalField(required=False, allow_null=True, **MONEY)
    supplier_ref = serializers.CharField(required=False, allow_blank=True, max_length=64)
    purchase_order_ref = serializers.CharField(required=False, allow_blank=True, max_length=64)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    manufacture_date = serializers.DateField(required=False, allow_null=True)
    purchase_date = serializers.DateTimeField(required=False, allow_null=True)
    location = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate(self, attrs):
        mfg = attrs.get("manufacture_date")
        exp = attrs.get("expiry_date")
        if mfg and exp and mfg > exp:
            raise serializers.ValidationError(
                {"expiry_date": "expiry_date cannot precede manufacture_date"}
            )
        return attrs


class BatchStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[
            InventoryBatch.Status.EXPIRED.value,
            InventoryBatch.Status.DAMAGED.value,
            InventoryBatch.Status.RETURNED.value,
        ]
    )
    reason = serializers.CharField(required=False, allow_blank=True, max_length=200)


class BatchAdjustSerializer(serializers.Serializer):
    delta = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=200)

    def validate_delta(self, value):
        if value == 0:
            raise serializers.ValidationError("delta cannot be 0")
        return value


class FifoSaleSerializer(serializers.Serializer):
    product = serializers.CharField(help_text="Product UUID, barcode or SKU")
    quantity = serializers.IntegerField(min_value=1)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class BatchSaleSerializer(serializers.Serializer):
    batch = serializers.CharField(help_text="Batch UUID or batch number")
    quantity = serializers.IntegerField(min_value=1)
    reference = serializers.CharField(required=False, allow_blank=True, max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    created_by = serializers.CharField(source="created_by.username", read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "product_name",
            "batch",
            "batch_number",
            "movement_type",
            "quantity",
            "previous_stock",
            "new_stock",
            "reference",
            "reason",
            "notes",
            "unit_cost",
            "total_cost",
            "created_by",
            "created_at",
        ]
        read_only_fields = fields


class ExpiryWindowSerializer(serializers.Serializer):
    """Query params for the expiry reports (?days=)."""

    days = serializers.IntegerField(required=False, min_value=0, max_value=MAX_WINDOW_DAYS)
