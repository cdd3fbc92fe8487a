# inventory/api/filters.py

"""
Batch list filters (GET /api/inventory/batches/)

?status=active
?product=<uuid>
?batch_number=2410          case-insensitive contains
?product_search=rice        product name / SKU / barcode, case-insensitive
?expiring_in_days=30        ACTIVE, stocked, expiring between today and today + N
"""

from __future__ import annotations

from datetime import timedelta

import django_filters
from django.db.models import Q
from django.utils import timezone

from inventory.conf import MAX_WINDOW_DAYS
from inventory.models import InventoryBatch


class InventoryBatchFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=InventoryBatch.Status.choices)
    product = django_filters.UUIDFilter(field_name="product_id")
    batch_number = django_filters.CharFilter(lookup_expr="icontains")
    product_search = django_filters.CharFilter(method="filter_product_search")
    expiring_in_days = django_filters.NumberFilter(
        method="filter_expiring_in_days",
        min_value=0,
        max_value=MAX_WINDOW_DAYS,
        decimal_places=0,
    )

    class Meta:
        model = InventoryBatch
        fields = ["status", "product", "batch_number", "product_search", "expiring_in_days"]

    def filter_product_search(self, queryset, name, value):
        term = (value or "").strip()
        if not term:
            return queryset
        return queryset.filter(
            Q(product__name__icontains=term)
            | Q(product__sku__icontains=term)
            | Q(product__barcode__icontains=term)
        )

    def filter_expiring_in_days(self, queryset, name, value):
        today = timezone.localdate()
        return queryset.filter(
            status=InventoryBatch.Status.ACTIVE,
            current_quantity__gt=0,
            expiry_date__gte=today,
            expiry_date__lte=today + timedelta(days=int(value)),
        )
