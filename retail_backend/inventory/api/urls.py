# inventory/api/urls.py

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from inventory.api.views import (
    BatchAdjustView,
    BatchListCreateView,
    BatchDetailView,
    BatchSaleView,
    BatchStatusView,
    ExpiringBatchesView,
    ExpiryCheckView,
    ExpiryStatisticsView,
    FifoSaleView,
    InventoryValuationView,
    ProductBatchesView,
    StockMovementViewSet,
)

router = DefaultRouter()
router.register("movements", StockMovementViewSet, basename="stock-movement")

urlpatterns = [
    # Batches (fixed segments before <identifier>)
    path("batches/", BatchListCreateView.as_view(), name="batch-list"),
    path("batches/expiring/", ExpiringBatchesView.as_view(), name="batch-expiring"),
    path(
        "batches/product/<str:identifier>/",
        ProductBatchesView.as_view(),
        name="batch-by-product",
    ),
    path("batches/<str:identifier>/", BatchDetailView.as_view(), name="batch-detail"),
    path("batches/<str:identifier>/status/", BatchStatusView.as_view(), name="batch-status"),
    path("batches/<str:identifier>/adjust/", BatchAdjustView.as_view(), name="batch-adjust"),
    # Sales
    path("sales/fifo/", FifoSaleView.as_view(), name="sale-fifo"),
    path("sales/batch/", BatchSaleView.as_view(), name="sale-batch"),
    # Reports + expiry
    path("valuation/", InventoryValuationView.as_view(), name="inventory-valuation"),
    path("expiry/check/", ExpiryCheckView.as_view(), name="expiry-check"),
    path("expiry/statistics/", ExpiryStatisticsView.as_view(), name="expiry-statistics"),
    # Ledger
    path("", include(router.urls)),
]
