# catalog/api/urls.py

from django.urls import path

from catalog.api.views import AssignBarcodeView, ValidateBarcodeView

urlpatterns = [
    path(
        "products/<uuid:product_id>/barcode/",
        AssignBarcodeView.as_view(),
        name="product-assign-barcode",
    ),
    path(
        "barcodes/validate/<str:barcode>/",
        ValidateBarcodeView.as_view(),
        name="barcode-validate",
    ),
]
