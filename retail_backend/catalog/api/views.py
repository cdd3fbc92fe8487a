# catalog/api/views.py

"""
CATALOG BARCODE API

POST products/<uuid>/barcode/      assign an internal EAN-13 (idempotent; ?force=true reissues)
GET  barcodes/validate/<barcode>/  check digit + internal-prefix inspection
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from catalog.models import Product
from catalog.services import assign_barcode, validate_ean13
from catalog.services.ean13 import parse_sequence
from inventory.api.permissions import HasModelPermission
from inventory.conf import inventory_setting


class AssignBarcodeView(APIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "catalog.change_product"

    @extend_schema(
        tags=["catalog"],
        request=None,
        parameters=[
            OpenApiParameter(
                name="force",
                type=bool,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Replace an existing barcode.",
            )
        ],
        responses={200: dict, 201: dict, 404: dict, 409: dict},
    )
    def post(self, request, product_id):
        product = get_object_or_404(Product, pk=product_id)
        force = (request.query_params.get("force") or "").strip().lower() in ("1", "true", "yes")

        previous = product.barcode
        barcode = assign_barcode(product, force=force)
        created = barcode != previous

        return Response(
            {"product_id": str(product.pk), "barcode": barcode, "created": created},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


@extend_schema(tags=["catalog"], responses={200: dict})
class ValidateBarcodeView(APIView):
    def get(self, request, barcode):
        prefix = inventory_setting("BARCODE_PREFIX")
        valid = validate_ean13(barcode)
        sequence = parse_sequence(barcode, prefix=prefix) if valid else None

        return Response(
            {
                "barcode": barcode,
                "valid": valid,
                "internal": sequence is not None,
                "sequence": sequence,
                "in_use": Product.objects.filter(barcode=barcode).exists(),
            }
        )
