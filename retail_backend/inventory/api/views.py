# inventory/api/views.py

"""
======================================================
PATH: inventory/api/views.py
======================================================
INVENTORY API

Thin HTTP layer over inventory.services:
- validate input with serializers
- call exactly one service operation
- domain errors become responses in inventory.api.errors

Security:
- Reads: authenticated
- Writes: Django model permissions (superusers pass)
"""

from __future__ import annotations

from django.db import transaction
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.generics import GenericAPIView, ListCreateAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import ReadOnlyModelViewSet

from inventory.api.filters import InventoryBatchFilter
from inventory.api.permissions import HasModelPermission
from inventory.api.serializers import (
    BatchAdjustSerializer,
    BatchCreateSerializer,
    BatchSaleSerializer,
    BatchStatusSerializer,
    ExpiryWindowSerializer,
    FifoSaleSerializer,
    InventoryBatchSerializer,
    StockMovementSerializer,
)
from inventory.models import InventoryBatch, StockMovement
from inventory.services import (
    adjust_batch_quantity,
    check_and_update_expired_batches,
    create_batch,
    get_batch_details,
    get_batches_by_product,
    get_expiring_batches,
    get_expiry_statistics,
    get_inventory_valuation,
    process_sale_fifo,
    process_sale_from_batch,
    update_batch_status,
)
from inventory.services.batch_queries import movement_row, resolve_batch

DAYS_PARAM = OpenApiParameter(
    name="days",
    type=int,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Look-ahead window in days, 0..3650 (default: EXPIRY_WARNING_DAYS).",
)


def _window_days(request):
    params = ExpiryWindowSerializer(data=request.query_params)
    params.is_valid(raise_exception=True)
    return params.validated_data.get("days")


# -------------------------------------------------
# BATCHES
# -------------------------------------------------

class BatchListCreateView(ListCreateAPIView):
    """
    GET  /api/inventory/batches/   paginated list, newest first (filters: InventoryBatchFilter)
    POST /api/inventory/batches/   receive a new batch
    """

    required_perm = "inventory.add_inventorybatch"
    filterset_class = InventoryBatchFilter
    queryset = InventoryBatch.objects.select_related("product").order_by("-created_at")

    def get_permissions(self):
        if self.request.method == "POST":
            return [IsAuthenticated(), HasModelPermission()]
        return [IsAuthenticated()]

    def get_serializer_class(self):
        if self.request.method == "POST":
            return BatchCreateSerializer
        return InventoryBatchSerializer

    @extend_schema(tags=["inventory"], responses={200: InventoryBatchSerializer(many=True)})
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        tags=["inventory"],
        request=BatchCreateSerializer,
        responses={201: InventoryBatchSerializer, 400: dict, 404: dict},
    )
    @transaction.atomic
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        batch = create_batch(
            product=data.pop("product"),
            created_by=request.user,
            **data,
        )
        return Response(InventoryBatchSerializer(batch).data, status=status.HTTP_201_CREATED)


@extend_schema(tags=["inventory"], responses={200: dict, 404: dict})
class ProductBatchesView(APIView):
    """
    GET /api/inventory/batches/product/<identifier>/
    identifier: product UUID, barcode or SKU
    """

    def get(self, request, identifier):
        return Response(get_batches_by_product(identifier))


@extend_schema(tags=["inventory"], responses={200: dict, 404: dict})
class BatchDetailView(APIView):
    def get(self, request, identifier):
        return Response(get_batch_details(identifier))


class BatchStatusView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "inventory.change_inventorybatch"
    serializer_class = BatchStatusSerializer

    @extend_schema(
        tags=["inventory"],
        request=BatchStatusSerializer,
        responses={200: InventoryBatchSerializer, 400: dict, 404: dict},
    )
    @transaction.atomic
    def post(self, request, identifier):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        batch = update_batch_status(
            batch=resolve_batch(identifier),
            new_status=serializer.validated_data["status"],
            user=request.user,
            reason=serializer.validated_data.get("reason", ""),
        )
        return Response(InventoryBatchSerializer(batch).data)


class BatchAdjustView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "inventory.change_inventorybatch"
    serializer_class = BatchAdjustSerializer

    @extend_schema(
        tags=["inventory"],
        request=BatchAdjustSerializer,
        responses={200: dict, 400: dict, 404: dict},
    )
    @transaction.atomic
    def post(self, request, identifier):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = adjust_batch_quantity(
            batch=resolve_batch(identifier),
            delta=serializer.validated_data["delta"],
            user=request.user,
            reason=serializer.validated_data.get("reason") or "Manual adjustment",
        )
        return Response(
            {
                "batch": InventoryBatchSerializer(result.batch).data,
                "movement": movement_row(result.movement),
                "quantity_delta": result.quantity_delta,
            }
        )


@extend_schema(tags=["inventory"], parameters=[DAYS_PARAM], responses={200: dict, 400: dict})
class ExpiringBatchesView(APIView):
    def get(self, request):
        return Response(get_expiring_batches(_window_days(request)))


# -------------------------------------------------
# SALES
# -------------------------------------------------

class FifoSaleView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "inventory.add_stockmovement"
    serializer_class = FifoSaleSerializer

    @extend_schema(
        tags=["inventory"],
        request=FifoSaleSerializer,
        responses={201: dict, 400: dict, 404: dict},
    )
    @transaction.atomic
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = process_sale_fifo(
            product=data["product"],
            quantity=data["quantity"],
            user=request.user,
            reference=data.get("reference", ""),
            notes=data.get("notes", ""),
        )
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)


class BatchSaleView(GenericAPIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "inventory.add_stockmovement"
    serializer_class = BatchSaleSerializer

    @extend_schema(
        tags=["inventory"],
        request=BatchSaleSerializer,
        responses={201: dict, 400: dict, 404: dict},
    )
    @transaction.atomic
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = process_sale_from_batch(
            batch=data["batch"],
            quantity=data["quantity"],
            user=request.user,
            reference=data.get("reference", ""),
            notes=data.get("notes", ""),
        )
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)


# -------------------------------------------------
# REPORTS + EXPIRY
# -------------------------------------------------

@extend_schema(tags=["inventory"], responses={200: dict})
class InventoryValuationView(APIView):
    def get(self, request):
        return Response(get_inventory_valuation())


class ExpiryCheckView(APIView):
    permission_classes = [IsAuthenticated, HasModelPermission]
    required_perm = "inventory.change_inventorybatch"

    @extend_schema(tags=["inventory"], request=None, responses={200: dict})
    def post(self, request):
        result = check_and_update_expired_batches(user=request.user)
        return Response(result.as_dict())


@extend_schema(tags=["inventory"], parameters=[DAYS_PARAM], responses={200: dict, 400: dict})
class ExpiryStatisticsView(APIView):
    def get(self, request):
        return Response(get_expiry_statistics(_window_days(request)))


# -------------------------------------------------
# LEDGER (READ-ONLY)
# -------------------------------------------------

@extend_schema(tags=["inventory"])
class StockMovementViewSet(ReadOnlyModelViewSet):
    """
    Read-only movement ledger.
    Filters: ?product=<uuid>&batch=<uuid>&movement_type=sale
    """

    serializer_class = StockMovementSerializer
    http_method_names = ["get", "head", "options"]
    filterset_fields = ["product", "batch", "movement_type"]

    queryset = StockMovement.objects.select_related("product", "created_by").order_by("-created_at")
