# inventory/api/errors.py

"""
API ERROR MAPPING

Services raise domain errors; this handler turns them into responses:
- ValidationError / InsufficientStockError / ExpiredBatchViolation -> 400
- NotFoundError (any ObjectDoesNotExist)                           -> 404
- DuplicateBarcodeError / other InventoryServiceError               -> 409
- anything else: logged with traceback                              -> 500 (generic body)
"""

from __future__ import annotations

import logging

from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

from catalog.services.exceptions import BarcodeError
from inventory.services.exceptions import (
    ExpiredBatchViolation,
    InsufficientStockError,
    InventoryServiceError,
)

logger = logging.getLogger(__name__)


def _validation_payload(exc: DjangoValidationError) -> dict:
    if hasattr(exc, "error_dict"):
        errors = exc.message_dict
        flat = [f"{field}: {msg}" for field, msgs in errors.items() for msg in msgs]
        return {"detail": "; ".join(flat), "errors": errors}
    return {"detail": "; ".join(exc.messages)}


def service_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DjangoValidationError):
        payload, code = _validation_payload(exc), status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, InsufficientStockError):
        payload = {
            "detail": str(exc),
            "requested": exc.requested,
            "available": exc.available,
        }
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ExpiredBatchViolation):
        payload, code = {"detail": str(exc)}, status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ObjectDoesNotExist):
        payload, code = {"detail": str(exc) or "Not found."}, status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (InventoryServiceError, BarcodeError)):
        payload, code = {"detail": str(exc)}, status.HTTP_409_CONFLICT
    else:
        view = context.get("view")
        logger.exception(
            "Unhandled error in inventory API",
            exc_info=exc,
            extra={"view": type(view).__name__ if view is not None else None},
        )
        payload = {"detail": "Internal server error."}
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    set_rollback()
    return Response(payload, status=code)
