# inventory/services/exceptions.py

"""
INVENTORY SERVICE ERRORS

Centralized domain errors for the batch engine.
Input validation uses django.core.exceptions.ValidationError.
"""

from django.core.exceptions import ObjectDoesNotExist


class InventoryServiceError(Exception):
    """Base exception for all inventory engine failures."""


class NotFoundError(InventoryServiceError, ObjectDoesNotExist):
    """Raised when a product or batch cannot be resolved."""


class InsufficientStockError(InventoryServiceError):
    """
    Raised when a sale asks for more than the eligible FIFO supply.

    Covers partial shortfall, all-expired stock, and no batches at all;
    callers cannot tell these apart.
    """

    def __init__(self, message="", *, requested=0, available=0):
        super().__init__(message)
        self.requested = int(requested or 0)
        self.available = int(available or 0)


class ExpiredBatchViolation(InventoryServiceError):
    """Raised on an attempt to sell explicitly from an expired batch."""
