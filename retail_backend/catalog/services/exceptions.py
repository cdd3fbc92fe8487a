# catalog/services/exceptions.py

"""
CATALOG SERVICE ERRORS
"""


class BarcodeError(Exception):
    """Base exception for barcode generation / validation failures."""


class DuplicateBarcodeError(BarcodeError):
    """
    Raised when every retry produced a barcode that is already taken.

    Only possible when the counter lags behind stored barcodes
    (e.g. after an import); run sync_barcode_counter to fix.
    """
