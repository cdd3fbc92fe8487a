"""
PATH: catalog/models/__init__.py

Catalog models export surface.
"""

from .barcode_counter import BarcodeCounter
from .product import Product

__all__ = [
    "BarcodeCounter",
    "Product",
]
