"""
PATH: inventory/models/__init__.py

Inventory models export surface.
"""

from .batch import InventoryBatch
from .stock_movement import StockMovement

__all__ = [
    "InventoryBatch",
    "StockMovement",
]
