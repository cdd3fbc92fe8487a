from .batch_queries import (
    get_batch_details,
    get_batches_by_product,
    get_expiring_batches,
    get_inventory_valuation,
)
from .batch_service import (
    adjust_batch_quantity,
    create_batch,
    reconcile_product_stock,
    refresh_catalog_price_snapshot,
    update_batch_status,
)
from .expiry import check_and_update_expired_batches, check_batch_expiry, get_expiry_statistics
from .stock_fifo import process_sale_fifo, process_sale_from_batch

__all__ = [
    "adjust_batch_quantity",
    "check_and_update_expired_batches",
    "check_batch_expiry",
    "create_batch",
    "get_batch_details",
    "get_batches_by_product",
    "get_expiring_batches",
    "get_expiry_statistics",
    "get_inventory_valuation",
    "process_sale_fifo",
    "process_sale_from_batch",
    "reconcile_product_stock",
    "refresh_catalog_price_snapshot",
    "update_batch_status",
]
