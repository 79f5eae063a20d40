"""
Inventory Module (``books_modules.inventory``).

Supporting records read by planning and costing: products, stock positions,
sales invoices, purchase orders, and bills of materials, plus the shared
read helpers over them.
"""

from books_modules.inventory.helpers import (
    get_product,
    inventory_position,
    last_purchase_price,
)
from books_modules.inventory.models import (
    BomStatus,
    InventoryPosition,
    PurchaseOrderStatus,
    SalesInvoiceStatus,
)

__all__ = [
    "BomStatus",
    "InventoryPosition",
    "PurchaseOrderStatus",
    "SalesInvoiceStatus",
    "get_product",
    "inventory_position",
    "last_purchase_price",
]
