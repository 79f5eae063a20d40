"""
Inventory Domain Models (``books_modules.inventory.models``).

Status vocabularies of the supporting inventory documents, and the value
objects that the planning and costing services read from them.  These
models carry no database identity and no I/O.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class SalesInvoiceStatus(str, Enum):
    """Sales invoice lifecycle; only PAID invoices count as demand."""
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PurchaseOrderStatus(str, Enum):
    """Purchase order lifecycle; only RECEIVED orders yield lead times."""
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class BomStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class InventoryPosition:
    """Quantity on hand and its weighted average unit cost."""
    quantity: Decimal
    unit_cost: Decimal

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.unit_cost
