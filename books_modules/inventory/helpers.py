"""
Inventory read helpers shared by the planning and costing services.

All lookups are scoped by organization.  Read-only: nothing here flushes.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from books_kernel.exceptions import ProductNotFoundError
from books_modules.inventory.models import InventoryPosition, PurchaseOrderStatus
from books_modules.inventory.orm import (
    InventoryItemModel,
    ProductModel,
    PurchaseOrderLineModel,
    PurchaseOrderModel,
)

ZERO = Decimal("0")


def get_product(session: Session, organization_id: UUID, product_id: UUID) -> ProductModel:
    product = session.scalars(
        select(ProductModel).where(
            ProductModel.id == product_id,
            ProductModel.organization_id == organization_id,
        )
    ).first()
    if product is None:
        raise ProductNotFoundError(str(product_id))
    return product


def inventory_position(
    session: Session,
    product_id: UUID,
    warehouse_id: UUID | None = None,
) -> InventoryPosition:
    """Total quantity on hand and its quantity-weighted average cost."""
    query = select(InventoryItemModel).where(InventoryItemModel.product_id == product_id)
    if warehouse_id is not None:
        query = query.where(InventoryItemModel.warehouse_id == warehouse_id)

    quantity = ZERO
    value = ZERO
    for item in session.scalars(query).all():
        quantity += item.quantity_on_hand
        value += item.quantity_on_hand * item.average_cost

    unit_cost = value / quantity if quantity > 0 else ZERO
    return InventoryPosition(quantity=quantity, unit_cost=unit_cost)


def last_purchase_price(
    session: Session, organization_id: UUID, product_id: UUID,
) -> Decimal | None:
    """Unit price on the most recent RECEIVED purchase order line, if any."""
    return session.scalars(
        select(PurchaseOrderLineModel.unit_price)
        .join(
            PurchaseOrderModel,
            PurchaseOrderLineModel.purchase_order_id == PurchaseOrderModel.id,
        )
        .where(
            PurchaseOrderModel.organization_id == organization_id,
            PurchaseOrderModel.status == PurchaseOrderStatus.RECEIVED.value,
            PurchaseOrderLineModel.product_id == product_id,
        )
        .order_by(PurchaseOrderModel.po_date.desc(), PurchaseOrderModel.created_at.desc())
        .limit(1)
    ).first()
