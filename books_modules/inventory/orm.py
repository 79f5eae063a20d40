"""
Inventory ORM Models (``books_modules.inventory.orm``).

Responsibility
--------------
SQLAlchemy persistence for the records the planning and costing engines
read: products, stock positions, paid sales, received purchase orders, and
bills of materials.  These tables carry no behaviour of their own; they are
maintained by ordinary CRUD outside this package.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``books_kernel.db.base``.
MUST NOT be imported by ``books_kernel``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import OrganizationScoped, TrackedBase
from books_modules.inventory.models import (
    BomStatus,
    PurchaseOrderStatus,
    SalesInvoiceStatus,
)


# ---------------------------------------------------------------------------
# ProductModel
# ---------------------------------------------------------------------------

class ProductModel(OrganizationScoped, TrackedBase):
    """
    A stocked or manufactured product.

    Table: ``inventory_products``
    """

    __tablename__ = "inventory_products"

    sku: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(255))
    purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    inventory_items: Mapped[list["InventoryItemModel"]] = relationship(
        back_populates="product", cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_inventory_products_org_sku"),
    )

    def __repr__(self) -> str:
        return f"<ProductModel(sku={self.sku!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# InventoryItemModel
# ---------------------------------------------------------------------------

class InventoryItemModel(TrackedBase):
    """
    Stock of one product at one warehouse location.

    Table: ``inventory_items``
    """

    __tablename__ = "inventory_items"

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_products.id", ondelete="CASCADE"),
    )
    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    quantity_on_hand: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    average_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    product: Mapped["ProductModel"] = relationship(back_populates="inventory_items")

    __table_args__ = (
        Index("idx_inventory_items_product", "product_id", "warehouse_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryItemModel(product_id={self.product_id!r}, "
            f"qty={self.quantity_on_hand!r})>"
        )


# ---------------------------------------------------------------------------
# Sales invoices
# ---------------------------------------------------------------------------

class SalesInvoiceModel(OrganizationScoped, TrackedBase):
    """
    Table: ``inventory_sales_invoices``
    """

    __tablename__ = "inventory_sales_invoices"

    invoice_number: Mapped[str] = mapped_column(String(50))
    invoice_date: Mapped[date]
    status: Mapped[str] = mapped_column(String(20), default=SalesInvoiceStatus.DRAFT.value)

    lines: Mapped[list["SalesInvoiceLineModel"]] = relationship(
        back_populates="invoice", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_inventory_sales_invoices_org_date", "organization_id", "invoice_date"),
    )


class SalesInvoiceLineModel(TrackedBase):
    """
    Table: ``inventory_sales_invoice_lines``
    """

    __tablename__ = "inventory_sales_invoice_lines"

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_sales_invoices.id", ondelete="CASCADE"),
    )
    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    quantity: Mapped[Decimal]
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    invoice: Mapped["SalesInvoiceModel"] = relationship(back_populates="lines")

    __table_args__ = (
        Index("idx_inventory_sales_invoice_lines_product", "product_id"),
    )


# ---------------------------------------------------------------------------
# Purchase orders
# ---------------------------------------------------------------------------

class PurchaseOrderModel(OrganizationScoped, TrackedBase):
    """
    Table: ``inventory_purchase_orders``
    """

    __tablename__ = "inventory_purchase_orders"

    po_number: Mapped[str] = mapped_column(String(50))
    po_date: Mapped[date]
    expected_date: Mapped[date | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=PurchaseOrderStatus.DRAFT.value)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        back_populates="purchase_order", cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_inventory_purchase_orders_org_date", "organization_id", "po_date"),
    )


class PurchaseOrderLineModel(TrackedBase):
    """
    Table: ``inventory_purchase_order_lines``
    """

    __tablename__ = "inventory_purchase_order_lines"

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_purchase_orders.id", ondelete="CASCADE"),
    )
    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    quantity: Mapped[Decimal]
    unit_price: Mapped[Decimal]

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(back_populates="lines")

    __table_args__ = (
        Index("idx_inventory_purchase_order_lines_product", "product_id"),
    )


# ---------------------------------------------------------------------------
# Bills of materials
# ---------------------------------------------------------------------------

class BillOfMaterialModel(OrganizationScoped, TrackedBase):
    """
    Component structure of a manufactured product.

    Table: ``inventory_boms``
    """

    __tablename__ = "inventory_boms"

    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    status: Mapped[str] = mapped_column(String(20), default=BomStatus.ACTIVE.value)
    is_default: Mapped[bool] = mapped_column(Boolean, default=True)

    lines: Mapped[list["BomLineModel"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BomLineModel.line_seq",
    )

    __table_args__ = (
        Index("idx_inventory_boms_product", "organization_id", "product_id"),
    )


class BomLineModel(TrackedBase):
    """
    Table: ``inventory_bom_lines``
    """

    __tablename__ = "inventory_bom_lines"

    bom_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventory_boms.id", ondelete="CASCADE"),
    )
    component_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    quantity_per: Mapped[Decimal]
    scrap_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    line_seq: Mapped[int] = mapped_column(default=0)

    bom: Mapped["BillOfMaterialModel"] = relationship(back_populates="lines")
    component: Mapped["ProductModel"] = relationship(lazy="joined")
