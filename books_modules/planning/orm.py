"""
Planning ORM Models (``books_modules.planning.orm``).

Persistence for safety-stock recommendations.  At most one record is
effective per (organization, product, warehouse) on any day; the service
bounds or deactivates earlier records before saving a new one.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import OrganizationScoped, TrackedBase


class SafetyStockModel(OrganizationScoped, TrackedBase):
    """
    An accepted safety-stock level for one product and warehouse.

    Table: ``planning_safety_stocks``
    """

    __tablename__ = "planning_safety_stocks"

    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    safety_stock_qty: Mapped[Decimal]
    method: Mapped[str] = mapped_column(String(30))
    service_level: Mapped[Decimal | None] = mapped_column(nullable=True)
    effective_from: Mapped[date]
    effective_to: Mapped[date | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    calculation: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        Index(
            "idx_planning_safety_stocks_lookup",
            "organization_id", "product_id", "warehouse_id",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<SafetyStockModel(product_id={self.product_id!r}, "
            f"qty={self.safety_stock_qty!r}, method={self.method!r})>"
        )
