"""
Costing ORM Models (``books_modules.costing.orm``).

Persistence for versioned standard costs and inventory cost revaluations.

Invariants enforced
-------------------
* ``total_cost == material_cost + labor_cost + overhead_cost`` is written by
  the service on every insert and mass update.
* A revaluation's ``value_difference == (new - old) * quantity``.
* ``revaluation_number`` is unique per organization.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import OrganizationScoped, TrackedBase
from books_modules.costing.models import RevaluationStatus, RollupSource
from books_modules.inventory.orm import ProductModel


# ---------------------------------------------------------------------------
# StandardCostModel
# ---------------------------------------------------------------------------

class StandardCostModel(OrganizationScoped, TrackedBase):
    """
    One version of a product's standard cost over an effective date range.

    ``effective_to`` of ``None`` means open-ended.

    Table: ``costing_standard_costs``
    """

    __tablename__ = "costing_standard_costs"

    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    costing_method: Mapped[str] = mapped_column(String(30), default="STANDARD")
    costing_version: Mapped[str] = mapped_column(String(20))
    material_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    labor_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    overhead_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_cost: Mapped[Decimal]
    effective_from: Mapped[date]
    effective_to: Mapped[date | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    rollup_source: Mapped[str] = mapped_column(String(20), default=RollupSource.MANUAL.value)
    last_purchase_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    price_variance: Mapped[Decimal | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    product: Mapped["ProductModel"] = relationship(lazy="joined")

    __table_args__ = (
        Index(
            "idx_costing_standard_costs_product",
            "organization_id", "product_id", "effective_from",
        ),
    )

    def covers(self, day: date) -> bool:
        return self.effective_from <= day and (
            self.effective_to is None or self.effective_to >= day
        )

    def __repr__(self) -> str:
        return (
            f"<StandardCostModel(product_id={self.product_id!r}, "
            f"version={self.costing_version!r}, total={self.total_cost!r})>"
        )


# ---------------------------------------------------------------------------
# CostRevaluationModel
# ---------------------------------------------------------------------------

class CostRevaluationModel(OrganizationScoped, TrackedBase):
    """
    A proposed or posted change of a product's inventory unit cost.

    Table: ``costing_revaluations``
    """

    __tablename__ = "costing_revaluations"

    revaluation_number: Mapped[str] = mapped_column(String(50))
    product_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_products.id"))
    warehouse_id: Mapped[UUID | None] = mapped_column(nullable=True)
    reason_code: Mapped[str] = mapped_column(String(50))
    old_unit_cost: Mapped[Decimal]
    new_unit_cost: Mapped[Decimal]
    quantity: Mapped[Decimal]
    value_difference: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(20), default=RevaluationStatus.DRAFT.value)
    posting_date: Mapped[date]
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True,
    )
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    product: Mapped["ProductModel"] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "revaluation_number",
            name="uq_costing_revaluations_org_number",
        ),
        Index("idx_costing_revaluations_org_status", "organization_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<CostRevaluationModel(number={self.revaluation_number!r}, "
            f"status={self.status!r}, difference={self.value_difference!r})>"
        )
