"""
Fixed Assets ORM Models (``books_modules.assets.orm``).

Responsibility
--------------
SQLAlchemy persistence for asset categories, assets, and monthly
depreciation records.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``books_kernel.db.base``.
MUST NOT be imported by ``books_kernel``.

Invariants enforced
-------------------
* (asset_id, period) is unique on ``assets_depreciation``: the storage
  layer rejects a second record for the same month.
* ``current_book_value`` and ``accumulated_depreciation`` on the asset are
  caches of the last POSTED period; the period records are the source.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import OrganizationScoped, TrackedBase
from books_modules.assets.models import AssetStatus


# ---------------------------------------------------------------------------
# AssetCategoryModel
# ---------------------------------------------------------------------------

class AssetCategoryModel(OrganizationScoped, TrackedBase):
    """
    Groups assets sharing GL accounts and depreciation defaults.

    ``tax_depreciation_rate`` is the category's own statutory annual rate;
    when absent, ``tax_class`` is looked up in the jurisdiction table of the
    organization's home country.

    Table: ``assets_categories``
    """

    __tablename__ = "assets_categories"

    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200))
    asset_account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))
    accumulated_depreciation_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id"),
    )
    depreciation_expense_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("accounts.id"),
    )
    default_method: Mapped[str] = mapped_column(String(30))
    default_useful_life_years: Mapped[int]
    default_salvage_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    tax_depreciation_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_class: Mapped[str | None] = mapped_column(String(50), nullable=True)

    assets: Mapped[list["AssetModel"]] = relationship(back_populates="category")

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_assets_categories_org_code"),
    )

    def __repr__(self) -> str:
        return f"<AssetCategoryModel(code={self.code!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# AssetModel
# ---------------------------------------------------------------------------

class AssetModel(OrganizationScoped, TrackedBase):
    """
    A depreciable fixed asset.

    Table: ``assets_assets``
    """

    __tablename__ = "assets_assets"

    asset_number: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255))
    category_id: Mapped[UUID] = mapped_column(ForeignKey("assets_categories.id"))
    purchase_date: Mapped[date]
    purchase_price: Mapped[Decimal]
    salvage_value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    useful_life_years: Mapped[int]
    depreciation_method: Mapped[str] = mapped_column(String(30))
    depreciation_start_date: Mapped[date]
    current_book_value: Mapped[Decimal]
    accumulated_depreciation: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(20), default=AssetStatus.ACTIVE.value)
    disposal_date: Mapped[date | None] = mapped_column(nullable=True)
    disposal_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    disposal_gain_loss: Mapped[Decimal | None] = mapped_column(nullable=True)

    category: Mapped["AssetCategoryModel"] = relationship(
        back_populates="assets", lazy="joined",
    )
    depreciation_records: Mapped[list["AssetDepreciationModel"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="AssetDepreciationModel.period",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "asset_number", name="uq_assets_assets_org_number"),
        Index("idx_assets_assets_org_status", "organization_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<AssetModel(asset_number={self.asset_number!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# AssetDepreciationModel
# ---------------------------------------------------------------------------

class AssetDepreciationModel(OrganizationScoped, TrackedBase):
    """
    One month of depreciation for an asset, book and tax.

    Table: ``assets_depreciation``
    """

    __tablename__ = "assets_depreciation"

    asset_id: Mapped[UUID] = mapped_column(
        ForeignKey("assets_assets.id", ondelete="CASCADE"),
    )
    period: Mapped[str] = mapped_column(String(7))  # "YYYY-MM"
    period_start_date: Mapped[date]
    period_end_date: Mapped[date]
    depreciation_method: Mapped[str] = mapped_column(String(30))
    opening_book_value: Mapped[Decimal]
    depreciation_amount: Mapped[Decimal]
    accumulated_depreciation: Mapped[Decimal]
    closing_book_value: Mapped[Decimal]
    tax_depreciation_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    tax_book_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    calculation_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_posted: Mapped[bool] = mapped_column(Boolean, default=False)
    transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transactions.id"), nullable=True,
    )
    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    posted_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    asset: Mapped["AssetModel"] = relationship(back_populates="depreciation_records")

    __table_args__ = (
        UniqueConstraint("asset_id", "period", name="uq_assets_depreciation_asset_period"),
        Index("idx_assets_depreciation_org_period", "organization_id", "period"),
    )

    def __repr__(self) -> str:
        return (
            f"<AssetDepreciationModel(asset_id={self.asset_id!r}, "
            f"period={self.period!r}, amount={self.depreciation_amount!r})>"
        )
