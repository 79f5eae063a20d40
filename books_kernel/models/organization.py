"""
Module: books_kernel.models.organization
Responsibility: ORM persistence for tenants.  Every other row in the system
    carries an organization_id pointing here.
Architecture position: Kernel > Models.  May import from db/base.py only.

Audit relevance:
    base_currency decides which amounts are compared when a transaction is
    balance-checked; home_country selects the jurisdiction tables used for
    statutory depreciation and journal compliance flags.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import TrackedBase


class Organization(TrackedBase):
    """A tenant: the owner of a chart of accounts and all its documents."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    base_currency: Mapped[str] = mapped_column(
        String(3),
        default="USD",
        nullable=False,
    )

    # ISO 3166 alpha-2, e.g. "UG"
    home_country: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Organization {self.name} ({self.base_currency})>"
