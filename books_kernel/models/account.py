"""
Module: books_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every ledger entry.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Account code is unique within an organization (uq_account_org_code).
    - Accounts referenced by ledger entries are never physically deleted;
      they are soft-deactivated via is_active.
    - normal_balance is derived from account_type when not given
      (ASSET/EXPENSE -> DEBIT, the rest -> CREDIT).

Failure modes:
    - AccountNotFoundError when an entry references an account outside the
      transaction's organization.
    - InactiveAccountError when an entry targets a deactivated account.
"""

from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from books_kernel.db.base import OrganizationScoped, TrackedBase


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class Account(OrganizationScoped, TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        (organization_id, code) is unique.  account_type and normal_balance
        do not change once the account carries posted entries.

    Non-goals:
        - Hierarchies and reporting groups; the ledger core needs only the
          leaf accounts.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_account_org_code"),
        Index("idx_account_org_type", "organization_id", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        String(10),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        default="USD",
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
