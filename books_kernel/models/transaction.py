"""
Module: books_kernel.models.transaction
Responsibility: ORM persistence for transactions (journal entry headers) and
    their ledger entries (debit/credit legs) -- the single source of financial
    truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/balance.py only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - transaction_number is unique per organization (uq_transaction_org_number);
      this constraint is the concurrency guard for number allocation.
    - Ledger entries are composed into exactly one transaction and are
      deleted with it (only while DRAFT -- enforced by LedgerService).
    - amount_in_base is persisted next to amount at write time and never
      recomputed, so historical balance checks reproduce exactly.
    - Voided transactions keep their entries; is_active=False marks them
      inert for balance folds.

Failure modes:
    - IntegrityError on duplicate (organization_id, transaction_number),
      surfaced by services as DuplicateDocumentNumberError.

Audit relevance:
    Transaction and LedgerEntry rows are the authoritative financial record.
    Running balances are folded from these rows on every read; nothing is
    stored per account.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from books_kernel.db.base import OrganizationScoped, TrackedBase, UUIDString
from books_kernel.domain.balance import EntryType

if TYPE_CHECKING:
    from books_kernel.models.account import Account


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction.

    Contract: DRAFT -> POSTED -> VOIDED.  A reversal is a separate POSTED
    transaction pointing back at the original, not a status.
    """

    DRAFT = "DRAFT"
    POSTED = "POSTED"
    VOIDED = "VOIDED"


class TransactionType(str, Enum):
    """Business origin of a transaction."""

    JOURNAL_ENTRY = "JOURNAL_ENTRY"
    INVOICE = "INVOICE"
    BILL = "BILL"
    PAYMENT = "PAYMENT"
    RECEIPT = "RECEIPT"
    BANK_TRANSFER = "BANK_TRANSFER"
    INVENTORY_ADJUSTMENT = "INVENTORY_ADJUSTMENT"
    DEPRECIATION = "DEPRECIATION"
    OPENING_BALANCE = "OPENING_BALANCE"
    CLOSING_ENTRY = "CLOSING_ENTRY"


REVERSAL_REFERENCE_TYPE = "REVERSAL"


class Transaction(OrganizationScoped, TrackedBase):
    """
    Journal entry header -- one atomic financial event.

    Contract:
        Header fields and entries are frozen once POSTED.  The only later
        changes are status transitions (void), notes appended by reversal,
        and the updated_* audit columns.

    Guarantees:
        - entries are loaded eagerly (selectin) and ordered by line_seq.
        - total_debits/total_credits are base-currency sums over entries.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "transaction_number",
            name="uq_transaction_org_number",
        ),
        Index("idx_transaction_org_date", "organization_id", "transaction_date"),
        Index("idx_transaction_org_status", "organization_id", "status"),
        Index("idx_transaction_reference", "reference_type", "reference_id"),
    )

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(30),
        nullable=False,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        String(20),
        default=TransactionStatus.DRAFT.value,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Source document (BILL, INVOICE, ASSET, REVALUATION, REVERSAL, ...)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
        index=True,
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    voided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LedgerEntry.line_seq",
    )

    reversal_of: Mapped["Transaction | None"] = relationship(
        remote_side="Transaction.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} status={self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == TransactionStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_voided(self) -> bool:
        return self.status == TransactionStatus.VOIDED

    @property
    def total_debits(self) -> Decimal:
        """Base-currency sum of DEBIT legs."""
        return sum(
            (e.amount_in_base for e in self.entries if e.entry_type == EntryType.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        """Base-currency sum of CREDIT legs."""
        return sum(
            (e.amount_in_base for e in self.entries if e.entry_type == EntryType.CREDIT),
            Decimal("0"),
        )


class LedgerEntry(TrackedBase):
    """
    One debit or credit leg of a transaction.

    Contract:
        amount is non-negative in the entry's own currency; amount_in_base is
        amount * exchange_rate, computed once at creation.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_ledger_entry_account", "account_id"),
        Index("idx_ledger_entry_transaction", "transaction_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(38, 18),
        default=Decimal("1"),
        nullable=False,
    )

    amount_in_base: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Position within the transaction; last tiebreaker in balance folds
    line_seq: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # False once the owning transaction is voided
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    transaction: Mapped["Transaction"] = relationship(back_populates="entries")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.entry_type} {self.amount} {self.currency}>"
