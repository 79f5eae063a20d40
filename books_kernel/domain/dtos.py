"""
DTOs -- frozen value objects crossing the kernel service boundary.

Responsibility:
    Input specs handed to LedgerService and result records handed back,
    so callers never construct ORM rows themselves.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from books_kernel.domain.balance import EntryType


@dataclass(frozen=True)
class LedgerEntrySpec:
    """
    One requested debit or credit leg.

    ``currency`` defaults to the organization's base currency; in that case
    the exchange rate is forced to 1.
    """

    account_id: UUID
    entry_type: EntryType
    amount: Decimal
    currency: str | None = None
    exchange_rate: Decimal = Decimal("1")
    description: str | None = None

    @classmethod
    def debit(cls, account_id: UUID, amount: Decimal, **kwargs) -> "LedgerEntrySpec":
        return cls(account_id=account_id, entry_type=EntryType.DEBIT, amount=amount, **kwargs)

    @classmethod
    def credit(cls, account_id: UUID, amount: Decimal, **kwargs) -> "LedgerEntrySpec":
        return cls(account_id=account_id, entry_type=EntryType.CREDIT, amount=amount, **kwargs)


@dataclass(frozen=True)
class BulkApprovalResult:
    """
    Outcome of a bulk approval.  Partial success is normal: callers must
    inspect ``failed`` (and ``reasons`` for why each id failed).
    """

    successful: tuple[UUID, ...]
    failed: tuple[UUID, ...]
    reasons: dict[UUID, str] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed
