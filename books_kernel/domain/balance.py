"""
Balance -- pure double-entry balance check.

Responsibility:
    Sum ledger legs in base currency and decide whether a set of entries is
    balanced.  Used by posting, bulk approval, and journal listing metadata,
    so every path agrees on what "balanced" means.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Accepts any objects that
    expose ``entry_type`` and ``amount_in_base`` (ORM rows or specs).

Invariants enforced:
    - A transaction may be POSTED only when
      ``abs(total_debits - total_credits) <= tolerance`` in base currency.
    - The tolerance is an absolute amount (default 0.01) that absorbs
      rounding from currency conversion; it is never applied to storage.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Protocol

DEFAULT_BALANCE_TOLERANCE = Decimal("0.01")


class EntryType(str, Enum):
    """Side of a ledger entry."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    def opposite(self) -> "EntryType":
        return EntryType.CREDIT if self is EntryType.DEBIT else EntryType.DEBIT


class _Leg(Protocol):
    entry_type: str
    amount_in_base: Decimal


@dataclass(frozen=True)
class BalanceSummary:
    """Base-currency totals for a set of ledger legs."""

    total_debits: Decimal
    total_credits: Decimal
    tolerance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return abs(self.difference) <= self.tolerance


def summarize_entries(
    entries: Iterable[_Leg],
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> BalanceSummary:
    """Total debits and credits in base currency."""
    debits = Decimal("0")
    credits = Decimal("0")
    for entry in entries:
        if EntryType(entry.entry_type) is EntryType.DEBIT:
            debits += entry.amount_in_base
        else:
            credits += entry.amount_in_base
    return BalanceSummary(
        total_debits=debits,
        total_credits=credits,
        tolerance=tolerance,
    )
