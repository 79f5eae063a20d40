"""Read-only query selectors returning frozen DTOs."""

from books_kernel.selectors.journal_selector import (
    JournalEntryMetadata,
    JournalEntryView,
    JournalFilters,
    JournalPage,
    JournalSelector,
)
from books_kernel.selectors.ledger_selector import (
    AccountLedger,
    LedgerLine,
    LedgerSelector,
    TrialBalanceRow,
)

__all__ = [
    "AccountLedger",
    "JournalEntryMetadata",
    "JournalEntryView",
    "JournalFilters",
    "JournalPage",
    "JournalSelector",
    "LedgerLine",
    "LedgerSelector",
    "TrialBalanceRow",
]
