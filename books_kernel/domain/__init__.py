"""Pure domain helpers: clock abstraction and balance arithmetic."""

from books_kernel.domain.balance import (
    DEFAULT_BALANCE_TOLERANCE,
    BalanceSummary,
    EntryType,
    summarize_entries,
)
from books_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = [
    "DEFAULT_BALANCE_TOLERANCE",
    "BalanceSummary",
    "Clock",
    "DeterministicClock",
    "EntryType",
    "SystemClock",
    "summarize_entries",
]
