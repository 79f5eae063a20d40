"""Kernel ORM models: organizations, chart of accounts, transactions."""

from books_kernel.models.account import Account, AccountType, NormalBalance
from books_kernel.models.organization import Organization
from books_kernel.models.transaction import (
    REVERSAL_REFERENCE_TYPE,
    LedgerEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "REVERSAL_REFERENCE_TYPE",
    "Account",
    "AccountType",
    "LedgerEntry",
    "NormalBalance",
    "Organization",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
