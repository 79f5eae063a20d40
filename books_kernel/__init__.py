"""
Books Kernel - double-entry ledger core.

A multi-tenant bookkeeping core with:
- Balanced transactions (debits == credits in base currency)
- DRAFT -> POSTED -> VOIDED lifecycle with posted reversals
- Year-scoped document numbering
- Running balances derived from ledger entries, never stored
"""

__version__ = "0.1.0"
