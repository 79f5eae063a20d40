"""Kernel services.  They flush; their callers commit."""

from books_kernel.services.document_number_service import DocumentNumberService
from books_kernel.services.ledger_service import LedgerService

__all__ = [
    "DocumentNumberService",
    "LedgerService",
]
