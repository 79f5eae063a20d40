"""
General Ledger Module (``books_modules.gl``).

Journal listing with compliance metadata, manual journal entries, bulk
approval, voiding and reversal.
"""

from books_modules.gl.service import JournalListService

__all__ = ["JournalListService"]
