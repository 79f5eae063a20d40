"""
Planning Module (``books_modules.planning``).

Safety-stock recommendations from sales and purchase history.
"""

from books_modules.planning.models import MethodDescription
from books_modules.planning.service import SafetyStockService

__all__ = [
    "MethodDescription",
    "SafetyStockService",
]
