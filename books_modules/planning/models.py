"""
Planning Domain Models.

Value objects returned by the safety-stock service.  The strategy result
types themselves live in ``books_engines.safety_stock``.
"""

from dataclasses import dataclass

from books_engines.safety_stock import SafetyStockMethod


@dataclass(frozen=True)
class MethodDescription:
    method: SafetyStockMethod
    description: str

