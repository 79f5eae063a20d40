"""
Costing Module (``books_modules.costing``).

Versioned standard costs, BOM roll-up, purchase price variances, and
inventory cost revaluations posted to the GL.
"""

from books_modules.costing.models import (
    AdjustmentType,
    MarketPriceSuggestion,
    MassUpdateResult,
    ProductBomRollup,
    RevaluationPreview,
    RevaluationResult,
    RevaluationStatus,
    RollupSource,
)
from books_modules.costing.revaluations import RevaluationService
from books_modules.costing.standard_costs import StandardCostService

__all__ = [
    "AdjustmentType",
    "MarketPriceSuggestion",
    "MassUpdateResult",
    "ProductBomRollup",
    "RevaluationPreview",
    "RevaluationResult",
    "RevaluationService",
    "RevaluationStatus",
    "RollupSource",
    "StandardCostService",
]
