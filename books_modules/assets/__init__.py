"""
Fixed Assets Module (``books_modules.assets``).

Asset categories, registration, monthly depreciation with GL posting, and
disposal.
"""

from books_modules.assets.models import (
    ASSET_REFERENCE_TYPE,
    AssetDisposal,
    AssetStatus,
    DepreciationRunSummary,
)
from books_modules.assets.service import FixedAssetService

__all__ = [
    "ASSET_REFERENCE_TYPE",
    "AssetDisposal",
    "AssetStatus",
    "DepreciationRunSummary",
    "FixedAssetService",
]
