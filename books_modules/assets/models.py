"""
Fixed Assets Domain Models.

The nouns of fixed assets besides the ORM rows: lifecycle status and the
summaries returned by batch and disposal operations.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AssetStatus(str, Enum):
    """Asset lifecycle states; DISPOSED is terminal."""
    ACTIVE = "ACTIVE"
    DISPOSED = "DISPOSED"


# Reference type written on depreciation journal entries.
ASSET_REFERENCE_TYPE = "Asset"


@dataclass(frozen=True)
class DepreciationRunSummary:
    """
    Outcome of a monthly depreciation batch.

    Per-asset failures are collected in ``errors`` ("<asset number>: <message>")
    rather than aborting the batch; callers must inspect it.
    """
    period: str
    assets_processed: int
    assets_skipped: int
    total_depreciation: Decimal
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class AssetDisposal:
    asset_id: UUID
    proceeds: Decimal
    book_value: Decimal
    gain_loss: Decimal
    gain_loss_type: str
