"""
Costing Domain Models.

Status vocabularies for standard costs and revaluations, the revaluation
state table, and the result objects returned by the costing services.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from books_engines.standard_cost import BomRollupResult, RollupVariance

if TYPE_CHECKING:
    from books_kernel.models.transaction import Transaction
    from books_modules.costing.orm import CostRevaluationModel


class RollupSource(str, Enum):
    """Where a standard cost's components came from."""
    MANUAL = "MANUAL"
    BOM_ROLLUP = "BOM_ROLLUP"


class AdjustmentType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    AMOUNT = "AMOUNT"


class RevaluationStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    POSTED = "POSTED"
    REJECTED = "REJECTED"


# POSTED and REJECTED are terminal.
REVALUATION_TRANSITIONS: dict[RevaluationStatus, frozenset[RevaluationStatus]] = {
    RevaluationStatus.DRAFT: frozenset({RevaluationStatus.SUBMITTED, RevaluationStatus.REJECTED}),
    RevaluationStatus.SUBMITTED: frozenset({RevaluationStatus.APPROVED, RevaluationStatus.REJECTED}),
    RevaluationStatus.APPROVED: frozenset({RevaluationStatus.POSTED, RevaluationStatus.REJECTED}),
    RevaluationStatus.POSTED: frozenset(),
    RevaluationStatus.REJECTED: frozenset(),
}


def can_transition(current: RevaluationStatus | str, target: RevaluationStatus | str) -> bool:
    return RevaluationStatus(target) in REVALUATION_TRANSITIONS[RevaluationStatus(current)]


# Reference type written on revaluation journal entries.
REVALUATION_REFERENCE_TYPE = "CostRevaluation"


@dataclass(frozen=True)
class RevaluationPreview:
    """Figures and warnings for a proposed revaluation; nothing persisted."""
    product_id: UUID
    quantity: Decimal
    old_unit_cost: Decimal
    new_unit_cost: Decimal
    current_total_value: Decimal
    new_total_value: Decimal
    value_difference: Decimal
    percentage_change: Decimal
    is_increase: bool
    debit_account_code: str
    credit_account_code: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class RevaluationResult:
    revaluation: CostRevaluationModel
    transaction: Transaction | None = None


@dataclass(frozen=True)
class MarketPriceSuggestion:
    """
    Suggested new unit cost for a product.

    ``suggested_unit_cost`` is ``None`` when the product has no received
    purchase history.
    """
    product_id: UUID
    current_unit_cost: Decimal
    suggested_unit_cost: Decimal | None
    source: str
    percentage_change: Decimal | None = None


@dataclass(frozen=True)
class ProductBomRollup:
    product_id: UUID
    rollup: BomRollupResult
    comparison: RollupVariance | None = None

    @property
    def total(self) -> Decimal:
        return self.rollup.total


@dataclass(frozen=True)
class MassUpdateResult:
    updated: tuple[UUID, ...]
    skipped: tuple[UUID, ...]
    reason: str
    details: dict[str, Any] | None = None

    @property
    def updated_count(self) -> int:
        return len(self.updated)
