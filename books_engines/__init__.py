"""
Module: books_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for ``books_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import ``books_kernel`` exceptions, logging and numeric helpers.
    MUST NOT import ``books_config`` or ``books_modules``.

Invariants enforced:
    - Purity: engines never read the clock; period boundaries and "today"
      are passed in by services.
    - Decimal-only arithmetic for money and quantities.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are wrapped in ``@traced_engine`` and emit
    BOOKS_ENGINE_TRACE records with an input fingerprint and duration.
"""

from books_engines.depreciation import (
    DepreciationCalculator,
    DepreciationMethod,
    DepreciationTerms,
    DisposalResult,
    PeriodDepreciation,
    calculate_disposal_gain_loss,
    parse_period,
    period_key,
)
from books_engines.revaluation import (
    RevaluationAccountRole,
    RevaluationFigures,
    RevaluationLegs,
    compute_revaluation,
    gl_direction,
    percentage_change,
    revaluation_warnings,
    value_difference,
)
from books_engines.safety_stock import (
    DemandHistory,
    LeadTimeStats,
    PercentageOfDemandStrategy,
    SafetyStockCalculator,
    SafetyStockInputs,
    SafetyStockMethod,
    SafetyStockResult,
    SafetyStockStrategy,
    SimpleSafetyStockStrategy,
    StatisticalSafetyStockStrategy,
    z_score_for,
)
from books_engines.standard_cost import (
    BomNode,
    BomRollupResult,
    CostComponents,
    CostSource,
    RollupVariance,
    VarianceAnalysis,
    VarianceSeverity,
    classify_variance,
    compare_to_standard,
    roll_up,
)
from books_engines.tracer import traced_engine

__all__ = [
    "BomNode",
    "BomRollupResult",
    "CostComponents",
    "CostSource",
    "DemandHistory",
    "DepreciationCalculator",
    "DepreciationMethod",
    "DepreciationTerms",
    "DisposalResult",
    "LeadTimeStats",
    "PercentageOfDemandStrategy",
    "PeriodDepreciation",
    "RevaluationAccountRole",
    "RevaluationFigures",
    "RevaluationLegs",
    "RollupVariance",
    "SafetyStockCalculator",
    "SafetyStockInputs",
    "SafetyStockMethod",
    "SafetyStockResult",
    "SafetyStockStrategy",
    "SimpleSafetyStockStrategy",
    "StatisticalSafetyStockStrategy",
    "VarianceAnalysis",
    "VarianceSeverity",
    "calculate_disposal_gain_loss",
    "classify_variance",
    "compare_to_standard",
    "compute_revaluation",
    "gl_direction",
    "parse_period",
    "percentage_change",
    "period_key",
    "revaluation_warnings",
    "roll_up",
    "traced_engine",
    "value_difference",
    "z_score_for",
]
