"""
books_engines.safety_stock -- Interchangeable safety-stock strategies.

Responsibility:
    Recommend a buffer inventory quantity from demand and lead-time
    statistics.  Three strategies share one interface:

        BASED_ON_LEAD_TIME    (max daily * max lead) - (avg daily * avg lead)
        STATISTICAL           z(service level) * sqrt(avg lead) * demand std dev
        PERCENTAGE_OF_DEMAND  avg monthly demand * percentage factor

    Every result is scaled by the regional risk multiplier, floored at zero,
    and reports a financial impact plus a display-only risk reduction score.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``books_modules.planning.service.SafetyStockService`` gathers the sales
    and purchase history and hands it over as ``SafetyStockInputs``.

Invariants enforced:
    - ``suggested_quantity >= 0``.
    - ``financial_impact == unit_cost * (suggested - current)``.
    - Statistical falls back to the lead-time strategy when fewer than
      ``min_history_days`` sales days exist; the result says so.
    - Average daily demand is total quantity over the whole window, not
      over sales days only.

Failure modes:
    - ValueError for a non-positive window or negative multiplier.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from books_engines.tracer import traced_engine
from books_kernel.db.types import round_quantity, round_money
from books_kernel.logging_config import get_logger

logger = get_logger("engines.safety_stock")

ZERO = Decimal("0")
ONE = Decimal("1")

DEFAULT_LEAD_TIME_DAYS = Decimal("14")
DEFAULT_MAX_LEAD_TIME_FACTOR = Decimal("1.5")
DEFAULT_MIN_HISTORY_DAYS = 7
DEFAULT_PERCENTAGE_FACTOR = Decimal("0.25")
DEFAULT_Z_SCORE = Decimal("1.65")
DAYS_PER_MONTH = Decimal("30")

# Service level (%) -> one-sided normal Z-score.
Z_SCORE_TABLE: dict[Decimal, Decimal] = {
    Decimal("50"): Decimal("0.00"),
    Decimal("60"): Decimal("0.25"),
    Decimal("70"): Decimal("0.52"),
    Decimal("75"): Decimal("0.67"),
    Decimal("80"): Decimal("0.84"),
    Decimal("85"): Decimal("1.04"),
    Decimal("90"): Decimal("1.28"),
    Decimal("92"): Decimal("1.41"),
    Decimal("95"): Decimal("1.65"),
    Decimal("96"): Decimal("1.75"),
    Decimal("97"): Decimal("1.88"),
    Decimal("98"): Decimal("2.05"),
    Decimal("99"): Decimal("2.33"),
    Decimal("99.5"): Decimal("2.58"),
    Decimal("99.9"): Decimal("3.09"),
}


class SafetyStockMethod(str, Enum):
    BASED_ON_LEAD_TIME = "BASED_ON_LEAD_TIME"
    STATISTICAL = "STATISTICAL"
    PERCENTAGE_OF_DEMAND = "PERCENTAGE_OF_DEMAND"


def z_score_for(
    service_level: Decimal,
    table: Mapping[Decimal, Decimal] | None = None,
    default: Decimal = DEFAULT_Z_SCORE,
) -> Decimal:
    """Table lookup; unlisted service levels get ``default``."""
    lookup = table if table else Z_SCORE_TABLE
    return lookup.get(Decimal(service_level), default)


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return min(max(value, low), high)


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class DemandHistory:
    """Quantities sold per sales day over a trailing window."""

    daily_quantities: tuple[Decimal, ...] = ()
    window_days: int = 90

    def __post_init__(self) -> None:
        if self.window_days <= 0:
            raise ValueError("window_days must be positive")

    @classmethod
    def from_sales(
        cls, sales: Iterable[tuple[date, Decimal]], window_days: int = 90,
    ) -> DemandHistory:
        """Group (sale date, quantity) pairs into per-day totals, date order."""
        per_day: dict[date, Decimal] = {}
        for day, quantity in sales:
            per_day[day] = per_day.get(day, ZERO) + Decimal(quantity)
        return cls(
            daily_quantities=tuple(per_day[d] for d in sorted(per_day)),
            window_days=window_days,
        )

    @property
    def total_quantity(self) -> Decimal:
        return sum(self.daily_quantities, ZERO)

    @property
    def sales_days(self) -> int:
        return len(self.daily_quantities)

    @property
    def max_daily(self) -> Decimal:
        return max(self.daily_quantities, default=ZERO)

    @property
    def avg_daily(self) -> Decimal:
        return self.total_quantity / Decimal(self.window_days)

    def std_dev(self) -> Decimal:
        """Population deviation of sales-day quantities around ``avg_daily``."""
        if not self.daily_quantities:
            return ZERO
        mean = self.avg_daily
        variance = sum(((q - mean) ** 2 for q in self.daily_quantities), ZERO) / Decimal(
            len(self.daily_quantities)
        )
        return variance.sqrt()


@dataclass(frozen=True)
class LeadTimeStats:
    """Observed supplier lead times in days; absent when there is no history."""

    average_days: Decimal | None = None
    max_days: Decimal | None = None

    @classmethod
    def from_lead_times(cls, lead_times: Sequence[int | Decimal]) -> LeadTimeStats:
        if not lead_times:
            return cls()
        values = [Decimal(v) for v in lead_times]
        return cls(
            average_days=sum(values, ZERO) / Decimal(len(values)),
            max_days=max(values),
        )


@dataclass(frozen=True)
class SafetyStockInputs:
    demand: DemandHistory
    lead_times: LeadTimeStats = field(default_factory=LeadTimeStats)
    service_level: Decimal = Decimal("95")
    lead_time_override_days: Decimal | None = None
    regional_risk_multiplier: Decimal = ONE
    current_quantity: Decimal = ZERO
    unit_cost: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.regional_risk_multiplier < 0:
            raise ValueError("regional_risk_multiplier must be non-negative")


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SafetyStockCalculation:
    avg_daily_demand: Decimal
    max_daily_demand: Decimal
    avg_lead_time: Decimal
    max_lead_time: Decimal
    regional_multiplier: Decimal
    demand_std_dev: Decimal | None = None
    z_score: Decimal | None = None


@dataclass(frozen=True)
class SafetyStockResult:
    method: SafetyStockMethod
    suggested_quantity: Decimal
    current_quantity: Decimal
    financial_impact: Decimal
    risk_reduction: Decimal
    calculation: SafetyStockCalculation
    fallback_from: SafetyStockMethod | None = None

    @property
    def quantity_change(self) -> Decimal:
        return self.suggested_quantity - self.current_quantity


# =============================================================================
# Strategies
# =============================================================================


class SafetyStockStrategy(ABC):
    """
    Common interface and shared parameters.

    Subclasses implement ``_suggest`` (raw quantity before the multiplier)
    and ``_risk_reduction``; ``calculate`` applies the multiplier, the zero
    floor, and the financial impact uniformly.
    """

    method: SafetyStockMethod
    description: str

    def __init__(
        self,
        default_lead_time_days: Decimal = DEFAULT_LEAD_TIME_DAYS,
        max_lead_time_factor: Decimal = DEFAULT_MAX_LEAD_TIME_FACTOR,
    ):
        self.default_lead_time_days = Decimal(default_lead_time_days)
        self.max_lead_time_factor = Decimal(max_lead_time_factor)

    def lead_times(self, inputs: SafetyStockInputs) -> tuple[Decimal, Decimal]:
        """(average, max) lead time with the override/default fallbacks."""
        average = (
            inputs.lead_times.average_days
            or inputs.lead_time_override_days
            or self.default_lead_time_days
        )
        maximum = inputs.lead_times.max_days or average * self.max_lead_time_factor
        return Decimal(average), Decimal(maximum)

    def calculate(self, inputs: SafetyStockInputs) -> SafetyStockResult:
        raw, calculation = self._suggest(inputs)
        suggested = round_quantity(max(ZERO, raw * inputs.regional_risk_multiplier))
        current = Decimal(inputs.current_quantity)
        result = SafetyStockResult(
            method=self.method,
            suggested_quantity=suggested,
            current_quantity=current,
            financial_impact=round_money(Decimal(inputs.unit_cost) * (suggested - current)),
            risk_reduction=self._risk_reduction(suggested, current, inputs),
            calculation=calculation,
        )
        logger.debug(
            "safety_stock_calculated",
            extra={
                "method": self.method.value,
                "suggested_quantity": str(result.suggested_quantity),
                "current_quantity": str(result.current_quantity),
            },
        )
        return result

    @abstractmethod
    def _suggest(
        self, inputs: SafetyStockInputs,
    ) -> tuple[Decimal, SafetyStockCalculation]:
        ...

    @abstractmethod
    def _risk_reduction(
        self, suggested: Decimal, current: Decimal, inputs: SafetyStockInputs,
    ) -> Decimal:
        ...


class SimpleSafetyStockStrategy(SafetyStockStrategy):
    """(max daily demand * max lead time) - (avg daily demand * avg lead time)."""

    method = SafetyStockMethod.BASED_ON_LEAD_TIME
    description = "Simple approach using max and average demand/lead time"

    def _suggest(self, inputs):
        avg_lead, max_lead = self.lead_times(inputs)
        avg_daily = inputs.demand.avg_daily
        max_daily = inputs.demand.max_daily
        raw = max_daily * max_lead - avg_daily * avg_lead
        return raw, SafetyStockCalculation(
            avg_daily_demand=avg_daily,
            max_daily_demand=max_daily,
            avg_lead_time=avg_lead,
            max_lead_time=max_lead,
            regional_multiplier=inputs.regional_risk_multiplier,
        )

    def _risk_reduction(self, suggested, current, inputs):
        if current == 0:
            return Decimal("50") if suggested > 0 else ZERO
        improvement = (suggested - current) / current
        return _clamp(improvement * 30, Decimal("-20"), Decimal("80"))


class StatisticalSafetyStockStrategy(SafetyStockStrategy):
    """z(service level) * sqrt(avg lead time) * demand standard deviation."""

    method = SafetyStockMethod.STATISTICAL
    description = "Statistical method using standard deviation and service level Z-score"

    def __init__(
        self,
        default_lead_time_days: Decimal = DEFAULT_LEAD_TIME_DAYS,
        max_lead_time_factor: Decimal = DEFAULT_MAX_LEAD_TIME_FACTOR,
        min_history_days: int = DEFAULT_MIN_HISTORY_DAYS,
        z_scores: Mapping[Decimal, Decimal] | None = None,
        default_z_score: Decimal = DEFAULT_Z_SCORE,
    ):
        super().__init__(default_lead_time_days, max_lead_time_factor)
        self.min_history_days = min_history_days
        self.z_scores = dict(z_scores or Z_SCORE_TABLE)
        self.default_z_score = default_z_score
        self._fallback = SimpleSafetyStockStrategy(
            default_lead_time_days, max_lead_time_factor,
        )

    def calculate(self, inputs: SafetyStockInputs) -> SafetyStockResult:
        if inputs.demand.sales_days < self.min_history_days:
            logger.info(
                "safety_stock_statistical_fallback",
                extra={
                    "sales_days": inputs.demand.sales_days,
                    "min_history_days": self.min_history_days,
                },
            )
            result = self._fallback.calculate(inputs)
            return SafetyStockResult(
                method=result.method,
                suggested_quantity=result.suggested_quantity,
                current_quantity=result.current_quantity,
                financial_impact=result.financial_impact,
                risk_reduction=result.risk_reduction,
                calculation=result.calculation,
                fallback_from=self.method,
            )
        return super().calculate(inputs)

    def _suggest(self, inputs):
        avg_lead, max_lead = self.lead_times(inputs)
        std_dev = inputs.demand.std_dev()
        z = z_score_for(inputs.service_level, self.z_scores, self.default_z_score)
        raw = z * avg_lead.sqrt() * std_dev
        return raw, SafetyStockCalculation(
            avg_daily_demand=inputs.demand.avg_daily,
            max_daily_demand=inputs.demand.max_daily,
            avg_lead_time=avg_lead,
            max_lead_time=max_lead,
            regional_multiplier=inputs.regional_risk_multiplier,
            demand_std_dev=std_dev,
            z_score=z,
        )

    def _risk_reduction(self, suggested, current, inputs):
        base = (suggested - current) / max(current, ONE) * 40
        service_bonus = (Decimal(inputs.service_level) - 90) * Decimal("0.5")
        return _clamp(base + service_bonus, Decimal("-30"), Decimal("90"))


class PercentageOfDemandStrategy(SafetyStockStrategy):
    """Average monthly demand * percentage factor."""

    method = SafetyStockMethod.PERCENTAGE_OF_DEMAND
    description = "Percentage of average demand over specified period"

    def __init__(
        self,
        default_lead_time_days: Decimal = DEFAULT_LEAD_TIME_DAYS,
        max_lead_time_factor: Decimal = DEFAULT_MAX_LEAD_TIME_FACTOR,
        percentage_factor: Decimal = DEFAULT_PERCENTAGE_FACTOR,
    ):
        super().__init__(default_lead_time_days, max_lead_time_factor)
        self.percentage_factor = Decimal(percentage_factor)

    def _suggest(self, inputs):
        avg_daily = inputs.demand.avg_daily
        avg_monthly = avg_daily * DAYS_PER_MONTH
        # Lead times are reported only; they do not enter the formula.
        lead = Decimal(inputs.lead_time_override_days or self.default_lead_time_days)
        return avg_monthly * self.percentage_factor, SafetyStockCalculation(
            avg_daily_demand=avg_daily,
            max_daily_demand=inputs.demand.max_daily,
            avg_lead_time=lead,
            max_lead_time=lead * self.max_lead_time_factor,
            regional_multiplier=inputs.regional_risk_multiplier,
        )

    def _risk_reduction(self, suggested, current, inputs):
        return (suggested - current) / max(current, ONE) * 25


# =============================================================================
# Registry
# =============================================================================


class SafetyStockCalculator:
    """
    Closed registry over the three strategies.

    Contract:
        ``calculate`` dispatches on ``SafetyStockMethod``; the set of
        strategies is fixed at construction.
    """

    def __init__(self, strategies: Sequence[SafetyStockStrategy] | None = None):
        if strategies is None:
            strategies = (
                SimpleSafetyStockStrategy(),
                StatisticalSafetyStockStrategy(),
                PercentageOfDemandStrategy(),
            )
        self._strategies = {s.method: s for s in strategies}

    @property
    def methods(self) -> tuple[SafetyStockMethod, ...]:
        return tuple(self._strategies)

    def strategy(self, method: SafetyStockMethod | str) -> SafetyStockStrategy:
        try:
            return self._strategies[SafetyStockMethod(method)]
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unsupported safety stock method: {method}") from exc

    @traced_engine("safety_stock", "1.0", fingerprint_fields=("method", "inputs"))
    def calculate(
        self, method: SafetyStockMethod | str, inputs: SafetyStockInputs,
    ) -> SafetyStockResult:
        return self.strategy(method).calculate(inputs)

    def calculate_all(self, inputs: SafetyStockInputs) -> list[SafetyStockResult]:
        return [
            self.calculate(method=method, inputs=inputs) for method in self._strategies
        ]

    def available_methods(self) -> list[tuple[SafetyStockMethod, str]]:
        return [(m, s.description) for m, s in self._strategies.items()]
