"""
books_engines.standard_cost -- BOM cost roll-up and standard cost variances.

Responsibility:
    Roll a bill-of-materials tree up into material, labor, and overhead
    totals; compare a rolled-up cost with the current standard; classify the
    gap between a standard cost and the last purchase price.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``books_modules.costing.standard_costs.StandardCostService`` builds the
    ``BomNode`` tree from the database (and detects cycles while doing so).

Invariants enforced:
    - Each component line contributes
      ``unit cost * quantity_per * (1 + scrap_percent / 100)``.
    - A component with a known unit cost is a leaf even if it has its own
      BOM; otherwise its children are rolled up recursively; otherwise it
      costs zero (source DEFAULT).
    - Variance percent is 0 when the reference cost is 0.

Failure modes:
    - ValueError for a negative quantity_per or scrap_percent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from books_engines.tracer import traced_engine
from books_kernel.logging_config import get_logger

logger = get_logger("engines.standard_cost")

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_VARIANCE_THRESHOLD = Decimal("10")
DEFAULT_CRITICAL_THRESHOLD = Decimal("20")

RECOMMEND_UPDATE = "Significant variance detected. Consider updating standard cost."
RECOMMEND_KEEP = "Cost is within acceptable variance range."


class CostSource(str, Enum):
    STANDARD_COST = "STANDARD_COST"
    LAST_PURCHASE = "LAST_PURCHASE"
    BOM_ROLLUP = "BOM_ROLLUP"
    DEFAULT = "DEFAULT"


class VarianceSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    NORMAL = "NORMAL"


@dataclass(frozen=True)
class CostComponents:
    material: Decimal = ZERO
    labor: Decimal = ZERO
    overhead: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.material + self.labor + self.overhead

    def scaled(self, factor: Decimal) -> CostComponents:
        return CostComponents(
            material=self.material * factor,
            labor=self.labor * factor,
            overhead=self.overhead * factor,
        )

    def __add__(self, other: CostComponents) -> CostComponents:
        return CostComponents(
            material=self.material + other.material,
            labor=self.labor + other.labor,
            overhead=self.overhead + other.overhead,
        )


@dataclass(frozen=True)
class BomNode:
    """
    A product in a BOM tree.

    For the root, ``quantity_per`` and ``scrap_percent`` are ignored.
    ``unit_cost`` is the component's known cost (its standard cost or its
    last purchase price as material); leave it ``None`` to roll up
    ``children`` instead.
    """

    product_id: str
    name: str = ""
    sku: str = ""
    quantity_per: Decimal = Decimal("1")
    scrap_percent: Decimal = ZERO
    unit_cost: CostComponents | None = None
    source: CostSource = CostSource.DEFAULT
    children: tuple[BomNode, ...] = ()

    def __post_init__(self) -> None:
        if self.quantity_per < 0 or self.scrap_percent < 0:
            raise ValueError("quantity_per and scrap_percent must be non-negative")

    @property
    def effective_quantity(self) -> Decimal:
        return self.quantity_per * (1 + self.scrap_percent / HUNDRED)


@dataclass(frozen=True)
class BomLineCost:
    component_id: str
    component_name: str
    component_sku: str
    quantity_per: Decimal
    scrap_percent: Decimal
    effective_quantity: Decimal
    unit_cost: Decimal
    extended_cost: Decimal
    level: int
    source: CostSource


@dataclass(frozen=True)
class BomRollupResult:
    product_id: str
    components: CostComponents
    lines: tuple[BomLineCost, ...]

    @property
    def total(self) -> Decimal:
        return self.components.total


@dataclass(frozen=True)
class RollupVariance:
    current_standard_cost: Decimal
    calculated_cost: Decimal
    variance: Decimal
    variance_percent: Decimal
    exceeds_threshold: bool
    recommendation: str


@dataclass(frozen=True)
class VarianceAnalysis:
    standard_cost: Decimal
    last_purchase_price: Decimal
    variance: Decimal
    variance_percent: Decimal
    threshold: Decimal
    flagged: bool
    severity: VarianceSeverity
    recommendation: str
    product_id: str | None = None


def _percent(variance: Decimal, reference: Decimal) -> Decimal:
    if reference == 0:
        return ZERO
    return variance / reference * HUNDRED


def _roll(node: BomNode, level: int, lines: list[BomLineCost]) -> CostComponents:
    total = CostComponents()
    for child in node.children:
        if child.unit_cost is not None:
            unit = child.unit_cost
            source = child.source
        elif child.children:
            unit = _roll(child, level + 1, lines)
            source = CostSource.BOM_ROLLUP
        else:
            unit = CostComponents()
            source = CostSource.DEFAULT

        extended = unit.scaled(child.effective_quantity)
        lines.append(
            BomLineCost(
                component_id=child.product_id,
                component_name=child.name,
                component_sku=child.sku,
                quantity_per=child.quantity_per,
                scrap_percent=child.scrap_percent,
                effective_quantity=child.effective_quantity,
                unit_cost=unit.total,
                extended_cost=extended.total,
                level=level,
                source=source,
            )
        )
        total = total + extended
    return total


@traced_engine("bom_rollup", "1.0", fingerprint_fields=("root",))
def roll_up(root: BomNode) -> BomRollupResult:
    """
    Roll the tree under ``root`` up into cost components.

    Lines are listed depth-first, each nested line before its parent line,
    with ``level`` 1 for direct components of the root.
    """
    lines: list[BomLineCost] = []
    components = _roll(root, 1, lines)
    logger.debug(
        "bom_rolled_up",
        extra={
            "product_id": root.product_id,
            "line_count": len(lines),
            "total_cost": str(components.total),
        },
    )
    return BomRollupResult(
        product_id=root.product_id,
        components=components,
        lines=tuple(lines),
    )


def compare_to_standard(
    calculated_cost: Decimal,
    current_standard_cost: Decimal,
    threshold: Decimal = DEFAULT_VARIANCE_THRESHOLD,
) -> RollupVariance:
    """Rolled-up cost against the effective standard."""
    variance = calculated_cost - current_standard_cost
    percent = _percent(variance, current_standard_cost)
    exceeds = abs(percent) > threshold
    return RollupVariance(
        current_standard_cost=current_standard_cost,
        calculated_cost=calculated_cost,
        variance=variance,
        variance_percent=percent,
        exceeds_threshold=exceeds,
        recommendation=RECOMMEND_UPDATE if exceeds else RECOMMEND_KEEP,
    )


@traced_engine(
    "variance_classification", "1.0",
    fingerprint_fields=("standard_cost", "last_purchase_price", "threshold"),
)
def classify_variance(
    standard_cost: Decimal,
    last_purchase_price: Decimal,
    threshold: Decimal = DEFAULT_VARIANCE_THRESHOLD,
    critical_threshold: Decimal = DEFAULT_CRITICAL_THRESHOLD,
    product_id: str | None = None,
) -> VarianceAnalysis:
    """
    Purchase price against standard cost.

    critical: |percent| > critical_threshold
    warning:  threshold < |percent| <= critical_threshold
    normal:   |percent| <= threshold
    """
    variance = last_purchase_price - standard_cost
    percent = _percent(variance, standard_cost)
    magnitude = abs(percent)

    if magnitude > critical_threshold:
        severity = VarianceSeverity.CRITICAL
        recommendation = "Critical variance - immediate review required"
    elif magnitude > threshold:
        severity = VarianceSeverity.WARNING
        recommendation = "Standard cost update recommended"
    else:
        severity = VarianceSeverity.NORMAL
        recommendation = "Within acceptable variance range"

    return VarianceAnalysis(
        standard_cost=standard_cost,
        last_purchase_price=last_purchase_price,
        variance=variance,
        variance_percent=percent,
        threshold=threshold,
        flagged=magnitude > threshold,
        severity=severity,
        recommendation=recommendation,
        product_id=product_id,
    )


def adjust_components(
    components: CostComponents,
    adjustment_type: str,
    material: Decimal | None = None,
    labor: Decimal | None = None,
    overhead: Decimal | None = None,
) -> CostComponents:
    """
    Apply a mass-update adjustment.

    ``PERCENTAGE`` multiplies each given component by ``1 + value / 100``;
    ``AMOUNT`` adds the value.  Components passed as ``None`` are unchanged.
    """
    if adjustment_type not in ("PERCENTAGE", "AMOUNT"):
        raise ValueError(f"Unknown adjustment type {adjustment_type!r}")

    def apply(current: Decimal, value: Decimal | None) -> Decimal:
        if value is None:
            return current
        if adjustment_type == "PERCENTAGE":
            return current * (1 + Decimal(value) / HUNDRED)
        return current + Decimal(value)

    return CostComponents(
        material=apply(components.material, material),
        labor=apply(components.labor, labor),
        overhead=apply(components.overhead, overhead),
    )
