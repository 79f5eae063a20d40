"""
books_engines.revaluation -- Inventory revaluation arithmetic.

Responsibility:
    Value difference, percentage change, GL leg direction, and review
    warnings for a change of a product's inventory unit cost.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ``books_modules.costing.revaluations.RevaluationService`` resolves the
    account roles to accounts and posts through the ledger.

Invariants enforced:
    - ``value_difference == (new - old) * quantity``.
    - An increase debits INVENTORY and credits REVALUATION_GAIN; a decrease
      debits REVALUATION_LOSS and credits INVENTORY.  The leg amount is the
      absolute difference.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from books_engines.tracer import traced_engine

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Countries where a steep cost increase suggests currency effects.
HIGH_INFLATION_COUNTRIES = frozenset({"UG"})
HIGH_INFLATION_INCREASE_PERCENT = Decimal("15")


class RevaluationAccountRole(str, Enum):
    INVENTORY = "INVENTORY"
    REVALUATION_GAIN = "REVALUATION_GAIN"
    REVALUATION_LOSS = "REVALUATION_LOSS"


@dataclass(frozen=True)
class RevaluationLegs:
    is_increase: bool
    debit_role: RevaluationAccountRole
    credit_role: RevaluationAccountRole
    amount: Decimal


@dataclass(frozen=True)
class RevaluationFigures:
    quantity: Decimal
    old_unit_cost: Decimal
    new_unit_cost: Decimal
    current_total_value: Decimal
    new_total_value: Decimal
    value_difference: Decimal
    percentage_change: Decimal
    legs: RevaluationLegs
    warnings: tuple[str, ...]


def value_difference(
    old_unit_cost: Decimal, new_unit_cost: Decimal, quantity: Decimal,
) -> Decimal:
    return (new_unit_cost - old_unit_cost) * quantity


def percentage_change(current_total_value: Decimal, difference: Decimal) -> Decimal:
    """Difference as a percent of the current value; 0 when that is 0."""
    if current_total_value == 0:
        return ZERO
    return difference / current_total_value * HUNDRED


def gl_direction(difference: Decimal) -> RevaluationLegs:
    is_increase = difference > 0
    if is_increase:
        debit, credit = RevaluationAccountRole.INVENTORY, RevaluationAccountRole.REVALUATION_GAIN
    else:
        debit, credit = RevaluationAccountRole.REVALUATION_LOSS, RevaluationAccountRole.INVENTORY
    return RevaluationLegs(
        is_increase=is_increase,
        debit_role=debit,
        credit_role=credit,
        amount=abs(difference),
    )


def revaluation_warnings(
    percent_change: Decimal,
    new_unit_cost: Decimal,
    large_variance_percent: Decimal,
    country: str | None = None,
) -> tuple[str, ...]:
    warnings: list[str] = []
    if abs(percent_change) > large_variance_percent:
        warnings.append(
            f"Large cost change of {percent_change:.1f}% may require additional approval"
        )
    if country in HIGH_INFLATION_COUNTRIES and percent_change > HIGH_INFLATION_INCREASE_PERCENT:
        warnings.append("High cost increase detected - consider currency impact analysis")
    if new_unit_cost <= 0:
        warnings.append("Zero or negative unit cost will affect gross margin calculations")
    return tuple(warnings)


@traced_engine(
    "revaluation", "1.0",
    fingerprint_fields=("old_unit_cost", "new_unit_cost", "quantity"),
)
def compute_revaluation(
    old_unit_cost: Decimal,
    new_unit_cost: Decimal,
    quantity: Decimal,
    large_variance_percent: Decimal = Decimal("10"),
    country: str | None = None,
) -> RevaluationFigures:
    """All figures for a proposed revaluation in one pass."""
    difference = value_difference(old_unit_cost, new_unit_cost, quantity)
    current_total = old_unit_cost * quantity
    percent = percentage_change(current_total, difference)
    return RevaluationFigures(
        quantity=quantity,
        old_unit_cost=old_unit_cost,
        new_unit_cost=new_unit_cost,
        current_total_value=current_total,
        new_total_value=new_unit_cost * quantity,
        value_difference=difference,
        percentage_change=percent,
        legs=gl_direction(difference),
        warnings=revaluation_warnings(percent, new_unit_cost, large_variance_percent, country),
    )
