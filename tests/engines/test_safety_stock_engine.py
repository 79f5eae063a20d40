"""
Safety-stock engine tests: the three strategies, fallback, and the
multiplier / floor / financial impact applied to every result.
"""

from datetime import date
from decimal import Decimal

import pytest

from books_engines.safety_stock import (
    DemandHistory,
    LeadTimeStats,
    PercentageOfDemandStrategy,
    SafetyStockCalculator,
    SafetyStockInputs,
    SafetyStockMethod,
    StatisticalSafetyStockStrategy,
    z_score_for,
)


def _inputs(quantities, window=90, lead_times=(), **kwargs):
    return SafetyStockInputs(
        demand=DemandHistory(
            daily_quantities=tuple(Decimal(q) for q in quantities),
            window_days=window,
        ),
        lead_times=LeadTimeStats.from_lead_times(list(lead_times)),
        **kwargs,
    )


@pytest.fixture
def calculator():
    return SafetyStockCalculator()


class TestZScores:

    def test_table_lookup(self):
        assert z_score_for(Decimal("99")) == Decimal("2.33")

    def test_fifty_percent_is_zero(self):
        assert z_score_for(Decimal("50")) == Decimal("0.00")

    def test_unlisted_level_defaults(self):
        assert z_score_for(Decimal("93")) == Decimal("1.65")


class TestDemandHistory:

    def test_from_sales_groups_by_day(self):
        history = DemandHistory.from_sales([
            (date(2025, 6, 2), Decimal("3")),
            (date(2025, 6, 1), Decimal("5")),
            (date(2025, 6, 2), Decimal("4")),
        ], window_days=30)

        assert history.daily_quantities == (Decimal("5"), Decimal("7"))
        assert history.sales_days == 2

    def test_average_over_whole_window(self):
        history = DemandHistory(daily_quantities=(Decimal("90"),), window_days=90)

        assert history.avg_daily == Decimal("1")

    def test_non_positive_window_rejected(self):
        with pytest.raises(ValueError):
            DemandHistory(window_days=0)


class TestBasedOnLeadTime:

    def test_formula_with_history(self, calculator):
        inputs = _inputs(["10", "20"], window=10, lead_times=[10, 20])

        result = calculator.calculate(method=SafetyStockMethod.BASED_ON_LEAD_TIME, inputs=inputs)

        # max daily 20 * max lead 20 - avg daily 3 * avg lead 15
        assert result.suggested_quantity == Decimal("355.0000")
        assert result.calculation.avg_lead_time == Decimal("15")

    def test_default_lead_times(self, calculator):
        inputs = _inputs(["10", "20"], window=10)

        result = calculator.calculate(method=SafetyStockMethod.BASED_ON_LEAD_TIME, inputs=inputs)

        # 20 * 21 - 3 * 14
        assert result.calculation.max_lead_time == Decimal("21.0")
        assert result.suggested_quantity == Decimal("378.0000")

    def test_override_used_without_history(self, calculator):
        inputs = _inputs(["10"], window=10, lead_time_override_days=Decimal("10"))

        result = calculator.calculate(method=SafetyStockMethod.BASED_ON_LEAD_TIME, inputs=inputs)

        # 10 * 15 - 1 * 10
        assert result.suggested_quantity == Decimal("140.0000")


class TestStatistical:

    def test_formula(self, calculator):
        inputs = _inputs(["10"] * 4 + ["30"] * 4, window=8, lead_times=[14])

        result = calculator.calculate(method=SafetyStockMethod.STATISTICAL, inputs=inputs)

        # 1.65 * sqrt(14) * 10
        assert result.method is SafetyStockMethod.STATISTICAL
        assert result.fallback_from is None
        assert result.calculation.demand_std_dev == Decimal("10")
        assert result.suggested_quantity == Decimal("61.7373")

    def test_service_level_changes_z(self, calculator):
        inputs = _inputs(
            ["10"] * 4 + ["30"] * 4, window=8, lead_times=[16], service_level=Decimal("99"),
        )

        result = calculator.calculate(method=SafetyStockMethod.STATISTICAL, inputs=inputs)

        # 2.33 * 4 * 10
        assert result.calculation.z_score == Decimal("2.33")
        assert result.suggested_quantity == Decimal("93.2000")

    def test_short_history_falls_back(self, calculator):
        inputs = _inputs(["10", "20"], window=10)

        result = calculator.calculate(method=SafetyStockMethod.STATISTICAL, inputs=inputs)

        assert result.method is SafetyStockMethod.BASED_ON_LEAD_TIME
        assert result.fallback_from is SafetyStockMethod.STATISTICAL
        assert result.suggested_quantity == Decimal("378.0000")

    def test_min_history_is_configurable(self):
        strategy = StatisticalSafetyStockStrategy(min_history_days=2)
        inputs = _inputs(["10", "30"], window=2, lead_times=[16])

        result = strategy.calculate(inputs)

        assert result.fallback_from is None
        # avg 20, deviation 10, z 1.65, sqrt(16) 4
        assert result.suggested_quantity == Decimal("66.0000")


class TestPercentageOfDemand:

    def test_formula(self, calculator):
        inputs = _inputs(["100", "200"], window=90)

        result = calculator.calculate(method=SafetyStockMethod.PERCENTAGE_OF_DEMAND, inputs=inputs)

        # 300 / 90 * 30 * 0.25
        assert result.suggested_quantity == Decimal("25.0000")

    def test_custom_factor(self):
        strategy = PercentageOfDemandStrategy(percentage_factor=Decimal("0.5"))

        result = strategy.calculate(_inputs(["300"], window=90))

        assert result.suggested_quantity == Decimal("50.0000")


class TestCommonAdjustments:

    def test_regional_multiplier(self, calculator):
        inputs = _inputs(
            ["100", "200"], window=90, regional_risk_multiplier=Decimal("1.2"),
        )

        result = calculator.calculate(method=SafetyStockMethod.PERCENTAGE_OF_DEMAND, inputs=inputs)

        assert result.suggested_quantity == Decimal("30.0000")
        assert result.calculation.regional_multiplier == Decimal("1.2")

    def test_no_demand_floors_at_zero(self, calculator):
        inputs = _inputs([], current_quantity=Decimal("50"), unit_cost=Decimal("2"))

        result = calculator.calculate(method=SafetyStockMethod.PERCENTAGE_OF_DEMAND, inputs=inputs)

        assert result.suggested_quantity == Decimal("0")
        assert result.quantity_change == Decimal("-50")
        assert result.financial_impact == Decimal("-100.00")

    def test_financial_impact(self, calculator):
        inputs = _inputs(
            ["100", "200"], window=90,
            current_quantity=Decimal("10"), unit_cost=Decimal("4.50"),
        )

        result = calculator.calculate(method=SafetyStockMethod.PERCENTAGE_OF_DEMAND, inputs=inputs)

        # (25 - 10) * 4.50
        assert result.financial_impact == Decimal("67.50")

    def test_negative_multiplier_rejected(self):
        with pytest.raises(ValueError):
            _inputs(["1"], regional_risk_multiplier=Decimal("-1"))


class TestCalculator:

    def test_calculate_all_returns_each_method(self, calculator):
        results = calculator.calculate_all(_inputs(["10"] * 8, window=30, lead_times=[7]))

        assert [r.method for r in results] == [
            SafetyStockMethod.BASED_ON_LEAD_TIME,
            SafetyStockMethod.STATISTICAL,
            SafetyStockMethod.PERCENTAGE_OF_DEMAND,
        ]

    def test_available_methods_have_descriptions(self, calculator):
        methods = calculator.available_methods()

        assert len(methods) == 3
        assert all(description for _, description in methods)

    def test_unknown_method_rejected(self, calculator):
        with pytest.raises(ValueError):
            calculator.strategy("GUESS")

    def test_calculation_is_traced(self, calculator, captured_logs):
        calculator.calculate(method=SafetyStockMethod.STATISTICAL, inputs=_inputs(["1"]))

        traces = [r for r in captured_logs() if r["message"] == "BOOKS_ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "safety_stock"
        assert len(traces[0]["input_fingerprint"]) == 16
