"""
Configuration Schema (``books_config.schema``).

Frozen dataclasses describing the operating settings of the books core.
Instances are produced by ``books_config.loader`` and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    balance_tolerance: Decimal = Decimal("0.01")
    journal_prefix: str = "JE"
    number_padding: int = 4


@dataclass(frozen=True)
class NumberingSettings:
    asset_prefix: str = "ASSET"
    revaluation_prefix: str = "REV"


@dataclass(frozen=True)
class DepreciationSettings:
    default_declining_rate: Decimal = Decimal("20")
    # country -> asset tax class -> annual rate in percent
    jurisdictions: dict[str, dict[str, Decimal]] = field(default_factory=dict)

    def statutory_rate(self, country: str | None, tax_class: str | None) -> Decimal | None:
        """Jurisdiction rate for an asset tax class, if one is configured."""
        if not country or not tax_class:
            return None
        return self.jurisdictions.get(country, {}).get(tax_class)


@dataclass(frozen=True)
class SafetyStockSettings:
    demand_window_days: int = 90
    lead_time_window_days: int = 180
    max_purchase_orders: int = 20
    default_lead_time_days: int = 14
    max_lead_time_factor: Decimal = Decimal("1.5")
    min_history_days: int = 7
    percentage_factor: Decimal = Decimal("0.25")
    default_service_level: Decimal = Decimal("95")
    default_z_score: Decimal = Decimal("1.65")
    z_scores: dict[Decimal, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class CostingSettings:
    variance_threshold: Decimal = Decimal("10")
    critical_threshold: Decimal = Decimal("20")
    rollup_threshold: Decimal = Decimal("10")


@dataclass(frozen=True)
class CountryRevaluationSettings:
    reason_codes: tuple[str, ...] = ()
    large_variance_percent: Decimal | None = None


@dataclass(frozen=True)
class RevaluationSettings:
    inventory_account_code: str = "1300"
    gain_account_code: str = "4900"
    loss_account_code: str = "6900"
    large_variance_percent: Decimal = Decimal("10")
    reason_codes: tuple[str, ...] = ()
    countries: dict[str, CountryRevaluationSettings] = field(default_factory=dict)

    def reason_codes_for(self, country: str | None) -> tuple[str, ...]:
        """Base reason codes plus the country's own."""
        extra = self.countries.get(country or "")
        return self.reason_codes + (extra.reason_codes if extra else ())

    def large_variance_for(self, country: str | None) -> Decimal:
        extra = self.countries.get(country or "")
        if extra is not None and extra.large_variance_percent is not None:
            return extra.large_variance_percent
        return self.large_variance_percent


@dataclass(frozen=True)
class BooksSettings:
    """The complete, validated settings tree."""

    name: str
    ledger: LedgerSettings
    numbering: NumberingSettings
    depreciation: DepreciationSettings
    safety_stock: SafetyStockSettings
    costing: CostingSettings
    revaluation: RevaluationSettings
    # country -> account-name markers that raise compliance flags
    compliance: dict[str, tuple[str, ...]] = field(default_factory=dict)
