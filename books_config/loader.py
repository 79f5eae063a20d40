"""
Configuration Loader (``books_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``books_config.schema``.  Callers go through
``books_config.get_active_config()``; this module is the parsing step
behind it.

Invariants enforced
-------------------
* Monetary and percentage values become ``Decimal`` (parsed from their
  string form, never via float).
* Omitted sections fall back to the dataclass defaults; unknown keys are
  rejected so typos do not silently disable a setting.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or unparsable number  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from books_config.schema import (
    BooksSettings,
    CostingSettings,
    CountryRevaluationSettings,
    DepreciationSettings,
    LedgerSettings,
    NumberingSettings,
    RevaluationSettings,
    SafetyStockSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from a YAML scalar (string or int preferred)."""
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc


def _check_keys(section: str, data: dict[str, Any], allowed: set[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(
            f"Unknown key(s) in '{section}': {', '.join(sorted(unknown))}"
        )


def parse_ledger(data: dict[str, Any]) -> LedgerSettings:
    _check_keys("ledger", data, {
        "balance_tolerance", "journal_prefix", "number_padding",
    })
    defaults = LedgerSettings()
    return LedgerSettings(
        balance_tolerance=parse_decimal(
            data.get("balance_tolerance", defaults.balance_tolerance),
            "ledger.balance_tolerance",
        ),
        journal_prefix=str(data.get("journal_prefix", defaults.journal_prefix)),
        number_padding=int(data.get("number_padding", defaults.number_padding)),
    )


def parse_numbering(data: dict[str, Any]) -> NumberingSettings:
    _check_keys("numbering", data, {"asset_prefix", "revaluation_prefix"})
    defaults = NumberingSettings()
    return NumberingSettings(
        asset_prefix=str(data.get("asset_prefix", defaults.asset_prefix)),
        revaluation_prefix=str(data.get("revaluation_prefix", defaults.revaluation_prefix)),
    )


def parse_depreciation(data: dict[str, Any]) -> DepreciationSettings:
    _check_keys("depreciation", data, {"default_declining_rate", "jurisdictions"})
    jurisdictions = {
        str(country): {
            str(tax_class): parse_decimal(rate, f"depreciation.jurisdictions.{country}.{tax_class}")
            for tax_class, rate in (rates or {}).items()
        }
        for country, rates in (data.get("jurisdictions") or {}).items()
    }
    return DepreciationSettings(
        default_declining_rate=parse_decimal(
            data.get("default_declining_rate", "20"), "depreciation.default_declining_rate",
        ),
        jurisdictions=jurisdictions,
    )


def parse_safety_stock(data: dict[str, Any]) -> SafetyStockSettings:
    decimal_fields = {
        "max_lead_time_factor", "percentage_factor",
        "default_service_level", "default_z_score",
    }
    int_fields = {
        "demand_window_days", "lead_time_window_days", "max_purchase_orders",
        "default_lead_time_days", "min_history_days",
    }
    _check_keys("safety_stock", data, decimal_fields | int_fields | {"z_scores"})

    kwargs: dict[str, Any] = {}
    for key in decimal_fields:
        if key in data:
            kwargs[key] = parse_decimal(data[key], f"safety_stock.{key}")
    for key in int_fields:
        if key in data:
            kwargs[key] = int(data[key])
    kwargs["z_scores"] = {
        parse_decimal(level, "safety_stock.z_scores"): parse_decimal(z, f"safety_stock.z_scores.{level}")
        for level, z in (data.get("z_scores") or {}).items()
    }
    return SafetyStockSettings(**kwargs)


def parse_costing(data: dict[str, Any]) -> CostingSettings:
    _check_keys("costing", data, {"variance_threshold", "critical_threshold", "rollup_threshold"})
    return CostingSettings(**{
        key: parse_decimal(value, f"costing.{key}") for key, value in data.items()
    })


def parse_revaluation(data: dict[str, Any]) -> RevaluationSettings:
    _check_keys("revaluation", data, {
        "inventory_account_code", "gain_account_code", "loss_account_code",
        "large_variance_percent", "reason_codes", "countries",
    })
    defaults = RevaluationSettings()
    countries = {}
    for country, spec in (data.get("countries") or {}).items():
        spec = spec or {}
        _check_keys(f"revaluation.countries.{country}", spec, {
            "reason_codes", "large_variance_percent",
        })
        threshold = spec.get("large_variance_percent")
        countries[str(country)] = CountryRevaluationSettings(
            reason_codes=tuple(str(c) for c in spec.get("reason_codes") or ()),
            large_variance_percent=(
                parse_decimal(threshold, f"revaluation.countries.{country}.large_variance_percent")
                if threshold is not None else None
            ),
        )
    return RevaluationSettings(
        inventory_account_code=str(data.get("inventory_account_code", defaults.inventory_account_code)),
        gain_account_code=str(data.get("gain_account_code", defaults.gain_account_code)),
        loss_account_code=str(data.get("loss_account_code", defaults.loss_account_code)),
        large_variance_percent=parse_decimal(
            data.get("large_variance_percent", defaults.large_variance_percent),
            "revaluation.large_variance_percent",
        ),
        reason_codes=tuple(str(c) for c in data.get("reason_codes") or ()),
        countries=countries,
    )


def parse_compliance(data: dict[str, Any]) -> dict[str, tuple[str, ...]]:
    return {
        str(country): tuple(str(m) for m in (spec or {}).get("markers") or ())
        for country, spec in data.items()
    }


def parse_settings(data: dict[str, Any], name: str = "default") -> BooksSettings:
    """Parse a whole settings document."""
    _check_keys("<root>", data, {
        "ledger", "numbering", "depreciation", "safety_stock",
        "costing", "revaluation", "compliance",
    })
    return BooksSettings(
        name=name,
        ledger=parse_ledger(data.get("ledger") or {}),
        numbering=parse_numbering(data.get("numbering") or {}),
        depreciation=parse_depreciation(data.get("depreciation") or {}),
        safety_stock=parse_safety_stock(data.get("safety_stock") or {}),
        costing=parse_costing(data.get("costing") or {}),
        revaluation=parse_revaluation(data.get("revaluation") or {}),
        compliance=parse_compliance(data.get("compliance") or {}),
    )


def load_settings(path: Path) -> BooksSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path), name=path.stem)
