"""Tests for loading and parsing the operating settings.

Covers the shipped default set, Decimal parsing, per-country lookups, and
rejection of unknown keys.
"""

from decimal import Decimal

import pytest
import yaml

from books_config import DEFAULT_CONFIG_PATH, clear_config_cache, get_active_config, parse_settings
from books_config.loader import load_settings, parse_decimal


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_config_cache()
    yield
    clear_config_cache()


class TestDefaultSet:

    def test_loads_shipped_file(self):
        settings = get_active_config()

        assert settings.name == "default"
        assert settings.ledger.balance_tolerance == Decimal("0.01")
        assert settings.ledger.journal_prefix == "JE"
        assert settings.numbering.asset_prefix == "ASSET"
        assert settings.safety_stock.demand_window_days == 90
        assert settings.safety_stock.lead_time_window_days == 180
        assert settings.safety_stock.max_purchase_orders == 20
        assert settings.costing.variance_threshold == Decimal("10")
        assert settings.costing.critical_threshold == Decimal("20")

    def test_cached_per_path(self):
        assert get_active_config() is get_active_config(DEFAULT_CONFIG_PATH)

    def test_load_is_traced(self, captured_logs):
        get_active_config()

        trace = next(r for r in captured_logs() if r["message"] == "BOOKS_CONFIG_TRACE")
        assert trace["config_name"] == "default"
        assert trace["balance_tolerance"] == "0.01"

    def test_z_scores_keyed_by_decimal(self):
        z_scores = get_active_config().safety_stock.z_scores

        assert z_scores[Decimal("99")] == Decimal("2.33")
        assert z_scores[Decimal("99.5")] == Decimal("2.58")

    def test_statutory_rates(self):
        depreciation = get_active_config().depreciation

        assert depreciation.statutory_rate("UG", "COMPUTERS_ELECTRONICS") == Decimal("40")
        assert depreciation.statutory_rate("UG", "UNKNOWN") is None
        assert depreciation.statutory_rate("US", "COMPUTERS_ELECTRONICS") is None
        assert depreciation.statutory_rate(None, "COMPUTERS_ELECTRONICS") is None

    def test_revaluation_country_overrides(self):
        revaluation = get_active_config().revaluation

        ug_codes = revaluation.reason_codes_for("UG")
        assert "MARKET_DECLINE" in ug_codes
        assert "CURRENCY_FLUCTUATION" in ug_codes
        assert "CURRENCY_FLUCTUATION" not in revaluation.reason_codes_for("US")
        assert revaluation.reason_codes_for(None) == revaluation.reason_codes

        assert revaluation.large_variance_for("UG") == Decimal("20")
        assert revaluation.large_variance_for("US") == Decimal("10")
        assert revaluation.large_variance_for("FR") == Decimal("10")

    def test_compliance_markers(self):
        assert get_active_config().compliance["UG"] == ("VAT",)


class TestParseSettings:

    def test_empty_document_uses_defaults(self):
        settings = parse_settings({})

        assert settings.ledger.journal_prefix == "JE"
        assert settings.depreciation.default_declining_rate == Decimal("20")
        assert settings.safety_stock.z_scores == {}
        assert settings.compliance == {}

    def test_overrides(self):
        settings = parse_settings({
            "ledger": {"balance_tolerance": "0.005", "journal_prefix": "GJ"},
            "costing": {"rollup_threshold": 5},
        })

        assert settings.ledger.balance_tolerance == Decimal("0.005")
        assert settings.ledger.journal_prefix == "GJ"
        assert settings.costing.rollup_threshold == Decimal("5")
        assert settings.costing.variance_threshold == Decimal("10")

    @pytest.mark.parametrize(
        "document",
        [
            {"ledgr": {}},
            {"ledger": {"tolerance": "0.01"}},
            {"revaluation": {"countries": {"UG": {"codes": []}}}},
        ],
    )
    def test_unknown_keys_rejected(self, document):
        with pytest.raises(ValueError, match="Unknown key"):
            parse_settings(document)

    def test_bad_number_rejected(self):
        with pytest.raises(ValueError):
            parse_settings({"costing": {"variance_threshold": "ten"}})

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValueError):
            parse_decimal(True, "flag")

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "kampala.yaml"
        path.write_text(yaml.safe_dump({
            "ledger": {"journal_prefix": "GJ"},
            "depreciation": {"jurisdictions": {"UG": {"MOTOR_VEHICLES": "25"}}},
        }))

        settings = load_settings(path)

        assert settings.name == "kampala"
        assert settings.ledger.journal_prefix == "GJ"
        assert settings.depreciation.statutory_rate("UG", "MOTOR_VEHICLES") == Decimal("25")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")
