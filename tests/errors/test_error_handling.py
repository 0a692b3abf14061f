"""
Error handling tests for the rule evaluation engine.

Tests cover the error hierarchy, degraded reference data and neutral
results for unusable input.
"""

import math

import pytest
from unittest.mock import Mock

from funded_rules.errors import (
    ConfigurationError,
    DataQualityError,
    GracefulDegradationError,
    LeverageConfigurationError,
    MalformedDataError,
    MissingDataError,
    SystemFailureError,
)
from funded_rules.reference.instruments import InstrumentCatalog, InstrumentSpec
from funded_rules.rules.hedging import analyze_hedging
from funded_rules.rules.margin import analyze_margin_usage
from funded_rules.rules.profit_target import analyze_profit_target
from funded_rules.data.models import NewsEvent


class TestErrorClassification:
    """Test error classification system."""

    def test_data_quality_error_hierarchy(self):
        """Test that data quality errors are recoverable."""
        base_error = DataQualityError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        missing_error = MissingDataError("missing data", data_type="trade", missing_fields=["ticket"])
        assert isinstance(missing_error, DataQualityError)
        assert missing_error.data_type == "trade"
        assert missing_error.missing_fields == ["ticket"]

        malformed_error = MalformedDataError("bad date", raw_data="18th", expected_format="YYYY-MM-DD")
        assert isinstance(malformed_error, DataQualityError)
        assert malformed_error.raw_data == "18th"

    def test_system_failure_error_hierarchy(self):
        """Test that configuration failures are unrecoverable."""
        config_error = ConfigurationError("bad overrides", errors=["margin.window_minutes"])
        assert isinstance(config_error, SystemFailureError)
        assert config_error.recoverable is False
        assert config_error.errors == ["margin.window_minutes"]

        leverage_error = LeverageConfigurationError("no leverage", symbol="AUDUSD", account_leverage=0)
        assert isinstance(leverage_error, ConfigurationError)
        assert leverage_error.symbol == "AUDUSD"
        assert leverage_error.account_leverage == 0

    def test_graceful_degradation_error(self):
        """Test that degradation errors carry their fallback."""
        error = GracefulDegradationError("no spec", degraded_functionality="margin",
                                         fallback_strategy="zero margin")
        assert error.allows_degradation is True
        assert error.fallback_strategy == "zero margin"

    def test_context_is_kept(self):
        error = MissingDataError("missing", context={"record": {"ticket": 1}})
        assert error.context["record"]["ticket"] == 1


class TestInputErrors:
    """Unusable input returns neutral results instead of raising."""

    def test_nan_balance_profit_target(self, make_trade):
        result = analyze_profit_target([make_trade(0, 10, 5000)], math.nan)

        assert result.is_compliant is True
        assert result.chains == ()

    def test_nan_balance_margin(self, make_trade, usd_news, correlation_table, as_of):
        trades = [make_trade(0, 10, 5, lot_size=10.0)]

        result = analyze_margin_usage(trades, math.nan, [usd_news], table=correlation_table, as_of=as_of)

        assert result.is_compliant is True
        assert result.warnings

    def test_unparseable_news_degrades(self, make_trade, correlation_table, as_of):
        bad = NewsEvent(date="someday", time="13:00", currency="USD", event="Broken")
        trades = [make_trade(0, 20, 50), make_trade(10, 25, -30, position_type="sell")]

        result = analyze_hedging(trades, [bad], table=correlation_table, as_of=as_of)

        assert result.groups == ()
        assert any("someday" in w for w in result.warnings)


class TestReferenceDataDegradation:
    """Missing metadata zeroes a contribution but never fails the evaluation."""

    def test_missing_spec_contributes_zero_margin(self, make_trade, usd_news, correlation_table, as_of):
        trades = [make_trade(0, 10, 5, pair="SPX500USD", lot_size=50.0, open_price=5200.0)]

        result = analyze_margin_usage(
            trades, 10000, [usd_news], account_leverage=20, table=correlation_table, as_of=as_of
        )

        assert result.is_compliant is True
        assert any("SPX500USD" in w for w in result.warnings)

    def test_invalid_contract_size_contributes_zero(self, make_trade, usd_news, correlation_table, as_of):
        trades = [make_trade(0, 10, 5, pair="XAUUSD", lot_size=50.0, open_price=2300.0)]
        specs = {"XAUUSD": InstrumentSpec(symbol="XAUUSD", contract_size="n/a")}

        result = analyze_margin_usage(
            trades, 10000, [usd_news], instrument_specs=specs, table=correlation_table, as_of=as_of
        )

        assert result.is_compliant is True
        assert any("contract size" in w for w in result.warnings)

    def test_catalog_loader_failure_is_cached_as_missing(self):
        loader = Mock(side_effect=ConnectionError("metadata service down"))
        catalog = InstrumentCatalog(loader)

        assert catalog.get("XAUUSD") is None
        assert catalog.get("XAUUSD") is None
        loader.assert_called_once()

    def test_contract_size_error_type(self):
        with pytest.raises(GracefulDegradationError):
            InstrumentSpec(symbol="XAUUSD", contract_size=0).contract_size_value()
