"""
Tests for record normalization.

Covers field aliases, timestamp and number parsing, bounds checks and
batch behaviour with malformed or duplicate rows.
"""

import math
from datetime import datetime, timezone

import pytest

from funded_rules.data.normalizer import (
    RecordNormalizer,
    parse_news_record,
    parse_number,
    parse_timestamp,
    parse_trade_record,
)
from funded_rules.errors import MalformedDataError, MissingDataError


class TestParseTimestamp:
    """Test timestamp parsing."""

    def test_iso_with_z(self):
        assert parse_timestamp("2024-04-18T10:00:00Z", "open_time") == datetime(
            2024, 4, 18, 10, 0, tzinfo=timezone.utc
        )

    def test_epoch_milliseconds(self):
        assert parse_timestamp(1713434400000, "open_time") == datetime(
            2024, 4, 18, 10, 0, tzinfo=timezone.utc
        )

    def test_dotted_statement_date(self):
        assert parse_timestamp("2024.04.18 10:00:00", "open_time") == datetime(2024, 4, 18, 10, 0)

    def test_datetime_passthrough(self):
        ts = datetime(2024, 4, 18, 10, 0, tzinfo=timezone.utc)
        assert parse_timestamp(ts, "open_time") is ts

    @pytest.mark.parametrize("value", ["yesterday", True, math.inf, None])
    def test_invalid(self, value):
        with pytest.raises(MalformedDataError):
            parse_timestamp(value, "open_time")


class TestParseNumber:
    """Test numeric parsing."""

    def test_string_with_separators(self):
        assert parse_number("1 234.25", "amount") == pytest.approx(1234.25)
        assert parse_number("-1,250.50", "amount") == pytest.approx(-1250.5)

    def test_default_when_missing(self):
        assert parse_number(None, "swap", default=0.0) == 0.0

    def test_missing_without_default(self):
        with pytest.raises(MissingDataError) as exc_info:
            parse_number(None, "amount")
        assert exc_info.value.missing_fields == ["amount"]

    @pytest.mark.parametrize("value", ["abc", "nan", float("inf")])
    def test_malformed(self, value):
        with pytest.raises(MalformedDataError):
            parse_number(value, "amount")


class TestParseTradeRecord:
    """Test single trade record parsing."""

    def test_aliases(self, sample_trade_record):
        trade = parse_trade_record(sample_trade_record)

        assert trade.ticket == "1001"
        assert trade.amount == pytest.approx(50.5)
        assert trade.symbol == "EURUSD"
        assert trade.direction == "buy"
        assert trade.lot_size == 1.0
        assert trade.commission == -3.5
        assert trade.net_amount == pytest.approx(47.0)

    def test_open_trade(self, sample_trade_record):
        record = dict(sample_trade_record)
        del record["closeTime"]

        trade = parse_trade_record(record)

        assert trade.close_time is None
        assert trade.is_closed is False
        assert trade.duration is None

    def test_missing_required_fields(self):
        with pytest.raises(MissingDataError) as exc_info:
            parse_trade_record({"ticket": 1, "profit": 10})
        assert set(exc_info.value.missing_fields) == {"open_time", "position_type", "lot_size", "open_price"}

    def test_close_before_open(self, sample_trade_record):
        record = dict(sample_trade_record, closeTime="2024-04-18T09:00:00Z")
        with pytest.raises(MalformedDataError):
            parse_trade_record(record)

    def test_negative_lot_size(self, sample_trade_record):
        with pytest.raises(MalformedDataError):
            parse_trade_record(dict(sample_trade_record, lotSize=-1))

    @pytest.mark.parametrize("field", ["lotSize", "openPrice"])
    def test_missing_size_or_price(self, sample_trade_record, field):
        record = dict(sample_trade_record)
        del record[field]

        with pytest.raises(MissingDataError):
            parse_trade_record(record)

    @pytest.mark.parametrize("field", ["lotSize", "openPrice"])
    def test_zero_size_or_price(self, sample_trade_record, field):
        with pytest.raises(MalformedDataError):
            parse_trade_record(dict(sample_trade_record, **{field: 0}))


class TestParseNewsRecord:
    """Test calendar record parsing."""

    def test_basic(self, sample_news_record):
        event = parse_news_record(sample_news_record)

        assert event.currency == "USD"
        assert event.event == "Unemployment Claims"
        assert event.resolve_datetime() == datetime(2024, 4, 18, 10, 0, tzinfo=timezone.utc)

    def test_pre_resolved_datetime(self, sample_news_record):
        record = dict(sample_news_record, dateTime="2024-04-18T12:30:00Z")

        event = parse_news_record(record)

        assert event.resolve_datetime() == datetime(2024, 4, 18, 12, 30, tzinfo=timezone.utc)

    def test_missing_currency(self):
        with pytest.raises(MissingDataError):
            parse_news_record({"date": "Apr 18 2024", "time": "13:00"})


class TestRecordNormalizer:
    """Test batch normalization."""

    def test_skips_bad_rows(self, sample_trade_record):
        records = [sample_trade_record, {"ticket": 2}, dict(sample_trade_record, ticket=3)]

        result = RecordNormalizer().normalize_trades(records)

        assert [t.ticket for t in result.trades] == ["1001", "3"]
        assert result.rejected[0]["index"] == 1
        assert result.success is False

    def test_duplicate_ticket_rejected(self, sample_trade_record):
        result = RecordNormalizer().normalize_trades([sample_trade_record, sample_trade_record])

        assert len(result.trades) == 1
        assert "duplicate" in result.rejected[0]["reason"]

    def test_row_without_size_reported(self, sample_trade_record):
        record = {k: v for k, v in sample_trade_record.items() if k not in ("lotSize", "openPrice")}

        result = RecordNormalizer().normalize_trades([record])

        assert result.trades == ()
        assert result.rejected[0]["kind"] == "trade"

    def test_news_batch(self, sample_news_record):
        result = RecordNormalizer().normalize_news([sample_news_record, {"time": "13:00"}])

        assert len(result.news_events) == 1
        assert result.rejected[0]["kind"] == "news"

    def test_clean_batch(self, sample_trade_record):
        result = RecordNormalizer().normalize_trades([sample_trade_record])
        assert result.success is True
