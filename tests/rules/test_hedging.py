"""Tests for hedge detection."""

import random

import pytest

from funded_rules.data.models import NewsEvent
from funded_rules.rules.hedging import (
    analyze_hedging,
    build_hedge_graph,
    calculate_hedge_stats,
    find_connected_components,
    make_hedge_group,
    merge_groups,
)


def _news(time: str, currency: str = "USD", event: str = "Release") -> NewsEvent:
    return NewsEvent(date="Apr 18 2024", time=time, currency=currency, event=event, impact="High")


class TestGraph:
    """Graph construction and components."""

    def test_components_require_two_members(self):
        graph = {0: {1}, 1: {0}, 2: set()}
        assert find_connected_components(graph) == [[0, 1]]

    def test_transitive_component(self):
        graph = {0: {1}, 1: {0, 2}, 2: {1}, 3: {4}, 4: {3}}
        assert find_connected_components(graph) == [[0, 1, 2], [3, 4]]

    def test_edges_need_overlap_and_offset(self, make_trade, correlation_table, as_of):
        trades = [
            make_trade(0, 20, position_type="buy"),
            make_trade(10, 25, position_type="sell"),
            make_trade(20, 30, position_type="sell"),    # touches the first only
            make_trade(12, 18, position_type="buy", pair="GBPJPY"),
        ]
        graph = build_hedge_graph(trades, correlation_table, as_of)

        assert graph[0] == {1}
        assert graph[1] == {0}
        assert graph[2] == set()
        assert graph[3] == set()


class TestGeneralMode:
    """Detection without news events."""

    def test_same_pair_opposite_direction(self, make_trade, correlation_table, as_of):
        trades = [
            make_trade(0, 20, 50, position_type="BUY"),
            make_trade(10, 25, -30, position_type="SELL"),
        ]

        result = analyze_hedging(trades, table=correlation_table, as_of=as_of)

        assert result.mode == "general"
        assert len(result.groups) == 1
        group = result.groups[0]
        assert len(group.trades) == 2
        assert group.net_profit == pytest.approx(20)
        assert group.total_profit == pytest.approx(50)
        assert group.total_loss == pytest.approx(30)
        assert group.duration_minutes == pytest.approx(25)
        assert group.pairs == ("EURUSD",)
        assert group.chain_identifier == "1,2"
        assert not result.is_compliant

    def test_no_hedge(self, make_trade, correlation_table, as_of):
        trades = [make_trade(0, 20, 50), make_trade(10, 25, 30)]
        result = analyze_hedging(trades, table=correlation_table, as_of=as_of)
        assert result.groups == ()
        assert result.is_compliant

    def test_empty_input(self, correlation_table):
        result = analyze_hedging([], table=correlation_table)
        assert result.groups == ()
        assert result.stats.total_hedge_groups == 0

    def test_order_invariance(self, make_trade, correlation_table, as_of):
        rng = random.Random(11)
        pairs = ["EURUSD", "XAUUSD", "USDJPY", "DXY", "GBPUSD"]
        trades = []
        for _ in range(30):
            start = rng.randint(0, 600)
            trades.append(make_trade(
                start,
                start + rng.randint(5, 90),
                rng.uniform(-100, 100),
                pair=rng.choice(pairs),
                position_type=rng.choice(["buy", "sell"]),
            ))

        baseline = analyze_hedging(trades, table=correlation_table, as_of=as_of)
        shuffled = trades[:]
        rng.shuffle(shuffled)
        reordered = analyze_hedging(shuffled, table=correlation_table, as_of=as_of)

        assert [g.chain_identifier for g in baseline.groups] == \
            [g.chain_identifier for g in reordered.groups]
        assert baseline.stats == reordered.stats


class TestNewsMode:
    """Detection anchored on news windows."""

    def test_hedge_inside_window(self, make_trade, correlation_table, usd_news, as_of):
        trades = [
            make_trade(-10, 10, 50, position_type="buy"),
            make_trade(0, 15, -30, position_type="sell"),
        ]

        result = analyze_hedging(trades, [usd_news], table=correlation_table, as_of=as_of)

        assert result.mode == "news"
        assert len(result.groups) == 1
        assert result.groups[0].news_event == usd_news
        assert result.stats.news_based_hedges == 1
        assert result.stats.unique_news_events == 1

    def test_trades_outside_window_ignored(self, make_trade, correlation_table, usd_news, as_of):
        trades = [
            make_trade(60, 80, 50, position_type="buy"),
            make_trade(65, 85, -30, position_type="sell"),
        ]

        result = analyze_hedging(trades, [usd_news], table=correlation_table, as_of=as_of)

        assert result.groups == ()

    def test_unrelated_currency_ignored(self, make_trade, correlation_table, as_of):
        trades = [
            make_trade(0, 20, 50, position_type="buy"),
            make_trade(10, 25, -30, position_type="sell"),
        ]

        result = analyze_hedging(trades, [_news("13:00", currency="JPY")],
                                 table=correlation_table, as_of=as_of)

        assert result.groups == ()

    def test_groups_from_different_windows_merge(self, make_trade, correlation_table, as_of):
        trades = [
            make_trade(0, 120, 80, position_type="buy", ticket="A"),
            make_trade(10, 20, -20, position_type="sell", ticket="B"),
            make_trade(100, 110, -25, position_type="sell", ticket="C"),
        ]
        first = _news("13:00", event="First")
        second = _news("14:40", event="Second")

        result = analyze_hedging(trades, [second, first], table=correlation_table, as_of=as_of)

        assert len(result.groups) == 1
        merged = result.groups[0]
        assert merged.chain_identifier == "A,B,C"
        assert merged.news_event == first
        assert merged.net_profit == pytest.approx(35)

    def test_final_groups_share_no_ticket(self, make_trade, correlation_table, as_of):
        rng = random.Random(3)
        trades = []
        for _ in range(40):
            start = rng.randint(0, 480)
            trades.append(make_trade(
                start,
                start + rng.randint(5, 120),
                rng.uniform(-100, 100),
                pair=rng.choice(["EURUSD", "XAUUSD", "USDJPY"]),
                position_type=rng.choice(["buy", "sell"]),
            ))
        events = [_news(f"{13 + h}:{m:02d}", event=f"E{h}{m}") for h in range(8) for m in (0, 30)]

        result = analyze_hedging(trades, events, table=correlation_table, as_of=as_of)

        seen = set()
        for group in result.groups:
            assert not (group.tickets & seen)
            seen |= group.tickets

    def test_order_invariance_across_windows(self, make_trade, correlation_table, as_of):
        rng = random.Random(23)
        trades = []
        for _ in range(30):
            start = rng.randint(-30, 90)
            trades.append(make_trade(
                start,
                start + rng.randint(5, 60),
                rng.uniform(-100, 100),
                pair=rng.choice(["EURUSD", "XAUUSD", "USDJPY", "GBPUSD"]),
                position_type=rng.choice(["buy", "sell"]),
            ))
        events = [_news(time, event=f"E{time}") for time in ("13:00", "13:20", "13:40", "14:00")]

        baseline = analyze_hedging(trades, events, table=correlation_table, as_of=as_of)
        shuffled_trades = trades[:]
        rng.shuffle(shuffled_trades)
        shuffled_events = events[:]
        rng.shuffle(shuffled_events)
        reordered = analyze_hedging(shuffled_trades, shuffled_events, table=correlation_table, as_of=as_of)

        assert baseline.groups
        assert [g.chain_identifier for g in baseline.groups] == \
            [g.chain_identifier for g in reordered.groups]
        assert baseline.stats == reordered.stats

    def test_pre_resolved_event_without_date(self, make_trade, correlation_table, as_of, minutes):
        trades = [
            make_trade(0, 20, 50, position_type="buy"),
            make_trade(10, 25, -30, position_type="sell"),
        ]
        event = NewsEvent(date="", time="", currency="USD", event="Feed release", date_time=minutes(10))

        result = analyze_hedging(trades, [event], table=correlation_table, as_of=as_of)

        assert result.warnings == ()
        assert [g.chain_identifier for g in result.groups] == ["1,2"]

    def test_incomplete_news_event_skipped(self, make_trade, correlation_table, as_of):
        trades = [
            make_trade(0, 20, 50, position_type="buy"),
            make_trade(10, 25, -30, position_type="sell"),
        ]
        broken = NewsEvent(date="", time="", currency="USD", event="No date")
        garbled = NewsEvent(date="someday", time="13:00", currency="USD", event="Bad date")

        result = analyze_hedging(trades, [broken, garbled], table=correlation_table, as_of=as_of)

        assert result.mode == "news"
        assert result.groups == ()
        assert len(result.warnings) == 2


class TestMergeAndStats:
    """Merge step and aggregate statistics."""

    def test_merge_until_fixed_point(self, make_trade, as_of):
        a, b, c, d = (make_trade(i, i + 10, 10 * (i + 1)) for i in range(4))
        groups = [
            make_hedge_group([a, b], as_of),
            make_hedge_group([c, d], as_of),
            make_hedge_group([b, c], as_of),
        ]

        merged = merge_groups(groups, as_of)

        assert len(merged) == 1
        assert merged[0].chain_identifier == "1,2,3,4"
        assert len(merged[0].trades) == 4

    def test_disjoint_groups_untouched(self, make_trade, as_of):
        a, b, c, d = (make_trade(i, i + 10) for i in range(4))
        merged = merge_groups([make_hedge_group([a, b], as_of), make_hedge_group([c, d], as_of)], as_of)
        assert len(merged) == 2

    def test_stats(self, make_trade, as_of):
        groups = [
            make_hedge_group([make_trade(0, 20, 50), make_trade(10, 25, -30)], as_of),
            make_hedge_group([make_trade(60, 70, 10), make_trade(65, 75, -10),
                              make_trade(66, 80, 20)], as_of),
        ]

        stats = calculate_hedge_stats(groups)

        assert stats.total_hedge_groups == 2
        assert stats.total_hedged_trades == 5
        assert stats.total_hedge_profit == pytest.approx(80)
        assert stats.total_hedge_loss == pytest.approx(40)
        assert stats.net_hedge_profit == pytest.approx(40)
        assert stats.average_hedge_profit == pytest.approx(20)
        assert stats.hedge_efficiency == pytest.approx(80 / 120 * 100)
        assert stats.average_trades_per_group == pytest.approx(2.5)
        assert stats.news_based_hedges == 0

    def test_efficiency_without_losses(self, make_trade, as_of):
        stats = calculate_hedge_stats([make_hedge_group([make_trade(0, 20, 5), make_trade(5, 10, 5)], as_of)])
        assert stats.hedge_efficiency == 0
