"""
Hedge detection.

Trades that strictly overlap and offset each other (same pair opposite
direction, or correlated pairs per the correlation table) are linked in an
undirected graph; connected components of two or more trades are hedge
groups. Detection runs per news window when events are available, or over
the whole trade set otherwise. Groups detected in different windows that
share a trade are merged until no two groups share a ticket.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence

import structlog

from ..config.defaults import HedgeParams, TimeParams
from ..data.models import HedgeAnalysisResult, HedgeGroup, HedgeStats, NewsEvent, Trade
from ..errors import DataQualityError
from ..logging.config import get_rule_logger, log_rule_decision
from ..utils.time import CalendarBracketPolicy, UtcOffsetPolicy, minutes_between
from .correlation import CorrelationTable
from .temporal import intersects_window, overlapping_pairs

logger = structlog.get_logger(__name__)
rule_logger = get_rule_logger(__name__)

RULE_NAME = "hedging"


def build_hedge_graph(
    trades: Sequence[Trade],
    table: CorrelationTable,
    as_of: datetime,
) -> dict[int, set[int]]:
    """
    Adjacency sets over trade indices.

    Overlap candidates come from the interval sweep; the hedge relation is
    only evaluated on those.
    """
    graph: dict[int, set[int]] = {i: set() for i in range(len(trades))}

    for i, j in overlapping_pairs(trades, as_of):
        if table.are_offsetting(trades[i], trades[j]):
            graph[i].add(j)
            graph[j].add(i)

    return graph


def find_connected_components(graph: dict[int, set[int]]) -> list[list[int]]:
    """Depth-first components with at least two members."""
    visited: set[int] = set()
    components: list[list[int]] = []

    for start in sorted(graph):
        if start in visited:
            continue

        component = []
        stack = [start]
        visited.add(start)
        while stack:
            node = stack.pop()
            component.append(node)
            for neighbor in sorted(graph[node]):
                if neighbor not in visited:
                    visited.add(neighbor)
                    stack.append(neighbor)

        if len(component) > 1:
            components.append(sorted(component))

    return components


def chain_identifier(trades: Iterable[Trade]) -> str:
    """Canonical identity of a group: its sorted tickets."""
    return ",".join(sorted(t.ticket for t in trades))


def make_hedge_group(
    trades: Iterable[Trade],
    as_of: datetime,
    news_event: Optional[NewsEvent] = None,
    news_date_time: Optional[datetime] = None,
) -> HedgeGroup:
    """Build a group and its aggregates from a set of trades (deduplicated by ticket)."""
    by_ticket = {t.ticket: t for t in trades}
    members = sorted(by_ticket.values(), key=lambda t: (t.open_time, t.ticket))

    total_profit = sum(t.amount for t in members if t.amount > 0)
    total_loss = abs(sum(t.amount for t in members if t.amount < 0))
    net_profit = sum(t.amount for t in members)

    start_time = members[0].open_time
    end_time = max(t.closed_at(as_of) for t in members)

    return HedgeGroup(
        trades=tuple(members),
        total_profit=total_profit,
        total_loss=total_loss,
        net_profit=net_profit,
        start_time=start_time,
        end_time=end_time,
        duration_minutes=minutes_between(start_time, end_time),
        pairs=tuple(sorted({t.symbol for t in members if t.symbol})),
        chain_identifier=chain_identifier(members),
        news_event=news_event,
        news_date_time=news_date_time,
    )


def _earliest_news(a: HedgeGroup, b: HedgeGroup) -> tuple[Optional[NewsEvent], Optional[datetime]]:
    candidates = [g for g in (a, b) if g.news_event is not None]
    if not candidates:
        return None, None
    first = min(candidates, key=lambda g: (g.news_date_time, g.news_event.key))
    return first.news_event, first.news_date_time


def merge_groups(groups: Sequence[HedgeGroup], as_of: datetime) -> list[HedgeGroup]:
    """
    Merge groups sharing at least one ticket until a fixed point.

    Each pass scans all pairs; on the first shared ticket the two groups
    are replaced by their union and the scan restarts.
    """
    merged = list(groups)

    changed = True
    while changed:
        changed = False
        for i in range(len(merged)):
            for j in range(i + 1, len(merged)):
                if merged[i].tickets & merged[j].tickets:
                    news_event, news_dt = _earliest_news(merged[i], merged[j])
                    union = make_hedge_group(
                        merged[i].trades + merged[j].trades, as_of, news_event, news_dt
                    )
                    merged[i] = union
                    del merged[j]
                    changed = True
                    break
            if changed:
                break

    return merged


def calculate_hedge_stats(groups: Sequence[HedgeGroup]) -> HedgeStats:
    """Aggregate statistics over final hedge groups."""
    total_groups = len(groups)
    if total_groups == 0:
        return HedgeStats()

    total_trades = sum(len(g.trades) for g in groups)
    total_profit = sum(g.total_profit for g in groups)
    total_loss = sum(g.total_loss for g in groups)
    net_profit = sum(g.net_profit for g in groups)

    efficiency = total_profit / (total_profit + total_loss) * 100 if total_loss > 0 else 0.0

    news_groups = [g for g in groups if g.news_event is not None]

    return HedgeStats(
        total_hedge_groups=total_groups,
        total_hedged_trades=total_trades,
        total_hedge_profit=total_profit,
        total_hedge_loss=total_loss,
        net_hedge_profit=net_profit,
        average_hedge_profit=net_profit / total_groups,
        hedge_efficiency=efficiency,
        news_based_hedges=len(news_groups),
        unique_news_events=len({g.news_event.key for g in news_groups}),
        average_trades_per_group=total_trades / total_groups,
    )


def _detect(
    candidates: Sequence[Trade],
    table: CorrelationTable,
    as_of: datetime,
    news_event: Optional[NewsEvent] = None,
    news_date_time: Optional[datetime] = None,
) -> list[HedgeGroup]:
    if len(candidates) < 2:
        return []

    graph = build_hedge_graph(candidates, table, as_of)
    return [
        make_hedge_group([candidates[i] for i in component], as_of, news_event, news_date_time)
        for component in find_connected_components(graph)
    ]


def select_window_trades(
    trades: Sequence[Trade],
    event: NewsEvent,
    start: datetime,
    end: datetime,
    table: CorrelationTable,
    as_of: datetime,
) -> list[Trade]:
    """Trades with a pair, related to the event currency, alive during the window."""
    return [
        t for t in trades
        if t.pair
        and intersects_window(t, start, end, as_of)
        and table.is_currency_related(t.pair, event.currency)
    ]


def analyze_hedging(
    trades: Sequence[Trade],
    news_events: Optional[Sequence[NewsEvent]] = None,
    window_minutes: Optional[int] = None,
    table: Optional[CorrelationTable] = None,
    params: Optional[HedgeParams] = None,
    offset_policy: Optional[UtcOffsetPolicy] = None,
    time_params: Optional[TimeParams] = None,
    as_of: Optional[datetime] = None,
) -> HedgeAnalysisResult:
    """
    Detect hedge groups.

    Args:
        trades: Account trades (not modified)
        news_events: Calendar events; when empty, detection is unwindowed
        window_minutes: Half-width of each news window
        table: Correlation table (defaults to the shipped asset)
        params: Rule parameters
        offset_policy: Resolves the calendar's UTC offset per date
        time_params: Calendar time handling
        as_of: Close time used for positions that are still open

    Returns:
        HedgeAnalysisResult with merged groups and statistics
    """
    params = params or HedgeParams()
    time_params = time_params or TimeParams()
    window_minutes = window_minutes if window_minutes is not None else params.window_minutes
    table = table or CorrelationTable.load()
    offset_policy = offset_policy or CalendarBracketPolicy.from_params(time_params)
    as_of = as_of or datetime.now(timezone.utc)

    if not trades:
        return HedgeAnalysisResult(groups=(), stats=HedgeStats(), mode="general",
                                   window_minutes=window_minutes)

    warnings: list[str] = []
    detected: list[HedgeGroup] = []
    seen: set[str] = set()

    def _collect(groups: list[HedgeGroup]) -> None:
        for group in groups:
            if group.chain_identifier not in seen:
                seen.add(group.chain_identifier)
                detected.append(group)

    if news_events:
        mode = "news"
        half_window = timedelta(minutes=window_minutes)

        resolved = []
        for event in news_events:
            if not event.currency or (event.date_time is None and (not event.date or not event.time)):
                warnings.append(f"Incomplete news event skipped: {event.event!r}")
                logger.warning("Incomplete news event skipped", news_event=event.event)
                continue

            try:
                resolved.append((event.resolve_datetime(offset_policy, time_params.all_day_hour), event))
            except DataQualityError as e:
                warnings.append(str(e))
                logger.warning("Unparseable news event skipped", news_event=event.event, error=str(e))

        # Earliest window first, so a group seen in several windows keeps its first event
        resolved.sort(key=lambda item: (item[0], item[1].key, item[1].event))

        for news_dt, event in resolved:
            start, end = news_dt - half_window, news_dt + half_window
            candidates = select_window_trades(trades, event, start, end, table, as_of)

            logger.debug(
                "News window candidates",
                news_event=event.event,
                currency=event.currency,
                candidates=len(candidates),
            )
            _collect(_detect(candidates, table, as_of, event, news_dt))
    else:
        mode = "general"
        logger.info("No news events supplied, running unwindowed hedge detection")
        _collect(_detect(list(trades), table, as_of))

    groups = merge_groups(detected, as_of)
    groups.sort(key=lambda g: (g.start_time, g.chain_identifier))

    result = HedgeAnalysisResult(
        groups=tuple(groups),
        stats=calculate_hedge_stats(groups),
        mode=mode,
        window_minutes=window_minutes,
        warnings=tuple(warnings),
    )

    log_rule_decision(
        rule_logger,
        RULE_NAME,
        result.is_compliant,
        f"{len(groups)} hedge groups detected ({mode} mode)",
        {"hedged_trades": result.stats.total_hedged_trades},
    )

    return result
