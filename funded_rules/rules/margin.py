"""
Margin usage around news releases.

Releases of the same currency that fall in the same window bucket are
combined into one window. The margin of every related trade alive during
the window is summed and compared with a fraction of the initial balance.

Two result variants are produced:

* ``violations``: detection pass, raw per-window sums. A trade alive in
  several windows counts in each of them.
* ``consolidated_violations``: presentation pass. Violation windows that
  overlap are clustered and each ticket's margin is counted once before the
  sum is compared with the threshold again.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Sequence

import structlog

from ..config.defaults import MarginParams, TimeParams
from ..data.models import (
    ConsolidatedMarginViolation,
    MarginAnalysisResult,
    MarginViolation,
    NewsEvent,
    Trade,
)
from ..data.symbols import is_forex_pair
from ..errors import DataQualityError, GracefulDegradationError, LeverageConfigurationError
from ..logging.config import get_rule_logger, log_rule_decision
from ..reference.instruments import InstrumentSpec, LeverageTable
from ..utils.time import (
    CalendarBracketPolicy,
    UtcOffsetPolicy,
    is_all_day,
    round_down_to_window,
)
from .correlation import CorrelationTable
from .temporal import intersects_window

logger = structlog.get_logger(__name__)
rule_logger = get_rule_logger(__name__)

RULE_NAME = "margin_usage"


def resolve_leverage(
    symbol: str,
    leverage_table: LeverageTable,
    account_leverage: Optional[float],
) -> float:
    """
    Leverage for a symbol: table entry, else the account leverage.

    Raises:
        LeverageConfigurationError: If neither is available
    """
    leverage = leverage_table.lookup(symbol)
    if leverage:
        return leverage

    if not account_leverage:
        raise LeverageConfigurationError(
            f"No leverage for {symbol} and no account leverage configured",
            symbol=symbol,
            account_leverage=account_leverage,
        )

    return account_leverage


def calculate_trade_margin(
    trade: Trade,
    leverage: float,
    spec: Optional[InstrumentSpec] = None,
    params: Optional[MarginParams] = None,
) -> float:
    """
    Margin reserved by one trade.

    Standard: lots * contract size * open price / leverage. Pairs quoted in
    JPY/CAD/CHF on the simplified list drop the price factor. Six-letter
    pairs without a spec use the standard forex contract size.

    Raises:
        GracefulDegradationError: If the instrument has no usable contract
            size, or the trade has no size or price to price it with
    """
    params = params or MarginParams()
    symbol = trade.symbol

    if trade.lot_size <= 0:
        raise GracefulDegradationError(
            f"No lot size for trade {trade.ticket}",
            degraded_functionality="margin",
            fallback_strategy="zero margin",
        )

    if spec is None:
        if is_forex_pair(symbol):
            return trade.lot_size * params.forex_contract_size / leverage
        raise GracefulDegradationError(
            f"No contract specification for {symbol or trade.ticket}",
            degraded_functionality="margin",
            fallback_strategy="zero margin",
        )

    contract_size = spec.contract_size_value()

    if symbol in params.simplified_pairs:
        return trade.lot_size * contract_size / leverage

    if trade.open_price <= 0:
        raise GracefulDegradationError(
            f"No open price for trade {trade.ticket}",
            degraded_functionality="margin",
            fallback_strategy="zero margin",
        )

    return trade.lot_size * contract_size * trade.open_price / leverage


def prepare_news_windows(
    news_events: Sequence[NewsEvent],
    window_minutes: int,
    offset_policy: UtcOffsetPolicy,
    time_params: TimeParams,
    warnings: list[str],
) -> list[tuple[datetime, str, list[NewsEvent]]]:
    """
    Combine simultaneous releases.

    Events are keyed by currency and their time floored to the window size;
    each combined window is anchored on its earliest release.

    Returns:
        (anchor time, currency, events) per combined window
    """
    timed: list[tuple[datetime, NewsEvent]] = []

    for event in news_events:
        if event.date_time is None and is_all_day(event.time):
            continue
        if "tentative" in (event.event or "").lower() or "tentative" in (event.time or "").lower():
            continue
        if not event.currency:
            warnings.append(f"News event without currency skipped: {event.event!r}")
            continue
        try:
            timed.append((event.resolve_datetime(offset_policy, time_params.all_day_hour), event))
        except DataQualityError as e:
            warnings.append(str(e))
            logger.warning("Unparseable news event skipped", news_event=event.event, error=str(e))

    timed.sort(key=lambda item: (item[0], item[1].currency, item[1].event))

    buckets: dict[tuple[str, datetime], tuple[datetime, str, list[NewsEvent]]] = {}
    for event_dt, event in timed:
        currency = event.currency.upper()
        key = (currency, round_down_to_window(event_dt, window_minutes))
        if key not in buckets:
            buckets[key] = (event_dt, currency, [])
        buckets[key][2].append(event)

    return list(buckets.values())


def consolidate_margin_violations(
    violations: Sequence[MarginViolation],
    initial_balance: float,
) -> list[ConsolidatedMarginViolation]:
    """
    Presentation variant of the margin rule.

    Violations whose windows overlap are clustered; within a cluster each
    ticket's margin is counted once and the total is compared with the
    threshold again.
    """
    clusters: list[list[MarginViolation]] = []
    cluster_end: Optional[datetime] = None

    for violation in sorted(violations, key=lambda v: (v.window_start, v.window_end)):
        if clusters and violation.window_start <= cluster_end:
            clusters[-1].append(violation)
            cluster_end = max(cluster_end, violation.window_end)
        else:
            clusters.append([violation])
            cluster_end = violation.window_end

    consolidated = []
    for cluster in clusters:
        margins: dict[str, float] = {}
        trades: dict[str, Trade] = {}
        events: dict[str, NewsEvent] = {}

        for violation in cluster:
            for trade in violation.trades:
                trades.setdefault(trade.ticket, trade)
                margins.setdefault(trade.ticket, violation.trade_margins.get(trade.ticket, 0.0))
            for event in violation.news_events:
                events.setdefault(event.key + event.event, event)

        total = sum(margins.values())
        threshold = cluster[0].threshold

        if total > threshold:
            consolidated.append(ConsolidatedMarginViolation(
                news_events=tuple(events.values()),
                window_start=min(v.window_start for v in cluster),
                window_end=max(v.window_end for v in cluster),
                trades=tuple(sorted(trades.values(), key=lambda t: (t.open_time, t.ticket))),
                trade_margins=margins,
                total_margin_used=total,
                threshold=threshold,
                violation_percentage=total / initial_balance * 100,
            ))

    return consolidated


def analyze_margin_usage(
    trades: Sequence[Trade],
    initial_balance: float,
    news_events: Sequence[NewsEvent],
    threshold_percentage: Optional[float] = None,
    window_minutes: Optional[int] = None,
    account_leverage: Optional[float] = None,
    leverage_table: Optional[LeverageTable] = None,
    instrument_specs: Optional[Mapping[str, InstrumentSpec]] = None,
    table: Optional[CorrelationTable] = None,
    params: Optional[MarginParams] = None,
    offset_policy: Optional[UtcOffsetPolicy] = None,
    time_params: Optional[TimeParams] = None,
    as_of: Optional[datetime] = None,
) -> MarginAnalysisResult:
    """
    Evaluate margin usage inside news windows.

    Args:
        trades: Account trades (not modified)
        initial_balance: Opening balance
        news_events: Calendar events
        threshold_percentage: Fraction of the balance allowed as margin
        window_minutes: Half-width of each news window
        account_leverage: Leverage for symbols missing from the table
        leverage_table: Per-symbol leverage (defaults to the shipped fallback)
        instrument_specs: Contract specs keyed by upper-case symbol
        table: Correlation table used to relate trades to currencies
        params: Rule parameters
        offset_policy: Resolves the calendar's UTC offset per date
        time_params: Calendar time handling
        as_of: Close time used for positions that are still open

    Returns:
        MarginAnalysisResult with both violation variants

    Raises:
        LeverageConfigurationError: If a related trade has no leverage at all
    """
    params = params or MarginParams()
    time_params = time_params or TimeParams()
    threshold_percentage = (threshold_percentage if threshold_percentage is not None
                            else params.threshold_percentage)
    window_minutes = window_minutes if window_minutes is not None else params.window_minutes
    account_leverage = account_leverage if account_leverage is not None else params.account_leverage
    leverage_table = leverage_table if leverage_table is not None else LeverageTable.fallback()
    instrument_specs = {k.upper(): v for k, v in (instrument_specs or {}).items()}
    table = table or CorrelationTable.load()
    offset_policy = offset_policy or CalendarBracketPolicy.from_params(time_params)
    as_of = as_of or datetime.now(timezone.utc)

    if initial_balance is None or not math.isfinite(initial_balance) or initial_balance <= 0:
        logger.warning("Margin analysis skipped, unusable balance", initial_balance=initial_balance)
        return MarginAnalysisResult.neutral(
            initial_balance=initial_balance if initial_balance is not None else 0.0,
            warnings=(f"Unusable initial balance: {initial_balance!r}",),
        )

    threshold = initial_balance * threshold_percentage
    warnings: list[str] = []

    if not trades or not news_events:
        return MarginAnalysisResult(
            violations=(),
            consolidated_violations=(),
            threshold=threshold,
            initial_balance=initial_balance,
            news_events_count=len(news_events or ()),
        )

    windows = prepare_news_windows(news_events, window_minutes, offset_policy, time_params, warnings)
    half_window = timedelta(minutes=window_minutes)
    margin_cache: dict[str, float] = {}
    degraded_symbols: set[str] = set()

    def _margin(trade: Trade) -> float:
        if trade.ticket in margin_cache:
            return margin_cache[trade.ticket]

        leverage = resolve_leverage(trade.symbol, leverage_table, account_leverage)
        try:
            margin = calculate_trade_margin(trade, leverage, instrument_specs.get(trade.symbol), params)
        except GracefulDegradationError as e:
            if trade.symbol not in degraded_symbols:
                degraded_symbols.add(trade.symbol)
                warnings.append(str(e))
                logger.warning("Zero margin for instrument", symbol=trade.symbol, error=str(e))
            margin = 0.0

        margin_cache[trade.ticket] = margin
        return margin

    violations = []
    for anchor, currency, events in windows:
        start, end = anchor - half_window, anchor + half_window

        affected = [
            t for t in trades
            if t.symbol
            and table.is_currency_related(t.symbol, currency)
            and intersects_window(t, start, end, as_of)
        ]
        if not affected:
            continue

        trade_margins = {t.ticket: _margin(t) for t in affected}
        total = sum(trade_margins.values())

        if total > threshold:
            title = ", ".join(e.event for e in events)
            violations.append(MarginViolation(
                news_event=NewsEvent(
                    date=events[0].date,
                    time=events[0].time,
                    currency=currency,
                    event=title,
                    impact=events[0].impact,
                    date_time=anchor,
                ),
                news_events=tuple(events),
                window_start=start,
                window_end=end,
                trades=tuple(sorted(affected, key=lambda t: (t.open_time, t.ticket))),
                trade_margins=trade_margins,
                total_margin_used=total,
                threshold=threshold,
                violation_percentage=total / initial_balance * 100,
            ))
            logger.debug("Margin window violation", news_event=title, total_margin=total, threshold=threshold)

    result = MarginAnalysisResult(
        violations=tuple(violations),
        consolidated_violations=tuple(consolidate_margin_violations(violations, initial_balance)),
        threshold=threshold,
        initial_balance=initial_balance,
        news_events_count=sum(len(w[2]) for w in windows),
        warnings=tuple(warnings),
    )

    log_rule_decision(
        rule_logger,
        RULE_NAME,
        result.is_compliant,
        f"{len(violations)} news windows above margin threshold {threshold:.2f}",
        {"windows": len(windows), "consolidated": len(result.consolidated_violations)},
    )

    return result
