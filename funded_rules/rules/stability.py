"""Stability (daily profit concentration) rule"""

import math
from collections import defaultdict
from datetime import date
from typing import Optional, Sequence

import structlog

from ..config.defaults import StabilityParams
from ..data.models import DailyProfit, StabilityResult, Trade
from ..logging.config import get_rule_logger, log_rule_decision

logger = structlog.get_logger(__name__)
rule_logger = get_rule_logger(__name__)

RULE_NAME = "stability"


def group_daily_profits(trades: Sequence[Trade]) -> list[DailyProfit]:
    """
    Net profit per close date, sorted by date.

    Trades without a close time are not part of any day.
    """
    buckets: dict[date, list[Trade]] = defaultdict(list)
    for trade in trades:
        if trade.close_time is None:
            continue
        buckets[trade.close_time.date()].append(trade)

    return [
        DailyProfit(
            date=day,
            profit=sum(t.net_amount for t in day_trades),
            trades=tuple(sorted(day_trades, key=lambda t: (t.close_time, t.ticket))),
        )
        for day, day_trades in sorted(buckets.items())
    ]


def calculate_stability_rate(highest_daily_profit: float, total_net_profit: float) -> float:
    """
    Share of total profit earned on the best day, in percent.

    Returns 0 when there is no positive, finite total profit.
    """
    if total_net_profit is None or not math.isfinite(total_net_profit) or total_net_profit <= 0:
        return 0.0
    return highest_daily_profit / total_net_profit * 100


def required_profit_for_compliance(highest_daily_profit: float, threshold: float = 20.0) -> float:
    """Total profit at which the best day sits exactly on the threshold."""
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    return highest_daily_profit * 100 / threshold


def additional_profit_needed(total_net_profit: float, highest_daily_profit: float,
                             threshold: float = 20.0) -> float:
    """Profit still to be earned (on other days) to get back under the threshold."""
    required = required_profit_for_compliance(highest_daily_profit, threshold)
    return max(0.0, required - total_net_profit)


def stability_summary(result: StabilityResult) -> str:
    """Human readable one-paragraph summary."""
    if result.highest_daily_profit_date is None or result.total_net_profit <= 0:
        return "No positive profit recorded; stability requirement is met."

    text = (
        f"Highest daily profit of {result.highest_daily_profit:.2f} on "
        f"{result.highest_daily_profit_date.isoformat()} is {result.stability_rate:.2f}% "
        f"of total profit {result.total_net_profit:.2f} (limit {result.threshold:.0f}%)."
    )
    if result.is_compliant:
        return text + " Stability requirement is met."

    needed = additional_profit_needed(result.total_net_profit, result.highest_daily_profit, result.threshold)
    return text + f" A further {needed:.2f} of profit on other days is needed to comply."


def analyze_stability(
    trades: Sequence[Trade],
    total_net_profit: Optional[float],
    params: Optional[StabilityParams] = None,
) -> StabilityResult:
    """
    Evaluate daily profit concentration.

    Args:
        trades: Account trades
        total_net_profit: Account net profit used as the denominator
        params: Rule parameters

    Returns:
        StabilityResult; non-compliant when the best day exceeds the threshold
    """
    params = params or StabilityParams()
    daily = group_daily_profits(trades)

    if total_net_profit is None or not math.isfinite(total_net_profit):
        logger.warning("Stability skipped, unusable total profit", total_net_profit=total_net_profit)
        total_net_profit = 0.0

    highest = 0.0
    highest_date: Optional[date] = None
    for day in daily:
        if day.profit > highest:
            highest = day.profit
            highest_date = day.date

    rate = calculate_stability_rate(highest, total_net_profit)
    compliant = rate <= params.threshold

    violations: tuple[str, ...] = ()
    if not compliant and highest_date is not None:
        violations = (
            f"Highest daily profit {highest:.2f} on {highest_date.isoformat()} is "
            f"{rate:.2f}% of total profit, above {params.threshold:.0f}%",
        )

    result = StabilityResult(
        daily_profits=tuple(daily),
        highest_daily_profit=highest,
        highest_daily_profit_date=highest_date,
        total_net_profit=total_net_profit,
        stability_rate=rate,
        is_compliant=compliant,
        threshold=params.threshold,
        violations=violations,
    )

    log_rule_decision(
        rule_logger,
        RULE_NAME,
        compliant,
        f"Stability rate {rate:.2f}% against limit {params.threshold:.0f}%",
        {"trading_days": len(daily), "highest_daily_profit": highest},
    )

    return result
