"""Compliance rules: profit-target chains, hedging, margin usage and stability"""

from .correlation import CorrelationTable
from .hedging import analyze_hedging, calculate_hedge_stats, merge_groups
from .margin import analyze_margin_usage, calculate_trade_margin, consolidate_margin_violations
from .profit_target import analyze_profit_target, group_chains
from .stability import (
    additional_profit_needed,
    analyze_stability,
    required_profit_for_compliance,
    stability_summary,
)
from .temporal import intersects_window, overlaps

__all__ = [
    "CorrelationTable",
    "analyze_profit_target",
    "group_chains",
    "analyze_hedging",
    "calculate_hedge_stats",
    "merge_groups",
    "analyze_margin_usage",
    "calculate_trade_margin",
    "consolidate_margin_violations",
    "analyze_stability",
    "required_profit_for_compliance",
    "additional_profit_needed",
    "stability_summary",
    "overlaps",
    "intersects_window",
]
