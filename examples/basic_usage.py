#!/usr/bin/env python3
"""
Basic Usage Example - Funded Rules Evaluation Engine

This script demonstrates the basic usage of the rule evaluation engine
with a small simulated account history. It shows how to:
- Initialize the engine
- Feed normalized statement rows and calendar entries
- Supply instrument metadata through a cached catalog
- Read the per-rule results and the JSON report

Run: python examples/basic_usage.py
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from funded_rules.engine import AccountContext, RuleEvaluationEngine
from funded_rules.logging import configure_logging
from funded_rules.reference.instruments import InstrumentCatalog, InstrumentSpec

START = datetime(2024, 4, 18, 9, 45, tzinfo=timezone.utc)

# Stand-in for the broker's symbol metadata service
INSTRUMENT_METADATA = {
    "XAUUSD": {"symbol": "XAUUSD", "contractSize": "100", "currencyBase": "XAU"},
    "USDJPY": {"symbol": "USDJPY", "contractSize": "100000", "currencyBase": "USD"},
}


def create_trade_record(ticket: int, open_min: int, close_min: int, profit: float,
                        symbol: str, direction: str, lots: float, price: float) -> Dict[str, Any]:
    """Create a statement row as the upstream normalizer delivers it."""
    return {
        "ticket": ticket,
        "openTime": (START + timedelta(minutes=open_min)).isoformat(),
        "closeTime": (START + timedelta(minutes=close_min)).isoformat(),
        "profit": profit,
        "symbol": symbol,
        "positionType": direction,
        "lotSize": lots,
        "openPrice": price,
        "commission": -lots * 7,
        "swap": 0,
    }


def create_sample_history() -> List[Dict[str, Any]]:
    """A day of trading around a US release, followed by a quiet week."""
    records = [
        create_trade_record(1, 0, 25, 420.0, "EURUSD", "BUY", 1.0, 1.0652),
        create_trade_record(2, 5, 30, -180.0, "EURUSD", "SELL", 1.0, 1.0655),
        create_trade_record(3, 10, 20, 350.0, "XAUUSD", "BUY", 0.5, 2385.40),
        create_trade_record(4, 12, 40, 90.0, "USDJPY", "BUY", 0.8, 154.21),
    ]
    for day in range(1, 6):
        base = day * 24 * 60
        records.append(create_trade_record(10 + day, base, base + 90, 60.0, "GBPUSD", "BUY", 0.2, 1.2480))
    return records


def create_calendar() -> List[Dict[str, Any]]:
    """Calendar entries in the feed's local time."""
    return [
        {"date": "Apr 18 2024", "time": "1:00pm", "currency": "USD",
         "event": "Unemployment Claims", "impact": "High"},
        {"date": "Apr 18 2024", "time": "1:00pm", "currency": "USD",
         "event": "Philly Fed Manufacturing Index", "impact": "High"},
        {"date": "Apr 19 2024", "time": "All Day", "currency": "JPY",
         "event": "Bank Holiday", "impact": "Low"},
    ]


def load_instrument(symbol: str) -> Optional[InstrumentSpec]:
    """Loader behind the catalog cache."""
    data = INSTRUMENT_METADATA.get(symbol)
    return InstrumentSpec.from_dict(data) if data else None


def print_report(report) -> None:
    """Print a short per-rule summary."""
    print("\n📋 Evaluation summary")
    print("=" * 60)

    pt = report.profit_target
    print(f"Profit target: target={pt.profit_target:.2f} max_allowed={pt.max_allowed_profit:.2f} "
          f"chains={len(pt.chains)} violations={len(pt.violations)}")
    for chain in pt.violations:
        print(f"  • chain {chain.tickets}: profit {chain.total_profit:.2f}, "
              f"closing balance {chain.closing_balance:.2f}")

    hedging = report.hedging
    print(f"Hedging ({hedging.mode}): groups={hedging.stats.total_hedge_groups} "
          f"net={hedging.stats.net_hedge_profit:.2f}")
    for group in hedging.groups:
        print(f"  • {group.chain_identifier} pairs={list(group.pairs)} net={group.net_profit:.2f}")

    margin = report.margin
    print(f"Margin: threshold={margin.threshold:.2f} violations={len(margin.violations)} "
          f"consolidated={len(margin.consolidated_violations)}")
    for violation in margin.violations:
        print(f"  • {violation.news_event.event}: {violation.total_margin_used:.2f} "
              f"({violation.violation_percentage:.1f}% of balance)")

    stability = report.stability
    print(f"Stability: rate={stability.stability_rate:.2f}% compliant={stability.is_compliant}")

    for warning in report.warnings:
        print(f"⚠️  {warning}")

    print(f"\nOverall compliant: {report.is_compliant}")


def main():
    """Run the example."""
    configure_logging(level="WARNING")

    print("🚀 Funded Rules - Basic Usage Example")
    print("=" * 60)

    engine = RuleEvaluationEngine()
    catalog = InstrumentCatalog(load_instrument, ttl_seconds=600)
    account = AccountContext(initial_balance=10000, account_type="Flash", phase="phase1")

    report = engine.evaluate_records(
        create_sample_history(),
        account,
        create_calendar(),
        catalog=catalog,
        as_of=START + timedelta(days=7),
    )

    print_report(report)

    print("\n📄 JSON report (truncated)")
    print(json.dumps(report.to_dict()["stability"], indent=2)[:800])


if __name__ == "__main__":
    main()
