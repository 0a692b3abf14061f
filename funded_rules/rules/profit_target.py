"""
Profit-target chain rule.

Trades are walked in open-time order and grouped into chains: a trade joins
the current chain when it opens no later than the close of any trade
already in it. A chain whose positive P/L reaches 80% of the profit target
is a violation, because the target was effectively earned in one burst of
overlapping exposure.
"""

import math
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog

from ..config.defaults import ProfitTargetParams
from ..data.models import Chain, ProfitTargetResult, Trade
from ..logging.config import get_rule_logger, log_rule_decision

logger = structlog.get_logger(__name__)
rule_logger = get_rule_logger(__name__)

RULE_NAME = "profit_target"


def resolve_target_percentage(
    params: ProfitTargetParams,
    aggressive: bool = False,
    profit_target_percentage: Optional[float] = None,
    account_type: Optional[str] = None,
    phase: Optional[str] = None,
) -> float:
    """
    Pick the profit target percentage.

    Precedence: explicit override, account-type table, then the plain
    normal/aggressive default.
    """
    if profit_target_percentage is not None:
        return profit_target_percentage

    risk = "aggressive" if aggressive else "normal"
    if account_type is not None and account_type in params.account_targets:
        targets = params.account_targets[account_type][risk]
        return targets["phase2"] if phase == "phase2" else targets["phase1"]

    if account_type is not None:
        logger.warning("Unknown account type, using default target", account_type=account_type)

    return params.aggressive_target_pct if aggressive else params.normal_target_pct


def calculate_profit_limits(
    account_balance: float,
    target_percentage: float,
    closed_trade_pl: Optional[float],
    params: ProfitTargetParams,
) -> tuple[float, float]:
    """
    Compute (profit_target, max_allowed_profit).

    Funded accounts with a positive closed-trade P/L derive the target from
    that figure instead of the balance.
    """
    if closed_trade_pl is not None and closed_trade_pl > 0:
        profit_target = closed_trade_pl * params.closed_pl_multiplier
    else:
        profit_target = account_balance * target_percentage

    return profit_target, profit_target * params.profit_limit_multiplier


def group_chains(
    trades: Sequence[Trade],
    opening_balance: float,
    as_of: Optional[datetime] = None,
) -> list[Chain]:
    """
    Partition trades into chains of temporally connected trades.

    A trade continues the current chain if its open time is <= the close
    time of any trade already in the chain. Every input trade ends up in
    exactly one chain.

    Args:
        trades: Trades in any order (not modified)
        opening_balance: Balance before the first trade
        as_of: Close time used for positions that are still open

    Returns:
        Chains in chronological order with running balances
    """
    as_of = as_of or datetime.now(timezone.utc)
    ordered = sorted(trades, key=lambda t: (t.open_time, t.ticket))

    chains: list[Chain] = []
    current: list[Trade] = []
    latest_close: Optional[datetime] = None
    total_profit = 0.0
    balance = opening_balance
    chain_opening = opening_balance

    def _close_chain() -> None:
        chains.append(Chain(
            trades=tuple(current),
            total_profit=total_profit,
            opening_balance=chain_opening,
            closing_balance=balance,
        ))

    for trade in ordered:
        # open <= any member's close is the same as open <= the latest close
        continues = bool(current) and trade.open_time <= latest_close

        if current and not continues:
            _close_chain()
            current = []
            total_profit = 0.0
            chain_opening = balance
            latest_close = None

        current.append(trade)
        if trade.amount > 0:
            total_profit += trade.amount
        balance += trade.net_amount

        close = trade.closed_at(as_of)
        if latest_close is None or close > latest_close:
            latest_close = close

    if current:
        _close_chain()

    return chains


def analyze_profit_target(
    trades: Sequence[Trade],
    account_balance: float,
    aggressive: bool = False,
    profit_target_percentage: Optional[float] = None,
    account_type: Optional[str] = None,
    phase: Optional[str] = None,
    closed_trade_pl: Optional[float] = None,
    params: Optional[ProfitTargetParams] = None,
    as_of: Optional[datetime] = None,
) -> ProfitTargetResult:
    """
    Evaluate the profit-target chain rule.

    Args:
        trades: Account trades
        account_balance: Opening balance
        aggressive: Aggressive risk profile
        profit_target_percentage: Explicit target override
        account_type: Program name used for the target table
        phase: "phase1" or "phase2"
        closed_trade_pl: Closed-trade P/L of an already funded account
        params: Rule parameters
        as_of: Close time used for positions that are still open

    Returns:
        ProfitTargetResult with all chains and the violating ones
    """
    params = params or ProfitTargetParams()
    reported_pl = closed_trade_pl if closed_trade_pl is not None else 0.0

    if not trades or account_balance is None or not math.isfinite(account_balance):
        logger.debug("Profit target skipped", trades=len(trades or ()), balance=account_balance)
        return ProfitTargetResult.neutral(
            initial_balance=account_balance if account_balance is not None else 0.0,
            total_net_profit=reported_pl,
        )

    target_pct = resolve_target_percentage(
        params, aggressive, profit_target_percentage, account_type, phase
    )
    profit_target, max_allowed_profit = calculate_profit_limits(
        account_balance, target_pct, closed_trade_pl, params
    )

    chains = group_chains(trades, account_balance, as_of)
    violations = tuple(c for c in chains if c.total_profit >= max_allowed_profit)

    result = ProfitTargetResult(
        chains=tuple(chains),
        violations=violations,
        profit_target=profit_target,
        max_allowed_profit=max_allowed_profit,
        profit_target_percentage=target_pct,
        is_compliant=not violations,
        initial_balance=account_balance,
        total_net_profit=reported_pl,
    )

    log_rule_decision(
        rule_logger,
        RULE_NAME,
        result.is_compliant,
        f"{len(violations)} of {len(chains)} chains reached {max_allowed_profit:.2f}",
        {"profit_target": profit_target, "max_allowed_profit": max_allowed_profit},
    )

    return result
