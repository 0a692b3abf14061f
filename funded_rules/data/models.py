"""
Canonical data models for trades, news events and rule results.

This module defines immutable value objects. Every result is recomputed per
evaluation; nothing here carries state between calls.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

from ..utils.time import (
    UtcOffsetPolicy,
    as_utc,
    default_offset_policy,
    resolve_calendar_datetime,
)
from .serialization import to_record


@dataclass(frozen=True)
class Trade:
    """Closed (or still open) execution from an account statement."""
    ticket: str
    open_time: datetime
    close_time: Optional[datetime]   # None while the position is open
    amount: float                    # Signed realized P/L
    position_type: str               # "buy" / "sell", any case
    lot_size: float = 0.0
    open_price: float = 0.0
    pair: Optional[str] = None
    commission: float = 0.0          # Negative for cost
    swap: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "ticket", str(self.ticket))
        object.__setattr__(self, "open_time", as_utc(self.open_time))
        if self.close_time is not None:
            object.__setattr__(self, "close_time", as_utc(self.close_time))

    @property
    def direction(self) -> str:
        """Normalized position direction."""
        return (self.position_type or "").strip().lower()

    @property
    def symbol(self) -> str:
        """Upper-cased instrument symbol, empty when unknown."""
        return (self.pair or "").strip().upper()

    @property
    def net_amount(self) -> float:
        """Net balance effect: profit plus swap plus commission."""
        return self.amount + self.swap + self.commission

    @property
    def is_closed(self) -> bool:
        return self.close_time is not None

    @property
    def duration(self) -> Optional[timedelta]:
        """Holding time, None while the position is open."""
        if self.close_time is None:
            return None
        return self.close_time - self.open_time

    def closed_at(self, as_of: datetime) -> datetime:
        """Close time, or ``as_of`` for a position that is still open."""
        return self.close_time if self.close_time is not None else as_utc(as_of)


@dataclass(frozen=True)
class NewsEvent:
    """Economic calendar release as delivered by the calendar source."""
    date: str                        # Local calendar date, e.g. "Apr 18 2024"
    time: str                        # Local wall-clock time, e.g. "14:30" or "All Day"
    currency: str                    # 3-letter code
    event: str
    impact: str = ""
    date_time: Optional[datetime] = None   # Pre-resolved UTC instant, if the source has one

    def resolve_datetime(self, policy: UtcOffsetPolicy = default_offset_policy,
                         all_day_hour: int = 12) -> datetime:
        """
        UTC instant of the release.

        Raises:
            MalformedDataError: If date or time cannot be parsed
        """
        if self.date_time is not None:
            return as_utc(self.date_time)
        return resolve_calendar_datetime(self.date, self.time, policy, all_day_hour)

    @property
    def key(self) -> str:
        return f"{self.date}_{self.time}_{self.currency}"


@dataclass(frozen=True)
class Chain:
    """Run of temporally connected trades evaluated together."""
    trades: tuple[Trade, ...]
    total_profit: float              # Sum of strictly positive amounts
    opening_balance: float
    closing_balance: float

    @property
    def net_effect(self) -> float:
        return self.closing_balance - self.opening_balance

    @property
    def tickets(self) -> list[str]:
        return [t.ticket for t in self.trades]


@dataclass(frozen=True)
class ProfitTargetResult:
    """Outcome of the profit-target chain rule."""
    chains: tuple[Chain, ...]
    violations: tuple[Chain, ...]
    profit_target: float
    max_allowed_profit: float
    profit_target_percentage: float
    is_compliant: bool
    initial_balance: float
    total_net_profit: float = 0.0

    @classmethod
    def neutral(cls, initial_balance: float = 0.0, total_net_profit: float = 0.0):
        """Compliant zero-result for empty or unusable input."""
        return cls(
            chains=(),
            violations=(),
            profit_target=0.0,
            max_allowed_profit=0.0,
            profit_target_percentage=0.0,
            is_compliant=True,
            initial_balance=initial_balance,
            total_net_profit=total_net_profit,
        )

    def to_dict(self) -> dict[str, Any]:
        return to_record(self)


@dataclass(frozen=True)
class HedgeGroup:
    """Connected set of mutually offsetting trades."""
    trades: tuple[Trade, ...]
    total_profit: float
    total_loss: float                # Absolute value of summed losses
    net_profit: float
    start_time: datetime
    end_time: datetime
    duration_minutes: float
    pairs: tuple[str, ...]
    chain_identifier: str            # Sorted ticket list, comma separated
    news_event: Optional[NewsEvent] = None
    news_date_time: Optional[datetime] = None

    @property
    def tickets(self) -> frozenset:
        return frozenset(t.ticket for t in self.trades)


@dataclass(frozen=True)
class HedgeStats:
    """Aggregate statistics over final hedge groups."""
    total_hedge_groups: int = 0
    total_hedged_trades: int = 0
    total_hedge_profit: float = 0.0
    total_hedge_loss: float = 0.0
    net_hedge_profit: float = 0.0
    average_hedge_profit: float = 0.0
    hedge_efficiency: float = 0.0    # Percentage
    news_based_hedges: int = 0
    unique_news_events: int = 0
    average_trades_per_group: float = 0.0


@dataclass(frozen=True)
class HedgeAnalysisResult:
    """Outcome of hedge detection."""
    groups: tuple[HedgeGroup, ...]
    stats: HedgeStats
    mode: str                        # "news" or "general"
    window_minutes: int
    warnings: tuple[str, ...] = ()

    @property
    def is_compliant(self) -> bool:
        return not self.groups

    def to_dict(self) -> dict[str, Any]:
        return to_record(self)


@dataclass(frozen=True)
class MarginViolation:
    """News window whose summed margin exceeded the threshold."""
    news_event: NewsEvent            # Titles of a combined window are joined
    news_events: tuple[NewsEvent, ...]
    window_start: datetime
    window_end: datetime
    trades: tuple[Trade, ...]
    trade_margins: dict              # ticket -> margin
    total_margin_used: float
    threshold: float
    violation_percentage: float


@dataclass(frozen=True)
class ConsolidatedMarginViolation:
    """Overlapping violation windows merged with margin counted once per ticket."""
    news_events: tuple[NewsEvent, ...]
    window_start: datetime
    window_end: datetime
    trades: tuple[Trade, ...]
    trade_margins: dict              # ticket -> margin
    total_margin_used: float
    threshold: float
    violation_percentage: float

    @property
    def event_title(self) -> str:
        return ", ".join(e.event for e in self.news_events)


@dataclass(frozen=True)
class MarginAnalysisResult:
    """Outcome of the margin usage rule in both of its variants."""
    violations: tuple[MarginViolation, ...]
    consolidated_violations: tuple[ConsolidatedMarginViolation, ...]
    threshold: float
    initial_balance: float
    news_events_count: int = 0
    warnings: tuple[str, ...] = ()

    @property
    def is_compliant(self) -> bool:
        return not self.violations

    @classmethod
    def neutral(cls, initial_balance: float = 0.0, warnings: tuple[str, ...] = ()):
        return cls(
            violations=(),
            consolidated_violations=(),
            threshold=0.0,
            initial_balance=initial_balance,
            warnings=warnings,
        )

    def to_dict(self) -> dict[str, Any]:
        return to_record(self)


@dataclass(frozen=True)
class DailyProfit:
    """Net profit realized on one calendar day."""
    date: date
    profit: float
    trades: tuple[Trade, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StabilityResult:
    """Outcome of the daily profit concentration rule."""
    daily_profits: tuple[DailyProfit, ...]
    highest_daily_profit: float
    highest_daily_profit_date: Optional[date]
    total_net_profit: float
    stability_rate: float
    is_compliant: bool
    threshold: float
    violations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return to_record(self)
