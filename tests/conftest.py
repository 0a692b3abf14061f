"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import pytest

from funded_rules.data.models import NewsEvent, Trade
from funded_rules.rules.correlation import CorrelationTable

BASE_TIME = datetime(2024, 4, 18, 10, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    """Timestamp ``minutes`` after the shared base time."""
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
def minutes() -> Callable[[float], datetime]:
    """Converter from minutes after the base time to a timestamp."""
    return at


@pytest.fixture
def as_of() -> datetime:
    """Fixed evaluation instant, one day after the base time."""
    return BASE_TIME + timedelta(days=1)


@pytest.fixture
def make_trade() -> Callable[..., Trade]:
    """Factory for trades expressed in minutes after the base time."""
    counter = {"next": 1}

    def _make(
        open_min: float,
        close_min: Optional[float],
        amount: float = 0.0,
        pair: Optional[str] = "EURUSD",
        position_type: str = "buy",
        ticket: Optional[str] = None,
        **kwargs: Any,
    ) -> Trade:
        if ticket is None:
            ticket = str(counter["next"])
            counter["next"] += 1
        return Trade(
            ticket=ticket,
            open_time=at(open_min),
            close_time=at(close_min) if close_min is not None else None,
            amount=amount,
            position_type=position_type,
            pair=pair,
            **kwargs,
        )

    return _make


@pytest.fixture
def usd_news() -> NewsEvent:
    """USD release at 10:00 UTC on the base date (13:00 local summer time)."""
    return NewsEvent(
        date="Apr 18 2024",
        time="13:00",
        currency="USD",
        event="Unemployment Claims",
        impact="High",
    )


@pytest.fixture
def correlation_table() -> CorrelationTable:
    """Packaged correlation table."""
    return CorrelationTable.load()


@pytest.fixture
def sample_trade_record() -> Dict[str, Any]:
    """Statement row as delivered by the upstream normalizer."""
    return {
        "ticket": 1001,
        "openTime": "2024-04-18T10:00:00Z",
        "closeTime": "2024-04-18T10:20:00Z",
        "profit": "50.5",
        "symbol": "EURUSD",
        "positionType": "BUY",
        "lotSize": 1.0,
        "openPrice": 1.0650,
        "commission": -3.5,
        "swap": 0,
    }


@pytest.fixture
def sample_news_record() -> Dict[str, Any]:
    """Calendar entry as delivered by the news source."""
    return {
        "date": "Apr 18 2024",
        "time": "1:00pm",
        "currency": "usd",
        "event": "Unemployment Claims",
        "impact": "High",
    }
