"""Interval tests shared by chain grouping, hedge detection and news windows"""

import heapq
from datetime import datetime
from typing import Iterator, Sequence

from ..data.models import Trade


def overlaps(a: Trade, b: Trade, as_of: datetime) -> bool:
    """
    Strict interval intersection.

    Trades that merely touch (one closes exactly when the other opens) do
    not overlap.
    """
    return a.open_time < b.closed_at(as_of) and a.closed_at(as_of) > b.open_time


def intersects_window(trade: Trade, start: datetime, end: datetime, as_of: datetime) -> bool:
    """Non-strict test of a trade's lifetime against a [start, end] window."""
    return trade.open_time <= end and trade.closed_at(as_of) >= start


def overlapping_pairs(trades: Sequence[Trade], as_of: datetime) -> Iterator[tuple[int, int]]:
    """
    Yield index pairs (i, j), i < j, of trades that strictly overlap.

    Sweeps trades in open-time order while a heap keyed on close time holds
    the still-active trades, so only candidates that can intersect are
    compared.

    Args:
        trades: Trades to scan (order is irrelevant)
        as_of: Close time used for positions that are still open

    Yields:
        Index pairs into ``trades``
    """
    order = sorted(range(len(trades)), key=lambda i: (trades[i].open_time, trades[i].ticket))
    active: list[tuple[datetime, int]] = []

    for idx in order:
        current = trades[idx]

        # Anything closed by now can never strictly overlap a later opener
        while active and active[0][0] <= current.open_time:
            heapq.heappop(active)

        for _close, other in active:
            if overlaps(trades[other], current, as_of):
                yield (min(idx, other), max(idx, other))

        heapq.heappush(active, (current.closed_at(as_of), idx))
