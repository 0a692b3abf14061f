"""
Record normalization for trades and news events.

Converts already-extracted statement rows and calendar entries (dicts, as
decoded from JSON) into canonical models. Broker export parsing happens
upstream; this module only checks types and required fields.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import structlog

from ..errors import DataQualityError, MalformedDataError, MissingDataError
from .models import NewsEvent, Trade

logger = structlog.get_logger(__name__)

# canonical name -> accepted record keys
_TRADE_FIELDS = {
    "ticket": ("ticket", "id", "position"),
    "open_time": ("open_time", "openTime"),
    "close_time": ("close_time", "closeTime"),
    "amount": ("amount", "profit"),
    "pair": ("pair", "symbol", "instrument"),
    "position_type": ("position_type", "positionType", "direction", "type"),
    "lot_size": ("lot_size", "lotSize", "volume"),
    "open_price": ("open_price", "openPrice"),
    "commission": ("commission",),
    "swap": ("swap",),
}


def _lookup(record: dict[str, Any], name: str) -> Any:
    for key in _TRADE_FIELDS[name]:
        if key in record and record[key] is not None and record[key] != "":
            return record[key]
    return None


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """
    Parse a datetime, ISO 8601 string or epoch milliseconds.

    Raises:
        MalformedDataError: If the value cannot be interpreted
    """
    if isinstance(value, datetime):
        return value

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise MalformedDataError(f"{field_name} is not finite", raw_data=str(value))
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip().replace("Z", "+00:00")
        for candidate in (text, text.replace(".", "-", 2)):
            try:
                return datetime.fromisoformat(candidate)
            except ValueError:
                continue

    raise MalformedDataError(
        f"Invalid timestamp for {field_name}: {value!r}",
        raw_data=str(value),
        expected_format="ISO 8601 or epoch milliseconds"
    )


def parse_number(value: Any, field_name: str, default: Optional[float] = None) -> float:
    """
    Parse a finite float.

    Raises:
        MissingDataError: If the value is absent and no default is given
        MalformedDataError: If the value is not a finite number
    """
    if value is None:
        if default is not None:
            return default
        raise MissingDataError(f"Missing numeric field {field_name}", missing_fields=[field_name])

    try:
        number = float(str(value).replace(",", "").replace(" ", "")) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as e:
        raise MalformedDataError(f"Invalid number for {field_name}: {value!r}", raw_data=str(value)) from e

    if not math.isfinite(number):
        raise MalformedDataError(f"{field_name} is not finite", raw_data=str(value))

    return number


def parse_trade_record(record: dict[str, Any]) -> Trade:
    """
    Build a Trade from a normalized statement row.

    Raises:
        MissingDataError: If ticket, open time, amount, direction, size or price is missing
        MalformedDataError: If a field has the wrong type or violates a bound
    """
    required = ("ticket", "open_time", "amount", "position_type", "lot_size", "open_price")
    missing = [name for name in required if _lookup(record, name) is None]
    if missing:
        raise MissingDataError(
            "Trade record is missing required fields",
            data_type="trade",
            missing_fields=missing,
            context={"record": record}
        )

    open_time = parse_timestamp(_lookup(record, "open_time"), "open_time")
    raw_close = _lookup(record, "close_time")
    close_time = parse_timestamp(raw_close, "close_time") if raw_close is not None else None

    trade = Trade(
        ticket=str(_lookup(record, "ticket")),
        open_time=open_time,
        close_time=close_time,
        amount=parse_number(_lookup(record, "amount"), "amount"),
        position_type=str(_lookup(record, "position_type")),
        lot_size=parse_number(_lookup(record, "lot_size"), "lot_size"),
        open_price=parse_number(_lookup(record, "open_price"), "open_price"),
        pair=_lookup(record, "pair"),
        commission=parse_number(_lookup(record, "commission"), "commission", default=0.0),
        swap=parse_number(_lookup(record, "swap"), "swap", default=0.0),
    )

    if trade.close_time is not None and trade.close_time < trade.open_time:
        raise MalformedDataError(
            "close_time precedes open_time",
            context={"ticket": trade.ticket}
        )

    if trade.lot_size <= 0 or trade.open_price <= 0:
        raise MalformedDataError(
            "lot_size and open_price must be positive",
            context={"ticket": trade.ticket}
        )

    return trade


def parse_news_record(record: dict[str, Any]) -> NewsEvent:
    """
    Build a NewsEvent from a calendar entry.

    Raises:
        MissingDataError: If date or currency is missing
    """
    missing = [name for name in ("date", "currency") if not record.get(name)]
    if missing:
        raise MissingDataError(
            "News record is missing required fields",
            data_type="news",
            missing_fields=missing,
            context={"record": record}
        )

    raw_dt = record.get("date_time") or record.get("dateTime")

    return NewsEvent(
        date=str(record["date"]),
        time=str(record.get("time") or ""),
        currency=str(record["currency"]).strip().upper(),
        event=str(record.get("event") or record.get("title") or ""),
        impact=str(record.get("impact") or ""),
        date_time=parse_timestamp(raw_dt, "date_time") if raw_dt else None,
    )


@dataclass(frozen=True)
class NormalizationResult:
    """Result of normalizing a batch of records."""
    trades: tuple[Trade, ...] = ()
    news_events: tuple[NewsEvent, ...] = ()
    rejected: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return not self.rejected


class RecordNormalizer:
    """Normalizes batches of trade and news records, skipping bad rows."""

    def normalize_trades(self, records: Iterable[dict[str, Any]]) -> NormalizationResult:
        trades = []
        rejected = []
        seen_tickets: set[str] = set()

        for index, record in enumerate(records):
            try:
                trade = parse_trade_record(record)
            except DataQualityError as e:
                logger.warning(
                    "Skipping malformed trade record",
                    index=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                rejected.append({"index": index, "kind": "trade", "reason": str(e)})
                continue

            if trade.ticket in seen_tickets:
                logger.warning("Skipping duplicate trade ticket", index=index, ticket=trade.ticket)
                rejected.append({"index": index, "kind": "trade", "reason": f"duplicate ticket {trade.ticket}"})
                continue

            seen_tickets.add(trade.ticket)
            trades.append(trade)

        return NormalizationResult(trades=tuple(trades), rejected=tuple(rejected))

    def normalize_news(self, records: Iterable[dict[str, Any]]) -> NormalizationResult:
        events = []
        rejected = []

        for index, record in enumerate(records):
            try:
                events.append(parse_news_record(record))
            except DataQualityError as e:
                logger.warning("Skipping malformed news record", index=index, error=str(e))
                rejected.append({"index": index, "kind": "news", "reason": str(e)})

        return NormalizationResult(news_events=tuple(events), rejected=tuple(rejected))
