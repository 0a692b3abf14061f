"""
Time semantics utilities for trade and news-calendar timestamps.

Trade timestamps are authoritative instants; naive values are read as UTC.
News calendar entries carry local wall-clock strings whose UTC offset is
resolved by an injectable policy so that new years or jurisdictions can be
added without touching the rules.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from ..config.defaults import TimeParams
from ..errors import MalformedDataError

# A policy maps a calendar date to the UTC offset of the news feed on that day.
UtcOffsetPolicy = Callable[[date], timedelta]

_DATE_FORMATS = (
    "%b %d %Y",      # Apr 18 2024
    "%b %d, %Y",     # Apr 18, 2024
    "%Y-%m-%d",      # 2024-04-18
    "%d/%m/%Y",      # 18/04/2024
    "%m-%d-%Y",      # 04-18-2024
)

_TIME_FORMATS = (
    "%H:%M",         # 13:30
    "%I:%M%p",       # 1:30pm
    "%I:%M %p",      # 1:30 pm
    "%H:%M:%S",
)


@dataclass(frozen=True)
class CalendarBracketPolicy:
    """
    Fixed calendar approximation of the feed's daylight-saving switch.

    Dates before ``summer_start`` or on/after ``winter_start`` use the winter
    offset; everything in between uses the summer offset. This is not real
    DST data.
    """
    winter_offset_hours: int = 2
    summer_offset_hours: int = 3
    summer_start: str = "03-09"
    winter_start: str = "11-03"

    @classmethod
    def from_params(cls, params: TimeParams) -> "CalendarBracketPolicy":
        return cls(
            winter_offset_hours=params.winter_offset_hours,
            summer_offset_hours=params.summer_offset_hours,
            summer_start=params.summer_start,
            winter_start=params.winter_start,
        )

    def __call__(self, day: date) -> timedelta:
        spring_month, spring_day = (int(part) for part in self.summer_start.split("-"))
        fall_month, fall_day = (int(part) for part in self.winter_start.split("-"))

        spring = date(day.year, spring_month, spring_day)
        fall = date(day.year, fall_month, fall_day)

        if day < spring or day >= fall:
            return timedelta(hours=self.winter_offset_hours)
        return timedelta(hours=self.summer_offset_hours)


default_offset_policy = CalendarBracketPolicy()


def as_utc(ts: datetime) -> datetime:
    """Return an aware datetime, reading naive values as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def parse_calendar_date(date_str: str) -> date:
    """
    Parse a news-calendar date string.

    Raises:
        MalformedDataError: If no supported format matches
    """
    cleaned = " ".join(date_str.strip().split())
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    raise MalformedDataError(
        f"Unrecognized calendar date: {date_str!r}",
        raw_data=date_str,
        expected_format="Mon DD YYYY | YYYY-MM-DD | DD/MM/YYYY | MM-DD-YYYY"
    )


def is_all_day(time_str: Optional[str]) -> bool:
    """True for calendar entries without a release time."""
    return not time_str or not time_str.strip() or time_str.strip().lower() == "all day"


def parse_calendar_time(time_str: Optional[str], all_day_hour: int = 12) -> tuple[int, int]:
    """
    Parse a news-calendar wall-clock time into (hour, minute).

    All-day entries resolve to ``all_day_hour``:00.

    Raises:
        MalformedDataError: If no supported format matches
    """
    if is_all_day(time_str):
        return all_day_hour, 0

    cleaned = time_str.strip().lower().replace(".", "")
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.strptime(cleaned.upper() if "m" in cleaned else cleaned, fmt)
            return parsed.hour, parsed.minute
        except ValueError:
            continue

    raise MalformedDataError(
        f"Unrecognized calendar time: {time_str!r}",
        raw_data=time_str,
        expected_format="HH:MM | h:MMam"
    )


def resolve_calendar_datetime(
    date_str: str,
    time_str: Optional[str],
    policy: UtcOffsetPolicy = default_offset_policy,
    all_day_hour: int = 12,
) -> datetime:
    """
    Convert a calendar (date, time) pair to an aware UTC datetime.

    Args:
        date_str: Calendar date string
        time_str: Calendar wall-clock time string
        policy: Resolves the feed's UTC offset for the calendar date
        all_day_hour: Hour used for all-day entries

    Returns:
        UTC datetime of the release
    """
    day = parse_calendar_date(date_str)
    hour, minute = parse_calendar_time(time_str, all_day_hour)

    local = datetime(day.year, day.month, day.day, hour, minute)
    offset = policy(day)

    return (local - offset).replace(tzinfo=timezone.utc)


def round_down_to_window(ts: datetime, window_minutes: int) -> datetime:
    """Floor a timestamp to the nearest ``window_minutes`` boundary since the epoch."""
    ts = as_utc(ts)
    bucket_seconds = window_minutes * 60
    epoch_seconds = int(ts.timestamp())
    floored = epoch_seconds - (epoch_seconds % bucket_seconds)
    return datetime.fromtimestamp(floored, tz=timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    """Elapsed minutes between two timestamps."""
    return (as_utc(end) - as_utc(start)).total_seconds() / 60.0


def format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    """ISO 8601 representation used in serialized results."""
    if ts is None:
        return None
    return ts.isoformat()
