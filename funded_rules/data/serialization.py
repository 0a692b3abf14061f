"""Conversion of rule results into JSON-ready records for persistence or display."""

from dataclasses import fields, is_dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

import orjson

from ..utils.time import format_timestamp


def to_record(obj: Any) -> Any:
    """
    Recursively convert dataclasses and temporal values to plain data.

    Datetimes and dates become ISO 8601 strings, timedeltas become seconds,
    sets become sorted lists.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_record(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, datetime):
        return format_timestamp(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(key): to_record(value) for key, value in obj.items()}
    if isinstance(obj, (set, frozenset)):
        return sorted(to_record(item) for item in obj)
    if isinstance(obj, (list, tuple)):
        return [to_record(item) for item in obj]
    return obj


def to_json(obj: Any, indent: bool = False) -> str:
    """Serialize a result object to a JSON string."""
    option = orjson.OPT_INDENT_2 if indent else None
    return orjson.dumps(to_record(obj), option=option).decode()
