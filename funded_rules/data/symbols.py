"""Instrument symbol helpers."""

import re
from typing import Iterable, Optional

_FUTURES_SUFFIX = re.compile(r"(JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)\d{2}$")
_FOREX_PAIR = re.compile(r"^[A-Z]{6}$")


def normalize_symbol(raw: Optional[str]) -> str:
    """Upper-case a symbol and strip a trailing futures month code (DJI30SEP25 -> DJI30)."""
    if not raw:
        return ""
    return _FUTURES_SUFFIX.sub("", raw.strip().upper())


def is_future(raw: Optional[str], futures: Iterable[str]) -> bool:
    """True when the raw contract name is one of the configured futures."""
    if not raw:
        return False
    return raw.strip().upper() in {f.upper() for f in futures}


def is_forex_pair(symbol: Optional[str]) -> bool:
    """Six-letter currency pair such as EURUSD."""
    return bool(symbol) and bool(_FOREX_PAIR.match(symbol.strip().upper()))
