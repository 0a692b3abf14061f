"""
Instrument reference data: leverage table, contract specifications and a
cache around the external metadata source.

Fetching is done by the caller; this module only resolves already-delivered
data and defines what happens when it is missing.
"""

import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog

from ..config.loader import ConfigLoader
from ..errors import GracefulDegradationError

logger = structlog.get_logger(__name__)

_NO_LETTERS = re.compile(r"^[^A-Z]+$")


@dataclass(frozen=True)
class InstrumentSpec:
    """Symbol metadata as delivered by the instrument source."""
    symbol: str
    contract_size: Union[str, float, None]
    currency_base: str = ""
    margin_initial_buy: Union[str, float, None] = None
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstrumentSpec":
        return cls(
            symbol=str(data.get("symbol", "")).upper(),
            contract_size=data.get("contract_size", data.get("contractSize")),
            currency_base=str(data.get("currency_base", data.get("currencyBase", "")) or ""),
            margin_initial_buy=data.get("margin_initial_buy", data.get("marginInitialBuy")),
            description=str(data.get("description", "") or ""),
        )

    def contract_size_value(self) -> float:
        """
        Numeric contract size.

        Raises:
            GracefulDegradationError: If the delivered value is not a positive number
        """
        try:
            value = float(self.contract_size)
        except (TypeError, ValueError) as e:
            raise GracefulDegradationError(
                f"Invalid contract size for {self.symbol}: {self.contract_size!r}",
                degraded_functionality="margin",
                fallback_strategy="zero margin",
            ) from e

        if value != value or value <= 0:
            raise GracefulDegradationError(
                f"Invalid contract size for {self.symbol}: {self.contract_size!r}",
                degraded_functionality="margin",
                fallback_strategy="zero margin",
            )
        return value


class LeverageTable:
    """Per-symbol leverage with suffix-tolerant lookup."""

    def __init__(self, leverage: Optional[Mapping[str, float]] = None):
        self._leverage: dict[str, float] = {}
        for symbol, value in (leverage or {}).items():
            try:
                number = float(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid leverage entry", symbol=symbol, leverage=value)
                continue
            if number > 0:
                self._leverage[str(symbol).upper()] = number

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "LeverageTable":
        """Build from ``[{"pair": ..., "leverage": ...}]`` records."""
        return cls({
            r["pair"]: r["leverage"]
            for r in records
            if r.get("pair") and r.get("leverage")
        })

    @classmethod
    def fallback(cls, loader: Optional[ConfigLoader] = None) -> "LeverageTable":
        """Table shipped in ``leverage.yaml``."""
        loader = loader or ConfigLoader.create()
        return cls(loader.load_leverage_data())

    def __len__(self) -> int:
        return len(self._leverage)

    def lookup(self, symbol: str) -> Optional[float]:
        """
        Leverage for a symbol.

        Exact match first, then a table key that starts with the symbol and
        whose remainder contains no letters (``US30`` matches ``US30.5``).
        """
        upper = symbol.upper()
        if upper in self._leverage:
            return self._leverage[upper]

        for key in sorted(self._leverage):
            if key.startswith(upper) and _NO_LETTERS.match(key[len(upper):] or "-"):
                logger.debug("Suffix leverage match", symbol=upper, matched=key)
                return self._leverage[key]

        return None


SpecLoader = Callable[[str], Optional[InstrumentSpec]]


class InstrumentCatalog:
    """
    Cache of instrument specs in front of a caller-supplied loader.

    Entries expire after ``ttl_seconds`` and can be dropped explicitly with
    ``invalidate``. Loader failures are cached as missing so that one broken
    symbol does not hammer the source.
    """

    def __init__(self, loader: SpecLoader, ttl_seconds: float = 3600.0,
                 clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Optional[InstrumentSpec]]] = {}
        self._lock = threading.Lock()

    def get(self, symbol: str) -> Optional[InstrumentSpec]:
        key = symbol.upper()
        now = self._clock()

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None and now - cached[0] < self._ttl:
                return cached[1]

        try:
            spec = self._loader(key)
        except Exception as e:
            logger.warning("Instrument spec lookup failed", symbol=key, error=str(e))
            spec = None

        with self._lock:
            self._entries[key] = (now, spec)

        return spec

    def resolve(self, symbols: Iterable[str]) -> dict[str, InstrumentSpec]:
        """Specs for the given symbols, omitting those the source does not know."""
        resolved = {}
        for symbol in sorted({s.upper() for s in symbols if s}):
            spec = self.get(symbol)
            if spec is not None:
                resolved[symbol] = spec
        return resolved

    def invalidate(self, symbol: Optional[str] = None) -> None:
        """Drop one cached symbol, or everything when no symbol is given."""
        with self._lock:
            if symbol is None:
                self._entries.clear()
            else:
                self._entries.pop(symbol.upper(), None)
