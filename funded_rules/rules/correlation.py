"""
Instrument correlation table.

Static directional relations loaded from ``correlations.yaml`` (or any
mapping of the same shape), used to relate trades to news currencies and to
recognise hedges between different instruments.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..config.loader import ConfigLoader
from ..data.models import Trade
from ..data.symbols import is_future, normalize_symbol

SAME = "same"
OPPOSITE = "opposite"


@dataclass(frozen=True)
class CorrelationEntry:
    """Relations of one instrument or currency to other instruments."""
    same_direction: frozenset = frozenset()
    opposite_direction: frozenset = frozenset()
    not_same_direction: frozenset = frozenset()
    not_opposite_direction: frozenset = frozenset()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CorrelationEntry":
        def _symbols(key: str) -> frozenset:
            return frozenset(s.upper() for s in (data.get(key) or []))

        return cls(
            same_direction=_symbols("same_direction"),
            opposite_direction=_symbols("opposite_direction"),
            not_same_direction=_symbols("not_same_direction"),
            not_opposite_direction=_symbols("not_opposite_direction"),
        )


@dataclass(frozen=True)
class CurrencyRelation:
    """How a trade's instrument relates to a news currency."""
    related: bool
    direction: Optional[str] = None


UNRELATED = CurrencyRelation(related=False)


@dataclass(frozen=True)
class CorrelationTable:
    """Swappable correlation data asset."""
    entries: dict = field(default_factory=dict)     # key -> CorrelationEntry
    futures: frozenset = frozenset()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CorrelationTable":
        """Build from the ``correlations.yaml`` layout."""
        entries = {
            key.upper(): CorrelationEntry.from_dict(value or {})
            for key, value in (data.get("correlations") or {}).items()
        }
        futures = frozenset(s.upper() for s in (data.get("futures") or []))
        return cls(entries=entries, futures=futures)

    @classmethod
    def load(cls, loader: Optional[ConfigLoader] = None) -> "CorrelationTable":
        """Load the table shipped in the configuration directory."""
        loader = loader or ConfigLoader.create()
        return cls.from_dict(loader.load_correlation_data())

    def get(self, key: Optional[str]) -> Optional[CorrelationEntry]:
        if not key:
            return None
        return self.entries.get(key.upper())

    def currency_relation(self, pair: Optional[str], currency: Optional[str]) -> CurrencyRelation:
        """
        Relate an instrument to a news currency.

        Known futures relate to USD news, a symbol containing the currency
        relates in the same direction, otherwise the currency's table entry
        decides.
        """
        if not pair or not currency:
            return UNRELATED

        symbol = normalize_symbol(pair)
        cur = currency.strip().upper()

        if is_future(pair, self.futures) and cur == "USD":
            return CurrencyRelation(related=True, direction=SAME)

        if cur in symbol:
            return CurrencyRelation(related=True, direction=SAME)

        entry = self.get(cur)
        if entry is not None:
            if symbol in entry.same_direction:
                return CurrencyRelation(related=True, direction=SAME)
            if symbol in entry.opposite_direction:
                return CurrencyRelation(related=True, direction=OPPOSITE)

        return UNRELATED

    def is_currency_related(self, pair: Optional[str], currency: Optional[str]) -> bool:
        return self.currency_relation(pair, currency).related

    def _hedged_by(self, entry: Optional[CorrelationEntry], other: str, same_side: bool) -> bool:
        if entry is None:
            return False

        if same_side and other in entry.same_direction and other not in entry.not_same_direction:
            return True

        if not same_side and other in entry.opposite_direction and other not in entry.not_opposite_direction:
            return True

        return False

    def are_offsetting(self, a: Trade, b: Trade) -> bool:
        """
        Hedge relation between two trades, ignoring timing.

        Same pair with opposite directions, or different pairs related by the
        table in either direction of lookup.
        """
        dir_a, dir_b = a.direction, b.direction
        if not dir_a or not dir_b:
            return False

        sym_a, sym_b = a.symbol, b.symbol
        if not sym_a or not sym_b:
            return False

        same_side = dir_a == dir_b

        if sym_a == sym_b:
            return not same_side

        return (
            self._hedged_by(self.get(sym_a), sym_b, same_side)
            or self._hedged_by(self.get(sym_b), sym_a, same_side)
        )
