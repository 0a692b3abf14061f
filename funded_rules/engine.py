"""
Main rule evaluation coordinator.

Runs the four compliance rules over one account's trade history:
Records → Normalization → Configuration → Rules → Report

The engine keeps only immutable reference data between calls (correlation
table, fallback leverage table); every evaluation is independent.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import structlog

from .config.loader import ConfigLoader
from .config.validation import ConfigValidator
from .data.models import (
    HedgeAnalysisResult,
    MarginAnalysisResult,
    NewsEvent,
    ProfitTargetResult,
    StabilityResult,
    Trade,
)
from .data.normalizer import RecordNormalizer
from .data.serialization import to_json, to_record
from .errors import ConfigurationError
from .reference.instruments import InstrumentCatalog, InstrumentSpec, LeverageTable
from .rules.correlation import CorrelationTable
from .rules.hedging import analyze_hedging
from .rules.margin import analyze_margin_usage
from .rules.profit_target import analyze_profit_target
from .rules.stability import analyze_stability
from .utils.time import CalendarBracketPolicy, UtcOffsetPolicy

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AccountContext:
    """Account-level inputs shared by the rules."""
    initial_balance: float
    aggressive: bool = False
    account_type: Optional[str] = None           # Flash, Legend, Black, Peak_Scalp
    phase: Optional[str] = None                  # phase1 / phase2
    profit_target_percentage: Optional[float] = None
    closed_trade_pl: Optional[float] = None
    total_net_profit: Optional[float] = None     # Defaults to the closed trades' net sum
    account_leverage: Optional[float] = None     # Defaults to the configured margin leverage


@dataclass(frozen=True)
class EvaluationReport:
    """Combined outcome of one evaluation."""
    profit_target: ProfitTargetResult
    hedging: HedgeAnalysisResult
    margin: MarginAnalysisResult
    stability: StabilityResult
    as_of: datetime
    rejected_records: tuple[dict[str, Any], ...] = ()

    @property
    def is_compliant(self) -> bool:
        return (
            self.profit_target.is_compliant
            and self.hedging.is_compliant
            and self.margin.is_compliant
            and self.stability.is_compliant
        )

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.hedging.warnings + self.margin.warnings

    def to_dict(self) -> dict[str, Any]:
        record = to_record(self)
        record["is_compliant"] = self.is_compliant
        return record

    def to_json(self, indent: bool = False) -> str:
        return to_json(self.to_dict(), indent=indent)


class RuleEvaluationEngine:
    """
    Coordinator for the trading-rule compliance checks.

    Args:
        config_dir: Directory holding rules.yaml and the data assets;
            defaults to the packaged configuration
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None) -> None:
        self.logger = logger

        self.config_loader = ConfigLoader.create(Path(config_dir) if config_dir else None)
        self.normalizer = RecordNormalizer()
        self.correlation_table = CorrelationTable.load(self.config_loader)
        self.leverage_table = LeverageTable.fallback(self.config_loader)

        self.logger.info(
            "Rule evaluation engine initialized",
            config_dir=str(self.config_loader.config_dir),
            correlation_entries=len(self.correlation_table.entries),
            leverage_entries=len(self.leverage_table),
        )

    def _resolve_specs(
        self,
        trades: Sequence[Trade],
        instrument_specs: Optional[Mapping[str, InstrumentSpec]],
        catalog: Optional[InstrumentCatalog],
    ) -> dict[str, InstrumentSpec]:
        specs: dict[str, InstrumentSpec] = {}
        if catalog is not None:
            specs.update(catalog.resolve(t.symbol for t in trades))
        for symbol, spec in (instrument_specs or {}).items():
            specs[symbol.upper()] = spec
        return specs

    def evaluate(
        self,
        trades: Sequence[Trade],
        account: AccountContext,
        news_events: Sequence[NewsEvent] = (),
        instrument_specs: Optional[Mapping[str, InstrumentSpec]] = None,
        catalog: Optional[InstrumentCatalog] = None,
        overrides: Optional[dict[str, Any]] = None,
        as_of: Optional[datetime] = None,
        leverage_table: Optional[LeverageTable] = None,
        offset_policy: Optional[UtcOffsetPolicy] = None,
    ) -> EvaluationReport:
        """
        Evaluate all rules for one account.

        Args:
            trades: Normalized trades
            account: Account context
            news_events: Calendar events for the hedge and margin rules
            instrument_specs: Contract specs keyed by symbol
            catalog: Cache used to look up specs for traded symbols
            overrides: Per-evaluation parameter overrides
            as_of: Evaluation instant; open positions close here
            leverage_table: Account leverage table (defaults to the fallback)
            offset_policy: Calendar UTC offset policy

        Returns:
            EvaluationReport

        Raises:
            ConfigurationError: If overrides are invalid or leverage is missing
        """
        if overrides:
            validation_errors = ConfigValidator.validate_overrides(overrides)
            if validation_errors:
                error_msgs = [f"{err.field}: {err.message} (got: {err.value})" for err in validation_errors]
                self.logger.error("Override validation failed", errors=error_msgs)
                raise ConfigurationError("Invalid rule overrides", errors=error_msgs)

        config = self.config_loader.build_config(overrides)
        as_of = as_of or datetime.now(timezone.utc)
        offset_policy = offset_policy or CalendarBracketPolicy.from_params(config.time)

        total_net_profit = account.total_net_profit
        if total_net_profit is None:
            total_net_profit = sum(t.net_amount for t in trades if t.is_closed)

        self.logger.info(
            "Evaluating account",
            trades=len(trades),
            news_events=len(news_events),
            initial_balance=account.initial_balance,
            account_type=account.account_type,
        )

        if account.initial_balance is None or not math.isfinite(account.initial_balance):
            self.logger.warning("Initial balance unusable", initial_balance=account.initial_balance)

        profit_target = analyze_profit_target(
            trades,
            account.initial_balance,
            aggressive=account.aggressive,
            profit_target_percentage=account.profit_target_percentage,
            account_type=account.account_type,
            phase=account.phase,
            closed_trade_pl=account.closed_trade_pl,
            params=config.profit_target,
            as_of=as_of,
        )

        hedging = analyze_hedging(
            trades,
            news_events,
            table=self.correlation_table,
            params=config.hedge,
            offset_policy=offset_policy,
            time_params=config.time,
            as_of=as_of,
        )

        margin = analyze_margin_usage(
            trades,
            account.initial_balance,
            news_events,
            account_leverage=account.account_leverage,
            leverage_table=leverage_table if leverage_table is not None else self.leverage_table,
            instrument_specs=self._resolve_specs(trades, instrument_specs, catalog),
            table=self.correlation_table,
            params=config.margin,
            offset_policy=offset_policy,
            time_params=config.time,
            as_of=as_of,
        )

        stability = analyze_stability(trades, total_net_profit, params=config.stability)

        report = EvaluationReport(
            profit_target=profit_target,
            hedging=hedging,
            margin=margin,
            stability=stability,
            as_of=as_of,
        )

        self.logger.info(
            "Account evaluation complete",
            is_compliant=report.is_compliant,
            profit_target_violations=len(profit_target.violations),
            hedge_groups=len(hedging.groups),
            margin_violations=len(margin.violations),
            stability_rate=stability.stability_rate,
        )

        return report

    def evaluate_records(
        self,
        trade_records: Iterable[dict[str, Any]],
        account: AccountContext,
        news_records: Iterable[dict[str, Any]] = (),
        **kwargs: Any,
    ) -> EvaluationReport:
        """
        Evaluate raw dict records.

        Malformed records are skipped and listed in ``rejected_records``;
        keyword arguments are passed to ``evaluate``.
        """
        trade_result = self.normalizer.normalize_trades(trade_records)
        news_result = self.normalizer.normalize_news(news_records)
        rejected = trade_result.rejected + news_result.rejected

        if rejected:
            self.logger.warning("Records rejected during normalization", rejected=len(rejected))

        report = self.evaluate(trade_result.trades, account, news_result.news_events, **kwargs)
        return replace(report, rejected_records=rejected)
