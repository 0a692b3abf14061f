"""Default configuration parameters for the funded-account rule engine."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ProfitTargetParams:
    """Profit-target chain rule parameters."""
    normal_target_pct: float = 0.10                  # Target when not aggressive
    aggressive_target_pct: float = 0.20              # Target for aggressive accounts
    profit_limit_multiplier: float = 0.8             # maxAllowedProfit = target * this
    closed_pl_multiplier: float = 0.8                # Funded accounts: target = closed P/L * this

    # account type -> risk -> phase -> percentage
    account_targets: dict = field(default_factory=lambda: {
        "Flash": {"normal": {"phase1": 0.10, "phase2": 0.05},
                  "aggressive": {"phase1": 0.20, "phase2": 0.10}},
        "Legend": {"normal": {"phase1": 0.10, "phase2": 0.05},
                   "aggressive": {"phase1": 0.20, "phase2": 0.10}},
        "Black": {"normal": {"phase1": 0.10, "phase2": 0.05},
                  "aggressive": {"phase1": 0.20, "phase2": 0.10}},
        "Peak_Scalp": {"normal": {"phase1": 0.08, "phase2": 0.05},
                       "aggressive": {"phase1": 0.20, "phase2": 0.10}},
    })


@dataclass(frozen=True)
class HedgeParams:
    """Hedge detection parameters."""
    window_minutes: int = 30


@dataclass(frozen=True)
class MarginParams:
    """News-window margin usage parameters."""
    threshold_percentage: float = 0.5                # Fraction of initial balance
    window_minutes: int = 30
    account_leverage: float = 50.0                   # Used when the table has no entry
    forex_contract_size: float = 100000.0            # Fallback for 6-letter pairs without specs

    # Quoted in JPY/CAD/CHF, margin computed without the price factor
    simplified_pairs: tuple = (
        "GBPJPY", "USDJPY", "USDCAD", "USDCHF", "EURJPY",
        "CADJPY", "NZDJPY", "CHFJPY", "AUDJPY",
    )


@dataclass(frozen=True)
class StabilityParams:
    """Daily profit concentration parameters."""
    threshold: float = 20.0                          # Max % of profit from the best day


@dataclass(frozen=True)
class TimeParams:
    """News calendar time handling."""
    winter_offset_hours: int = 2
    summer_offset_hours: int = 3
    summer_start: str = "03-09"                      # MM-DD, first day on summer offset
    winter_start: str = "11-03"                      # MM-DD, first day back on winter offset
    all_day_hour: int = 12


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    profit_target: ProfitTargetParams
    hedge: HedgeParams
    margin: MarginParams
    stability: StabilityParams
    time: TimeParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        profit_target=ProfitTargetParams(),
        hedge=HedgeParams(),
        margin=MarginParams(),
        stability=StabilityParams(),
        time=TimeParams(),
    )
