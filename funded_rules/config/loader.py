"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .defaults import (
    DefaultConfig,
    HedgeParams,
    MarginParams,
    ProfitTargetParams,
    StabilityParams,
    TimeParams,
    get_default_config,
)


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        path = self.config_dir / filename

        if not path.exists():
            return {}

        with open(path) as f:
            data = yaml.safe_load(f)

        return data or {}

    def load_rules_config(self) -> dict[str, Any]:
        """Load firm-level rule overrides from rules.yaml."""
        return self._load_yaml("rules.yaml")

    def load_correlation_data(self) -> dict[str, Any]:
        """Load the instrument correlation table asset."""
        return self._load_yaml("correlations.yaml")

    def load_leverage_data(self) -> dict[str, float]:
        """Load the fallback leverage table asset."""
        return self._load_yaml("leverage.yaml").get("leverage", {})

    def merge_config(
        self,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Per-evaluation overrides (highest priority)
        2. Firm-level rules.yaml
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_rules_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def build_config(self, overrides: Optional[dict[str, Any]] = None) -> DefaultConfig:
        """Merge configuration and rebuild the typed parameter objects."""
        merged = self.merge_config(overrides)

        margin = dict(merged["margin"])
        margin["simplified_pairs"] = tuple(margin.get("simplified_pairs", ()))

        return DefaultConfig(
            profit_target=ProfitTargetParams(**merged["profit_target"]),
            hedge=HedgeParams(**merged["hedge"]),
            margin=MarginParams(**margin),
            stability=StabilityParams(**merged["stability"]),
            time=TimeParams(**merged["time"]),
        )

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
