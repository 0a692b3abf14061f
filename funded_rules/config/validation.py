"""Configuration validation utilities."""

from dataclasses import dataclass, fields
from typing import Any

from .defaults import (
    HedgeParams,
    MarginParams,
    ProfitTargetParams,
    StabilityParams,
    TimeParams,
)

_SECTIONS = {
    "profit_target": ProfitTargetParams,
    "hedge": HedgeParams,
    "margin": MarginParams,
    "stability": StabilityParams,
    "time": TimeParams,
}


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_profit_target_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate profit-target parameters."""
        errors = []

        for name in ("normal_target_pct", "aggressive_target_pct"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0 or value > 1:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number between 0 and 1",
                        value=value
                    ))

        for name in ("profit_limit_multiplier", "closed_pl_multiplier"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive number",
                        value=value
                    ))

        if "account_targets" in params and not isinstance(params["account_targets"], dict):
            errors.append(ValidationError(
                field="account_targets",
                message="Must be a mapping of account type to targets",
                value=params["account_targets"]
            ))

        return errors

    @staticmethod
    def validate_hedge_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate hedge detection parameters."""
        errors = []

        if "window_minutes" in params:
            value = params["window_minutes"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="window_minutes",
                    message="Must be a positive integer",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_margin_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate margin usage parameters."""
        errors = []

        if "threshold_percentage" in params:
            value = params["threshold_percentage"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="threshold_percentage",
                    message="Must be a positive number",
                    value=value
                ))

        if "window_minutes" in params:
            value = params["window_minutes"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="window_minutes",
                    message="Must be a positive integer",
                    value=value
                ))

        # None is allowed; it only fails once a symbol has no table entry
        if "account_leverage" in params:
            value = params["account_leverage"]
            if value is not None and (not _is_number(value) or value < 0):
                errors.append(ValidationError(
                    field="account_leverage",
                    message="Must be a non-negative number or null",
                    value=value
                ))

        if "forex_contract_size" in params:
            value = params["forex_contract_size"]
            if not _is_number(value) or value <= 0:
                errors.append(ValidationError(
                    field="forex_contract_size",
                    message="Must be a positive number",
                    value=value
                ))

        if "simplified_pairs" in params:
            value = params["simplified_pairs"]
            if not isinstance(value, (list, tuple)) or not all(isinstance(p, str) for p in value):
                errors.append(ValidationError(
                    field="simplified_pairs",
                    message="Must be a list of symbols",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_stability_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate stability rule parameters."""
        errors = []

        if "threshold" in params:
            value = params["threshold"]
            if not _is_number(value) or value <= 0 or value > 100:
                errors.append(ValidationError(
                    field="threshold",
                    message="Must be a percentage between 0 and 100",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_overrides(overrides: dict[str, Any]) -> list[ValidationError]:
        """Validate a full override mapping, including unknown keys."""
        errors = []

        for section, params in overrides.items():
            if section not in _SECTIONS:
                errors.append(ValidationError(
                    field=section,
                    message="Unknown configuration section",
                    value=params
                ))
                continue

            if not isinstance(params, dict):
                errors.append(ValidationError(
                    field=section,
                    message="Must be a mapping",
                    value=params
                ))
                continue

            known = {f.name for f in fields(_SECTIONS[section])}
            for key in params:
                if key not in known:
                    errors.append(ValidationError(
                        field=f"{section}.{key}",
                        message="Unknown configuration field",
                        value=params[key]
                    ))

        validators = {
            "profit_target": ConfigValidator.validate_profit_target_params,
            "hedge": ConfigValidator.validate_hedge_params,
            "margin": ConfigValidator.validate_margin_params,
            "stability": ConfigValidator.validate_stability_params,
        }
        for section, validator in validators.items():
            params = overrides.get(section)
            if isinstance(params, dict):
                errors.extend(validator(params))

        return errors
