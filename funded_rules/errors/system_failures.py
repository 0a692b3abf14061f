"""
System failure error classifications for unrecoverable errors.

These exceptions represent configuration problems that make an evaluation
meaningless. They are surfaced to the caller instead of being degraded.
"""

from typing import Optional, Dict, Any


class SystemFailureError(Exception):
    """Base class for unrecoverable failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class ConfigurationError(SystemFailureError):
    """Rule configuration is invalid."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class LeverageConfigurationError(ConfigurationError):
    """No leverage can be resolved for an instrument."""

    def __init__(self, message: str, symbol: Optional[str] = None,
                 account_leverage: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.account_leverage = account_leverage
