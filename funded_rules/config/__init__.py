"""
Configuration module.

Frozen dataclass defaults, YAML-backed firm overrides and data assets
(correlation table, fallback leverage), and override validation.
"""

from .defaults import DefaultConfig, get_default_config
from .loader import ConfigLoader
from .validation import ConfigValidator, ValidationError

__all__ = [
    "ConfigLoader",
    "ConfigValidator",
    "DefaultConfig",
    "ValidationError",
    "get_default_config",
]
