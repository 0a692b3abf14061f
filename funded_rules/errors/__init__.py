"""
Error classification system for rule evaluation.

Data quality errors are recoverable and skip a single record, degradation
errors reduce accuracy, and system failures stop the evaluation.
"""

from .data_quality import (
    DataQualityError,
    MissingDataError,
    MalformedDataError,
)
from .system_failures import (
    SystemFailureError,
    ConfigurationError,
    LeverageConfigurationError,
)
from .recovery import GracefulDegradationError

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "MissingDataError",
    "MalformedDataError",
    # System Failures
    "SystemFailureError",
    "ConfigurationError",
    "LeverageConfigurationError",
    # Recovery Categories
    "GracefulDegradationError",
]
