"""
Recovery strategy classifications for error handling.

Reference data (instrument specs, leverage, news) may be unavailable; the
rules keep running with reduced accuracy instead of failing.
"""

from typing import Optional


class GracefulDegradationError(Exception):
    """Error that allows continued operation with reduced functionality."""

    def __init__(self, message: str, degraded_functionality: Optional[str] = None,
                 fallback_strategy: Optional[str] = None, **kwargs):
        super().__init__(message)
        self.degraded_functionality = degraded_functionality
        self.fallback_strategy = fallback_strategy
        self.allows_degradation = True
