"""
Logging configuration and utilities for the rule evaluation engine.
"""
from .config import configure_logging, get_logger, get_rule_logger, log_rule_decision

__all__ = ["configure_logging", "get_logger", "get_rule_logger", "log_rule_decision"]
