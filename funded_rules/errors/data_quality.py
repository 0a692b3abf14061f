"""
Data quality error classifications for trade and news records.

These exceptions categorize problems found while turning raw statement
records into normalized trades and news events. They are recoverable: the
offending record is skipped and the evaluation continues.
"""

from typing import Optional, Dict, Any


class DataQualityError(Exception):
    """Base class for data quality issues that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class MissingDataError(DataQualityError):
    """Required data is completely missing."""

    def __init__(self, message: str, data_type: Optional[str] = None,
                 missing_fields: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.data_type = data_type
        self.missing_fields = missing_fields or []


class MalformedDataError(DataQualityError):
    """Data exists but is in incorrect format."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format
