"""
Data models and record normalization module.

Immutable trades, news events and rule results, plus conversion of raw
records into models and of results into JSON-ready records.
"""
