"""
Utility functions module.

Time Semantics:
- Trade timestamps are instants; naive values are read as UTC
- News calendar entries are local wall-clock strings converted through a
  UTC offset policy
- Evaluations take an explicit ``as_of`` instant instead of reading the
  clock in the middle of a rule
"""
