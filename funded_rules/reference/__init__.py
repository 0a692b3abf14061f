"""
Reference data module.

Leverage and contract-size metadata consumed by the margin rule.
"""
