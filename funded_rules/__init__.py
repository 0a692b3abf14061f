"""
Funded Rules - Prop-firm Trading Rule Compliance Engine

Evaluates a trader's history against funded-account rules: profit-target
chains, hedging around news releases, margin usage inside news windows and
daily profit concentration.
"""

__version__ = "0.1.0"
__author__ = "Funded Rules Team"
