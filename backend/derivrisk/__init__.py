"""
DerivRisk Engine

Derivatives risk engine: portfolio Greeks aggregation, Value-at-Risk,
risk limits monitoring and a live per-instrument Greeks cache.
"""

__version__ = "0.1.0"
