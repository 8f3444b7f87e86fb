"""
Option Greeks Provider

CONTRACT:
    Input:  spot + strike + time to expiry + rate + volatility + dividend yield + option class
    Output: Greeks

RESPONSIBILITIES:
    - Compute delta / gamma / theta / vega / rho
    - Price European calls and puts
    - Solve implied volatility
    - Day-count helpers (days to expiry, days to years)

The risk engine consumes GreeksProvider as a black box;
BlackScholesPricer is the default implementation.
"""

from derivrisk.services.pricing.interface import GreeksProvider
from derivrisk.services.pricing.black_scholes import BlackScholesPricer

__all__ = [
    "GreeksProvider",
    "BlackScholesPricer",
]
