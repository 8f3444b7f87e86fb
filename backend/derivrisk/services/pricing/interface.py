"""
Option Greeks Provider Interface

Defines the contract for the option pricing primitive.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from derivrisk.core.market_hours import days_to_expiry, days_to_years
from derivrisk.schemas.positions import Greeks, OptionClass


class GreeksProvider(ABC):
    """
    Option Greeks Provider Contract.

    INPUT:
        - spot, strike, time_to_expiry_years
        - risk_free_rate, volatility, dividend_yield
        - option_class: CALL / PUT

    OUTPUT: Greeks
        - delta, gamma, theta (per day), vega (per 1% vol), rho (per 1% rate)

    Callers treat the provider as a black box; it may suspend while
    pricing (e.g. a remote pricing service).
    """

    @property
    def name(self) -> str:
        return "GreeksProvider"

    @abstractmethod
    async def compute_greeks(
        self,
        spot: float,
        strike: float,
        time_to_expiry_years: float,
        risk_free_rate: float,
        volatility: float,
        dividend_yield: float,
        option_class: OptionClass,
    ) -> Greeks:
        """Compute option Greeks."""
        pass

    def days_to_expiry(self, expiry: date, now: Optional[datetime] = None) -> int:
        """Whole days until expiry close, never negative."""
        return days_to_expiry(expiry, now)

    def days_to_years(self, days: float) -> float:
        return days_to_years(days)
