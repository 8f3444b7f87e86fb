"""
Black-Scholes-Merton Pricer

European option pricing with continuous dividend yield.
PURE PYTHON + SciPy - deterministic and side-effect free.

Conventions:
    theta: per calendar day (annual / 365)
    vega:  per 1% volatility move
    rho:   per 1% rate move
"""

import math
import logging

from scipy.stats import norm

from derivrisk.schemas.positions import Greeks, OptionClass
from derivrisk.services.base import ValidationError
from derivrisk.services.pricing.interface import GreeksProvider

logger = logging.getLogger(__name__)

# Implied volatility solver
IV_SEED = 0.2
IV_MAX_ITERATIONS = 100
IV_TOLERANCE = 1e-6
IV_MIN = 0.001
IV_MAX = 5.0


class BlackScholesPricer(GreeksProvider):
    """
    Black-Scholes Greeks provider.

    Expired options (t <= 0) price at intrinsic value and carry zero Greeks.
    """

    @property
    def name(self) -> str:
        return "BlackScholesPricer"

    # =========================================================================
    # GREEKS
    # =========================================================================

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
        return self.greeks(
            spot, strike, time_to_expiry_years, risk_free_rate,
            volatility, dividend_yield, option_class,
        )

    def greeks(
        self,
        spot: float,
        strike: float,
        t: float,
        r: float,
        sigma: float,
        q: float,
        option_class: OptionClass,
    ) -> Greeks:
        """Synchronous Greeks, rounded to 4 decimals."""
        self._validate(spot, strike, t, sigma)
        if t <= 0:
            return Greeks.zero()

        d1, d2 = self._d1_d2(spot, strike, t, r, sigma, q)
        sqrt_t = math.sqrt(t)
        div_discount = math.exp(-q * t)
        rate_discount = math.exp(-r * t)
        pdf_d1 = norm.pdf(d1)

        gamma = div_discount * pdf_d1 / (spot * sigma * sqrt_t)
        vega = spot * div_discount * pdf_d1 * sqrt_t / 100
        decay = -spot * pdf_d1 * sigma * div_discount / (2 * sqrt_t)

        if option_class == OptionClass.CALL:
            delta = div_discount * norm.cdf(d1)
            theta = (
                decay
                - r * strike * rate_discount * norm.cdf(d2)
                + q * spot * div_discount * norm.cdf(d1)
            )
            rho = strike * t * rate_discount * norm.cdf(d2) / 100
        else:
            delta = div_discount * (norm.cdf(d1) - 1)
            theta = (
                decay
                + r * strike * rate_discount * norm.cdf(-d2)
                - q * spot * div_discount * norm.cdf(-d1)
            )
            rho = -strike * t * rate_discount * norm.cdf(-d2) / 100

        return Greeks(
            delta=float(delta),
            gamma=float(gamma),
            theta=float(theta) / 365,
            vega=float(vega),
            rho=float(rho),
        ).rounded(4)

    # =========================================================================
    # PRICES
    # =========================================================================

    def call_price(self, spot: float, strike: float, t: float, r: float, sigma: float, q: float = 0.0) -> float:
        self._validate(spot, strike, t, sigma)
        if t <= 0:
            return max(spot - strike, 0.0)
        d1, d2 = self._d1_d2(spot, strike, t, r, sigma, q)
        price = spot * math.exp(-q * t) * norm.cdf(d1) - strike * math.exp(-r * t) * norm.cdf(d2)
        return max(float(price), 0.0)

    def put_price(self, spot: float, strike: float, t: float, r: float, sigma: float, q: float = 0.0) -> float:
        self._validate(spot, strike, t, sigma)
        if t <= 0:
            return max(strike - spot, 0.0)
        d1, d2 = self._d1_d2(spot, strike, t, r, sigma, q)
        price = strike * math.exp(-r * t) * norm.cdf(-d2) - spot * math.exp(-q * t) * norm.cdf(-d1)
        return max(float(price), 0.0)

    def price(
        self,
        spot: float,
        strike: float,
        t: float,
        r: float,
        sigma: float,
        option_class: OptionClass,
        q: float = 0.0,
    ) -> float:
        if option_class == OptionClass.CALL:
            return self.call_price(spot, strike, t, r, sigma, q)
        return self.put_price(spot, strike, t, r, sigma, q)

    def implied_volatility(
        self,
        market_price: float,
        spot: float,
        strike: float,
        t: float,
        r: float,
        option_class: OptionClass,
        q: float = 0.0,
    ) -> float:
        """
        Newton-Raphson implied volatility.

        Starts from 20%, stops when the price error is below tolerance or
        vega vanishes. Result is clamped to [0.001, 5.0] and rounded to 4 decimals.
        """
        sigma = IV_SEED
        for _ in range(IV_MAX_ITERATIONS):
            diff = self.price(spot, strike, t, r, sigma, option_class, q) - market_price
            if abs(diff) < IV_TOLERANCE:
                break

            raw_vega = self._raw_vega(spot, strike, t, r, sigma, q)
            if abs(raw_vega) < IV_TOLERANCE:
                logger.debug(f"IV solver stopped: vega vanished at sigma={sigma:.4f}")
                break

            sigma = min(max(sigma - diff / raw_vega, IV_MIN), IV_MAX)

        return round(sigma, 4)

    @staticmethod
    def intrinsic_value(spot: float, strike: float, option_class: OptionClass) -> float:
        if option_class == OptionClass.CALL:
            return max(spot - strike, 0.0)
        return max(strike - spot, 0.0)

    @staticmethod
    def time_value(option_price: float, intrinsic_value: float) -> float:
        return max(option_price - intrinsic_value, 0.0)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _validate(self, spot: float, strike: float, t: float, sigma: float) -> None:
        if spot <= 0 or strike <= 0:
            raise ValidationError(
                self.name,
                "Spot and strike must be positive",
                {"spot": spot, "strike": strike},
            )
        if t > 0 and sigma <= 0:
            raise ValidationError(self.name, "Volatility must be positive", {"volatility": sigma})

    @staticmethod
    def _d1_d2(spot: float, strike: float, t: float, r: float, sigma: float, q: float) -> tuple[float, float]:
        sqrt_t = math.sqrt(t)
        d1 = (math.log(spot / strike) + (r - q + 0.5 * sigma ** 2) * t) / (sigma * sqrt_t)
        return d1, d1 - sigma * sqrt_t

    def _raw_vega(self, spot: float, strike: float, t: float, r: float, sigma: float, q: float) -> float:
        """Vega per unit volatility (not per 1%)."""
        if t <= 0:
            return 0.0
        d1, _ = self._d1_d2(spot, strike, t, r, sigma, q)
        return float(spot * math.exp(-q * t) * norm.pdf(d1) * math.sqrt(t))
