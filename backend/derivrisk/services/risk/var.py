"""
Value-at-Risk Engine

Three interchangeable estimation strategies:
    - HistoricalApproximationVaR (default): Greeks-based variance proxy
    - MonteCarloVaR: simulated Greeks P&L over random market moves
    - SimpleVaR: exposure x volatility fallback

Strategy selection is explicit (VaRParams.use_monte_carlo).
If the selected strategy raises, the simple fallback is used instead.
VaREngine.value_at_risk never raises.
"""

import math
import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

import numpy as np

from derivrisk.core.config import Settings, get_settings
from derivrisk.schemas.positions import DerivativePosition
from derivrisk.schemas.risk import VaRParams
from derivrisk.services.risk.exposure import (
    aggregate_greeks,
    average_volatility,
    total_notional,
)

logger = logging.getLogger(__name__)

# One-tailed z-scores for common confidence levels
Z_SCORES = {
    0.90: 1.28,
    0.95: 1.65,
    0.99: 2.33,
}
DEFAULT_Z_SCORE = 1.65

# Assumed volatility shift for vega risk
VEGA_SHOCK = 0.05
# Volatility move scale relative to a unit normal draw
VOL_MOVE_SCALE = 0.1
# Underlying moves are in percent of exposure
MOVE_SCALE = 0.01


def z_score(confidence_level: float) -> float:
    """Z-score for a confidence level, 1.65 when the level is not tabulated."""
    return Z_SCORES.get(round(confidence_level, 4), DEFAULT_Z_SCORE)


class VaRStrategy(ABC):
    """One VaR estimation method."""

    name: str = "base"

    def __init__(
        self,
        historical_volatilities: Mapping[str, float],
        default_volatility: float,
    ):
        self._historical_volatilities = historical_volatilities
        self._default_volatility = default_volatility

    def average_volatility(self, positions: list[DerivativePosition]) -> float:
        return average_volatility(
            positions, self._historical_volatilities, self._default_volatility
        )

    @abstractmethod
    def estimate(self, positions: list[DerivativePosition], params: VaRParams) -> float:
        """Estimated loss at params.confidence_level over params.time_horizon_days."""
        pass


class HistoricalApproximationVaR(VaRStrategy):
    """
    Parametric approximation from portfolio Greeks.

    volatility = |delta| * E * v + 0.5 * |gamma| * E * v^2 + |vega| * 0.05
    VaR = volatility * z * sqrt(horizon)
    """

    name = "historical"

    def estimate(self, positions: list[DerivativePosition], params: VaRParams) -> float:
        greeks = aggregate_greeks(positions)
        exposure = total_notional(positions)
        avg_vol = self.average_volatility(positions)

        portfolio_volatility = (
            abs(greeks.delta) * exposure * avg_vol
            + 0.5 * abs(greeks.gamma) * exposure * avg_vol ** 2
            + abs(greeks.vega) * VEGA_SHOCK
        )
        return portfolio_volatility * z_score(params.confidence_level) * math.sqrt(params.time_horizon_days)


class MonteCarloVaR(VaRStrategy):
    """
    Simulated P&L from Greeks over random underlying and volatility moves.

    Each trial draws two independent standard normals (Box-Muller).
    VaR is the absolute P&L at the (1 - confidence) percentile.
    """

    name = "monte_carlo"

    def __init__(
        self,
        historical_volatilities: Mapping[str, float],
        default_volatility: float,
        rng: np.random.Generator,
        simulations: int = 10_000,
    ):
        super().__init__(historical_volatilities, default_volatility)
        self._rng = rng
        self.simulations = simulations

    def standard_normals(self, size: int) -> np.ndarray:
        """Box-Muller transform over the generator's uniforms."""
        u1 = 1.0 - self._rng.random(size)  # (0, 1] keeps the log finite
        u2 = self._rng.random(size)
        return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)

    def estimate(self, positions: list[DerivativePosition], params: VaRParams) -> float:
        greeks = aggregate_greeks(positions)
        exposure = total_notional(positions)
        n = self.simulations

        underlying_moves = self.standard_normals(n)
        vol_moves = self.standard_normals(n) * VOL_MOVE_SCALE

        scaled_moves = underlying_moves * exposure * MOVE_SCALE
        pnl = (
            greeks.delta * scaled_moves
            + 0.5 * greeks.gamma * scaled_moves ** 2
            + greeks.vega * vol_moves
            + greeks.theta * params.time_horizon_days
        )
        pnl.sort()

        index = math.floor((1 - params.confidence_level) * n)
        index = min(max(index, 0), n - 1)
        return abs(float(pnl[index]))


class SimpleVaR(VaRStrategy):
    """exposure * average volatility * z * sqrt(horizon)"""

    name = "simple"

    def estimate(self, positions: list[DerivativePosition], params: VaRParams) -> float:
        exposure = total_notional(positions)
        avg_vol = self.average_volatility(positions)
        return exposure * avg_vol * z_score(params.confidence_level) * math.sqrt(params.time_horizon_days)


class VaREngine:
    """
    Value-at-Risk calculator.

    Usage:
        engine = VaREngine(rng=np.random.default_rng(42))
        var = engine.value_at_risk(positions, VaRParams(use_monte_carlo=True))
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rng: Optional[np.random.Generator] = None,
        historical_volatilities: Optional[dict[str, float]] = None,
    ):
        self.settings = settings or get_settings()
        self._historical_volatilities: dict[str, float] = dict(historical_volatilities or {})
        default_vol = self.settings.default_volatility

        self.historical = HistoricalApproximationVaR(self._historical_volatilities, default_vol)
        self.monte_carlo = MonteCarloVaR(
            self._historical_volatilities,
            default_vol,
            rng=rng if rng is not None else np.random.default_rng(),
            simulations=self.settings.var_simulations,
        )
        self.simple = SimpleVaR(self._historical_volatilities, default_vol)

    @property
    def historical_volatilities(self) -> dict[str, float]:
        return dict(self._historical_volatilities)

    def update_historical_volatilities(self, volatilities: Mapping[str, float]) -> None:
        """Replace the per-underlying historical volatility table."""
        self._historical_volatilities.clear()
        self._historical_volatilities.update(volatilities)
        logger.info(f"Historical volatilities updated for {len(volatilities)} underlyings")

    def default_params(self) -> VaRParams:
        return VaRParams(
            confidence_level=self.settings.var_confidence_level,
            time_horizon_days=self.settings.var_time_horizon_days,
            lookback_days=self.settings.var_lookback_days,
            use_monte_carlo=self.settings.var_use_monte_carlo,
        )

    def value_at_risk(
        self,
        positions: list[DerivativePosition],
        params: Optional[VaRParams] = None,
    ) -> float:
        """VaR of the positions. 0 for an empty list."""
        if not positions:
            return 0.0

        params = params or self.default_params()
        strategy = self.monte_carlo if params.use_monte_carlo else self.historical

        try:
            value = strategy.estimate(positions, params)
            if not math.isfinite(value):
                raise ValueError(f"non-finite estimate {value}")
            return value
        except Exception as e:
            logger.warning(f"{strategy.name} VaR failed, using simple fallback: {e}")

        try:
            return self.simple.estimate(positions, params)
        except Exception as e:
            logger.error(f"Simple VaR fallback failed: {e}")
            return 0.0
