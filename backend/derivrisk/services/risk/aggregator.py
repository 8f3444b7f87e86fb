"""
Portfolio Risk Aggregator Implementation

Builds a PortfolioRisk snapshot from a position list.
PURE PYTHON + NumPy - deterministic apart from Monte Carlo VaR.

The only state is an optional correlation matrix and the VaR engine's
historical volatility table, both replaced through explicit update calls.
"""

import logging
from datetime import datetime
from itertools import combinations
from typing import Mapping, Optional

import numpy as np

from derivrisk.core.config import Settings, get_settings
from derivrisk.schemas.positions import DerivativePosition, Greeks
from derivrisk.schemas.risk import (
    ConcentrationMetrics,
    CorrelationMatrix,
    PortfolioRisk,
    PortfolioRiskInput,
    UnderlyingRisk,
    VaRParams,
)
from derivrisk.services.base import BaseService
from derivrisk.services.risk.exposure import (
    aggregate_greeks,
    group_by_underlying,
    market_exposure,
    position_greeks,
    total_notional,
)
from derivrisk.services.risk.var import VaREngine

logger = logging.getLogger(__name__)

# Static correlation heuristics (no matrix loaded)
SAME_UNDERLYING_CORRELATION = 1.0
INDEX_INDEX_CORRELATION = 0.7
INDEX_STOCK_CORRELATION = 0.4
STOCK_STOCK_CORRELATION = 0.3
# Unknown symbol when a matrix is loaded
DEFAULT_CORRELATION = 0.3


class PortfolioRiskAggregator(BaseService[PortfolioRiskInput, PortfolioRisk]):
    """
    Portfolio Risk Aggregator.

    INPUT: PortfolioRiskInput
        - positions: option and futures positions
        - total_portfolio_value: defaults to sum of |position_value|
        - available_margin: caller supplied
        - var_params: VaR confidence / horizon / strategy

    OUTPUT: PortfolioRisk
        - aggregate Greeks (long +1, short -1, weighted by quantity)
        - concentration (largest, top 5, HHI)
        - per-underlying risk
        - Value-at-Risk
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        var_engine: Optional[VaREngine] = None,
    ):
        self.settings = settings or get_settings()
        self.var_engine = var_engine or VaREngine(self.settings)
        self._index_underlyings = {s.upper() for s in self.settings.index_underlyings}
        self._correlation_matrix: Optional[CorrelationMatrix] = None

    @property
    def name(self) -> str:
        return "PortfolioRiskAggregator"

    async def execute(self, input_data: PortfolioRiskInput) -> PortfolioRisk:
        return self.aggregate(
            input_data.positions,
            total_portfolio_value=input_data.total_portfolio_value,
            available_margin=input_data.available_margin,
            var_params=input_data.var_params,
        )

    async def health_check(self) -> bool:
        """Pure computation - always healthy."""
        return True

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def aggregate(
        self,
        positions: list[DerivativePosition],
        total_portfolio_value: Optional[float] = None,
        available_margin: float = 0.0,
        var_params: Optional[VaRParams] = None,
    ) -> PortfolioRisk:
        """Full risk snapshot stamped with the current time."""
        total_value = (
            total_portfolio_value
            if total_portfolio_value is not None
            else self.total_value(positions)
        )

        return PortfolioRisk(
            total_value=total_value,
            derivatives_exposure=self.derivatives_exposure(positions),
            margin_used=sum(p.margin_used for p in positions),
            margin_available=available_margin,
            value_at_risk=self.var_engine.value_at_risk(positions, var_params),
            portfolio_greeks=self.aggregate_greeks(positions),
            concentration_risk=self.concentration(positions, total_value),
            underlying_risk=self.underlying_risk(positions, total_value),
            last_calculated=datetime.now(),
        )

    def aggregate_greeks(self, positions: list[DerivativePosition]) -> Greeks:
        return aggregate_greeks(positions)

    def total_value(self, positions: list[DerivativePosition]) -> float:
        return market_exposure(positions)

    def derivatives_exposure(self, positions: list[DerivativePosition]) -> float:
        """Total notional: strike x qty for options, price x qty x multiplier for futures."""
        return total_notional(positions)

    def value_at_risk(
        self,
        positions: list[DerivativePosition],
        params: Optional[VaRParams] = None,
    ) -> float:
        return self.var_engine.value_at_risk(positions, params)

    # =========================================================================
    # CONCENTRATION
    # =========================================================================

    def concentration(
        self,
        positions: list[DerivativePosition],
        total_value: float,
    ) -> ConcentrationMetrics:
        """
        Concentration metrics.

        Shares are |position_value| / total_value. HHI is computed over
        underlyings. Everything is 0 when total_value is 0.
        """
        groups = group_by_underlying(positions)
        underlying_exposure = {u: market_exposure(ps) for u, ps in groups.items()}

        if total_value <= 0:
            return ConcentrationMetrics(
                underlying_count=len(underlying_exposure),
                underlying_concentration={u: 0.0 for u in underlying_exposure},
            )

        exposures = np.sort(np.array([abs(p.position_value) for p in positions], dtype=float))[::-1]
        largest = float(exposures[0]) if exposures.size else 0.0
        top5 = float(exposures[:5].sum())

        shares = np.array(list(underlying_exposure.values()), dtype=float) / total_value
        hhi = float(np.square(shares).sum())

        return ConcentrationMetrics(
            largest_position_percent=round(largest / total_value * 100, 2),
            top5_positions_percent=round(top5 / total_value * 100, 2),
            underlying_count=len(underlying_exposure),
            herfindahl_index=round(hhi, 4),
            underlying_concentration={
                u: round(exposure / total_value * 100, 2)
                for u, exposure in underlying_exposure.items()
            },
        )

    def underlying_risk(
        self,
        positions: list[DerivativePosition],
        total_value: float,
    ) -> dict[str, UnderlyingRisk]:
        """Exposure, net Greeks and portfolio share per underlying."""
        result: dict[str, UnderlyingRisk] = {}

        for underlying, group in group_by_underlying(positions).items():
            exposure = market_exposure(group)
            greeks = Greeks.zero()
            for position in group:
                greeks = greeks.plus(position_greeks(position))
            greeks = greeks.rounded(4)

            result[underlying] = UnderlyingRisk(
                underlying=underlying,
                total_exposure=exposure,
                net_delta=greeks.delta,
                gamma=greeks.gamma,
                theta=greeks.theta,
                vega=greeks.vega,
                position_count=len(group),
                portfolio_percent=exposure / total_value * 100 if total_value > 0 else 0.0,
            )

        return result

    # =========================================================================
    # CORRELATION
    # =========================================================================

    def correlation_risk(self, positions: list[DerivativePosition]) -> dict[str, float]:
        """
        Pairwise correlation risk keyed "A-B":
        correlation(A, B) * sqrt(exposure_A * exposure_B)
        """
        groups = group_by_underlying(positions)
        exposures = {u: market_exposure(ps) for u, ps in groups.items()}

        risk: dict[str, float] = {}
        for first, second in combinations(exposures, 2):
            correlation = self.correlation(first, second)
            risk[f"{first}-{second}"] = correlation * float(np.sqrt(exposures[first] * exposures[second]))
        return risk

    def correlation(self, first: str, second: str) -> float:
        """Correlation from the loaded matrix, else the static heuristic table."""
        if self._correlation_matrix is not None:
            value = self._correlation_matrix.lookup(first, second)
            return DEFAULT_CORRELATION if value is None else value

        if first == second:
            return SAME_UNDERLYING_CORRELATION

        first_is_index = first.upper() in self._index_underlyings
        second_is_index = second.upper() in self._index_underlyings
        if first_is_index and second_is_index:
            return INDEX_INDEX_CORRELATION
        if first_is_index or second_is_index:
            return INDEX_STOCK_CORRELATION
        return STOCK_STOCK_CORRELATION

    # =========================================================================
    # STATE UPDATES
    # =========================================================================

    def update_correlation_matrix(self, matrix: Optional[CorrelationMatrix]) -> None:
        """Load (or clear, with None) the correlation matrix."""
        self._correlation_matrix = matrix
        if matrix is None:
            logger.info("Correlation matrix cleared, using static correlations")
        else:
            logger.info(f"Correlation matrix loaded: {len(matrix.underlyings)} underlyings")

    def update_historical_volatilities(self, volatilities: Mapping[str, float]) -> None:
        self.var_engine.update_historical_volatilities(volatilities)

    def get_stats(self) -> dict:
        matrix = self._correlation_matrix
        return {
            "has_correlation_matrix": matrix is not None,
            "correlation_matrix_size": len(matrix.underlyings) if matrix else 0,
            "historical_volatility_count": len(self.var_engine.historical_volatilities),
            "last_correlation_update": matrix.last_updated.isoformat() if matrix else None,
        }
