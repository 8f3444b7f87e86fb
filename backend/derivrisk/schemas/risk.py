"""
CONTRACT 2: Portfolio Risk Snapshot

Input: positions + total portfolio value + available margin + VaRParams
Output: PortfolioRisk

Derived per request - never persisted by the engine.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from derivrisk.schemas.positions import DerivativePosition, Greeks

SYMMETRY_TOLERANCE = 1e-6


# =============================================================================
# INPUT: VaR parameters & correlation data
# =============================================================================


class VaRParams(BaseModel):
    """Value-at-Risk estimation parameters."""

    confidence_level: float = Field(default=0.95, gt=0, lt=1)
    time_horizon_days: float = Field(default=1, gt=0)
    lookback_days: int = Field(default=252, gt=0)
    use_monte_carlo: bool = False


class PortfolioRiskInput(BaseModel):
    """Input for the risk aggregator."""

    positions: list[DerivativePosition] = Field(default_factory=list)
    total_portfolio_value: Optional[float] = Field(
        None, ge=0, description="Defaults to the sum of absolute position values"
    )
    available_margin: float = Field(default=0.0, ge=0)
    var_params: VaRParams = Field(default_factory=VaRParams)


class CorrelationMatrix(BaseModel):
    """
    Correlation coefficients between underlyings.
    correlations[i][j] is the correlation of underlyings[i] and underlyings[j].
    """

    underlyings: list[str]
    correlations: list[list[float]]
    last_updated: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def _check_shape(self) -> "CorrelationMatrix":
        size = len(self.underlyings)
        if len(self.correlations) != size or any(len(row) != size for row in self.correlations):
            raise ValueError(
                f"Correlation matrix must be {size}x{size} to match underlyings"
            )
        for i in range(size):
            for j in range(i + 1, size):
                if abs(self.correlations[i][j] - self.correlations[j][i]) > SYMMETRY_TOLERANCE:
                    raise ValueError(
                        f"Correlation matrix is not symmetric at {self.underlyings[i]}/{self.underlyings[j]}"
                    )
        return self

    def lookup(self, first: str, second: str) -> Optional[float]:
        """Correlation by symbol, None if either symbol is unknown."""
        try:
            i = self.underlyings.index(first)
            j = self.underlyings.index(second)
        except ValueError:
            return None
        return self.correlations[i][j]


class MarginInfo(BaseModel):
    """Broker margin snapshot supplied by the caller."""

    initial_margin: float = 0.0
    maintenance_margin: float = 0.0
    available_margin: float = 0.0
    margin_utilization: float = Field(default=0.0, description="Used margin as % of capacity")
    margin_call: bool = False
    excess_margin: float = 0.0
    used_margin: float = 0.0
    total_equity: float = 0.0
    last_calculated: datetime = Field(default_factory=datetime.now)


# =============================================================================
# OUTPUT: PortfolioRisk components
# =============================================================================


class ConcentrationMetrics(BaseModel):
    """
    Concentration of exposure.
    All percentages and the HHI are 0 when total value is 0.
    """

    largest_position_percent: float = 0.0
    top5_positions_percent: float = 0.0
    underlying_count: int = 0
    herfindahl_index: float = Field(default=0.0, description="HHI on 0-1 scale")
    underlying_concentration: dict[str, float] = Field(default_factory=dict)


class UnderlyingRisk(BaseModel):
    """Risk metrics for a single underlying."""

    underlying: str
    total_exposure: float
    net_delta: float
    gamma: float
    theta: float
    vega: float
    position_count: int
    portfolio_percent: float


class PortfolioRisk(BaseModel):
    """
    Full risk snapshot.
    Returned by: Portfolio Risk Aggregator
    Consumed by: Risk Limits Monitor

    margin_used + margin_available need not equal total_value:
    availability is supplied by the caller.
    """

    total_value: float
    derivatives_exposure: float
    margin_used: float
    margin_available: float
    value_at_risk: float
    portfolio_greeks: Greeks
    concentration_risk: ConcentrationMetrics
    underlying_risk: dict[str, UnderlyingRisk] = Field(default_factory=dict)
    last_calculated: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "total_value": 1000000,
                "derivatives_exposure": 800000,
                "margin_used": 400000,
                "margin_available": 600000,
                "value_at_risk": 50000,
                "portfolio_greeks": {
                    "delta": 1000,
                    "gamma": 50,
                    "theta": -200,
                    "vega": 5000,
                    "rho": 300,
                },
                "concentration_risk": {
                    "largest_position_percent": 60,
                    "top5_positions_percent": 85,
                    "underlying_count": 3,
                    "herfindahl_index": 0.445,
                    "underlying_concentration": {
                        "NIFTY": 60,
                        "BANKNIFTY": 25,
                        "RELIANCE": 15,
                    },
                },
                "underlying_risk": {},
                "last_calculated": "2024-01-15T10:30:00+05:30",
            }
        }
