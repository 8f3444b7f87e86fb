"""
Derivatives Risk Engine

CONTRACT:
    Input:  positions + portfolio value + available margin + VaRParams
    Output: PortfolioRisk -> list[RiskViolation]

RESPONSIBILITIES:
    - Aggregate position Greeks (quantity-weighted, short positions negated)
    - Measure concentration (largest, top 5, HHI) and correlation risk
    - Estimate Value-at-Risk (historical approximation / Monte Carlo / simple)
    - Evaluate per-(user, broker) risk limits
    - Grade violations by severity and suggest remediation
    - Trigger automatic risk reduction when enabled

PURE PYTHON + NumPy - no I/O apart from injected collaborators.
All rules are deterministic and auditable.

CRITICAL: VaR estimation never raises.
A failing strategy falls back to the simple estimate.
"""

from derivrisk.services.risk.interface import PositionSource, RiskActionExecutor
from derivrisk.services.risk.aggregator import PortfolioRiskAggregator
from derivrisk.services.risk.var import (
    VaREngine,
    VaRStrategy,
    HistoricalApproximationVaR,
    MonteCarloVaR,
    SimpleVaR,
)
from derivrisk.services.risk.limits import RiskLimitsMonitor, MonitoringSubscription

__all__ = [
    "PositionSource",
    "RiskActionExecutor",
    "PortfolioRiskAggregator",
    "VaREngine",
    "VaRStrategy",
    "HistoricalApproximationVaR",
    "MonteCarloVaR",
    "SimpleVaR",
    "RiskLimitsMonitor",
    "MonitoringSubscription",
]
