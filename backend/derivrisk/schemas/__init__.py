"""
DerivRisk Schema Contracts

This module defines all data contracts between engine components.
These are the authoritative interfaces - all modules must conform to these schemas.
"""

from derivrisk.schemas.positions import (
    PositionSide,
    OptionClass,
    Greeks,
    OptionPosition,
    FuturesPosition,
    DerivativePosition,
)
from derivrisk.schemas.risk import (
    VaRParams,
    PortfolioRiskInput,
    CorrelationMatrix,
    MarginInfo,
    ConcentrationMetrics,
    UnderlyingRisk,
    PortfolioRisk,
)
from derivrisk.schemas.limits import (
    RiskViolationType,
    Severity,
    ViolationStatus,
    ActionType,
    ActionPriority,
    RiskLimits,
    RiskLimitsUpdate,
    RiskReductionSuggestion,
    RiskViolation,
    RiskCheckInput,
    AlertChannel,
    RiskAlertConfig,
)
from derivrisk.schemas.greeks import (
    GreeksSubscription,
    CachedGreeksData,
    GreeksUpdateEvent,
    PortfolioGreeks,
)

__all__ = [
    # Positions
    "PositionSide",
    "OptionClass",
    "Greeks",
    "OptionPosition",
    "FuturesPosition",
    "DerivativePosition",
    # Risk
    "VaRParams",
    "PortfolioRiskInput",
    "CorrelationMatrix",
    "MarginInfo",
    "ConcentrationMetrics",
    "UnderlyingRisk",
    "PortfolioRisk",
    # Limits
    "RiskViolationType",
    "Severity",
    "ViolationStatus",
    "ActionType",
    "ActionPriority",
    "RiskLimits",
    "RiskLimitsUpdate",
    "RiskReductionSuggestion",
    "RiskViolation",
    "RiskCheckInput",
    "AlertChannel",
    "RiskAlertConfig",
    # Greeks
    "GreeksSubscription",
    "CachedGreeksData",
    "GreeksUpdateEvent",
    "PortfolioGreeks",
]
