"""
CONTRACT 3: Risk Limits & Violations

Input: RiskLimits per (user, broker) + PortfolioRisk + positions + MarginInfo + daily P&L
Output: list[RiskViolation] + list[RiskReductionSuggestion]

CRITICAL: Limits are evaluated independently.
One breached ceiling never masks another.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from derivrisk.schemas.positions import DerivativePosition
from derivrisk.schemas.risk import MarginInfo, PortfolioRisk


# =============================================================================
# ENUMS
# =============================================================================


class RiskViolationType(str, Enum):
    POSITION_SIZE = "position_size"
    DAILY_LOSS = "daily_loss"
    MARGIN_UTILIZATION = "margin_utilization"
    DELTA_EXPOSURE = "delta_exposure"
    GAMMA_EXPOSURE = "gamma_exposure"
    VEGA_EXPOSURE = "vega_exposure"
    CONCENTRATION = "concentration"
    POSITION_COUNT = "position_count"
    VALUE_AT_RISK = "value_at_risk"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ViolationStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class ActionType(str, Enum):
    REDUCE_POSITION = "reduce_position"
    CLOSE_POSITION = "close_position"
    STOP_TRADING = "stop_trading"
    ADD_MARGIN = "add_margin"
    ADD_HEDGE = "add_hedge"


class ActionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# LIMITS
# =============================================================================


class RiskLimits(BaseModel):
    """
    Per-(user, broker) risk ceilings.
    Created with defaults on first set or first monitoring subscription.
    """

    user_id: str
    broker_id: str
    max_position_size: float = Field(default=1_000_000, gt=0)
    max_daily_loss: float = Field(default=50_000, gt=0)
    max_margin_utilization: float = Field(default=80.0, gt=0, description="Percent")
    max_delta_exposure: float = Field(default=50_000, gt=0)
    max_gamma_exposure: float = Field(default=1_000, gt=0)
    max_vega_exposure: float = Field(default=10_000, gt=0)
    max_concentration_percent: float = Field(default=50.0, gt=0)
    max_positions: int = Field(default=50, gt=0)
    max_value_at_risk: float = Field(default=100_000, gt=0)
    enabled: bool = True
    auto_risk_reduction: bool = False
    last_updated: datetime = Field(default_factory=datetime.now)


class RiskLimitsUpdate(BaseModel):
    """Partial update merged onto the default limits."""

    max_position_size: Optional[float] = Field(None, gt=0)
    max_daily_loss: Optional[float] = Field(None, gt=0)
    max_margin_utilization: Optional[float] = Field(None, gt=0)
    max_delta_exposure: Optional[float] = Field(None, gt=0)
    max_gamma_exposure: Optional[float] = Field(None, gt=0)
    max_vega_exposure: Optional[float] = Field(None, gt=0)
    max_concentration_percent: Optional[float] = Field(None, gt=0)
    max_positions: Optional[int] = Field(None, gt=0)
    max_value_at_risk: Optional[float] = Field(None, gt=0)
    enabled: Optional[bool] = None
    auto_risk_reduction: Optional[bool] = None


# =============================================================================
# VIOLATIONS
# =============================================================================


class RiskReductionSuggestion(BaseModel):
    """Remediation action derived from a violation. Never persisted."""

    type: ActionType
    position_id: Optional[str] = None
    suggested_amount: Optional[float] = None
    description: str
    priority: ActionPriority = ActionPriority.MEDIUM
    estimated_impact: float = 0.0
    auto_executable: bool = False


class RiskViolation(BaseModel):
    """
    A breached ceiling.
    Lifecycle: active -> acknowledged -> resolved
    """

    id: str
    user_id: str
    broker_id: str
    violation_type: RiskViolationType
    severity: Severity
    current_value: float
    limit_value: float
    violation_percent: float = Field(..., description="(current - limit) / limit * 100")
    message: str = ""
    affected_positions: list[str] = Field(default_factory=list)
    suggested_actions: list[RiskReductionSuggestion] = Field(default_factory=list)
    auto_remediation: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)
    status: ViolationStatus = ViolationStatus.ACTIVE
    resolved_at: Optional[datetime] = None


class RiskCheckInput(BaseModel):
    """Snapshot evaluated by the limits monitor."""

    user_id: str
    broker_id: str
    positions: list[DerivativePosition] = Field(default_factory=list)
    portfolio_risk: PortfolioRisk
    margin_info: MarginInfo = Field(default_factory=MarginInfo)
    daily_pnl: float = 0.0


# =============================================================================
# ALERTS
# =============================================================================


class AlertChannel(BaseModel):
    """Delivery channel for risk alerts."""

    type: str = Field(default="websocket", description="websocket / email / sms / push")
    enabled: bool = True
    config: dict = Field(default_factory=dict)


def _default_warning_thresholds() -> dict[RiskViolationType, float]:
    return {violation_type: 80.0 for violation_type in RiskViolationType}


class RiskAlertConfig(BaseModel):
    """Per-user alert preferences."""

    user_id: str
    enabled_alerts: list[RiskViolationType] = Field(default_factory=lambda: list(RiskViolationType))
    warning_thresholds: dict[RiskViolationType, float] = Field(
        default_factory=_default_warning_thresholds,
        description="Percent of limit at which a warning is due",
    )
    channels: list[AlertChannel] = Field(default_factory=lambda: [AlertChannel()])
    frequency_minutes: float = Field(default=5.0, ge=0, description="Min gap between alerts of one type")
