"""
CONTRACT 1: Derivative Positions

Input: supplied by the portfolio/order service per request.
The risk engine only READS positions - it never persists or mutates them.

Positions form a tagged union over OptionPosition and FuturesPosition,
discriminated by the `instrument` field.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class OptionClass(str, Enum):
    CALL = "call"
    PUT = "put"


# =============================================================================
# GREEKS
# =============================================================================


class Greeks(BaseModel):
    """
    Option sensitivities.
    Immutable - always produced fresh per computation.
    """

    model_config = ConfigDict(frozen=True)

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    @classmethod
    def zero(cls) -> "Greeks":
        return cls()

    def scaled(self, factor: float) -> "Greeks":
        """Each field multiplied by factor."""
        return Greeks(
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
            rho=self.rho * factor,
        )

    def plus(self, other: "Greeks") -> "Greeks":
        return Greeks(
            delta=self.delta + other.delta,
            gamma=self.gamma + other.gamma,
            theta=self.theta + other.theta,
            vega=self.vega + other.vega,
            rho=self.rho + other.rho,
        )

    def rounded(self, digits: int = 4) -> "Greeks":
        return Greeks(
            delta=round(self.delta, digits),
            gamma=round(self.gamma, digits),
            theta=round(self.theta, digits),
            vega=round(self.vega, digits),
            rho=round(self.rho, digits),
        )

    def max_abs_change(self, other: "Greeks") -> float:
        """Largest absolute per-field difference to other."""
        return max(
            abs(self.delta - other.delta),
            abs(self.gamma - other.gamma),
            abs(self.theta - other.theta),
            abs(self.vega - other.vega),
            abs(self.rho - other.rho),
        )


# =============================================================================
# POSITIONS
# =============================================================================


class PositionBase(BaseModel):
    """Fields shared by every derivative position."""

    id: str
    broker_id: Optional[str] = None
    symbol: str
    underlying: str
    position_type: PositionSide
    quantity: float = Field(..., ge=0, description="Units held (lots x lot size)")
    avg_price: float = 0.0
    current_price: float = 0.0
    unrealized_pnl: float = 0.0
    realized_pnl: float = 0.0
    total_pnl: float = 0.0
    position_value: float = Field(..., description="Signed market value in INR")
    margin_used: float = Field(default=0.0, ge=0)
    entry_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @property
    def direction(self) -> int:
        """+1 for long, -1 for short."""
        return 1 if self.position_type == PositionSide.LONG else -1


class OptionPosition(PositionBase):
    """Open option position (CE/PE)."""

    instrument: Literal["option"] = "option"
    option_class: OptionClass
    strike: float = Field(..., gt=0)
    expiry_date: date
    premium: float = 0.0
    greeks: Greeks = Field(default_factory=Greeks)
    implied_volatility: float = Field(default=0.2, ge=0, description="Annualised, 0.2 = 20%")
    time_value: float = 0.0
    intrinsic_value: float = 0.0
    days_to_expiry: int = 0


class FuturesPosition(PositionBase):
    """Open futures position."""

    instrument: Literal["futures"] = "futures"
    contract_size: float = Field(default=1.0, gt=0)
    multiplier: float = Field(default=1.0, gt=0)
    initial_margin: float = 0.0
    maintenance_margin: float = 0.0
    mark_to_market: float = 0.0


DerivativePosition = Annotated[
    Union[OptionPosition, FuturesPosition],
    Field(discriminator="instrument"),
]