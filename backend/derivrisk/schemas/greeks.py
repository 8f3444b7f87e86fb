"""
CONTRACT 4: Real-Time Greeks

Input: GreeksSubscription per user + price ticks (underlying, spot, vol)
Output: GreeksUpdateEvent batches pushed to the notification channel
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from derivrisk.schemas.positions import OptionPosition, Greeks


class GreeksSubscription(BaseModel):
    """
    One per subscribing user.
    Re-subscribing fully replaces the prior subscription.
    """

    user_id: str
    symbols: set[str] = Field(default_factory=set)
    underlyings: set[str] = Field(default_factory=set)
    last_update: datetime = Field(default_factory=datetime.now)
    update_frequency_ms: int = Field(default=1000, gt=0, description="Clamped to the configured bounds")


class CachedGreeksData(BaseModel):
    """Latest known Greeks for one tracked symbol."""

    symbol: str
    underlying: str
    greeks: Greeks
    spot_price: float
    volatility: float
    last_update: datetime = Field(default_factory=datetime.now)
    position: Optional[OptionPosition] = None


class GreeksUpdateEvent(BaseModel):
    """Pushed to subscribers when a significant change is detected."""

    symbol: str
    underlying: str
    greeks: Greeks
    timestamp: datetime
    spot_price: float
    implied_volatility: float


class PortfolioGreeks(BaseModel):
    """Position-weighted Greeks for one user, with per-underlying breakdown."""

    user_id: str
    total: Greeks = Field(default_factory=Greeks)
    by_underlying: dict[str, Greeks] = Field(default_factory=dict)
    position_count: int = 0
    last_update: datetime = Field(default_factory=datetime.now)
