"""
Position-level exposure and Greeks helpers.

Shared by the risk aggregator and the VaR engine.
Positions are dispatched on their `instrument` tag.
"""

from collections import defaultdict
from typing import Iterable, Mapping

from derivrisk.schemas.positions import (
    DerivativePosition,
    FuturesPosition,
    Greeks,
    OptionPosition,
)

DEFAULT_VOLATILITY = 0.25


def position_greeks(position: DerivativePosition) -> Greeks:
    """
    Quantity-weighted, direction-signed Greeks of one position.
    Futures carry no option Greeks.
    """
    if isinstance(position, OptionPosition):
        return position.greeks.scaled(position.quantity * position.direction)
    return Greeks.zero()


def aggregate_greeks(positions: Iterable[DerivativePosition]) -> Greeks:
    """Sum of position Greeks, rounded to 4 decimals."""
    total = Greeks.zero()
    for position in positions:
        total = total.plus(position_greeks(position))
    return total.rounded(4)


def notional_exposure(position: DerivativePosition) -> float:
    """Face-value equivalent of a position."""
    if isinstance(position, OptionPosition):
        return position.strike * position.quantity
    if isinstance(position, FuturesPosition):
        return position.current_price * position.quantity * position.multiplier
    return abs(position.position_value)


def total_notional(positions: Iterable[DerivativePosition]) -> float:
    return sum(notional_exposure(p) for p in positions)


def market_exposure(positions: Iterable[DerivativePosition]) -> float:
    """Sum of absolute position values."""
    return sum(abs(p.position_value) for p in positions)


def group_by_underlying(
    positions: Iterable[DerivativePosition],
) -> dict[str, list[DerivativePosition]]:
    groups: dict[str, list[DerivativePosition]] = defaultdict(list)
    for position in positions:
        groups[position.underlying].append(position)
    return dict(groups)


def average_volatility(
    positions: list[DerivativePosition],
    historical_volatilities: Mapping[str, float],
    default_volatility: float = DEFAULT_VOLATILITY,
) -> float:
    """
    Mean volatility across positions.

    Options use implied volatility; futures use the underlying's
    historical volatility, else the default.
    """
    if not positions:
        return default_volatility

    total = 0.0
    for position in positions:
        if isinstance(position, OptionPosition):
            total += position.implied_volatility
        else:
            total += historical_volatilities.get(position.underlying) or default_volatility
    return total / len(positions)
