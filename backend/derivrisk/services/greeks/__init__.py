"""
Real-Time Greeks Cache

CONTRACT:
    Input:  price ticks (underlying, spot, vol) + user subscriptions
    Output: GreeksUpdateEvent batches to the notification channel

RESPONSIBILITIES:
    - Track the latest Greeks per option symbol
    - Recompute on ticks and on each subscription's schedule
    - Publish only significant changes
    - Aggregate per-user portfolio Greeks
"""

from derivrisk.services.greeks.symbols import (
    ParsedOptionSymbol,
    extract_underlying,
    parse_option_symbol,
)
from derivrisk.services.greeks.service import RealTimeGreeksService

__all__ = [
    "ParsedOptionSymbol",
    "extract_underlying",
    "parse_option_symbol",
    "RealTimeGreeksService",
]
