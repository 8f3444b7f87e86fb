"""
Configuration store for the risk engine.

Provides Redis persistence for risk limits and alert configuration.
"""

from derivrisk.services.cache.redis_client import (
    RiskConfigStore,
    connect_redis,
    close_redis,
)

__all__ = [
    "RiskConfigStore",
    "connect_redis",
    "close_redis",
]
