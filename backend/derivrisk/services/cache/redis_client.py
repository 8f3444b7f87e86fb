"""
Redis-backed configuration store for risk limits and alert settings.

Keys:
- {prefix}:risk_limits:{user_id}:{broker_id} -> JSON RiskLimits
- {prefix}:alert_config:{user_id} -> JSON RiskAlertConfig

Falls back to an in-memory dict when Redis is unavailable.
"""

import logging
from typing import Optional, Dict

import redis.asyncio as aioredis

from derivrisk.schemas.limits import RiskAlertConfig, RiskLimits

logger = logging.getLogger(__name__)


async def connect_redis(url: str) -> Optional[aioredis.Redis]:
    """
    Open a Redis client and verify it with PING.
    Returns None when Redis is unreachable.
    """
    client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
        logger.info(f"Redis connected: {url}")
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        await client.aclose()
        return None


async def close_redis(client: Optional[aioredis.Redis]) -> None:
    """Close a Redis client."""
    if client is not None:
        await client.aclose()
        logger.info("Redis connection closed")


class RiskConfigStore:
    """
    Persists RiskLimits and RiskAlertConfig across restarts.

    Treated by the monitor as a simple get/set collaborator.
    """

    def __init__(self, redis_client: Optional[aioredis.Redis] = None, prefix: str = "derivrisk"):
        self._redis = redis_client
        self._prefix = prefix
        # In-memory fallback when Redis is unavailable
        self._memory_cache: Dict[str, str] = {}

    @property
    def redis(self) -> Optional[aioredis.Redis]:
        return self._redis

    def attach(self, redis_client: Optional[aioredis.Redis]) -> None:
        """Swap the Redis client (None detaches and uses memory only)."""
        self._redis = redis_client

    def _key(self, *parts: str) -> str:
        return ":".join((self._prefix, *parts))

    async def _get(self, key: str) -> Optional[str]:
        if self.redis:
            try:
                value = await self.redis.get(key)
                if value is not None:
                    return value
            except Exception as e:
                logger.debug(f"Redis get {key} failed: {e}")

        # Fallback to memory
        return self._memory_cache.get(key)

    async def _set(self, key: str, value: str) -> None:
        # Memory mirrors every write
        self._memory_cache[key] = value

        if self.redis:
            try:
                await self.redis.set(key, value)
            except Exception as e:
                logger.debug(f"Redis set {key} failed: {e}")

    # ============ Risk Limits ============

    async def get_risk_limits(self, user_id: str, broker_id: str) -> Optional[RiskLimits]:
        value = await self._get(self._key("risk_limits", user_id, broker_id))
        return RiskLimits.model_validate_json(value) if value else None

    async def set_risk_limits(self, limits: RiskLimits) -> None:
        key = self._key("risk_limits", limits.user_id, limits.broker_id)
        await self._set(key, limits.model_dump_json())

    # ============ Alert Config ============

    async def get_alert_config(self, user_id: str) -> Optional[RiskAlertConfig]:
        value = await self._get(self._key("alert_config", user_id))
        return RiskAlertConfig.model_validate_json(value) if value else None

    async def set_alert_config(self, config: RiskAlertConfig) -> None:
        await self._set(self._key("alert_config", config.user_id), config.model_dump_json())
