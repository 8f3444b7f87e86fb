"""Risk config store tests."""

import typing

import pytest
import redis.asyncio as aioredis

from derivrisk.schemas.limits import RiskAlertConfig, RiskLimits
from derivrisk.services.cache import RiskConfigStore, close_redis, connect_redis


class DictRedis:
    """Async stand-in for a Redis client."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value


class BrokenRedis:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_memory_round_trip():
    store = RiskConfigStore()
    limits = RiskLimits(user_id="u1", broker_id="b1", max_daily_loss=20_000)

    await store.set_risk_limits(limits)

    assert await store.get_risk_limits("u1", "b1") == limits
    assert await store.get_risk_limits("u1", "other") is None
    assert await store.get_alert_config("u1") is None


@pytest.mark.asyncio
async def test_redis_keys_and_json():
    client = DictRedis()
    store = RiskConfigStore(client)

    await store.set_risk_limits(RiskLimits(user_id="u1", broker_id="b1"))
    await store.set_alert_config(RiskAlertConfig(user_id="u1", frequency_minutes=1))

    assert set(client.data) == {"derivrisk:risk_limits:u1:b1", "derivrisk:alert_config:u1"}
    assert '"max_positions":50' in client.data["derivrisk:risk_limits:u1:b1"]

    restarted = RiskConfigStore(client)
    config = await restarted.get_alert_config("u1")
    assert config.frequency_minutes == 1


@pytest.mark.asyncio
async def test_custom_prefix():
    client = DictRedis()
    store = RiskConfigStore(client, prefix="test")
    await store.set_alert_config(RiskAlertConfig(user_id="u1"))
    assert list(client.data) == ["test:alert_config:u1"]


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_memory():
    store = RiskConfigStore(BrokenRedis())
    limits = RiskLimits(user_id="u1", broker_id="b1", max_positions=5)

    await store.set_risk_limits(limits)

    assert (await store.get_risk_limits("u1", "b1")).max_positions == 5


@pytest.mark.asyncio
async def test_attach_and_detach():
    store = RiskConfigStore()
    client = DictRedis()

    store.attach(client)
    await store.set_risk_limits(RiskLimits(user_id="u1", broker_id="b1"))
    store.attach(None)

    assert store.redis is None
    assert "derivrisk:risk_limits:u1:b1" in client.data
    assert await store.get_risk_limits("u1", "b1") is not None


@pytest.mark.asyncio
async def test_unreachable_redis_returns_none():
    assert await connect_redis("redis://127.0.0.1:1/0") is None
    await close_redis(None)


def test_client_annotations_resolve():
    hints = typing.get_type_hints(RiskConfigStore.attach)
    assert hints["redis_client"] == typing.Optional[aioredis.Redis]
    assert "redis" in dir(RiskConfigStore)
