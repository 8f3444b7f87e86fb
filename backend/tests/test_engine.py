"""Risk engine wiring tests."""

import asyncio

import numpy as np
import pytest

from derivrisk.engine import RiskEngine


@pytest.fixture
def engine(settings, fake_pricer) -> RiskEngine:
    return RiskEngine(
        settings,
        pricer=fake_pricer,
        rng=np.random.default_rng(7),
        connect_to_redis=False,
    )


@pytest.mark.asyncio
async def test_start_and_stop(engine):
    await engine.start()
    assert engine.started
    await engine.start()

    health = await engine.health_check()
    assert health == {"aggregator": True, "monitor": True, "redis": False}

    await engine.stop()
    assert not engine.started


def test_services_share_collaborators(engine):
    assert engine.aggregator.var_engine is engine.var_engine
    assert engine.monitor.aggregator is engine.aggregator
    assert engine.monitor.store is engine.store
    assert engine.greeks.notifier is engine.hub


@pytest.mark.asyncio
async def test_greeks_updates_reach_hub(engine):
    symbol = "NIFTY99DEC20000CE"
    async with engine:
        queue = engine.hub.connect("user-1")
        engine.greeks.track_symbol(symbol, spot=20000, volatility=0.15)
        await engine.greeks.subscribe("user-1", [symbol], frequency_ms=5000)

        await engine.greeks.on_price_change("NIFTY", 20500)

        message = await asyncio.wait_for(queue.get(), timeout=1)
        assert message["event"] == "greeks_update"
        assert message["data"]["updates"][0]["symbol"] == symbol

    assert engine.greeks.get_stats()["active_timers"] == 0


@pytest.mark.asyncio
async def test_violation_alerts_reach_hub(engine, make_option):
    async with engine:
        queue = engine.hub.connect("user-1")
        await engine.monitor.set_risk_limits("user-1", "zerodha", {"max_position_size": 50_000})
        await engine.monitor.configure_risk_alerts("user-1")

        positions = [make_option(position_value=100_000)]
        risk = engine.aggregator.aggregate(positions)
        violations = await engine.monitor.check_violations("user-1", "zerodha", positions, risk)

        assert violations
        message = queue.get_nowait()
        assert message["event"] == "risk_violation"
