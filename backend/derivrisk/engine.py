"""
DerivRisk Engine - composition root

Wires the risk services together with explicit dependencies.
An application/API layer owns one RiskEngine per process and calls
start() / stop() from its own lifespan.
"""

import logging
from typing import Optional

import numpy as np

from derivrisk.core.config import Settings, get_settings, setup_logging
from derivrisk.services.cache.redis_client import RiskConfigStore, close_redis, connect_redis
from derivrisk.services.greeks.service import RealTimeGreeksService
from derivrisk.services.notifications.hub import NotificationHub
from derivrisk.services.pricing.black_scholes import BlackScholesPricer
from derivrisk.services.pricing.interface import GreeksProvider
from derivrisk.services.risk.aggregator import PortfolioRiskAggregator
from derivrisk.services.risk.interface import PositionSource, RiskActionExecutor
from derivrisk.services.risk.limits import RiskLimitsMonitor
from derivrisk.services.risk.var import VaREngine

logger = logging.getLogger(__name__)


class RiskEngine:
    """
    Risk engine lifecycle.

    Usage:
        async with RiskEngine(position_source=broker) as engine:
            risk = engine.aggregator.aggregate(positions)
            violations = await engine.monitor.check_violations(...)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pricer: Optional[GreeksProvider] = None,
        position_source: Optional[PositionSource] = None,
        action_executor: Optional[RiskActionExecutor] = None,
        rng: Optional[np.random.Generator] = None,
        connect_to_redis: bool = True,
    ):
        self.settings = settings or get_settings()
        self.connect_to_redis = connect_to_redis
        self._redis = None
        self._started = False

        self.pricer = pricer or BlackScholesPricer()
        self.store = RiskConfigStore(prefix=self.settings.redis_key_prefix)
        self.hub = NotificationHub()
        self.var_engine = VaREngine(self.settings, rng=rng)
        self.aggregator = PortfolioRiskAggregator(self.settings, var_engine=self.var_engine)
        self.monitor = RiskLimitsMonitor(
            self.settings,
            store=self.store,
            notifier=self.hub,
            aggregator=self.aggregator,
            position_source=position_source,
            action_executor=action_executor,
        )
        self.greeks = RealTimeGreeksService(
            self.settings,
            pricer=self.pricer,
            notifier=self.hub,
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            logger.warning("Risk engine already running")
            return

        setup_logging(self.settings)
        logger.info(f"Starting {self.settings.app_name} v{self.settings.app_version}")
        logger.info(f"Environment: {self.settings.environment}")

        if self.connect_to_redis:
            self._redis = await connect_redis(self.settings.redis_url)
            self.store.attach(self._redis)
        if self._redis is None:
            logger.info("Config store using in-memory fallback")

        self._started = True

    async def stop(self) -> None:
        if not self._started:
            return

        logger.info("Shutting down risk engine...")
        await self.greeks.shutdown()
        await self.monitor.shutdown()
        self.hub.close()

        self.store.attach(None)
        await close_redis(self._redis)
        self._redis = None
        self._started = False

    async def health_check(self) -> dict:
        return {
            "aggregator": await self.aggregator.health_check(),
            "monitor": await self.monitor.health_check(),
            "redis": self._redis is not None,
        }

    async def __aenter__(self) -> "RiskEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
