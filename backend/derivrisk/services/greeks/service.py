"""
Real-Time Greeks Service

Maintains the latest Greeks per tracked option symbol and pushes
updates to subscribers when the change is significant.

Features:
- Per-user subscriptions, each owning one periodic recompute task
- Tick-driven recompute on underlying price / volatility changes
- Significance filter (any field moves more than the sensitivity threshold)
- Last-write-wins guard for overlapping recomputes
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from derivrisk.core.config import Settings, get_settings
from derivrisk.schemas.greeks import (
    CachedGreeksData,
    GreeksSubscription,
    GreeksUpdateEvent,
    PortfolioGreeks,
)
from derivrisk.schemas.positions import DerivativePosition, Greeks, OptionPosition
from derivrisk.services.greeks.symbols import extract_underlying, parse_option_symbol
from derivrisk.services.notifications.hub import NotificationChannel
from derivrisk.services.pricing.black_scholes import BlackScholesPricer
from derivrisk.services.pricing.interface import GreeksProvider
from derivrisk.services.risk.exposure import position_greeks
from derivrisk.services.scheduler import ScheduledTask, schedule_periodic

logger = logging.getLogger(__name__)


class RealTimeGreeksService:
    """
    Live Greeks cache and updater.

    Usage:
        service = RealTimeGreeksService(pricer=BlackScholesPricer(), notifier=hub)
        service.track_symbol("NIFTY24JAN20000CE", spot=20100, volatility=0.15)
        await service.subscribe("user-1", ["NIFTY24JAN20000CE"], frequency_ms=1000)
        await service.on_price_change("NIFTY", 20250)
        await service.shutdown()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        pricer: Optional[GreeksProvider] = None,
        notifier: Optional[NotificationChannel] = None,
    ):
        self.settings = settings or get_settings()
        self.pricer = pricer or BlackScholesPricer()
        self.notifier = notifier

        self._subscriptions: Dict[str, GreeksSubscription] = {}
        self._tasks: Dict[str, ScheduledTask] = {}
        self._cache: Dict[str, CachedGreeksData] = {}
        self._portfolio_greeks: Dict[str, PortfolioGreeks] = {}

    # ============ Subscriptions ============

    def clamp_frequency(self, frequency_ms: Optional[int]) -> int:
        if frequency_ms is None:
            frequency_ms = self.settings.greeks_default_frequency_ms
        return max(
            self.settings.greeks_min_frequency_ms,
            min(self.settings.greeks_max_frequency_ms, int(frequency_ms)),
        )

    async def subscribe(
        self,
        user_id: str,
        symbols: Iterable[str],
        frequency_ms: Optional[int] = None,
    ) -> GreeksSubscription:
        """Create or fully replace a user's subscription and restart its timer."""
        symbol_set = {s.upper() for s in symbols}
        underlyings = {u for u in (extract_underlying(s) for s in symbol_set) if u}

        subscription = GreeksSubscription(
            user_id=user_id,
            symbols=symbol_set,
            underlyings=underlyings,
            update_frequency_ms=self.clamp_frequency(frequency_ms),
        )

        await self._stop_task(user_id)
        self._subscriptions[user_id] = subscription

        async def run_update() -> None:
            await self.run_scheduled_update(user_id)

        self._tasks[user_id] = schedule_periodic(
            subscription.update_frequency_ms,
            run_update,
            name=f"greeks:{user_id}",
        )

        logger.info(
            f"Greeks subscription created for user {user_id} with {len(symbol_set)} symbols "
            f"every {subscription.update_frequency_ms}ms"
        )
        return subscription

    async def unsubscribe(self, user_id: str) -> bool:
        """Cancel the user's timer and drop their subscription and portfolio Greeks."""
        await self._stop_task(user_id)
        self._portfolio_greeks.pop(user_id, None)
        removed = self._subscriptions.pop(user_id, None) is not None
        if removed:
            logger.info(f"Greeks subscription removed for user {user_id}")
        return removed

    def get_subscription(self, user_id: str) -> Optional[GreeksSubscription]:
        return self._subscriptions.get(user_id)

    async def _stop_task(self, user_id: str) -> None:
        task = self._tasks.pop(user_id, None)
        if task is not None:
            await task.stop()

    # ============ Cache ============

    def track_symbol(
        self,
        symbol: str,
        spot: float,
        volatility: float,
        greeks: Optional[Greeks] = None,
        underlying: Optional[str] = None,
        position: Optional[OptionPosition] = None,
    ) -> CachedGreeksData:
        """Register (or replace) a cache entry for a symbol."""
        symbol = symbol.upper()
        if underlying is None:
            underlying = position.underlying if position else extract_underlying(symbol)
        if not underlying:
            raise ValueError(f"Cannot derive underlying from symbol {symbol}")
        underlying = underlying.upper()

        entry = CachedGreeksData(
            symbol=symbol,
            underlying=underlying,
            greeks=greeks or (position.greeks if position else Greeks.zero()),
            spot_price=spot,
            volatility=volatility,
            position=position,
        )
        self._cache[symbol] = entry
        return entry

    def evict_symbol(self, symbol: str) -> bool:
        return self._cache.pop(symbol.upper(), None) is not None

    def get_cached(self, symbol: str) -> Optional[CachedGreeksData]:
        return self._cache.get(symbol.upper())

    def symbols_for_underlying(self, underlying: str) -> list[str]:
        underlying = underlying.upper()
        return [s for s, entry in self._cache.items() if entry.underlying == underlying]

    # ============ Recompute ============

    def is_significant(self, old: Greeks, new: Greeks) -> bool:
        """True if any Greek moved by more than the sensitivity threshold."""
        return old.max_abs_change(new) > self.settings.greeks_sensitivity_threshold

    async def on_price_change(
        self,
        underlying: str,
        spot: float,
        volatility: Optional[float] = None,
    ) -> list[GreeksUpdateEvent]:
        """
        Recompute every cached symbol on the underlying.

        Symbols whose spot moved less than the price threshold are skipped.
        Significant changes are cached and pushed to matching subscribers.
        """
        tasks = []
        for symbol in self.symbols_for_underlying(underlying):
            entry = self._cache[symbol]
            if entry.spot_price > 0:
                move = abs(spot - entry.spot_price) / entry.spot_price
                if move < self.settings.price_change_threshold:
                    logger.debug(f"Skipping {symbol}: {move:.4%} move below threshold")
                    continue
            tasks.append(self._recompute(symbol, spot, volatility or entry.volatility))

        results = await asyncio.gather(*tasks)
        updates = [event for event in results if event is not None]

        if updates:
            await self._emit(updates)
        return updates

    async def run_scheduled_update(self, user_id: str) -> list[GreeksUpdateEvent]:
        """Re-evaluate a subscription's symbols at their last known spot / volatility."""
        subscription = self._subscriptions.get(user_id)
        if subscription is None:
            return []

        tasks = []
        for symbol in subscription.symbols:
            entry = self._cache.get(symbol)
            if entry is not None:
                tasks.append(self._recompute(symbol, entry.spot_price, entry.volatility))
        results = await asyncio.gather(*tasks)
        updates = [event for event in results if event is not None]

        if updates:
            await self._emit(updates, user_id=user_id)
        subscription.last_update = datetime.now()
        return updates

    async def _recompute(
        self,
        symbol: str,
        spot: float,
        volatility: float,
    ) -> Optional[GreeksUpdateEvent]:
        """Recompute one symbol. Failures are logged and skipped."""
        entry = self._cache.get(symbol)
        if entry is None:
            return None

        started = datetime.now()
        try:
            greeks = await self._compute_greeks(entry, spot, volatility)
        except Exception as e:
            logger.error(f"Error updating Greeks for {symbol}: {e}")
            return None
        if greeks is None:
            return None

        current = self._cache.get(symbol)
        if current is None:
            return None
        if current.last_update > started:
            logger.debug(f"Discarding stale recompute for {symbol}")
            return None
        if not self.is_significant(current.greeks, greeks):
            return None

        now = datetime.now()
        self._cache[symbol] = current.model_copy(
            update={
                "greeks": greeks,
                "spot_price": spot,
                "volatility": volatility,
                "last_update": now,
            }
        )
        return GreeksUpdateEvent(
            symbol=symbol,
            underlying=current.underlying,
            greeks=greeks,
            timestamp=now,
            spot_price=spot,
            implied_volatility=volatility,
        )

    async def _compute_greeks(
        self,
        entry: CachedGreeksData,
        spot: float,
        volatility: float,
    ) -> Optional[Greeks]:
        """Contract terms from the position snapshot, else from the symbol."""
        if entry.position is not None:
            strike = entry.position.strike
            expiry = entry.position.expiry_date
            option_class = entry.position.option_class
        else:
            parsed = parse_option_symbol(entry.symbol)
            if parsed is None:
                logger.debug(f"Skipping unparseable symbol {entry.symbol}")
                return None
            strike, expiry, option_class = parsed.strike, parsed.expiry_date, parsed.option_class

        years = self.pricer.days_to_years(self.pricer.days_to_expiry(expiry))
        if years <= 0:
            return Greeks.zero()

        return await self.pricer.compute_greeks(
            spot,
            strike,
            years,
            self.settings.risk_free_rate,
            volatility,
            self.settings.dividend_yield,
            option_class,
        )

    async def _emit(self, updates: list[GreeksUpdateEvent], user_id: Optional[str] = None) -> None:
        """Push updates to every subscriber (or one user) whose symbols or underlyings match."""
        if self.notifier is None:
            return

        targets = [user_id] if user_id is not None else list(self._subscriptions)
        for target in targets:
            subscription = self._subscriptions.get(target)
            if subscription is None:
                continue

            relevant = [
                u for u in updates
                if u.symbol in subscription.symbols or u.underlying in subscription.underlyings
            ]
            if not relevant:
                continue
            try:
                await self.notifier.send_to_user(
                    target,
                    "greeks_update",
                    {
                        "updates": [u.model_dump(mode="json") for u in relevant],
                        "timestamp": datetime.now().isoformat(),
                    },
                )
            except Exception as e:
                logger.warning(f"Greeks update delivery failed for {target}: {e}")

    # ============ Portfolio Greeks ============

    def aggregate_portfolio_greeks(
        self,
        user_id: str,
        positions: list[DerivativePosition],
    ) -> PortfolioGreeks:
        """Quantity-weighted, direction-signed Greeks with per-underlying breakdown."""
        total = Greeks.zero()
        breakdown: Dict[str, Greeks] = {}

        for position in positions:
            weighted = position_greeks(position)
            total = total.plus(weighted)
            breakdown[position.underlying] = breakdown.get(position.underlying, Greeks.zero()).plus(weighted)

        portfolio = PortfolioGreeks(
            user_id=user_id,
            total=total.rounded(4),
            by_underlying={u: g.rounded(4) for u, g in breakdown.items()},
            position_count=len(positions),
        )
        self._portfolio_greeks[user_id] = portfolio
        return portfolio

    def get_portfolio_greeks(self, user_id: str) -> Optional[PortfolioGreeks]:
        return self._portfolio_greeks.get(user_id)

    # ============ Lifecycle ============

    def get_stats(self) -> Dict[str, Any]:
        return {
            "subscriptions": len(self._subscriptions),
            "cached_symbols": len(self._cache),
            "active_timers": sum(1 for t in self._tasks.values() if t.running),
            "portfolio_greeks": len(self._portfolio_greeks),
        }

    async def shutdown(self) -> None:
        """Cancel every timer and clear all state."""
        for user_id in list(self._tasks):
            await self._stop_task(user_id)

        self._subscriptions.clear()
        self._cache.clear()
        self._portfolio_greeks.clear()
        logger.info("Real-time Greeks service shutdown complete")
