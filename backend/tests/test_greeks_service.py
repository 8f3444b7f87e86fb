"""Real-time Greeks service tests."""

import asyncio
from datetime import date, timedelta

import pytest

from derivrisk.core.config import Settings
from derivrisk.schemas.positions import Greeks, OptionClass, PositionSide
from derivrisk.services.greeks import RealTimeGreeksService

NEXT_YEAR = (date.today().year + 1) % 100


def option_symbol(underlying: str = "NIFTY", strike: int = 20000, kind: str = "CE") -> str:
    """A symbol whose monthly expiry is in the future."""
    return f"{underlying}{NEXT_YEAR:02d}JAN{strike}{kind}"


@pytest.fixture
def service(settings, fake_pricer, channel) -> RealTimeGreeksService:
    return RealTimeGreeksService(settings, pricer=fake_pricer, notifier=channel)


class TestSubscriptions:
    @pytest.mark.parametrize(
        "requested, expected",
        [(None, 1000), (50, 500), (2500, 2500), (50_000, 5000)],
    )
    def test_frequency_clamped(self, requested, expected):
        service = RealTimeGreeksService(Settings(_env_file=None))
        assert service.clamp_frequency(requested) == expected

    @pytest.mark.asyncio
    async def test_subscribe_derives_underlyings(self, service):
        subscription = await service.subscribe(
            "user-1", [option_symbol().lower(), option_symbol("BANKNIFTY", 45000, "PE")], frequency_ms=5000
        )
        try:
            assert subscription.symbols == {option_symbol(), option_symbol("BANKNIFTY", 45000, "PE")}
            assert subscription.underlyings == {"NIFTY", "BANKNIFTY"}
            assert subscription.update_frequency_ms == 5000
            assert service.get_stats()["active_timers"] == 1
        finally:
            await service.shutdown()

    @pytest.mark.asyncio
    async def test_resubscribe_replaces(self, service):
        await service.subscribe("user-1", [option_symbol()], frequency_ms=5000)
        await service.subscribe("user-1", [option_symbol("TCS", 4000)], frequency_ms=5000)

        subscription = service.get_subscription("user-1")
        assert subscription.symbols == {option_symbol("TCS", 4000)}
        assert service.get_stats()["active_timers"] == 1

        assert await service.unsubscribe("user-1") is True
        assert service.get_subscription("user-1") is None
        assert service.get_stats()["active_timers"] == 0
        assert await service.unsubscribe("user-1") is False


class TestCache:
    def test_track_symbol(self, service):
        entry = service.track_symbol(option_symbol().lower(), spot=20100, volatility=0.15)
        assert entry.underlying == "NIFTY"
        assert entry.greeks == Greeks.zero()
        assert service.get_cached(option_symbol()) is entry
        assert service.symbols_for_underlying("NIFTY") == [option_symbol()]

    def test_track_symbol_without_underlying(self, service):
        with pytest.raises(ValueError):
            service.track_symbol("24JAN20000CE", spot=100, volatility=0.2)

    def test_evict(self, service):
        service.track_symbol(option_symbol(), spot=20100, volatility=0.15)
        assert service.evict_symbol(option_symbol()) is True
        assert service.evict_symbol(option_symbol()) is False

    @pytest.mark.parametrize("delta, significant", [(0.5009, False), (0.5011, True)])
    def test_significance(self, service, delta, significant):
        assert service.is_significant(Greeks(delta=0.5), Greeks(delta=delta)) is significant


class TestPriceChange:
    @pytest.mark.asyncio
    async def test_small_move_skipped(self, service, fake_pricer):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)

        updates = await service.on_price_change("NIFTY", 20010)

        assert updates == []
        assert fake_pricer.calls == []

    @pytest.mark.asyncio
    async def test_significant_change_cached(self, service, fake_pricer):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)

        [update] = await service.on_price_change("NIFTY", 20200, volatility=0.18)

        assert update.symbol == option_symbol()
        assert update.greeks == fake_pricer.greeks
        [call] = fake_pricer.calls
        assert call["spot"] == 20200
        assert call["strike"] == 20000
        assert call["volatility"] == 0.18
        assert call["option_class"] == OptionClass.CALL
        assert call["years"] > 0

        entry = service.get_cached(option_symbol())
        assert entry.greeks == fake_pricer.greeks
        assert entry.spot_price == 20200
        assert entry.volatility == 0.18

    @pytest.mark.asyncio
    async def test_unchanged_greeks_not_emitted(self, service, fake_pricer):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15, greeks=fake_pricer.greeks)

        assert await service.on_price_change("NIFTY", 20200) == []
        assert service.get_cached(option_symbol()).spot_price == 20000

    @pytest.mark.asyncio
    async def test_updates_routed_to_matching_users(self, service, channel):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)
        service.track_symbol(option_symbol("TCS", 4000), spot=4000, volatility=0.2)
        await service.subscribe("nifty-user", [option_symbol("NIFTY", 21000)], frequency_ms=5000)
        await service.subscribe("tcs-user", [option_symbol("TCS", 4000)], frequency_ms=5000)

        try:
            await service.on_price_change("NIFTY", 20200)
        finally:
            await service.shutdown()

        [(event, payload)] = channel.for_user("nifty-user")
        assert event == "greeks_update"
        assert [u["symbol"] for u in payload["updates"]] == [option_symbol()]
        assert channel.for_user("tcs-user") == []

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, service, fake_pricer):
        fake_pricer.fail_strikes.add(21000.0)
        service.track_symbol(option_symbol(strike=20000), spot=20000, volatility=0.15)
        service.track_symbol(option_symbol(strike=21000), spot=20000, volatility=0.15)
        service.track_symbol("NIFTYWEEKLY", spot=20000, volatility=0.15, underlying="NIFTY")

        updates = await service.on_price_change("NIFTY", 20200)

        assert [u.symbol for u in updates] == [option_symbol(strike=20000)]
        assert service.get_cached(option_symbol(strike=21000)).greeks == Greeks.zero()
        assert service.get_cached("NIFTYWEEKLY").spot_price == 20000

    @pytest.mark.asyncio
    async def test_position_terms_used(self, service, fake_pricer, make_option):
        position = make_option(
            strike=19500,
            option_class=OptionClass.PUT,
            expiry_date=date.today() + timedelta(days=10),
            side=PositionSide.SHORT,
        )
        service.track_symbol("NIFTY-CUSTOM-1", spot=20000, volatility=0.15, greeks=Greeks.zero(), position=position)

        await service.on_price_change("NIFTY", 20200)

        [call] = fake_pricer.calls
        assert call["strike"] == 19500
        assert call["option_class"] == OptionClass.PUT

    @pytest.mark.asyncio
    async def test_expired_option_has_zero_greeks(self, service, fake_pricer):
        expired = "NIFTY20JAN20000CE"
        service.track_symbol(expired, spot=20000, volatility=0.15, greeks=Greeks(delta=1.0))

        [update] = await service.on_price_change("NIFTY", 20200)

        assert update.greeks == Greeks.zero()
        assert fake_pricer.calls == []

    @pytest.mark.asyncio
    async def test_stale_recompute_discarded(self, service, fake_pricer):
        fake_pricer.gate = asyncio.Event()
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)

        pending = asyncio.create_task(service.on_price_change("NIFTY", 20200))
        await asyncio.sleep(0.01)
        newer = Greeks(delta=0.9)
        service.track_symbol(option_symbol(), spot=20300, volatility=0.15, greeks=newer)
        fake_pricer.gate.set()

        assert await pending == []
        assert service.get_cached(option_symbol()).greeks == newer

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_reach_feed(self, settings, fake_pricer, failing_channel):
        service = RealTimeGreeksService(settings, pricer=fake_pricer, notifier=failing_channel)
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)
        await service.subscribe("user-1", [option_symbol()], frequency_ms=5000)
        await service.subscribe("user-2", [option_symbol()], frequency_ms=5000)

        try:
            updates = await service.on_price_change("NIFTY", 20200)
        finally:
            await service.shutdown()

        assert len(updates) == 1
        assert {user for user, _, _ in failing_channel.messages} == {"user-1", "user-2"}

    @pytest.mark.asyncio
    async def test_underlying_matching_ignores_case(self, service, make_option):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)
        service.track_symbol(
            "NIFTY-CUSTOM-1", spot=20000, volatility=0.15, position=make_option(underlying="nifty")
        )

        assert service.get_cached("NIFTY-CUSTOM-1").underlying == "NIFTY"
        updates = await service.on_price_change("nifty", 20200)

        assert {u.symbol for u in updates} == {option_symbol(), "NIFTY-CUSTOM-1"}


class TestScheduledUpdates:
    @pytest.mark.asyncio
    async def test_scheduled_update_targets_one_user(self, service, channel):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)
        await service.subscribe("user-1", [option_symbol()], frequency_ms=5000)
        await service.subscribe("user-2", [option_symbol()], frequency_ms=5000)

        try:
            [update] = await service.run_scheduled_update("user-1")
        finally:
            await service.shutdown()

        assert update.spot_price == 20000
        assert len(channel.for_user("user-1")) == 1
        assert channel.for_user("user-2") == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, service):
        assert await service.run_scheduled_update("nobody") == []

    @pytest.mark.asyncio
    async def test_timer_fires(self, service, channel):
        service.track_symbol(option_symbol(), spot=20000, volatility=0.15)
        await service.subscribe("user-1", [option_symbol()], frequency_ms=10)

        await asyncio.sleep(0.1)
        await service.shutdown()

        assert len(channel.for_user("user-1")) == 1
        assert service.get_stats() == {
            "subscriptions": 0,
            "cached_symbols": 0,
            "active_timers": 0,
            "portfolio_greeks": 0,
        }


class TestPortfolioGreeks:
    def test_aggregate(self, service, make_option, make_futures):
        positions = [
            make_option(id="a", quantity=50, greeks=Greeks(delta=0.5, gamma=0.01)),
            make_option(id="b", side=PositionSide.SHORT, quantity=25, greeks=Greeks(delta=0.4, gamma=0.02)),
            make_option(id="c", underlying="TCS", quantity=10, greeks=Greeks(delta=-0.3)),
            make_futures(),
        ]

        portfolio = service.aggregate_portfolio_greeks("user-1", positions)

        assert portfolio.total.delta == pytest.approx(25 - 10 - 3)
        assert portfolio.total.gamma == pytest.approx(0.5 - 0.5)
        assert portfolio.by_underlying["NIFTY"].delta == pytest.approx(15)
        assert portfolio.by_underlying["TCS"].delta == pytest.approx(-3)
        assert portfolio.position_count == 4
        assert service.get_portfolio_greeks("user-1") is portfolio

    @pytest.mark.asyncio
    async def test_unsubscribe_drops_portfolio_greeks(self, service, make_option):
        await service.subscribe("user-1", [option_symbol()], frequency_ms=5000)
        service.aggregate_portfolio_greeks("user-1", [make_option()])

        await service.unsubscribe("user-1")

        assert service.get_portfolio_greeks("user-1") is None
