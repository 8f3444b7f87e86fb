"""Shared fixtures for the risk engine tests."""

import asyncio
from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from derivrisk.core.config import Settings
from derivrisk.schemas.positions import (
    FuturesPosition,
    Greeks,
    OptionClass,
    OptionPosition,
    PositionSide,
)
from derivrisk.schemas.risk import ConcentrationMetrics, MarginInfo, PortfolioRisk
from derivrisk.services.pricing.interface import GreeksProvider


class FakePricer(GreeksProvider):
    """Returns fixed Greeks and records calls."""

    def __init__(self, greeks: Optional[Greeks] = None):
        self.greeks = greeks or Greeks(delta=0.5, gamma=0.01, theta=-2.0, vega=10.0, rho=1.0)
        self.calls: list[dict] = []
        self.fail_strikes: set[float] = set()
        self.gate: Optional[asyncio.Event] = None

    async def compute_greeks(
        self,
        spot,
        strike,
        time_to_expiry_years,
        risk_free_rate,
        volatility,
        dividend_yield,
        option_class,
    ) -> Greeks:
        self.calls.append(
            {
                "spot": spot,
                "strike": strike,
                "years": time_to_expiry_years,
                "volatility": volatility,
                "option_class": option_class,
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        if strike in self.fail_strikes:
            raise RuntimeError("pricing failed")
        return self.greeks


class RecordingChannel:
    """Notification channel that keeps every message."""

    def __init__(self):
        self.messages: list[tuple[str, str, dict]] = []

    async def send_to_user(self, user_id: str, event: str, payload: dict) -> None:
        self.messages.append((user_id, event, payload))

    def for_user(self, user_id: str) -> list[tuple[str, dict]]:
        return [(event, payload) for user, event, payload in self.messages if user == user_id]


class FailingChannel(RecordingChannel):
    """Records every attempt, then fails the delivery."""

    async def send_to_user(self, user_id: str, event: str, payload: dict) -> None:
        await super().send_to_user(user_id, event, payload)
        raise ConnectionError("socket closed")


class FakePositionSource:
    def __init__(self, positions=None, margin_info=None, daily_pnl=0.0):
        self.positions = positions or []
        self.margin_info = margin_info or MarginInfo()
        self.daily_pnl = daily_pnl
        self.calls = 0

    async def get_positions(self, user_id, broker_id):
        self.calls += 1
        return self.positions

    async def get_margin_info(self, user_id, broker_id):
        return self.margin_info

    async def get_daily_pnl(self, user_id, broker_id):
        return self.daily_pnl


class RecordingExecutor:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.actions = []

    async def execute(self, user_id, broker_id, action):
        if self.fail:
            raise RuntimeError("broker rejected order")
        self.actions.append((user_id, broker_id, action))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, greeks_min_frequency_ms=10)


@pytest.fixture
def fake_pricer() -> FakePricer:
    return FakePricer()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def failing_channel() -> FailingChannel:
    return FailingChannel()


@pytest.fixture
def make_option():
    def _make(
        id: str = "opt-1",
        underlying: str = "NIFTY",
        side: PositionSide = PositionSide.LONG,
        quantity: float = 50,
        greeks: Optional[Greeks] = None,
        position_value: float = 100_000,
        strike: float = 20_000,
        expiry_date: Optional[date] = None,
        option_class: OptionClass = OptionClass.CALL,
        implied_volatility: float = 0.2,
        margin_used: float = 0.0,
        unrealized_pnl: float = 0.0,
        symbol: Optional[str] = None,
    ) -> OptionPosition:
        return OptionPosition(
            id=id,
            symbol=symbol or f"{underlying}24JAN{int(strike)}CE",
            underlying=underlying,
            position_type=side,
            quantity=quantity,
            position_value=position_value,
            margin_used=margin_used,
            unrealized_pnl=unrealized_pnl,
            option_class=option_class,
            strike=strike,
            expiry_date=expiry_date or date.today() + timedelta(days=30),
            greeks=greeks or Greeks(delta=0.5, gamma=0.001, theta=-5.0, vega=12.0, rho=3.0),
            implied_volatility=implied_volatility,
        )

    return _make


@pytest.fixture
def make_futures():
    def _make(
        id: str = "fut-1",
        underlying: str = "NIFTY",
        side: PositionSide = PositionSide.LONG,
        quantity: float = 50,
        current_price: float = 20_000,
        multiplier: float = 1.0,
        position_value: float = 1_000_000,
        margin_used: float = 0.0,
        unrealized_pnl: float = 0.0,
    ) -> FuturesPosition:
        return FuturesPosition(
            id=id,
            symbol=f"{underlying}24JANFUT",
            underlying=underlying,
            position_type=side,
            quantity=quantity,
            current_price=current_price,
            multiplier=multiplier,
            position_value=position_value,
            margin_used=margin_used,
            unrealized_pnl=unrealized_pnl,
        )

    return _make


@pytest.fixture
def make_risk():
    def _make(
        greeks: Optional[Greeks] = None,
        value_at_risk: float = 0.0,
        largest_position_percent: float = 0.0,
        total_value: float = 1_000_000,
    ) -> PortfolioRisk:
        return PortfolioRisk(
            total_value=total_value,
            derivatives_exposure=total_value,
            margin_used=0.0,
            margin_available=0.0,
            value_at_risk=value_at_risk,
            portfolio_greeks=greeks or Greeks(),
            concentration_risk=ConcentrationMetrics(
                largest_position_percent=largest_position_percent,
            ),
            last_calculated=datetime.now(),
        )

    return _make


@pytest.fixture
def make_source():
    return FakePositionSource


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def failing_executor() -> RecordingExecutor:
    return RecordingExecutor(fail=True)
