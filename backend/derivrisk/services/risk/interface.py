"""
Risk Engine Collaborator Interfaces

Defines the contracts for the external collaborators the risk
limits monitor consumes. The engine never mutates positions.
"""

from typing import Protocol

from derivrisk.schemas.limits import RiskReductionSuggestion
from derivrisk.schemas.positions import DerivativePosition
from derivrisk.schemas.risk import MarginInfo


class PositionSource(Protocol):
    """Supplies current positions and account state per (user, broker)."""

    async def get_positions(self, user_id: str, broker_id: str) -> list[DerivativePosition]:
        """Open derivative positions."""
        ...

    async def get_margin_info(self, user_id: str, broker_id: str) -> MarginInfo:
        """Current broker margin snapshot."""
        ...

    async def get_daily_pnl(self, user_id: str, broker_id: str) -> float:
        """Today's realised + unrealised P&L (negative is a loss)."""
        ...


class RiskActionExecutor(Protocol):
    """Executes auto-executable remediation actions (e.g. stop trading)."""

    async def execute(self, user_id: str, broker_id: str, action: RiskReductionSuggestion) -> None:
        ...
