"""
Risk Limits Monitor Implementation

Evaluates a risk snapshot against per-(user, broker) limits.
PURE PYTHON - all checks are deterministic and auditable.

CRITICAL: Each ceiling is checked independently.
Missing or disabled limits mean "no violations", never an error.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import uuid4

from derivrisk.core.config import Settings, get_settings
from derivrisk.schemas.limits import (
    ActionPriority,
    ActionType,
    AlertChannel,
    RiskAlertConfig,
    RiskCheckInput,
    RiskLimits,
    RiskLimitsUpdate,
    RiskReductionSuggestion,
    RiskViolation,
    RiskViolationType,
    Severity,
    ViolationStatus,
)
from derivrisk.schemas.positions import DerivativePosition
from derivrisk.schemas.risk import MarginInfo, PortfolioRisk
from derivrisk.services.base import BaseService, ExternalAPIError
from derivrisk.services.cache.redis_client import RiskConfigStore
from derivrisk.services.notifications.hub import NotificationChannel
from derivrisk.services.risk.aggregator import PortfolioRiskAggregator
from derivrisk.services.risk.exposure import group_by_underlying
from derivrisk.services.risk.interface import PositionSource, RiskActionExecutor
from derivrisk.services.scheduler import ScheduledTask, schedule_periodic

logger = logging.getLogger(__name__)

GREEK_VIOLATIONS = {
    RiskViolationType.DELTA_EXPOSURE: "delta",
    RiskViolationType.GAMMA_EXPOSURE: "gamma",
    RiskViolationType.VEGA_EXPOSURE: "vega",
}


@dataclass
class MonitoringSubscription:
    """Active periodic risk check for one (user, broker)."""

    user_id: str
    broker_id: str
    check_frequency_ms: int
    last_check: datetime = field(default_factory=datetime.now)
    task: Optional[ScheduledTask] = None


class RiskLimitsMonitor(BaseService[RiskCheckInput, list[RiskViolation]]):
    """
    Risk Limits Monitor.

    INPUT: RiskCheckInput
        - positions, portfolio_risk, margin_info, daily_pnl

    OUTPUT: list[RiskViolation]
        - one per breached ceiling (one per position for position_size)
        - severity: warning / error / critical by % over limit
        - suggested remediation actions

    CHECKS (independent):
        1. Position size (per position)
        2. Daily loss
        3. Margin utilization
        4. Delta / gamma / vega exposure
        5. Concentration
        6. Position count
        7. Value at Risk
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[RiskConfigStore] = None,
        notifier: Optional[NotificationChannel] = None,
        aggregator: Optional[PortfolioRiskAggregator] = None,
        position_source: Optional[PositionSource] = None,
        action_executor: Optional[RiskActionExecutor] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.notifier = notifier
        self.aggregator = aggregator or PortfolioRiskAggregator(self.settings)
        self.position_source = position_source
        self.action_executor = action_executor

        self._limits: dict[tuple[str, str], RiskLimits] = {}
        self._alert_configs: dict[str, RiskAlertConfig] = {}
        self._violations: dict[str, RiskViolation] = {}
        self._open_violations: dict[tuple, str] = {}
        self._subscriptions: dict[tuple[str, str], MonitoringSubscription] = {}
        self._last_alerts: dict[str, dict[RiskViolationType, datetime]] = defaultdict(dict)

    @property
    def name(self) -> str:
        return "RiskLimitsMonitor"

    async def execute(self, input_data: RiskCheckInput) -> list[RiskViolation]:
        return await self.check_violations(
            input_data.user_id,
            input_data.broker_id,
            input_data.positions,
            input_data.portfolio_risk,
            input_data.margin_info,
            input_data.daily_pnl,
        )

    async def health_check(self) -> bool:
        return True

    # =========================================================================
    # LIMITS
    # =========================================================================

    def default_limits(self, user_id: str, broker_id: str) -> RiskLimits:
        s = self.settings
        return RiskLimits(
            user_id=user_id,
            broker_id=broker_id,
            max_position_size=s.default_max_position_size,
            max_daily_loss=s.default_max_daily_loss,
            max_margin_utilization=s.default_max_margin_utilization,
            max_delta_exposure=s.default_max_delta_exposure,
            max_gamma_exposure=s.default_max_gamma_exposure,
            max_vega_exposure=s.default_max_vega_exposure,
            max_concentration_percent=s.default_max_concentration_percent,
            max_positions=s.default_max_positions,
            max_value_at_risk=s.default_max_value_at_risk,
        )

    async def set_risk_limits(
        self,
        user_id: str,
        broker_id: str,
        limits: Union[RiskLimitsUpdate, dict, None] = None,
    ) -> RiskLimits:
        """Merge the given fields onto the defaults and upsert."""
        if isinstance(limits, dict):
            limits = RiskLimitsUpdate(**limits)
        changes = limits.model_dump(exclude_none=True) if limits else {}

        merged = self.default_limits(user_id, broker_id).model_dump()
        merged.update(changes)
        merged["last_updated"] = datetime.now()
        risk_limits = RiskLimits(**merged)

        self._limits[(user_id, broker_id)] = risk_limits
        if self.store:
            await self.store.set_risk_limits(risk_limits)

        logger.info(f"Risk limits set for user {user_id}, broker {broker_id}")
        return risk_limits

    async def get_risk_limits(self, user_id: str, broker_id: str) -> Optional[RiskLimits]:
        """In-memory limits, else the persisted copy, else None."""
        key = (user_id, broker_id)
        limits = self._limits.get(key)
        if limits is None and self.store:
            limits = await self.store.get_risk_limits(user_id, broker_id)
            if limits is not None:
                self._limits[key] = limits
        return limits

    # =========================================================================
    # ALERT CONFIG
    # =========================================================================

    async def configure_risk_alerts(
        self,
        user_id: str,
        config: Optional[dict] = None,
    ) -> RiskAlertConfig:
        """Merge the given fields onto the default alert configuration."""
        values = {
            "user_id": user_id,
            "frequency_minutes": self.settings.alert_frequency_minutes,
            "warning_thresholds": {
                violation_type: self.settings.alert_warning_threshold_percent
                for violation_type in RiskViolationType
            },
            "channels": [AlertChannel()],
        }
        values.update(config or {})
        values["user_id"] = user_id
        alert_config = RiskAlertConfig(**values)

        self._alert_configs[user_id] = alert_config
        if self.store:
            await self.store.set_alert_config(alert_config)

        logger.info(f"Risk alert configuration set for user {user_id}")
        return alert_config

    async def get_alert_config(self, user_id: str) -> Optional[RiskAlertConfig]:
        config = self._alert_configs.get(user_id)
        if config is None and self.store:
            config = await self.store.get_alert_config(user_id)
            if config is not None:
                self._alert_configs[user_id] = config
        return config

    # =========================================================================
    # VIOLATION CHECKS
    # =========================================================================

    async def check_violations(
        self,
        user_id: str,
        broker_id: str,
        positions: list[DerivativePosition],
        portfolio_risk: PortfolioRisk,
        margin_info: Optional[MarginInfo] = None,
        daily_pnl: float = 0.0,
    ) -> list[RiskViolation]:
        """Evaluate every ceiling. Empty when limits are missing or disabled."""
        limits = await self.get_risk_limits(user_id, broker_id)
        if limits is None or not limits.enabled:
            return []

        margin_info = margin_info or MarginInfo()
        greeks = portfolio_risk.portfolio_greeks
        violations: list[RiskViolation] = []

        def breach(
            violation_type: RiskViolationType,
            current: float,
            limit: float,
            message: str,
            affected: Optional[list[str]] = None,
            auto_remediation: bool = False,
        ) -> None:
            violations.append(
                self._build_violation(
                    user_id, broker_id, positions, violation_type, current, limit,
                    message, affected or [], auto_remediation,
                )
            )

        # Rule 1: Position size
        for position in positions:
            value = abs(position.position_value)
            if value > limits.max_position_size:
                breach(
                    RiskViolationType.POSITION_SIZE, value, limits.max_position_size,
                    f"Position {position.symbol} exceeds maximum size limit",
                    affected=[position.id],
                )

        # Rule 2: Daily loss
        if daily_pnl < 0 and abs(daily_pnl) > limits.max_daily_loss:
            breach(
                RiskViolationType.DAILY_LOSS, abs(daily_pnl), limits.max_daily_loss,
                "Daily loss exceeds maximum limit",
                affected=[p.id for p in positions],
                auto_remediation=True,
            )

        # Rule 3: Margin utilization
        if margin_info.margin_utilization > limits.max_margin_utilization:
            breach(
                RiskViolationType.MARGIN_UTILIZATION,
                margin_info.margin_utilization, limits.max_margin_utilization,
                "Margin utilization exceeds maximum limit",
                affected=[p.id for p in positions],
            )

        # Rule 4: Greeks exposure
        for violation_type, greek_limit in (
            (RiskViolationType.DELTA_EXPOSURE, limits.max_delta_exposure),
            (RiskViolationType.GAMMA_EXPOSURE, limits.max_gamma_exposure),
            (RiskViolationType.VEGA_EXPOSURE, limits.max_vega_exposure),
        ):
            greek_name = GREEK_VIOLATIONS[violation_type]
            exposure = abs(getattr(greeks, greek_name))
            if exposure > greek_limit:
                breach(
                    violation_type, exposure, greek_limit,
                    f"{greek_name.capitalize()} exposure exceeds maximum limit",
                    affected=[p.id for p in positions],
                )

        # Rule 5: Concentration
        largest = portfolio_risk.concentration_risk.largest_position_percent
        if largest > limits.max_concentration_percent:
            breach(
                RiskViolationType.CONCENTRATION, largest, limits.max_concentration_percent,
                "Portfolio concentration exceeds maximum limit",
                affected=[p.id for p in positions],
            )

        # Rule 6: Position count
        if len(positions) > limits.max_positions:
            breach(
                RiskViolationType.POSITION_COUNT, len(positions), limits.max_positions,
                "Number of positions exceeds maximum limit",
                affected=[p.id for p in positions],
            )

        # Rule 7: Value at Risk
        if portfolio_risk.value_at_risk > limits.max_value_at_risk:
            breach(
                RiskViolationType.VALUE_AT_RISK,
                portfolio_risk.value_at_risk, limits.max_value_at_risk,
                "Value at Risk exceeds maximum limit",
                affected=[p.id for p in positions],
            )

        violations = [self._record(violation) for violation in violations]
        for violation in violations:
            await self._send_alert(violation)

        if violations:
            logger.info(
                f"{len(violations)} risk violations for user {user_id}, broker {broker_id}"
            )
        return violations

    @staticmethod
    def _violation_key(violation: RiskViolation) -> tuple:
        """Identity of an ongoing breach. Position size is tracked per position."""
        affected = ()
        if violation.violation_type == RiskViolationType.POSITION_SIZE:
            affected = tuple(sorted(violation.affected_positions))
        return (violation.user_id, violation.broker_id, violation.violation_type, affected)

    def _record(self, violation: RiskViolation) -> RiskViolation:
        """
        Store a new violation, or refresh the open one for the same breach.
        An open violation keeps its id, status and first-seen timestamp.
        """
        key = self._violation_key(violation)
        existing = self._violations.get(self._open_violations.get(key, ""))
        if existing is not None and existing.status != ViolationStatus.RESOLVED:
            existing.severity = violation.severity
            existing.current_value = violation.current_value
            existing.limit_value = violation.limit_value
            existing.violation_percent = violation.violation_percent
            existing.message = violation.message
            existing.affected_positions = violation.affected_positions
            existing.suggested_actions = violation.suggested_actions
            existing.auto_remediation = violation.auto_remediation
            return existing

        self._violations[violation.id] = violation
        self._open_violations[key] = violation.id
        return violation

    def classify_severity(self, violation_percent: float) -> Severity:
        """Monotonic in the overage: >critical% critical, >error% error, else warning."""
        if violation_percent > self.settings.severity_critical_percent:
            return Severity.CRITICAL
        if violation_percent > self.settings.severity_error_percent:
            return Severity.ERROR
        return Severity.WARNING

    def _build_violation(
        self,
        user_id: str,
        broker_id: str,
        positions: list[DerivativePosition],
        violation_type: RiskViolationType,
        current: float,
        limit: float,
        message: str,
        affected: list[str],
        auto_remediation: bool,
    ) -> RiskViolation:
        violation_percent = (current - limit) / limit * 100
        violation = RiskViolation(
            id=f"{violation_type.value}-{uuid4().hex}",
            user_id=user_id,
            broker_id=broker_id,
            violation_type=violation_type,
            severity=self.classify_severity(violation_percent),
            current_value=current,
            limit_value=limit,
            violation_percent=violation_percent,
            message=message,
            affected_positions=affected,
            auto_remediation=auto_remediation,
        )
        violation.suggested_actions = self.generate_suggestions(positions, [violation])
        return violation

    # =========================================================================
    # SUGGESTIONS
    # =========================================================================

    def generate_suggestions(
        self,
        positions: list[DerivativePosition],
        violations: list[RiskViolation],
    ) -> list[RiskReductionSuggestion]:
        suggestions: list[RiskReductionSuggestion] = []
        for violation in violations:
            t = violation.violation_type
            if t == RiskViolationType.POSITION_SIZE:
                suggestions.extend(self._suggest_position_reduction(positions, violation))
            elif t == RiskViolationType.DAILY_LOSS:
                suggestions.extend(self._suggest_loss_reduction(positions, violation))
            elif t == RiskViolationType.MARGIN_UTILIZATION:
                suggestions.extend(self._suggest_margin_relief(positions, violation))
            elif t == RiskViolationType.CONCENTRATION:
                suggestions.extend(self._suggest_diversification(positions, violation))
            elif t in GREEK_VIOLATIONS:
                suggestions.extend(self._suggest_greeks_hedge(violation))
            elif t == RiskViolationType.POSITION_COUNT:
                suggestions.extend(self._suggest_position_count_reduction(violation))
            elif t == RiskViolationType.VALUE_AT_RISK:
                suggestions.extend(self._suggest_var_reduction(violation))
        return suggestions

    def _suggest_position_reduction(
        self,
        positions: list[DerivativePosition],
        violation: RiskViolation,
    ) -> list[RiskReductionSuggestion]:
        affected = next((p for p in positions if p.id in violation.affected_positions), None)
        if affected is None:
            return []

        amount = violation.current_value - violation.limit_value
        return [
            RiskReductionSuggestion(
                type=ActionType.REDUCE_POSITION,
                position_id=affected.id,
                suggested_amount=amount,
                description=f"Reduce {affected.symbol} position by {amount:.0f}",
                priority=ActionPriority.HIGH,
                estimated_impact=amount,
            )
        ]

    def _suggest_loss_reduction(
        self,
        positions: list[DerivativePosition],
        violation: RiskViolation,
    ) -> list[RiskReductionSuggestion]:
        suggestions = []

        losing = sorted(
            (p for p in positions if p.unrealized_pnl < 0),
            key=lambda p: p.unrealized_pnl,
        )
        if losing:
            worst = losing[0]
            suggestions.append(
                RiskReductionSuggestion(
                    type=ActionType.CLOSE_POSITION,
                    position_id=worst.id,
                    description=f"Close worst performing position: {worst.symbol}",
                    priority=ActionPriority.HIGH,
                    estimated_impact=abs(worst.unrealized_pnl),
                )
            )

        suggestions.append(
            RiskReductionSuggestion(
                type=ActionType.STOP_TRADING,
                description="Stop new position entries",
                priority=ActionPriority.CRITICAL,
                auto_executable=True,
            )
        )
        return suggestions

    def _suggest_margin_relief(
        self,
        positions: list[DerivativePosition],
        violation: RiskViolation,
    ) -> list[RiskReductionSuggestion]:
        suggestions = [
            RiskReductionSuggestion(
                type=ActionType.ADD_MARGIN,
                description="Add funds to margin account",
                priority=ActionPriority.HIGH,
                estimated_impact=violation.current_value - violation.limit_value,
            )
        ]

        margin_heavy = [p for p in positions if p.margin_used > 0]
        if margin_heavy:
            highest = max(margin_heavy, key=lambda p: p.margin_used)
            suggestions.append(
                RiskReductionSuggestion(
                    type=ActionType.REDUCE_POSITION,
                    position_id=highest.id,
                    suggested_amount=highest.margin_used * 0.5,
                    description=f"Reduce highest margin position: {highest.symbol}",
                    priority=ActionPriority.MEDIUM,
                    estimated_impact=highest.margin_used * 0.5,
                )
            )
        return suggestions

    def _suggest_diversification(
        self,
        positions: list[DerivativePosition],
        violation: RiskViolation,
    ) -> list[RiskReductionSuggestion]:
        groups = group_by_underlying(positions)
        if not groups:
            return []

        underlying = max(groups, key=lambda u: len(groups[u]))
        return [
            RiskReductionSuggestion(
                type=ActionType.REDUCE_POSITION,
                description=f"Reduce concentration in {underlying}",
                priority=ActionPriority.MEDIUM,
                estimated_impact=violation.current_value - violation.limit_value,
            )
        ]

    def _suggest_greeks_hedge(self, violation: RiskViolation) -> list[RiskReductionSuggestion]:
        greek_name = GREEK_VIOLATIONS[violation.violation_type]
        return [
            RiskReductionSuggestion(
                type=ActionType.ADD_HEDGE,
                description=f"Add hedging positions to reduce {greek_name.upper()} exposure",
                priority=ActionPriority.HIGH,
                estimated_impact=violation.current_value - violation.limit_value,
            )
        ]

    def _suggest_position_count_reduction(self, violation: RiskViolation) -> list[RiskReductionSuggestion]:
        excess = int(violation.current_value - violation.limit_value)
        return [
            RiskReductionSuggestion(
                type=ActionType.CLOSE_POSITION,
                suggested_amount=excess,
                description=f"Close {excess} positions",
                priority=ActionPriority.MEDIUM,
                estimated_impact=excess,
            )
        ]

    def _suggest_var_reduction(self, violation: RiskViolation) -> list[RiskReductionSuggestion]:
        return [
            RiskReductionSuggestion(
                type=ActionType.ADD_HEDGE,
                description="Add portfolio hedging to reduce overall risk",
                priority=ActionPriority.HIGH,
                estimated_impact=violation.current_value - violation.limit_value,
            ),
            RiskReductionSuggestion(
                type=ActionType.REDUCE_POSITION,
                description="Reduce high-risk positions",
                priority=ActionPriority.MEDIUM,
                estimated_impact=violation.current_value * 0.3,
            ),
        ]

    # =========================================================================
    # AUTO RISK REDUCTION
    # =========================================================================

    async def execute_auto_risk_reduction(
        self,
        user_id: str,
        broker_id: str,
        violations: list[RiskViolation],
    ) -> bool:
        """
        Run auto-executable actions of critical violations.
        False unless auto_risk_reduction is on and a critical violation exists.
        """
        limits = await self.get_risk_limits(user_id, broker_id)
        if limits is None or not limits.auto_risk_reduction:
            return False

        critical = [v for v in violations if v.severity == Severity.CRITICAL]
        if not critical:
            return False

        try:
            for violation in critical:
                for action in violation.suggested_actions:
                    if not action.auto_executable:
                        continue
                    logger.info(
                        f"Auto-executing risk reduction for {user_id}/{broker_id}: {action.description}"
                    )
                    if self.action_executor:
                        await self.action_executor.execute(user_id, broker_id, action)
        except Exception as e:
            logger.warning(f"Auto risk reduction failed for {user_id}/{broker_id}: {e}")
            return False

        return True

    # =========================================================================
    # VIOLATION LIFECYCLE
    # =========================================================================

    def get_violations(
        self,
        user_id: str,
        broker_id: Optional[str] = None,
        status: Optional[ViolationStatus] = None,
    ) -> list[RiskViolation]:
        return [
            v for v in self._violations.values()
            if v.user_id == user_id
            and (broker_id is None or v.broker_id == broker_id)
            and (status is None or v.status == status)
        ]

    def acknowledge(self, violation_id: str) -> bool:
        violation = self._violations.get(violation_id)
        if violation is None:
            return False
        violation.status = ViolationStatus.ACKNOWLEDGED
        return True

    def resolve(self, violation_id: str) -> bool:
        violation = self._violations.get(violation_id)
        if violation is None:
            return False
        violation.status = ViolationStatus.RESOLVED
        violation.resolved_at = datetime.now()
        return True

    # =========================================================================
    # ALERTS
    # =========================================================================

    async def _send_alert(self, violation: RiskViolation) -> bool:
        """Deliver a violation alert, throttled per (user, type)."""
        config = await self.get_alert_config(violation.user_id)
        if config is None or violation.violation_type not in config.enabled_alerts:
            return False

        channels = [c for c in config.channels if c.enabled]
        if not channels:
            return False

        now = datetime.now()
        last_alerts = self._last_alerts[violation.user_id]
        last = last_alerts.get(violation.violation_type)
        if last is not None and now - last < timedelta(minutes=config.frequency_minutes):
            logger.debug(
                f"Alert {violation.violation_type.value} throttled for {violation.user_id}"
            )
            return False

        for channel in channels:
            if channel.type == "websocket":
                if self.notifier:
                    try:
                        await self.notifier.send_to_user(
                            violation.user_id,
                            "risk_violation",
                            {
                                "violation": violation.model_dump(mode="json"),
                                "timestamp": now.isoformat(),
                            },
                        )
                    except Exception as e:
                        logger.warning(
                            f"Alert delivery failed for {violation.user_id} ({violation.id}): {e}"
                        )
            else:
                logger.info(f"{channel.type} alert queued for user {violation.user_id}")

        last_alerts[violation.violation_type] = now
        return True

    # =========================================================================
    # MONITORING
    # =========================================================================

    async def subscribe_to_monitoring(
        self,
        user_id: str,
        broker_id: str,
        check_frequency_ms: Optional[int] = None,
    ) -> MonitoringSubscription:
        """
        Start periodic risk checks for (user, broker).
        Creates default limits and alert config when missing.
        """
        if await self.get_risk_limits(user_id, broker_id) is None:
            await self.set_risk_limits(user_id, broker_id)
        if await self.get_alert_config(user_id) is None:
            await self.configure_risk_alerts(user_id)

        await self.unsubscribe_from_monitoring(user_id, broker_id)

        subscription = MonitoringSubscription(
            user_id=user_id,
            broker_id=broker_id,
            check_frequency_ms=check_frequency_ms or self.settings.monitoring_frequency_ms,
        )
        if self.position_source is not None:

            async def run_check() -> None:
                await self.run_monitoring_check(user_id, broker_id)

            subscription.task = schedule_periodic(
                subscription.check_frequency_ms,
                run_check,
                name=f"risk-monitor:{user_id}:{broker_id}",
            )

        self._subscriptions[(user_id, broker_id)] = subscription
        logger.info(f"Risk monitoring subscription created for user {user_id}, broker {broker_id}")
        return subscription

    async def unsubscribe_from_monitoring(self, user_id: str, broker_id: str) -> bool:
        subscription = self._subscriptions.pop((user_id, broker_id), None)
        if subscription is None:
            return False
        if subscription.task:
            await subscription.task.stop()
        logger.info(f"Risk monitoring subscription removed for user {user_id}, broker {broker_id}")
        return True

    def is_monitoring(self, user_id: str, broker_id: str) -> bool:
        return (user_id, broker_id) in self._subscriptions

    async def run_monitoring_check(self, user_id: str, broker_id: str) -> list[RiskViolation]:
        """One monitoring cycle: fetch state, aggregate, check, auto-reduce."""
        if self.position_source is None:
            return []

        try:
            positions = await self.position_source.get_positions(user_id, broker_id)
            margin_info = await self.position_source.get_margin_info(user_id, broker_id)
            daily_pnl = await self.position_source.get_daily_pnl(user_id, broker_id)
        except Exception as e:
            raise ExternalAPIError(
                self.name,
                f"Position source failed: {e}",
                {"user_id": user_id, "broker_id": broker_id},
            ) from e

        portfolio_risk = self.aggregator.aggregate(
            positions, available_margin=margin_info.available_margin
        )
        violations = await self.check_violations(
            user_id, broker_id, positions, portfolio_risk, margin_info, daily_pnl
        )
        if violations:
            await self.execute_auto_risk_reduction(user_id, broker_id, violations)

        subscription = self._subscriptions.get((user_id, broker_id))
        if subscription:
            subscription.last_check = datetime.now()
        return violations

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def get_stats(self) -> dict:
        return {
            "risk_limits_count": len(self._limits),
            "alert_configs_count": len(self._alert_configs),
            "violations_count": len(self._violations),
            "active_violations_count": sum(
                1 for v in self._violations.values() if v.status == ViolationStatus.ACTIVE
            ),
            "monitoring_subscriptions_count": len(self._subscriptions),
        }

    async def shutdown(self) -> None:
        """Cancel monitoring tasks and clear all state."""
        for subscription in list(self._subscriptions.values()):
            if subscription.task:
                await subscription.task.stop()

        self._subscriptions.clear()
        self._limits.clear()
        self._alert_configs.clear()
        self._violations.clear()
        self._open_violations.clear()
        self._last_alerts.clear()
        logger.info("Risk limits monitor shutdown complete")
