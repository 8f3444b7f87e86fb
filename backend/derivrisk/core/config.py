"""
Engine Configuration

All settings loaded from environment variables.
"""

import logging
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings from environment variables."""

    # Application
    app_name: str = "DerivRisk Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # Redis (risk limits / alert config persistence)
    redis_url: str = "redis://localhost:6379"
    redis_key_prefix: str = "derivrisk"

    # Pricing
    risk_free_rate: float = 0.05
    dividend_yield: float = 0.0

    # Real-time Greeks
    greeks_default_frequency_ms: int = 1000
    greeks_min_frequency_ms: int = 500
    greeks_max_frequency_ms: int = 5000
    greeks_sensitivity_threshold: float = 0.001  # Min per-field change to publish
    price_change_threshold: float = 0.001  # 0.1% move before recomputing

    # Value at Risk
    var_confidence_level: float = 0.95
    var_time_horizon_days: int = 1
    var_lookback_days: int = 252  # 1 year of trading days
    var_use_monte_carlo: bool = False
    var_simulations: int = 10000
    default_volatility: float = 0.25

    # Correlation heuristics
    index_underlyings: list[str] = [
        "NIFTY",
        "BANKNIFTY",
        "FINNIFTY",
        "MIDCPNIFTY",
        "SENSEX",
        "BANKEX",
    ]

    # Risk Limits (Defaults)
    default_max_position_size: float = 1_000_000  # 10 lakh per position
    default_max_daily_loss: float = 50_000
    default_max_margin_utilization: float = 80.0
    default_max_delta_exposure: float = 50_000
    default_max_gamma_exposure: float = 1_000
    default_max_vega_exposure: float = 10_000
    default_max_concentration_percent: float = 50.0
    default_max_positions: int = 50
    default_max_value_at_risk: float = 100_000  # 1 lakh VaR

    # Violation severity (percent over limit)
    severity_error_percent: float = 25.0
    severity_critical_percent: float = 75.0

    # Monitoring & Alerts
    monitoring_frequency_ms: int = 10_000
    alert_frequency_minutes: float = 5.0
    alert_warning_threshold_percent: float = 80.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def setup_logging(settings: Settings = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
