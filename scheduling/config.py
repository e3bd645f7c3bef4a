"""
Centralized configuration with environment variable overrides.

Database, range-query limits and logging are configurable here.
Nothing is hardcoded in service or repository logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from scheduling.logging_context import LOG_FORMAT, install_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DatabaseConfig:
    """Persistence settings."""

    url: str = os.getenv("DATABASE_URL", "sqlite:///./scheduling.db")
    echo: bool = _safe_bool("DB_ECHO", "false")
    pool_pre_ping: bool = _safe_bool("DB_POOL_PRE_PING", "true")
    slow_query_threshold_sec: float = _safe_float("DB_SLOW_QUERY_THRESHOLD", "1.0")


@dataclass(frozen=True)
class SchedulingConfig:
    """Range-query limits and the reschedule notice window."""

    default_range_days: int = _safe_int("SCHEDULING_DEFAULT_RANGE_DAYS", "14")
    max_range_days: int = _safe_int("SCHEDULING_MAX_RANGE_DAYS", "62")
    reschedule_notice_hours: int = _safe_int("SCHEDULING_RESCHEDULE_NOTICE_HOURS", "24")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "appointment-scheduling")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not config.database.url:
        raise ValueError("DATABASE_URL must not be empty")
    if config.database.slow_query_threshold_sec <= 0:
        raise ValueError(
            "DB_SLOW_QUERY_THRESHOLD must be > 0, "
            f"got {config.database.slow_query_threshold_sec}"
        )
    if config.scheduling.default_range_days < 1:
        raise ValueError(
            "SCHEDULING_DEFAULT_RANGE_DAYS must be >= 1, "
            f"got {config.scheduling.default_range_days}"
        )
    if config.scheduling.max_range_days < config.scheduling.default_range_days:
        raise ValueError(
            "SCHEDULING_MAX_RANGE_DAYS must be >= SCHEDULING_DEFAULT_RANGE_DAYS, "
            f"got {config.scheduling.max_range_days}"
        )
    if config.scheduling.reschedule_notice_hours < 0:
        raise ValueError(
            "SCHEDULING_RESCHEDULE_NOTICE_HOURS must be >= 0, "
            f"got {config.scheduling.reschedule_notice_hours}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_request_id_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
