"""
Runtime configuration for the email dashboard engine.

Values come from environment variables (optionally via a ``.env`` file) layered
over the pydantic defaults below.
"""

from __future__ import annotations

import logging.config
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class GranularityConfig(BaseModel):
    daily_max_days: int = 60
    """Ranges up to this many days are bucketed per day."""

    weekly_max_days: int = 365
    """Ranges up to this many days are bucketed per week, longer ones per month."""


class DashboardConfig(BaseModel):
    timezone: str = "UTC"
    """Timezone every send date is normalised to before filtering/bucketing."""

    default_range: str = "30d"
    compare_mode: Literal["prev-period", "prev-year"] = "prev-period"
    granularity: GranularityConfig = GranularityConfig()
    log_level: str = "INFO"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_dashboard_config(dotenv: bool = True) -> DashboardConfig:
    if dotenv:
        load_dotenv()

    cfg = DashboardConfig()
    compare_mode = os.getenv("EMAIL_DASHBOARD_COMPARE_MODE", cfg.compare_mode)
    if compare_mode not in ("prev-period", "prev-year"):
        compare_mode = cfg.compare_mode

    return DashboardConfig(
        timezone=os.getenv("EMAIL_DASHBOARD_TIMEZONE", cfg.timezone),
        default_range=os.getenv("EMAIL_DASHBOARD_DEFAULT_RANGE", cfg.default_range),
        compare_mode=compare_mode,
        granularity=GranularityConfig(
            daily_max_days=_env_int("EMAIL_DASHBOARD_DAILY_MAX_DAYS", cfg.granularity.daily_max_days),
            weekly_max_days=_env_int("EMAIL_DASHBOARD_WEEKLY_MAX_DAYS", cfg.granularity.weekly_max_days),
        ),
        log_level=os.getenv("EMAIL_DASHBOARD_LOG_LEVEL", cfg.log_level).upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
            },
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "plain"},
            },
            "loggers": {
                "backend.email_dashboard": {
                    "handlers": ["default"],
                    "level": level or "INFO",
                    "propagate": False,
                },
            },
        }
    )
