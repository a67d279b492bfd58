"""
Configuration loading: YAML file first, environment variables on top.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# env var -> settings field
ENV_OVERRIDES = {
    "TONIGHT_TIMEZONE": "timezone",
    "SCRAPE_HOUR": "scrape_hour",
    "VENUES_FILE": "venues_file",
    "RESEND_API_KEY": "resend_api_key",
    "ALERT_EMAIL": "alert_email",
    "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
    "TELEGRAM_CHAT_ID": "telegram_chat_id",
}


class Settings(BaseModel):
    """Runtime settings for the event cache."""
    timezone: str = "America/New_York"
    scrape_hour: int = Field(default=10, ge=0, le=23)
    health_warn_threshold: int = 3
    history_max: int = 7
    probe_timeout: float = 10.0
    fetch_timeout: Optional[float] = None
    result_limit: int = 20
    venues_file: str = "data/venues-learned.json"
    geocode: bool = True
    alert_email: Optional[str] = None
    resend_api_key: Optional[str] = None
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    alert_cooldown_hours: float = 6.0
    sources: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_config(path: str = "config.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_settings(
    path: Optional[str] = "config.yaml",
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from an optional YAML file and the environment."""
    data: Dict[str, Any] = {}
    if path and Path(path).exists():
        data = load_config(path)
        logger.info(f"Loaded configuration from {path}")
    elif path:
        logger.warning(f"Config file not found: {path}, using defaults")

    env = os.environ if environ is None else environ
    for var, field in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[field] = value

    return Settings(**data)
