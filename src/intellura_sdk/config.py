"""
Intellura SDK Configuration

All settings are read from environment variables. Module-level constants hold
the process defaults; ``ClientSettings`` bundles them for injection into
``IntelluraClient`` so tests and embedders can override individual values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_float(env_var: str, default: str) -> float:
    raw = os.getenv(env_var, default).strip()
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be a number, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{env_var} must not be negative, got {raw!r}")
    return value


def _get_int(env_var: str, default: str) -> int:
    raw = os.getenv(env_var, default).strip()
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")
    if value < 0:
        raise ConfigurationError(f"{env_var} must not be negative, got {raw!r}")
    return value


API_BASE = os.getenv("INTELLURA_API_BASE", "http://localhost:8000").strip().rstrip("/")
HTTP_TIMEOUT = _get_float("INTELLURA_HTTP_TIMEOUT", "15")
HTTP_RETRIES = _get_int("INTELLURA_HTTP_RETRIES", "2")
# A hung wallet prompt must never block re-invocation of the link flow
PROVIDER_TIMEOUT = _get_float("INTELLURA_PROVIDER_TIMEOUT", "120")
ENGAGEMENT_WINDOW = _get_float("INTELLURA_ENGAGEMENT_WINDOW", "10")
COUNTDOWN_INTERVAL = _get_float("INTELLURA_COUNTDOWN_INTERVAL", "1")
BANNER_TTL = _get_float("INTELLURA_BANNER_TTL", "3")
TIMER_STORE_PATH = os.getenv("INTELLURA_TIMER_STORE", "").strip()
LOG_LEVEL = os.getenv("INTELLURA_LOG_LEVEL", "INFO").strip().upper()

USER_AGENT = "Intellura-SDK/1.0"
SIGN_MESSAGE_TEMPLATE = "Sign this nonce to authenticate: {nonce}"


@dataclass
class ClientSettings:
    """Resolved settings for one ``IntelluraClient``."""

    api_base: str = API_BASE
    http_timeout: float = HTTP_TIMEOUT
    http_retries: int = HTTP_RETRIES
    provider_timeout: float = PROVIDER_TIMEOUT
    engagement_window: float = ENGAGEMENT_WINDOW
    countdown_interval: float = COUNTDOWN_INTERVAL
    banner_ttl: float = BANNER_TTL
    timer_store_path: Optional[str] = TIMER_STORE_PATH or None

    def __post_init__(self) -> None:
        if not self.api_base:
            raise ConfigurationError("api_base is required")
        if not self.api_base.startswith(("http://", "https://")):
            raise ConfigurationError(f"api_base must be an http(s) URL, got {self.api_base!r}")
        self.api_base = self.api_base.rstrip("/")

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Re-read the environment, ignoring values cached at import time."""
        return cls(
            api_base=os.getenv("INTELLURA_API_BASE", "http://localhost:8000").strip(),
            http_timeout=_get_float("INTELLURA_HTTP_TIMEOUT", "15"),
            http_retries=_get_int("INTELLURA_HTTP_RETRIES", "2"),
            provider_timeout=_get_float("INTELLURA_PROVIDER_TIMEOUT", "120"),
            engagement_window=_get_float("INTELLURA_ENGAGEMENT_WINDOW", "10"),
            countdown_interval=_get_float("INTELLURA_COUNTDOWN_INTERVAL", "1"),
            banner_ttl=_get_float("INTELLURA_BANNER_TTL", "3"),
            timer_store_path=os.getenv("INTELLURA_TIMER_STORE", "").strip() or None,
        )

    def login_url(self) -> str:
        """Identity-provider login redirect; the backend sets the session cookie."""
        return f"{self.api_base}/auth/x/login"

    def referral_link(self, code: str) -> str:
        """Public invite landing route that lets the backend set its referral cookie."""
        return f"{self.api_base}/r/{quote(code, safe='')}"
