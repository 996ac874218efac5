# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Configuration for the quota report and dashboard.

Values come from environment variables; a .env file in the working
directory (or the path given) is loaded first without overriding variables
that are already set.

    QUOTA_PROXY_URL           Proxy base URL (default http://localhost:8085)
    QUOTA_API_KEY             Optional bearer token for the proxy
    QUOTA_REFRESH_INTERVAL    Dashboard auto-refresh, seconds (default 30)
    QUOTA_AUTO_REFRESH        "true"/"false" (default true)
    QUOTA_COUNTDOWN_INTERVAL  Countdown redraw, seconds (default 1)
    QUOTA_SEARCH_DEBOUNCE_MS  Search debounce, milliseconds (default 300)
    QUOTA_REQUEST_TIMEOUT     HTTP timeout, seconds (default 30)
    QUOTA_ACCOUNTS_FILE       Accounts JSON (default ~/.config/antigravity-proxy/accounts.json)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

from quota_engine.accounts import DEFAULT_ACCOUNTS_FILE
from quota_engine.core.constants import (
    DEFAULT_COUNTDOWN_INTERVAL,
    DEFAULT_PROXY_URL,
    DEFAULT_REFRESH_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SEARCH_DEBOUNCE_MS,
)

logger = logging.getLogger(__name__)


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}'. Falling back to {default}.")
        return default
    if value <= 0:
        logger.warning(f"{name} must be positive, got {raw}. Falling back to {default}.")
        return default
    return value


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class DashboardConfig:
    """Resolved settings for both surfaces."""

    proxy_url: str = DEFAULT_PROXY_URL
    api_key: Optional[str] = None
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    auto_refresh: bool = True
    countdown_interval: float = DEFAULT_COUNTDOWN_INTERVAL
    search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    accounts_file: Path = DEFAULT_ACCOUNTS_FILE

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Union[str, Path, None] = None,
    ) -> "DashboardConfig":
        """
        Build a config from environment variables.

        Args:
            env: Mapping to read instead of os.environ (no .env loading then)
            env_file: .env path to load; defaults to ./.env
        """
        if env is None:
            load_dotenv(env_file or Path.cwd() / ".env", override=False)
            env = os.environ

        accounts_file = env.get("QUOTA_ACCOUNTS_FILE")
        return cls(
            proxy_url=(env.get("QUOTA_PROXY_URL") or DEFAULT_PROXY_URL).rstrip("/"),
            api_key=env.get("QUOTA_API_KEY") or None,
            refresh_interval=_env_float(
                env, "QUOTA_REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL
            ),
            auto_refresh=_env_bool(env, "QUOTA_AUTO_REFRESH", True),
            countdown_interval=_env_float(
                env, "QUOTA_COUNTDOWN_INTERVAL", DEFAULT_COUNTDOWN_INTERVAL
            ),
            search_debounce_ms=int(
                _env_float(env, "QUOTA_SEARCH_DEBOUNCE_MS", DEFAULT_SEARCH_DEBOUNCE_MS)
            ),
            request_timeout=_env_float(
                env, "QUOTA_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
            ),
            accounts_file=(
                Path(accounts_file).expanduser() if accounts_file else DEFAULT_ACCOUNTS_FILE
            ),
        )
