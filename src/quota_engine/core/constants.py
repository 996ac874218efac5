# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Default intervals and endpoints shared by the engine and the app."""

# =============================================================================
# TIMERS
# =============================================================================

# Auto-refresh cadence for the dashboard (seconds)
DEFAULT_REFRESH_INTERVAL: float = 30.0

# Countdown redraw cadence (seconds); independent of the refresh cadence
DEFAULT_COUNTDOWN_INTERVAL: float = 1.0

# Quiet period before a search query is applied (milliseconds)
DEFAULT_SEARCH_DEBOUNCE_MS: int = 300

# =============================================================================
# SNAPSHOT SOURCE
# =============================================================================

DEFAULT_PROXY_URL = "http://localhost:8085"
HEALTH_ENDPOINT = "/health"
ACCOUNT_LIMITS_ENDPOINT = "/account-limits"
DEFAULT_REQUEST_TIMEOUT: float = 30.0

# Filter value meaning "no family filter"
FILTER_ALL = "all"
