# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Countdown text and the redraw ticker.

Reset times are stored as absolute timestamps; the "time remaining" text is
re-derived from them on every tick, independently of data refreshes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.constants import DEFAULT_COUNTDOWN_INTERVAL

lib_logger = logging.getLogger("quota_engine")


def format_duration(ms: float) -> str:
    """
    Format a millisecond duration using its two largest units.

    Examples:
        0        -> "now"
        90000    -> "1m 30s"
        3900000  -> "1h 5m"
        90000000 -> "1d 1h"
    """
    if ms <= 0:
        return "now"
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def ms_until(target: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Milliseconds from `now` until `target` (0 when target is None)."""
    if target is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return (target - now).total_seconds() * 1000


def format_relative(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Format a past timestamp as relative time (e.g., '5m ago')."""
    if timestamp is None:
        return "never"
    now = now or datetime.now(timezone.utc)
    diff_ms = (now - timestamp).total_seconds() * 1000
    if diff_ms < 60_000:
        return "just now"
    if diff_ms < 3_600_000:
        return f"{int(diff_ms // 60_000)}m ago"
    if diff_ms < 86_400_000:
        return f"{int(diff_ms // 3_600_000)}h ago"
    return timestamp.astimezone().strftime("%Y-%m-%d")


class CountdownScheduler:
    """
    Fixed-cadence redraw ticker.

    Runs `on_tick` every `interval` seconds on its own asyncio task. It never
    touches refresh state; at most one tick task is active at a time.
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval: float = DEFAULT_COUNTDOWN_INTERVAL,
    ):
        self._on_tick = on_tick
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Starts the ticker if it is not already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        lib_logger.debug(f"Countdown ticker started ({self._interval}s)")

    async def stop(self) -> None:
        """Stops the ticker and waits for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        lib_logger.debug("Countdown ticker stopped")

    def tick(self) -> None:
        """Run one redraw. Errors are logged, never raised."""
        try:
            self._on_tick()
        except Exception as e:
            lib_logger.error(f"Countdown redraw failed: {type(e).__name__}: {e}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.tick()
