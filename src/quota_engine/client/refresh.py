# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Refresh controller.

Owns the current snapshot, its aggregates, the view state and the
auto-refresh timer. State machine:

    IDLE / ERROR  --trigger-->  LOADING
    LOADING       --success-->  IDLE    (snapshot replaced, aggregates recomputed)
    LOADING       --failure-->  ERROR   (previous snapshot kept untouched)
    LOADING       --trigger-->  LOADING (dropped)

The event loop is single-threaded and the only suspension points are the
two fetches, so the LOADING check is the only guard needed.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from ..core.types import Aggregates, Snapshot, ViewState
from ..usage.aggregation import compute_aggregates
from .source import QuotaSnapshotSource

lib_logger = logging.getLogger("quota_engine")


class RefreshState:
    """Refresh controller states."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


Listener = Callable[["RefreshController"], None]


class RefreshController:
    """
    Coordinates refreshes against a QuotaSnapshotSource.

    Listeners are called after every state change (loading started,
    snapshot replaced, error raised or dismissed) with the controller as
    the only argument.
    """

    def __init__(
        self,
        source: QuotaSnapshotSource,
        view_state: Optional[ViewState] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.view_state = view_state or ViewState()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._state = RefreshState.IDLE
        self._snapshot: Optional[Snapshot] = None
        self._aggregates: Optional[Aggregates] = None
        self._listeners: List[Listener] = []
        self._timer_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    @property
    def state(self) -> str:
        return self._state

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def aggregates(self) -> Optional[Aggregates]:
        return self._aggregates

    @property
    def is_loading(self) -> bool:
        return self._state == RefreshState.LOADING

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception as e:
                lib_logger.error(f"Refresh listener failed: {type(e).__name__}: {e}")

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self) -> bool:
        """
        Run one refresh cycle.

        Both reads are issued concurrently. If either fails, nothing from
        this cycle is stored and the error state is entered.

        Returns:
            True if a new snapshot was stored, False if the refresh failed or
            was dropped because another one is in flight.
        """
        if self._state == RefreshState.LOADING:
            lib_logger.debug("Refresh already in flight, trigger dropped")
            return False

        self._state = RefreshState.LOADING
        self.view_state.is_loading = True
        self.view_state.last_error = None
        self._notify()

        tasks = (
            asyncio.ensure_future(self.source.fetch_summary()),
            asyncio.ensure_future(self.source.fetch_limits()),
        )
        try:
            summary, limits = await asyncio.gather(*tasks)
        except Exception as e:
            await self._cancel_fetches(tasks)
            lib_logger.warning(f"Refresh failed: {type(e).__name__}: {e}")
            self._state = RefreshState.ERROR
            self.view_state.is_loading = False
            self.view_state.last_error = f"Failed to connect: {e}"
            self._notify()
            return False
        except asyncio.CancelledError:
            await self._cancel_fetches(tasks)
            self._state = RefreshState.IDLE
            self.view_state.is_loading = False
            raise

        now = self._clock()
        snapshot = Snapshot(summary=summary, limits=limits, fetched_at=now)
        self._aggregates = compute_aggregates(snapshot, now=now)
        self._snapshot = snapshot
        self._state = RefreshState.IDLE
        self.view_state.is_loading = False
        self.view_state.last_updated = now
        lib_logger.debug(
            f"Snapshot replaced: {len(summary.accounts)} accounts, "
            f"{len(limits.models)} models"
        )
        self._notify()
        return True

    @staticmethod
    async def _cancel_fetches(tasks: Sequence[asyncio.Future]) -> None:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def trigger(self) -> Optional[asyncio.Task]:
        """
        Fire-and-forget refresh for UI handlers.

        Returns the scheduled task, or None when a refresh is already in
        flight or scheduled but not yet started.
        """
        pending = self._refresh_task is not None and not self._refresh_task.done()
        if self.is_loading or pending:
            lib_logger.debug("Refresh already in flight, trigger dropped")
            return None
        self._refresh_task = asyncio.get_running_loop().create_task(self.refresh())
        return self._refresh_task

    async def retry(self) -> bool:
        """User retry from the error banner."""
        self.dismiss_error()
        return await self.refresh()

    def dismiss_error(self) -> None:
        """Hide the error banner. Keeps the current snapshot."""
        if self.view_state.last_error is None and self._state != RefreshState.ERROR:
            return
        self.view_state.last_error = None
        if self._state == RefreshState.ERROR:
            self._state = RefreshState.IDLE
        self._notify()

    # =========================================================================
    # AUTO-REFRESH TIMER
    # =========================================================================

    @property
    def auto_refresh_active(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start_auto_refresh(self, interval: Optional[float] = None) -> None:
        """
        Start the recurring refresh timer.

        Any previous timer is cancelled first, so only one timer is ever
        active.
        """
        if interval is not None:
            self.view_state.refresh_interval = interval
        self.stop_auto_refresh()
        self.view_state.auto_refresh = True
        self._timer_task = asyncio.get_running_loop().create_task(
            self._auto_refresh_loop(self.view_state.refresh_interval)
        )
        lib_logger.info(
            f"Auto-refresh started. Interval: {self.view_state.refresh_interval}s"
        )

    def stop_auto_refresh(self) -> None:
        """Cancel the recurring timer, if any."""
        if self._timer_task is not None:
            if not self._timer_task.done():
                self._timer_task.cancel()
            self._timer_task = None
            lib_logger.debug("Auto-refresh stopped")

    def set_auto_refresh(self, enabled: bool) -> None:
        if enabled:
            self.start_auto_refresh()
        else:
            self.stop_auto_refresh()
            self.view_state.auto_refresh = False

    def set_refresh_interval(self, interval: float) -> None:
        """Change the cadence; reschedules the timer if it is running."""
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        self.view_state.refresh_interval = interval
        if self.view_state.auto_refresh and self.auto_refresh_active:
            self.start_auto_refresh()

    async def _auto_refresh_loop(self, interval: float) -> None:
        # Each refresh is its own task; cancelling the timer leaves an
        # in-flight fetch running
        while True:
            await asyncio.sleep(interval)
            self.trigger()

    async def close(self) -> None:
        """Stop the timer and wait for any in-flight refresh."""
        self.stop_auto_refresh()
        if self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.gather(self._refresh_task, return_exceptions=True)
        await self.source.aclose()
