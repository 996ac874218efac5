# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Live quota dashboard.

Wires the refresh controller, the countdown ticker and the search debouncer
to a renderer. All application state lives in the controller (snapshot,
aggregates, view state); this class only translates user actions into
controller calls and pushes rebuilt views to the renderer. Typed command
lines reach the handlers through Dashboard.execute().
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from quota_engine.client.refresh import RefreshController
from quota_engine.core.constants import (
    DEFAULT_COUNTDOWN_INTERVAL,
    DEFAULT_SEARCH_DEBOUNCE_MS,
)
from quota_engine.core.types import ViewState
from quota_engine.usage.countdown import CountdownScheduler
from quota_engine.usage.filters import SearchDebouncer, normalize_filter

from .dashboard_view import DashboardView, build_dashboard_view, update_countdowns

logger = logging.getLogger(__name__)


class DashboardRenderer(Protocol):
    def update(self, view: DashboardView) -> None: ...


class Dashboard:
    """Event handlers and render loop of the live dashboard."""

    def __init__(
        self,
        controller: RefreshController,
        renderer: DashboardRenderer,
        countdown_interval: float = DEFAULT_COUNTDOWN_INTERVAL,
        search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.controller = controller
        self.renderer = renderer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.countdown = CountdownScheduler(self.update_countdowns, countdown_interval)
        self.debouncer = SearchDebouncer(self._apply_search, search_debounce_ms)
        self.view: Optional[DashboardView] = None
        controller.add_listener(lambda _: self.render())

    @property
    def view_state(self) -> ViewState:
        return self.controller.view_state

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render(self) -> DashboardView:
        """Rebuild the view from the controller's current state and push it."""
        self.view = build_dashboard_view(
            self.controller.snapshot,
            self.controller.aggregates,
            self.view_state,
            now=self._clock(),
        )
        self.renderer.update(self.view)
        return self.view

    def update_countdowns(self) -> None:
        """Countdown tick: re-derive countdown texts only, no rebuild."""
        if self.view is None:
            return
        update_countdowns(self.view, now=self._clock())
        self.renderer.update(self.view)

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    def toggle_auto_refresh(self, enabled: bool) -> None:
        self.controller.set_auto_refresh(enabled)
        self.render()

    def change_refresh_interval(self, seconds: float) -> None:
        self.controller.set_refresh_interval(seconds)
        self.render()

    def manual_refresh(self) -> Optional[asyncio.Task]:
        return self.controller.trigger()

    def filter_by_model(self, family: str) -> None:
        """Apply a family filter; re-renders from the stored snapshot only."""
        self.view_state.filter = normalize_filter(family)
        self.render()

    def search_accounts(self, query: str) -> None:
        """Record the query now; re-render after the debounce period."""
        self.view_state.search_query = query.strip()
        self.debouncer.submit(self.view_state.search_query)

    def _apply_search(self, query: str) -> None:
        logger.debug(f"Applying account search '{query}'")
        self.render()

    def toggle_account(self, email: str) -> bool:
        expanded = self.view_state.toggle_account(email)
        self.render()
        return expanded

    async def retry_after_error(self) -> bool:
        return await self.controller.retry()

    def dismiss_error(self) -> None:
        self.controller.dismiss_error()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Initial render, first refresh, then the timers."""
        self.render()
        self.controller.trigger()
        if self.view_state.auto_refresh:
            self.controller.start_auto_refresh()
        self.countdown.start()

    async def stop(self) -> None:
        self.debouncer.cancel()
        await self.countdown.stop()
        await self.controller.close()

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def toggle_card(self, index: int) -> bool:
        """Toggle the index-th visible account card (1-based)."""
        cards = self.view.accounts.cards if self.view else []
        if not 1 <= index <= len(cards):
            logger.debug(f"No account card #{index}")
            return False
        self.toggle_account(cards[index - 1].email)
        return True

    def execute(self, command: str) -> bool:
        """
        Run one typed command line.

        Returns:
            False when the user asked to quit, True otherwise
        """
        choice = command.strip()
        key, _, arg = choice.partition(" ")
        key = key.lower()
        arg = arg.strip()

        if key == "q":
            return False
        elif choice == "":
            self.render()
        elif key == "r":
            if self.view_state.last_error:
                self.dismiss_error()
            self.manual_refresh()
        elif key == "d":
            self.dismiss_error()
        elif key == "a":
            self.toggle_auto_refresh(not self.view_state.auto_refresh)
        elif key == "f":
            self.filter_by_model(arg)
        elif choice.startswith("/"):
            self.search_accounts(choice[1:])
        elif key == "e" and arg.isdigit():
            self.toggle_card(int(arg))
        elif key.startswith("e") and key[1:].isdigit():
            self.toggle_card(int(key[1:]))
        elif key == "i":
            try:
                self.change_refresh_interval(float(arg))
            except ValueError:
                logger.warning(f"Invalid refresh interval '{arg}'")
        else:
            logger.debug(f"Unknown dashboard command '{choice}'")
        return True


async def run_commands(dashboard: Dashboard, reader: asyncio.StreamReader) -> bool:
    """
    Feed lines from `reader` to the dashboard until quit or end of input.

    Returns:
        True when the user quit, False when the input ran out
    """
    while True:
        line = await reader.readline()
        if not line:
            return False
        if not dashboard.execute(line.decode("utf-8", errors="replace")):
            return True
