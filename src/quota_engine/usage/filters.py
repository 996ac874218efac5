# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Filtered views over a snapshot.

Filtering never mutates the snapshot or its aggregates; every function
returns a new list. The search debouncer delays re-rendering until typing
has been quiet for a while and never triggers a fetch.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Union

from ..core.constants import DEFAULT_SEARCH_DEBOUNCE_MS, FILTER_ALL
from ..core.types import Account, ModelFamily, get_model_family

lib_logger = logging.getLogger("quota_engine")

VALID_FILTERS = (FILTER_ALL,) + ModelFamily.RECOGNIZED


def normalize_filter(value: Optional[str]) -> str:
    """Lowercase a filter value; unknown values fall back to "all"."""
    value = (value or FILTER_ALL).strip().lower()
    if value not in VALID_FILTERS:
        lib_logger.warning(f"Unknown model filter '{value}', showing all models")
        return FILTER_ALL
    return value


def filter_models(models: Iterable[str], family_filter: str) -> List[str]:
    """Keep the model ids belonging to `family_filter` (all of them for "all")."""
    if family_filter == FILTER_ALL:
        return list(models)
    return [m for m in models if get_model_family(m) == family_filter]


def search_accounts(accounts: Sequence[Account], query: Optional[str]) -> List[Account]:
    """Case-insensitive substring match of the query against account emails."""
    query = (query or "").strip().lower()
    if not query:
        return list(accounts)
    return [acc for acc in accounts if query in acc.email.lower()]


class SearchDebouncer:
    """
    Delays a callback until input has been quiet for `delay_ms`.

    Each submit() cancels the pending task before scheduling a new one, so
    at most one callback is ever pending.
    """

    def __init__(
        self,
        callback: Callable[[str], Union[None, Awaitable[None]]],
        delay_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS,
    ):
        self._callback = callback
        self._delay = max(0, delay_ms) / 1000.0
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, query: str) -> None:
        """Schedule the callback for `query`, replacing any pending one."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._fire(query))

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _fire(self, query: str) -> None:
        await asyncio.sleep(self._delay)
        try:
            result = self._callback(query)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            lib_logger.error(f"Search update failed: {type(e).__name__}: {e}")
