# SPDX-License-Identifier: LGPL-3.0-only

import asyncio
import unittest
from datetime import datetime, timedelta, timezone

from quota_engine.core.types import Account, get_model_family
from quota_engine.usage.countdown import (
    CountdownScheduler,
    format_duration,
    format_relative,
    ms_until,
)
from quota_engine.usage.filters import (
    SearchDebouncer,
    filter_models,
    normalize_filter,
    search_accounts,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FormatDurationTest(unittest.TestCase):
    def test_two_largest_units(self) -> None:
        self.assertEqual(format_duration(0), "now")
        self.assertEqual(format_duration(-5), "now")
        self.assertEqual(format_duration(5_000), "5s")
        self.assertEqual(format_duration(90_000), "1m 30s")
        self.assertEqual(format_duration(3_900_000), "1h 5m")
        self.assertEqual(format_duration(90_000_000), "1d 1h")

    def test_sub_second_rounds_down(self) -> None:
        self.assertEqual(format_duration(999), "0s")

    def test_ms_until(self) -> None:
        self.assertEqual(ms_until(NOW + timedelta(seconds=2), NOW), 2000)
        self.assertEqual(ms_until(None, NOW), 0)
        self.assertLess(ms_until(NOW - timedelta(seconds=1), NOW), 0)

    def test_format_relative(self) -> None:
        self.assertEqual(format_relative(None, NOW), "never")
        self.assertEqual(format_relative(NOW - timedelta(seconds=30), NOW), "just now")
        self.assertEqual(format_relative(NOW - timedelta(minutes=5), NOW), "5m ago")
        self.assertEqual(format_relative(NOW - timedelta(hours=3), NOW), "3h ago")


class FilterTest(unittest.TestCase):
    def test_model_family(self) -> None:
        self.assertEqual(get_model_family("claude-sonnet-4-5"), "claude")
        self.assertEqual(get_model_family("gemini-3-pro"), "gemini")
        self.assertEqual(get_model_family("gpt-oss-120b"), "unknown")
        self.assertEqual(get_model_family(None), "unknown")

    def test_filter_models(self) -> None:
        models = ["claude-opus", "gemini-flash", "gpt-oss", "claude-sonnet"]
        self.assertEqual(filter_models(models, "all"), models)
        self.assertEqual(
            filter_models(models, "claude"), ["claude-opus", "claude-sonnet"]
        )
        self.assertEqual(filter_models(models, "gemini"), ["gemini-flash"])

    def test_normalize_filter_falls_back_to_all(self) -> None:
        self.assertEqual(normalize_filter(" Claude "), "claude")
        self.assertEqual(normalize_filter(None), "all")
        with self.assertLogs("quota_engine", level="WARNING"):
            self.assertEqual(normalize_filter("mistral"), "all")

    def test_search_is_case_insensitive_substring(self) -> None:
        accounts = [Account("Alice@Example.com"), Account("bob@example.com")]
        self.assertEqual(
            [a.email for a in search_accounts(accounts, "  ALICE ")], ["Alice@Example.com"]
        )
        self.assertEqual(len(search_accounts(accounts, "example")), 2)
        self.assertEqual(len(search_accounts(accounts, "")), 2)
        self.assertEqual(search_accounts(accounts, "carol"), [])


class SearchDebouncerTest(unittest.IsolatedAsyncioTestCase):
    async def test_only_last_query_fires(self) -> None:
        calls = []
        debouncer = SearchDebouncer(calls.append, delay_ms=20)

        debouncer.submit("a")
        debouncer.submit("ab")
        debouncer.submit("abc")
        self.assertTrue(debouncer.pending)

        await asyncio.sleep(0.1)
        self.assertEqual(calls, ["abc"])
        self.assertFalse(debouncer.pending)

    async def test_cancel_drops_pending_query(self) -> None:
        calls = []
        debouncer = SearchDebouncer(calls.append, delay_ms=20)
        debouncer.submit("a")
        debouncer.cancel()
        await asyncio.sleep(0.05)
        self.assertEqual(calls, [])

    async def test_async_callback_is_awaited(self) -> None:
        calls = []

        async def callback(query):
            calls.append(query)

        debouncer = SearchDebouncer(callback, delay_ms=0)
        debouncer.submit("x")
        await asyncio.sleep(0.02)
        self.assertEqual(calls, ["x"])

    async def test_callback_failure_is_logged_and_next_query_still_fires(self) -> None:
        calls = []

        def callback(query):
            if query == "bad":
                raise RuntimeError("render failed")
            calls.append(query)

        debouncer = SearchDebouncer(callback, delay_ms=0)
        with self.assertLogs("quota_engine", level="ERROR") as logs:
            debouncer.submit("bad")
            await asyncio.sleep(0.02)
        self.assertIn("Search update failed: RuntimeError: render failed", logs.output[0])
        self.assertFalse(debouncer.pending)

        debouncer.submit("good")
        await asyncio.sleep(0.02)
        self.assertEqual(calls, ["good"])


class CountdownSchedulerTest(unittest.IsolatedAsyncioTestCase):
    async def test_ticks_until_stopped(self) -> None:
        ticks = []
        scheduler = CountdownScheduler(lambda: ticks.append(1), interval=0.01)
        scheduler.start()
        scheduler.start()
        self.assertTrue(scheduler.running)

        await asyncio.sleep(0.08)
        await scheduler.stop()
        self.assertFalse(scheduler.running)
        self.assertGreaterEqual(len(ticks), 2)

        stopped_at = len(ticks)
        await asyncio.sleep(0.03)
        self.assertEqual(len(ticks), stopped_at)

    async def test_failing_tick_is_logged_and_ticker_keeps_running(self) -> None:
        calls = []

        def on_tick():
            calls.append(1)
            raise RuntimeError("redraw broke")

        scheduler = CountdownScheduler(on_tick, interval=0.01)
        with self.assertLogs("quota_engine", level="ERROR") as logs:
            scheduler.start()
            await asyncio.sleep(0.05)
            await scheduler.stop()

        self.assertGreaterEqual(len(calls), 2)
        self.assertIn("redraw broke", logs.output[0])

    async def test_stop_without_start(self) -> None:
        scheduler = CountdownScheduler(lambda: None)
        await scheduler.stop()
        self.assertFalse(scheduler.running)


if __name__ == "__main__":
    unittest.main()
