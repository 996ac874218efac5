# SPDX-License-Identifier: MIT

import io
import unittest

from rich.console import Console

from quota_app.terminal_report import (
    TerminalReportRenderer,
    build_report,
    format_percent,
    run_report,
    terminal_severity,
)
from quota_engine.client.source import QuotaSnapshotSource
from quota_engine.core.errors import (
    AccountQuotaError,
    NoAccountsConfiguredError,
    SnapshotFetchError,
)
from quota_engine.core.types import (
    Account,
    AccountConfig,
    LimitsSnapshot,
    QuotaInfo,
    SummarySnapshot,
)
from quota_engine.providers.account_quotas import (
    AccountQuotaFetcher,
    AccountQuotaTracker,
    ProxyLimitsFetcher,
)


class DictFetcher(AccountQuotaFetcher):
    """Serves canned quotas; an Exception value is raised for that account."""

    def __init__(self, quotas):
        self.quotas = quotas
        self.calls = []

    async def fetch_model_quotas(self, account):
        self.calls.append(account.email)
        value = self.quotas[account.email]
        if isinstance(value, Exception):
            raise value
        return {m: QuotaInfo(f) for m, f in value.items()}


class LimitsOnlySource(QuotaSnapshotSource):
    def __init__(self, limits=None, error=None):
        self.limits = limits
        self.error = error
        self.limits_calls = 0

    async def fetch_summary(self):
        return SummarySnapshot()

    async def fetch_limits(self):
        self.limits_calls += 1
        if self.error is not None:
            raise self.error
        return self.limits


def make_console() -> Console:
    return Console(file=io.StringIO(), width=100, color_system=None, highlight=False)


ACCOUNTS = [
    AccountConfig("alice@example.com"),
    AccountConfig("bob@example.com"),
    AccountConfig("carol@example.com"),
]


class SeverityTest(unittest.TestCase):
    def test_terminal_thresholds(self) -> None:
        self.assertEqual(terminal_severity(None), "n/a")
        self.assertEqual(terminal_severity(1.0), "high")
        self.assertEqual(terminal_severity(0.5), "high")
        self.assertEqual(terminal_severity(0.49), "mid")
        self.assertEqual(terminal_severity(0.2), "mid")
        self.assertEqual(terminal_severity(0.19), "low")
        self.assertEqual(terminal_severity(0.0), "low")

    def test_format_percent(self) -> None:
        self.assertEqual(format_percent(None).plain, "n/a")
        self.assertEqual(format_percent(0.6).plain, "60%")
        self.assertEqual(format_percent(0.125).plain, "13%")
        self.assertEqual(format_percent(0.025).plain, "3%")

    def test_tier_follows_the_printed_percent(self) -> None:
        shown_fifty = format_percent(0.495)
        self.assertEqual(shown_fifty.plain, "50%")
        self.assertEqual(terminal_severity(0.495), "high")
        self.assertEqual(str(shown_fifty.style), "green")

        shown_twenty = format_percent(0.195)
        self.assertEqual(shown_twenty.plain, "20%")
        self.assertEqual(terminal_severity(0.195), "mid")
        self.assertEqual(str(shown_twenty.style), "yellow")


class AccountQuotaTrackerTest(unittest.IsolatedAsyncioTestCase):
    async def test_failure_is_isolated_to_one_account(self) -> None:
        fetcher = DictFetcher(
            {
                "alice@example.com": {"m1": 0.8},
                "bob@example.com": AccountQuotaError("bob@example.com", "token expired"),
                "carol@example.com": {"m1": 0.2},
            }
        )
        progress = []
        with self.assertLogs("quota_engine", level="WARNING") as logs:
            results = await AccountQuotaTracker(fetcher).collect(
                ACCOUNTS, on_progress=lambda cfg, res: progress.append(cfg.email)
            )

        self.assertEqual([r.email for r in results], [a.email for a in ACCOUNTS])
        self.assertEqual(progress, fetcher.calls)
        self.assertEqual(results[1].status, "error")
        self.assertEqual(results[1].error, "token expired")
        self.assertEqual(results[1].models, {})
        self.assertEqual(results[2].models["m1"].remaining_fraction, 0.2)
        self.assertIn("bo***@example.com", logs.output[0])
        self.assertNotIn("bob@example.com", logs.output[0])

    async def test_empty_batch_is_rejected(self) -> None:
        with self.assertRaises(NoAccountsConfiguredError):
            await AccountQuotaTracker(DictFetcher({})).collect([])


class ProxyLimitsFetcherTest(unittest.IsolatedAsyncioTestCase):
    async def test_resolves_accounts_from_one_limits_read(self) -> None:
        source = LimitsOnlySource(
            LimitsSnapshot(
                models=("m1",),
                accounts=(
                    Account("alice@example.com", models={"m1": QuotaInfo(0.8)}),
                    Account("bob@example.com", status="invalid", error="token revoked"),
                    Account("dave@example.com", status="rate-limited"),
                ),
            )
        )
        fetcher = ProxyLimitsFetcher(source)

        quotas = await fetcher.fetch_model_quotas(AccountConfig("alice@example.com"))
        self.assertEqual(quotas["m1"].remaining_fraction, 0.8)

        with self.assertRaisesRegex(AccountQuotaError, "token revoked"):
            await fetcher.fetch_model_quotas(AccountConfig("bob@example.com"))
        with self.assertRaisesRegex(AccountQuotaError, "not found"):
            await fetcher.fetch_model_quotas(AccountConfig("carol@example.com"))
        self.assertEqual(
            await fetcher.fetch_model_quotas(AccountConfig("dave@example.com")), {}
        )
        self.assertEqual(source.limits_calls, 1)

    async def test_rate_limited_status_reaches_the_report(self) -> None:
        source = LimitsOnlySource(
            LimitsSnapshot(
                models=("m1",),
                accounts=(
                    Account("alice@example.com", models={"m1": QuotaInfo(0.8)}),
                    Account(
                        "bob@example.com",
                        status="rate-limited",
                        models={"m1": QuotaInfo(0.0)},
                    ),
                ),
            )
        )
        tracker = AccountQuotaTracker(ProxyLimitsFetcher(source))
        results = await tracker.collect(ACCOUNTS[:2])
        self.assertEqual([r.status for r in results], ["ok", "rate-limited"])
        self.assertEqual(results[1].models["m1"].remaining_fraction, 0.0)

        console = make_console()
        renderer = TerminalReportRenderer(console)
        for config, result in zip(ACCOUNTS, results):
            renderer.render_progress(config, result)
        renderer.render(build_report(results))
        output = console.file.getvalue()

        alice_line = next(line for line in output.splitlines() if "Checking alice" in line)
        self.assertEqual(alice_line.strip(), "Checking alice... OK")
        self.assertIn("Checking bob... OK (rate-limited)", output)
        bob_block = output.split("PER-ACCOUNT DETAILS")[1].split("bob")[1]
        self.assertIn("[rate-limited]", bob_block.splitlines()[0])
        self.assertIn("0%", bob_block.split("AVERAGE REMAINING")[0])
        self.assertIn("Overall Average: 40%", output)

    async def test_failed_limits_read_is_reported_on_every_account(self) -> None:
        source = LimitsOnlySource(
            error=SnapshotFetchError("/account-limits", "Request timed out.")
        )
        tracker = AccountQuotaTracker(ProxyLimitsFetcher(source))
        with self.assertLogs("quota_engine", level="WARNING"):
            results = await tracker.collect(ACCOUNTS[:2])

        self.assertEqual([r.error for r in results], ["Request timed out."] * 2)
        self.assertEqual(source.limits_calls, 1)


class TerminalReportTest(unittest.IsolatedAsyncioTestCase):
    async def test_end_to_end_report(self) -> None:
        fetcher = DictFetcher(
            {
                "alice@example.com": {"m1": 0.8},
                "bob@example.com": {"m1": 0.4, "m2": None},
                "carol@example.com": RuntimeError("refresh token rejected"),
            }
        )
        console = make_console()
        renderer = TerminalReportRenderer(console, dashboard_url="http://localhost:8085")

        with self.assertLogs("quota_engine", level="WARNING"):
            code = await run_report(ACCOUNTS, AccountQuotaTracker(fetcher), renderer)
        output = console.file.getvalue()

        self.assertEqual(code, 0)
        self.assertIn("Antigravity Quota Overview", output)
        self.assertIn("Fetching quotas for 3 account(s)...", output)
        self.assertIn("Checking alice... OK", output)
        self.assertIn("Checking carol... Error: refresh token rejected", output)
        self.assertIn("PER-ACCOUNT DETAILS", output)
        self.assertIn("AVERAGE REMAINING", output)
        self.assertIn("Overall Average: 60%", output)
        self.assertIn("http://localhost:8085", output)

        details = output.split("PER-ACCOUNT DETAILS")[1].split("AVERAGE REMAINING")[0]
        carol_block = details.split("carol")[1]
        self.assertIn("Error: refresh token rejected", carol_block)
        self.assertNotIn("m1", carol_block)

        averages = output.split("AVERAGE REMAINING")[1]
        m1_line = next(line for line in averages.splitlines() if "m1" in line)
        m2_line = next(line for line in averages.splitlines() if "m2" in line)
        self.assertIn("60%", m1_line)
        self.assertIn("n/a", m2_line)

    async def test_no_accounts_exits_with_code_1(self) -> None:
        console = make_console()
        fetcher = DictFetcher({})
        code = await run_report([], AccountQuotaTracker(fetcher), TerminalReportRenderer(console))

        self.assertEqual(code, 1)
        self.assertIn("No accounts configured.", console.file.getvalue())
        self.assertEqual(fetcher.calls, [])


class BuildReportTest(unittest.TestCase):
    def test_averages_skip_errored_accounts(self) -> None:
        report = build_report(
            [
                Account("a@example.com", models={"m1": QuotaInfo(0.8)}),
                Account("b@example.com", models={"m1": QuotaInfo(0.4), "m2": QuotaInfo()}),
                Account("c@example.com", status="error", error="boom"),
            ]
        )
        self.assertEqual(report.sorted_models, ["m1", "m2"])
        self.assertAlmostEqual(report.model_averages["m1"], 0.6)
        self.assertIsNone(report.model_averages["m2"])
        self.assertAlmostEqual(report.overall_average, 0.6)


if __name__ == "__main__":
    unittest.main()
