# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
One-shot terminal quota report.

Fetches quotas for every configured account and prints a per-account
breakdown followed by model averages. Uses rich for output; colors are only
emitted when stdout is a terminal.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from quota_engine.core.errors import NoAccountsConfiguredError
from quota_engine.core.types import (
    Account,
    AccountConfig,
    AccountStatus,
    fraction_to_percent,
)
from quota_engine.providers.account_quotas import AccountQuotaTracker
from quota_engine.usage.aggregation import model_averages, overall_average


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

REPORT_TITLE = "Antigravity Quota Overview"
RULE_WIDTH = 39
MODEL_NAME_WIDTH = 30
DASHBOARD_HINT = "Tip: Run the server and visit {url} for the web dashboard."

# Severity tiers for the terminal report: (minimum displayed percent, tier)
TERMINAL_TIERS = ((50, "high"), (20, "mid"))

TIER_STYLES = {
    "high": "green",
    "mid": "yellow",
    "low": "red",
    "n/a": "bright_black",
}

# =============================================================================


def terminal_severity(fraction: Optional[float]) -> str:
    """
    Classify a fraction: n/a, high (>=50%), mid (>=20%) or low.

    The tier is taken from the rounded percent that gets printed, so a
    value shown as "50%" is always high.
    """
    percent = fraction_to_percent(fraction)
    if percent is None:
        return "n/a"
    for threshold, tier in TERMINAL_TIERS:
        if percent >= threshold:
            return tier
    return "low"


def format_percent(fraction: Optional[float]) -> Text:
    """Percent text styled by terminal severity ("n/a" when unknown)."""
    percent = fraction_to_percent(fraction)
    label = "n/a" if percent is None else f"{percent}%"
    return Text(label, style=TIER_STYLES[terminal_severity(fraction)])


@dataclass
class QuotaReport:
    """Everything the terminal report prints, computed up front."""

    accounts: List[Account] = field(default_factory=list)
    model_averages: Dict[str, Optional[float]] = field(default_factory=dict)
    overall_average: Optional[float] = None

    @property
    def sorted_models(self) -> List[str]:
        return sorted(self.model_averages)


def build_report(accounts: Sequence[Account]) -> QuotaReport:
    """Aggregate collected accounts into a report (errored accounts carry no models)."""
    averages = model_averages(accounts)
    return QuotaReport(
        accounts=list(accounts),
        model_averages=averages,
        overall_average=overall_average(averages),
    )


class TerminalReportRenderer:
    """Prints a QuotaReport to a rich console."""

    def __init__(self, console: Optional[Console] = None, dashboard_url: str = ""):
        self.console = console or Console(highlight=False)
        self.dashboard_url = dashboard_url

    def _section(self, title: str) -> None:
        self.console.print(Text("═" * RULE_WIDTH, style="bold"))
        self.console.print(Text(title.center(RULE_WIDTH), style="bold"))
        self.console.print(Text("═" * RULE_WIDTH, style="bold"))
        self.console.print()

    def render_banner(self) -> None:
        self.console.print()
        self.console.print(
            Panel(
                Text(REPORT_TITLE, justify="center", style="bold"),
                box=box.DOUBLE,
                width=RULE_WIDTH + 2,
            )
        )

    def render_no_accounts(self) -> None:
        self.console.print()
        self.console.print(Text("No accounts configured.", style="yellow"))
        self.console.print(
            Text.assemble(
                "Add an account to the accounts file (",
                ("QUOTA_ACCOUNTS_FILE", "cyan"),
                ") and run again.",
            )
        )
        self.console.print()

    def render_fetch_start(self, count: int) -> None:
        self.console.print()
        self.console.print(f"Fetching quotas for {count} account(s)...")
        self.console.print()

    def render_progress(self, config: AccountConfig, result: Account) -> None:
        """One "Checking <name>... OK" line per account as it completes."""
        line = Text(f"  Checking {config.email.split('@')[0]}... ")
        if result.status == AccountStatus.ERROR:
            line.append(f"Error: {result.error}", style="red")
        elif result.status == AccountStatus.RATE_LIMITED:
            line.append("OK (rate-limited)", style="yellow")
        else:
            line.append("OK", style="green")
        self.console.print(line)

    def _model_table(self) -> Table:
        table = Table(box=None, show_header=False, padding=(0, 1), pad_edge=False)
        table.add_column("Model", min_width=MODEL_NAME_WIDTH, no_wrap=True)
        table.add_column("Remaining", justify="left", no_wrap=True)
        return table

    def render_account(self, account: Account) -> None:
        name = Text(f"  {account.short_email}", style="bold")
        if account.status == AccountStatus.RATE_LIMITED:
            name.append(" [rate-limited]", style="yellow")
        self.console.print(name)

        if account.status == AccountStatus.ERROR:
            self.console.print(Text(f"    Error: {account.error}", style="red"))
            self.console.print()
            return

        if not account.models:
            self.console.print(Text("    No quota data available", style="bright_black"))
            self.console.print()
            return

        table = self._model_table()
        for model_id in sorted(account.models):
            quota = account.models[model_id]
            table.add_row(f"    {model_id}", format_percent(quota.remaining_fraction))
        self.console.print(table)
        self.console.print()

    def render_averages(self, report: QuotaReport) -> None:
        if report.sorted_models:
            self.console.print(Text("  By Model:", style="bold"))
            table = self._model_table()
            for model_id in report.sorted_models:
                average = report.model_averages[model_id]
                table.add_row(f"    {model_id}", format_percent(average))
            self.console.print(table)
            self.console.print()

        if report.overall_average is not None:
            line = Text("  Overall Average: ", style="bold")
            line.append_text(format_percent(report.overall_average))
            self.console.print(line)
            self.console.print()

    def render_hint(self) -> None:
        if self.dashboard_url:
            self.console.print(
                Text(DASHBOARD_HINT.format(url=self.dashboard_url), style="bright_black")
            )
            self.console.print()

    def render(self, report: QuotaReport) -> None:
        """Print the per-account details, the averages and the closing hint."""
        self.console.print()
        self._section("PER-ACCOUNT DETAILS")
        for account in report.accounts:
            self.render_account(account)

        self._section("AVERAGE REMAINING")
        self.render_averages(report)
        self.render_hint()


async def run_report(
    accounts: Sequence[AccountConfig],
    tracker: AccountQuotaTracker,
    renderer: TerminalReportRenderer,
) -> int:
    """
    Run the full report.

    Returns:
        Process exit code: 1 when no accounts are configured, else 0
    """
    renderer.render_banner()
    if accounts:
        renderer.render_fetch_start(len(accounts))

    try:
        results = await tracker.collect(accounts, on_progress=renderer.render_progress)
    except NoAccountsConfiguredError:
        renderer.render_no_accounts()
        return 1

    renderer.render(build_report(results))
    return 0
