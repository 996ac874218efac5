# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Console entry points.

    quota-report      One-shot quota summary for all configured accounts
    quota-dashboard   Live dashboard fed by the proxy's health/limits reads
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.live import Live

from quota_engine.accounts import load_accounts
from quota_engine.client.refresh import RefreshController
from quota_engine.client.source import HttpSnapshotSource
from quota_engine.core.types import ViewState
from quota_engine.providers.account_quotas import AccountQuotaTracker, ProxyLimitsFetcher
from quota_engine.usage.filters import normalize_filter

from .config import DashboardConfig
from .dashboard import Dashboard, run_commands
from .renderers import AnchorRenderer, RichDashboardRenderer
from .terminal_report import TerminalReportRenderer, run_report

LOG_DIR = Path.cwd() / "logs"


def setup_logging(log_dir: Path = LOG_DIR, verbose: bool = False) -> None:
    """
    File log for everything, stderr for warnings only.

    stdout is reserved for the report / live view.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "quota.log", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)
    except OSError:
        pass  # read-only working directory: console logging only

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root_logger.addHandler(console_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# TERMINAL REPORT
# =============================================================================


async def _report(config: DashboardConfig, console: Console) -> int:
    accounts = load_accounts(config.accounts_file)
    source = HttpSnapshotSource(
        config.proxy_url, api_key=config.api_key, timeout=config.request_timeout
    )
    fetcher = ProxyLimitsFetcher(source)
    try:
        return await run_report(
            accounts,
            AccountQuotaTracker(fetcher),
            TerminalReportRenderer(console, dashboard_url=config.proxy_url),
        )
    finally:
        await fetcher.aclose()


def report_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the one-shot report. Returns the exit code."""
    parser = argparse.ArgumentParser(
        description="Show remaining quota for all configured accounts."
    )
    parser.parse_args(argv)

    setup_logging()
    console = Console(highlight=False)
    try:
        config = DashboardConfig.from_env()
        return asyncio.run(_report(config, console))
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logging.getLogger(__name__).exception("Fatal error in quota report")
        console.print(f"[red]Fatal error:[/red] {e}")
        return 1


# =============================================================================
# LIVE DASHBOARD
# =============================================================================


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live quota dashboard.")
    parser.add_argument(
        "--filter",
        default="all",
        choices=["all", "claude", "gemini"],
        help="Only show models of this family.",
    )
    parser.add_argument("--search", default="", help="Only show accounts matching this text.")
    parser.add_argument(
        "--expand",
        action="append",
        default=[],
        metavar="EMAIL",
        help="Expand this account's card (repeatable).",
    )
    parser.add_argument("--interval", type=float, help="Auto-refresh interval in seconds.")
    parser.add_argument(
        "--no-auto-refresh", action="store_true", help="Disable the auto-refresh timer."
    )
    parser.add_argument(
        "--anchors",
        action="store_true",
        help="Refresh once and print the page-shell anchor map as JSON.",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging on stderr.")
    return parser


def _view_state(config: DashboardConfig, args: argparse.Namespace) -> ViewState:
    return ViewState(
        filter=normalize_filter(args.filter),
        search_query=args.search.strip(),
        expanded_accounts=set(args.expand),
        auto_refresh=config.auto_refresh and not args.no_auto_refresh,
        refresh_interval=args.interval or config.refresh_interval,
    )


async def _print_anchors(controller: RefreshController) -> int:
    renderer = AnchorRenderer()
    dashboard = Dashboard(controller, renderer)
    try:
        await controller.refresh()
    finally:
        await dashboard.stop()
    print(json.dumps(renderer.anchors, indent=2))
    return 0 if controller.view_state.last_error is None else 1


async def open_stdin_reader() -> asyncio.StreamReader:
    """Line reader over stdin, driven by the running event loop."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


async def _run_live(
    controller: RefreshController, config: DashboardConfig, console: Console
) -> int:
    with Live(console=console, auto_refresh=False, screen=False) as live:
        dashboard = Dashboard(
            controller,
            RichDashboardRenderer(live),
            countdown_interval=config.countdown_interval,
            search_debounce_ms=config.search_debounce_ms,
        )
        await dashboard.start()
        try:
            try:
                reader: Optional[asyncio.StreamReader] = await open_stdin_reader()
            except (OSError, ValueError, NotImplementedError) as e:
                logging.getLogger(__name__).warning(f"Keyboard commands unavailable: {e}")
                reader = None
            if reader is None or not await run_commands(dashboard, reader):
                # Without input the display runs until interrupted
                await asyncio.Event().wait()
        finally:
            await dashboard.stop()
    return 0


def dashboard_main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the live dashboard. Returns the exit code."""
    args = _build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    config = DashboardConfig.from_env()
    source = HttpSnapshotSource(
        config.proxy_url, api_key=config.api_key, timeout=config.request_timeout
    )
    controller = RefreshController(source, view_state=_view_state(config, args))

    try:
        if args.anchors:
            return asyncio.run(_print_anchors(controller))
        return asyncio.run(_run_live(controller, config, Console()))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(report_main())
