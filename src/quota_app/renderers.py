# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Dashboard renderers.

Each renderer consumes a DashboardView and nothing else:

- AnchorRenderer maps the view onto the named anchors of the web page
  shell as plain JSON-ready data.
- RichDashboardRenderer draws the view as rich panels and tables for the
  live terminal dashboard.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.console import Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .dashboard_view import AccountCard, DashboardView, GlobalGauge, QuotaMatrix


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

GAUGE_BAR_WIDTH = 20
ITEM_BAR_WIDTH = 10

LEVEL_STYLES = {
    "high": "green",
    "medium": "yellow",
    "low": "red",
    "exhausted": "bold red",
    "na": "dim",
}

STATUS_STYLES = {
    "ok": "green",
    "rate-limited": "yellow",
    "invalid": "red",
    "error": "red",
    "loading": "cyan",
    "unknown": "dim",
}

COMMAND_HELP = (
    "r refresh/retry  d dismiss  f <all|claude|gemini>  /<text> search  "
    "e<n> expand  a auto-refresh  i <seconds> interval  q quit"
)

# =============================================================================


def create_progress_bar(percent: Optional[int], width: int = 10) -> str:
    """Create a text-based progress bar."""
    if percent is None:
        return "░" * width
    percent = max(0, min(percent, 100))
    filled = int(percent / 100 * width)
    return "▓" * filled + "░" * (width - filled)


def _jsonable(value: Any) -> Any:
    """Convert datetimes inside asdict() output to ISO strings."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


class AnchorRenderer:
    """
    Produces content for the page shell's fixed anchors.

    The page shell owns the markup; this renderer only decides what goes
    into each anchor. The last rendered map is kept in `anchors`.
    """

    def __init__(self) -> None:
        self.anchors: Dict[str, Any] = {}

    def render(self, view: DashboardView) -> Dict[str, Any]:
        anchors: Dict[str, Any] = {
            "server-status": {
                "text": view.server_status.text,
                "class": view.server_status.css_class,
            },
            "last-update": view.last_updated_text,
            "error-banner": {"hidden": not view.error_banner.visible},
            "error-message": view.error_banner.message or "",
            "manual-refresh": {"disabled": view.is_loading},
            "total-accounts": view.summary.total,
            "available-accounts": view.summary.available,
            "rate-limited-accounts": view.summary.rate_limited,
            "invalid-accounts": view.summary.invalid,
            "account-search": view.search_query,
            "filter": view.filter,
            "auto-refresh": {"checked": view.auto_refresh},
            "refresh-interval": view.refresh_interval,
            "accounts-list": _jsonable(asdict(view.accounts)),
            "quota-matrix": _jsonable(asdict(view.matrix)),
            "next-reset-time": view.next_reset.time_text,
            "next-reset-model": view.next_reset.model_text,
            "overall-average": view.overall_average_text,
            "model-averages": [asdict(row) for row in view.model_averages],
        }
        for gauge in view.gauges:
            anchors[f"{gauge.family}-quota"] = gauge.percent_text
            anchors[f"{gauge.family}-quota-fill"] = f"{gauge.fill_width}%"
            anchors[f"{gauge.family}-reset"] = gauge.reset_text or gauge.caption
            anchors[f"{gauge.family}-accounts"] = gauge.caption
        return anchors

    def update(self, view: DashboardView) -> None:
        self.anchors = self.render(view)


class RichDashboardRenderer:
    """Draws the dashboard with rich; pushes frames into a Live display if given."""

    def __init__(self, live: Optional[Live] = None):
        self.live = live

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def _header(self, view: DashboardView) -> Text:
        status = view.server_status
        header = Text.assemble(
            ("Quota Dashboard", "bold cyan"),
            "  |  Server: ",
            (status.text, STATUS_STYLES.get(status.css_class, "")),
            "  |  Updated: ",
            (view.last_updated_text, "dim"),
            "  |  Filter: ",
            (view.filter, "magenta"),
        )
        if view.search_query:
            header.append("  |  Search: ")
            header.append(view.search_query, style="magenta")
        header.append("  |  Auto: ")
        if view.auto_refresh:
            header.append(f"{view.refresh_interval:g}s", style="green")
        else:
            header.append("off", style="dim")
        return header

    def _summary(self, view: DashboardView) -> Table:
        table = Table(box=None, show_header=True, header_style="bold", padding=(0, 2))
        table.add_column("Total", justify="center")
        table.add_column("Available", justify="center", style="green")
        table.add_column("Rate limited", justify="center", style="yellow")
        table.add_column("Invalid", justify="center", style="red")
        summary = view.summary
        table.add_row(
            str(summary.total),
            str(summary.available),
            str(summary.rate_limited),
            str(summary.invalid),
        )
        return table

    def _gauge(self, gauge: GlobalGauge) -> Text:
        line = Text(f"{gauge.label + ':':<8} ", style="bold")
        line.append(f"{gauge.percent_text:>5} ")
        line.append(create_progress_bar(gauge.fill_width, GAUGE_BAR_WIDTH), style="cyan")
        line.append(f"  {gauge.caption}", style="dim")
        if gauge.reset_text:
            line.append(f"  {gauge.reset_text}", style="yellow")
        return line

    def _gauges(self, view: DashboardView) -> Panel:
        lines: List[Text] = [self._gauge(g) for g in view.gauges]
        nxt = view.next_reset
        lines.append(
            Text.assemble(
                ("Next reset: ", "bold"), nxt.time_text, "  ", (nxt.model_text, "dim")
            )
        )
        lines.append(Text.assemble(("Overall average: ", "bold"), view.overall_average_text))
        for row in view.model_averages:
            line = Text(f"  {row.model_id:<30} ", style="dim")
            line.append(row.percent_text, style=LEVEL_STYLES.get(row.level, ""))
            lines.append(line)
        return Panel(Group(*lines), title="Global Quota", border_style="cyan")

    def _card(self, card: AccountCard) -> RenderableType:
        marker = "▼" if card.expanded else "▶"
        header = Text.assemble(
            (f"{marker} ", "dim"),
            (card.masked_email, "bold"),
            "  ",
            (card.status, STATUS_STYLES.get(card.status_class, "")),
            "  ",
            (card.last_used_text, "dim"),
        )
        if not card.expanded:
            return header

        details: List[RenderableType] = [header]
        if card.error:
            details.append(Text(f"    {card.error}", style="red"))
        if card.empty_message:
            details.append(Text(f"    {card.empty_message}", style="dim"))
        for item in card.quota_items:
            line = Text(f"    {item.model_id:<30} ")
            line.append(f"{item.percent_text:>5} ", style=LEVEL_STYLES.get(item.level, ""))
            line.append(
                create_progress_bar(item.fill_width, ITEM_BAR_WIDTH),
                style=LEVEL_STYLES.get(item.level, ""),
            )
            if item.reset_text:
                line.append(f"  {item.reset_text}", style="dim")
            details.append(line)
        return Group(*details)

    def _accounts(self, view: DashboardView) -> Panel:
        accounts = view.accounts
        if accounts.empty_title:
            body: RenderableType = Text.assemble(
                (accounts.empty_title, "bold yellow"), "\n", (accounts.empty_message or "", "dim")
            )
        else:
            body = Group(*[self._card(card) for card in accounts.cards])
        return Panel(body, title="Accounts", border_style="blue")

    def _matrix(self, matrix: QuotaMatrix) -> Panel:
        if matrix.empty_message:
            return Panel(Text(matrix.empty_message, style="dim"), title="Quota Matrix")

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
        table.add_column("Account", style="cyan", no_wrap=True)
        for model_id in matrix.columns:
            table.add_column(model_id, justify="center")
        for row in matrix.rows:
            cells: List[RenderableType] = [row.masked_email]
            for cell in row.cells:
                text = Text(cell.text, style=LEVEL_STYLES.get(cell.css_class, "dim"))
                if cell.reset_text:
                    text.append(f" {cell.reset_text}", style="dim")
                cells.append(text)
            table.add_row(*cells)
        return Panel(table, title="Quota Matrix", border_style="blue")

    # -------------------------------------------------------------------------

    def render(self, view: DashboardView) -> RenderableType:
        parts: List[RenderableType] = [self._header(view)]
        if view.error_banner.visible:
            parts.append(
                Panel(
                    Text(view.error_banner.message or "", style="red"),
                    title="Error",
                    border_style="red",
                )
            )
        parts.extend(
            [
                self._summary(view),
                self._gauges(view),
                self._accounts(view),
                self._matrix(view.matrix),
                Text(COMMAND_HELP, style="dim"),
            ]
        )
        return Group(*parts)

    def update(self, view: DashboardView) -> None:
        if self.live is not None:
            self.live.update(self.render(view), refresh=True)
