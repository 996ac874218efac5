# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
Dashboard view-model.

Builds a declarative description of the dashboard screen from the current
snapshot, its aggregates and the view state. Renderers (page-shell anchors,
rich live view) only read these objects. Reset times are kept as absolute
timestamps so update_countdowns() can re-derive every countdown text
between refreshes without touching the snapshot.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from quota_engine.core.constants import FILTER_ALL
from quota_engine.core.errors import mask_email
from quota_engine.core.types import (
    Account,
    AccountStatus,
    Aggregates,
    FamilyGauge,
    LimitsSnapshot,
    ModelFamily,
    QuotaInfo,
    Snapshot,
    SummarySnapshot,
    ViewState,
    fraction_to_percent,
)
from quota_engine.usage.countdown import format_duration, format_relative, ms_until
from quota_engine.usage.filters import filter_models, search_accounts


# =============================================================================
# DISPLAY CONFIGURATION
# =============================================================================

FAMILY_LABELS = {
    ModelFamily.CLAUDE: "Claude",
    ModelFamily.GEMINI: "Gemini",
}

NO_ACCOUNTS = ("No accounts configured", "Add an account to the proxy to get started")
NO_MATCHING_ACCOUNTS = ("No matching accounts", "Try adjusting your search or filter")
NO_MODELS_MATCH = "No models match the current filter"
NO_MATRIX_DATA = "No data available"

# =============================================================================


def dashboard_level(fraction: Optional[float]) -> str:
    """Classify a fraction for the dashboard: na/high/medium/low/exhausted."""
    if fraction is None:
        return "na"
    if fraction >= 0.75:
        return "high"
    if fraction >= 0.25:
        return "medium"
    if fraction > 0:
        return "low"
    return "exhausted"


def status_class(status: str) -> str:
    """Map an account status to its display class (unknown values -> error)."""
    if status in (AccountStatus.OK, AccountStatus.RATE_LIMITED, AccountStatus.INVALID):
        return status
    return AccountStatus.ERROR


# =============================================================================
# VIEW-MODEL TYPES
# =============================================================================


@dataclass
class ServerStatus:
    text: str
    css_class: str


@dataclass
class SummaryCounts:
    total: int = 0
    available: int = 0
    rate_limited: int = 0
    invalid: int = 0


@dataclass
class QuotaItem:
    """One model row inside an account card."""

    model_id: str
    percent_text: str
    level: str
    fill_width: int
    reset_time: Optional[datetime] = None
    reset_text: Optional[str] = None


@dataclass
class AccountCard:
    email: str
    masked_email: str
    status: str
    status_class: str
    last_used_text: str
    expanded: bool
    error: Optional[str] = None
    quota_items: List[QuotaItem] = field(default_factory=list)
    empty_message: Optional[str] = None


@dataclass
class AccountList:
    cards: List[AccountCard] = field(default_factory=list)
    empty_title: Optional[str] = None
    empty_message: Optional[str] = None


@dataclass
class MatrixCell:
    text: str
    css_class: str
    reset_time: Optional[datetime] = None
    reset_text: Optional[str] = None


@dataclass
class MatrixRow:
    email: str
    masked_email: str
    cells: List[MatrixCell] = field(default_factory=list)


@dataclass
class QuotaMatrix:
    columns: List[str] = field(default_factory=list)
    rows: List[MatrixRow] = field(default_factory=list)
    empty_message: Optional[str] = None


@dataclass
class GlobalGauge:
    family: str
    label: str
    percent_text: str
    fill_width: int
    caption: str
    reset_time: Optional[datetime] = None
    reset_text: Optional[str] = None


@dataclass
class NextResetPanel:
    time_text: str
    model_text: str
    reset_time: Optional[datetime] = None


@dataclass
class AverageRow:
    """Average remaining fraction of one model across usable accounts."""

    model_id: str
    percent_text: str
    level: str


@dataclass
class ErrorBanner:
    message: Optional[str] = None

    @property
    def visible(self) -> bool:
        return bool(self.message)


@dataclass
class DashboardView:
    server_status: ServerStatus
    last_updated_text: str
    last_updated: Optional[datetime]
    error_banner: ErrorBanner
    summary: SummaryCounts
    gauges: List[GlobalGauge]
    next_reset: NextResetPanel
    overall_average_text: str
    model_averages: List[AverageRow]
    accounts: AccountList
    matrix: QuotaMatrix
    filter: str = FILTER_ALL
    search_query: str = ""
    is_loading: bool = False
    auto_refresh: bool = True
    refresh_interval: float = 30.0


# =============================================================================
# BUILDERS
# =============================================================================


def build_server_status(
    snapshot: Optional[Snapshot], view_state: ViewState, has_error: bool
) -> ServerStatus:
    if view_state.is_loading:
        return ServerStatus("Loading...", "loading")
    if has_error:
        return ServerStatus("Error", "error")
    if snapshot is None:
        return ServerStatus("-", "unknown")
    latency = snapshot.summary.latency_ms
    return ServerStatus(f"OK ({latency if latency is not None else '?'}ms)", "ok")


def format_last_updated(last_updated: Optional[datetime], now: datetime) -> str:
    if last_updated is None:
        return "never"
    seconds = int((now - last_updated).total_seconds())
    return "just now" if seconds < 5 else f"{seconds}s ago"


def build_summary(summary: Optional[SummarySnapshot]) -> SummaryCounts:
    """Counts come straight from the health read, never recomputed."""
    if summary is None:
        return SummaryCounts()
    return SummaryCounts(
        total=summary.counts.total,
        available=summary.counts.available,
        rate_limited=summary.counts.rate_limited,
        invalid=summary.counts.invalid,
    )


def build_quota_item(model_id: str, quota: Optional[QuotaInfo], now: datetime) -> QuotaItem:
    fraction = quota.remaining_fraction if quota else None
    percent = fraction_to_percent(fraction)
    reset_time = quota.reset_time if quota else None
    item = QuotaItem(
        model_id=model_id,
        percent_text=f"{percent}%" if percent is not None else "N/A",
        level=dashboard_level(fraction),
        fill_width=percent if percent is not None else 0,
    )
    if reset_time is not None and ms_until(reset_time, now) > 0:
        item.reset_time = reset_time
        item.reset_text = f"Resets in {format_duration(ms_until(reset_time, now))}"
    return item


def build_account_card(account: Account, view_state: ViewState, now: datetime) -> AccountCard:
    models = filter_models(list(account.models), view_state.filter)
    card = AccountCard(
        email=account.email,
        masked_email=mask_email(account.email),
        status=account.status,
        status_class=status_class(account.status),
        last_used_text=f"Last: {format_relative(account.last_used, now)}",
        expanded=account.email in view_state.expanded_accounts,
        error=account.error,
        quota_items=[build_quota_item(m, account.models.get(m), now) for m in models],
    )
    if not models:
        card.empty_message = NO_MODELS_MATCH
    return card


def build_account_list(
    summary: Optional[SummarySnapshot], view_state: ViewState, now: datetime
) -> AccountList:
    if summary is None or not summary.accounts:
        return AccountList(empty_title=NO_ACCOUNTS[0], empty_message=NO_ACCOUNTS[1])

    accounts = search_accounts(summary.accounts, view_state.search_query)
    if not accounts:
        return AccountList(
            empty_title=NO_MATCHING_ACCOUNTS[0], empty_message=NO_MATCHING_ACCOUNTS[1]
        )
    return AccountList(cards=[build_account_card(acc, view_state, now) for acc in accounts])


def build_matrix_cell(account: Account, model_id: str, now: datetime) -> MatrixCell:
    """
    One matrix cell.

    Unusable accounts show "[status]", a model the account lacks shows "-",
    an unknown fraction shows "N/A". Exhausted cells get a countdown.
    """
    if not account.is_usable:
        return MatrixCell(text=f"[{account.status}]", css_class="na")

    quota = account.models.get(model_id)
    if quota is None:
        return MatrixCell(text="-", css_class="na")

    percent = quota.percent
    level = dashboard_level(quota.remaining_fraction)
    if percent is None:
        return MatrixCell(text="N/A", css_class=level)

    cell = MatrixCell(text=f"{percent}%", css_class=level)
    if percent == 0 and quota.reset_time is not None and ms_until(quota.reset_time, now) > 0:
        cell.reset_time = quota.reset_time
        cell.reset_text = format_duration(ms_until(quota.reset_time, now))
    return cell


def build_matrix(
    limits: Optional[LimitsSnapshot], view_state: ViewState, now: datetime
) -> QuotaMatrix:
    if limits is None or not limits.accounts:
        return QuotaMatrix(empty_message=NO_MATRIX_DATA)

    columns = filter_models(limits.models, view_state.filter)
    if not columns:
        return QuotaMatrix(empty_message=NO_MODELS_MATCH)

    rows = [
        MatrixRow(
            email=acc.email,
            masked_email=mask_email(acc.email),
            cells=[build_matrix_cell(acc, m, now) for m in columns],
        )
        for acc in search_accounts(limits.accounts, view_state.search_query)
    ]
    return QuotaMatrix(columns=columns, rows=rows)


def build_gauge(gauge: Optional[FamilyGauge], family: str, now: datetime) -> GlobalGauge:
    label = FAMILY_LABELS.get(family, family.title())
    if gauge is None:
        return GlobalGauge(family, label, "-", 0, "-")
    if gauge.fraction is None or gauge.account_count == 0:
        return GlobalGauge(family, label, "N/A", 0, "No data")

    percent = fraction_to_percent(gauge.fraction)
    view = GlobalGauge(
        family=family,
        label=label,
        percent_text=f"{percent}%",
        fill_width=percent,
        caption=f"Avg across {gauge.account_count} accounts",
    )
    if gauge.soonest_reset is not None and ms_until(gauge.soonest_reset, now) > 0:
        view.reset_time = gauge.soonest_reset
        view.reset_text = f"Resets in {format_duration(ms_until(gauge.soonest_reset, now))}"
    return view


def build_gauges(aggregates: Optional[Aggregates], now: datetime) -> List[GlobalGauge]:
    gauges: Dict[str, FamilyGauge] = aggregates.family_gauges if aggregates else {}
    return [build_gauge(gauges.get(family), family, now) for family in ModelFamily.RECOGNIZED]


def build_next_reset(aggregates: Optional[Aggregates], now: datetime) -> NextResetPanel:
    if aggregates is None:
        return NextResetPanel("-", "-")
    nxt = aggregates.next_global_reset
    if nxt is None or ms_until(nxt.reset_time, now) <= 0:
        return NextResetPanel("All OK", "No exhausted quotas")
    return NextResetPanel(
        time_text=format_duration(ms_until(nxt.reset_time, now)),
        model_text=nxt.model_id,
        reset_time=nxt.reset_time,
    )


def build_model_averages(
    aggregates: Optional[Aggregates], view_state: ViewState
) -> List[AverageRow]:
    """Per-model averages, sorted by model id and narrowed by the family filter."""
    if aggregates is None:
        return []
    rows = []
    for model_id in filter_models(sorted(aggregates.model_averages), view_state.filter):
        fraction = aggregates.model_averages[model_id]
        percent = fraction_to_percent(fraction)
        rows.append(
            AverageRow(
                model_id=model_id,
                percent_text=f"{percent}%" if percent is not None else "N/A",
                level=dashboard_level(fraction),
            )
        )
    return rows


def format_overall_average(aggregates: Optional[Aggregates]) -> str:
    if aggregates is None:
        return "-"
    percent = fraction_to_percent(aggregates.overall_average)
    return f"{percent}%" if percent is not None else "N/A"


def build_dashboard_view(
    snapshot: Optional[Snapshot],
    aggregates: Optional[Aggregates],
    view_state: ViewState,
    now: Optional[datetime] = None,
) -> DashboardView:
    """
    Build the full dashboard view-model.

    Args:
        snapshot: Current snapshot, None before the first successful refresh
        aggregates: Aggregates of that snapshot
        view_state: Filter, search, expanded cards, loading/error flags
        now: Reference time for countdowns (defaults to current UTC time)
    """
    now = now or datetime.now(timezone.utc)
    return DashboardView(
        server_status=build_server_status(
            snapshot, view_state, has_error=bool(view_state.last_error)
        ),
        last_updated_text=format_last_updated(view_state.last_updated, now),
        last_updated=view_state.last_updated,
        error_banner=ErrorBanner(view_state.last_error),
        summary=build_summary(snapshot.summary if snapshot else None),
        gauges=build_gauges(aggregates, now),
        next_reset=build_next_reset(aggregates, now),
        overall_average_text=format_overall_average(aggregates),
        model_averages=build_model_averages(aggregates, view_state),
        accounts=build_account_list(snapshot.summary if snapshot else None, view_state, now),
        matrix=build_matrix(snapshot.limits if snapshot else None, view_state, now),
        filter=view_state.filter,
        search_query=view_state.search_query,
        is_loading=view_state.is_loading,
        auto_refresh=view_state.auto_refresh,
        refresh_interval=view_state.refresh_interval,
    )


# =============================================================================
# COUNTDOWN REDRAW
# =============================================================================


def update_countdowns(view: DashboardView, now: Optional[datetime] = None) -> None:
    """
    Re-derive every countdown text from the stored reset timestamps.

    Pure text update; the snapshot and aggregates are never consulted.
    """
    now = now or datetime.now(timezone.utc)

    for card in view.accounts.cards:
        for item in card.quota_items:
            if item.reset_time is None:
                continue
            ms = ms_until(item.reset_time, now)
            item.reset_text = f"Resets in {format_duration(ms)}" if ms > 0 else "resetting..."

    for row in view.matrix.rows:
        for cell in row.cells:
            if cell.reset_time is None:
                continue
            ms = ms_until(cell.reset_time, now)
            cell.reset_text = format_duration(ms) if ms > 0 else "resetting..."

    for gauge in view.gauges:
        if gauge.reset_time is None:
            continue
        ms = ms_until(gauge.reset_time, now)
        gauge.reset_text = f"Resets in {format_duration(ms)}" if ms > 0 else "Resetting..."

    if view.next_reset.reset_time is not None:
        ms = ms_until(view.next_reset.reset_time, now)
        view.next_reset.time_text = format_duration(ms) if ms > 0 else "Resetting..."

    view.last_updated_text = format_last_updated(view.last_updated, now)
