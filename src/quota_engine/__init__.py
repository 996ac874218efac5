# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Quota aggregation and refresh engine.

Turns per-account, per-model quota snapshots into model averages, family
gauges and reset countdowns, and keeps a single consistent refresh in flight.
"""

from .client.refresh import RefreshController, RefreshState
from .client.source import HttpSnapshotSource, QuotaSnapshotSource
from .core.errors import (
    AccountQuotaError,
    MalformedSnapshotError,
    NoAccountsConfiguredError,
    QuotaMonitorError,
    SnapshotFetchError,
)
from .core.types import (
    Account,
    AccountStatus,
    Aggregates,
    FamilyGauge,
    ModelFamily,
    NextReset,
    QuotaInfo,
    Snapshot,
    ViewState,
    get_model_family,
)
from .usage.aggregation import (
    compute_aggregates,
    family_gauge,
    model_averages,
    next_global_reset,
    overall_average,
    soonest_family_reset,
)
from .usage.countdown import CountdownScheduler, format_duration
from .usage.filters import SearchDebouncer, filter_models, search_accounts

__all__ = [
    "Account",
    "AccountQuotaError",
    "AccountStatus",
    "Aggregates",
    "CountdownScheduler",
    "FamilyGauge",
    "HttpSnapshotSource",
    "MalformedSnapshotError",
    "ModelFamily",
    "NextReset",
    "NoAccountsConfiguredError",
    "QuotaInfo",
    "QuotaMonitorError",
    "QuotaSnapshotSource",
    "RefreshController",
    "RefreshState",
    "SearchDebouncer",
    "Snapshot",
    "SnapshotFetchError",
    "ViewState",
    "compute_aggregates",
    "family_gauge",
    "filter_models",
    "format_duration",
    "get_model_family",
    "model_averages",
    "next_global_reset",
    "overall_average",
    "search_accounts",
    "soonest_family_reset",
]
