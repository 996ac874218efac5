# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the quota engine.

This module contains the dataclasses used across the aggregation,
filtering, refresh and presentation layers. Snapshot types are frozen:
a refresh replaces them wholesale, never field by field.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set, Tuple


# =============================================================================
# ACCOUNT STATUS / MODEL FAMILY
# =============================================================================


class AccountStatus:
    """
    Account status values as reported by the proxy.

    Only OK and RATE_LIMITED accounts are considered usable.
    """

    OK = "ok"
    RATE_LIMITED = "rate-limited"
    INVALID = "invalid"
    ERROR = "error"

    USABLE = frozenset({OK, RATE_LIMITED})


class ModelFamily:
    """Vendor classification of a model id."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    UNKNOWN = "unknown"

    # Families that get a global gauge
    RECOGNIZED: Tuple[str, ...] = (CLAUDE, GEMINI)


def get_model_family(model_id: Optional[str]) -> str:
    """Classify a model id by substring match (claude wins over gemini)."""
    if not model_id:
        return ModelFamily.UNKNOWN
    if ModelFamily.CLAUDE in model_id:
        return ModelFamily.CLAUDE
    if ModelFamily.GEMINI in model_id:
        return ModelFamily.GEMINI
    return ModelFamily.UNKNOWN


def fraction_to_percent(fraction: Optional[float]) -> Optional[int]:
    """
    Whole percent for a fraction, rounding halves up (0.125 -> 13).

    Every displayed percent goes through here so the report, the dashboard
    and the severity tiers agree on the same number.
    """
    if fraction is None:
        return None
    return math.floor(fraction * 100 + 0.5)


# =============================================================================
# SNAPSHOT TYPES
# =============================================================================


@dataclass(frozen=True)
class QuotaInfo:
    """Remaining quota for one model on one account."""

    remaining_fraction: Optional[float] = None  # 0.0 - 1.0, None = unknown
    reset_time: Optional[datetime] = None  # aware UTC

    @property
    def percent(self) -> Optional[int]:
        return fraction_to_percent(self.remaining_fraction)


@dataclass(frozen=True)
class Account:
    """
    One account and its per-model quotas.

    `email` is the identity key used by view state (expanded cards),
    so it must stay stable across refreshes.
    """

    email: str
    status: str = AccountStatus.OK
    models: Dict[str, QuotaInfo] = field(default_factory=dict)
    last_used: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        return self.status in AccountStatus.USABLE

    @property
    def short_email(self) -> str:
        return self.email.split("@")[0]


@dataclass(frozen=True)
class AccountCounts:
    total: int = 0
    available: int = 0
    rate_limited: int = 0
    invalid: int = 0


@dataclass(frozen=True)
class SummarySnapshot:
    """Health-style read: status counts plus per-account model quotas."""

    counts: AccountCounts = field(default_factory=AccountCounts)
    accounts: Tuple[Account, ...] = ()
    latency_ms: Optional[int] = None


@dataclass(frozen=True)
class LimitsSnapshot:
    """Limits-style read: global model list plus per-account limits."""

    models: Tuple[str, ...] = ()
    accounts: Tuple[Account, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """
    The result of a single successful refresh.

    Both halves come from the same refresh cycle, so summary counts and
    the matrix always describe the same moment.
    """

    summary: SummarySnapshot
    limits: LimitsSnapshot
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# AGGREGATE TYPES
# =============================================================================


@dataclass(frozen=True)
class FamilyGauge:
    """Family-level headroom, computed with the null-as-zero policy."""

    family: str
    fraction: Optional[float]  # None when no account offers the family
    account_count: int = 0
    soonest_reset: Optional[datetime] = None


@dataclass(frozen=True)
class NextReset:
    reset_time: datetime
    model_id: str


@dataclass(frozen=True)
class Aggregates:
    """Derived values; recomputed from scratch on every refresh."""

    model_averages: Dict[str, Optional[float]] = field(default_factory=dict)
    overall_average: Optional[float] = None
    family_gauges: Dict[str, FamilyGauge] = field(default_factory=dict)
    next_global_reset: Optional[NextReset] = None


# =============================================================================
# VIEW STATE
# =============================================================================


@dataclass
class ViewState:
    """
    User-facing state of the dashboard.

    Keyed by email / family string only, never by snapshot objects, so a
    refresh can never clobber it.
    """

    filter: str = "all"  # "all" or a ModelFamily value
    search_query: str = ""
    expanded_accounts: Set[str] = field(default_factory=set)
    is_loading: bool = False
    last_error: Optional[str] = None
    last_updated: Optional[datetime] = None
    auto_refresh: bool = True
    refresh_interval: float = 30.0  # seconds

    def toggle_account(self, email: str) -> bool:
        """Flip the expanded flag for an account. Returns the new state."""
        if email in self.expanded_accounts:
            self.expanded_accounts.discard(email)
            return False
        self.expanded_accounts.add(email)
        return True


@dataclass
class AccountConfig:
    """A configured account, as loaded from the accounts file."""

    email: str
    refresh_token: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
