# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Quota aggregation.

Pure functions from a list of accounts to aggregate values. Nothing here
does I/O or keeps state between calls.

Two null policies are used on purpose and must not be unified:

- model_averages() EXCLUDES unknown fractions. It answers "how healthy is
  this specific model across the accounts that report it".
- family_gauge() treats unknown fractions as 0. It answers "how much
  headroom does this vendor family have", pessimistically: an exhausted
  and an unreported quota both count as nothing left.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from ..core.types import (
    Account,
    Aggregates,
    FamilyGauge,
    ModelFamily,
    NextReset,
    Snapshot,
    get_model_family,
)

lib_logger = logging.getLogger("quota_engine")


# =============================================================================
# MODEL-LEVEL AVERAGES (nulls excluded)
# =============================================================================


def model_averages(accounts: Iterable[Account]) -> Dict[str, Optional[float]]:
    """
    Average remaining fraction per model across accounts.

    Every model id seen on any account gets an entry. Unknown fractions
    are skipped in both the sum and the count, so a model reported only
    with unknown fractions maps to None.

    Args:
        accounts: Accounts in snapshot order

    Returns:
        Dict of model_id -> average fraction or None
    """
    totals: Dict[str, List[float]] = {}  # model_id -> [sum, count]
    for account in accounts:
        for model_id, info in account.models.items():
            bucket = totals.setdefault(model_id, [0.0, 0])
            if info.remaining_fraction is None:
                continue
            bucket[0] += info.remaining_fraction
            bucket[1] += 1

    return {
        model_id: (total / count if count > 0 else None)
        for model_id, (total, count) in totals.items()
    }


def overall_average(averages: Dict[str, Optional[float]]) -> Optional[float]:
    """Unweighted mean of the non-null model averages, or None."""
    values = [v for v in averages.values() if v is not None]
    if not values:
        return None
    return sum(values) / len(values)


# =============================================================================
# FAMILY-LEVEL GAUGES (nulls counted as zero)
# =============================================================================


def _family_accounts(
    accounts: Iterable[Account], family: str
) -> List[Account]:
    return [
        acc
        for acc in accounts
        if any(get_model_family(m) == family for m in acc.models)
    ]


def family_gauge(accounts: Iterable[Account], family: str) -> FamilyGauge:
    """
    Family-level headroom gauge.

    Each account contributes once: the mean of its family models, with an
    unknown fraction counted as 0. The gauge is the unweighted mean of
    those per-account values. Accounts without any model of the family
    do not contribute.

    Args:
        accounts: Accounts to consider (callers pass usable accounts only)
        family: ModelFamily value

    Returns:
        FamilyGauge with fraction None when no account contributes
    """
    accounts = list(accounts)
    per_account: List[float] = []
    for acc in _family_accounts(accounts, family):
        values = [
            info.remaining_fraction if info.remaining_fraction is not None else 0.0
            for model_id, info in acc.models.items()
            if get_model_family(model_id) == family
        ]
        per_account.append(sum(values) / len(values))

    fraction = sum(per_account) / len(per_account) if per_account else None
    return FamilyGauge(
        family=family,
        fraction=fraction,
        account_count=len(per_account),
        soonest_reset=soonest_family_reset(accounts, family),
    )


def soonest_family_reset(
    accounts: Iterable[Account], family: str
) -> Optional[datetime]:
    """
    Earliest reset time among an account set's family models.

    Per account, take the minimum reset time of its family models that have
    one; return the minimum of those, or None.
    """
    soonest: Optional[datetime] = None
    for acc in accounts:
        resets = [
            info.reset_time
            for model_id, info in acc.models.items()
            if info.reset_time is not None and get_model_family(model_id) == family
        ]
        if not resets:
            continue
        account_min = min(resets)
        if soonest is None or account_min < soonest:
            soonest = account_min
    return soonest


# =============================================================================
# NEXT GLOBAL RESET
# =============================================================================


def next_global_reset(
    accounts: Iterable[Account], now: Optional[datetime] = None
) -> Optional[NextReset]:
    """
    Soonest future reset among exhausted quotas.

    A candidate needs a reset time strictly after `now` and a remaining
    fraction of exactly 0 (low is not enough). Ties keep the first
    candidate in iteration order (accounts, then models).
    """
    now = now or datetime.now(timezone.utc)
    best: Optional[NextReset] = None
    for acc in accounts:
        for model_id, info in acc.models.items():
            if info.reset_time is None or info.remaining_fraction != 0:
                continue
            if info.reset_time <= now:
                continue
            if best is None or info.reset_time < best.reset_time:
                best = NextReset(reset_time=info.reset_time, model_id=model_id)
    return best


# =============================================================================
# SNAPSHOT AGGREGATION
# =============================================================================


def compute_aggregates(
    snapshot: Snapshot,
    now: Optional[datetime] = None,
    families: Sequence[str] = ModelFamily.RECOGNIZED,
) -> Aggregates:
    """
    Compute every aggregate for a snapshot.

    Every aggregate only looks at usable accounts (ok or rate-limited).
    Invalid and errored accounts have no meaningful quota.
    """
    accounts = snapshot.limits.accounts
    usable = [acc for acc in accounts if acc.is_usable]

    averages = model_averages(usable)
    aggregates = Aggregates(
        model_averages=averages,
        overall_average=overall_average(averages),
        family_gauges={family: family_gauge(usable, family) for family in families},
        next_global_reset=next_global_reset(usable, now=now),
    )
    lib_logger.debug(
        f"Aggregated {len(accounts)} accounts ({len(usable)} usable), "
        f"{len(averages)} models"
    )
    return aggregates
