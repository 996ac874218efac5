# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Snapshot payload parsing.

Converts the JSON bodies of the health and account-limits reads into the
frozen snapshot types. Structural problems (wrong root type, accounts not a
list, account without email) raise MalformedSnapshotError and abort the
refresh. Missing or malformed optional fields (fraction, reset time,
last used) become None instead.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from ..core.errors import MalformedSnapshotError
from ..core.types import (
    Account,
    AccountCounts,
    AccountStatus,
    LimitsSnapshot,
    QuotaInfo,
    SummarySnapshot,
)


def parse_fraction(value: Any) -> Optional[float]:
    """Parse a remaining fraction, clamped to [0, 1]. Non-numeric -> None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        fraction = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(fraction):
        return None
    return min(1.0, max(0.0, fraction))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 string or epoch milliseconds into an aware UTC datetime.

    Naive ISO strings are taken as UTC. Anything unparseable -> None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_quota_map(raw: Any) -> Dict[str, QuotaInfo]:
    """Parse a {model_id: {remainingFraction, resetTime}} mapping."""
    if not isinstance(raw, dict):
        return {}
    quotas: Dict[str, QuotaInfo] = {}
    for model_id, info in raw.items():
        if not isinstance(info, dict):
            # Model listed without details: present, but unknown
            quotas[str(model_id)] = QuotaInfo()
            continue
        quotas[str(model_id)] = QuotaInfo(
            remaining_fraction=parse_fraction(info.get("remainingFraction")),
            reset_time=parse_timestamp(info.get("resetTime")),
        )
    return quotas


def parse_account(raw: Any, quota_key: str) -> Account:
    """
    Parse one account entry.

    Args:
        raw: Account JSON object
        quota_key: "models" for the health read, "limits" for the limits read
    """
    if not isinstance(raw, dict):
        raise MalformedSnapshotError(f"Account entry is not an object: {raw!r}")
    email = raw.get("email")
    if not isinstance(email, str) or not email:
        raise MalformedSnapshotError("Account entry without an email")

    status = str(raw.get("status") or AccountStatus.OK)
    error = raw.get("error")
    return Account(
        email=email,
        status=status,
        models=parse_quota_map(raw.get(quota_key)),
        last_used=parse_timestamp(raw.get("lastUsed")),
        error=str(error) if error else None,
    )


def _parse_accounts(payload: Dict[str, Any], quota_key: str) -> Tuple[Account, ...]:
    raw_accounts = payload.get("accounts", [])
    if raw_accounts is None:
        return ()
    if not isinstance(raw_accounts, list):
        raise MalformedSnapshotError("'accounts' is not a list")
    return tuple(parse_account(raw, quota_key) for raw in raw_accounts)


def _count(counts: Dict[str, Any], key: str) -> int:
    try:
        return int(counts.get(key) or 0)
    except (TypeError, ValueError):
        return 0


def parse_summary_snapshot(payload: Any) -> SummarySnapshot:
    """Parse the health read: counts, accounts with models, latency."""
    if not isinstance(payload, dict):
        raise MalformedSnapshotError("Health response is not a JSON object")

    counts_raw = payload.get("counts")
    if not isinstance(counts_raw, dict):
        counts_raw = {}

    latency = payload.get("latencyMs")
    try:
        latency_ms = int(latency) if latency is not None else None
    except (TypeError, ValueError):
        latency_ms = None

    return SummarySnapshot(
        counts=AccountCounts(
            total=_count(counts_raw, "total"),
            available=_count(counts_raw, "available"),
            rate_limited=_count(counts_raw, "rateLimited"),
            invalid=_count(counts_raw, "invalid"),
        ),
        accounts=_parse_accounts(payload, "models"),
        latency_ms=latency_ms,
    )


def parse_limits_snapshot(payload: Any) -> LimitsSnapshot:
    """Parse the account-limits read: model list and per-account limits."""
    if not isinstance(payload, dict):
        raise MalformedSnapshotError("Account limits response is not a JSON object")

    models = payload.get("models") or []
    if not isinstance(models, list):
        raise MalformedSnapshotError("'models' is not a list")

    return LimitsSnapshot(
        models=tuple(str(m) for m in models if m),
        accounts=_parse_accounts(payload, "limits"),
    )
