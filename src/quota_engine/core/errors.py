# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Exception types for the quota engine.

Refresh-level failures (SnapshotFetchError, MalformedSnapshotError) abort a
whole refresh. AccountQuotaError is caught per account and recorded on that
account, so it never aborts a batch.
"""

from typing import Optional


class QuotaMonitorError(Exception):
    """Base class for all quota engine errors."""


class SnapshotFetchError(QuotaMonitorError):
    """One of the snapshot reads failed (network error or non-2xx status)."""

    def __init__(self, endpoint: str, message: str, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)


class MalformedSnapshotError(QuotaMonitorError):
    """A snapshot payload did not have the expected shape."""


class NoAccountsConfiguredError(QuotaMonitorError):
    """The account list is empty."""


class AccountQuotaError(QuotaMonitorError):
    """Token or quota retrieval failed for a single account."""

    def __init__(self, email: str, message: str):
        self.email = email
        super().__init__(message)


def mask_email(email: Optional[str]) -> str:
    """
    Mask the local part of an email for display and logs.

    "johndoe@example.com" -> "john***@example.com"
    "bob@example.com"     -> "bo***@example.com"

    Values without exactly one "@" are returned unchanged.
    """
    if not email:
        return ""
    parts = email.split("@")
    if len(parts) != 2:
        return email
    local, domain = parts
    if len(local) > 4:
        masked_local = local[:4] + "***"
    else:
        masked_local = local[:2] + "***"
    return f"{masked_local}@{domain}"
