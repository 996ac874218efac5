# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Per-account quota collection for the one-shot report.

Token acquisition and the upstream quota RPC live outside this package;
they are reached through an AccountQuotaFetcher. Collection walks the
configured accounts one at a time and records a failure on the failing
account only, so one bad account never aborts the batch.

The default fetcher reads a single account's limits out of the proxy's
account-limits snapshot, which the proxy has already resolved using that
account's token.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence

from ..client.source import QuotaSnapshotSource
from ..core.errors import (
    AccountQuotaError,
    NoAccountsConfiguredError,
    QuotaMonitorError,
    mask_email,
)
from ..core.types import (
    Account,
    AccountConfig,
    AccountStatus,
    LimitsSnapshot,
    QuotaInfo,
)

lib_logger = logging.getLogger("quota_engine")


class AccountQuotaFetcher(ABC):
    """Fetches model quotas for one configured account."""

    @abstractmethod
    async def fetch_model_quotas(self, account: AccountConfig) -> Dict[str, QuotaInfo]:
        """
        Fetch the account's quotas.

        Raises:
            Exception: Any failure; the tracker records it on the account.
        """

    async def fetch_account(self, account: AccountConfig) -> Account:
        """
        Fetch the account's quotas together with its upstream status.

        Fetchers that cannot tell a status report every reachable account
        as ok.
        """
        quotas = await self.fetch_model_quotas(account)
        return Account(email=account.email, status=AccountStatus.OK, models=quotas)

    async def aclose(self) -> None:
        """Release any held resources."""


class ProxyLimitsFetcher(AccountQuotaFetcher):
    """
    Resolves accounts against one limits snapshot from a proxy.

    The snapshot is read once, on first use. A failed read is remembered
    and reported on every account instead of being retried per account.
    """

    def __init__(self, source: QuotaSnapshotSource):
        self.source = source
        self._limits: Optional[LimitsSnapshot] = None
        self._load_error: Optional[str] = None
        self._loaded = False

    async def _get_limits(self) -> LimitsSnapshot:
        if not self._loaded:
            self._loaded = True
            try:
                self._limits = await self.source.fetch_limits()
            except QuotaMonitorError as e:
                self._load_error = str(e)
                lib_logger.warning(f"Could not read account limits: {e}")
        if self._limits is None:
            raise AccountQuotaError("", self._load_error or "Account limits unavailable")
        return self._limits

    async def fetch_account(self, account: AccountConfig) -> Account:
        """Return the proxy's entry for the account, keeping its status."""
        limits = await self._get_limits()
        for entry in limits.accounts:
            if entry.email != account.email:
                continue
            if not entry.is_usable:
                raise AccountQuotaError(
                    account.email, entry.error or f"Account status: {entry.status}"
                )
            return Account(
                email=account.email,
                status=entry.status,
                models=dict(entry.models),
                last_used=entry.last_used,
            )
        raise AccountQuotaError(account.email, "Account not found on the proxy")

    async def fetch_model_quotas(self, account: AccountConfig) -> Dict[str, QuotaInfo]:
        return (await self.fetch_account(account)).models

    async def aclose(self) -> None:
        await self.source.aclose()


class AccountQuotaTracker:
    """Collects quotas for every configured account, isolating failures."""

    def __init__(self, fetcher: AccountQuotaFetcher):
        self.fetcher = fetcher

    async def collect_account(self, config: AccountConfig) -> Account:
        """Fetch one account; any failure becomes an error-status Account."""
        try:
            result = await self.fetcher.fetch_account(config)
        except Exception as e:
            lib_logger.warning(
                f"Quota fetch failed for {mask_email(config.email)}: "
                f"{type(e).__name__}: {e}"
            )
            return Account(email=config.email, status=AccountStatus.ERROR, error=str(e))
        return result

    async def collect(
        self,
        accounts: Sequence[AccountConfig],
        on_progress: Optional[Callable[[AccountConfig, Account], None]] = None,
    ) -> List[Account]:
        """
        Collect all accounts in configuration order.

        Args:
            accounts: Configured accounts
            on_progress: Called after each account with its result

        Returns:
            One Account per configured account, in the same order

        Raises:
            NoAccountsConfiguredError: If `accounts` is empty
        """
        if not accounts:
            raise NoAccountsConfiguredError("No accounts configured")

        results: List[Account] = []
        for config in accounts:
            result = await self.collect_account(config)
            results.append(result)
            if on_progress is not None:
                on_progress(config, result)
        lib_logger.debug(
            f"Collected {len(results)} accounts, "
            f"{sum(1 for r in results if r.status == AccountStatus.ERROR)} failed"
        )
        return results
