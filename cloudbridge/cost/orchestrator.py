"""Batch refresh of cost data across accounts."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type

from ..cache.store import CostCache
from ..errors import CloudBridgeError, ConfigError, TransportError, UnsupportedProviderError
from ..models.account import CloudAccount, ProviderType
from ..models.cost import CostSummary, CostTrend
from ..providers.base import DEFAULT_FETCH_TIMEOUT, BillingProvider
from ..providers.registry import PROVIDER_REGISTRY
from ..utils.dates import check_range

logger = logging.getLogger(__name__)

DEFAULT_BATCH_TIMEOUT = 60.0
DEFAULT_MAX_WORKERS = 8


@dataclass
class AccountFailure:
    """Why one account is missing from a batch result.

    ``kind`` is the error kind: auth, transport, parse, api, unsupported,
    timeout or error (anything unexpected).
    """

    account_id: str
    kind: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {'account_id': self.account_id, 'kind': self.kind, 'message': self.message}


@dataclass
class BatchResult:
    """Outcome of one refresh batch: summaries in account order plus failures."""

    summaries: List[CostSummary] = field(default_factory=list)
    failures: List[AccountFailure] = field(default_factory=list)


class CostOrchestrator:
    """Fans account refreshes out over a thread pool, fronted by the cache.

    One adapter is built per account and reused between calls. Per-account
    failures never abort a batch; they are logged and returned with the
    batch by ``refresh_batch``. ``failures`` mirrors the last ``refresh_all``.
    """

    def __init__(
        self,
        accounts: Sequence[CloudAccount],
        cache: Optional[CostCache] = None,
        registry: Optional[Mapping[ProviderType, Type[BillingProvider]]] = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        batch_timeout: float = DEFAULT_BATCH_TIMEOUT,
        max_workers: int = DEFAULT_MAX_WORKERS,
        provider_kwargs: Optional[Dict[str, Any]] = None,
    ):
        self.accounts = list(accounts)
        self.cache = cache or CostCache()
        self.registry = registry if registry is not None else PROVIDER_REGISTRY
        self.fetch_timeout = fetch_timeout
        self.batch_timeout = batch_timeout
        self.provider_kwargs = provider_kwargs or {}

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cloudbridge")
        # Separate pool so a background batch never waits on its own workers
        self._background = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cloudbridge-batch")
        self._providers: Dict[str, BillingProvider] = {}
        self._providers_lock = threading.Lock()
        self._failures: List[AccountFailure] = []

    def __enter__(self) -> 'CostOrchestrator':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the pools without waiting on stragglers, then the adapters."""
        self._executor.shutdown(wait=False)
        self._background.shutdown(wait=False)
        with self._providers_lock:
            providers = list(self._providers.values())
            self._providers.clear()
        for provider in providers:
            provider.close()

    @property
    def failures(self) -> List[AccountFailure]:
        """Failures from the most recent foreground ``refresh_all``."""
        return list(self._failures)

    # ── Lookup ───────────────────────────────────────────────────

    def get_account(self, account_id: str) -> CloudAccount:
        for account in self.accounts:
            if account.account_id == account_id:
                return account
        raise ConfigError(f"Unknown account: {account_id}")

    def provider_for(self, account: CloudAccount) -> BillingProvider:
        """Return the cached adapter for an account, building it on first use.

        Raises:
            UnsupportedProviderError: If no adapter handles the account's provider
        """
        with self._providers_lock:
            provider = self._providers.get(account.account_id)
            if provider is None:
                provider_type = account.provider_type
                provider_class = self.registry.get(provider_type)
                if provider_class is None:
                    raise UnsupportedProviderError(f"{provider_type.display_name} is not supported yet")
                provider = provider_class(account, timeout=self.fetch_timeout, **self.provider_kwargs)
                self._providers[account.account_id] = provider
            return provider

    # ── Batch refresh ────────────────────────────────────────────

    def refresh_all(self, force: bool = False) -> List[CostSummary]:
        """Summaries for every enabled account, in account order.

        Failures of this batch are left in ``failures``.

        Args:
            force: Skip the cache and fetch every account

        Returns:
            Summaries of the accounts that succeeded
        """
        result = self.refresh_batch(force)
        self._failures = result.failures
        return result.summaries

    def refresh_batch(self, force: bool = False) -> BatchResult:
        """Like refresh_all, but returns this batch's failures alongside the summaries."""
        failures: List[AccountFailure] = []
        results: Dict[str, CostSummary] = {}
        pending: Dict[Future, CloudAccount] = {}

        enabled = [a for a in self.accounts if a.enabled]
        logger.info(f"Refreshing cost summaries for {len(enabled)} account(s) (force={force})")

        for account in enabled:
            try:
                provider = self.provider_for(account)
            except UnsupportedProviderError as e:
                logger.warning(f"Skipping {account.account_id}: {e}")
                failures.append(AccountFailure(account.account_id, e.kind, str(e)))
                continue

            if not force:
                cached = self.cache.get_summary(account.account_id)
                if cached is not None:
                    logger.debug(f"Cache hit for {account.account_id} summary")
                    results[account.account_id] = cached
                    continue

            pending[self._executor.submit(self._fetch_summary, provider)] = account

        if pending:
            done, not_done = wait(pending, timeout=self.batch_timeout)

            for future in done:
                account = pending[future]
                try:
                    results[account.account_id] = future.result()
                except CloudBridgeError as e:
                    failures.append(self._record_failure(account, e.kind, e))
                except Exception as e:
                    failures.append(self._record_failure(account, "error", e))

            for future in not_done:
                account = pending[future]
                # Late results are dropped; the worker still writes the cache
                failures.append(self._record_failure(
                    account, "timeout", f"no result within {self.batch_timeout:g}s"
                ))

        if failures:
            logger.info(f"Refresh completed with {len(failures)} failed account(s)")

        summaries = [results[a.account_id] for a in enabled if a.account_id in results]
        return BatchResult(summaries=summaries, failures=failures)

    def submit_refresh_all(self, force: bool = False) -> 'Future[BatchResult]':
        """Run a batch in the background. The future may be dropped.

        The batch's failures travel in the result and never touch ``failures``.
        """
        return self._background.submit(self.refresh_batch, force)

    def _fetch_summary(self, provider: BillingProvider) -> CostSummary:
        summary = provider.fetch_cost_summary()
        self.cache.put_summary(summary)
        return summary

    def _record_failure(self, account: CloudAccount, kind: str, error: Any) -> AccountFailure:
        if kind == "auth":
            logger.error(f"Credentials rejected for {account.account_id} ({account.name}): {error}")
        else:
            logger.error(f"Failed to refresh {account.account_id} ({account.name}): {error}")
        return AccountFailure(account_id=account.account_id, kind=kind, message=str(error))

    # ── Single account ───────────────────────────────────────────

    def refresh_trend(
        self,
        account_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        force: bool = False,
    ) -> CostTrend:
        """Daily trend for one account.

        The window defaults to the provider's trend days ending today,
        today included. Days the adapter could not fetch are left out of the
        cache so the next call queries them again.

        Raises:
            ConfigError: If the account is unknown or the range is inverted
            UnsupportedProviderError: If the provider has no adapter
            CloudBridgeError: Whatever the adapter raised
        """
        account = self.get_account(account_id)
        provider = self.provider_for(account)

        end = end or provider.today()
        start = start or end - timedelta(days=provider.trend_days - 1)
        check_range(start, end)

        if not force:
            cached = self.cache.get_trend(account_id, start, end)
            if cached is not None:
                logger.debug(f"Cache hit for {account_id} trend {start} to {end}")
                return cached

        future = self._executor.submit(provider.fetch_daily_trend, start, end)
        try:
            trend = future.result(timeout=self.batch_timeout)
        except FuturesTimeoutError:
            raise TransportError(f"Trend for {account_id} not ready within {self.batch_timeout:g}s") from None

        if not trend.complete:
            logger.warning(f"Trend for {account_id} is missing {len(trend.missing_days)} day(s); not caching them")
        self.cache.put_trend(trend, start, end)
        return trend

    def validate_account(self, account_id: str) -> bool:
        """Check one account's credentials against its provider."""
        return self.provider_for(self.get_account(account_id)).validate_credentials()

    def invalidate(self, account_id: Optional[str] = None) -> int:
        """Drop cached data for one account, or all of it."""
        if account_id is None:
            return self.cache.invalidate_all()
        return self.cache.invalidate_account(account_id)
