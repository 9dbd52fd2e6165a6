"""TTL cache of normalized cost data."""

import logging
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import yaml

from ..models.cost import CostSummary, CostTrend, DailyCost, to_decimal
from ..utils.dates import iter_days
from .backends import CacheBackend, MemoryBackend

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=6)


def summary_key(account_id: str) -> str:
    return f"summary:{account_id}"


def trend_day_key(account_id: str, day: date) -> str:
    return f"trend:{account_id}:{day.isoformat()}"


class CostCache:
    """Time-stamped cache in front of the provider adapters.

    Entries are ``{cached_at, value}`` YAML documents. ``get`` treats an
    entry older than the TTL as a miss but leaves it in place; only an
    overwrite or an explicit invalidation removes it. Reads take no lock;
    writes are serialized per key.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.backend = backend or MemoryBackend()
        self.ttl = ttl
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._key_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    # ── Generic entries ──────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or stale."""
        raw = self.backend.load(key)
        if raw is None:
            return None

        try:
            entry = yaml.safe_load(raw)
            cached_at = datetime.fromisoformat(entry["cached_at"])
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache entry {key}: {e}")
            return None

        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        if self.clock() - cached_at > self.ttl:
            logger.debug(f"Cache entry {key} is stale (cached at {cached_at.isoformat()})")
            return None
        return entry.get("value")

    def put(self, key: str, value: Any) -> None:
        """Overwrite the entry and stamp it with the current time."""
        document = {"cached_at": self.clock().isoformat(), "value": value}
        data = yaml.safe_dump(document, default_flow_style=False, sort_keys=False).encode("utf-8")
        with self._lock_for(key):
            self.backend.store(key, data)

    def invalidate(self, key: str) -> None:
        with self._lock_for(key):
            self.backend.delete(key)

    def invalidate_all(self) -> int:
        """Drop every entry. Returns the number removed."""
        keys = self.backend.keys()
        for key in keys:
            self.invalidate(key)
        logger.info(f"Cleared {len(keys)} cache entries")
        return len(keys)

    def invalidate_account(self, account_id: str) -> int:
        """Drop the summary and every trend day of one account."""
        keys = [
            key for key in self.backend.keys()
            if key == summary_key(account_id) or key.startswith(f"trend:{account_id}:")
        ]
        for key in keys:
            self.invalidate(key)
        logger.info(f"Cleared {len(keys)} cache entries for {account_id}")
        return len(keys)

    # ── Typed helpers ────────────────────────────────────────────

    def get_summary(self, account_id: str) -> Optional[CostSummary]:
        value = self.get(summary_key(account_id))
        if value is None:
            return None
        try:
            return CostSummary.from_dict(value)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cached summary for {account_id}: {e}")
            return None

    def put_summary(self, summary: CostSummary) -> None:
        self.put(summary_key(summary.account_id), summary.to_dict())

    def get_trend(self, account_id: str, start: date, end: date) -> Optional[CostTrend]:
        """Rebuild a trend from per-day entries.

        Every day of [start, end] must have a fresh entry, otherwise the
        whole lookup is a miss.
        """
        currency = ""
        days = []
        for day in iter_days(start, end):
            value = self.get(trend_day_key(account_id, day))
            if not isinstance(value, dict):
                return None
            currency = value.get("currency") or currency
            # amount None marks a day the provider reported nothing for
            if value.get("amount") is not None:
                days.append(DailyCost(date=day, amount=to_decimal(value["amount"])))
        return CostTrend(account_id=account_id, currency=currency, daily_costs=days)

    def put_trend(self, trend: CostTrend, start: date, end: date) -> None:
        """Store one entry per day of [start, end], marking days without data.

        Days in ``trend.missing_days`` were never fetched, so they get no
        entry and a later lookup over them misses.
        """
        amounts = {d.date: d.amount for d in trend.daily_costs}
        missing = set(trend.missing_days)
        for day in iter_days(start, end):
            if day in missing:
                logger.debug(f"Not caching {trend.account_id} trend for {day}: fetch failed")
                continue
            amount = amounts.get(day)
            self.put(
                trend_day_key(trend.account_id, day),
                {"currency": trend.currency, "amount": str(amount) if amount is not None else None},
            )
