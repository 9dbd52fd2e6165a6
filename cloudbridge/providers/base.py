"""Base class for billing provider adapters."""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

import httpx

from ..cost.aggregator import aggregate_by_service, month_over_month_change, total_amount
from ..errors import (
    ApiError,
    AuthError,
    CloudBridgeError,
    ConfigError,
    ParseError,
    TransportError,
)
from ..models.account import CloudAccount, NegativeAmountPolicy, ProviderType
from ..models.cost import CostRecord, CostSummary, CostTrend
from ..utils.dates import check_range, current_month_window, previous_month_window

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BillingProvider(ABC):
    """Capability every provider adapter implements.

    Subclasses set the class attributes below and implement the four
    operations. HTTP goes through ``self.client`` (an ``httpx.Client``),
    so tests can substitute an ``httpx.MockTransport``.
    """

    provider_type: ProviderType
    default_currency: str = "USD"
    default_negative_policy: NegativeAmountPolicy = NegativeAmountPolicy.KEEP
    default_trend_days: int = 30

    def __init__(
        self,
        account: CloudAccount,
        client: Optional[httpx.Client] = None,
        clock: Optional[Clock] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self.account = account
        self.credential = account.credential
        # Injected clients belong to the caller and are left open by close()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)
        self.clock = clock or utc_now

        options = account.options
        self.currency = options.currency or self.default_currency
        self.negative_policy = options.negative_amounts or self.default_negative_policy
        self.trend_days = options.trend_days or self.default_trend_days

    @property
    def account_id(self) -> str:
        return self.account.account_id

    def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            self.client.close()

    # ── Capability ───────────────────────────────────────────────

    def validate_credentials(self) -> bool:
        """Run the cheapest authenticated call.

        Returns False on transport, auth, parse or API failures. Only a
        ConfigError (unusable local state) propagates.
        """
        self._require_credential()
        try:
            self._check_identity()
        except ConfigError:
            raise
        except CloudBridgeError as e:
            logger.warning(f"{self.provider_type.short_name} credential validation failed for {self.account_id}: {e}")
            return False
        logger.info(f"{self.provider_type.short_name} credentials valid for {self.account_id}")
        return True

    @abstractmethod
    def fetch_cost_records(self, start: date, end: date) -> List[CostRecord]:
        """Cost records inside the inclusive window [start, end]."""

    @abstractmethod
    def fetch_cost_summary(self) -> CostSummary:
        """Current vs. previous calendar month."""

    @abstractmethod
    def fetch_daily_trend(self, start: date, end: date) -> CostTrend:
        """Daily totals inside the inclusive window [start, end]."""

    @abstractmethod
    def _check_identity(self) -> None:
        """Authenticated call proving the credential works; raise on failure."""

    # ── Helpers for subclasses ───────────────────────────────────

    def today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def _require_credential(self) -> None:
        if not self.credential.access_key_id:
            raise ConfigError(f"Account {self.account_id} has no access key configured")

    @staticmethod
    def _check_range(start: date, end: date) -> None:
        check_range(start, end)

    def _apply_negative_policy(self, amount: Decimal) -> Optional[Decimal]:
        """Return the amount to record, or None to discard it."""
        if amount >= 0 or self.negative_policy == NegativeAmountPolicy.KEEP:
            return amount
        if self.negative_policy == NegativeAmountPolicy.CLAMP:
            return Decimal("0")
        return None

    def _build_summary(
        self,
        current_records: Iterable[CostRecord],
        last_records: Iterable[CostRecord],
        current_cost: Optional[Decimal] = None,
        last_cost: Optional[Decimal] = None,
    ) -> CostSummary:
        """Assemble a CostSummary from two independently fetched months."""
        current_records = list(current_records)
        last_records = list(last_records)

        if current_cost is None:
            current_cost = total_amount(current_records)
        if last_cost is None:
            last_cost = total_amount(last_records)

        currency = next((r.currency for r in current_records + last_records if r.currency), self.currency)

        logger.info(
            f"{self.account_id}: current month {current_cost} {currency} ({len(current_records)} records), "
            f"last month {last_cost} {currency} ({len(last_records)} records)"
        )

        return CostSummary(
            account_id=self.account_id,
            account_name=self.account.name,
            provider=self.provider_type.value,
            current_month_cost=current_cost,
            last_month_cost=last_cost,
            currency=currency,
            month_over_month_change_pct=month_over_month_change(current_cost, last_cost),
            current_month_details=aggregate_by_service(current_records),
            last_month_details=aggregate_by_service(last_records),
        )

    def _month_windows(self):
        today = self.today()
        return current_month_window(today), previous_month_window(today)

    def _send(self, request: httpx.Request) -> httpx.Response:
        """Send a request, mapping httpx failures onto TransportError."""
        try:
            response = self.client.send(request)
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {request.url.host} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {request.url.host} failed: {e}") from e
        logger.debug(f"{request.method} {request.url.host}{request.url.path} -> HTTP {response.status_code}")
        return response


def raise_for_status(response: httpx.Response, code: Optional[str], message: str, auth_codes: Iterable[str]) -> None:
    """Map an error response onto the error taxonomy.

    Args:
        response: The HTTP response
        code: Provider error code extracted from the body, if any
        message: Provider error message
        auth_codes: Provider error codes meaning the credential was rejected
    """
    status = response.status_code
    detail = f"HTTP {status} {code} - {message}" if code else f"HTTP {status} - {message}"

    if (code and code in set(auth_codes)) or status in (401, 403):
        raise AuthError(detail, code=code)
    if status == 429 or status >= 500:
        raise TransportError(detail)
    if status >= 400 or code:
        raise ApiError(detail, code=code, status=status)


def parse_json(response: httpx.Response):
    """Decode a JSON body with Decimal floats, raising ParseError on failure."""
    try:
        return response.json(parse_float=Decimal)
    except ValueError as e:
        raise ParseError(f"Invalid JSON from {response.request.url.host}: {e}") from e
