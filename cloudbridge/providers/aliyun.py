"""Alibaba Cloud (Aliyun) billing adapter over the BSS OpenAPI."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import httpx

from ..cost.aggregator import aggregate_by_day
from ..errors import AuthError, CloudBridgeError, ParseError
from ..models.account import ProviderType
from ..models.cost import CostRecord, CostSummary, CostTrend, DailyCost, to_decimal
from ..signing.aliyun import AliyunSigner
from ..utils.dates import billing_cycle, iter_days
from .base import BillingProvider, parse_json, raise_for_status

logger = logging.getLogger(__name__)

BSS_ENDPOINT = "business.aliyuncs.com"
BSS_API_VERSION = "2017-12-14"
PAGE_SIZE = 300
MAX_PAGES = 50

AUTH_ERROR_CODES = {
    "Forbidden.AccessKeyDisabled",
    "Forbidden.RAM",
    "IncompleteSignature",
    "InvalidAccessKeyId",
    "InvalidAccessKeyId.Inactive",
    "InvalidAccessKeyId.NotFound",
    "NoPermission",
    "SignatureDoesNotMatch",
}


# ==================== Response DTOs ====================


@dataclass
class BillOverviewItem:
    product_code: str = ""
    product_name: str = ""
    pretax_amount: Any = 0
    currency: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillOverviewItem':
        return cls(
            product_code=data.get("ProductCode") or "",
            product_name=data.get("ProductName") or "",
            pretax_amount=to_decimal(data.get("PretaxAmount")),
            currency=data.get("Currency") or "",
        )


@dataclass
class BillOverview:
    billing_cycle: str = ""
    items: List[BillOverviewItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BillOverview':
        payload = data.get("Data") or {}
        if not isinstance(payload, dict):
            raise ParseError("QueryBillOverview Data is not an object")
        # Items is an object wrapping the Item array here
        wrapper = payload.get("Items") or {}
        items = wrapper.get("Item") if isinstance(wrapper, dict) else None
        if items is not None and not isinstance(items, list):
            raise ParseError("QueryBillOverview Items.Item is not a list")
        return cls(
            billing_cycle=payload.get("BillingCycle") or "",
            items=[BillOverviewItem.from_dict(i) for i in items or [] if isinstance(i, dict)],
        )


@dataclass
class InstanceBillItem:
    billing_date: Optional[date] = None
    product_code: str = ""
    product_name: str = ""
    instance_id: str = ""
    pretax_amount: Any = 0
    currency: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InstanceBillItem':
        raw_date = data.get("BillingDate")
        try:
            billing_date = date.fromisoformat(raw_date) if raw_date else None
        except ValueError:
            raise ParseError(f"Invalid BillingDate: {raw_date!r}") from None
        return cls(
            billing_date=billing_date,
            product_code=data.get("ProductCode") or "",
            product_name=data.get("ProductName") or "",
            instance_id=data.get("InstanceID") or data.get("InstanceId") or "",
            pretax_amount=to_decimal(data.get("PretaxAmount")),
            currency=data.get("Currency") or "",
        )


@dataclass
class InstanceBillPage:
    items: List[InstanceBillItem] = field(default_factory=list)
    next_token: Optional[str] = None
    total_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InstanceBillPage':
        payload = data.get("Data") or {}
        if not isinstance(payload, dict):
            raise ParseError("DescribeInstanceBill Data is not an object")
        # DescribeInstanceBill returns Items as a plain array
        items = payload.get("Items") or []
        if not isinstance(items, list):
            raise ParseError("DescribeInstanceBill Items is not a list")
        return cls(
            items=[InstanceBillItem.from_dict(i) for i in items if isinstance(i, dict)],
            next_token=payload.get("NextToken") or None,
            total_count=int(payload.get("TotalCount") or 0),
        )


# ==================== Adapter ====================


class AliyunBillingProvider(BillingProvider):
    """BSS OpenAPI adapter signed with RPC Signature Version 1.0."""

    provider_type = ProviderType.ALIYUN
    default_currency = "CNY"
    default_trend_days = 7

    def __init__(
        self,
        account,
        client=None,
        clock=None,
        nonce_factory: Optional[Callable[[], str]] = None,
        **kwargs,
    ):
        super().__init__(account, client=client, clock=clock, **kwargs)
        self.signer = AliyunSigner(self.credential.access_key_id, self.credential.secret)
        self.nonce_factory = nonce_factory or (lambda: str(uuid.uuid4()))

    def _call(self, action: str, params: Dict[str, str]) -> Dict[str, Any]:
        """Sign and send one RPC call, returning the decoded JSON body.

        Args:
            action: BSS action name
            params: Action specific parameters

        Returns:
            Decoded response object

        Raises:
            AuthError: If the AccessKey was rejected
            ApiError: If the body carries a non-success Code
            TransportError: On network failures, throttling or 5xx
            ParseError: If the body is not a JSON object
        """
        request_params = self.signer.common_params(
            action=action,
            version=BSS_API_VERSION,
            timestamp=self.clock(),
            nonce=self.nonce_factory(),
        )
        request_params.update(params)
        query = self.signer.to_query_string(self.signer.sign(request_params))

        request = httpx.Request("GET", f"https://{BSS_ENDPOINT}/?{query}", headers={"Accept": "application/json"})
        response = self._send(request)

        if response.status_code >= 400:
            code, message = _error_fields(response)
            logger.error(f"Aliyun API error for {self.account_id} (HTTP {response.status_code}): {code} {message}")
            raise_for_status(response, code, message, AUTH_ERROR_CODES)

        data = parse_json(response)
        if not isinstance(data, dict):
            raise ParseError(f"Unexpected {action} response: not a JSON object")

        code = data.get("Code")
        if (code and code != "Success") or data.get("Success") is False:
            message = data.get("Message") or ""
            logger.error(f"Aliyun business error for {self.account_id}: {code} - {message}")
            raise_for_status(response, code or "Failure", message, AUTH_ERROR_CODES)

        return data

    # ── API calls ────────────────────────────────────────────────

    def query_bill_overview(self, cycle: str) -> BillOverview:
        return BillOverview.from_dict(self._call("QueryBillOverview", {"BillingCycle": cycle}))

    def describe_instance_bill(self, day: date) -> List[InstanceBillItem]:
        """All DAILY instance bill items for one day, following NextToken."""
        params = {
            "BillingCycle": billing_cycle(day),
            "BillingDate": day.isoformat(),
            "Granularity": "DAILY",
            "MaxResults": str(PAGE_SIZE),
        }
        items: List[InstanceBillItem] = []
        for _ in range(MAX_PAGES):
            page = InstanceBillPage.from_dict(self._call("DescribeInstanceBill", params))
            items.extend(page.items)
            if not page.next_token:
                break
            params["NextToken"] = page.next_token
        return items

    def _daily_items(
        self, start: date, end: date, skipped: Optional[List[date]] = None
    ) -> Iterator[Tuple[date, List[InstanceBillItem]]]:
        """Yield (day, items) per day; transient failures skip the day.

        Skipped days are appended to ``skipped`` when given.
        """
        for day in iter_days(start, end):
            try:
                yield day, self.describe_instance_bill(day)
            except AuthError:
                raise
            except CloudBridgeError as e:
                logger.warning(f"Failed to query Aliyun bill for {self.account_id} on {day}: {e}")
                if skipped is not None:
                    skipped.append(day)

    # ── Capability ───────────────────────────────────────────────

    def _check_identity(self) -> None:
        self.query_bill_overview(billing_cycle(self.today()))

    def fetch_cost_records(self, start: date, end: date) -> List[CostRecord]:
        self._check_range(start, end)
        records = []
        for day, items in self._daily_items(start, end):
            for item in items:
                item_date = item.billing_date or day
                if not (start <= item_date <= end):
                    continue
                amount = self._apply_negative_policy(item.pretax_amount)
                if amount is None or amount == 0:
                    continue
                records.append(CostRecord(
                    account_id=self.account_id,
                    date=item_date,
                    service=item.product_name or item.product_code or "Unknown",
                    amount=amount,
                    currency=item.currency or self.currency,
                ))
        return records

    def _overview_records(self, cycle_start: date) -> List[CostRecord]:
        records = []
        for item in self.query_bill_overview(billing_cycle(cycle_start)).items:
            amount = self._apply_negative_policy(item.pretax_amount)
            if amount is None or amount == 0:
                continue
            records.append(CostRecord(
                account_id=self.account_id,
                date=cycle_start,
                service=item.product_name or item.product_code or "Unknown",
                amount=amount,
                currency=item.currency or self.currency,
            ))
        return records

    def fetch_cost_summary(self) -> CostSummary:
        (current_start, _), (last_start, _) = self._month_windows()
        current = self._overview_records(current_start)
        last = self._overview_records(last_start)
        return self._build_summary(current, last)

    def fetch_daily_trend(self, start: date, end: date) -> CostTrend:
        """Daily totals; days that sum to zero are omitted."""
        self._check_range(start, end)
        logger.info(f"Getting Aliyun cost trend for {self.account_id}: {start} to {end}")

        currency = self.currency
        days = []
        missing: List[date] = []
        for day, items in self._daily_items(start, end, skipped=missing):
            total = to_decimal(0)
            for item in items:
                amount = self._apply_negative_policy(item.pretax_amount)
                if amount is not None:
                    total += amount
                currency = item.currency or currency
            if total != 0:
                days.append(DailyCost(date=day, amount=total))

        return CostTrend(
            account_id=self.account_id,
            currency=currency,
            daily_costs=aggregate_by_day(days),
            missing_days=missing,
        )


def _error_fields(response: httpx.Response):
    try:
        data = response.json()
    except ValueError:
        return None, response.text[:200]
    if not isinstance(data, dict):
        return None, response.text[:200]
    return data.get("Code"), data.get("Message") or ""
