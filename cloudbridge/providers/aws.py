"""AWS billing adapter: STS for identity, Cost Explorer for costs."""

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from ..cost.aggregator import aggregate_by_day
from ..errors import ParseError
from ..models.account import ProviderType
from ..models.cost import CostRecord, CostSummary, CostTrend, DailyCost, to_decimal
from ..signing.aws_sigv4 import AwsSigV4Signer
from .base import BillingProvider, parse_json, raise_for_status

logger = logging.getLogger(__name__)

# Cost Explorer is only served from us-east-1 and must be signed for it
COST_EXPLORER_REGION = "us-east-1"
COST_EXPLORER_TARGET = "AWSInsightsIndexService.GetCostAndUsage"
STS_QUERY = "Action=GetCallerIdentity&Version=2011-06-15"
DEFAULT_REGION = "us-east-1"
MAX_PAGES = 100

AUTH_ERROR_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "ExpiredToken",
    "ExpiredTokenException",
    "IncompleteSignature",
    "InvalidClientTokenId",
    "InvalidSignatureException",
    "MissingAuthenticationToken",
    "SignatureDoesNotMatch",
    "UnrecognizedClientException",
}


# ==================== Response DTOs ====================


@dataclass
class MetricValue:
    amount: Any
    unit: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'MetricValue':
        data = data or {}
        return cls(amount=to_decimal(data.get("Amount")), unit=data.get("Unit") or "")


@dataclass
class CostGroup:
    keys: List[str]
    unblended_cost: MetricValue

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CostGroup':
        metrics = data.get("Metrics") or {}
        return cls(
            keys=[str(k) for k in data.get("Keys") or []],
            unblended_cost=MetricValue.from_dict(metrics.get("UnblendedCost")),
        )


@dataclass
class ResultByTime:
    start: Optional[date]
    total: Optional[MetricValue] = None
    groups: List[CostGroup] = field(default_factory=list)
    estimated: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResultByTime':
        if not isinstance(data, dict):
            raise ParseError(f"Unexpected ResultsByTime entry: {data!r}")
        start_raw = (data.get("TimePeriod") or {}).get("Start")
        try:
            start = date.fromisoformat(start_raw) if start_raw else None
        except ValueError:
            raise ParseError(f"Invalid TimePeriod.Start: {start_raw!r}") from None

        total = (data.get("Total") or {}).get("UnblendedCost")
        return cls(
            start=start,
            total=MetricValue.from_dict(total) if total is not None else None,
            groups=[CostGroup.from_dict(g) for g in data.get("Groups") or []],
            estimated=bool(data.get("Estimated", False)),
        )


@dataclass
class CostExplorerPage:
    results_by_time: List[ResultByTime]
    next_page_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> 'CostExplorerPage':
        if not isinstance(data, dict):
            raise ParseError("Cost Explorer response is not a JSON object")
        results = data.get("ResultsByTime") or []
        if not isinstance(results, list):
            raise ParseError("Cost Explorer ResultsByTime is not a list")
        return cls(
            results_by_time=[ResultByTime.from_dict(r) for r in results],
            next_page_token=data.get("NextPageToken") or None,
        )


@dataclass
class CallerIdentity:
    account: str = ""
    arn: str = ""
    user_id: str = ""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_sts_response(body: str) -> CallerIdentity:
    """Parse a GetCallerIdentity XML body.

    Raises:
        ParseError: If the body is not XML
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ParseError(f"Invalid STS XML: {e}") from e

    values = {_local_name(el.tag): (el.text or "").strip() for el in root.iter()}
    return CallerIdentity(
        account=values.get("Account", ""),
        arn=values.get("Arn", ""),
        user_id=values.get("UserId", ""),
    )


def parse_sts_error(body: str) -> Dict[str, str]:
    """Extract Code and Message from an STS ErrorResponse, if the body is one."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return {}
    values = {_local_name(el.tag): (el.text or "").strip() for el in root.iter()}
    return {"code": values.get("Code", ""), "message": values.get("Message", "")}


# ==================== Adapter ====================


class AwsBillingProvider(BillingProvider):
    """Cost Explorer backed adapter, signed with SigV4."""

    provider_type = ProviderType.AWS
    default_currency = "USD"
    default_trend_days = 30

    def __init__(self, account, client=None, clock=None, **kwargs):
        super().__init__(account, client=client, clock=clock, **kwargs)
        self.signer = AwsSigV4Signer(self.credential.access_key_id, self.credential.secret)
        self.region = self.credential.region or account.region or DEFAULT_REGION

    # ── Identity ─────────────────────────────────────────────────

    def _check_identity(self) -> None:
        identity = self.get_caller_identity()
        logger.info(f"AWS identity for {self.account_id}: account={identity.account}, arn={identity.arn}")

    def get_caller_identity(self) -> CallerIdentity:
        """Call STS GetCallerIdentity in the account's region."""
        host = f"sts.{self.region}.amazonaws.com"
        signed = self.signer.sign(
            method="GET",
            service="sts",
            region=self.region,
            host=host,
            uri="/",
            query=STS_QUERY,
            timestamp=self.clock(),
        )
        request = httpx.Request("GET", f"https://{host}/?{STS_QUERY}", headers=signed.headers)
        response = self._send(request)

        if response.status_code >= 400:
            error = parse_sts_error(response.text)
            raise_for_status(
                response,
                error.get("code") or None,
                error.get("message") or response.text[:200],
                AUTH_ERROR_CODES,
            )
        return parse_sts_response(response.text)

    # ── Cost Explorer ────────────────────────────────────────────

    def _get_cost_and_usage(self, start: date, end: date, group_by_service: bool) -> List[ResultByTime]:
        """Query GetCostAndUsage for the inclusive window, following pagination."""
        request_body: Dict[str, Any] = {
            "TimePeriod": {
                "Start": start.isoformat(),
                # End is exclusive in Cost Explorer
                "End": (end + timedelta(days=1)).isoformat(),
            },
            "Granularity": "DAILY",
            "Metrics": ["UnblendedCost"],
        }
        if group_by_service:
            request_body["GroupBy"] = [{"Type": "DIMENSION", "Key": "SERVICE"}]

        results: List[ResultByTime] = []
        for _ in range(MAX_PAGES):
            page = CostExplorerPage.from_dict(self._call_cost_explorer(json.dumps(request_body)))
            results.extend(page.results_by_time)
            if not page.next_page_token:
                break
            request_body["NextPageToken"] = page.next_page_token
        else:
            logger.warning(f"Cost Explorer pagination stopped after {MAX_PAGES} pages for {self.account_id}")

        logger.info(f"Cost Explorer returned {len(results)} time periods for {self.account_id}")
        return results

    def _call_cost_explorer(self, payload: str) -> Any:
        host = f"ce.{COST_EXPLORER_REGION}.amazonaws.com"
        headers = {
            "Content-Type": "application/x-amz-json-1.1",
            "X-Amz-Target": COST_EXPLORER_TARGET,
        }
        signed = self.signer.sign(
            method="POST",
            service="ce",
            region=COST_EXPLORER_REGION,
            host=host,
            uri="/",
            query="",
            headers=headers,
            body=payload,
            timestamp=self.clock(),
        )
        request = httpx.Request("POST", f"https://{host}/", headers=signed.headers, content=payload.encode("utf-8"))
        response = self._send(request)

        if response.status_code >= 400:
            code, message = _json_error(response)
            logger.error(f"Cost Explorer error for {self.account_id} (HTTP {response.status_code}): {code} {message}")
            raise_for_status(response, code, message, AUTH_ERROR_CODES)

        return parse_json(response)

    # ── Capability ───────────────────────────────────────────────

    def fetch_cost_records(self, start: date, end: date) -> List[CostRecord]:
        self._check_range(start, end)
        records = []
        for result in self._get_cost_and_usage(start, end, group_by_service=True):
            if result.start is None or not (start <= result.start <= end):
                continue
            for group in result.groups:
                amount = self._apply_negative_policy(group.unblended_cost.amount)
                if amount is None or amount == 0:
                    continue
                records.append(CostRecord(
                    account_id=self.account_id,
                    date=result.start,
                    service=group.keys[0] if group.keys else "Unknown",
                    amount=amount,
                    currency=group.unblended_cost.unit or self.currency,
                ))

        logger.debug(f"Parsed {len(records)} AWS cost records for {self.account_id}")
        return records

    def fetch_cost_summary(self) -> CostSummary:
        (current_start, current_end), (last_start, last_end) = self._month_windows()
        current = self.fetch_cost_records(current_start, current_end)
        last = self.fetch_cost_records(last_start, last_end)
        return self._build_summary(current, last)

    def fetch_daily_trend(self, start: date, end: date) -> CostTrend:
        """Daily totals from Cost Explorer.

        Cost Explorer reports an explicit total per day, so zero days are kept.
        """
        self._check_range(start, end)
        logger.info(f"Getting AWS cost trend for {self.account_id}: {start} to {end}")

        currency = self.currency
        days = []
        for result in self._get_cost_and_usage(start, end, group_by_service=False):
            if result.start is None or result.total is None or not (start <= result.start <= end):
                continue
            amount = self._apply_negative_policy(result.total.amount)
            if amount is None:
                continue
            currency = result.total.unit or currency
            days.append(DailyCost(date=result.start, amount=amount))

        return CostTrend(account_id=self.account_id, currency=currency, daily_costs=aggregate_by_day(days))


def _json_error(response: httpx.Response):
    """Extract (code, message) from an AWS JSON protocol error body."""
    try:
        data = response.json()
    except ValueError:
        return None, response.text[:200]
    if not isinstance(data, dict):
        return None, response.text[:200]
    code = data.get("__type") or data.get("code") or data.get("Code")
    if code:
        code = str(code).rsplit("#", 1)[-1]
    message = data.get("message") or data.get("Message") or ""
    return code, message
