"""DeepSeek adapter: account balance only, no cost history."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

import httpx

from ..errors import ParseError
from ..models.account import NegativeAmountPolicy, ProviderType
from ..models.cost import CostRecord, CostSummary, CostTrend, ServiceCost, to_decimal
from .base import BillingProvider, parse_json, raise_for_status

logger = logging.getLogger(__name__)

BALANCE_URL = "https://api.deepseek.com/user/balance"
PREFERRED_CURRENCIES = ("CNY", "USD")

AUTH_ERROR_CODES = {"invalid_request_error", "authentication_error", "invalid_api_key"}


@dataclass
class BalanceInfo:
    currency: str = ""
    total_balance: Decimal = Decimal("0")
    granted_balance: Decimal = Decimal("0")
    topped_up_balance: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BalanceInfo':
        return cls(
            currency=data.get("currency") or "",
            total_balance=to_decimal(data.get("total_balance")),
            granted_balance=to_decimal(data.get("granted_balance")),
            topped_up_balance=to_decimal(data.get("topped_up_balance")),
        )


@dataclass
class BalanceResponse:
    is_available: bool = False
    balance_infos: List[BalanceInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> 'BalanceResponse':
        if not isinstance(data, dict):
            raise ParseError("DeepSeek balance response is not a JSON object")
        infos = data.get("balance_infos") or []
        if not isinstance(infos, list):
            raise ParseError("DeepSeek balance_infos is not a list")
        return cls(
            is_available=bool(data.get("is_available", False)),
            balance_infos=[BalanceInfo.from_dict(i) for i in infos if isinstance(i, dict)],
        )

    def preferred(self) -> BalanceInfo:
        """CNY first, then USD, then whatever comes first.

        Raises:
            ParseError: If the response lists no balances
        """
        for currency in PREFERRED_CURRENCIES:
            for info in self.balance_infos:
                if info.currency == currency:
                    return info
        if not self.balance_infos:
            raise ParseError("No balance info found in DeepSeek response")
        return self.balance_infos[0]


class DeepSeekBillingProvider(BillingProvider):
    """Balance lookup with the API key as a bearer token."""

    provider_type = ProviderType.DEEPSEEK
    default_currency = "CNY"
    default_negative_policy = NegativeAmountPolicy.CLAMP

    def get_balance(self) -> BalanceResponse:
        request = httpx.Request(
            "GET",
            BALANCE_URL,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {self.credential.access_key_id}",
            },
        )
        response = self._send(request)

        if response.status_code >= 400:
            code, message = _error_fields(response)
            raise_for_status(response, code, message, AUTH_ERROR_CODES)

        return BalanceResponse.from_dict(parse_json(response))

    def _check_identity(self) -> None:
        balance = self.get_balance()
        logger.debug(f"DeepSeek balance available for {self.account_id}: {balance.is_available}")

    def fetch_cost_records(self, start: date, end: date) -> List[CostRecord]:
        self._check_range(start, end)
        return []

    def fetch_daily_trend(self, start: date, end: date) -> CostTrend:
        self._check_range(start, end)
        return CostTrend(account_id=self.account_id, currency=self.currency, daily_costs=[])

    def fetch_cost_summary(self) -> CostSummary:
        """Report the remaining balance as the current month figure.

        There is no history, so last month is zero and the change is 0.0
        regardless of the balance.
        """
        info = self.get_balance().preferred()
        currency = info.currency or self.currency

        total = self._apply_negative_policy(info.total_balance)
        if total is None:
            total = Decimal("0")

        details = []
        if info.granted_balance > 0:
            details.append(ServiceCost(service="Granted Balance", amount=info.granted_balance, currency=currency))
        if info.topped_up_balance > 0:
            details.append(ServiceCost(service="Topped-up Balance", amount=info.topped_up_balance, currency=currency))

        logger.info(f"DeepSeek balance for {self.account_id}: {total} {currency}")

        return CostSummary(
            account_id=self.account_id,
            account_name=self.account.name,
            provider=self.provider_type.value,
            current_month_cost=total,
            last_month_cost=Decimal("0"),
            currency=currency,
            month_over_month_change_pct=0.0,
            current_month_details=details,
            last_month_details=[],
        )


def _error_fields(response: httpx.Response):
    try:
        data = response.json()
    except ValueError:
        return None, response.text[:200]
    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return None, response.text[:200]
    return error.get("type") or error.get("code"), error.get("message") or ""
