"""Normalized cost models shared by every provider adapter."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List


def to_decimal(value: Any) -> Decimal:
    """Coerce a provider amount into a Decimal.

    None, empty strings and unparseable values become zero.
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # Go through str() so 0.1 stays 0.1 rather than its binary expansion
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return Decimal("0")


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class CostRecord:
    """One (account, date, service, amount, currency) observation."""

    account_id: str
    date: date
    service: str
    amount: Decimal
    currency: str

    @property
    def is_credit(self) -> bool:
        """Credits and refunds arrive as negative amounts."""
        return self.amount < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'date': self.date.isoformat(),
            'service': self.service,
            'amount': str(self.amount),
            'currency': self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CostRecord':
        return cls(
            account_id=data['account_id'],
            date=_parse_date(data['date']),
            service=data['service'],
            amount=to_decimal(data.get('amount')),
            currency=data.get('currency', ''),
        )


@dataclass
class ServiceCost:
    """Cost of a single service inside a summary."""

    service: str
    amount: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'amount': str(self.amount),
            'currency': self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServiceCost':
        return cls(
            service=data['service'],
            amount=to_decimal(data.get('amount')),
            currency=data.get('currency', ''),
        )


@dataclass
class DailyCost:
    """Total cost of one account on one calendar day."""

    date: date
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date.isoformat(), 'amount': str(self.amount)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DailyCost':
        return cls(date=_parse_date(data['date']), amount=to_decimal(data.get('amount')))


@dataclass
class CostTrend:
    """Daily cost time series for one account.

    ``missing_days`` lists days the provider could not be queried for. They
    are absent from ``daily_costs`` and must not be cached as empty days.
    """

    account_id: str
    currency: str
    daily_costs: List[DailyCost] = field(default_factory=list)
    missing_days: List[date] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing_days

    @property
    def total(self) -> Decimal:
        return sum((d.amount for d in self.daily_costs), Decimal("0"))

    @property
    def average(self) -> Decimal:
        if not self.daily_costs:
            return Decimal("0")
        return self.total / len(self.daily_costs)

    @property
    def maximum(self) -> Decimal:
        return max((d.amount for d in self.daily_costs), default=Decimal("0"))

    @property
    def minimum(self) -> Decimal:
        return min((d.amount for d in self.daily_costs), default=Decimal("0"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'currency': self.currency,
            'daily_costs': [d.to_dict() for d in self.daily_costs],
            'missing_days': [d.isoformat() for d in self.missing_days],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CostTrend':
        return cls(
            account_id=data['account_id'],
            currency=data.get('currency', ''),
            daily_costs=[DailyCost.from_dict(d) for d in data.get('daily_costs') or []],
            missing_days=[_parse_date(d) for d in data.get('missing_days') or []],
        )


@dataclass
class CostSummary:
    """Current vs. previous calendar month for one account.

    Derived data only: recomputed wholesale on every refresh.
    """

    account_id: str
    account_name: str
    provider: str
    current_month_cost: Decimal
    last_month_cost: Decimal
    currency: str
    month_over_month_change_pct: float
    current_month_details: List[ServiceCost] = field(default_factory=list)
    last_month_details: List[ServiceCost] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for serialization."""
        return {
            'account_id': self.account_id,
            'account_name': self.account_name,
            'provider': self.provider,
            'current_month_cost': str(self.current_month_cost),
            'last_month_cost': str(self.last_month_cost),
            'currency': self.currency,
            'month_over_month_change_pct': self.month_over_month_change_pct,
            'current_month_details': [s.to_dict() for s in self.current_month_details],
            'last_month_details': [s.to_dict() for s in self.last_month_details],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CostSummary':
        """Create summary from dictionary."""
        return cls(
            account_id=data['account_id'],
            account_name=data.get('account_name', ''),
            provider=data.get('provider', ''),
            current_month_cost=to_decimal(data.get('current_month_cost')),
            last_month_cost=to_decimal(data.get('last_month_cost')),
            currency=data.get('currency', ''),
            month_over_month_change_pct=float(data.get('month_over_month_change_pct') or 0.0),
            current_month_details=[
                ServiceCost.from_dict(s) for s in data.get('current_month_details') or []
            ],
            last_month_details=[ServiceCost.from_dict(s) for s in data.get('last_month_details') or []],
        )
