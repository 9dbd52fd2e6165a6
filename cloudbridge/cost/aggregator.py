"""Roll-ups shared by every provider adapter.

Keeping them in one place guarantees identical sorting and tie-break
behavior no matter which provider produced the records.
"""

from decimal import Decimal
from typing import Dict, Iterable, List

from ..models.cost import DailyCost, ServiceCost

ZERO = Decimal("0")


def aggregate_by_service(records: Iterable) -> List[ServiceCost]:
    """Sum amounts per service.

    Accepts anything exposing ``service``, ``amount`` and ``currency``
    (CostRecord or ServiceCost), so already-aggregated output aggregates
    to itself.

    Services whose total is zero or negative (credits outweighing spend)
    are left out. Output is sorted by amount descending, then service name.
    """
    totals: Dict[str, Decimal] = {}
    currencies: Dict[str, str] = {}

    for record in records:
        totals[record.service] = totals.get(record.service, ZERO) + record.amount
        # Last seen wins; providers report one currency per account
        currencies[record.service] = record.currency

    result = [
        ServiceCost(service=service, amount=amount, currency=currencies[service])
        for service, amount in totals.items()
        if amount > ZERO
    ]
    result.sort(key=lambda s: (-s.amount, s.service))
    return result


def aggregate_by_day(records: Iterable) -> List[DailyCost]:
    """Sum amounts per date, sorted ascending by date."""
    totals: Dict = {}
    for record in records:
        totals[record.date] = totals.get(record.date, ZERO) + record.amount

    return [DailyCost(date=day, amount=totals[day]) for day in sorted(totals)]


def total_amount(records: Iterable) -> Decimal:
    return sum((r.amount for r in records), ZERO)


def month_over_month_change(current: Decimal, last: Decimal) -> float:
    """Percentage change from last month to the current one.

    A zero baseline yields 100.0 when current spend is positive, else 0.0.
    """
    if last == ZERO:
        return 100.0 if current > ZERO else 0.0
    return float((current - last) / last * 100)
