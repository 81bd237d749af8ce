"""Search, filtering, sorting and analytics over loaded orders.

These functions work on any sequence of order-like objects (``Order``
instances with their quote and payment prefetched) and never mutate them.
``"all"`` or ``None`` as a filter value means "no filter".
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from modules.orders.constants import (
    STATUS_PRIORITY,
    OrderStatus,
    OrderType,
    PaymentStatus,
)
from modules.orders.dtos import OrderAnalyticsDTO

ALL = "all"
CENTS = Decimal("0.01")


def _percent(part: int, total: int) -> int:
    if total == 0:
        return 0
    return int((Decimal(part) / Decimal(total) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _final_amount(order: Any) -> Decimal:
    quote = order.current_quote
    return quote.final_amount if quote is not None else Decimal("0")


# ---------------------------------------------------------------------------
# Search & filters
# ---------------------------------------------------------------------------


def search_orders(orders: Sequence[Any], query: Optional[str]) -> List[Any]:
    """Case-insensitive match on order number, client name and client e-mail."""
    needle = (query or "").strip().lower()
    if not needle:
        return list(orders)
    return [
        order
        for order in orders
        if needle in order.order_number.lower()
        or needle in (order.client_name or "").lower()
        or needle in (order.client_email or "").lower()
    ]


def filter_by_type(orders: Sequence[Any], order_type: Optional[str]) -> List[Any]:
    if order_type in (None, ALL):
        return list(orders)
    return [order for order in orders if order.order_type == order_type]


def filter_by_status(orders: Sequence[Any], status: Optional[str]) -> List[Any]:
    if status in (None, ALL):
        return list(orders)
    return [order for order in orders if order.status == status]


def _created_on_or_after(order: Any, start: date | datetime) -> bool:
    if isinstance(start, datetime):
        return order.created_at >= start
    return order.created_at.date() >= start


def _created_on_or_before(order: Any, end: date | datetime) -> bool:
    if isinstance(end, datetime):
        return order.created_at <= end
    return order.created_at.date() <= end


def filter_by_date_range(
    orders: Sequence[Any],
    start: Optional[date | datetime | str] = None,
    end: Optional[date | datetime | str] = None,
) -> List[Any]:
    """Orders created within [start, end]; dates are inclusive whole days."""
    start = None if start == ALL else start
    end = None if end == ALL else end
    return [
        order
        for order in orders
        if (start is None or _created_on_or_after(order, start))
        and (end is None or _created_on_or_before(order, end))
    ]


def filter_by_assignee(orders: Sequence[Any], admin_id: Optional[str]) -> List[Any]:
    if admin_id in (None, ALL):
        return list(orders)
    return [order for order in orders if admin_id in (order.assigned_to or [])]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def sort_newest(orders: Sequence[Any]) -> List[Any]:
    return sorted(orders, key=lambda o: o.created_at, reverse=True)


def sort_oldest(orders: Sequence[Any]) -> List[Any]:
    return sorted(orders, key=lambda o: o.created_at)


def sort_by_amount(orders: Sequence[Any], descending: bool = True) -> List[Any]:
    """Sort by quoted final amount; orders without a quote count as 0."""
    return sorted(orders, key=_final_amount, reverse=descending)


def sort_by_status_priority(orders: Sequence[Any]) -> List[Any]:
    return sorted(orders, key=lambda o: STATUS_PRIORITY.get(o.status, len(STATUS_PRIORITY) + 1))


SORTS: Dict[str, Callable[[Sequence[Any]], List[Any]]] = {
    "newest": sort_newest,
    "oldest": sort_oldest,
    "amount-high": lambda orders: sort_by_amount(orders, descending=True),
    "amount-low": lambda orders: sort_by_amount(orders, descending=False),
    "status": sort_by_status_priority,
}


def sort_orders(orders: Sequence[Any], sort: Optional[str]) -> List[Any]:
    """Apply a named sort; unknown or empty names keep newest-first."""
    return SORTS.get(sort or "newest", sort_newest)(orders)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def count_by_status(orders: Sequence[Any]) -> Dict[str, int]:
    counts = {status.value: 0 for status in OrderStatus}
    for order in orders:
        counts[str(order.status)] = counts.get(str(order.status), 0) + 1
    return counts


def count_by_type(orders: Sequence[Any]) -> Dict[str, int]:
    counts = {order_type.value: 0 for order_type in OrderType}
    for order in orders:
        counts[str(order.order_type)] = counts.get(str(order.order_type), 0) + 1
    return counts


def _collected(order: Any) -> Decimal:
    payment = order.payment_record
    if payment is None or payment.status != PaymentStatus.COMPLETED:
        return Decimal("0")
    return payment.amount_paid


def total_revenue(orders: Sequence[Any]) -> Decimal:
    """Sum paid over fully paid payment records."""
    return sum((_collected(order) for order in orders), Decimal("0"))


def revenue_by_type(orders: Sequence[Any]) -> Dict[str, Decimal]:
    revenue = {order_type.value: Decimal("0") for order_type in OrderType}
    for order in orders:
        revenue[str(order.order_type)] = revenue.get(str(order.order_type), Decimal("0")) + _collected(order)
    return revenue


def average_order_value(orders: Sequence[Any]) -> Decimal:
    """Mean quoted final amount over orders that have a quote."""
    amounts = [order.current_quote.final_amount for order in orders if order.current_quote is not None]
    if not amounts:
        return Decimal("0.00")
    return (sum(amounts, Decimal("0")) / len(amounts)).quantize(CENTS, rounding=ROUND_HALF_UP)


def conversion_rate(orders: Sequence[Any]) -> int:
    """Share of orders that reached ``completed``, as a rounded percentage."""
    completed = sum(1 for order in orders if order.status == OrderStatus.COMPLETED)
    return _percent(completed, len(orders))


def cancellation_rate(orders: Sequence[Any]) -> int:
    cancelled = sum(1 for order in orders if order.status == OrderStatus.CANCELLED)
    return _percent(cancelled, len(orders))


def build_analytics(orders: Sequence[Any]) -> OrderAnalyticsDTO:
    orders = list(orders)
    return OrderAnalyticsDTO(
        total_orders=len(orders),
        by_status=count_by_status(orders),
        by_type=count_by_type(orders),
        total_revenue=total_revenue(orders),
        revenue_by_type=revenue_by_type(orders),
        average_order_value=average_order_value(orders),
        conversion_rate=conversion_rate(orders),
        cancellation_rate=cancellation_rate(orders),
    )
