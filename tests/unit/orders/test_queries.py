"""Unit tests for order search, filters, sorting and analytics.

These work on plain objects shaped like loaded orders, so no database
rows are needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

import pytest

from modules.orders.queries import (
    average_order_value,
    build_analytics,
    cancellation_rate,
    conversion_rate,
    count_by_status,
    count_by_type,
    filter_by_assignee,
    filter_by_date_range,
    filter_by_status,
    filter_by_type,
    revenue_by_type,
    search_orders,
    sort_by_amount,
    sort_by_status_priority,
    sort_orders,
    total_revenue,
)

pytestmark = pytest.mark.unit


@dataclass
class StubQuote:
    final_amount: Decimal


@dataclass
class StubPayment:
    amount_paid: Decimal
    status: str


@dataclass
class StubOrder:
    order_number: str
    order_type: str
    status: str
    created_at: datetime
    client_name: str = ""
    client_email: str = ""
    assigned_to: List[str] = field(default_factory=list)
    current_quote: Optional[StubQuote] = None
    payment_record: Optional[StubPayment] = None


def _at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 3, day, hour, tzinfo=timezone.utc)


@pytest.fixture()
def orders():
    return [
        StubOrder(
            "ORD-001", "event", "completed", _at(1),
            client_name="Brenda Fon", client_email="brenda@example.com",
            assigned_to=["admin-1"],
            current_quote=StubQuote(Decimal("650000")),
            payment_record=StubPayment(Decimal("650000"), "completed"),
        ),
        StubOrder(
            "ORD-002", "service", "quoted", _at(2),
            client_name="Paul Etoa", client_email="paul@example.com",
            current_quote=StubQuote(Decimal("150000")),
            payment_record=StubPayment(Decimal("50000"), "partial"),
        ),
        StubOrder(
            "ORD-003", "staff", "pending", _at(3),
            client_name="Chantal Biya", client_email="chantal@example.org",
            assigned_to=["admin-2"],
        ),
        StubOrder(
            "ORD-004", "event", "cancelled", _at(4),
            client_name="Marc Ndongo", client_email="marc@example.com",
            current_quote=StubQuote(Decimal("300000")),
        ),
    ]


def _numbers(orders):
    return [order.order_number for order in orders]


class TestSearch:
    def test_by_order_number(self, orders):
        assert _numbers(search_orders(orders, "ord-003")) == ["ORD-003"]

    def test_by_client_name_case_insensitive(self, orders):
        assert _numbers(search_orders(orders, "BRENDA")) == ["ORD-001"]

    def test_by_email(self, orders):
        assert _numbers(search_orders(orders, "example.org")) == ["ORD-003"]

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_blank_query_returns_everything(self, orders, query):
        assert len(search_orders(orders, query)) == 4

    def test_does_not_mutate_input(self, orders):
        before = list(orders)
        search_orders(orders, "paul")
        assert orders == before


class TestFilters:
    def test_by_type(self, orders):
        assert _numbers(filter_by_type(orders, "event")) == ["ORD-001", "ORD-004"]

    @pytest.mark.parametrize("value", ["all", None])
    def test_all_is_no_filter(self, orders, value):
        assert len(filter_by_type(orders, value)) == 4
        assert len(filter_by_status(orders, value)) == 4
        assert len(filter_by_assignee(orders, value)) == 4

    def test_by_status(self, orders):
        assert _numbers(filter_by_status(orders, "quoted")) == ["ORD-002"]

    def test_by_assignee(self, orders):
        assert _numbers(filter_by_assignee(orders, "admin-2")) == ["ORD-003"]

    def test_date_range_is_inclusive_on_dates(self, orders):
        result = filter_by_date_range(orders, date(2026, 3, 2), date(2026, 3, 3))
        assert _numbers(result) == ["ORD-002", "ORD-003"]

    def test_date_range_with_datetimes(self, orders):
        result = filter_by_date_range(orders, _at(2, 13), None)
        assert _numbers(result) == ["ORD-003", "ORD-004"]

    def test_open_ended_range(self, orders):
        assert len(filter_by_date_range(orders)) == 4

    def test_all_bounds_pass_through(self, orders):
        assert _numbers(filter_by_date_range(orders, "all", "all")) == _numbers(orders)
        assert _numbers(filter_by_date_range(orders, "all", date(2026, 3, 2))) == [
            "ORD-001",
            "ORD-002",
        ]


class TestSorting:
    def test_newest_is_default(self, orders):
        assert _numbers(sort_orders(orders, None)) == ["ORD-004", "ORD-003", "ORD-002", "ORD-001"]

    def test_unknown_sort_falls_back_to_newest(self, orders):
        assert _numbers(sort_orders(orders, "bogus"))[0] == "ORD-004"

    def test_oldest(self, orders):
        assert _numbers(sort_orders(orders, "oldest"))[0] == "ORD-001"

    def test_amount_high_treats_unquoted_as_zero(self, orders):
        assert _numbers(sort_by_amount(orders)) == ["ORD-001", "ORD-004", "ORD-002", "ORD-003"]

    def test_amount_low(self, orders):
        assert _numbers(sort_orders(orders, "amount-low"))[0] == "ORD-003"

    def test_status_priority(self, orders):
        assert _numbers(sort_by_status_priority(orders)) == ["ORD-003", "ORD-002", "ORD-001", "ORD-004"]

    def test_sort_is_stable_for_equal_keys(self, orders):
        orders[1].status = "pending"
        result = sort_by_status_priority(orders)
        assert _numbers(result)[:2] == ["ORD-002", "ORD-003"]


class TestAggregates:
    def test_counts_include_zero_buckets(self, orders):
        assert count_by_status(orders) == {
            "pending": 1, "quoted": 1, "confirmed": 0, "completed": 1, "cancelled": 1,
        }
        assert count_by_type(orders) == {"event": 2, "service": 1, "staff": 1, "offer": 0}

    def test_revenue_counts_fully_paid_only(self, orders):
        assert total_revenue(orders) == Decimal("650000")
        assert revenue_by_type(orders) == {
            "event": Decimal("650000"),
            "service": Decimal("0"),
            "staff": Decimal("0"),
            "offer": Decimal("0"),
        }

    def test_average_over_quoted_orders(self, orders):
        assert average_order_value(orders) == Decimal("366666.67")

    def test_average_without_quotes(self):
        assert average_order_value([]) == Decimal("0.00")

    def test_rates(self, orders):
        assert conversion_rate(orders) == 25
        assert cancellation_rate(orders) == 25

    def test_rates_on_empty_input(self):
        assert conversion_rate([]) == 0
        assert cancellation_rate([]) == 0

    def test_build_analytics(self, orders):
        analytics = build_analytics(orders)
        assert analytics.total_orders == 4
        assert analytics.total_revenue == Decimal("650000")
        assert analytics.by_status["completed"] == 1
        assert analytics.conversion_rate == 25
