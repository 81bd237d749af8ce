"""Unit tests for order numbering.

Covers:
- Formatting and parsing ``PREFIX-NNN`` numbers.
- Malformed numbers.
- Unique, gap-free numbers under concurrent callers (in-memory counter).
- The database counter joins the caller's transaction.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from django.db import transaction

from modules.orders.constants import ORDER_COUNTER_NAME
from modules.orders.exceptions import MalformedOrderNumber
from modules.orders.models import Order, OrderCounter
from modules.orders.numbering import (
    OrderNumberService,
    format_order_number,
    parse_order_number,
)
from modules.orders.repositories import CounterDjangoRepository, InMemoryCounterRepository

pytestmark = pytest.mark.unit


class TestFormat:
    @pytest.mark.parametrize(
        "n,expected",
        [(1, "ORD-001"), (42, "ORD-042"), (999, "ORD-999"), (1000, "ORD-1000"), (12345, "ORD-12345")],
    )
    def test_default_prefix_and_width(self, n, expected):
        assert format_order_number(n) == expected

    def test_custom_prefix_and_width(self):
        assert format_order_number(7, prefix="EVT", width=5) == "EVT-00007"

    def test_settings_drive_defaults(self, settings):
        settings.ORDER_NUMBER_PREFIX = "BK"
        settings.ORDER_NUMBER_WIDTH = 4
        assert format_order_number(3) == "BK-0003"

    @pytest.mark.parametrize("n", [0, -1, True, 1.5, "1"])
    def test_rejects_non_positive_or_non_int(self, n):
        with pytest.raises(ValueError):
            format_order_number(n)


class TestParse:
    @pytest.mark.parametrize("n", [1, 9, 10, 999, 1000, 54321])
    def test_inverse_of_format(self, n):
        assert parse_order_number(format_order_number(n)) == n

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "ORD-",
            "ORD-01",
            "ORD-0001",
            "ORD-000",
            "INV-001",
            "ord-001",
            "ORD001",
            "ORD-00a",
            " ORD-001",
            "ORD-001\n",
            "ORD-\u0660\u0660\u0661",  # Arabic-Indic digits
        ],
    )
    def test_malformed(self, value):
        with pytest.raises(MalformedOrderNumber):
            parse_order_number(value)

    def test_custom_prefix(self):
        assert parse_order_number("EVT-00007", prefix="EVT", width=5) == 7


class TestInMemoryCounter:
    def test_starts_at_one(self):
        service = OrderNumberService(InMemoryCounterRepository())
        assert service.next_order_number() == "ORD-001"
        assert service.next_order_number() == "ORD-002"

    def test_initial_value(self):
        repo = InMemoryCounterRepository(initial={ORDER_COUNTER_NAME: 999})
        assert OrderNumberService(repo).next_order_number() == "ORD-1000"

    def test_concurrent_callers_get_distinct_gap_free_numbers(self):
        repo = InMemoryCounterRepository()
        service = OrderNumberService(repo)

        with ThreadPoolExecutor(max_workers=16) as pool:
            numbers = list(pool.map(lambda _: service.next_number(), range(100)))

        assert sorted(numbers) == list(range(1, 101))
        assert repo.current(ORDER_COUNTER_NAME) == 100


class TestDatabaseCounter:
    def test_increments_persisted_counter(self):
        service = OrderNumberService(CounterDjangoRepository())
        assert service.next_number() == 1
        assert service.next_number() == 2
        assert OrderCounter.objects.get(name=ORDER_COUNTER_NAME).last_value == 2

    def test_separate_counters_are_independent(self):
        repo = CounterDjangoRepository()
        assert repo.atomic_increment("a") == 1
        assert repo.atomic_increment("b") == 1
        assert repo.atomic_increment("a") == 2

    def test_increment_rolls_back_with_caller(self):
        service = OrderNumberService(CounterDjangoRepository())
        service.next_number()

        with pytest.raises(RuntimeError):
            with transaction.atomic():
                service.next_number()
                raise RuntimeError("creation failed")

        assert service.next_order_number() == "ORD-002"

    def test_failed_creation_does_not_burn_a_number(self, make_order, order_service, monkeypatch):
        make_order()

        def _fail(data):
            raise RuntimeError("insert failed")

        monkeypatch.setattr(order_service._order_repo, "create", _fail)
        with pytest.raises(RuntimeError):
            make_order()
        monkeypatch.undo()

        second = make_order()
        assert second.order_number == "ORD-002"
        assert Order.objects.count() == 2
