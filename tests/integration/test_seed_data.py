"""Integration tests for the ``seed_data`` management command."""

from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from modules.orders.models import Order, OrderMessage

pytestmark = pytest.mark.integration


def test_seed_creates_users_and_orders():
    out = StringIO()
    call_command("seed_data", orders=8, stdout=out)

    assert "Seed completed: users=2, orders=8" in out.getvalue()
    assert get_user_model().objects.filter(username="coordinator", is_staff=True).exists()
    assert list(Order.objects.order_by("order_number").values_list("order_number", flat=True)) == [
        f"ORD-{n:03d}" for n in range(1, 9)
    ]


def test_seeded_orders_are_consistent():
    call_command("seed_data", orders=8, stdout=StringIO())

    for order in Order.objects.prefetch_related("status_history"):
        history = list(order.status_history.all())
        assert history[-1].new_status == order.status
        assert OrderMessage.objects.filter(order=order, is_system_message=False).count() == 1


def test_users_are_not_duplicated():
    call_command("seed_data", orders=1, stdout=StringIO())
    out = StringIO()
    call_command("seed_data", orders=1, stdout=out)

    assert "users=0" in out.getvalue()
    assert Order.objects.count() == 2
