"""Integration tests for order retrieval, listing and analytics.

Covers:
- GET /api/v1/orders/{id}/ with quote, payment and timeline.
- List filters (type, status, client, dates), search, assignee and sorts.
- Pagination envelope.
- GET /api/v1/orders/analytics/.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.utils import timezone

from modules.orders.dtos import AddPaymentDTO, BreakdownItemDTO, CancelOrderDTO, CreateQuoteDTO
from modules.orders.models import Order

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


def _quote(order_service, actor, order, amount):
    dto = CreateQuoteDTO(items=[BreakdownItemDTO(item="Package", amount=Decimal(amount))])
    return order_service.send_quote(order.id, dto, actor)


@pytest.fixture()
def portfolio(make_order, order_service, actor, service_details, staff_details, client_info):
    """Four orders: completed+paid event, quoted service, pending staff, cancelled event."""
    paid = _quote(order_service, actor, make_order(), "650000")
    order_service.transition_status(paid.id, "confirmed", actor)
    order_service.add_payment(paid.id, AddPaymentDTO(amount=Decimal("650000"), method="cash"), actor)
    order_service.transition_status(paid.id, "completed", actor)

    quoted = _quote(
        order_service,
        actor,
        make_order(
            details=service_details,
            client_id="client-2",
            client={"full_name": "Paul Etoa", "email": "paul@example.org"},
        ),
        "150000",
    )

    pending = make_order(details=staff_details, client_id="client-3", client={"full_name": "Chantal Biya"})
    order_service.assign_order(pending.id, ["admin-2"], actor)

    cancelled = _quote(order_service, actor, make_order(), "300000")
    order_service.cancel_order(cancelled.id, CancelOrderDTO(reason="Venue closed"), actor)

    return {"paid": paid, "quoted": quoted, "pending": pending, "cancelled": cancelled}


def _numbers(response):
    return [row["order_number"] for row in response.json()["results"]]


class TestRetrieve:
    def test_full_detail(self, auth_client, portfolio):
        order = portfolio["paid"]
        response = auth_client.get(f"{URL}{order.id}/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["next_statuses"] == []
        assert data["quote"]["final_amount"] == "650000.00"
        assert data["quote"]["items"] == [{"item": "Package", "description": "", "amount": "650000.00"}]
        assert data["payment"]["status"] == "completed"
        assert data["payment"]["progress"] == 100
        assert len(data["payment"]["transactions"]) == 1
        assert [h["new_status"] for h in data["status_history"]] == [
            "pending", "quoted", "confirmed", "completed",
        ]

    def test_not_found(self, auth_client):
        response = auth_client.get(f"{URL}{uuid4()}/")

        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "order_not_found"

    def test_invalid_id_is_not_found(self, auth_client):
        assert auth_client.get(f"{URL}not-a-uuid/").status_code == 404


class TestList:
    def test_newest_first_with_pagination_envelope(self, auth_client, portfolio):
        response = auth_client.get(URL)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 4
        assert _numbers(response) == ["ORD-004", "ORD-003", "ORD-002", "ORD-001"]
        row = data["results"][0]
        assert row["summary"] == "Wedding • 250 guests • 2 services • 1 staff"
        assert row["final_amount"] == "300000.00"
        assert row["payment_status"] is None

    def test_page_size(self, auth_client, portfolio):
        response = auth_client.get(URL, {"page_size": 2})
        data = response.json()
        assert len(data["results"]) == 2
        assert data["next"] is not None

    def test_filter_by_type(self, auth_client, portfolio):
        assert _numbers(auth_client.get(URL, {"order_type": "event"})) == ["ORD-004", "ORD-001"]

    def test_all_means_no_filter(self, auth_client, portfolio):
        response = auth_client.get(URL, {"order_type": "all", "status": "all"})
        assert response.json()["count"] == 4

    def test_filter_by_status(self, auth_client, portfolio):
        assert _numbers(auth_client.get(URL, {"status": "quoted"})) == ["ORD-002"]

    def test_invalid_status_filter(self, auth_client, portfolio):
        response = auth_client.get(URL, {"status": "archived"})
        assert response.status_code == 400

    def test_filter_by_client(self, auth_client, portfolio):
        assert _numbers(auth_client.get(URL, {"client_id": "client-3"})) == ["ORD-003"]

    def test_filter_by_dates(self, auth_client, portfolio):
        Order.objects.filter(id=portfolio["paid"].id).update(
            created_at=timezone.now() - timedelta(days=10)
        )
        today = timezone.now().date().isoformat()

        response = auth_client.get(URL, {"start_date": today, "end_date": today})
        assert "ORD-001" not in _numbers(response)
        assert response.json()["count"] == 3

    def test_search(self, auth_client, portfolio):
        assert _numbers(auth_client.get(URL, {"search": "example.org"})) == ["ORD-002"]
        assert _numbers(auth_client.get(URL, {"search": "ord-003"})) == ["ORD-003"]

    def test_assignee(self, auth_client, portfolio):
        assert _numbers(auth_client.get(URL, {"assignee": "admin-2"})) == ["ORD-003"]

    def test_sort_by_amount(self, auth_client, portfolio):
        response = auth_client.get(URL, {"sort": "amount-high"})
        assert _numbers(response) == ["ORD-001", "ORD-004", "ORD-002", "ORD-003"]

    def test_sort_by_status(self, auth_client, portfolio):
        response = auth_client.get(URL, {"sort": "status"})
        assert _numbers(response) == ["ORD-003", "ORD-002", "ORD-001", "ORD-004"]


class TestAnalytics:
    def test_analytics(self, auth_client, portfolio):
        response = auth_client.get(f"{URL}analytics/")

        assert response.status_code == 200
        data = response.json()
        assert data["total_orders"] == 4
        assert data["by_status"] == {
            "pending": 1, "quoted": 1, "confirmed": 0, "completed": 1, "cancelled": 1,
        }
        assert data["by_type"] == {"event": 2, "service": 1, "staff": 1, "offer": 0}
        assert Decimal(data["total_revenue"]) == Decimal("650000")
        assert Decimal(data["average_order_value"]) == Decimal("366666.67")
        assert data["conversion_rate"] == 25
        assert data["cancellation_rate"] == 25

    def test_analytics_respects_filters(self, auth_client, portfolio):
        data = auth_client.get(f"{URL}analytics/", {"order_type": "event"}).json()
        assert data["total_orders"] == 2
        assert data["conversion_rate"] == 50

    def test_analytics_on_empty_store(self, auth_client):
        data = auth_client.get(f"{URL}analytics/").json()
        assert data["total_orders"] == 0
        assert data["conversion_rate"] == 0
        assert Decimal(data["average_order_value"]) == Decimal("0")
