import copy

import pytest

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.orders.dtos import ActorDTO, CreateOrderDTO
from modules.orders.messaging import OrderMessageService
from modules.orders.numbering import OrderNumberService
from modules.orders.repositories import (
    CounterDjangoRepository,
    OrderDjangoRepository,
    OrderMessageDjangoRepository,
)
from modules.orders.services import OrderService

EVENT_DETAILS = {
    "order_type": "event",
    "event_type": "wedding",
    "event_date": "2026-12-12",
    "event_time": "14:00",
    "venue": {"name": "Hilton Yaounde", "address": "Boulevard du 20 Mai", "city": "Yaounde"},
    "guest_count": 250,
    "services_requested": [
        {"service_id": "svc-catering", "service_name": "Catering", "quantity": 1},
        {"service_id": "svc-decor", "service_name": "Decoration", "package_name": "Gold"},
    ],
    "staff_requested": [
        {"staff_profile_id": "stf-1", "staff_name": "Jean Mbarga", "role": "Waiter", "quantity": 10},
    ],
    "budget_range": {"min_amount": "500000", "max_amount": "1000000", "currency": "XAF"},
}

SERVICE_DETAILS = {
    "order_type": "service",
    "service_id": "svc-photo",
    "service_name": "Photography",
    "category": "Media",
    "package_name": "Full day",
    "service_date": "2026-11-05",
    "duration": {"value": 8, "unit": "hours"},
}

STAFF_DETAILS = {
    "order_type": "staff",
    "staff_profile_id": "stf-9",
    "staff_name": "Aline Nkodo",
    "role": "MC",
    "skills": ["French", "English"],
    "booking_date": "2026-11-20",
    "booking_window": {"start_time": "18:00", "end_time": "23:00", "hours": "5"},
    "location": "Palais des Congres",
}

OFFER_DETAILS = {
    "order_type": "offer",
    "offer_id": "off-1",
    "offer_title": "Christmas Special",
    "discount": "20%",
    "redemption_date": "2026-12-20",
    "redemption_code": "XMAS20",
}

CLIENT = {"full_name": "Brenda Fon", "email": "brenda@example.com", "phone": "+237 6 77 12 34 56"}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def event_details():
    return copy.deepcopy(EVENT_DETAILS)


@pytest.fixture()
def service_details():
    return copy.deepcopy(SERVICE_DETAILS)


@pytest.fixture()
def staff_details():
    return copy.deepcopy(STAFF_DETAILS)


@pytest.fixture()
def offer_details():
    return copy.deepcopy(OFFER_DETAILS)


@pytest.fixture()
def client_info():
    return dict(CLIENT)


@pytest.fixture()
def admin_user():
    return get_user_model().objects.create_user(
        username="amina", password="testpass123", first_name="Amina", last_name="Admin", is_staff=True
    )


@pytest.fixture()
def auth_client(admin_user):
    """APIClient with a force-authenticated staff user."""
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture()
def actor():
    return ActorDTO(actor_id="admin-1", display_name="Amina Admin")


@pytest.fixture()
def client_actor():
    return ActorDTO(actor_id="client-1", display_name="Brenda Fon", role="client")


@pytest.fixture()
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        message_repository=OrderMessageDjangoRepository(),
        number_service=OrderNumberService(CounterDjangoRepository()),
    )


@pytest.fixture()
def message_service():
    return OrderMessageService(
        order_repository=OrderDjangoRepository(),
        message_repository=OrderMessageDjangoRepository(),
    )


@pytest.fixture()
def make_order(order_service, actor):
    """Factory creating an order through the service (event order by default)."""

    def _make(details=None, client_id="client-1", client=None, **extra):
        dto = CreateOrderDTO(
            client_id=client_id,
            client=client or CLIENT,
            details=copy.deepcopy(details or EVENT_DETAILS),
            **extra,
        )
        return order_service.create_order(dto, actor)

    return _make


@pytest.fixture()
def pending_order(make_order):
    return make_order()
