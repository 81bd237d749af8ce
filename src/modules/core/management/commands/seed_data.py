from __future__ import annotations

import random
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from modules.orders.constants import DurationUnit, EventType, OrderStatus, PaymentMethod, SenderRole
from modules.orders.dtos import (
    ActorDTO,
    AddPaymentDTO,
    BreakdownItemDTO,
    CancelOrderDTO,
    CreateOrderDTO,
    CreateQuoteDTO,
    SendMessageDTO,
)
from modules.orders.messaging import OrderMessageService
from modules.orders.numbering import OrderNumberService
from modules.orders.repositories import (
    CounterDjangoRepository,
    OrderDjangoRepository,
    OrderMessageDjangoRepository,
)
from modules.orders.services import OrderService

CLIENTS = [
    ("client-001", "Brenda Fon", "brenda@example.com", "+237677000001"),
    ("client-002", "Paul Etoa", "paul@example.com", "+237677000002"),
    ("client-003", "Chantal Biya", "chantal@example.com", "+237677000003"),
    ("client-004", "Samuel Eto", "samuel@example.com", "+237677000004"),
    ("client-005", "Grace Mbah", "grace@example.com", "+237677000005"),
    ("client-006", "Yves Nana", "yves@example.com", "+237677000006"),
]

VENUES = ["Hilton Yaounde", "Palais des Congres", "Hotel La Falaise"]
SERVICES = [
    ("svc-photo", "Photography", "Media"),
    ("svc-catering", "Catering", "Food"),
    ("svc-decor", "Decoration", "Styling"),
    ("svc-sound", "Sound System", "Equipment"),
]
STAFF = [
    ("stf-1", "Aline Nkodo", "MC"),
    ("stf-2", "Joel Tchami", "DJ"),
    ("stf-3", "Mireille Ayuk", "Hostess"),
]
OFFERS = [
    ("off-1", "Christmas Special", "20%"),
    ("off-2", "Valentine Dinner", "15%"),
    ("off-3", "New Year Package", "25%"),
]

# Where each seeded order ends up; applied in lifecycle order.
OUTCOMES = [
    ("pending", 0.25),
    ("quoted", 0.25),
    ("confirmed", 0.20),
    ("completed", 0.15),
    ("cancelled", 0.15),
]


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=30)

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        orders_created = self._seed_orders(options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123", first_name="Portal Admin")
            created += 1
        if not User.objects.filter(username="coordinator").exists():
            User.objects.create_user(
                "coordinator", password="coordinator123", first_name="Amina", is_staff=True
            )
            created += 1
        return created

    def _seed_orders(self, count: int) -> int:
        self.stdout.write("Creating orders...")
        order_repository = OrderDjangoRepository()
        message_repository = OrderMessageDjangoRepository()
        service = OrderService(
            order_repository=order_repository,
            message_repository=message_repository,
            number_service=OrderNumberService(CounterDjangoRepository()),
        )
        messages = OrderMessageService(order_repository, message_repository)
        admin = ActorDTO(actor_id="seed-admin", display_name="Portal Admin")

        outcomes = [name for name, _ in OUTCOMES]
        weights = [weight for _, weight in OUTCOMES]

        for _ in range(count):
            client_id, name, email, phone = random.choice(CLIENTS)
            client = ActorDTO(actor_id=client_id, display_name=name, role=SenderRole.CLIENT)
            outcome = random.choices(outcomes, weights=weights, k=1)[0]

            with transaction.atomic():
                order = service.create_order(
                    CreateOrderDTO(
                        client_id=client_id,
                        client={"full_name": name, "email": email, "phone": phone},
                        details=self._random_details(),
                    ),
                    client,
                )
                messages.send_message(
                    order.id, client, SendMessageDTO(text="Hello, looking forward to your quote.")
                )
                self._advance(service, order, outcome, admin)

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count

    def _advance(self, service: OrderService, order, outcome: str, admin: ActorDTO) -> None:
        if outcome == OrderStatus.PENDING:
            return
        if outcome == OrderStatus.CANCELLED:
            service.cancel_order(order.id, CancelOrderDTO(reason="Client changed plans"), admin)
            return

        items = [
            BreakdownItemDTO(item=label, amount=Decimal(random.randint(5, 60) * 10000))
            for _, label, _ in random.sample(SERVICES, k=random.randint(1, 3))
        ]
        order = service.send_quote(order.id, CreateQuoteDTO(items=items), admin)
        if outcome == OrderStatus.QUOTED:
            return

        service.transition_status(order.id, OrderStatus.CONFIRMED, admin)
        final = order.current_quote.final_amount
        deposit = (final / 2).quantize(Decimal("1"))
        service.add_payment(
            order.id, AddPaymentDTO(amount=deposit, method=PaymentMethod.MOBILE_MONEY), admin
        )
        if outcome == OrderStatus.COMPLETED:
            service.add_payment(
                order.id,
                AddPaymentDTO(amount=final - deposit, method=PaymentMethod.BANK_TRANSFER),
                admin,
            )
            service.transition_status(order.id, OrderStatus.COMPLETED, admin)

    def _random_details(self) -> dict:
        when = (date.today() + timedelta(days=random.randint(7, 180))).isoformat()
        kind = random.choice(["event", "event", "service", "staff", "offer"])
        if kind == "event":
            return {
                "order_type": "event",
                "event_type": random.choice(EventType.values),
                "event_date": when,
                "event_time": random.choice(["10:00", "14:00", "18:30"]),
                "venue": {"name": random.choice(VENUES), "city": "Yaounde"},
                "guest_count": random.randint(20, 400),
                "services_requested": [
                    {"service_id": service_id, "service_name": label}
                    for service_id, label, _ in random.sample(SERVICES, k=2)
                ],
            }
        if kind == "service":
            service_id, label, category = random.choice(SERVICES)
            return {
                "order_type": "service",
                "service_id": service_id,
                "service_name": label,
                "category": category,
                "service_date": when,
                "duration": {"value": random.randint(2, 10), "unit": DurationUnit.HOURS},
            }
        if kind == "staff":
            profile_id, staff_name, role = random.choice(STAFF)
            return {
                "order_type": "staff",
                "staff_profile_id": profile_id,
                "staff_name": staff_name,
                "role": role,
                "booking_date": when,
                "booking_window": {"start_time": "18:00", "end_time": "23:00", "hours": "5"},
                "location": random.choice(VENUES),
            }
        offer_id, title, discount = random.choice(OFFERS)
        return {
            "order_type": "offer",
            "offer_id": offer_id,
            "offer_title": title,
            "discount": discount,
            "redemption_date": when,
        }
