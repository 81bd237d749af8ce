"""Event handlers for Orders domain events.

Handlers turn events into notification payloads (title, body, audience).
Delivery (push, e-mail, in-app) belongs to a separate service; here the
payload is only logged.
"""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any, Dict

import structlog

from modules.orders.constants import NOTIFICATION_TEMPLATES, OrderStatus, SenderRole
from modules.orders.payments import format_money
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

# Events about admin-side work go to the client; client activity goes to admins.
ADMIN_AUDIENCE_EVENTS = frozenset({"OrderCreated"})


def render_notification(event: DomainEvent) -> Dict[str, Any]:
    """Render the notification template of *event*."""
    template = NOTIFICATION_TEMPLATES[event.event_name]
    context = asdict(event)
    if "amount" in context:
        context["amount"] = format_money(Decimal(context["amount"]), context.get("currency", ""))
    if context.get("new_status"):
        context["status_label"] = OrderStatus(context["new_status"]).label

    audience = "admins" if event.event_name in ADMIN_AUDIENCE_EVENTS else "client"
    if event.event_name == "NewOrderMessage":
        audience = "admins" if context["sender_role"] == SenderRole.CLIENT else "client"

    return {
        "title": template["title"],
        "body": template["body"].format(**context),
        "audience": audience,
        "client_id": context.get("client_id", ""),
        "order_id": str(event.aggregate_id),
    }


class OrderNotificationHandler(IEventHandler[DomainEvent]):
    def handle(self, event: DomainEvent) -> None:
        notification = render_notification(event)
        logger.info(
            "notification.prepared",
            event_type=event.event_name,
            event_id=str(event.event_id),
            **notification,
        )


order_notification_handler = OrderNotificationHandler()
