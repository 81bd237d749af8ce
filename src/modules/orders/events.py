"""Domain events for the Orders bounded context.

Amounts travel as strings so events survive the JSON round trip through
the outbox without losing precision.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    order_number: str = ""
    order_type: str = ""
    client_id: str = ""
    client_name: str = ""


@dataclass(frozen=True)
class OrderQuoted(DomainEvent):
    """Raised when a quote is sent, including re-quotes."""

    order_number: str = ""
    client_id: str = ""
    amount: str = "0"
    currency: str = ""
    requote: bool = False


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""

    order_number: str = ""
    client_id: str = ""
    old_status: str = ""
    new_status: str = ""
    changed_by: str = ""


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled."""

    order_number: str = ""
    client_id: str = ""
    reason: str = ""
    refund_amount: str = "0"


@dataclass(frozen=True)
class PaymentReceived(DomainEvent):
    order_number: str = ""
    client_id: str = ""
    amount: str = "0"
    currency: str = ""
    method: str = ""
    payment_status: str = ""


@dataclass(frozen=True)
class NewOrderMessage(DomainEvent):
    order_number: str = ""
    message_id: str = ""
    sender_id: str = ""
    sender_name: str = ""
    sender_role: str = ""
