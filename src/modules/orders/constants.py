"""Order domain constants.

Defines the order kinds, status choices and the valid status transitions
of the order state machine, plus the enumerations used by sub-records
(payments, timeline milestones, messages).
"""

from django.db import models


class OrderType(models.TextChoices):
    EVENT = "event", "Event Booking"
    SERVICE = "service", "Service Booking"
    STAFF = "staff", "Staff Booking"
    OFFER = "offer", "Offer Redemption"


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending Review"
    QUOTED = "quoted", "Quote Sent"
    CONFIRMED = "confirmed", "Confirmed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class EventType(models.TextChoices):
    WEDDING = "wedding", "Wedding"
    CORPORATE = "corporate", "Corporate Event"
    CULTURAL = "cultural", "Cultural Event"
    SOCIAL = "social", "Social Gathering"
    BIRTHDAY = "birthday", "Birthday Party"
    CONFERENCE = "conference", "Conference"


class PaymentMethod(models.TextChoices):
    CASH = "cash", "Cash"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MOBILE_MONEY = "mobile_money", "Mobile Money"
    CARD = "card", "Card"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PARTIAL = "partial", "Partially Paid"
    COMPLETED = "completed", "Fully Paid"


class TimelineStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"


class SenderRole(models.TextChoices):
    CLIENT = "client", "Client"
    ADMIN = "admin", "Admin"
    STAFF = "staff", "Staff"


class AttachmentType(models.TextChoices):
    IMAGE = "image", "Image"
    DOCUMENT = "document", "Document"
    VIDEO = "video", "Video"


class DurationUnit(models.TextChoices):
    HOURS = "hours", "Hours"
    DAYS = "days", "Days"
    WEEKS = "weeks", "Weeks"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.QUOTED, OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.QUOTED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.PENDING},
    OrderStatus.CONFIRMED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

QUOTABLE_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.QUOTED}

PAYABLE_STATES: set[str] = {OrderStatus.QUOTED, OrderStatus.CONFIRMED}

# Variant details may be edited until the order is confirmed.
EDITABLE_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.QUOTED}

# Lower sorts first in the admin list.
STATUS_PRIORITY: dict[str, int] = {
    OrderStatus.PENDING: 1,
    OrderStatus.QUOTED: 2,
    OrderStatus.CONFIRMED: 3,
    OrderStatus.COMPLETED: 4,
    OrderStatus.CANCELLED: 5,
}

ORDER_COUNTER_NAME = "orders"

NOTIFICATION_TEMPLATES: dict[str, dict[str, str]] = {
    "OrderCreated": {
        "title": "New Order Received",
        "body": "Order {order_number} has been created for {client_name}.",
    },
    "OrderQuoted": {
        "title": "Quote Sent",
        "body": "A quote of {amount} has been sent for order {order_number}.",
    },
    "OrderStatusChanged": {
        "title": "Order Status Updated",
        "body": "Order {order_number} is now {status_label}.",
    },
    "OrderCancelled": {
        "title": "Order Cancelled",
        "body": "Order {order_number} has been cancelled. Reason: {reason}",
    },
    "PaymentReceived": {
        "title": "Payment Received",
        "body": "Payment of {amount} received for order {order_number}.",
    },
    "NewOrderMessage": {
        "title": "New Message",
        "body": "New message from {sender_name} on order {order_number}.",
    },
}
