"""Order aggregate and its sub-records.

Business rules implemented at the model level:
- ``order_type`` and ``order_number`` never change after creation.
- Status history, quotes, payment transactions and messages are
  append-only.  The only permitted updates are ``Quote.superseded_at``
  (set when a re-quote replaces it) and ``OrderMessage.deleted_at``
  (soft flag).  Anything else raises ``ImmutableRecord``.
- ``Payment.amount_paid`` / ``amount_due`` / ``status`` are derived from the
  transactions and the quote on every save; they are never set directly.
- ``Order.version`` is bumped by every mutation (see the repository's
  ``update_if_version_matches``).

Status transitions, quoting and payments are orchestrated by the service
layer; the models only guard their own invariants.
"""

from __future__ import annotations

from decimal import Decimal
from functools import cached_property
from typing import Any, Optional

import structlog
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    SenderRole,
    TimelineStatus,
)
from modules.orders.details import OrderDetails, parse_details
from modules.orders.exceptions import ImmutableRecord
from modules.orders.payments import derive_payment_status
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 14, "decimal_places": 2}


def _guard_append_only(instance: models.Model, allowed: frozenset[str], kwargs: dict) -> None:
    """Reject updates of an existing row unless limited to *allowed* fields."""
    if instance._state.adding:
        return
    update_fields = set(kwargs.get("update_fields") or ())
    if not update_fields or update_fields - allowed - {"updated_at"}:
        raise ImmutableRecord(f"{instance._meta.object_name} {instance.pk} cannot be modified.")


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` (``ORD-001``, ``ORD-002``, ...) is issued by the
    numbering service from a shared counter; the UUIDv7 ``id`` is used for
    all internal references and API lookups.

    ``payload`` holds the kind-specific details document; use ``details``
    to get it parsed with the model matching ``order_type``.
    """

    order_number: models.CharField = models.CharField(
        max_length=32, unique=True, editable=False
    )
    order_type: models.CharField = models.CharField(
        max_length=16, choices=OrderType.choices
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=1)

    client_id: models.CharField = models.CharField(max_length=128, db_index=True)
    client_name: models.CharField = models.CharField(max_length=255)
    client_email: models.CharField = models.CharField(max_length=255, blank=True, default="")
    client_phone: models.CharField = models.CharField(max_length=64, blank=True, default="")

    payload: models.JSONField = models.JSONField(default=dict)

    admin_notes: models.TextField = models.TextField(blank=True, default="")
    client_notes: models.TextField = models.TextField(blank=True, default="")
    assigned_to: models.JSONField = models.JSONField(default=list, blank=True)
    documents: models.JSONField = models.JSONField(default=list, blank=True)

    cancellation_reason: models.TextField = models.TextField(blank=True, default="")
    refund_amount: models.DecimalField = models.DecimalField(
        null=True, blank=True, default=None, **MONEY
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["order_type"], name="orders_type_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_identity = (
            instance.__dict__.get("order_type"),
            instance.__dict__.get("order_number"),
        )
        return instance

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    @cached_property
    def details(self) -> OrderDetails:
        return parse_details(self.order_type, self.payload)

    def summary(self) -> str:
        return self.details.summary()

    # ------------------------------------------------------------------
    # Sub-records
    # ------------------------------------------------------------------

    @property
    def current_quote(self) -> Optional[Quote]:
        """The quote in force, ``None`` if the order was never quoted."""
        for quote in self.quotes.all():
            if quote.superseded_at is None:
                return quote
        return None

    @property
    def payment_record(self) -> Optional[Payment]:
        return getattr(self, "payment", None)

    @property
    def final_amount(self) -> Decimal:
        quote = self.current_quote
        return quote.final_amount if quote else Decimal("0")

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        loaded = getattr(self, "_loaded_identity", None)
        if loaded is not None and loaded != (self.order_type, self.order_number):
            raise ImmutableRecord("Order type and order number cannot change.")
        super().save(*args, **kwargs)
        self._loaded_identity = (self.order_type, self.order_number)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    The first entry of every order records its creation (``old_status``
    is ``None``).  ``changed_by`` is an opaque actor id; ``"system"`` marks
    automatic changes.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    changed_by: models.CharField = models.CharField(max_length=128)
    changed_by_name: models.CharField = models.CharField(max_length=255, blank=True, default="")
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        _guard_append_only(self, frozenset(), kwargs)
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ImmutableRecord("Status history entries cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class Quote(BaseModel):
    """Priced breakdown sent to the client.

    Never edited: a re-quote creates a new row and stamps ``superseded_at``
    on the previous one, which stays for audit.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="quotes",
    )
    total: models.DecimalField = models.DecimalField(**MONEY)
    discount: models.DecimalField = models.DecimalField(default=Decimal("0"), **MONEY)
    final_amount: models.DecimalField = models.DecimalField(**MONEY)
    currency: models.CharField = models.CharField(max_length=3)
    valid_until: models.DateTimeField = models.DateTimeField()
    sent_by: models.CharField = models.CharField(max_length=128)
    sent_by_name: models.CharField = models.CharField(max_length=255, blank=True, default="")
    superseded_at: models.DateTimeField = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "order_quotes"
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(final_amount__gte=0),
                name="order_quotes_final_amount_non_negative",
            ),
        ]

    @property
    def item_count(self) -> int:
        return len(self.items.all())

    @property
    def is_expired(self) -> bool:
        return self.valid_until < timezone.now()

    def save(self, *args: Any, **kwargs: Any) -> None:
        _guard_append_only(self, frozenset({"superseded_at"}), kwargs)
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ImmutableRecord("Quotes cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.final_amount} {self.currency} ({self.order_id})"


class QuoteItem(BaseModel):
    quote: models.ForeignKey = models.ForeignKey(
        "orders.Quote",
        on_delete=models.CASCADE,
        related_name="items",
    )
    item: models.CharField = models.CharField(max_length=255)
    description: models.TextField = models.TextField(blank=True, default="")
    amount: models.DecimalField = models.DecimalField(
        validators=[MinValueValidator(Decimal("0"))], **MONEY
    )
    position: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_quote_items"
        ordering = ["position"]

    def save(self, *args: Any, **kwargs: Any) -> None:
        _guard_append_only(self, frozenset(), kwargs)
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.item}: {self.amount}"


# ---------------------------------------------------------------------------
# Payment ledger
# ---------------------------------------------------------------------------


class Payment(BaseModel):
    """Payment record of an order, always tied to the quote in force.

    Totals are recomputed from the transactions on every save, so
    ``amount_paid + amount_due == quote.final_amount`` holds by construction.
    """

    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="payment",
    )
    quote: models.ForeignKey = models.ForeignKey(
        "orders.Quote",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    method: models.CharField = models.CharField(max_length=20, choices=PaymentMethod.choices)
    amount_paid: models.DecimalField = models.DecimalField(
        default=Decimal("0"), editable=False, **MONEY
    )
    amount_due: models.DecimalField = models.DecimalField(
        default=Decimal("0"), editable=False, **MONEY
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        editable=False,
    )

    class Meta:
        db_table = "order_payments"

    def recalculate(self) -> None:
        paid = Decimal("0")
        if not self._state.adding:
            paid = self.transactions.aggregate(total=Sum("amount"))["total"] or Decimal("0")
        total = self.quote.final_amount
        self.amount_paid = paid
        self.amount_due = total - paid
        self.status = derive_payment_status(paid, total)

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.recalculate()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = set(update_fields) | {"amount_paid", "amount_due", "status"}
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.amount_paid}/{self.amount_paid + self.amount_due} ({self.status})"


class PaymentTransaction(BaseModel):
    payment: models.ForeignKey = models.ForeignKey(
        "orders.Payment",
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    amount: models.DecimalField = models.DecimalField(**MONEY)
    method: models.CharField = models.CharField(max_length=20, choices=PaymentMethod.choices)
    reference: models.CharField = models.CharField(max_length=255, blank=True, default="")
    paid_at: models.DateTimeField = models.DateTimeField(default=timezone.now)
    recorded_by: models.CharField = models.CharField(max_length=128)
    recorded_by_name: models.CharField = models.CharField(max_length=255, blank=True, default="")
    receipt_url: models.URLField = models.URLField(max_length=1024, blank=True, default="")

    class Meta:
        db_table = "order_payment_transactions"
        ordering = ["paid_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="order_payment_transactions_amount_positive",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        _guard_append_only(self, frozenset(), kwargs)
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ImmutableRecord("Payment transactions cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.amount} via {self.method}"


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------


class TimelineMilestone(BaseModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="timeline",
    )
    title: models.CharField = models.CharField(max_length=255)
    description: models.TextField = models.TextField(blank=True, default="")
    due_date: models.DateField = models.DateField(null=True, blank=True, default=None)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=TimelineStatus.choices,
        default=TimelineStatus.PENDING,
    )
    completed_at: models.DateTimeField = models.DateTimeField(null=True, blank=True, default=None)
    position: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_timeline_milestones"
        ordering = ["position", "created_at"]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------


class OrderMessage(SoftDeleteModel):
    """Message in an order's conversation thread.

    Append-only: text, sender and attachments never change.  Moderation
    flags a message through ``delete()`` (sets ``deleted_at``); physical
    removal is refused.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="messages",
    )
    sender_id: models.CharField = models.CharField(max_length=128)
    sender_name: models.CharField = models.CharField(max_length=255)
    sender_role: models.CharField = models.CharField(max_length=16, choices=SenderRole.choices)
    text: models.TextField = models.TextField(blank=True, default="")
    attachments: models.JSONField = models.JSONField(default=list, blank=True)
    is_system_message: models.BooleanField = models.BooleanField(default=False)

    class Meta:
        db_table = "order_messages"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="order_messages_thread_idx"),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        _guard_append_only(self, frozenset({"deleted_at"}), kwargs)
        super().save(*args, **kwargs)

    def hard_delete(self, using=None, keep_parents=False):
        raise ImmutableRecord("Order messages can only be flagged, never removed.")

    def __str__(self) -> str:
        return f"{self.sender_name}: {self.text[:40]}"


class MessageReceipt(BaseModel):
    """Seen-by record: *user_id* has seen *message*."""

    message: models.ForeignKey = models.ForeignKey(
        "orders.OrderMessage",
        on_delete=models.CASCADE,
        related_name="receipts",
    )
    user_id: models.CharField = models.CharField(max_length=128)
    seen_at: models.DateTimeField = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "order_message_receipts"
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user_id"],
                name="order_message_receipts_unique_user",
            ),
        ]


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


class OrderCounter(BaseModel):
    """Named sequence holding the last issued order number."""

    name: models.CharField = models.CharField(max_length=64, unique=True)
    last_value: models.PositiveBigIntegerField = models.PositiveBigIntegerField(default=0)

    class Meta:
        db_table = "order_counters"

    def __str__(self) -> str:
        return f"{self.name}={self.last_value}"
