"""Django ORM implementations of the order repositories.

Concurrency control:
- Order rows use optimistic locking: ``update_if_version_matches`` issues
  ``UPDATE ... WHERE id = %s AND version = %s`` and bumps ``version``.
- The order counter uses a row lock (``select_for_update``) inside a
  savepoint that joins the caller's transaction.

Domain events collected on an ``Order`` are written to the transactional
outbox by ``flush_events``, in the same transaction as the mutation.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from modules.core.models import OutboxEvent
from modules.orders.dtos import ActorDTO
from modules.orders.exceptions import (
    ConcurrentModification,
    ImmutableRecord,
    NumberingFailed,
    OrderNotFound,
)
from modules.orders.models import (
    MessageReceipt,
    Order,
    OrderCounter,
    OrderMessage,
    OrderStatusHistory,
    Payment,
    PaymentTransaction,
    Quote,
    QuoteItem,
    TimelineMilestone,
)
from modules.orders.quotes import QuoteDraft
from modules.orders.repositories.interfaces import (
    ICounterRepository,
    IOrderMessageRepository,
    IOrderRepository,
)

logger = structlog.get_logger(__name__)

IDENTITY_FIELDS = frozenset({"id", "order_number", "order_type", "version", "created_at"})


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def queryset(self) -> QuerySet:
        """Orders with every sub-record eager-loaded (prevents N+1)."""
        return (
            Order.objects.select_related("payment", "payment__quote")
            .prefetch_related(
                "status_history",
                "quotes__items",
                "payment__transactions",
                "timeline",
            )
            .order_by("-created_at", "-id")
        )

    def get_by_id(self, id: Any) -> Optional[Order]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return self.queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return self.queryset().filter(order_number=order_number).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        queryset = self.queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    # ------------------------------------------------------------------
    # Write: order row
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        order = Order(**data)
        order.save()
        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            order_type=order.order_type,
        )
        return order

    def update_if_version_matches(
        self, id: UUID, expected_version: int, changes: Dict[str, Any]
    ) -> None:
        forbidden = IDENTITY_FIELDS & set(changes)
        if forbidden:
            raise ImmutableRecord(f"Fields {sorted(forbidden)} cannot be updated.")

        updated = Order.objects.filter(id=id, version=expected_version).update(
            version=F("version") + 1,
            updated_at=timezone.now(),
            **changes,
        )
        if updated:
            return
        if not Order.objects.filter(id=id).exists():
            raise OrderNotFound(f"Order {id} not found.")
        logger.warning("order.version_conflict", order_id=str(id), expected_version=expected_version)
        raise ConcurrentModification(
            f"Order {id} was modified by another user; reload and try again."
        )

    def save(self, entity: Order) -> Order:
        """Orders change only through ``update_if_version_matches``."""
        raise ImmutableRecord(
            f"Order {entity.pk} cannot be saved directly; use a versioned update."
        )

    # ------------------------------------------------------------------
    # Write: sub-records
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        old_status: Optional[str],
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=actor.actor_id,
            changed_by_name=actor.display_name,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history

    def add_quote(self, order_id: UUID, draft: QuoteDraft) -> Quote:
        quote = Quote.objects.create(
            order_id=order_id,
            total=draft.total,
            discount=draft.discount,
            final_amount=draft.final_amount,
            currency=draft.currency,
            valid_until=draft.valid_until,
            sent_by=draft.created_by,
            sent_by_name=draft.created_by_name,
            created_at=draft.created_at,
        )
        QuoteItem.objects.bulk_create(
            [
                QuoteItem(
                    quote=quote,
                    item=line.item,
                    description=line.description,
                    amount=line.amount,
                    position=position,
                )
                for position, line in enumerate(draft.items)
            ]
        )
        return quote

    def supersede_quote(self, quote: Quote) -> None:
        quote.superseded_at = timezone.now()
        quote.save(update_fields=["superseded_at"])
        logger.info("order.quote_superseded", order_id=str(quote.order_id), quote_id=str(quote.id))

    def record_payment(
        self, order_id: UUID, quote: Quote, data: Dict[str, Any], actor: ActorDTO
    ) -> Payment:
        payment = Payment.objects.filter(order_id=order_id).first()
        if payment is None:
            payment = Payment(order_id=order_id, quote=quote, method=data["method"])
            payment.save()

        PaymentTransaction.objects.create(
            payment=payment,
            amount=data["amount"],
            method=data["method"],
            reference=data.get("reference", ""),
            paid_at=data.get("paid_at") or timezone.now(),
            recorded_by=actor.actor_id,
            recorded_by_name=actor.display_name,
            receipt_url=data.get("receipt_url", ""),
        )
        payment.method = data["method"]
        payment.save()
        return payment

    def rebase_payment(self, payment: Payment, quote: Quote) -> Payment:
        payment.quote = quote
        payment.save(update_fields=["quote"])
        return payment

    def count_milestones(self, order_id: UUID) -> int:
        return TimelineMilestone.objects.filter(order_id=order_id).count()

    def add_milestone(self, order_id: UUID, data: Dict[str, Any]) -> TimelineMilestone:
        return TimelineMilestone.objects.create(order_id=order_id, **data)

    def get_milestone(self, order_id: UUID, milestone_id: Any) -> Optional[TimelineMilestone]:
        try:
            return TimelineMilestone.objects.filter(order_id=order_id, id=milestone_id).first()
        except (ValueError, ValidationError):
            return None

    def update_milestone(
        self, milestone: TimelineMilestone, changes: Dict[str, Any]
    ) -> TimelineMilestone:
        for field, value in changes.items():
            setattr(milestone, field, value)
        milestone.save(update_fields=list(changes))
        return milestone

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    def flush_events(self, order: Order) -> int:
        events = order.domain_events
        for event in events:
            OutboxEvent.objects.create(
                event_type=event.event_name,
                aggregate_id=str(event.aggregate_id),
                payload=_serialize_event_payload(event),
                topic="orders",
            )
        order.clear_domain_events()
        if events:
            logger.info("order.events_flushed", order_id=str(order.id), event_count=len(events))
        return len(events)


class OrderMessageDjangoRepository(IOrderMessageRepository):
    """Concrete message thread repository backed by Django ORM."""

    def get_by_id(self, id: Any) -> Optional[OrderMessage]:
        try:
            return OrderMessage.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[OrderMessage]:
        queryset = OrderMessage.objects.prefetch_related("receipts")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: OrderMessage) -> OrderMessage:
        entity.save()
        return entity

    def create(self, data: Dict[str, Any]) -> OrderMessage:
        return OrderMessage.objects.create(**data)

    def list_for_order(self, order_id: UUID, include_deleted: bool = False) -> List[OrderMessage]:
        queryset = OrderMessage.objects.filter(order_id=order_id).prefetch_related("receipts")
        if not include_deleted:
            queryset = queryset.alive()
        return list(queryset)

    def get_for_order(self, order_id: UUID, message_id: Any) -> Optional[OrderMessage]:
        try:
            return OrderMessage.objects.filter(order_id=order_id, id=message_id).first()
        except (ValueError, ValidationError):
            return None

    def add_receipts(self, order_id: UUID, message_ids: Iterable[Any], user_id: str) -> int:
        thread_ids = set(
            OrderMessage.objects.filter(order_id=order_id, id__in=list(message_ids)).values_list(
                "id", flat=True
            )
        )
        already_seen = set(
            MessageReceipt.objects.filter(message_id__in=thread_ids, user_id=user_id).values_list(
                "message_id", flat=True
            )
        )
        missing = thread_ids - already_seen
        MessageReceipt.objects.bulk_create(
            [MessageReceipt(message_id=message_id, user_id=user_id) for message_id in missing],
            ignore_conflicts=True,
        )
        return len(missing)

    def unread_count(self, order_id: UUID, user_id: str) -> int:
        return (
            OrderMessage.objects.alive()
            .filter(order_id=order_id)
            .exclude(sender_id=user_id)
            .exclude(receipts__user_id=user_id)
            .count()
        )

    def flag_deleted(self, message: OrderMessage) -> OrderMessage:
        message.delete()
        return message


class CounterDjangoRepository(ICounterRepository):
    """Order counters stored as rows of ``OrderCounter``."""

    def atomic_increment(self, name: str) -> int:
        try:
            with transaction.atomic():
                counter, _ = OrderCounter.objects.select_for_update().get_or_create(name=name)
                counter.last_value += 1
                counter.save(update_fields=["last_value"])
        except DatabaseError as exc:
            logger.error("order_number.increment_failed", counter=name, error=str(exc))
            raise NumberingFailed(f"Could not issue a number from counter '{name}'.") from exc
        return counter.last_value


def _serialize_event_payload(event: Any) -> Dict[str, Any]:
    data = asdict(event)
    normalized = _normalize_for_json(data)
    return json.loads(json.dumps(normalized))


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value
