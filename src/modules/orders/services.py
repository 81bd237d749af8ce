"""Order service layer (Use Cases).

Orchestrates the order lifecycle: creation, status transitions,
cancellation, quoting, payments and the admin operations (assignment,
details editing, timeline).  All write operations are atomic: the service
defines the unit-of-work boundary.

Every mutation follows the same shape:
1. Load the order and check the business rules (raising domain errors
   before anything is written).
2. Bump the order version with ``update_if_version_matches``; a stale
   caller gets ``ConcurrentModification`` and nothing is written.
3. Append the sub-records (history, quote, transaction, ...).
4. Post a system message to the order thread.
5. Record domain events and flush them to the outbox.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.orders.constants import (
    EDITABLE_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
    PaymentMethod,
    SenderRole,
    TimelineStatus,
)
from modules.orders.dtos import SYSTEM_ACTOR
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderQuoted,
    OrderStatusChanged,
    PaymentReceived,
)
from modules.orders.exceptions import (
    InvalidAmount,
    InvalidTransition,
    MilestoneNotFound,
    OrderNotEditable,
    OrderNotFound,
    OrderTypeMismatch,
    OrderValidationError,
    QuoteBelowAmountPaid,
    QuoteNotAllowed,
    TimelineLimitReached,
)
from modules.orders.payments import check_payment, format_money, format_payment_summary
from modules.orders.quotes import build_quote, can_send_quote, format_quote_summary

if TYPE_CHECKING:
    from modules.orders.dtos import (
        ActorDTO,
        AddPaymentDTO,
        CancelOrderDTO,
        CreateMilestoneDTO,
        CreateOrderDTO,
        CreateQuoteDTO,
        UpdateOrderDTO,
    )
    from modules.orders.models import Order, TimelineMilestone
    from modules.orders.numbering import OrderNumberService
    from modules.orders.repositories.interfaces import (
        IOrderMessageRepository,
        IOrderRepository,
    )

logger = structlog.get_logger(__name__)


def next_statuses(status: str) -> List[OrderStatus]:
    """Statuses reachable from *status*, in lifecycle order."""
    allowed = VALID_TRANSITIONS.get(status, set())
    return [choice for choice in OrderStatus if choice in allowed]


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        message_repository: IOrderMessageRepository,
        number_service: OrderNumberService,
    ) -> None:
        self._order_repo = order_repository
        self._message_repo = message_repository
        self._number_service = number_service

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, actor: ActorDTO) -> Order:
        """Create a ``pending`` order of the kind given by ``dto.details``.

        The order number is drawn inside this transaction, so a failed
        creation does not burn a number.

        Raises:
            NumberingFailed: the order counter could not be incremented.
        """
        log = logger.bind(client_id=dto.client_id, order_type=dto.details.order_type)
        log.info("order.creation_started")

        order_number = self._number_service.next_order_number()
        order = self._order_repo.create(
            {
                "order_number": order_number,
                "order_type": dto.details.order_type,
                "status": OrderStatus.PENDING,
                "client_id": dto.client_id,
                "client_name": dto.client.full_name,
                "client_email": dto.client.email,
                "client_phone": dto.client.phone,
                "payload": dto.details.to_payload(),
                "admin_notes": dto.admin_notes,
                "client_notes": dto.client_notes,
                "documents": list(dto.documents),
            }
        )
        self._order_repo.add_history(
            order.id, None, OrderStatus.PENDING, actor, notes="Order created"
        )
        self._post_system_message(order, f"Order {order_number} created.")

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order_number,
                order_type=order.order_type,
                client_id=order.client_id,
                client_name=order.client_name,
            )
        )
        self._order_repo.flush_events(order)

        log.info("order.created", order_id=str(order.id), order_number=order_number)
        return self._reload(order.id)

    # ------------------------------------------------------------------
    # Status state machine
    # ------------------------------------------------------------------

    @transaction.atomic
    def transition_status(
        self,
        order_id: Any,
        target: str,
        actor: ActorDTO,
        notes: str = "",
        expected_version: Optional[int] = None,
    ) -> Order:
        """Move an order to *target* and record it in the status history.

        Raises:
            OrderNotFound: order does not exist.
            InvalidTransition: *target* is unknown or not reachable.
            ConcurrentModification: the order changed since *expected_version*.
        """
        order = self.get_order(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status, new_status=target)

        target_status = self._check_transition(order, target, log)
        old_status = order.status
        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), {"status": target_status}
        )
        self._order_repo.add_history(
            order.id,
            old_status,
            target_status,
            actor,
            notes=notes or f"Status changed to {target_status.label}",
        )
        self._post_system_message(
            order,
            f"Status changed from {OrderStatus(old_status).label} to {target_status.label}.",
        )
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_number=order.order_number,
                client_id=order.client_id,
                old_status=old_status,
                new_status=target_status,
                changed_by=actor.actor_id,
            )
        )
        self._order_repo.flush_events(order)

        log.info("order.status_updated")
        return self._reload(order.id)

    @transaction.atomic
    def cancel_order(
        self,
        order_id: Any,
        dto: CancelOrderDTO,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Cancel an order, keeping the reason and the amount refunded.

        Raises:
            OrderNotFound: order does not exist.
            OrderValidationError: no reason was given.
            InvalidTransition: the order is already completed or cancelled.
            InvalidAmount: refund is negative or above what was paid.
            ConcurrentModification: the order changed since *expected_version*.
        """
        order = self.get_order(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)

        reason = dto.reason.strip()
        if not reason:
            raise OrderValidationError("A cancellation reason is required.")
        target_status = self._check_transition(order, OrderStatus.CANCELLED, log)

        payment = order.payment_record
        paid = payment.amount_paid if payment is not None else Decimal("0")
        refund = dto.refund_amount
        if refund is not None and (refund < 0 or refund > paid):
            raise InvalidAmount(f"Refund must be between 0 and the {paid} already paid.")

        old_status = order.status
        self._order_repo.update_if_version_matches(
            order.id,
            self._version(order, expected_version),
            {
                "status": target_status,
                "cancellation_reason": reason,
                "refund_amount": refund,
            },
        )
        self._order_repo.add_history(
            order.id, old_status, target_status, actor, notes=f"Order cancelled: {reason}"
        )
        self._post_system_message(order, f"Order cancelled. Reason: {reason}")
        order.add_domain_event(
            OrderCancelled(
                aggregate_id=order.id,
                order_number=order.order_number,
                client_id=order.client_id,
                reason=reason,
                refund_amount=str(refund or Decimal("0")),
            )
        )
        self._order_repo.flush_events(order)

        log.info("order.cancelled", refund_amount=str(refund) if refund is not None else None)
        return self._reload(order.id)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    @transaction.atomic
    def send_quote(
        self,
        order_id: Any,
        dto: CreateQuoteDTO,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Attach a quote; a ``pending`` order moves to ``quoted``.

        Re-quoting a ``quoted`` order supersedes the quote in force and
        moves an existing payment record onto the new quote.

        Raises:
            OrderNotFound: order does not exist.
            QuoteNotAllowed: the order is not pending or quoted.
            EmptyBreakdown, InvalidBreakdownItem, InvalidDiscount,
            InvalidQuoteValidity, DiscountExceedsTotal: invalid breakdown.
            QuoteBelowAmountPaid: the new total is below what was paid.
            ConcurrentModification: the order changed since *expected_version*.
        """
        order = self.get_order(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)

        if not can_send_quote(order):
            log.warning("order.quote_not_allowed")
            raise QuoteNotAllowed(f"Cannot send a quote for an order in status {order.status}.")

        draft = build_quote(
            dto.items,
            dto.discount,
            dto.validity_days if dto.validity_days is not None else settings.ORDER_QUOTE_VALIDITY_DAYS,
            dto.currency or settings.ORDER_DEFAULT_CURRENCY,
            actor,
        )

        payment = order.payment_record
        if payment is not None and draft.final_amount < payment.amount_paid:
            raise QuoteBelowAmountPaid(
                f"New total {draft.final_amount} is below the {payment.amount_paid} already paid."
            )

        previous = order.current_quote
        old_status = order.status
        changes: Dict[str, Any] = {}
        if old_status == OrderStatus.PENDING:
            changes["status"] = OrderStatus.QUOTED
        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), changes
        )

        if previous is not None:
            self._order_repo.supersede_quote(previous)
        quote = self._order_repo.add_quote(order.id, draft)
        if payment is not None:
            self._order_repo.rebase_payment(payment, quote)

        if changes:
            self._order_repo.add_history(
                order.id, old_status, OrderStatus.QUOTED, actor, notes="Quote sent to client"
            )

        summary = format_quote_summary(draft)
        self._post_system_message(
            order, f"Quote revised: {summary}" if previous else f"Quote sent: {summary}"
        )
        order.add_domain_event(
            OrderQuoted(
                aggregate_id=order.id,
                order_number=order.order_number,
                client_id=order.client_id,
                amount=str(draft.final_amount),
                currency=draft.currency,
                requote=previous is not None,
            )
        )
        self._order_repo.flush_events(order)

        log.info(
            "order.quoted",
            final_amount=str(draft.final_amount),
            requote=previous is not None,
        )
        return self._reload(order.id)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @transaction.atomic
    def add_payment(
        self,
        order_id: Any,
        dto: AddPaymentDTO,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Record a payment transaction against the quote in force.

        Raises:
            OrderNotFound: order does not exist.
            NoQuote: the order was never quoted.
            InvalidAmount: amount is not positive.
            PaymentExceedsBalance: amount is above the outstanding balance.
            OrderNotPayable: the order is not quoted or confirmed.
            ConcurrentModification: the order changed since *expected_version*.
        """
        order = self.get_order(order_id)
        log = logger.bind(order_id=str(order.id), amount=str(dto.amount), method=dto.method)

        check_payment(order, dto.amount)
        quote = order.current_quote

        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), {}
        )
        payment = self._order_repo.record_payment(
            order.id,
            quote,
            {
                "amount": dto.amount,
                "method": dto.method,
                "reference": dto.reference,
                "paid_at": dto.paid_at,
                "receipt_url": dto.receipt_url,
            },
            actor,
        )

        self._post_system_message(
            order,
            f"Payment of {format_money(dto.amount, quote.currency)} received via "
            f"{PaymentMethod(dto.method).label}. "
            f"{format_payment_summary(payment.amount_paid, payment.amount_due, quote.currency)}",
        )
        order.add_domain_event(
            PaymentReceived(
                aggregate_id=order.id,
                order_number=order.order_number,
                client_id=order.client_id,
                amount=str(dto.amount),
                currency=quote.currency,
                method=dto.method,
                payment_status=payment.status,
            )
        )
        self._order_repo.flush_events(order)

        log.info(
            "order.payment_recorded",
            amount_paid=str(payment.amount_paid),
            amount_due=str(payment.amount_due),
            payment_status=payment.status,
        )
        return self._reload(order.id)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    @transaction.atomic
    def assign_order(
        self,
        order_id: Any,
        admin_ids: Sequence[str],
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Replace the list of admins handling the order."""
        order = self.get_order(order_id)
        assignees = list(dict.fromkeys(a.strip() for a in admin_ids if a and a.strip()))

        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), {"assigned_to": assignees}
        )
        self._post_system_message(order, f"Order assigned to {len(assignees)} admin(s).")

        logger.info("order.assigned", order_id=str(order.id), assignee_count=len(assignees))
        return self._reload(order.id)

    @transaction.atomic
    def update_details(
        self,
        order_id: Any,
        dto: UpdateOrderDTO,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> Order:
        """Edit the kind-specific details, notes or documents of an open order.

        Raises:
            OrderNotFound: order does not exist.
            OrderNotEditable: the order is confirmed, completed or cancelled.
            OrderTypeMismatch: details of another order kind were given.
            ConcurrentModification: the order changed since *expected_version*.
        """
        order = self.get_order(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)

        if order.status not in EDITABLE_STATES:
            log.warning("order.not_editable")
            raise OrderNotEditable(f"Order in status {order.status} can no longer be edited.")

        changes: Dict[str, Any] = {}
        if dto.details is not None:
            if dto.details.order_type != order.order_type:
                raise OrderTypeMismatch(
                    f"Order {order.order_number} is a {order.order_type} order, "
                    f"not {dto.details.order_type}."
                )
            changes["payload"] = dto.details.to_payload()
        for field in ("admin_notes", "client_notes", "documents"):
            value = getattr(dto, field)
            if value is not None:
                changes[field] = value

        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), changes
        )
        if "payload" in changes:
            self._post_system_message(order, "Order details updated.")

        log.info("order.details_updated", fields=sorted(changes))
        return self._reload(order.id)

    @transaction.atomic
    def add_timeline_milestone(
        self,
        order_id: Any,
        dto: CreateMilestoneDTO,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> TimelineMilestone:
        """Append a milestone to the order's delivery timeline.

        Raises:
            TimelineLimitReached: the order already has the maximum number
                of milestones (``ORDER_MAX_TIMELINE_MILESTONES``).
        """
        order = self.get_order(order_id)
        count = self._order_repo.count_milestones(order.id)
        if count >= settings.ORDER_MAX_TIMELINE_MILESTONES:
            raise TimelineLimitReached(
                f"An order can have at most {settings.ORDER_MAX_TIMELINE_MILESTONES} milestones."
            )

        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), {}
        )
        milestone = self._order_repo.add_milestone(
            order.id,
            {
                "title": dto.title.strip(),
                "description": dto.description,
                "due_date": dto.due_date,
                "position": count,
            },
        )
        logger.info("order.milestone_added", order_id=str(order.id), milestone_id=str(milestone.id))
        return milestone

    @transaction.atomic
    def update_milestone_status(
        self,
        order_id: Any,
        milestone_id: Any,
        status: str,
        actor: ActorDTO,
        expected_version: Optional[int] = None,
    ) -> TimelineMilestone:
        order = self.get_order(order_id)
        milestone = self._order_repo.get_milestone(order.id, milestone_id)
        if milestone is None:
            raise MilestoneNotFound(f"Milestone {milestone_id} not found on order {order.order_number}.")
        try:
            new_status = TimelineStatus(status)
        except ValueError:
            raise OrderValidationError(f"Unknown milestone status '{status}'.") from None

        self._order_repo.update_if_version_matches(
            order.id, self._version(order, expected_version), {}
        )
        completed_at = timezone.now() if new_status == TimelineStatus.COMPLETED else None
        milestone = self._order_repo.update_milestone(
            milestone, {"status": new_status, "completed_at": completed_at}
        )
        if new_status == TimelineStatus.COMPLETED:
            self._post_system_message(order, f"Milestone completed: {milestone.title}")

        logger.info(
            "order.milestone_updated",
            order_id=str(order.id),
            milestone_id=str(milestone.id),
            status=new_status,
        )
        return milestone

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: Any) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_transition(self, order: Order, target: str, log) -> OrderStatus:
        try:
            target_status = OrderStatus(target)
        except ValueError:
            log.warning("order.invalid_transition", reason="unknown_status")
            raise InvalidTransition(f"Unknown order status '{target}'.") from None
        if not order.can_transition_to(target_status):
            log.warning("order.invalid_transition")
            raise InvalidTransition(
                f"Cannot transition from {order.status} to {target_status}."
            )
        return target_status

    @staticmethod
    def _version(order: Order, expected_version: Optional[int]) -> int:
        return order.version if expected_version is None else expected_version

    def _post_system_message(self, order: Order, text: str) -> None:
        self._message_repo.create(
            {
                "order_id": order.id,
                "sender_id": SYSTEM_ACTOR.actor_id,
                "sender_name": SYSTEM_ACTOR.display_name,
                "sender_role": SenderRole.ADMIN,
                "text": text,
                "is_system_message": True,
            }
        )

    def _reload(self, order_id: UUID) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order
