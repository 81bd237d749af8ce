"""Order conversation threads.

Each order has one append-only thread shared by the client, admins and
staff.  Messages are never edited or removed; moderation flags them
(``flag_deleted``) so they drop out of the thread and unread counts while
staying in the database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, List, Optional

import structlog
from django.db import transaction

from modules.orders.events import NewOrderMessage
from modules.orders.exceptions import EmptyMessage, MessageNotFound, OrderNotFound

if TYPE_CHECKING:
    from modules.orders.dtos import ActorDTO, SendMessageDTO
    from modules.orders.models import Order, OrderMessage
    from modules.orders.repositories.interfaces import (
        IOrderMessageRepository,
        IOrderRepository,
    )

logger = structlog.get_logger(__name__)


class OrderMessageService:
    def __init__(
        self,
        order_repository: IOrderRepository,
        message_repository: IOrderMessageRepository,
    ) -> None:
        self._order_repo = order_repository
        self._message_repo = message_repository

    @transaction.atomic
    def send_message(
        self,
        order_id: Any,
        actor: ActorDTO,
        dto: SendMessageDTO,
        is_system_message: bool = False,
    ) -> OrderMessage:
        """Append a message to the order thread.

        The sender is recorded as having seen their own message.

        Raises:
            OrderNotFound: order does not exist.
            EmptyMessage: blank text and no attachments.
        """
        order = self._get_order(order_id)
        text = (dto.text or "").strip()
        if not text and not dto.attachments:
            raise EmptyMessage("A message needs text or at least one attachment.")

        message = self._message_repo.create(
            {
                "order_id": order.id,
                "sender_id": actor.actor_id,
                "sender_name": actor.display_name or actor.actor_id,
                "sender_role": actor.role,
                "text": text,
                "attachments": [a.model_dump(mode="json") for a in dto.attachments],
                "is_system_message": is_system_message,
            }
        )
        self._message_repo.add_receipts(order.id, [message.id], actor.actor_id)

        if not is_system_message:
            order.add_domain_event(
                NewOrderMessage(
                    aggregate_id=order.id,
                    order_number=order.order_number,
                    message_id=str(message.id),
                    sender_id=actor.actor_id,
                    sender_name=message.sender_name,
                    sender_role=actor.role,
                )
            )
            self._order_repo.flush_events(order)

        logger.info(
            "order.message_sent",
            order_id=str(order.id),
            message_id=str(message.id),
            sender_role=actor.role,
            attachment_count=len(dto.attachments),
        )
        return message

    def list_messages(self, order_id: Any, include_deleted: bool = False) -> List[OrderMessage]:
        order = self._get_order(order_id)
        return self._message_repo.list_for_order(order.id, include_deleted=include_deleted)

    @transaction.atomic
    def mark_seen(self, order_id: Any, message_ids: Iterable[Any], user_id: str) -> int:
        """Record receipts for *user_id*; repeated calls add nothing. Returns new receipts."""
        order = self._get_order(order_id)
        created = self._message_repo.add_receipts(order.id, message_ids, user_id)
        if created:
            logger.info("order.messages_seen", order_id=str(order.id), count=created)
        return created

    def unread_count(self, order_id: Any, user_id: str) -> int:
        order = self._get_order(order_id)
        return self._message_repo.unread_count(order.id, user_id)

    @transaction.atomic
    def flag_deleted(self, order_id: Any, message_id: Any, actor: ActorDTO) -> OrderMessage:
        order = self._get_order(order_id)
        message: Optional[OrderMessage] = self._message_repo.get_for_order(order.id, message_id)
        if message is None:
            raise MessageNotFound(f"Message {message_id} not found on order {order.order_number}.")
        self._message_repo.flag_deleted(message)
        logger.info(
            "order.message_flagged",
            order_id=str(order.id),
            message_id=str(message.id),
            flagged_by=actor.actor_id,
        )
        return message

    def _get_order(self, order_id: Any) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order
