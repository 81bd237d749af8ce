"""Unit tests for order conversation threads."""

from __future__ import annotations

import pytest

from modules.core.models import OutboxEvent
from modules.orders.dtos import AttachmentDTO, SendMessageDTO
from modules.orders.exceptions import (
    EmptyMessage,
    ImmutableRecord,
    MessageNotFound,
    OrderNotFound,
)
from modules.orders.models import MessageReceipt, OrderMessage

pytestmark = pytest.mark.unit


def _thread(message_service, order):
    return [m.text for m in message_service.list_messages(order.id) if not m.is_system_message]


class TestSendMessage:
    def test_appends_to_thread(self, pending_order, message_service, client_actor, actor):
        message_service.send_message(pending_order.id, client_actor, SendMessageDTO(text="Hello"))
        message_service.send_message(pending_order.id, actor, SendMessageDTO(text="Hi Brenda"))

        assert _thread(message_service, pending_order) == ["Hello", "Hi Brenda"]

    def test_records_sender(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="  Can we add a DJ?  ")
        )
        assert message.text == "Can we add a DJ?"
        assert message.sender_id == "client-1"
        assert message.sender_name == "Brenda Fon"
        assert message.sender_role == "client"
        assert not message.is_system_message

    def test_sender_has_seen_own_message(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Hello")
        )
        assert MessageReceipt.objects.filter(message=message, user_id="client-1").exists()

    def test_attachment_only_message(self, pending_order, message_service, client_actor):
        dto = SendMessageDTO(
            attachments=[
                AttachmentDTO(type="image", url="https://cdn.example.com/venue.jpg", name="venue.jpg")
            ]
        )
        message = message_service.send_message(pending_order.id, client_actor, dto)
        assert message.text == ""
        assert message.attachments == [
            {"type": "image", "url": "https://cdn.example.com/venue.jpg", "name": "venue.jpg"}
        ]

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_message_rejected(self, pending_order, message_service, client_actor, text):
        with pytest.raises(EmptyMessage):
            message_service.send_message(pending_order.id, client_actor, SendMessageDTO(text=text))

    def test_unknown_order(self, message_service, client_actor):
        with pytest.raises(OrderNotFound):
            message_service.send_message("nope", client_actor, SendMessageDTO(text="Hi"))

    def test_writes_outbox_event(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Hello")
        )
        event = OutboxEvent.objects.get(event_type="NewOrderMessage")
        assert event.payload["message_id"] == str(message.id)
        assert event.payload["sender_role"] == "client"

    def test_system_messages_raise_no_event(self, pending_order, message_service, actor):
        message_service.send_message(
            pending_order.id, actor, SendMessageDTO(text="Reminder"), is_system_message=True
        )
        assert not OutboxEvent.objects.filter(event_type="NewOrderMessage").exists()


class TestReceipts:
    def test_unread_count_excludes_own_messages(self, pending_order, message_service, client_actor):
        message_service.send_message(pending_order.id, client_actor, SendMessageDTO(text="Hello"))
        # Only the system "Order created" message is unread for the client.
        assert message_service.unread_count(pending_order.id, "client-1") == 1
        assert message_service.unread_count(pending_order.id, "admin-1") == 2

    def test_mark_seen_is_idempotent(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Hello")
        )

        assert message_service.mark_seen(pending_order.id, [message.id], "admin-1") == 1
        assert message_service.mark_seen(pending_order.id, [message.id], "admin-1") == 0
        assert MessageReceipt.objects.filter(message=message, user_id="admin-1").count() == 1

    def test_mark_seen_reduces_unread(self, pending_order, message_service):
        ids = [m.id for m in message_service.list_messages(pending_order.id)]
        message_service.mark_seen(pending_order.id, ids, "client-1")
        assert message_service.unread_count(pending_order.id, "client-1") == 0

    def test_mark_seen_ignores_other_threads(self, make_order, message_service, client_actor):
        first = make_order()
        second = make_order()
        foreign = message_service.send_message(second.id, client_actor, SendMessageDTO(text="Hi"))

        assert message_service.mark_seen(first.id, [foreign.id], "admin-1") == 0


class TestFlagDeleted:
    def test_flagged_message_hidden_but_kept(self, pending_order, message_service, client_actor, actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Oops")
        )

        message_service.flag_deleted(pending_order.id, message.id, actor)

        assert "Oops" not in _thread(message_service, pending_order)
        kept = message_service.list_messages(pending_order.id, include_deleted=True)
        assert any(m.id == message.id and m.is_deleted for m in kept)
        assert OrderMessage.objects.get(id=message.id).text == "Oops"

    def test_flagged_message_not_unread(self, pending_order, message_service, client_actor, actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Oops")
        )
        message_service.flag_deleted(pending_order.id, message.id, actor)
        assert message_service.unread_count(pending_order.id, "admin-1") == 1

    def test_unknown_message(self, pending_order, message_service, actor):
        with pytest.raises(MessageNotFound):
            message_service.flag_deleted(
                pending_order.id, "00000000-0000-0000-0000-000000000000", actor
            )

    def test_message_text_cannot_change(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Original")
        )
        message.text = "Edited"
        with pytest.raises(ImmutableRecord):
            message.save()

    def test_message_cannot_be_removed(self, pending_order, message_service, client_actor):
        message = message_service.send_message(
            pending_order.id, client_actor, SendMessageDTO(text="Keep me")
        )
        with pytest.raises(ImmutableRecord):
            message.hard_delete()
