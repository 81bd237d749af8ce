"""Order DRF serializers for API input/output.

The serializers operate at the Interface layer (API Views).  Input
serializers check the request envelope; the kind-specific details are
validated by the Pydantic DTOs, and business rules by the Service Layer.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import (
    AttachmentType,
    OrderStatus,
    PaymentMethod,
    TimelineStatus,
)
from modules.orders.models import (
    Order,
    OrderMessage,
    OrderStatusHistory,
    Payment,
    PaymentTransaction,
    Quote,
    QuoteItem,
    TimelineMilestone,
)
from modules.orders.payments import payment_progress
from modules.orders.services import next_statuses

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class VersionedSerializer(serializers.Serializer):
    """Optional ``version`` for optimistic concurrency on mutations."""

    version = serializers.IntegerField(required=False, min_value=1)


class ClientInfoSerializer(serializers.Serializer):
    full_name = serializers.CharField()
    email = serializers.EmailField(required=False, default="", allow_blank=True)
    phone = serializers.CharField(required=False, default="", allow_blank=True)


class CreateOrderSerializer(serializers.Serializer):
    client_id = serializers.CharField()
    client = ClientInfoSerializer()
    details = serializers.JSONField()
    admin_notes = serializers.CharField(required=False, default="", allow_blank=True)
    client_notes = serializers.CharField(required=False, default="", allow_blank=True)
    documents = serializers.ListField(child=serializers.URLField(), required=False, default=list)


class UpdateOrderSerializer(VersionedSerializer):
    details = serializers.JSONField(required=False)
    admin_notes = serializers.CharField(required=False, allow_blank=True)
    client_notes = serializers.CharField(required=False, allow_blank=True)
    documents = serializers.ListField(child=serializers.URLField(), required=False)


class StatusUpdateSerializer(VersionedSerializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, default="", allow_blank=True)


class CancelOrderSerializer(VersionedSerializer):
    reason = serializers.CharField()
    refund_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, required=False, allow_null=True, default=None
    )


class BreakdownItemSerializer(serializers.Serializer):
    item = serializers.CharField(allow_blank=True)
    description = serializers.CharField(required=False, default="", allow_blank=True)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)


class CreateQuoteSerializer(VersionedSerializer):
    items = BreakdownItemSerializer(many=True)
    discount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=0)
    validity_days = serializers.IntegerField(required=False, allow_null=True, default=None)
    currency = serializers.CharField(required=False, allow_null=True, default=None, max_length=3)


class AddPaymentSerializer(VersionedSerializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices)
    reference = serializers.CharField(required=False, default="", allow_blank=True)
    paid_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    receipt_url = serializers.URLField(required=False, default="", allow_blank=True)


class AssignOrderSerializer(VersionedSerializer):
    admin_ids = serializers.ListField(child=serializers.CharField(), allow_empty=True)


class CreateMilestoneSerializer(VersionedSerializer):
    title = serializers.CharField()
    description = serializers.CharField(required=False, default="", allow_blank=True)
    due_date = serializers.DateField(required=False, allow_null=True, default=None)


class MilestoneStatusSerializer(VersionedSerializer):
    status = serializers.ChoiceField(choices=TimelineStatus.choices)


class AttachmentSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=AttachmentType.choices)
    url = serializers.URLField()
    name = serializers.CharField(required=False, default="", allow_blank=True)


class SendMessageSerializer(serializers.Serializer):
    text = serializers.CharField(required=False, default="", allow_blank=True)
    attachments = AttachmentSerializer(many=True, required=False, default=list)


class MarkSeenSerializer(serializers.Serializer):
    message_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "changed_by",
            "changed_by_name",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class QuoteItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuoteItem
        fields = ["item", "description", "amount"]
        read_only_fields = fields


class QuoteSerializer(serializers.ModelSerializer):
    items = QuoteItemSerializer(many=True, read_only=True)

    class Meta:
        model = Quote
        fields = [
            "id",
            "total",
            "discount",
            "final_amount",
            "currency",
            "valid_until",
            "sent_by",
            "sent_by_name",
            "created_at",
            "items",
        ]
        read_only_fields = fields


class PaymentTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTransaction
        fields = [
            "id",
            "amount",
            "method",
            "reference",
            "paid_at",
            "recorded_by",
            "recorded_by_name",
            "receipt_url",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    transactions = PaymentTransactionSerializer(many=True, read_only=True)
    progress = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "quote_id",
            "method",
            "amount_paid",
            "amount_due",
            "status",
            "progress",
            "transactions",
        ]
        read_only_fields = fields

    def get_progress(self, payment: Payment) -> int:
        return payment_progress(payment.amount_paid, payment.amount_due)


class TimelineMilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = TimelineMilestone
        fields = [
            "id",
            "title",
            "description",
            "due_date",
            "status",
            "completed_at",
            "position",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for an order with every sub-record."""

    details = serializers.SerializerMethodField()
    summary = serializers.SerializerMethodField()
    display_date = serializers.SerializerMethodField()
    next_statuses = serializers.SerializerMethodField()
    quote = serializers.SerializerMethodField()
    payment = serializers.SerializerMethodField()
    status_history = StatusHistorySerializer(many=True, read_only=True)
    timeline = TimelineMilestoneSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "order_type",
            "status",
            "version",
            "client_id",
            "client_name",
            "client_email",
            "client_phone",
            "details",
            "summary",
            "display_date",
            "next_statuses",
            "admin_notes",
            "client_notes",
            "assigned_to",
            "documents",
            "cancellation_reason",
            "refund_amount",
            "quote",
            "payment",
            "status_history",
            "timeline",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_details(self, order: Order) -> dict:
        return order.details.model_dump(mode="json", by_alias=True)

    def get_summary(self, order: Order) -> str:
        return order.details.summary()

    def get_display_date(self, order: Order):
        value = order.details.display_date()
        return value.isoformat() if value else None

    def get_next_statuses(self, order: Order) -> list[str]:
        return [str(status) for status in next_statuses(order.status)]

    def get_quote(self, order: Order):
        quote = order.current_quote
        return QuoteSerializer(quote).data if quote else None

    def get_payment(self, order: Order):
        payment = order.payment_record
        return PaymentSerializer(payment).data if payment else None


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the order list."""

    summary = serializers.SerializerMethodField()
    final_amount = serializers.SerializerMethodField()
    payment_status = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "order_type",
            "status",
            "client_id",
            "client_name",
            "summary",
            "final_amount",
            "payment_status",
            "assigned_to",
            "created_at",
        ]
        read_only_fields = fields

    def get_summary(self, order: Order) -> str:
        return order.details.summary()

    def get_final_amount(self, order: Order):
        quote = order.current_quote
        return str(quote.final_amount) if quote else None

    def get_payment_status(self, order: Order):
        payment = order.payment_record
        return payment.status if payment else None


class OrderMessageSerializer(serializers.ModelSerializer):
    seen_by = serializers.SerializerMethodField()

    class Meta:
        model = OrderMessage
        fields = [
            "id",
            "sender_id",
            "sender_name",
            "sender_role",
            "text",
            "attachments",
            "is_system_message",
            "is_deleted",
            "seen_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_seen_by(self, message: OrderMessage) -> list[dict]:
        return [
            {"user_id": receipt.user_id, "seen_at": receipt.seen_at.isoformat()}
            for receipt in message.receipts.all()
        ]
