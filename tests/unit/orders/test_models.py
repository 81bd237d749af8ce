"""Unit tests for the Order models and their append-only guards."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import AddPaymentDTO, BreakdownItemDTO, CreateQuoteDTO
from modules.orders.exceptions import ImmutableRecord
from modules.orders.models import Order, OrderStatusHistory, Payment, PaymentTransaction, Quote
from modules.orders.repositories import OrderDjangoRepository

pytestmark = pytest.mark.unit


@pytest.fixture()
def paid_order(pending_order, order_service, actor):
    dto = CreateQuoteDTO(items=[BreakdownItemDTO(item="Catering", amount=Decimal("1000"))])
    order_service.send_quote(pending_order.id, dto, actor)
    return order_service.add_payment(
        pending_order.id, AddPaymentDTO(amount=Decimal("400"), method="cash"), actor
    )


class TestOrder:
    def test_str(self, pending_order):
        assert str(pending_order) == "ORD-001 (pending)"

    def test_order_type_is_fixed(self, pending_order):
        order = Order.objects.get(id=pending_order.id)
        order.order_type = "service"
        with pytest.raises(ImmutableRecord):
            order.save()

    def test_order_number_is_fixed(self, pending_order):
        order = Order.objects.get(id=pending_order.id)
        order.order_number = "ORD-999"
        with pytest.raises(ImmutableRecord):
            order.save()

    def test_other_fields_can_be_saved(self, pending_order):
        order = Order.objects.get(id=pending_order.id)
        order.admin_notes = "Call back Monday"
        order.save()
        assert Order.objects.get(id=order.id).admin_notes == "Call back Monday"

    def test_final_amount_without_quote(self, pending_order):
        assert pending_order.final_amount == Decimal("0")
        assert pending_order.current_quote is None
        assert pending_order.payment_record is None

    def test_identity_fields_rejected_by_versioned_update(self, pending_order):
        with pytest.raises(ImmutableRecord):
            OrderDjangoRepository().update_if_version_matches(
                pending_order.id, 1, {"order_number": "ORD-777"}
            )


class TestAppendOnlyRecords:
    def test_history_cannot_be_edited(self, pending_order):
        entry = OrderStatusHistory.objects.filter(order=pending_order).first()
        entry.notes = "rewritten"
        with pytest.raises(ImmutableRecord):
            entry.save()

    def test_history_cannot_be_deleted(self, pending_order):
        entry = OrderStatusHistory.objects.filter(order=pending_order).first()
        with pytest.raises(ImmutableRecord):
            entry.delete()
        assert OrderStatusHistory.objects.filter(order=pending_order).count() == 1

    def test_quote_amounts_cannot_change(self, paid_order):
        quote = Quote.objects.get(order=paid_order)
        quote.final_amount = Decimal("1")
        with pytest.raises(ImmutableRecord):
            quote.save(update_fields=["final_amount"])

    def test_quote_can_be_superseded(self, paid_order):
        quote = Quote.objects.get(order=paid_order)
        OrderDjangoRepository().supersede_quote(quote)
        assert Quote.objects.get(id=quote.id).superseded_at is not None

    def test_transactions_cannot_change(self, paid_order):
        transaction = PaymentTransaction.objects.get(payment__order=paid_order)
        transaction.amount = Decimal("1")
        with pytest.raises(ImmutableRecord):
            transaction.save()
        with pytest.raises(ImmutableRecord):
            transaction.delete()


class TestPayment:
    def test_totals_derived_from_transactions(self, paid_order):
        payment = Payment.objects.get(order=paid_order)
        assert payment.amount_paid == Decimal("400")
        assert payment.amount_due == Decimal("600")
        assert payment.status == PaymentStatus.PARTIAL

    def test_direct_total_edits_are_recomputed(self, paid_order):
        payment = Payment.objects.get(order=paid_order)
        payment.amount_paid = Decimal("1000")
        payment.status = PaymentStatus.COMPLETED
        payment.save()

        payment.refresh_from_db()
        assert payment.amount_paid == Decimal("400")
        assert payment.status == PaymentStatus.PARTIAL

    def test_str(self, paid_order):
        assert str(Payment.objects.get(order=paid_order)) == "400.00/1000.00 (partial)"


class TestQuote:
    def test_item_count_and_expiry(self, paid_order):
        quote = Quote.objects.get(order=paid_order)
        assert quote.item_count == 1
        assert not quote.is_expired

    def test_status_of_quoted_order(self, paid_order):
        assert paid_order.status == OrderStatus.QUOTED
