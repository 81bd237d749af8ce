"""Payment ledger rules.

Pure functions shared by the ``Payment`` model (derived totals) and the
service layer (preconditions for recording a payment).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from modules.orders.constants import PAYABLE_STATES, PaymentStatus
from modules.orders.exceptions import (
    InvalidAmount,
    NoQuote,
    OrderNotPayable,
    PaymentExceedsBalance,
)

if TYPE_CHECKING:
    from modules.orders.models import Order


def derive_payment_status(paid: Decimal, total: Decimal) -> PaymentStatus:
    """pending: nothing paid; partial: something paid; completed: total covered."""
    if paid <= 0:
        return PaymentStatus.PENDING
    if paid >= total:
        return PaymentStatus.COMPLETED
    return PaymentStatus.PARTIAL


def payment_progress(paid: Decimal, due: Decimal) -> int:
    """Percentage of the total already paid, rounded half up, within [0, 100]."""
    total = Decimal(paid) + Decimal(due)
    if total <= 0:
        return 0
    ratio = (Decimal(paid) / total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(ratio)))


def can_add_payment(order: Order) -> bool:
    return order.status in PAYABLE_STATES


def check_payment(order: Order, amount: Decimal) -> None:
    """Raise the first ledger rule *amount* would break on *order*.

    Checked in order: no quote, non-positive amount, amount above the
    outstanding balance, order status that does not accept payments.
    """
    quote = order.current_quote
    if quote is None:
        raise NoQuote(f"Order {order.order_number} has no quote to pay against.")
    if amount is None or amount <= 0:
        raise InvalidAmount("Payment amount must be greater than zero.")

    payment = order.payment_record
    balance = payment.amount_due if payment is not None else quote.final_amount
    if amount > balance:
        raise PaymentExceedsBalance(
            f"Payment of {amount} exceeds the outstanding balance of {balance}."
        )
    if not can_add_payment(order):
        raise OrderNotPayable(f"Order in status {order.status} does not accept payments.")


def format_money(amount: Decimal, currency: str) -> str:
    return f"{currency} {Decimal(amount):,.0f}"


def format_payment_summary(paid: Decimal, due: Decimal, currency: str) -> str:
    total = Decimal(paid) + Decimal(due)
    return (
        f"{format_money(paid, currency)} of {format_money(total, currency)} paid "
        f"({payment_progress(paid, due)}%)"
    )
