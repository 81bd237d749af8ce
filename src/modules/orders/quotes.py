"""Quote engine.

``build_quote`` turns an itemized breakdown into an immutable ``QuoteDraft``
(totals, discount, validity).  Persisting the draft and moving the order to
``quoted`` is the service layer's job (``OrderService.send_quote``).

Discounts are flat amounts in the quote currency.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

from django.utils import timezone
from pydantic import BaseModel, ConfigDict

from modules.orders.constants import QUOTABLE_STATES
from modules.orders.exceptions import (
    DiscountExceedsTotal,
    EmptyBreakdown,
    InvalidBreakdownItem,
    InvalidDiscount,
    InvalidQuoteValidity,
)
from modules.orders.payments import format_money

if TYPE_CHECKING:
    from modules.orders.dtos import ActorDTO, BreakdownItemDTO
    from modules.orders.models import Order


class QuoteLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: str
    description: str = ""
    amount: Decimal


class QuoteDraft(BaseModel):
    """Validated quote, ready to be attached to an order."""

    model_config = ConfigDict(frozen=True)

    items: Tuple[QuoteLine, ...]
    total: Decimal
    discount: Decimal
    final_amount: Decimal
    currency: str
    valid_until: datetime
    created_at: datetime
    created_by: str
    created_by_name: str = ""

    @property
    def item_count(self) -> int:
        return len(self.items)


def build_quote(
    items: Sequence[BreakdownItemDTO],
    discount: Optional[Decimal],
    validity_days: int,
    currency: str,
    created_by: ActorDTO,
) -> QuoteDraft:
    """Validate a breakdown and compute its totals.

    Raises:
        EmptyBreakdown: no items.
        InvalidBreakdownItem: an item has a blank label or a negative amount.
        InvalidDiscount: the discount is negative.
        InvalidQuoteValidity: validity shorter than one day.
        DiscountExceedsTotal: the discount is larger than the total.
    """
    if not items:
        raise EmptyBreakdown("A quote needs at least one breakdown item.")

    lines = []
    for position, entry in enumerate(items, start=1):
        label = (entry.item or "").strip()
        if not label:
            raise InvalidBreakdownItem(f"Breakdown item #{position} has no label.")
        if entry.amount is None or entry.amount < 0:
            raise InvalidBreakdownItem(f"Breakdown item '{label}' has a negative amount.")
        lines.append(
            QuoteLine(item=label, description=entry.description or "", amount=entry.amount)
        )

    discount = Decimal(discount or 0)
    if discount < 0:
        raise InvalidDiscount("Discount cannot be negative.")
    if validity_days < 1:
        raise InvalidQuoteValidity("A quote must stay valid for at least one day.")

    total = sum((line.amount for line in lines), Decimal("0"))
    final_amount = total - discount
    if final_amount < 0:
        raise DiscountExceedsTotal(f"Discount {discount} exceeds the quote total {total}.")

    now = timezone.now()
    return QuoteDraft(
        items=tuple(lines),
        total=total,
        discount=discount,
        final_amount=final_amount,
        currency=currency,
        valid_until=now + timedelta(days=validity_days),
        created_at=now,
        created_by=created_by.actor_id,
        created_by_name=created_by.display_name,
    )


def can_send_quote(order: Order) -> bool:
    return order.status in QUOTABLE_STATES


def format_quote_summary(quote) -> str:
    """``"2 item(s) • Total: XAF 700,000 • Discount: -XAF 50,000 • Final: XAF 650,000"``"""
    parts = [
        f"{quote.item_count} item(s)",
        f"Total: {format_money(quote.total, quote.currency)}",
    ]
    if quote.discount and quote.discount > 0:
        parts.append(f"Discount: -{format_money(quote.discount, quote.currency)}")
    parts.append(f"Final: {format_money(quote.final_amount, quote.currency)}")
    return " • ".join(parts)
