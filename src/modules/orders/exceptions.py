"""Order domain exceptions.

Raised by the Service Layer and the pure domain helpers when business
rules are violated.  The API layer (Views) catches these and translates
them into HTTP responses: validation and state errors become 400,
concurrency errors 409, missing records 404.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class for every order lifecycle error."""

    code = "order_error"


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class OrderNotFound(OrderError):
    """The requested order does not exist."""

    code = "order_not_found"


class MessageNotFound(OrderError):
    """The requested message does not exist on this order."""

    code = "message_not_found"


class MilestoneNotFound(OrderError):
    """The requested timeline milestone does not exist on this order."""

    code = "milestone_not_found"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class OrderValidationError(OrderError):
    code = "invalid"


class EmptyBreakdown(OrderValidationError):
    """A quote was built without any breakdown item."""

    code = "empty_breakdown"


class InvalidBreakdownItem(OrderValidationError):
    """A breakdown item has a blank label or a negative amount."""

    code = "invalid_breakdown_item"


class InvalidDiscount(OrderValidationError):
    code = "invalid_discount"


class DiscountExceedsTotal(OrderValidationError):
    code = "discount_exceeds_total"


class InvalidQuoteValidity(OrderValidationError):
    code = "invalid_quote_validity"


class InvalidAmount(OrderValidationError):
    """A payment or refund amount is out of range."""

    code = "invalid_amount"


class EmptyMessage(OrderValidationError):
    """A message has neither text nor attachments."""

    code = "empty_message"


class MalformedOrderNumber(OrderValidationError):
    code = "malformed_order_number"


class OrderTypeMismatch(OrderValidationError):
    """Details of one order kind were submitted for an order of another kind."""

    code = "order_type_mismatch"


class TimelineLimitReached(OrderValidationError):
    code = "timeline_limit_reached"


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


class OrderStateError(OrderError):
    code = "invalid_state"


class InvalidTransition(OrderStateError):
    """The requested status change is not allowed from the current status."""

    code = "invalid_transition"


class QuoteNotAllowed(OrderStateError):
    """Quotes may only be sent while the order is pending or quoted."""

    code = "quote_not_allowed"


class QuoteBelowAmountPaid(OrderStateError):
    """A re-quote would leave the client having paid more than the new total."""

    code = "quote_below_amount_paid"


class NoQuote(OrderStateError):
    code = "no_quote"


class PaymentExceedsBalance(OrderStateError):
    code = "payment_exceeds_balance"


class OrderNotPayable(OrderStateError):
    code = "order_not_payable"


class OrderNotEditable(OrderStateError):
    code = "order_not_editable"


class ImmutableRecord(OrderStateError):
    """An append-only record (quote, message, history) was asked to change."""

    code = "immutable_record"


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class OrderConcurrencyError(OrderError):
    code = "conflict"


class ConcurrentModification(OrderConcurrencyError):
    """The order changed since it was read; the caller must reload and retry."""

    code = "concurrent_modification"


class NumberingFailed(OrderConcurrencyError):
    """The order counter could not be incremented."""

    code = "numbering_failed"
