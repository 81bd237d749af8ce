"""Order numbering.

Order numbers are ``PREFIX-`` followed by a sequence number zero-padded to
``width`` digits (``ORD-001``).  Numbers past the padding simply grow
(``ORD-1000``).  The sequence comes from a single shared counter that is
incremented transactionally, so numbers are unique and gap-free.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional

import structlog
from django.conf import settings

from modules.orders.constants import ORDER_COUNTER_NAME
from modules.orders.exceptions import MalformedOrderNumber

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import ICounterRepository

logger = structlog.get_logger(__name__)


def _prefix(prefix: Optional[str]) -> str:
    return prefix if prefix is not None else settings.ORDER_NUMBER_PREFIX


def _width(width: Optional[int]) -> int:
    return width if width is not None else settings.ORDER_NUMBER_WIDTH


def format_order_number(
    n: int, prefix: Optional[str] = None, width: Optional[int] = None
) -> str:
    if isinstance(n, bool) or not isinstance(n, int) or n < 1:
        raise ValueError(f"Order sequence numbers start at 1, got {n!r}.")
    return f"{_prefix(prefix)}-{n:0{_width(width)}d}"


def parse_order_number(
    value: str, prefix: Optional[str] = None, width: Optional[int] = None
) -> int:
    """Inverse of ``format_order_number``.

    Raises:
        MalformedOrderNumber: *value* is not something ``format_order_number``
            could have produced (wrong prefix, short or over-padded digits,
            zero).
    """
    width = _width(width)
    pattern = rf"{re.escape(_prefix(prefix))}-([0-9]{{{width}}}|[1-9][0-9]{{{width},}})"
    match = re.fullmatch(pattern, value or "")
    if match is None or int(match.group(1)) < 1:
        raise MalformedOrderNumber(f"'{value}' is not a valid order number.")
    return int(match.group(1))


class OrderNumberService:
    """Issues order numbers from an injected counter repository.

    The counter increment joins the caller's transaction: when order
    creation fails afterwards, the increment rolls back with it.
    Failures surface as ``NumberingFailed`` and are not retried here.
    """

    def __init__(
        self,
        counter_repository: ICounterRepository,
        counter_name: str = ORDER_COUNTER_NAME,
    ) -> None:
        self._counter_repo = counter_repository
        self._counter_name = counter_name

    def next_number(self) -> int:
        value = self._counter_repo.atomic_increment(self._counter_name)
        logger.debug("order_number.issued", counter=self._counter_name, value=value)
        return value

    def next_order_number(self) -> str:
        return format_order_number(self.next_number())
