"""Order repository interfaces.

Extend ``IRepository`` with what the order lifecycle needs: version-guarded
updates of the order row, append-only sub-records (history, quotes,
payment transactions, timeline, messages) and the shared order counter.

The Service Layer depends exclusively on these contracts (DIP).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import ActorDTO
    from modules.orders.models import (
        Order,
        OrderMessage,
        OrderStatusHistory,
        Payment,
        Quote,
        TimelineMilestone,
    )
    from modules.orders.quotes import QuoteDraft


class ICounterRepository(ABC):
    """Named monotonic counters."""

    @abstractmethod
    def atomic_increment(self, name: str) -> int:
        """Increment counter *name* and return the new value.

        Raises:
            NumberingFailed: the counter could not be read or written.
        """


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    Every mutation of an order goes through ``update_if_version_matches``
    first, so a stale caller fails before any sub-record is written.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Insert a new order row (``version`` starts at 1)."""

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[Order]:
        """Retrieve an order with its sub-records prefetched."""

    @abstractmethod
    def get_by_number(self, order_number: str) -> Optional[Order]: ...

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional ORM filters, newest first."""

    @abstractmethod
    def update_if_version_matches(
        self, id: UUID, expected_version: int, changes: Dict[str, Any]
    ) -> None:
        """Apply *changes* and bump ``version`` only if it still equals *expected_version*.

        Raises:
            OrderNotFound: no order with *id*.
            ConcurrentModification: the order was changed by someone else.
            ImmutableRecord: *changes* touch an identity field.
        """

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        old_status: Optional[str],
        new_status: str,
        actor: ActorDTO,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Append a status history entry."""

    @abstractmethod
    def add_quote(self, order_id: UUID, draft: QuoteDraft) -> Quote: ...

    @abstractmethod
    def supersede_quote(self, quote: Quote) -> None: ...

    @abstractmethod
    def record_payment(
        self, order_id: UUID, quote: Quote, data: Dict[str, Any], actor: ActorDTO
    ) -> Payment:
        """Append a transaction, creating the payment record on first use."""

    @abstractmethod
    def rebase_payment(self, payment: Payment, quote: Quote) -> Payment:
        """Point an existing payment record at a new quote."""

    @abstractmethod
    def count_milestones(self, order_id: UUID) -> int: ...

    @abstractmethod
    def add_milestone(self, order_id: UUID, data: Dict[str, Any]) -> TimelineMilestone: ...

    @abstractmethod
    def get_milestone(self, order_id: UUID, milestone_id: Any) -> Optional[TimelineMilestone]: ...

    @abstractmethod
    def update_milestone(self, milestone: TimelineMilestone, changes: Dict[str, Any]) -> TimelineMilestone: ...

    @abstractmethod
    def flush_events(self, order: Order) -> int:
        """Write the order's pending domain events to the outbox; return how many."""


class IOrderMessageRepository(IRepository["OrderMessage"]):
    """Repository contract for order conversation threads."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> OrderMessage: ...

    @abstractmethod
    def list_for_order(self, order_id: UUID, include_deleted: bool = False) -> List[OrderMessage]: ...

    @abstractmethod
    def get_for_order(self, order_id: UUID, message_id: Any) -> Optional[OrderMessage]: ...

    @abstractmethod
    def add_receipts(self, order_id: UUID, message_ids: Iterable[Any], user_id: str) -> int:
        """Record that *user_id* saw the messages; existing receipts are kept."""

    @abstractmethod
    def unread_count(self, order_id: UUID, user_id: str) -> int: ...

    @abstractmethod
    def flag_deleted(self, message: OrderMessage) -> OrderMessage: ...
