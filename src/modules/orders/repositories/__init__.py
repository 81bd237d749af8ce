"""Order repositories package."""

from modules.orders.repositories.django_repository import (
    CounterDjangoRepository,
    OrderDjangoRepository,
    OrderMessageDjangoRepository,
)
from modules.orders.repositories.interfaces import (
    ICounterRepository,
    IOrderMessageRepository,
    IOrderRepository,
)
from modules.orders.repositories.memory import InMemoryCounterRepository

__all__ = [
    "CounterDjangoRepository",
    "ICounterRepository",
    "IOrderMessageRepository",
    "IOrderRepository",
    "InMemoryCounterRepository",
    "OrderDjangoRepository",
    "OrderMessageDjangoRepository",
]
