"""In-memory counter repository.

Used by unit tests and by tooling that needs order numbers without a
database.  Thread-safe; values are lost with the process.
"""

from __future__ import annotations

import threading
from typing import Dict

from modules.orders.repositories.interfaces import ICounterRepository


class InMemoryCounterRepository(ICounterRepository):
    def __init__(self, initial: Dict[str, int] | None = None) -> None:
        self._values: Dict[str, int] = dict(initial or {})
        self._lock = threading.Lock()

    def atomic_increment(self, name: str) -> int:
        with self._lock:
            value = self._values.get(name, 0) + 1
            self._values[name] = value
            return value

    def current(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0)
