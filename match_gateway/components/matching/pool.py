"""
Waiting Pool.

FIFO of connection ids seeking a partner. A list keeps arrival order and a
set gives O(1) membership checks; both are only touched under the state lock.
"""

from __future__ import annotations

from typing import Callable, Iterator


class WaitingPool:
    """Ordered, duplicate-free queue of waiting connection ids."""

    def __init__(self) -> None:
        self._order: list[str] = []
        self._members: set[str] = set()

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._order))

    def enqueue(self, connection_id: str) -> bool:
        """
        Append to the tail.

        Returns:
            False if the id was already waiting (order unchanged).
        """
        if connection_id in self._members:
            return False
        self._order.append(connection_id)
        self._members.add(connection_id)
        return True

    def remove(self, connection_id: str) -> bool:
        """Remove an id wherever it sits. Returns False if absent."""
        if connection_id not in self._members:
            return False
        self._members.discard(connection_id)
        self._order.remove(connection_id)
        return True

    def pop_first(self, eligible: Callable[[str], bool]) -> str | None:
        """
        Remove and return the oldest id accepted by `eligible`.

        Entries rejected by the predicate keep their place in the queue.
        """
        for index, connection_id in enumerate(self._order):
            if eligible(connection_id):
                del self._order[index]
                self._members.discard(connection_id)
                return connection_id
        return None

    def snapshot(self) -> list[str]:
        """Waiting ids in arrival order."""
        return list(self._order)
