"""Fixed-capacity priority queue for k-nearest-neighbor selection."""

from __future__ import annotations

import heapq
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class BoundedMaxHeap(Generic[T]):
    """Keep the ``capacity`` lowest-scoring items offered so far.

    The root of the underlying heap is the worst retained candidate. Among
    equal scores the item with the larger ``order`` is considered worse, so an
    equal-score newcomer never evicts an item offered with a smaller order.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, received {capacity}")
        self.capacity = capacity
        # Entries are (-score, -order, item); heapq keeps the worst at index 0.
        self._heap: list[tuple[float, int, Any]] = []

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def full(self) -> bool:
        return len(self._heap) >= self.capacity

    def worst(self) -> float:
        """Return the largest retained score, or ``inf`` while not full."""

        if not self.full:
            return float("inf")
        return -self._heap[0][0]

    def push(self, score: float, order: int, item: T) -> bool:
        """Offer an item; return ``True`` if it was retained."""

        key = (-score, -order, item)
        if not self.full:
            heapq.heappush(self._heap, key)
            return True
        worst_score, worst_neg_order, _ = self._heap[0]
        if (score, order) < (-worst_score, -worst_neg_order):
            heapq.heapreplace(self._heap, key)
            return True
        return False

    def drain(self) -> list[tuple[float, T]]:
        """Empty the heap and return ``(score, item)`` pairs, best first."""

        ordered = sorted(self._heap, key=lambda entry: (-entry[0], -entry[1]))
        self._heap = []
        return [(-neg_score, item) for neg_score, _, item in ordered]


__all__ = ["BoundedMaxHeap"]
