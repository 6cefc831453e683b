"""Fixed-capacity binary heap.

The heap is an array of ``capacity`` slots plus a size counter.  Slot ``i``
has children ``2i + 1`` and ``2i + 2``; its parent is ``(i - 1) // 2``.
Ordering is by a numeric priority, largest first (``mode="max"``) or
smallest first (``mode="min"``).  Equal priorities have no defined order.

Usage
-----
>>> heap = PriorityHeap(capacity=8, mode="min")
>>> heap.insert("scout", 3)
>>> heap.insert("archer", 1)
>>> heap.extract_top()
'archer'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

import structlog

from .errors import CapacityExceededError, InvalidInputError

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_CAPACITY = 100
HEAP_MODES = ("max", "min")


@dataclass
class HeapEntry(Generic[T]):
    item: T
    priority: float


@dataclass(frozen=True)
class HeapLinks:
    """Slot relations of one occupied heap slot (``None`` where absent)."""

    parent: Optional[int]
    left: Optional[int]
    right: Optional[int]


def parent_index(i: int) -> int:
    return (i - 1) // 2


def left_index(i: int) -> int:
    return 2 * i + 1


def right_index(i: int) -> int:
    return 2 * i + 2


class PriorityHeap(Generic[T]):
    """Binary heap over a fixed array of slots.

    Parameters
    ----------
    capacity : int
        Number of slots.  Inserting into a full heap raises
        :class:`~sitemesh.errors.CapacityExceededError`.
    mode : str
        ``"max"`` keeps the largest priority on top, ``"min"`` the smallest.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, mode: str = "max") -> None:
        if capacity < 1:
            raise InvalidInputError("capacity must be >= 1")
        if mode not in HEAP_MODES:
            raise InvalidInputError(f"mode must be one of {HEAP_MODES}, got {mode!r}")
        self.capacity = capacity
        self.mode = mode
        self._slots: List[Optional[HeapEntry[T]]] = [None] * capacity
        self._size = 0

    # ── ordering ────────────────────────────────────────────────────

    def _above(self, i: int, j: int) -> bool:
        """True if slot *i* should sit strictly above slot *j*."""
        pi = self._slots[i].priority
        pj = self._slots[j].priority
        return pi > pj if self.mode == "max" else pi < pj

    def _swap(self, i: int, j: int) -> None:
        self._slots[i], self._slots[j] = self._slots[j], self._slots[i]

    def _sift_up(self, i: int) -> int:
        while i > 0 and self._above(i, parent_index(i)):
            self._swap(i, parent_index(i))
            i = parent_index(i)
        return i

    # ── core operations ─────────────────────────────────────────────

    def heapify(self, index: int = 0) -> None:
        """Sift the entry at *index* down until heap order holds below it.

        Recursion depth is bounded by the heap height, ``O(log capacity)``.
        """
        if index >= self._size:
            return
        left = left_index(index)
        right = right_index(index)
        top = index
        if left < self._size and self._above(left, top):
            top = left
        if right < self._size and self._above(right, top):
            top = right
        if top != index:
            self._swap(index, top)
            self.heapify(top)

    def build_heap(self) -> None:
        """Restore heap order across every occupied slot."""
        for i in range(self._size // 2 - 1, -1, -1):
            self.heapify(i)

    def insert(self, item: T, priority: float) -> None:
        """Append *item* and sift it up.

        Raises :class:`CapacityExceededError` (leaving the heap unchanged)
        when every slot is occupied.
        """
        if self._size >= self.capacity:
            raise CapacityExceededError(
                f"Heap is full ({self.capacity} slots); cannot insert new item"
            )
        i = self._size
        self._slots[i] = HeapEntry(item, priority)
        self._size += 1
        self._sift_up(i)

    def extract_top(self) -> Optional[T]:
        """Remove and return the top item, or ``None`` if the heap is empty."""
        if self._size == 0:
            return None
        top = self._slots[0]
        last = self._size - 1
        self._slots[0] = self._slots[last]
        self._slots[last] = None
        self._size = last
        self.heapify(0)
        return top.item

    def peek(self) -> Optional[T]:
        """Return the top item without removing it, or ``None`` when empty."""
        if self._size == 0:
            return None
        return self._slots[0].item

    def peek_priority(self) -> Optional[float]:
        if self._size == 0:
            return None
        return self._slots[0].priority

    def index_of(self, item: T) -> Optional[int]:
        """Slot holding *item* (compared with ``==``), or ``None``."""
        for i in range(self._size):
            if self._slots[i].item == item:
                return i
        return None

    def remove(self, item: T) -> bool:
        """Evict *item* from anywhere in the heap.

        Linear scan, swap with the last entry, then rebuild.  Returns
        ``False`` if *item* is not present.
        """
        index = self.index_of(item)
        if index is None:
            return False
        last = self._size - 1
        self._slots[index] = self._slots[last]
        self._slots[last] = None
        self._size = last
        self.build_heap()
        if not self.is_valid():
            logger.warning("Heap order violated after removal", size=self._size)
        return True

    def change_priority(self, item: T, priority: float) -> bool:
        """Reassign *item*'s priority and restore order.  ``False`` if absent."""
        index = self.index_of(item)
        if index is None:
            return False
        self._slots[index].priority = priority
        index = self._sift_up(index)
        self.heapify(index)
        return True

    def load(self, entries: Iterable[Tuple[T, float]]) -> None:
        """Bulk-append ``(item, priority)`` pairs, then build the heap once.

        The whole batch is rejected if it does not fit.
        """
        batch = list(entries)
        if self._size + len(batch) > self.capacity:
            raise CapacityExceededError(
                f"Cannot load {len(batch)} items into heap with "
                f"{self.capacity - self._size} free slots"
            )
        for item, priority in batch:
            self._slots[self._size] = HeapEntry(item, priority)
            self._size += 1
        self.build_heap()

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._size = 0

    # ── introspection ───────────────────────────────────────────────

    @property
    def size(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def is_full(self) -> bool:
        return self._size >= self.capacity

    def priorities(self) -> List[float]:
        """Priorities in slot order."""
        return [self._slots[i].priority for i in range(self._size)]

    def items(self) -> List[T]:
        """Items in slot order (not sorted)."""
        return [self._slots[i].item for i in range(self._size)]

    def is_valid(self) -> bool:
        """Check the heap-order relation for every parent/child pair."""
        for i in range(1, self._size):
            if self._above(i, parent_index(i)):
                return False
        return True

    def hierarchy(self) -> Dict[int, HeapLinks]:
        """Parent/child slot links for every occupied slot.

        Schedulers use this to derive commander/subordinate relations from
        the current heap order.
        """
        links: Dict[int, HeapLinks] = {}
        for i in range(self._size):
            left = left_index(i)
            right = right_index(i)
            links[i] = HeapLinks(
                parent=parent_index(i) if i > 0 else None,
                left=left if left < self._size else None,
                right=right if right < self._size else None,
            )
        return links

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[T]:
        return iter(self.items())

    def __contains__(self, item: object) -> bool:
        return self.index_of(item) is not None  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"PriorityHeap(mode={self.mode!r}, size={self._size}, capacity={self.capacity})"
