"""Fixed-capacity stack and ring queue.

Both wrap a preallocated slot array and enforce their own bookkeeping:
overflow raises :class:`~sitemesh.errors.CapacityExceededError` and leaves
the container unchanged, underflow returns ``None``.
"""

from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from .errors import CapacityExceededError, InvalidInputError

T = TypeVar("T")


class BoundedStack(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise InvalidInputError("capacity must be >= 1")
        self.capacity = capacity
        self._slots: List[Optional[T]] = [None] * capacity
        self._top = 0

    def push(self, item: T) -> None:
        if self._top >= self.capacity:
            raise CapacityExceededError(f"Stack is full ({self.capacity} slots)")
        self._slots[self._top] = item
        self._top += 1

    def pop(self) -> Optional[T]:
        if self._top == 0:
            return None
        self._top -= 1
        item = self._slots[self._top]
        self._slots[self._top] = None
        return item

    def peek(self) -> Optional[T]:
        if self._top == 0:
            return None
        return self._slots[self._top - 1]

    def is_empty(self) -> bool:
        return self._top == 0

    def is_full(self) -> bool:
        return self._top >= self.capacity

    def __len__(self) -> int:
        return self._top


class RingQueue(Generic[T]):
    """FIFO queue over a circular slot array."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise InvalidInputError("capacity must be >= 1")
        self.capacity = capacity
        self._slots: List[Optional[T]] = [None] * capacity
        self._front = 0
        self._size = 0

    def enqueue(self, item: T) -> None:
        if self._size >= self.capacity:
            raise CapacityExceededError(f"Queue is full ({self.capacity} slots)")
        rear = (self._front + self._size) % self.capacity
        self._slots[rear] = item
        self._size += 1

    def dequeue(self) -> Optional[T]:
        if self._size == 0:
            return None
        item = self._slots[self._front]
        self._slots[self._front] = None
        self._front = (self._front + 1) % self.capacity
        self._size -= 1
        return item

    def peek(self) -> Optional[T]:
        if self._size == 0:
            return None
        return self._slots[self._front]

    def rotate(self) -> None:
        """Move the front item to the back."""
        if self._size > 1:
            self.enqueue(self.dequeue())  # type: ignore[arg-type]

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._front = 0
        self._size = 0

    def to_list(self) -> List[T]:
        """Items from front to back."""
        return [
            self._slots[(self._front + i) % self.capacity]  # type: ignore[misc]
            for i in range(self._size)
        ]

    def is_empty(self) -> bool:
        return self._size == 0

    def is_full(self) -> bool:
        return self._size >= self.capacity

    def __len__(self) -> int:
        return self._size
