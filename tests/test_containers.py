"""Tests for ``sitemesh.containers`` and ``sitemesh.disjoint_set``."""

from __future__ import annotations

import pytest

from sitemesh.containers import BoundedStack, RingQueue
from sitemesh.disjoint_set import DisjointSet
from sitemesh.errors import CapacityExceededError, InvalidInputError


# ═══════════════════════════════════════════════════════════════════
# BoundedStack
# ═══════════════════════════════════════════════════════════════════


class TestBoundedStack:
    def test_lifo_order(self):
        stack = BoundedStack(3)
        for card in ("ace", "king", "queen"):
            stack.push(card)
        assert stack.peek() == "queen"
        assert [stack.pop(), stack.pop(), stack.pop()] == ["queen", "king", "ace"]

    def test_overflow_raises_and_keeps_contents(self):
        stack = BoundedStack(2)
        stack.push(1)
        stack.push(2)
        with pytest.raises(CapacityExceededError):
            stack.push(3)
        assert len(stack) == 2
        assert stack.is_full()
        assert stack.pop() == 2

    def test_underflow_returns_none(self):
        stack = BoundedStack(1)
        assert stack.pop() is None
        assert stack.peek() is None
        assert stack.is_empty()

    def test_capacity_must_be_positive(self):
        with pytest.raises(InvalidInputError):
            BoundedStack(0)


# ═══════════════════════════════════════════════════════════════════
# RingQueue
# ═══════════════════════════════════════════════════════════════════


class TestRingQueue:
    def test_fifo_order(self):
        queue = RingQueue(4)
        for i in range(3):
            queue.enqueue(i)
        assert queue.dequeue() == 0
        assert queue.peek() == 1
        assert len(queue) == 2

    def test_wraparound(self):
        queue = RingQueue(3)
        for i in (1, 2, 3):
            queue.enqueue(i)
        assert queue.dequeue() == 1
        queue.enqueue(4)
        assert queue.to_list() == [2, 3, 4]
        assert queue.is_full()

    def test_overflow_raises(self):
        queue = RingQueue(2)
        queue.enqueue("a")
        queue.enqueue("b")
        with pytest.raises(CapacityExceededError):
            queue.enqueue("c")
        assert queue.to_list() == ["a", "b"]

    def test_underflow_returns_none(self):
        queue = RingQueue(2)
        assert queue.dequeue() is None
        assert queue.peek() is None

    def test_rotate_moves_front_to_back(self):
        queue = RingQueue(3)
        for i in (1, 2, 3):
            queue.enqueue(i)
        queue.rotate()
        assert queue.to_list() == [2, 3, 1]
        queue.rotate()
        assert queue.to_list() == [3, 1, 2]

    def test_clear(self):
        queue = RingQueue(2)
        queue.enqueue(1)
        queue.clear()
        assert queue.is_empty()
        queue.enqueue(5)
        assert queue.to_list() == [5]


# ═══════════════════════════════════════════════════════════════════
# DisjointSet
# ═══════════════════════════════════════════════════════════════════


class TestDisjointSet:
    def test_singletons(self):
        ds = DisjointSet(4)
        assert len(ds) == 4
        assert ds.set_count() == 4
        assert all(ds.find(i) == i for i in range(4))

    def test_union_merges_once(self):
        ds = DisjointSet(4)
        assert ds.union(0, 1) is True
        assert ds.union(1, 0) is False
        assert ds.connected(0, 1)
        assert not ds.connected(0, 2)
        assert ds.set_count() == 3

    def test_groups(self):
        ds = DisjointSet(5)
        ds.union(0, 2)
        ds.union(3, 4)
        groups = sorted(sorted(members) for members in ds.groups().values())
        assert groups == [[0, 2], [1], [3, 4]]

    def test_plain_union_attaches_first_root_under_second(self):
        ds = DisjointSet(2, by_size=False)
        ds.union(0, 1)
        assert ds.find(0) == 1

    def test_find_compresses_paths(self):
        ds = DisjointSet(4, by_size=False)
        ds.union(0, 1)
        ds.union(1, 2)
        ds.union(2, 3)
        assert ds.find(0) == 3
        assert ds._parent[0] == 3
        assert ds._parent[1] == 3

    def test_union_by_size_keeps_larger_root(self):
        ds = DisjointSet(4)
        ds.union(0, 1)
        ds.union(0, 2)
        root = ds.find(0)
        ds.union(3, 0)
        assert ds.find(3) == root

    def test_make_set_resets(self):
        ds = DisjointSet(3)
        ds.union(0, 1)
        ds.make_set(2)
        assert len(ds) == 2
        assert not ds.connected(0, 1)

    def test_out_of_range(self):
        ds = DisjointSet(2)
        with pytest.raises(InvalidInputError):
            ds.find(2)
        with pytest.raises(InvalidInputError):
            DisjointSet(-1)
