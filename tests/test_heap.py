"""Tests for ``sitemesh.heap``: fixed-capacity binary heap."""

from __future__ import annotations

import random

import pytest

from sitemesh.errors import CapacityExceededError, InvalidInputError
from sitemesh.heap import HeapLinks, PriorityHeap


# ── helpers ─────────────────────────────────────────────────────────

def _drain(heap: PriorityHeap) -> list:
    out = []
    while not heap.is_empty():
        out.append(heap.extract_top())
    return out


@pytest.fixture()
def soldiers() -> PriorityHeap:
    heap: PriorityHeap[str] = PriorityHeap(capacity=8)
    for name, speed in [("scout", 5), ("archer", 3), ("knight", 8), ("monk", 1), ("rider", 9)]:
        heap.insert(name, speed)
    return heap


# ═══════════════════════════════════════════════════════════════════
# Ordering
# ═══════════════════════════════════════════════════════════════════


class TestOrdering:
    def test_max_heap_extracts_largest_first(self, soldiers):
        assert _drain(soldiers) == ["rider", "knight", "scout", "archer", "monk"]

    def test_min_heap_extracts_smallest_first(self):
        heap = PriorityHeap(capacity=8, mode="min")
        for item, p in [("a", 4), ("b", 2), ("c", 7), ("d", 0)]:
            heap.insert(item, p)
        assert _drain(heap) == ["d", "b", "a", "c"]

    def test_peek_does_not_remove(self, soldiers):
        assert soldiers.peek() == "rider"
        assert soldiers.peek_priority() == 9
        assert len(soldiers) == 5

    def test_invariant_holds_after_inserts(self, soldiers):
        assert soldiers.is_valid()

    def test_float_priorities(self):
        heap = PriorityHeap(capacity=4)
        heap.insert("x", 0.5)
        heap.insert("y", 2.25)
        heap.insert("z", -1.0)
        assert heap.extract_top() == "y"


# ═══════════════════════════════════════════════════════════════════
# Empty and full
# ═══════════════════════════════════════════════════════════════════


class TestBounds:
    def test_empty_heap_returns_none(self):
        heap = PriorityHeap(capacity=3)
        assert heap.extract_top() is None
        assert heap.peek() is None
        assert heap.peek_priority() is None

    def test_insert_into_full_heap_raises_and_keeps_contents(self):
        heap = PriorityHeap(capacity=2)
        heap.insert("a", 1)
        heap.insert("b", 2)
        with pytest.raises(CapacityExceededError):
            heap.insert("c", 3)
        assert heap.size == 2
        assert sorted(heap.items()) == ["a", "b"]
        assert heap.is_full()

    def test_capacity_error_is_overflow_error(self):
        heap = PriorityHeap(capacity=1)
        heap.insert("a", 1)
        with pytest.raises(OverflowError):
            heap.insert("b", 1)

    def test_invalid_construction(self):
        with pytest.raises(InvalidInputError):
            PriorityHeap(capacity=0)
        with pytest.raises(ValueError):
            PriorityHeap(mode="median")

    def test_load_rejects_whole_batch_when_too_large(self):
        heap = PriorityHeap(capacity=3)
        heap.insert("a", 1)
        with pytest.raises(CapacityExceededError):
            heap.load([("b", 2), ("c", 3), ("d", 4)])
        assert heap.items() == ["a"]


# ═══════════════════════════════════════════════════════════════════
# Arbitrary removal and priority changes
# ═══════════════════════════════════════════════════════════════════


class TestRemoval:
    def test_remove_middle_item(self, soldiers):
        assert soldiers.remove("scout") is True
        assert "scout" not in soldiers
        assert soldiers.is_valid()
        assert _drain(soldiers) == ["rider", "knight", "archer", "monk"]

    def test_remove_missing_item_returns_false(self, soldiers):
        assert soldiers.remove("dragon") is False
        assert len(soldiers) == 5

    def test_remove_last_remaining(self):
        heap = PriorityHeap(capacity=2)
        heap.insert("solo", 1)
        assert heap.remove("solo")
        assert heap.is_empty()

    def test_change_priority_up_and_down(self, soldiers):
        assert soldiers.change_priority("monk", 100)
        assert soldiers.peek() == "monk"
        assert soldiers.change_priority("monk", -1)
        assert soldiers.is_valid()
        assert _drain(soldiers)[-1] == "monk"

    def test_change_priority_missing(self, soldiers):
        assert soldiers.change_priority("dragon", 3) is False

    def test_random_operation_sequence_keeps_invariant(self):
        rng = random.Random(11)
        for mode in ("max", "min"):
            heap = PriorityHeap(capacity=40, mode=mode)
            live = []
            for step in range(400):
                op = rng.random()
                if op < 0.5 and not heap.is_full():
                    heap.insert(step, rng.randint(-20, 20))
                    live.append(step)
                elif op < 0.7:
                    top = heap.extract_top()
                    if top is not None:
                        live.remove(top)
                elif op < 0.9 and live:
                    victim = rng.choice(live)
                    assert heap.remove(victim)
                    live.remove(victim)
                else:
                    heap.build_heap()
                assert heap.is_valid()
                assert sorted(heap.items()) == sorted(live)


# ═══════════════════════════════════════════════════════════════════
# Bulk load and hierarchy
# ═══════════════════════════════════════════════════════════════════


class TestHierarchy:
    def test_load_builds_valid_heap(self):
        heap = PriorityHeap(capacity=10)
        heap.load([(i, p) for i, p in enumerate([3, 9, 1, 7, 5, 8])])
        assert heap.is_valid()
        assert heap.peek_priority() == 9

    def test_heapify_restores_root(self):
        heap = PriorityHeap(capacity=10)
        heap.load([("a", 9), ("b", 5), ("c", 7)])
        heap._slots[0].priority = 0
        assert not heap.is_valid()
        heap.heapify(0)
        assert heap.is_valid()
        assert heap.peek() == "c"

    def test_hierarchy_links(self):
        heap = PriorityHeap(capacity=10)
        heap.load([(i, 10 - i) for i in range(5)])
        links = heap.hierarchy()
        assert set(links) == {0, 1, 2, 3, 4}
        assert links[0] == HeapLinks(parent=None, left=1, right=2)
        assert links[1] == HeapLinks(parent=0, left=3, right=4)
        assert links[2] == HeapLinks(parent=0, left=None, right=None)
        assert links[4] == HeapLinks(parent=1, left=None, right=None)

    def test_clear(self, soldiers):
        soldiers.clear()
        assert soldiers.is_empty()
        assert soldiers.hierarchy() == {}
