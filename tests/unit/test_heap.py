"""Tests for the bounded priority queue used by nearest-neighbor search."""

import pytest

from kdindex import BoundedMaxHeap


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BoundedMaxHeap(0)


def test_worst_is_infinite_until_full():
    heap = BoundedMaxHeap(2)
    heap.push(3.0, 0, "a")

    assert not heap.full
    assert heap.worst() == float("inf")

    heap.push(1.0, 1, "b")
    assert heap.full
    assert heap.worst() == 3.0


def test_keeps_lowest_scores_and_drains_ascending():
    heap = BoundedMaxHeap(3)
    for order, score in enumerate([5.0, 1.0, 4.0, 2.0, 9.0, 3.0]):
        heap.push(score, order, f"item{order}")

    assert len(heap) == 3
    assert heap.drain() == [(1.0, "item1"), (2.0, "item3"), (3.0, "item5")]
    assert len(heap) == 0


def test_equal_score_never_evicts_earlier_item():
    heap = BoundedMaxHeap(2)
    assert heap.push(1.0, 0, "first")
    assert heap.push(1.0, 1, "second")
    assert not heap.push(1.0, 2, "third")

    assert heap.drain() == [(1.0, "first"), (1.0, "second")]


def test_earlier_order_wins_when_offered_late():
    heap = BoundedMaxHeap(1)
    heap.push(2.0, 5, "late")

    assert heap.push(2.0, 3, "early")
    assert heap.drain() == [(2.0, "early")]


def test_items_are_never_compared():
    heap = BoundedMaxHeap(2)
    heap.push(1.0, 0, object())
    heap.push(1.0, 1, object())
    heap.push(0.5, 2, object())

    assert [score for score, _ in heap.drain()] == [0.5, 1.0]
