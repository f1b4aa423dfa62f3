import numpy as np
import pytest

from lagrangian_tracking.uid import UidAllocator


def test_allocation_is_consecutive_and_injective():
    alloc = UidAllocator()
    a = alloc.allocate(3)
    b = alloc.allocate(2)
    np.testing.assert_array_equal(a, [1, 2, 3])
    np.testing.assert_array_equal(b, [4, 5])
    assert len(set(a) | set(b)) == 5
    assert alloc.current == 5


def test_allocate_zero():
    alloc = UidAllocator()
    assert alloc.allocate(0).size == 0
    assert alloc.current == 0


def test_observe_only_raises_the_maximum():
    alloc = UidAllocator()
    alloc.allocate(2)
    alloc.observe([7, 3])
    assert alloc.current == 7
    alloc.observe([1])
    alloc.observe([])
    assert alloc.current == 7
    np.testing.assert_array_equal(alloc.allocate(1), [8])


def test_negative_arguments_rejected():
    with pytest.raises(ValueError):
        UidAllocator(start=-1)
    with pytest.raises(ValueError):
        UidAllocator().allocate(-1)
