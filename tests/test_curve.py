"""
Tests for the growable correspondence curve.
"""

import numpy as np
import pytest

from earth_alignment.preprocessing.curve import Curve, Point3


def test_push_and_index():
    curve = Curve()
    curve.push(1.0, 2.0, 3.0)
    curve.push_point(Point3(4.0, 5.0, 6.0))

    assert len(curve) == 2
    assert curve[0] == Point3(1.0, 2.0, 3.0)
    assert curve[-1] == Point3(4.0, 5.0, 6.0)
    assert list(curve) == [Point3(1.0, 2.0, 3.0), Point3(4.0, 5.0, 6.0)]
    with pytest.raises(IndexError):
        curve[2]


def test_grows_by_whole_blocks():
    curve = Curve(block_points=4)
    assert curve.capacity == 0

    for i in range(5):
        curve.push(i, i, i)

    assert len(curve) == 5
    assert curve.capacity == 8
    np.testing.assert_array_equal(curve.to_array()[:, 0], np.arange(5, dtype=float))


def test_to_array_is_read_only_copy():
    curve = Curve()
    curve.push(1.0, 2.0, 3.0)
    arr = curve.to_array()

    assert arr.shape == (1, 3)
    with pytest.raises(ValueError):
        arr[0, 0] = 10.0

    curve.push(4.0, 5.0, 6.0)
    assert arr.shape == (1, 3)


def test_clear_and_empty_array():
    curve = Curve()
    curve.push(1.0, 2.0, 3.0)
    curve.clear()

    assert len(curve) == 0
    assert curve.to_array().shape == (0, 3)


def test_invalid_block_size():
    with pytest.raises(ValueError):
        Curve(block_points=0)
