"""
Correspondence curves.

A curve is an ordered sequence of 3D points (longitude/latitude/altitude for
GPS tracks, x/y/z for visual odometry) accumulated one sample at a time.
Storage is a flat float64 buffer grown by fixed blocks of points so that
appending stays amortized constant time.
"""

from __future__ import annotations

from typing import Iterator, NamedTuple

import numpy as np


class Point3(NamedTuple):
    """A 3-component point."""
    x: float
    y: float
    z: float


class Curve:
    """
    Growable ordered sequence of 3D points.

    The curve owns its buffer. Callers read it through ``to_array()``, which
    returns a read-only copy, so only the code holding the curve can append
    to it or clear it.

    Example:
        >>> curve = Curve()
        >>> curve.push(6.63, 46.52, 410.0)
        >>> len(curve)
        1
        >>> curve[0]
        Point3(x=6.63, y=46.52, z=410.0)
    """

    BLOCK_POINTS = 1024

    def __init__(self, block_points: int = BLOCK_POINTS):
        if block_points <= 0:
            raise ValueError(f"block_points must be positive, got {block_points}")
        self._block = int(block_points)
        self._data = np.empty(0, dtype=np.float64)
        self._size = 0  # number of stored components, always a multiple of 3

    def push(self, x: float, y: float, z: float) -> None:
        """Append one point, growing the buffer by a whole block when full."""
        if self._size >= self._data.size:
            grown = np.empty(self._data.size + 3 * self._block, dtype=np.float64)
            grown[:self._size] = self._data[:self._size]
            self._data = grown
        self._data[self._size] = x
        self._data[self._size + 1] = y
        self._data[self._size + 2] = z
        self._size += 3

    def push_point(self, point: Point3) -> None:
        self.push(point.x, point.y, point.z)

    def clear(self) -> None:
        """Drop all points and release the buffer."""
        self._data = np.empty(0, dtype=np.float64)
        self._size = 0

    @property
    def capacity(self) -> int:
        """Number of points the current buffer holds before growing."""
        return self._data.size // 3

    def __len__(self) -> int:
        return self._size // 3

    def __getitem__(self, index: int) -> Point3:
        n = len(self)
        if index < 0:
            index += n
        if not 0 <= index < n:
            raise IndexError(f"curve index {index} out of range for {n} points")
        base = 3 * index
        return Point3(
            float(self._data[base]),
            float(self._data[base + 1]),
            float(self._data[base + 2]),
        )

    def __iter__(self) -> Iterator[Point3]:
        for i in range(len(self)):
            yield self[i]

    def to_array(self) -> np.ndarray:
        """Return the points as a read-only Nx3 array (a copy of the buffer)."""
        out = self._data[:self._size].reshape(-1, 3).copy()
        out.setflags(write=False)
        return out

    def __repr__(self) -> str:
        return f"Curve(points={len(self)}, capacity={self.capacity})"
