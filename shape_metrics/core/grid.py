"""
Grid & Domain Model
===================

Immutable integer-intensity volumes over an axis-aligned 3D box.

Arrays are indexed ``[x, y, z]`` relative to the domain's lower corner.
Domain iteration order is x fastest, then y, then z.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

Point = Tuple[int, int, int]


@dataclass(frozen=True)
class Domain:
    """Inclusive integer box ``[lower, upper]`` on each axis."""
    lower: Point
    upper: Point

    @classmethod
    def from_shape(cls, shape: Tuple[int, int, int], origin: Point = (0, 0, 0)) -> 'Domain':
        lower = tuple(int(o) for o in origin)
        upper = tuple(int(o) + int(s) - 1 for o, s in zip(origin, shape))
        return cls(lower, upper)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(u - l + 1 for l, u in zip(self.lower, self.upper))

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def contains(self, point: Point) -> bool:
        return all(l <= p <= u for l, p, u in zip(self.lower, point, self.upper))

    def ordered_points(self, mask: np.ndarray, z_offset: int = 0) -> np.ndarray:
        """
        Absolute coordinates of the True entries of ``mask`` in domain order.

        Args:
            mask: Boolean array indexed [x, y, z] (the whole domain or a z-slab)
            z_offset: Index of the slab's first z plane within the domain

        Returns:
            (n, 3) int64 array of x, y, z coordinates
        """
        # argwhere walks C order; on the z, y, x view that is x fastest
        zyx = np.argwhere(np.transpose(mask, (2, 1, 0)))
        points = zyx[:, ::-1].astype(np.int64)
        points += np.asarray(self.lower, dtype=np.int64)
        points[:, 2] += z_offset
        return points


class VolumeGrid:
    """Read-only scalar grid over a :class:`Domain`."""

    def __init__(self, values: np.ndarray, origin: Point = (0, 0, 0)):
        values = np.array(values, copy=True)
        if values.ndim != 3:
            raise ValueError(f"Volume must be 3D, got shape {values.shape}")
        if values.size == 0:
            raise ValueError("Volume is empty")
        if not np.issubdtype(values.dtype, np.integer):
            raise ValueError(f"Volume intensities must be integers, got dtype {values.dtype}")
        values.setflags(write=False)
        self._values = values
        self._domain = Domain.from_shape(values.shape, origin)

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def domain(self) -> Domain:
        return self._domain

    def __call__(self, point: Point) -> int:
        if not self._domain.contains(point):
            raise IndexError(f"Point {point} outside domain {self._domain}")
        index = tuple(p - l for p, l in zip(point, self._domain.lower))
        return int(self._values[index])

    def __repr__(self) -> str:
        return f"VolumeGrid(domain={self._domain}, dtype={self._values.dtype})"
