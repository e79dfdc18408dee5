"""
Uniform random sources used by the sample field.

The field only ever asks three questions of its random source: pick an
active point, pick a radius in the annulus, and pick a direction. Anything
implementing those three methods can be injected.
"""

from __future__ import annotations

import math
from typing import Optional, Protocol, Tuple

import numpy as np


class RandomSource(Protocol):
    def uniform_index(self, n: int) -> int:
        """Integer in [0, n)."""
        ...

    def uniform_float(self, lo: float, hi: float) -> float:
        """Float in [lo, hi)."""
        ...

    def random_unit_vector_2d(self) -> Tuple[float, float]:
        """Unit vector with uniformly distributed direction."""
        ...


class NumpyRandomSource:
    """RandomSource backed by a numpy Generator."""

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def uniform_index(self, n: int) -> int:
        if n <= 0:
            raise ValueError(f"uniform_index needs n > 0, got {n}")
        return int(self.rng.integers(0, n))

    def uniform_float(self, lo: float, hi: float) -> float:
        return float(self.rng.uniform(lo, hi))

    def random_unit_vector_2d(self) -> Tuple[float, float]:
        theta = self.rng.uniform(0.0, 2.0 * math.pi)
        return math.cos(theta), math.sin(theta)


__all__ = ["RandomSource", "NumpyRandomSource"]
