"""Seeded noise generation used to perturb problem parameters."""

from __future__ import annotations

import math
import random

import numpy as np

_RAND_MAX = 2**31 - 1


class NoiseSource:
    """A reproducible source of uniform and Gaussian random numbers."""

    def __init__(self, seed: int = 0) -> None:
        self._rng = random.Random(seed)

    def uniform(self) -> float:
        """Return a number uniformly distributed in [0, 1]."""
        return self._rng.randint(0, _RAND_MAX) / _RAND_MAX

    def normal(self) -> float:
        """Return a standard normal sample (Marsaglia polar method)."""
        while True:
            x1 = 2.0 * self.uniform() - 1.0
            x2 = 2.0 * self.uniform() - 1.0
            w = x1 * x1 + x2 * x2
            if 0.0 < w < 1.0:
                break
        return x1 * math.sqrt((-2.0 * math.log(w)) / w)

    def perturb(self, values, sigma: float) -> np.ndarray:
        """Return a copy of ``values`` with Gaussian noise of std ``sigma`` added.

        No random numbers are drawn when ``sigma`` is zero.
        """
        if sigma < 0.0:
            raise ValueError(f"sigma must be non-negative, got {sigma}")
        array = np.array(values, dtype=float)
        if sigma == 0.0:
            return array
        noise = np.fromiter((self.normal() for _ in range(array.size)), dtype=float, count=array.size)
        return array + sigma * noise.reshape(array.shape)