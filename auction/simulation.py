"""
Simulation context.

Bundles the simpy environment (virtual clock, process scheduling, exclusive
resources) with the single random number generator every stochastic draw of
a run goes through. Sharing one generator makes an entire run reproducible
from a single seed because simpy resumes processes in a deterministic order.
"""

from typing import Mapping, TypeVar

import numpy as np
import simpy

K = TypeVar("K")


class SimContext:
    """
    Virtual clock plus random variates for one simulation run.

    Attributes:
        env: The simpy environment driving all processes
        rng: Numpy random generator used for every draw
    """

    def __init__(
        self,
        seed: int | None = None,
        env: simpy.Environment | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.env = env if env is not None else simpy.Environment()
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    @property
    def now(self) -> float:
        """Current virtual time."""
        return float(self.env.now)

    # =========================================================================
    # RANDOM VARIATES
    # =========================================================================

    def uniform(self) -> float:
        """Uniform draw in [0, 1)."""
        return float(self.rng.random())

    def exponential(self, mean: float) -> float:
        """Exponential draw with the given mean (0 when mean <= 0)."""
        if mean <= 0:
            return 0.0
        return float(self.rng.exponential(mean))

    def normal(self, mean: float, std: float) -> float:
        """Normal draw; a non-positive std collapses to the mean."""
        if std <= 0:
            return float(mean)
        return float(self.rng.normal(mean, std))

    def poisson(self, mean: float) -> int:
        """Poisson draw (0 when mean <= 0)."""
        if mean <= 0:
            return 0
        return int(self.rng.poisson(mean))

    def categorical(self, weights: Mapping[K, float]) -> K:
        """
        Draw one key of ``weights`` with probability proportional to its weight.

        Raises:
            ValueError: If the weights are empty or do not sum to a positive value
        """
        keys = list(weights)
        probs = np.array([weights[k] for k in keys], dtype=float)
        total = probs.sum()
        if not keys or total <= 0:
            raise ValueError(f"categorical weights must sum to > 0, got {dict(weights)}")
        index = int(self.rng.choice(len(keys), p=probs / total))
        return keys[index]
