"""Injectable random source for the simulation core."""

import random
from typing import Optional, Protocol


class RandomSource(Protocol):
    """The subset of ``random.Random`` the simulation draws from."""

    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...

    def gauss(self, mu: float, sigma: float) -> float: ...


def make_rng(seed: Optional[int] = None) -> random.Random:
    """
    Create a random source.

    A seed gives a reproducible sequence for tests and replays; without one the
    generator is seeded from system entropy.
    """
    return random.Random(seed)
