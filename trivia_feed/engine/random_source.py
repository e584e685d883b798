"""
Injectable random source.

All randomized selection (topic shuffles, in-topic picks, weighted draws)
goes through a RandomSource so tests and replays can pin the seed.
"""

from __future__ import annotations

from typing import Optional, Sequence, TypeVar

import numpy as np

from trivia_feed.config import config

T = TypeVar("T")


class RandomSource:
    """
    Thin wrapper around numpy's Generator.

    Usage:
        rng = RandomSource(seed=42)
        topics = rng.shuffled(["Music", "Science", "Arts"])
        pick = rng.weighted_choice(["Science", "Music"], [0.4, 0.1])
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._generator = np.random.default_rng(seed)

    @classmethod
    def from_config(cls) -> RandomSource:
        """Seeded from TRIVIA_FEED_SEED when set, otherwise entropy."""
        return cls(seed=config.feed.random_seed)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return float(self._generator.random())

    def shuffled(self, values: Sequence[T]) -> list[T]:
        """New list with the values in random order."""
        values = list(values)
        order = self._generator.permutation(len(values))
        return [values[i] for i in order]

    def choice(self, values: Sequence[T]) -> T:
        """
        Uniform pick.

        Raises:
            ValueError: If values is empty
        """
        if not values:
            raise ValueError("Cannot choose from an empty sequence")
        return values[int(self._generator.integers(len(values)))]

    def weighted_choice(self, values: Sequence[T], weights: Sequence[float]) -> T:
        """
        Pick proportionally to non-negative weights.

        Falls back to a uniform pick when every weight is zero.

        Raises:
            ValueError: If values is empty or lengths differ
        """
        if not values:
            raise ValueError("Cannot choose from an empty sequence")
        if len(values) != len(weights):
            raise ValueError(
                f"values and weights differ in length ({len(values)} != {len(weights)})"
            )
        w = np.clip(np.asarray(weights, dtype=float), 0.0, None)
        total = w.sum()
        if total <= 0:
            return self.choice(values)
        index = int(self._generator.choice(len(values), p=w / total))
        return values[index]

    def __repr__(self) -> str:
        return f"RandomSource(seed={self.seed})"
